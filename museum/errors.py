class MuseumError(Exception):
    """
    Base for every error a service raises on purpose.
    The HTTP layer turns `status_code` and `public_message` into the response.
    """

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(MuseumError):
    status_code = 400


class UnauthenticatedError(MuseumError):
    status_code = 401


class ForbiddenError(MuseumError):
    status_code = 403


class NotFoundError(MuseumError):
    status_code = 404


class ConflictError(MuseumError):
    status_code = 409


class GenerationError(MuseumError):
    """
    Text/image collaborator failed or returned something unusable.
    The detail is logged; callers only see a generic message.
    """

    status_code = 500

    @property
    def public_message(self) -> str:
        return "Object generation failed"


class StoreError(MuseumError):
    status_code = 500

    @property
    def public_message(self) -> str:
        return "Internal server error"
