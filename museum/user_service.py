import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from museum.auth import AuthUser, TokenIssuer, hash_password, verify_password
from museum.entities import User
from museum.errors import ConflictError, NotFoundError, StoreError, UnauthenticatedError, ValidationError
from museum.provisioning import ThemeProvisioner
from museum.schemas import MAX_PASSWORD_BYTES
from museum.theme_catalog import ThemeCatalog
from museum.utils import Utils

logger = logging.getLogger("museum_backend")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
DEFAULT_THEME_ID = 1


class UserService(Utils):
    """
    Accounts, theme state and the per-user lists exposed on the profile.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        catalog: ThemeCatalog,
        provisioner: ThemeProvisioner,
        tokens: TokenIssuer,
        admin_emails: Optional[List[str]] = None,
    ):
        self.SessionFactory = session_factory
        self.catalog = catalog
        self.provisioner = provisioner
        self.tokens = tokens
        self.admin_emails = {e.lower() for e in admin_emails or []}

    # -----------------------
    # Accounts
    # -----------------------

    def signup(self, email: str, password: str, name: Optional[str] = None) -> dict:
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required")
        if not EMAIL_RE.match(email):
            raise ValidationError("Invalid email format")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        default_theme = self.catalog.get(DEFAULT_THEME_ID)
        session = self.SessionFactory()
        try:
            exists = session.execute(select(User.id).where(User.email == email)).first()
            if exists:
                raise ConflictError("Email already in use")
            user = User(
                email=email,
                name=name.strip() if name and name.strip() else None,
                password_hash=hash_password(password),
                is_admin=email in self.admin_emails,
                theme_state=default_theme.theme_state() if default_theme else {},
            )
            session.add(user)
            session.commit()
            logger.info(f"[AUTH] signup {user.id}")
            return {"id": user.id, "email": user.email, "token": self.tokens.issue(user.id, user.email)}
        except IntegrityError as e:
            session.rollback()
            raise ConflictError("Email already in use") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not create user: {e}") from e
        finally:
            session.close()

    def login(self, email: str, password: str) -> dict:
        email = (email or "").strip().lower()
        session = self.SessionFactory()
        try:
            user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
            if user is None or not verify_password(password or "", user.password_hash):
                raise UnauthenticatedError("Invalid email or password")
            return {"id": user.id, "email": user.email, "token": self.tokens.issue(user.id, user.email)}
        finally:
            session.close()

    def authenticate_token(self, token: str) -> AuthUser:
        claims = self.tokens.decode(token)
        session = self.SessionFactory()
        try:
            user = session.get(User, claims["sub"])
            if user is None:
                raise UnauthenticatedError("User no longer exists")
            return AuthUser(id=user.id, email=user.email, name=user.name, is_admin=user.is_admin)
        finally:
            session.close()

    def get_profile(self, user_id: str) -> dict:
        session = self.SessionFactory()
        try:
            user = self.get_user_or_raise(session, user_id)
            return {
                "id": user.id,
                "email": user.email,
                "name": user.name,
                "isAdmin": user.is_admin,
                "themeId": user.theme_id,
                "theme": user.theme_state or {},
                "invitation": user.invitation,
                "questionIndex": user.question_index,
                "objectIds": self.object_ids_for(session, user_id),
                "modifiedObjectIds": self.modified_ids_for(session, user_id),
                "onboardingResponses": user.onboarding_responses,
                "aiAnalysis": user.ai_analysis,
                "createdAt": user.created_at.isoformat() if user.created_at else None,
            }
        finally:
            session.close()

    def update_invitation(self, user_id: str, invitation: Optional[str]) -> Optional[str]:
        value = invitation.strip() if invitation else None
        session = self.SessionFactory()
        try:
            user = self.get_user_or_raise(session, user_id)
            user.invitation = value or None
            session.commit()
            return user.invitation
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not update invitation: {e}") from e
        finally:
            session.close()

    # -----------------------
    # Theme
    # -----------------------

    def _theme_or_raise(self, theme_id: int):
        if not isinstance(theme_id, int) or isinstance(theme_id, bool) or not (
            ThemeCatalog.MIN_THEME_ID <= theme_id <= ThemeCatalog.MAX_THEME_ID
        ):
            raise ValidationError(
                f"Invalid theme ID. Must be between {ThemeCatalog.MIN_THEME_ID} and {ThemeCatalog.MAX_THEME_ID}."
            )
        config = self.catalog.get(theme_id)
        if config is None:
            raise NotFoundError("Theme not found")
        return config

    def assign_theme(self, user_id: str, theme_id: int) -> dict:
        """
        Sets theme id and theme state, swaps the previous theme's provisioned defaults for the
        new theme's, all in one transaction. Provisioning problems are logged, not raised.
        """
        config = self._theme_or_raise(theme_id)
        session = self.SessionFactory()
        try:
            user = self.get_user_or_raise(session, user_id)
            removed = self.provisioner.remove_default_objects(session, user_id)
            result = self.provisioner.provision_default_objects(theme_id, user_id, session=session)
            if not result.success:
                logger.warning(f"[THEME] default objects for theme {theme_id} not added: {result.error}")

            user.theme_id = theme_id
            user.theme_state = config.theme_state()
            session.commit()
            self.color_print(
                f"[THEME] user {user_id} -> theme {theme_id} (removed {removed}, added {len(result.created_ids)})",
                color="cyan",
            )
            return {
                "themeId": theme_id,
                "name": config.name,
                "colors": config.colors,
                "weather": config.weather,
                "backgroundMusic": config.background_music,
                "defaultObjectsAdded": len(result.created_ids),
            }
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not update theme: {e}") from e
        finally:
            session.close()

    def update_background_music(self, user_id: str, theme_id: int) -> dict:
        config = self._theme_or_raise(theme_id)
        session = self.SessionFactory()
        try:
            user = self.get_user_or_raise(session, user_id)
            state = dict(user.theme_state or {})
            state["backgroundMusic"] = config.background_music
            user.theme_state = state
            session.commit()
            return {"themeId": theme_id, "backgroundMusic": config.background_music}
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not update background music: {e}") from e
        finally:
            session.close()

    # -----------------------
    # Onboarding / analysis
    # -----------------------

    def save_onboarding_responses(self, user_id: str, responses: List[dict]) -> None:
        session = self.SessionFactory()
        try:
            user = self.get_user_or_raise(session, user_id)
            user.onboarding_responses = [{"question": r["question"], "answer": r["answer"]} for r in responses]
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not save onboarding responses: {e}") from e
        finally:
            session.close()

    def get_onboarding_responses(self, user_id: str) -> List[dict]:
        session = self.SessionFactory()
        try:
            return list(self.get_user_or_raise(session, user_id).onboarding_responses or [])
        finally:
            session.close()

    def save_analysis(self, user_id: str, choice: int, reason: str, theme_name: str, responses: List[dict]) -> dict:
        analysis = {
            "choice": choice,
            "reason": reason,
            "theme": theme_name,
            "analyzedAt": datetime.now(timezone.utc).isoformat(),
            "responses": responses,
        }
        session = self.SessionFactory()
        try:
            user = self.get_user_or_raise(session, user_id)
            user.ai_analysis = analysis
            session.commit()
            return analysis
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not save analysis: {e}") from e
        finally:
            session.close()

    def get_analysis(self, user_id: str) -> Optional[dict]:
        session = self.SessionFactory()
        try:
            return self.get_user_or_raise(session, user_id).ai_analysis
        finally:
            session.close()

