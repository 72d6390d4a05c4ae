import copy
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError as PydanticValidationError, constr, field_validator

from museum.errors import ValidationError

PROVENANCE_KEY = "provenance"

NonEmptyStr = constr(strip_whitespace=True, min_length=1)
# passwords are hashed exactly as sent
PasswordStr = constr(min_length=1)
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


class InteractionBehavior(str, Enum):
    GALLERY = "Gallery"
    LINK = "Link"
    BOARD = "Board"


class PlacementSurface(str, Enum):
    WALL = "Wall"
    FLOOR = "Floor"


LEGACY_SURFACES = {"leftwall": "Wall", "rightwall": "Wall", "wall": "Wall", "floor": "Floor"}


def normalize_surface(value: Any) -> Optional[str]:
    """Wall/Floor, accepting the older LeftWall/RightWall spellings."""
    if not isinstance(value, str):
        return None
    return LEGACY_SURFACES.get(value.strip().replace("_", "").replace(" ", "").lower())


# -------- freeform payload shapes (keyed by interaction behavior) --------

class _StrictPayload(BaseModel):
    model_config = ConfigDict(extra="allow")


class LinkPayload(_StrictPayload):
    link: NonEmptyStr


class BoardItem(BaseModel):
    writer: NonEmptyStr
    text: NonEmptyStr
    color: NonEmptyStr


class BoardData(BaseModel):
    title: StrictStr
    description: StrictStr
    items: List[BoardItem]


class BoardPayload(_StrictPayload):
    data: BoardData


_PAYLOAD_MODELS = {
    InteractionBehavior.LINK.value: LinkPayload,
    InteractionBehavior.BOARD.value: BoardPayload,
}


def _first_error(exc: PydanticValidationError, prefix: str) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    where = f"{prefix}.{loc}" if loc else prefix
    return f"{where}: {err.get('msg', 'invalid value')}"


def validate_freeform_payload(behavior: Optional[str], payload: Any) -> Dict[str, Any]:
    """
    Checks `payload` against the shape its interaction behavior requires and returns a clean copy.
    The reserved provenance key is carried through untouched and never counts toward the shape.
    Raises ValidationError naming the offending field.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("additionalData must be an object")

    provenance = payload.get(PROVENANCE_KEY)
    body = {k: v for k, v in payload.items() if k != PROVENANCE_KEY}

    if behavior is None:
        if body:
            raise ValidationError("additionalData must be empty when itemFunction is null")
    elif behavior == InteractionBehavior.GALLERY.value:
        pass
    elif behavior in _PAYLOAD_MODELS:
        try:
            _PAYLOAD_MODELS[behavior].model_validate(body)
        except PydanticValidationError as e:
            raise ValidationError(_first_error(e, "additionalData")) from e
    else:
        raise ValidationError(f"itemFunction must be one of Gallery, Link, Board or null, got '{behavior}'")

    clean = copy.deepcopy(body)
    if provenance is not None:
        clean[PROVENANCE_KEY] = copy.deepcopy(provenance)
    return clean


# -------- request bodies --------

class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Coordinates(BaseModel):
    x: float
    y: float


class SignupRequest(CamelModel):
    email: NonEmptyStr
    password: PasswordStr
    name: Optional[str] = None

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, v):
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(CamelModel):
    email: NonEmptyStr
    password: PasswordStr


class InvitationRequest(CamelModel):
    invitation: Optional[str] = Field(None, max_length=1000)


class ThemeMusicRequest(CamelModel):
    theme_id: int = Field(..., alias="themeId")


class OnboardingResponseItem(BaseModel):
    question: NonEmptyStr
    answer: NonEmptyStr


class AnalyzeRequest(BaseModel):
    responses: List[OnboardingResponseItem]


class ContentRequest(BaseModel):
    content: NonEmptyStr


class AddToInventoryRequest(CamelModel):
    object_id: NonEmptyStr = Field(..., alias="objectId")


class PresetVariantRequest(CamelModel):
    name: NonEmptyStr
    color: NonEmptyStr
    image_data: NonEmptyStr = Field(..., alias="imageData")


class PresetCreateRequest(CamelModel):
    name: NonEmptyStr
    description: Optional[str] = None
    placement_surface: PlacementSurface = Field(..., alias="onType")
    image_variants: List[PresetVariantRequest] = Field(..., alias="imageSets", min_length=1)


class ImageVariantBody(BaseModel):
    name: NonEmptyStr
    color: NonEmptyStr
    src: NonEmptyStr


class PresetUpdateRequest(CamelModel):
    name: Optional[NonEmptyStr] = None
    description: Optional[str] = None
    placement_surface: Optional[PlacementSurface] = Field(None, alias="onType")
    current_variant_id: Optional[str] = Field(None, alias="currentImageSetId")
    image_variants: Optional[List[ImageVariantBody]] = Field(None, alias="imageSets", min_length=1)


class ModifiedCreateRequest(CamelModel):
    name: NonEmptyStr
    original_object_id: NonEmptyStr = Field(..., alias="originalObjectId")
    current_variant_id: NonEmptyStr = Field(..., alias="currentImageSetId")
    interaction_behavior: Optional[InteractionBehavior] = Field(..., alias="itemFunction")
    coordinates: Coordinates
    placement_surface: Optional[PlacementSurface] = Field(None, alias="onType")
    description: Optional[str] = None
    is_reversed: bool = Field(False, alias="isReversed")
    freeform_payload: Optional[Dict[str, Any]] = Field(None, alias="additionalData")

    @field_validator("placement_surface", mode="before")
    @classmethod
    def _legacy_surface(cls, v):
        return normalize_surface(v) or v if v is not None else v


class ModifiedUpdateRequest(CamelModel):
    name: Optional[NonEmptyStr] = None
    description: Optional[str] = None
    current_variant_id: Optional[NonEmptyStr] = Field(None, alias="currentImageSetId")
    interaction_behavior: Optional[InteractionBehavior] = Field(None, alias="itemFunction")
    coordinates: Optional[Coordinates] = None
    placement_surface: Optional[PlacementSurface] = Field(None, alias="onType")
    is_reversed: Optional[bool] = Field(None, alias="isReversed")
    freeform_payload: Optional[Dict[str, Any]] = Field(None, alias="additionalData")
    image_variants: Optional[List[Any]] = Field(None, alias="imageSets")

    @field_validator("placement_surface", mode="before")
    @classmethod
    def _legacy_surface(cls, v):
        return normalize_surface(v) or v if v is not None else v


class CaptureRequest(BaseModel):
    captured_image_data: NonEmptyStr
    metadata: Optional[Dict[str, Any]] = None
