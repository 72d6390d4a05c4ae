# museum/entities.py
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()

# JSONB on postgres, plain JSON elsewhere (sqlite in dev/tests)
JsonColumn = JSON().with_variant(JSONB(), "postgresql")
# ids are uuid4 strings in a plain text column, so a malformed id is just a miss
UuidColumn = String(36)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(UuidColumn, primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))

    theme_id: Mapped[int | None] = mapped_column(Integer)
    # {floorColor, leftWallColor, rightWallColor, weather, backgroundMusic: {name, url}}
    theme_state: Mapped[dict] = mapped_column(JsonColumn, nullable=False, default=dict)
    invitation: Mapped[str | None] = mapped_column(Text)

    question_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    onboarding_responses: Mapped[list | None] = mapped_column(JsonColumn)
    ai_analysis: Mapped[dict | None] = mapped_column(JsonColumn)


class CatalogObject(Base, TimestampMixin):
    __tablename__ = "catalog_object"

    id: Mapped[str] = mapped_column(UuidColumn, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    # {id, name, color, src}
    current_image_variant: Mapped[dict] = mapped_column(JsonColumn, nullable=False)
    image_variants: Mapped[list] = mapped_column(JsonColumn, nullable=False, default=list)
    is_user_made: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    placement_surface: Mapped[str] = mapped_column(String(16), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "currentImageSet": self.current_image_variant,
            "imageSets": self.image_variants,
            "isUserMade": self.is_user_made,
            "onType": self.placement_surface,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


class ModifiedObject(Base, TimestampMixin):
    __tablename__ = "modified_object"

    id: Mapped[str] = mapped_column(UuidColumn, primary_key=True, default=_new_id)
    original_object_id: Mapped[str | None] = mapped_column(String(36))
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    # snapshot of the original's variants, identifiers stripped: {name, color, src}
    current_image_variant: Mapped[dict] = mapped_column(JsonColumn, nullable=False)
    image_variants: Mapped[list] = mapped_column(JsonColumn, nullable=False, default=list)
    is_user_made: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    placement_surface: Mapped[str] = mapped_column(String(16), nullable=False)

    coordinate_x: Mapped[float] = mapped_column(Float, nullable=False)
    coordinate_y: Mapped[float] = mapped_column(Float, nullable=False)
    is_reversed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    interaction_behavior: Mapped[str | None] = mapped_column(String(16))
    freeform_payload: Mapped[dict] = mapped_column(JsonColumn, nullable=False, default=dict)

    @property
    def provenance(self) -> dict:
        return (self.freeform_payload or {}).get("provenance") or {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "originalObjectId": self.original_object_id,
            "name": self.name,
            "description": self.description,
            "currentImageSet": self.current_image_variant,
            "imageSets": self.image_variants,
            "isUserMade": self.is_user_made,
            "onType": self.placement_surface,
            "coordinates": {"x": self.coordinate_x, "y": self.coordinate_y},
            "isReversed": self.is_reversed,
            "itemFunction": self.interaction_behavior,
            "additionalData": self.freeform_payload or {},
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


# Ordered membership lists: a row per (user, id). Appends and removals are
# single INSERT/DELETE statements, so concurrent writers never lose entries.

class UserObject(Base):
    __tablename__ = "user_object"
    __table_args__ = (UniqueConstraint("user_id", "object_id", name="uq_user_object"),)

    position: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(UuidColumn, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    object_id: Mapped[str] = mapped_column(UuidColumn, nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class UserModifiedObject(Base):
    __tablename__ = "user_modified_object"
    __table_args__ = (UniqueConstraint("user_id", "modified_object_id", name="uq_user_modified_object"),)

    position: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(UuidColumn, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    modified_object_id: Mapped[str] = mapped_column(UuidColumn, nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class CapturedImage(Base):
    __tablename__ = "captured_image"

    id: Mapped[str] = mapped_column(UuidColumn, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(UuidColumn, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    qr_code_url: Mapped[str | None] = mapped_column(Text)
    capture_metadata: Mapped[dict] = mapped_column(JsonColumn, nullable=False, default=dict)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
