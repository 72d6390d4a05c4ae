import logging
from enum import Enum
from typing import Any, Callable, Dict, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from museum.entities import CatalogObject, ModifiedObject
from museum.errors import ForbiddenError, NotFoundError, StoreError, ValidationError
from museum.schemas import PROVENANCE_KEY, ModifiedCreateRequest, validate_freeform_payload
from museum.utils import Utils

logger = logging.getLogger("museum_backend")


def _enum_value(value):
    return value.value if isinstance(value, Enum) else value


class ModifiedService(Utils):
    """
    Lifecycle of the placed, per-user copies of catalog objects.
    Ownership is membership in the owner's modified-object list.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.SessionFactory = session_factory

    def create(self, owner_id: str, body: ModifiedCreateRequest) -> dict:
        session = self.SessionFactory()
        try:
            self.get_user_or_raise(session, owner_id)
            original = session.get(CatalogObject, body.original_object_id)
            if original is None:
                raise NotFoundError("Original object not found")
            if not original.image_variants:
                raise ValidationError("Original object has no image sets")

            selected = next((v for v in original.image_variants if v.get("id") == body.current_variant_id), None)
            if selected is None:
                raise ValidationError("currentImageSetId does not belong to the original object")

            behavior = _enum_value(body.interaction_behavior)
            payload = dict(body.freeform_payload or {})
            # provenance is written by provisioning only
            payload.pop(PROVENANCE_KEY, None)
            payload = validate_freeform_payload(behavior, payload)

            obj = ModifiedObject(
                original_object_id=original.id,
                name=body.name,
                description=body.description if body.description is not None else original.description,
                current_image_variant=self.snapshot_variant(selected),
                image_variants=self.snapshot_variants(original.image_variants),
                is_user_made=original.is_user_made,
                placement_surface=_enum_value(body.placement_surface) or original.placement_surface,
                coordinate_x=body.coordinates.x,
                coordinate_y=body.coordinates.y,
                is_reversed=body.is_reversed,
                interaction_behavior=behavior,
                freeform_payload=payload,
            )
            session.add(obj)
            session.flush()
            self.append_modified_ids(session, owner_id, [obj.id])
            session.commit()
            logger.info(f"[MODIFIED] user {owner_id} placed {obj.id} (original {original.id})")
            return obj.to_dict()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not create modified object: {e}") from e
        finally:
            session.close()

    def _load_owned(self, session: Session, modified_id: str, caller_id: str) -> ModifiedObject:
        obj = session.get(ModifiedObject, modified_id)
        if obj is None:
            raise NotFoundError("Modified object not found")
        if not self.owns_modified(session, caller_id, modified_id):
            raise ForbiddenError("Forbidden: You don't have permission to modify this object")
        return obj

    def update(self, modified_id: str, caller_id: str, changes: Dict[str, Any]) -> dict:
        """
        `changes` holds only the fields the caller sent (python field names).
        An explicit None for interaction_behavior clears it.
        """
        session = self.SessionFactory()
        try:
            obj = self._load_owned(session, modified_id, caller_id)
            if "image_variants" in changes:
                raise ValidationError("imageSets cannot be modified")
            if not changes:
                raise ValidationError("Request body cannot be empty")

            if "name" in changes and changes["name"] is not None:
                obj.name = changes["name"]
            if "description" in changes:
                obj.description = changes["description"]
            if changes.get("coordinates") is not None:
                coords = changes["coordinates"]
                obj.coordinate_x = float(coords["x"])
                obj.coordinate_y = float(coords["y"])
            if changes.get("is_reversed") is not None:
                obj.is_reversed = bool(changes["is_reversed"])
            if changes.get("placement_surface") is not None:
                obj.placement_surface = _enum_value(changes["placement_surface"])
            if changes.get("current_variant_id") is not None:
                obj.current_image_variant = self._select_snapshot_variant(session, obj, changes["current_variant_id"])

            behavior = obj.interaction_behavior
            if "interaction_behavior" in changes:
                behavior = _enum_value(changes["interaction_behavior"])
            if "interaction_behavior" in changes or "freeform_payload" in changes:
                provenance = (obj.freeform_payload or {}).get(PROVENANCE_KEY)
                if "freeform_payload" in changes:
                    payload = dict(changes["freeform_payload"] or {})
                    payload.pop(PROVENANCE_KEY, None)
                else:
                    payload = {k: v for k, v in (obj.freeform_payload or {}).items() if k != PROVENANCE_KEY}
                payload = validate_freeform_payload(behavior, payload)
                if provenance is not None:
                    payload[PROVENANCE_KEY] = provenance
                obj.interaction_behavior = behavior
                obj.freeform_payload = payload

            session.commit()
            return obj.to_dict()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not update modified object: {e}") from e
        finally:
            session.close()

    def _select_snapshot_variant(self, session: Session, obj: ModifiedObject, variant_id: str) -> dict:
        """
        Variant ids refer to the original catalog object; the chosen variant must also be in
        this record's frozen snapshot.
        """
        original = session.get(CatalogObject, obj.original_object_id) if obj.original_object_id else None
        if original is None:
            raise ValidationError("Original object is no longer available to resolve currentImageSetId")
        selected = next((v for v in original.image_variants if v.get("id") == variant_id), None)
        if selected is None:
            raise ValidationError("currentImageSetId does not belong to the original object")
        snapshot = self.snapshot_variant(selected)
        if snapshot not in (obj.image_variants or []):
            raise ValidationError("currentImageSetId is not part of this object's image sets")
        return snapshot

    def delete(self, modified_id: str, caller_id: str) -> None:
        session = self.SessionFactory()
        try:
            obj = self._load_owned(session, modified_id, caller_id)
            self.remove_modified_id(session, caller_id, modified_id)
            session.delete(obj)
            session.commit()
            logger.info(f"[MODIFIED] user {caller_id} deleted {modified_id}")
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not delete modified object: {e}") from e
        finally:
            session.close()

    def list_for_owner(self, owner_id: str) -> List[dict]:
        session = self.SessionFactory()
        try:
            self.get_user_or_raise(session, owner_id)
            ids = self.modified_ids_for(session, owner_id)
            if not ids:
                return []
            objects = session.execute(
                select(ModifiedObject)
                .where(ModifiedObject.id.in_(ids))
                .order_by(ModifiedObject.created_at.desc(), ModifiedObject.id)
            ).scalars().all()
            return [o.to_dict() for o in objects]
        finally:
            session.close()
