import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from museum.entities import CatalogObject, ModifiedObject, User, UserModifiedObject
from museum.errors import StoreError, ValidationError
from museum.schemas import PROVENANCE_KEY, validate_freeform_payload
from museum.theme_catalog import ThemeCatalog
from museum.utils import Utils

logger = logging.getLogger("museum_backend")


@dataclass
class ProvisionResult:
    success: bool
    created_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None


class ThemeProvisioner(Utils):
    """
    Turns a theme's default-object templates into ModifiedObjects owned by one user.

    Failures are reported through ProvisionResult, never raised: a theme change must not be
    blocked because seed content is missing. A call is not idempotent; running it twice
    for the same user and theme creates two sets of objects.
    """

    def __init__(self, session_factory: Callable[[], Session], catalog: ThemeCatalog):
        self.SessionFactory = session_factory
        self.catalog = catalog

    def provision_default_objects(self, theme_id: int, user_id: str, session: Session | None = None) -> ProvisionResult:
        """
        With `session` the work joins the caller's transaction and the caller commits.
        Without it, a session is opened and committed here.
        """
        if session is not None:
            return self._provision(session, theme_id, user_id)

        own = self.SessionFactory()
        try:
            result = self._provision(own, theme_id, user_id)
            if result.success:
                own.commit()
            return result
        except SQLAlchemyError as e:
            own.rollback()
            logger.error(f"[PROVISION] store failure for user {user_id}, theme {theme_id}: {e}")
            raise StoreError(f"Provisioning failed: {e}") from e
        finally:
            own.close()

    def _provision(self, session: Session, theme_id: int, user_id: str) -> ProvisionResult:
        config = self.catalog.get(theme_id)
        if config is None:
            return ProvisionResult(success=False, error=f"Invalid theme ID: {theme_id}")
        if not self.catalog.is_ready(theme_id):
            logger.info(f"[PROVISION] theme {theme_id} default objects not configured yet, skipping")
            return ProvisionResult(success=False, error=f"Default objects for theme {theme_id} are not configured")
        if session.get(User, user_id) is None:
            return ProvisionResult(success=False, error="User not found")

        created: List[str] = []
        for index, template in enumerate(config.default_objects):
            original = session.get(CatalogObject, template.original_object_id)
            if original is None:
                logger.warning(
                    f"[PROVISION] original object {template.original_object_id} not found "
                    f"(theme {theme_id}, template {index}), skipping"
                )
                continue
            try:
                payload = validate_freeform_payload(template.interaction_behavior, template.freeform_payload)
            except ValidationError as e:
                logger.warning(f"[PROVISION] template {index} of theme {theme_id} has a bad payload: {e.message}")
                continue

            payload[PROVENANCE_KEY] = {
                "originalObjectId": original.id,
                "userId": user_id,
                "themeId": theme_id,
                "objectIndex": index,
                "isDefaultObject": True,
            }
            obj = ModifiedObject(
                original_object_id=original.id,
                name=original.name,
                description=original.description,
                current_image_variant=self.snapshot_variant(original.current_image_variant),
                image_variants=self.snapshot_variants(original.image_variants),
                is_user_made=False,
                placement_surface=original.placement_surface,
                coordinate_x=template.x,
                coordinate_y=template.y,
                is_reversed=template.is_reversed,
                interaction_behavior=template.interaction_behavior,
                freeform_payload=payload,
            )
            session.add(obj)
            session.flush()
            created.append(obj.id)

        if not created:
            return ProvisionResult(success=False, error=f"No default objects could be created for theme {theme_id}")

        self.append_modified_ids(session, user_id, created)
        self.color_print(f"[PROVISION] created {len(created)} default objects for user {user_id}, theme {theme_id}", color="green")
        return ProvisionResult(success=True, created_ids=created)

    def remove_default_objects(self, session: Session, user_id: str) -> int:
        """
        Deletes the provisioned defaults the user still owns (records and list entries).
        Objects the user placed themselves are left alone.
        """
        owned_ids = self.modified_ids_for(session, user_id)
        if not owned_ids:
            return 0
        objects = session.execute(select(ModifiedObject).where(ModifiedObject.id.in_(owned_ids))).scalars().all()
        default_ids = [o.id for o in objects if o.provenance.get("isDefaultObject")]
        if not default_ids:
            return 0
        session.execute(
            delete(UserModifiedObject).where(
                UserModifiedObject.user_id == user_id,
                UserModifiedObject.modified_object_id.in_(default_ids),
            )
        )
        session.execute(delete(ModifiedObject).where(ModifiedObject.id.in_(default_ids)))
        logger.info(f"[PROVISION] removed {len(default_ids)} previous default objects for user {user_id}")
        return len(default_ids)
