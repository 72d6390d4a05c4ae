import logging
from typing import Any, Callable, Dict, List
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from museum.entities import CatalogObject, User, UserObject
from museum.errors import ForbiddenError, GenerationError, NotFoundError, StoreError, ValidationError
from museum.image_client import ImageGenerator
from museum.image_converter import ImageConverter
from museum.llm_client import TextGenerator
from museum.object_prompts import FOLLOW_UP_QUESTION_PROMPT, OBJECT_IMAGE_PROMPT, OBJECT_METADATA_PROMPT
from museum.schemas import PresetCreateRequest, normalize_surface
from museum.storage import ObjectStorage
from museum.utils import Utils

logger = logging.getLogger("museum_backend")

FOLLOW_UP_TEMPERATURE = 0.7
METADATA_TEMPERATURE = 0.7
IMAGE_SIZE = "1024x1024"
DEFAULT_VARIANT_NAME = "Default"
DEFAULT_VARIANT_COLOR = "#FFFFFF"
REQUIRED_METADATA_FIELDS = ("name", "description", "onType", "visual_prompt")


def _new_variant_id() -> str:
    return uuid4().hex


class ObjectService(Utils):
    """
    Catalog objects: AI creation from a user's story, personal inventory, and the preset
    catalog administered by admins.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        text_generator: TextGenerator,
        image_generator: ImageGenerator,
        storage: ObjectStorage,
        image_converter: ImageConverter | None = None,
    ):
        self.SessionFactory = session_factory
        self.text_generator = text_generator
        self.image_generator = image_generator
        self.storage = storage
        self.image_converter = image_converter or ImageConverter()

    # -----------------------
    # AI creation
    # -----------------------

    def generate_follow_up_question(self, content: str) -> str:
        prompt = self.unsafe_string_format(FOLLOW_UP_QUESTION_PROMPT, CONTENT=content)
        return self.text_generator.generate_text(prompt, temperature=FOLLOW_UP_TEMPERATURE).strip()

    def _generate_metadata(self, content: str) -> Dict[str, Any]:
        prompt = self.unsafe_string_format(OBJECT_METADATA_PROMPT, CONTENT=content)
        raw = self.text_generator.generate_text(prompt, temperature=METADATA_TEMPERATURE)
        metadata = self.extract_last_json_object(raw)
        if metadata is None:
            logger.error(f"[OBJECT] no JSON object in metadata response: {raw[:500]}")
            raise GenerationError("Metadata response did not contain JSON")

        missing = [k for k in REQUIRED_METADATA_FIELDS if not self.coerce_field_to_str(metadata.get(k))]
        if missing:
            logger.error(f"[OBJECT] metadata missing fields {missing}: {metadata}")
            raise GenerationError(f"Metadata is missing fields: {', '.join(missing)}")

        surface = normalize_surface(metadata.get("onType"))
        if surface is None:
            raise GenerationError(f"Metadata has an unknown placement surface: {metadata.get('onType')}")
        metadata["onType"] = surface
        return metadata

    def _render_image(self, visual_prompt: str) -> tuple[bytes, str]:
        prompt = self.unsafe_string_format(OBJECT_IMAGE_PROMPT, VISUAL_PROMPT=visual_prompt)
        outputs = self.image_generator.generate_image(prompt, size=IMAGE_SIZE, count=1)
        data = next((o.data for o in outputs or [] if o.data), None)
        if not data:
            raise GenerationError("Image generation returned no image")
        try:
            return self.image_converter.to_bytes(data)
        except ValueError as e:
            raise GenerationError(f"Generated image could not be decoded: {e}") from e

    def create_from_text(self, content: str, user_id: str) -> dict:
        """
        Story -> metadata -> image -> upload -> user-made CatalogObject.
        The new object is not put in the user's inventory; that is add_to_inventory's job.
        """
        metadata = self._generate_metadata(content)
        image_bytes, mime_type = self._render_image(self.coerce_field_to_str(metadata["visual_prompt"]))

        path = f"objects/{user_id}/{uuid4().hex}.{ImageConverter.extension_for(mime_type)}"
        image_url = self.storage.upload_from_buffer(image_bytes, path, mime_type)

        color = self.coerce_field_to_str(metadata.get("color")) or DEFAULT_VARIANT_COLOR
        variant = {"id": _new_variant_id(), "name": DEFAULT_VARIANT_NAME, "color": color, "src": image_url}

        session = self.SessionFactory()
        try:
            obj = CatalogObject(
                name=self.coerce_field_to_str(metadata["name"]),
                description=self.coerce_field_to_str(metadata["description"]),
                current_image_variant=dict(variant),
                image_variants=[variant],
                is_user_made=True,
                placement_surface=metadata["onType"],
            )
            session.add(obj)
            session.commit()
            self.color_print(f"[OBJECT] user {user_id} generated object {obj.id} ({obj.name})", color="green")
            return obj.to_dict()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not save generated object: {e}") from e
        finally:
            session.close()

    # -----------------------
    # Inventory
    # -----------------------

    def add_to_inventory(self, object_id: str, user_id: str) -> dict:
        session = self.SessionFactory()
        try:
            self.get_user_or_raise(session, user_id)
            obj = session.get(CatalogObject, object_id)
            if obj is None:
                raise NotFoundError("Object not found")
            if not obj.is_user_made:
                raise ValidationError("Preset objects cannot be added to the inventory")
            if object_id in self.object_ids_for(session, user_id):
                raise ValidationError("Object is already in inventory")

            session.add(UserObject(user_id=user_id, object_id=object_id))
            session.execute(
                update(User).where(User.id == user_id).values(question_index=User.question_index + 1)
            )
            session.commit()
            question_index = session.execute(select(User.question_index).where(User.id == user_id)).scalar_one()
            return {
                "message": "Object added to inventory",
                "objectId": object_id,
                "questionIndex": question_index,
            }
        except IntegrityError as e:
            session.rollback()
            raise ValidationError("Object is already in inventory") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not add object to inventory: {e}") from e
        finally:
            session.close()

    def list_user_objects(self, user_id: str) -> List[dict]:
        session = self.SessionFactory()
        try:
            self.get_user_or_raise(session, user_id)
            ids = self.object_ids_for(session, user_id)
            if not ids:
                return []
            objects = session.execute(
                select(CatalogObject)
                .where(CatalogObject.id.in_(ids), CatalogObject.is_user_made.is_(True))
                .order_by(CatalogObject.created_at.desc(), CatalogObject.id)
            ).scalars().all()
            return [o.to_dict() for o in objects]
        finally:
            session.close()

    def list_preset_objects(self) -> List[dict]:
        session = self.SessionFactory()
        try:
            objects = session.execute(
                select(CatalogObject)
                .where(CatalogObject.is_user_made.is_(False))
                .order_by(CatalogObject.created_at.desc(), CatalogObject.id)
            ).scalars().all()
            return [o.to_dict() for o in objects]
        finally:
            session.close()

    # -----------------------
    # Preset catalog (admin)
    # -----------------------

    def create_preset_object(self, body: PresetCreateRequest) -> dict:
        object_key = uuid4().hex
        variants = []
        for index, v in enumerate(body.image_variants):
            try:
                data, mime_type = self.image_converter.to_bytes(v.image_data)
            except ValueError as e:
                raise ValidationError(f"imageSets.{index}.imageData: {e}") from e
            path = f"presets/{object_key}/{index}.{ImageConverter.extension_for(mime_type)}"
            url = self.storage.upload_from_buffer(data, path, mime_type)
            variants.append({"id": _new_variant_id(), "name": v.name, "color": v.color, "src": url})

        session = self.SessionFactory()
        try:
            obj = CatalogObject(
                name=body.name,
                description=body.description,
                current_image_variant=dict(variants[0]),
                image_variants=variants,
                is_user_made=False,
                placement_surface=body.placement_surface.value,
            )
            session.add(obj)
            session.commit()
            logger.info(f"[OBJECT] preset {obj.id} created with {len(variants)} image sets")
            return obj.to_dict()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not save preset object: {e}") from e
        finally:
            session.close()

    def _load_preset(self, session: Session, object_id: str) -> CatalogObject:
        obj = session.get(CatalogObject, object_id)
        if obj is None:
            raise NotFoundError("Object not found")
        if obj.is_user_made:
            raise ForbiddenError("User-made objects cannot be changed from the preset catalog")
        return obj

    def update_preset_object(self, object_id: str, changes: Dict[str, Any]) -> dict:
        if not changes:
            raise ValidationError("Request body cannot be empty")
        session = self.SessionFactory()
        try:
            obj = self._load_preset(session, object_id)
            if changes.get("name") is not None:
                obj.name = changes["name"]
            if "description" in changes:
                obj.description = changes["description"]
            if changes.get("placement_surface") is not None:
                surface = changes["placement_surface"]
                obj.placement_surface = getattr(surface, "value", surface)

            variants = list(obj.image_variants or [])
            if changes.get("image_variants") is not None:
                variants = [
                    {"id": _new_variant_id(), "name": v["name"], "color": v["color"], "src": v["src"]}
                    for v in changes["image_variants"]
                ]
                obj.image_variants = variants
                obj.current_image_variant = dict(variants[0])
            if changes.get("current_variant_id") is not None:
                selected = next((v for v in variants if v.get("id") == changes["current_variant_id"]), None)
                if selected is None:
                    raise ValidationError("currentImageSetId does not belong to this object")
                obj.current_image_variant = dict(selected)

            session.commit()
            return obj.to_dict()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not update preset object: {e}") from e
        finally:
            session.close()

    def delete_preset_object(self, object_id: str) -> None:
        session = self.SessionFactory()
        try:
            obj = self._load_preset(session, object_id)
            session.delete(obj)
            session.commit()
            logger.info(f"[OBJECT] preset {object_id} deleted")
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not delete preset object: {e}") from e
        finally:
            session.close()
