import io
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_H
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from museum.entities import CapturedImage
from museum.errors import StoreError, ValidationError
from museum.image_converter import ImageConverter
from museum.storage import ObjectStorage
from museum.utils import Utils

logger = logging.getLogger("museum_backend")


def render_qr_png(data: str, box_size: int = 12, border: int = 1) -> bytes:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class CaptureService(Utils):
    """
    Stores a screenshot of the user's room and a QR code that points at it.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        storage: ObjectStorage,
        image_converter: ImageConverter | None = None,
    ):
        self.SessionFactory = session_factory
        self.storage = storage
        self.image_converter = image_converter or ImageConverter()

    def capture_and_generate_qr(self, user_id: str, image_data: str, metadata: Optional[Dict[str, Any]] = None) -> dict:
        try:
            image_bytes, mime_type = self.image_converter.base64_to_bytes(image_data)
        except ValueError as e:
            raise ValidationError(f"captured_image_data: {e}") from e

        session = self.SessionFactory()
        try:
            self.get_user_or_raise(session, user_id)
            stamp = int(time.time() * 1000)
            capture_path = f"captures/{user_id}/{stamp}.{ImageConverter.extension_for(mime_type)}"
            capture_url = self.storage.upload_from_buffer(image_bytes, capture_path, mime_type)

            qr_url = self.storage.upload_from_buffer(render_qr_png(capture_url), f"qr/qr_{user_id}_{stamp}.png", "image/png")

            captured_at = datetime.now(timezone.utc)
            session.add(CapturedImage(
                user_id=user_id,
                url=capture_url,
                qr_code_url=qr_url,
                capture_metadata=metadata or {},
                captured_at=captured_at,
            ))
            session.commit()
            logger.info(f"[CAPTURE] user {user_id} capture stored at {capture_url}")
            return {
                "capture_image_url": capture_url,
                "qr_code_url": qr_url,
                "capturedAt": captured_at.isoformat(),
            }
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Could not record capture: {e}") from e
        finally:
            session.close()
