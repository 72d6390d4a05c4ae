import logging
from typing import Dict, Tuple

from museum.config import Settings
from museum.errors import StoreError
from museum.GCConnection_hlpr import GCConnection

logger = logging.getLogger("museum_backend")


class ObjectStorage:
    """
    upload_from_buffer(data, path, mime_type) -> public url
    """

    def upload_from_buffer(self, data: bytes, path: str, mime_type: str) -> str:
        raise NotImplementedError


class GcsStorage(ObjectStorage):
    def __init__(self, bucket_name: str, connection: GCConnection):
        self.bucket_name = bucket_name
        self.connection = connection

    def upload_from_buffer(self, data: bytes, path: str, mime_type: str) -> str:
        try:
            _, https_url = self.connection.upload_to_gcs(self.bucket_name, path, data, content_type=mime_type)
        except Exception as e:
            logger.error(f"[STORAGE] GCS upload failed for {path}: {e}")
            raise StoreError(f"Upload failed for {path}: {e}") from e
        logger.debug(f"[STORAGE] uploaded {len(data)} bytes to {https_url}")
        return https_url


class MockStorage(ObjectStorage):
    """
    Keeps uploads in memory and hands back `base_url/path`.
    """

    def __init__(self, base_url: str = "http://localhost:8000/storage"):
        self.base_url = base_url.rstrip("/")
        self.uploads: Dict[str, Tuple[bytes, str]] = {}

    def upload_from_buffer(self, data: bytes, path: str, mime_type: str) -> str:
        self.uploads[path] = (data, mime_type)
        url = f"{self.base_url}/{path}"
        logger.info(f"[STORAGE] (mock) stored {len(data)} bytes at {url}")
        return url


def build_storage(settings: Settings, connection: GCConnection | None = None) -> ObjectStorage:
    if settings.resolved_storage_type == "gcs":
        return GcsStorage(settings.gcs_bucket_name, connection or GCConnection(settings))
    return MockStorage(settings.storage_base_url)
