import base64
import binascii
import re
from typing import Tuple

import httpx

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?;base64,(?P<data>.+)$", re.DOTALL)


class ImageConverter:
    """
    Turns image payloads (http(s) URL, data URI or bare base64) into (bytes, mime_type).
    Raises ValueError when the payload cannot be decoded or downloaded.
    """

    def __init__(self, http_client: httpx.Client | None = None, timeout: float = 30.0):
        self._http_client = http_client
        self._timeout = timeout

    def url_to_bytes(self, url: str) -> Tuple[bytes, str]:
        try:
            if self._http_client is not None:
                resp = self._http_client.get(url)
            else:
                resp = httpx.get(url, timeout=self._timeout, follow_redirects=True)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise ValueError(f"Failed to download image from URL: {e}") from e
        mime_type = resp.headers.get("content-type", "image/png").split(";")[0].strip() or "image/png"
        return resp.content, mime_type

    @staticmethod
    def base64_to_bytes(data: str) -> Tuple[bytes, str]:
        mime_type = "image/png"
        payload = data.strip()
        match = _DATA_URI.match(payload)
        if match:
            mime_type = match.group("mime") or mime_type
            payload = match.group("data")
        payload = re.sub(r"\s+", "", payload)
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 image data: {e}") from e
        if not raw:
            raise ValueError("Image data is empty")
        return raw, mime_type

    def to_bytes(self, data: str) -> Tuple[bytes, str]:
        if data.startswith("http://") or data.startswith("https://"):
            return self.url_to_bytes(data)
        return self.base64_to_bytes(data)

    @staticmethod
    def extension_for(mime_type: str) -> str:
        ext = (mime_type.split("/")[-1] or "png").lower()
        return "jpg" if ext == "jpeg" else ext
