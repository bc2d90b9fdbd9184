# services/storage.py
import uuid
from typing import Dict, Optional, Tuple

import requests

from api import send_upload_request, decode_upload_response
from config import STORAGE_BACKEND, CLOUDINARY_CLOUD_NAME, CLOUDINARY_UPLOAD_PRESET
from exceptions import UploadFailure
from logger import get_logger

log = get_logger("storage")


class CloudinaryStorage:
    """Unsigned preset upload; returns the secure_url Cloudinary hands back."""

    name = "cloudinary"

    def store(self, content: bytes, filename: str) -> str:
        try:
            resp = send_upload_request(content, filename, logger=log)
        except requests.Timeout as e:
            log.error(f"Upload of {filename} timed out: {e}")
            raise UploadFailure(filename, f"timed out: {e}") from e
        except requests.RequestException as e:
            log.error(f"Upload of {filename} failed: {e}")
            raise UploadFailure(filename, str(e)) from e

        out = decode_upload_response(resp)
        if out.raw_error or not out.secure_url:
            log.error(f"Upload of {filename} rejected: status={out.status_code} {out.raw_error}")
            raise UploadFailure(
                filename,
                out.raw_error,
                http_status=out.status_code,
                raw_response_text=resp.text,
            )

        log.info(f"Uploaded {filename} -> {out.secure_url}")
        return out.secure_url


class MemoryStorage:
    """
    Keeps ticket bytes in process and hands out memory:// URLs.
    Selected explicitly (STORAGE_BACKEND=memory) when no storage credentials exist.
    """

    name = "memory"

    def __init__(self):
        self.blobs: Dict[str, Tuple[str, bytes]] = {}

    def store(self, content: bytes, filename: str) -> str:
        url = f"memory://tickets/{uuid.uuid4().hex}/{filename}"
        self.blobs[url] = (filename, bytes(content))
        log.info(f"Stored {filename} in memory -> {url}")
        return url

    def fetch(self, url: str) -> Optional[bytes]:
        hit = self.blobs.get(url)
        return hit[1] if hit else None


def build_storage(backend: Optional[str] = None):
    backend = (backend or STORAGE_BACKEND or "").strip().lower()

    if backend == "memory":
        return MemoryStorage()

    if backend == "cloudinary":
        if not (CLOUDINARY_CLOUD_NAME and CLOUDINARY_UPLOAD_PRESET):
            raise RuntimeError(
                "STORAGE_BACKEND=cloudinary needs CLOUDINARY_CLOUD_NAME and CLOUDINARY_UPLOAD_PRESET."
            )
        return CloudinaryStorage()

    raise RuntimeError(f"Unknown STORAGE_BACKEND {backend!r} (expected 'memory' or 'cloudinary').")
