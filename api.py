#api.py
from dataclasses import dataclass
from typing import Optional, List

import requests

from config import (
    SESSION,
    CLOUDINARY_UPLOAD_URL,
    CLOUDINARY_UPLOAD_PRESET,
    CLOUDINARY_CLOUD_NAME,
    UPLOAD_TIMEOUT_SECONDS,
)
from logger import get_logger

log = get_logger("api")


@dataclass
class UploadDecodeResult:
    status_code: Optional[int]
    secure_url: Optional[str]
    raw_error: str
    messages: List[str]


def send_upload_request(content: bytes, filename: str, logger=log) -> requests.Response:
    data = {
        "upload_preset": CLOUDINARY_UPLOAD_PRESET,
        "cloud_name": CLOUDINARY_CLOUD_NAME,
    }
    files = {"file": (filename, content)}

    logger.debug(f"Uploading '{filename}' ({len(content)} bytes) to {CLOUDINARY_UPLOAD_URL}")
    resp = SESSION.post(
        CLOUDINARY_UPLOAD_URL,
        data=data,
        files=files,
        timeout=UPLOAD_TIMEOUT_SECONDS,
    )
    logger.debug(f"Upload Response: {resp.status_code} {resp.text[:500]}")
    return resp


def decode_upload_response(resp: requests.Response) -> UploadDecodeResult:
    raw_err = ""
    messages: List[str] = []
    secure_url = None

    try:
        body = resp.json()
        if not isinstance(body, dict):
            raise ValueError(f"expected a JSON object, got {type(body).__name__}")
        secure_url = body.get("secure_url") or body.get("url")
        err = body.get("error") or {}
        raw_err = (err.get("message") if isinstance(err, dict) else str(err)) or ""
    except ValueError as e:
        raw_err = f"Unusable upload response JSON: {e}"

    if resp.status_code >= 400 and not raw_err:
        raw_err = f"HTTP {resp.status_code}"
    if not secure_url and not raw_err:
        raw_err = "Upload response carried no secure_url"

    if raw_err:
        messages.append(raw_err)

    return UploadDecodeResult(resp.status_code, secure_url, raw_err, messages)
