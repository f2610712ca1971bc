"""
Image uploads sent inline as base64 data URLs by the admin screens.
"""

import base64
import binascii
import logging
import os
import re
import secrets
from typing import List

from config import UPLOADS_DIR
from errors import StoreError

MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}
PUBLIC_PREFIX = "/uploads"

_DATA_URL = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)


class UploadError(StoreError):
    status_code = 400


def decode_data_url(data_url: str):
    """Return (extension, bytes) for an allowed image data URL."""
    match = _DATA_URL.match(data_url)
    if not match:
        raise UploadError("Invalid image format")
    extension = ALLOWED_TYPES.get(match.group(1))
    if extension is None:
        raise UploadError("Unsupported image type")
    try:
        content = base64.b64decode(match.group(2).strip(), validate=True)
    except (binascii.Error, ValueError):
        raise UploadError("Invalid image format")
    if not content:
        raise UploadError("Invalid image format")
    if len(content) > MAX_IMAGE_BYTES:
        raise UploadError("Image is too large")
    return extension, content


def save_images(data_urls: List[str], directory: str = UPLOADS_DIR) -> List[str]:
    """Write every image and return their public URLs.

    All images are decoded before the first write, so a bad one in the
    batch leaves nothing behind.
    """
    decoded = [decode_data_url(url) for url in data_urls]
    os.makedirs(directory, exist_ok=True)
    urls = []
    for extension, content in decoded:
        name = f"{secrets.token_hex(16)}.{extension}"
        with open(os.path.join(directory, name), "wb") as f:
            f.write(content)
        urls.append(f"{PUBLIC_PREFIX}/{name}")
    logging.info(f"CATALOGUE: {len(urls)} image(s) enregistree(s) dans {directory}")
    return urls
