"""
Image payloads for vision-capable providers.
"""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

SUPPORTED_MIME_TYPES = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
}
DEFAULT_MAX_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class ImagePayload:
    """Base64 encoded image and its mime type."""

    data: str
    mime_type: str

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


def load_image_payload(
    path: Optional[str],
    mime_type: str,
    max_edge: int = 1024,
    max_bytes: int = DEFAULT_MAX_BYTES,
    logger: Optional[logging.Logger] = None,
) -> Optional[ImagePayload]:
    """Read, downscale and encode an image; returns None when it cannot be sent."""
    logger = logger or logging.getLogger("media_organizer")
    mime = (mime_type or "").lower()
    if not path or mime not in SUPPORTED_MIME_TYPES:
        return None
    file_path = Path(path)
    try:
        size = file_path.stat().st_size
    except OSError:
        return None
    if size > max_bytes:
        logger.info("Image too large to send (%s bytes): %s", size, file_path)
        return None
    image_format = SUPPORTED_MIME_TYPES[mime]
    try:
        with Image.open(file_path) as image:
            if max(image.size) > max_edge:
                image = image.copy()
                image.thumbnail((max_edge, max_edge))
            if image_format == "JPEG" and image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            buffer = io.BytesIO()
            image.save(buffer, format=image_format)
    except (OSError, UnidentifiedImageError, ValueError) as exc:
        logger.warning("Could not load image %s: %s", file_path, exc)
        return None
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return ImagePayload(data=encoded, mime_type="image/jpeg" if mime == "image/jpg" else mime)
