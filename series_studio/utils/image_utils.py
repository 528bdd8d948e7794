"""
Image Utilities
===============

Helpers for ``data:`` URL images and loading uploaded reference images.
"""

import io
import re
import base64
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import aiofiles
from PIL import Image, UnidentifiedImageError

from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def get_mime_type(image_path: Union[str, Path]) -> str:
    """Get MIME type from file extension."""
    return MIME_TYPES.get(Path(image_path).suffix.lower(), "image/jpeg")


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('utf-8')}"


def parse_data_url(url: str) -> Tuple[str, str]:
    """
    Split a base64 data URL.

    Returns:
        Tuple of (mime_type, base64_data)

    Raises:
        ValidationError: If the URL is not a base64 data URL
    """
    match = _DATA_URL_RE.match(url or "")
    if not match:
        raise ValidationError(
            "Not a base64 data URL",
            field="url",
            value=(url or "")[:40],
            constraint="data:<mime>;base64,<data>",
        )
    return match.group(1), match.group(2)


def to_inline_part(url: Optional[str]) -> Optional[Dict[str, Dict[str, str]]]:
    """Convert a data URL into a request part, or None if it is malformed."""
    if not url:
        return None
    try:
        mime_type, data = parse_data_url(url)
    except ValidationError:
        return None
    return {"inlineData": {"mimeType": mime_type, "data": data}}


def decode_data_url(url: str) -> bytes:
    _, data = parse_data_url(url)
    return base64.b64decode(data)


def _fit_within(size: Tuple[int, int], max_dimension: int) -> Tuple[int, int]:
    width, height = size
    if width > height:
        return max_dimension, int(height * max_dimension / width)
    return int(width * max_dimension / height), max_dimension


async def load_image_as_data_url(
    image_path: Union[str, Path],
    max_dimension: int = 1536,
    quality: int = 90,
) -> str:
    """
    Read an uploaded image and return it as a data URL.

    Images larger than ``max_dimension`` on either side are downscaled,
    keeping their aspect ratio.

    Args:
        image_path: Path to the image file
        max_dimension: Maximum width or height
        quality: JPEG quality used when re-encoding

    Returns:
        Data URI string (data:image/png;base64,...)
    """
    path = Path(image_path)
    if not path.exists():
        raise ValidationError(f"Image not found: {image_path}", field="image_path", value=str(image_path))

    async with aiofiles.open(path, "rb") as f:
        raw = await f.read()

    mime_type = get_mime_type(path)

    try:
        with Image.open(io.BytesIO(raw)) as img:
            if max(img.size) <= max_dimension:
                return to_data_url(raw, mime_type)

            new_size = _fit_within(img.size, max_dimension)
            logger.info(f"Downscaling {path.name} from {img.size} to {new_size}")
            resized = img.resize(new_size, Image.Resampling.LANCZOS)

            buffer = io.BytesIO()
            if mime_type == "image/jpeg":
                resized.convert("RGB").save(buffer, "JPEG", quality=quality)
            else:
                resized.save(buffer, "PNG")
                mime_type = "image/png"
    except UnidentifiedImageError:
        raise ValidationError(f"Unreadable image file: {path.name}", field="image_path", value=str(image_path))

    return to_data_url(buffer.getvalue(), mime_type)
