"""Upload validation — title, MIME type, size and image integrity.

Runs before anything is written to storage so a rejected upload leaves
no blob behind.
"""

from __future__ import annotations

import io
from dataclasses import dataclass

import structlog
from PIL import Image

from furnicraft.errors import ValidationError

logger = structlog.get_logger()

_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "WEBP": "webp",
    "GIF": "gif",
    "BMP": "bmp",
    "TIFF": "tiff",
}


@dataclass(frozen=True)
class ImageUpload:
    """A validated image payload ready for storage and analysis."""

    data: bytes
    content_type: str
    filename: str
    extension: str
    width: int
    height: int


def validate_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Title is required")
    return cleaned


def validate_image(
    data: bytes,
    content_type: str | None,
    filename: str | None,
    *,
    max_bytes: int,
) -> ImageUpload:
    """Check MIME prefix, size and decodability; return the upload descriptor."""
    mime = (content_type or "").split(";")[0].strip().lower()
    if not mime.startswith("image/"):
        raise ValidationError(f"File must be an image (got {mime or 'unknown type'})")
    if not data:
        raise ValidationError("File is empty")
    if len(data) > max_bytes:
        raise ValidationError(
            f"File is too large ({len(data)} bytes). Maximum {max_bytes} bytes."
        )

    try:
        img = Image.open(io.BytesIO(data))
        img.load()  # Force full decode to catch truncated files
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("upload_image_decode_failed", content_type=mime, error=str(exc))
        raise ValidationError("Could not open image. Please upload a valid JPEG or PNG.") from exc

    extension = _EXTENSIONS.get((img.format or "").upper())
    if extension is None and filename and "." in filename:
        extension = filename.rsplit(".", 1)[1].lower()
    return ImageUpload(
        data=data,
        content_type=mime,
        filename=filename or f"design.{extension or 'bin'}",
        extension=extension or "bin",
        width=img.width,
        height=img.height,
    )
