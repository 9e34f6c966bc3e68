"""Receipt image helpers.

The AI services accept a small set of image formats and need the MIME
type alongside the bytes.  Donors upload whatever their phone produces,
so the bytes are sniffed with Pillow rather than trusting the storage
``Content-Type``.  Formats the models do not take (TIFF, BMP, MPO and
so on) are re-encoded as JPEG with EXIF orientation applied.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError


logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"

SUPPORTED_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


def _clean_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    mime = content_type.split(";", 1)[0].strip().lower()
    return mime if mime.startswith("image/") else None


def prepare_receipt_image(data: bytes, content_type: Optional[str] = None) -> Tuple[bytes, str]:
    """Return ``(bytes, mime_type)`` ready to send to the extraction model.

    When Pillow cannot identify the data it is passed through unchanged
    with the MIME type from ``content_type`` or ``image/jpeg``.
    """
    fallback = _clean_content_type(content_type) or DEFAULT_MIME_TYPE
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = (img.format or "").upper()
            if fmt in SUPPORTED_FORMATS:
                return data, SUPPORTED_FORMATS[fmt]
            logger.info("re-encoding receipt image format=%s as JPEG", fmt or "unknown")
            converted = ImageOps.exif_transpose(img).convert("RGB")
            out = BytesIO()
            converted.save(out, format="JPEG", quality=90)
            return out.getvalue(), DEFAULT_MIME_TYPE
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("could not identify receipt image (%s); using %s", exc, fallback)
        return data, fallback
