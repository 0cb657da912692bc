"""Image normalization for avatars and game artwork."""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from config import IMAGE_QUALITY, IMAGE_SIZE
from errors import ImageDecodeError

logger = logging.getLogger(__name__)

ACCEPTED_FORMATS = frozenset({"JPEG", "PNG", "WEBP"})

try:  # Pillow >= 9.1
    _RESAMPLE_LANCZOS = Image.Resampling.LANCZOS  # type: ignore[attr-defined]
except AttributeError:  # pragma: no cover - fallback for older Pillow
    _RESAMPLE_LANCZOS = Image.LANCZOS


def open_image_auto_rotate(raw: bytes) -> Image.Image:
    """Decode ``raw`` and apply its EXIF orientation.

    Raises :class:`ImageDecodeError` when the bytes are not a JPEG, PNG or
    WEBP image Pillow can fully decode.
    """
    try:
        img = Image.open(io.BytesIO(raw))
        if img.format not in ACCEPTED_FORMATS:
            raise ImageDecodeError(f"Unsupported image format: {img.format}")
        img.load()
        return ImageOps.exif_transpose(img)
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as exc:
        raise ImageDecodeError() from exc


def _webp_compatible(img: Image.Image) -> Image.Image:
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info):
        return img.convert("RGBA")
    return img.convert("RGB")


def normalize_image(
    raw: bytes,
    *,
    size: int = IMAGE_SIZE,
    quality: int = IMAGE_QUALITY,
) -> bytes:
    """Return ``raw`` cropped to a ``size`` x ``size`` square and encoded as WEBP.

    The crop is a centred "cover" fit: the image is scaled until both sides
    reach ``size`` and the overflow is trimmed, so there is never
    letterboxing.
    """
    img = _webp_compatible(open_image_auto_rotate(raw))
    fitted = ImageOps.fit(img, (size, size), method=_RESAMPLE_LANCZOS, centering=(0.5, 0.5))
    buf = io.BytesIO()
    fitted.save(buf, format="WEBP", quality=quality)
    data = buf.getvalue()
    logger.debug(
        "Normalized %dx%d %s image to %dx%d WEBP (%d bytes)",
        img.width, img.height, img.mode, size, size, len(data),
    )
    return data


__all__ = ["ACCEPTED_FORMATS", "normalize_image", "open_image_auto_rotate"]
