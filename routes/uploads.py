"""Validation and ingestion steps shared by the avatar and game-image routes."""

from __future__ import annotations

import logging
from typing import Any, Callable, Collection

from werkzeug.datastructures import FileStorage

from errors import PayloadTooLargeError, ValidationError

logger = logging.getLogger(__name__)

UNSUPPORTED_TYPE_MESSAGE = "Only JPEG/JPG/PNG/WEBP allowed"


def has_upload(file: FileStorage | None) -> bool:
    return file is not None and bool(file.filename)


def read_upload(
    file: FileStorage | None,
    *,
    max_bytes: int,
    allowed_mime_types: Collection[str],
) -> bytes | None:
    """Return the uploaded bytes, or ``None`` when no file was attached.

    Size is checked before the MIME type so an oversize file is always
    reported as 413.
    """
    if not has_upload(file):
        return None
    data = file.stream.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise PayloadTooLargeError()
    if file.mimetype not in allowed_mime_types:
        raise ValidationError(UNSUPPORTED_TYPE_MESSAGE)
    return data


def ingest_image(
    data: bytes,
    folder: str,
    *,
    normalize: Callable[[bytes], bytes],
    image_store: Any,
) -> str:
    """Normalize ``data``, upload it to ``folder`` and return the public URL."""

    normalized = normalize(data)
    stored = image_store.store(normalized, folder)
    logger.info("Stored %d-byte image in %s: %s", len(normalized), folder, stored.url)
    return stored.url


__all__ = ["UNSUPPORTED_TYPE_MESSAGE", "has_upload", "ingest_image", "read_upload"]
