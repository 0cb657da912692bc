"""Remote image hosting client."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from errors import RemoteStoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredImage:
    """Result of a completed upload."""

    url: str
    public_id: str | None = None


class ImageStore(Protocol):
    def store(self, data: bytes, folder: str) -> StoredImage:
        ...


class CloudinaryImageStore:
    """Upload encoded images to Cloudinary and return their secure URLs.

    Credentials are applied to the SDK's global configuration once, when the
    store is constructed at application startup. Every :meth:`store` call
    creates a new remote object; nothing is overwritten or deleted.
    """

    def __init__(
        self,
        *,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        upload: Callable[..., dict[str, Any]] | None = None,
    ) -> None:
        self._enabled = bool(cloud_name and api_key and api_secret)
        if self._enabled:
            cloudinary.config(
                cloud_name=cloud_name,
                api_key=api_key,
                api_secret=api_secret,
                secure=True,
            )
        self._upload = upload

    @property
    def enabled(self) -> bool:
        return self._enabled

    def store(self, data: bytes, folder: str) -> StoredImage:
        if not self._enabled:
            raise RemoteStoreError("Image storage is not configured")
        upload = self._upload or cloudinary.uploader.upload
        try:
            result = upload(
                io.BytesIO(data),
                folder=folder,
                resource_type="image",
                format="webp",
            )
        except (cloudinary.exceptions.Error, OSError) as exc:
            raise RemoteStoreError(str(exc) or RemoteStoreError.message) from exc

        url = result.get("secure_url") if isinstance(result, dict) else None
        if not url:
            raise RemoteStoreError("Image upload returned no URL")
        public_id = result.get("public_id")
        logger.info("Uploaded image to folder %s as %s", folder, public_id or url)
        return StoredImage(url=url, public_id=public_id)


__all__ = ["CloudinaryImageStore", "ImageStore", "StoredImage"]
