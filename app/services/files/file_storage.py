import asyncio
import uuid
from pathlib import PurePosixPath
from typing import Protocol

from firebase_admin import storage

from app.core.config import config
from app.core.logging import get_logger
from app.services.auction.exceptions import StorageUnavailable, ValidationError

logger = get_logger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


def validate_image(data: bytes, content_type: str | None) -> None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("file", "Only JPEG, PNG, WebP and GIF images are allowed.")
    if not data:
        raise ValidationError("file", "The uploaded file is empty.")
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError("file", "Images must be 5 MB or smaller.")


def image_path(filename: str | None) -> str:
    suffix = PurePosixPath(filename or "").suffix.lower()
    return f"listings/{uuid.uuid4().hex}{suffix}"


class ImageStorage(Protocol):
    async def upload(
        self, data: bytes, filename: str | None, content_type: str | None
    ) -> str:
        ...


class FirebaseImageStorage:
    """Stores listing images in the Firebase Storage bucket, returns public urls."""

    def _upload_sync(self, path: str, data: bytes, content_type: str) -> str:
        bucket = storage.bucket(config.firebase_storage_bucket)
        blob = bucket.blob(path)
        blob.upload_from_string(data, content_type=content_type)
        blob.make_public()
        return blob.public_url

    async def upload(
        self, data: bytes, filename: str | None, content_type: str | None
    ) -> str:
        validate_image(data, content_type)
        path = image_path(filename)
        try:
            url = await asyncio.to_thread(self._upload_sync, path, data, content_type)
        except Exception as error:
            logger.error("image_upload_failed", path=path, error=str(error))
            raise StorageUnavailable("upload_listing_image") from error

        logger.info("image_uploaded", path=path, size=len(data))
        return url
