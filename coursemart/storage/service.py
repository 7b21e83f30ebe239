"""Course image storage on Firebase Storage.

Images are checked (size, declared type, magic bytes) before anything is sent
to the bucket. The Firebase app and bucket belong to the service instance that
the application builds at startup and hands to CourseService; nothing here is
module-global.
"""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple
from urllib.parse import quote
from uuid import uuid4

import structlog

from coursemart.config.settings import Settings
from coursemart.core.errors import UpstreamError, ValidationError
from coursemart.storage.magic_bytes import MAX_HEADER_BYTES, validate_image_content


if TYPE_CHECKING:
    from google.cloud.storage import Bucket


logger = structlog.get_logger(__name__)


class StorageNotConfiguredError(UpstreamError):
    """Firebase Storage is not configured."""

    def __init__(self, message: str = "Image storage is not configured") -> None:
        super().__init__(message, "storage_not_configured")


class StorageUploadError(UpstreamError):
    """Upload to Firebase failed."""

    def __init__(self, message: str = "Failed to upload image") -> None:
        super().__init__(message, "upload_error")


class FileTooLargeError(ValidationError):
    def __init__(self, size: int, max_size: int) -> None:
        super().__init__(
            f"Image is {size / 1024 / 1024:.2f} MB, "
            f"the limit is {max_size / 1024 / 1024:.2f} MB",
            field="image",
        )


class InvalidImageError(ValidationError):
    """Content type not allowed or content does not match an image."""

    def __init__(self, message: str) -> None:
        super().__init__(message, field="image")


class ImageUpload(NamedTuple):
    """Uploaded image as received from the client."""

    content: bytes
    content_type: str
    filename: str | None = None


IMAGE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


class FirebaseStorageService:
    """Uploads course images and returns their public URLs."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._bucket: Bucket | None = None

    @property
    def is_configured(self) -> bool:
        return self.settings.firebase_configured

    @property
    def max_file_size(self) -> int:
        return self.settings.upload_max_file_size_mb * 1024 * 1024

    @property
    def allowed_types(self) -> frozenset[str]:
        return frozenset(self.settings.upload_allowed_image_types)

    def _open_bucket(self) -> "Bucket":
        """Initialize the Firebase app for this service and return its bucket.

        Raises:
            StorageNotConfiguredError: Settings incomplete, credentials file
                missing, or the SDK refused to initialize.
        """
        if self._bucket is not None:
            return self._bucket
        if not self.is_configured:
            raise StorageNotConfiguredError

        creds_path = Path(self.settings.firebase_credentials_path or "")
        if not creds_path.is_file():
            logger.error("firebase_credentials_missing", path=str(creds_path))
            raise StorageNotConfiguredError

        # Lazy import to avoid loading Firebase SDK unless needed
        import firebase_admin  # noqa: PLC0415
        from firebase_admin import credentials, storage  # noqa: PLC0415

        try:
            app = firebase_admin.initialize_app(
                credentials.Certificate(str(creds_path)),
                {
                    "storageBucket": self.settings.firebase_storage_bucket,
                    "projectId": self.settings.firebase_project_id,
                },
                name=f"coursemart-{uuid4().hex[:8]}",
            )
            self._bucket = storage.bucket(app=app)
        except Exception as e:
            logger.exception("firebase_init_failed", error=str(e))
            raise StorageNotConfiguredError from e

        logger.info(
            "firebase_initialized",
            project_id=self.settings.firebase_project_id,
            bucket=self.settings.firebase_storage_bucket,
        )
        return self._bucket

    def object_path(self, course_id: str, content_type: str, filename: str | None) -> str:
        """coursemart/courses/{course_id}_{timestamp}{ext}"""
        ext = IMAGE_EXTENSIONS.get(content_type) or (
            Path(filename).suffix.lower() if filename else ""
        )
        stamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
        return f"coursemart/courses/{course_id}_{stamp}{ext}"

    def public_url(self, object_path: str) -> str:
        encoded = "/".join(quote(part, safe="") for part in object_path.split("/"))
        return f"https://storage.googleapis.com/{self.settings.firebase_storage_bucket}/{encoded}"

    def validate(self, image: ImageUpload) -> str:
        """Check size, declared type and magic bytes.

        Returns:
            The content type detected from the bytes, which is what gets
            stored even when the client declared another allowed type.

        Raises:
            FileTooLargeError: Over upload_max_file_size_mb.
            InvalidImageError: Declared or detected type not allowed.
        """
        size = len(image.content)
        if size > self.max_file_size:
            raise FileTooLargeError(size, self.max_file_size)

        allowed = self.allowed_types
        if image.content_type not in allowed:
            raise InvalidImageError(
                f"Content type '{image.content_type}' is not allowed. "
                f"Allowed: {', '.join(sorted(allowed))}"
            )

        check = validate_image_content(image.content[:MAX_HEADER_BYTES], allowed)
        if not check.valid or check.detected_type is None:
            logger.warning(
                "image_content_rejected",
                declared_type=image.content_type,
                detected_type=check.detected_type,
                error=check.error,
            )
            raise InvalidImageError(check.error or "Invalid file content")
        return check.detected_type

    def _put(self, object_path: str, image: ImageUpload, content_type: str) -> None:
        blob = self._open_bucket().blob(object_path)
        blob.cache_control = "public, max-age=31536000, immutable"
        blob.upload_from_string(image.content, content_type=content_type)
        blob.make_public()

    async def upload_image(self, image: ImageUpload, course_id: str) -> str:
        """Store a course image and return its public URL.

        The Firebase SDK is blocking, so the upload runs in a worker thread.

        Raises:
            FileTooLargeError, InvalidImageError: Bad input (422).
            StorageNotConfiguredError, StorageUploadError: Storage failure (502).
        """
        content_type = self.validate(image)
        if not self.is_configured:
            raise StorageNotConfiguredError

        object_path = self.object_path(course_id, content_type, image.filename)
        try:
            await asyncio.to_thread(self._put, object_path, image, content_type)
        except StorageNotConfiguredError:
            raise
        except Exception as e:
            logger.exception("image_upload_failed", object_path=object_path, error=str(e))
            raise StorageUploadError from e

        logger.info(
            "image_uploaded",
            object_path=object_path,
            content_type=content_type,
            size=len(image.content),
            course_id=course_id,
        )
        return self.public_url(object_path)
