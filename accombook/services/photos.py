# AccomBook API - Short-term Accommodation Booking Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Photo upload to an S3 compatible object store."""

import hashlib
import uuid
from io import BytesIO
from typing import List, Optional, Sequence, Tuple

import boto3
import structlog
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from accombook.config import PhotoConfig, get_settings

logger = structlog.get_logger(__name__)

# Pillow format name -> (extension, content type)
_FORMATS = {
    "JPEG": ("jpg", "image/jpeg"),
    "PNG": ("png", "image/png"),
    "WEBP": ("webp", "image/webp"),
}


class PhotoValidationError(ValueError):
    """Uploaded file is not an acceptable photo."""


class PhotoUploadError(Exception):
    """The photo host rejected or failed an upload."""


class PhotoStorage:
    """Validates photos and stores them in a bucket, returning public URLs."""

    def __init__(self, config: PhotoConfig, client=None):
        self.config = config
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=config.endpoint_url,
                aws_access_key_id=config.access_key or None,
                aws_secret_access_key=config.secret_key or None,
                region_name=config.region,
                config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
            )
        self.client = client

    def validate(self, content: bytes, content_type: Optional[str]) -> Tuple[str, str]:
        """Check size, declared type and actual image format.

        Returns:
            (extension, content type) derived from the decoded image.
        """
        if content_type not in self.config.allowed_content_types:
            raise PhotoValidationError("Invalid file type. Only JPEG, PNG, and WebP allowed")

        if len(content) > self.config.max_size_bytes:
            max_mb = self.config.max_size_bytes / 1024 / 1024
            raise PhotoValidationError(f"File too large. Maximum {max_mb:g}MB per file")

        try:
            with Image.open(BytesIO(content)) as img:
                img.verify()
                image_format = img.format
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise PhotoValidationError("Invalid image file") from e

        if image_format not in _FORMATS:
            raise PhotoValidationError("Invalid file type. Only JPEG, PNG, and WebP allowed")

        return _FORMATS[image_format]

    def _object_key(self, content: bytes, extension: str) -> str:
        digest = hashlib.md5(content).hexdigest()[:8]
        uid = uuid.uuid4().hex[:8]
        return f"{self.config.folder}/{digest}_{uid}.{extension}"

    def _url_prefix(self) -> str:
        base = self.config.public_base_url.rstrip("/")
        if base:
            return base
        if self.config.endpoint_url:
            return f"{self.config.endpoint_url.rstrip('/')}/{self.config.bucket}"
        return f"https://{self.config.bucket}.s3.{self.config.region}.amazonaws.com"

    def public_url(self, key: str) -> str:
        """Public URL of a stored object."""
        return f"{self._url_prefix()}/{key}"

    def key_for_url(self, url: str) -> Optional[str]:
        """Object key behind a URL from public_url, None for foreign URLs."""
        prefix = self._url_prefix() + "/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix):]

    def upload(self, content: bytes, content_type: Optional[str]) -> str:
        """Validate and store a single photo, returning its URL."""
        extension, stored_type = self.validate(content, content_type)
        key = self._object_key(content, extension)

        try:
            self.client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=content,
                ContentType=stored_type,
                CacheControl="max-age=31536000",
                ACL="public-read",
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("photo_upload_failed", key=key, error=str(e))
            raise PhotoUploadError("Failed to upload photos") from e

        logger.info("photo_uploaded", key=key, size=len(content))
        return self.public_url(key)

    def upload_many(self, files: Sequence[Tuple[bytes, Optional[str]]]) -> List[str]:
        """Store several photos. All are validated before any is uploaded.

        If one upload fails, the photos already stored by this call are
        deleted again before the error is raised.
        """
        for content, content_type in files:
            self.validate(content, content_type)

        urls = []
        try:
            for content, content_type in files:
                urls.append(self.upload(content, content_type))
        except PhotoUploadError:
            self.delete_many(urls)
            raise
        return urls

    def delete_many(self, urls: Sequence[str]) -> None:
        """Best-effort removal of stored photos; failures are only logged."""
        for url in urls:
            key = self.key_for_url(url)
            if key is None:
                logger.warning("photo_delete_skipped", url=url)
                continue
            try:
                self.client.delete_object(Bucket=self.config.bucket, Key=key)
            except (BotoCoreError, ClientError) as e:
                logger.warning("photo_delete_failed", key=key, error=str(e))
            else:
                logger.info("photo_deleted", key=key)


# Global storage instance
_storage: Optional[PhotoStorage] = None


def get_photo_storage() -> PhotoStorage:
    """Get the global photo storage (FastAPI dependency)."""
    global _storage
    if _storage is None:
        _storage = PhotoStorage(get_settings().photos)
    return _storage
