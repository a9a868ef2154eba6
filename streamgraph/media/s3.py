"""
S3 media store for StreamGraph.

Stores video files and thumbnails as S3 objects:

    s3://<bucket>/<prefix>/<media_type>/<uuid>

Invariants:
    - Objects are written once and never modified
    - A locator always names the bucket it was written to
    - delete() never raises for S3 errors; it reports False

How to change safely:
    - Locator format changes must keep parsing old locators
    - Test against MinIO (S3_ENDPOINT) before production
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from ..config import MediaConfig
from .base import MediaStoreError, MediaType, StoredMedia

logger = logging.getLogger(__name__)


def parse_locator(locator: str) -> tuple[str, str]:
    """Split an s3:// locator into (bucket, key).

    Raises:
        ValueError: If the locator is not an s3:// URL
    """
    if not locator.startswith("s3://"):
        raise ValueError(f"Not an S3 locator: {locator}")
    bucket, _, key = locator[len("s3://") :].partition("/")
    if not bucket or not key:
        raise ValueError(f"Not an S3 locator: {locator}")
    return bucket, key


class S3MediaStore:
    """Media store backed by S3 (or an S3-compatible endpoint).

    The client is created lazily on first use and released by close().

    Example:
        >>> media_store = S3MediaStore(MediaConfig(bucket="media"))
        >>> media = await media_store.store(data, MediaType.VIDEO)
        >>> media.locator
        's3://media/media/video/0b6f...'
    """

    def __init__(self, config: MediaConfig) -> None:
        self.config = config
        self._session = None
        self._s3_ctx: Any = None
        self._s3_client: Any = None

    async def _client(self) -> Any:
        """Get the S3 client, creating it on first use."""
        if self._s3_client is not None:
            return self._s3_client

        self._session = get_session()

        client_kwargs = {
            "region_name": self.config.region,
        }

        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url

        if self.config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

        self._s3_ctx = self._session.create_client("s3", **client_kwargs)
        self._s3_client = await self._s3_ctx.__aenter__()
        return self._s3_client

    def _build_key(self, media_type: MediaType) -> str:
        prefix = self.config.prefix.strip("/")
        name = f"{media_type.value}/{uuid.uuid4()}"
        return f"{prefix}/{name}" if prefix else name

    async def store(self, data: bytes, media_type: MediaType) -> StoredMedia:
        """Upload bytes as a new object.

        Raises:
            MediaStoreError: If the upload fails
        """
        key = self._build_key(media_type)
        client = await self._client()

        try:
            await client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ContentType=media_type.content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload media: {e}", exc_info=True)
            raise MediaStoreError(f"Upload to s3://{self.config.bucket}/{key} failed") from e

        logger.info(
            "Uploaded media",
            extra={"bucket": self.config.bucket, "key": key, "size_bytes": len(data)},
        )
        return StoredMedia(
            locator=f"s3://{self.config.bucket}/{key}",
            media_type=media_type,
            size_bytes=len(data),
        )

    async def delete(self, locator: str, media_type: MediaType) -> bool:
        """Delete the object behind a locator."""
        try:
            bucket, key = parse_locator(locator)
        except ValueError:
            logger.warning("Refusing to delete non-S3 locator", extra={"locator": locator})
            return False

        client = await self._client()
        try:
            await client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to delete media {locator}: {e}", exc_info=True)
            return False

        logger.info("Deleted media", extra={"locator": locator, "media_type": media_type.value})
        return True

    async def close(self) -> None:
        """Close the S3 client."""
        if self._s3_client is not None:
            await self._s3_ctx.__aexit__(None, None, None)
            self._s3_client = None
            self._s3_ctx = None
