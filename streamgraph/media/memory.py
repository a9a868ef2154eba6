"""
In-memory media store for testing.

This module provides a media backend that keeps bytes in a dict, for:
- Unit and integration tests
- Local development without S3

Invariants:
    - All data is lost on process exit
    - Locators have the form memory://<media_type>/<uuid>

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the MediaStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from .base import MediaStoreError, MediaType, StoredMedia

logger = logging.getLogger(__name__)


class InMemoryMediaStore:
    """In-memory implementation of MediaStore.

    Attributes:
        fail_uploads: Make store() raise MediaStoreError
        fail_deletes: Make delete() report failure
        deleted: Locators deleted so far, in order

    Example:
        >>> media_store = InMemoryMediaStore()
        >>> media = await media_store.store(b"...", MediaType.VIDEO)
        >>> media_store.contains(media.locator)
        True
    """

    def __init__(self) -> None:
        self._objects: dict[str, bytes] = {}
        self._lock = asyncio.Lock()
        self.fail_uploads = False
        self.fail_deletes = False
        self.deleted: list[str] = []

    async def store(self, data: bytes, media_type: MediaType) -> StoredMedia:
        """Keep bytes in memory and return a locator."""
        if self.fail_uploads:
            raise MediaStoreError("Simulated upload failure")

        locator = f"memory://{media_type.value}/{uuid.uuid4()}"
        async with self._lock:
            self._objects[locator] = bytes(data)

        logger.debug("Stored media in memory", extra={"locator": locator, "size": len(data)})
        return StoredMedia(locator=locator, media_type=media_type, size_bytes=len(data))

    async def delete(self, locator: str, media_type: MediaType) -> bool:
        """Drop stored bytes; an unknown locator counts as deleted, like S3."""
        if self.fail_deletes:
            return False

        async with self._lock:
            if self._objects.pop(locator, None) is None:
                return True
            self.deleted.append(locator)

        logger.debug("Deleted media from memory", extra={"locator": locator})
        return True

    async def close(self) -> None:
        """Clear all data."""
        self._objects.clear()

    # Testing helpers

    def contains(self, locator: str) -> bool:
        return locator in self._objects

    @property
    def object_count(self) -> int:
        return len(self._objects)
