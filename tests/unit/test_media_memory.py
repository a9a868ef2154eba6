"""
Unit tests for the in-memory media store.

Tests cover:
- Store and delete
- Simulated failures
- Locator parsing of the S3 backend
"""

import pytest

from streamgraph.config import MediaBackend, MediaConfig
from streamgraph.media import (
    InMemoryMediaStore,
    MediaStore,
    MediaStoreError,
    MediaType,
    create_media_store,
)
from streamgraph.media.s3 import S3MediaStore, parse_locator


class TestInMemoryMediaStore:
    """Tests for InMemoryMediaStore."""

    @pytest.fixture
    def media_store(self):
        return InMemoryMediaStore()

    @pytest.mark.asyncio
    async def test_store_and_delete(self, media_store):
        """Stored media can be deleted; deleting again is a no-op."""
        media = await media_store.store(b"frames", MediaType.VIDEO)
        assert media.locator.startswith("memory://video/")
        assert media.size_bytes == 6
        assert media_store.contains(media.locator)

        assert await media_store.delete(media.locator, MediaType.VIDEO) is True
        assert not media_store.contains(media.locator)
        assert media_store.deleted == [media.locator]

        # already gone counts as deleted
        assert await media_store.delete(media.locator, MediaType.VIDEO) is True
        assert media_store.deleted == [media.locator]

    @pytest.mark.asyncio
    async def test_delete_unknown_locator(self, media_store):
        """A locator that was never stored deletes successfully."""
        assert await media_store.delete("memory://video/gone", MediaType.VIDEO) is True
        assert media_store.deleted == []

    @pytest.mark.asyncio
    async def test_fail_uploads(self, media_store):
        media_store.fail_uploads = True
        with pytest.raises(MediaStoreError):
            await media_store.store(b"x", MediaType.IMAGE)
        assert media_store.object_count == 0

    @pytest.mark.asyncio
    async def test_fail_deletes(self, media_store):
        media = await media_store.store(b"x", MediaType.IMAGE)
        media_store.fail_deletes = True
        assert await media_store.delete(media.locator, MediaType.IMAGE) is False
        assert media_store.contains(media.locator)

    def test_protocol(self, media_store):
        assert isinstance(media_store, MediaStore)

    def test_pending_form(self):
        from streamgraph.media import StoredMedia

        media = StoredMedia("memory://image/1", MediaType.IMAGE, 3)
        assert media.to_pending() == {"locator": "memory://image/1", "media_type": "image"}


class TestMediaFactory:
    """Tests for create_media_store and S3 locators."""

    def test_memory_backend(self):
        assert isinstance(create_media_store(MediaConfig()), InMemoryMediaStore)

    def test_s3_backend(self):
        store = create_media_store(MediaConfig(backend=MediaBackend.S3, bucket="b"))
        assert isinstance(store, S3MediaStore)

    def test_parse_locator(self):
        assert parse_locator("s3://bucket/media/video/abc") == ("bucket", "media/video/abc")

    @pytest.mark.parametrize("locator", ["memory://video/1", "s3://bucket", "s3:///key"])
    def test_parse_invalid_locator(self, locator):
        with pytest.raises(ValueError):
            parse_locator(locator)
