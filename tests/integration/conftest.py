"""
Integration test fixtures for StreamGraph.

Every test gets a fresh Platform over a temporary SQLite file and an
in-memory media store, plus a few seeded users.
"""

import tempfile

import pytest
import pytest_asyncio

from streamgraph.app import Platform
from streamgraph.config import AppConfig, StorageConfig
from streamgraph.media import InMemoryMediaStore


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def media_store():
    return InMemoryMediaStore()


@pytest_asyncio.fixture
async def platform(data_dir, media_store):
    """Started platform, stopped after the test."""
    config = AppConfig(storage=StorageConfig(data_dir=data_dir, wal_mode=False))
    platform = Platform(config, media_store=media_store)
    await platform.start()
    yield platform
    await platform.stop()


@pytest_asyncio.fixture
async def alice(platform):
    return await platform.users.register_user("alice", "Alice Doe", "alice@example.com")


@pytest_asyncio.fixture
async def bob(platform):
    return await platform.users.register_user("bob", "Bob Roe", "bob@example.com")


@pytest.fixture
def publish(platform):
    """Publish a video owned by a user document."""

    async def _publish(owner, title="My video", description="About it"):
        return await platform.videos.publish_video(
            actor_id=owner["id"],
            title=title,
            description=description,
            video_file=b"\x00video",
            thumbnail=b"\x89image",
            duration=12.5,
        )

    return _publish
