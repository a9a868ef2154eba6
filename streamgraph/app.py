"""
Application wiring for StreamGraph.

Platform builds every component from configuration and exposes the
feature services:

    Entity store -> toggle engine, ownership guard, view composer
                 -> cascade coordinator (with the media store)
                 -> services

Usage:
    platform = Platform(AppConfig.from_env())
    await platform.start()
    video = await platform.videos.publish_video(...)
    await platform.stop()
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import AppConfig
from .media import MediaStore, create_media_store
from .relations import CascadeCoordinator, RelationToggleEngine, get_ownership_guard
from .services import (
    CommentService,
    LikeService,
    PlaylistService,
    PostService,
    SubscriptionService,
    UserService,
    VideoService,
)
from .store import EntityStore
from .views.composer import ViewComposer

logger = logging.getLogger(__name__)


def setup_logging(config: AppConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Application configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)


class Platform:
    """StreamGraph component container.

    Attributes:
        config: Application configuration
        store: Entity store
        media_store: Media store
        composer: View composer
        toggle: Relation toggle engine
        cascade: Cascade coordinator
        users, videos, comments, likes, subscriptions, posts, playlists:
            Feature services

    Example:
        >>> platform = Platform(config, media_store=InMemoryMediaStore())
        >>> await platform.start()
        >>> user = await platform.users.register_user("ana", "Ana", "ana@example.com")
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        media_store: MediaStore | None = None,
    ) -> None:
        """Build all components. No I/O happens until start().

        Args:
            config: Optional configuration (loaded from env if not provided)
            media_store: Optional media store overriding config.media
        """
        self.config = config or AppConfig.from_env()
        self._running = False

        storage = self.config.storage
        self.store = EntityStore(
            data_dir=storage.data_dir,
            db_filename=storage.db_filename,
            wal_mode=storage.wal_mode,
            busy_timeout_ms=storage.busy_timeout_ms,
            cache_size_pages=storage.cache_size_pages,
        )
        self.media_store = media_store or create_media_store(self.config.media)

        guard = get_ownership_guard()
        self.composer = ViewComposer(self.store, self.config.pagination)
        self.toggle = RelationToggleEngine(self.store)
        self.cascade = CascadeCoordinator(self.store, self.media_store)

        self.users = UserService(self.store, self.composer, guard)
        self.videos = VideoService(self.store, self.composer, guard, self.media_store, self.cascade)
        self.comments = CommentService(self.store, self.composer, guard, self.cascade)
        self.likes = LikeService(self.store, self.composer, guard, self.toggle)
        self.subscriptions = SubscriptionService(self.store, self.composer, guard, self.toggle)
        self.posts = PostService(self.store, self.composer, guard, self.cascade)
        self.playlists = PlaylistService(self.store, self.composer, guard, self.cascade)

    async def start(self) -> None:
        """Create the database schema if needed."""
        if self._running:
            logger.warning("Platform already running")
            return

        logger.info("Starting StreamGraph")
        self.config.log_config()
        await self.store.initialize()
        self._running = True

    async def stop(self) -> None:
        """Release the media store."""
        if not self._running:
            return

        await self.media_store.close()
        self._running = False
        logger.info("StreamGraph stopped")

    async def __aenter__(self) -> Platform:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()
