"""
Video operations.

Publishing uploads the video file and thumbnail to the media store before
the entity is written. If the write fails, the uploads are deleted again
so no media is left without an owner.

Invariants:
    - Only the owner updates, deletes or (un)publishes a video
    - Unpublished videos are visible to their owner only
    - A replaced thumbnail is deleted from the media store, or recorded
      for reconciliation
    - Deleting a video removes its comments, likes, playlist entries and media
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from ..errors import InternalError, NotFoundError
from ..media import MediaStore, MediaStoreError, MediaType, StoredMedia
from ..models import EntityKind, validate_id
from ..relations import Action, CascadeCoordinator, CascadeReport, OwnershipGuard
from ..store import EntityStore, translate_store_errors
from ..views.composer import ViewComposer
from ..views.pagination import PageResult
from .base import ServiceBase
from .inputs import PublishVideoInput, UpdateVideoInput, parse_input

logger = logging.getLogger(__name__)


class VideoService(ServiceBase):
    """Publishing, browsing and managing videos.

    Example:
        >>> video = await videos.publish_video(
        ...     actor_id=user_id,
        ...     title="Intro",
        ...     description="First upload",
        ...     video_file=data,
        ...     thumbnail=image,
        ...     duration=42.0,
        ... )
        >>> await videos.toggle_publish_status(user_id, video["id"])
    """

    def __init__(
        self,
        store: EntityStore,
        composer: ViewComposer,
        guard: OwnershipGuard,
        media_store: MediaStore,
        cascade: CascadeCoordinator,
    ) -> None:
        super().__init__(store, composer, guard)
        self.media_store = media_store
        self.cascade = cascade

    async def list_videos(
        self,
        page: Any = None,
        limit: Any = None,
        query: str | None = None,
        sort_by: str | None = None,
        sort_type: str | None = None,
        user_id: str | None = None,
        published_only: bool = True,
        actor_id: str | None = None,
    ) -> PageResult[dict[str, Any]]:
        """List videos, optionally filtered to one channel and a search query.

        Args:
            page: Page number (invalid values become 1)
            limit: Page size (invalid values become the default)
            query: Case-insensitive search over title and description
            sort_by: Sort field; created_at, updated_at, title, duration,
                views or likes
            sort_type: "asc" or "desc"
            user_id: Only this channel's videos
            published_only: Hide unpublished videos; otherwise the
                actor's own unpublished videos are included
            actor_id: Populate is_liked for this actor

        Raises:
            InvalidArgumentError: If an identifier is malformed or sort_by
                is not sortable
        """
        if user_id is not None:
            user_id = validate_id(user_id, "user_id")
        if actor_id is not None:
            actor_id = validate_id(actor_id, "actor_id")

        return await self.composer.list_videos(
            self.composer.page_request(page, limit),
            query=query,
            sort_by=sort_by,
            sort_type=sort_type,
            owner_id=user_id,
            published_only=published_only,
            actor_id=actor_id,
        )

    async def _upload(self, data: bytes, media_type: MediaType) -> StoredMedia:
        try:
            return await self.media_store.store(data, media_type)
        except MediaStoreError as e:
            logger.error(f"Failed to upload {media_type.value}: {e}", exc_info=True)
            raise InternalError(f"Failed to upload {media_type.value}") from e

    async def _discard(self, uploads: list[StoredMedia]) -> None:
        for media in uploads:
            if not await self.media_store.delete(media.locator, media.media_type):
                logger.warning(
                    "Could not discard uploaded media",
                    extra={"locator": media.locator},
                )

    async def publish_video(
        self,
        actor_id: str,
        title: str,
        description: str,
        video_file: bytes,
        thumbnail: bytes,
        duration: float = 0.0,
    ) -> dict[str, Any]:
        """Upload media and create a published video owned by actor_id.

        Returns:
            The created video document

        Raises:
            InvalidArgumentError: If the input is invalid
            NotFoundError: If the actor does not exist
            InternalError: If an upload or the store write fails
        """
        data = parse_input(
            PublishVideoInput,
            title=title,
            description=description,
            video_file=video_file,
            thumbnail=thumbnail,
            duration=duration,
        )
        owner = await self._load(EntityKind.USER, actor_id, "actor_id")

        uploads = [await self._upload(data.video_file, MediaType.VIDEO)]
        try:
            uploads.append(await self._upload(data.thumbnail, MediaType.IMAGE))
        except InternalError:
            await self._discard(uploads)
            raise

        video_media, thumbnail_media = uploads
        try:
            video = await self.store.create_entity(
                kind=EntityKind.VIDEO,
                owner_id=owner.entity_id,
                payload={
                    "title": data.title,
                    "description": data.description,
                    "video_file": video_media.locator,
                    "thumbnail": thumbnail_media.locator,
                    "duration": data.duration,
                    "views": 0,
                    "is_published": True,
                },
            )
        except sqlite3.Error as e:
            logger.error(f"Failed to store video: {e}", exc_info=True)
            await self._discard(uploads)
            raise InternalError("Failed to store video") from e

        logger.info(
            "Video published",
            extra={"video_id": video.entity_id, "owner_id": owner.entity_id},
        )
        return video.to_document()

    async def get_video_by_id(self, video_id: str, actor_id: str | None = None) -> dict[str, Any]:
        """Get a video with owner profile, like count and is_liked.

        Counts a view.

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the video does not exist or is unpublished
                and actor_id is not its owner
        """
        if actor_id is not None:
            actor_id = validate_id(actor_id, "actor_id")
        video = await self._load(EntityKind.VIDEO, video_id)
        if not video.get("is_published", True) and not self.guard.is_owner(video, actor_id):
            raise NotFoundError("Video not found", EntityKind.VIDEO.value, video.entity_id)

        with translate_store_errors("increment views"):
            counted = await self.store.increment_views(video.entity_id)
        if counted is None:
            raise NotFoundError("Video not found", EntityKind.VIDEO.value, video.entity_id)

        document = await self.composer.video_detail(video.entity_id, actor_id)
        if document is None:
            raise NotFoundError("Video not found", EntityKind.VIDEO.value, video.entity_id)
        return document

    async def update_video(
        self,
        actor_id: str,
        video_id: str,
        title: str | None = None,
        description: str | None = None,
        thumbnail: bytes | None = None,
    ) -> dict[str, Any]:
        """Update a video's title, description or thumbnail.

        A new thumbnail replaces the old one, which is then deleted from
        the media store.

        Raises:
            InvalidArgumentError: If the input is invalid
            NotFoundError: If the video does not exist
            UnauthorizedError: If the actor is not the owner
            InternalError: If the upload or the store write fails
        """
        video = await self._load_owned(EntityKind.VIDEO, video_id, actor_id)
        data = parse_input(
            UpdateVideoInput,
            title=title,
            description=description,
            thumbnail=thumbnail,
        )

        patch: dict[str, Any] = {}
        if data.title is not None:
            patch["title"] = data.title
        if data.description is not None:
            patch["description"] = data.description

        new_thumbnail = None
        if data.thumbnail is not None:
            new_thumbnail = await self._upload(data.thumbnail, MediaType.IMAGE)
            patch["thumbnail"] = new_thumbnail.locator

        try:
            updated = await self._update(video, patch)
        except (InternalError, NotFoundError):
            if new_thumbnail is not None:
                await self._discard([new_thumbnail])
            raise

        old_thumbnail = video.get("thumbnail")
        if new_thumbnail is not None and old_thumbnail:
            await self.cascade.release_media(
                EntityKind.VIDEO,
                video.entity_id,
                [{"locator": old_thumbnail, "media_type": MediaType.IMAGE.value}],
            )

        logger.debug(
            "Video updated",
            extra={"video_id": video.entity_id, "fields": sorted(patch)},
        )
        return updated.to_document()

    async def delete_video(self, actor_id: str, video_id: str) -> CascadeReport:
        """Delete a video with its comments, likes, playlist entries and media.

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the video does not exist
            UnauthorizedError: If the actor is not the owner
            InternalError: If the cascade failed (a reconciliation entry
                has been recorded)
        """
        video = await self._load_owned(EntityKind.VIDEO, video_id, actor_id, Action.DELETE)
        report = await self.cascade.delete_with_cascade(EntityKind.VIDEO, video.entity_id)
        logger.info(
            "Video deleted",
            extra={"video_id": video.entity_id, "actor_id": video.owner},
        )
        return report

    async def toggle_publish_status(self, actor_id: str, video_id: str) -> dict[str, Any]:
        """Flip a video between published and unpublished.

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the video does not exist
            UnauthorizedError: If the actor is not the owner
        """
        video = await self._load_owned(EntityKind.VIDEO, video_id, actor_id)
        with translate_store_errors("toggle publish status"):
            updated = await self.store.toggle_published(video.entity_id)
        if updated is None:
            raise NotFoundError("Video not found", EntityKind.VIDEO.value, video.entity_id)
        published = updated.get("is_published")

        logger.info(
            "Video publish status toggled",
            extra={"video_id": video.entity_id, "is_published": published},
        )
        return updated.to_document()
