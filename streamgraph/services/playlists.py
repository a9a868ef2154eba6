"""
Playlist operations.

A playlist is an owner-private, ordered, duplicate-free list of videos.
Reading a single playlist is owner-gated like any mutation.

Invariants:
    - A video appears in a playlist at most once
    - Videos keep the order in which they were added
    - Deleting a playlist removes its entries, never the videos
"""

from __future__ import annotations

import logging
from typing import Any

from ..errors import InvalidArgumentError, NotFoundError
from ..models import EntityKind, validate_id
from ..relations import Action, CascadeCoordinator, CascadeReport, OwnershipGuard
from ..store import EntityStore, translate_store_errors
from ..views.composer import ViewComposer
from ..views.pagination import PageResult
from .base import ServiceBase
from .inputs import CreatePlaylistInput, UpdatePlaylistInput, parse_input

logger = logging.getLogger(__name__)


class PlaylistService(ServiceBase):
    """Creating playlists and managing their videos."""

    def __init__(
        self,
        store: EntityStore,
        composer: ViewComposer,
        guard: OwnershipGuard,
        cascade: CascadeCoordinator,
    ) -> None:
        super().__init__(store, composer, guard)
        self.cascade = cascade

    async def create_playlist(
        self,
        actor_id: str,
        name: str,
        description: str = "",
    ) -> dict[str, Any]:
        """Create an empty playlist.

        Raises:
            InvalidArgumentError: If the actor id is malformed or the name
                is blank
            NotFoundError: If the actor does not exist
        """
        data = parse_input(CreatePlaylistInput, name=name, description=description)
        actor = await self._load(EntityKind.USER, actor_id, "actor_id")

        with translate_store_errors("create playlist"):
            playlist = await self.store.create_entity(
                kind=EntityKind.PLAYLIST,
                owner_id=actor.entity_id,
                payload={"name": data.name, "description": data.description},
            )

        logger.debug("Playlist created", extra={"playlist_id": playlist.entity_id})
        document = playlist.to_document()
        document["videos"] = []
        return document

    async def get_user_playlists(
        self,
        user_id: str,
        page: Any = None,
        limit: Any = None,
    ) -> PageResult[dict[str, Any]]:
        """List a user's playlists with their videos, newest first.

        Raises:
            InvalidArgumentError: If the user id is malformed
            NotFoundError: If the user does not exist
        """
        user = await self._load(EntityKind.USER, user_id, "user_id")
        return await self.composer.user_playlists(
            user.entity_id, self.composer.page_request(page, limit)
        )

    async def _playlist_document(self, playlist_id: str) -> dict[str, Any]:
        document = await self.composer.playlist_detail(playlist_id)
        if document is None:
            raise NotFoundError("Playlist not found", EntityKind.PLAYLIST.value, playlist_id)
        return document

    async def get_playlist_by_id(self, actor_id: str, playlist_id: str) -> dict[str, Any]:
        """Get a playlist with its ordered videos. Owner only.

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the playlist does not exist
            UnauthorizedError: If the actor is not the owner
        """
        playlist = await self._load_owned(EntityKind.PLAYLIST, playlist_id, actor_id, Action.READ)
        return await self._playlist_document(playlist.entity_id)

    async def add_video_to_playlist(
        self,
        actor_id: str,
        playlist_id: str,
        video_id: str,
    ) -> dict[str, Any]:
        """Append a video to a playlist.

        Raises:
            InvalidArgumentError: If an identifier is malformed or the video
                is already in the playlist
            NotFoundError: If the playlist or the video does not exist
            UnauthorizedError: If the actor does not own the playlist
        """
        playlist = await self._load_owned(EntityKind.PLAYLIST, playlist_id, actor_id)
        video = await self._load(EntityKind.VIDEO, video_id)

        with translate_store_errors("add playlist entry"):
            added = await self.store.add_playlist_entry(playlist.entity_id, video.entity_id)
        if not added:
            raise InvalidArgumentError(
                "Video is already in the playlist",
                field_name="video_id",
            )

        logger.debug(
            "Video added to playlist",
            extra={"playlist_id": playlist.entity_id, "video_id": video.entity_id},
        )
        return await self._playlist_document(playlist.entity_id)

    async def remove_video_from_playlist(
        self,
        actor_id: str,
        playlist_id: str,
        video_id: str,
    ) -> dict[str, Any]:
        """Remove a video from a playlist.

        Raises:
            InvalidArgumentError: If an identifier is malformed or the video
                is not in the playlist
            NotFoundError: If the playlist does not exist
            UnauthorizedError: If the actor does not own the playlist
        """
        playlist = await self._load_owned(EntityKind.PLAYLIST, playlist_id, actor_id)
        video_id = validate_id(video_id, "video_id")

        with translate_store_errors("remove playlist entry"):
            removed = await self.store.remove_playlist_entry(playlist.entity_id, video_id)
        if not removed:
            raise InvalidArgumentError(
                "Video is not in the playlist",
                field_name="video_id",
            )

        logger.debug(
            "Video removed from playlist",
            extra={"playlist_id": playlist.entity_id, "video_id": video_id},
        )
        return await self._playlist_document(playlist.entity_id)

    async def update_playlist(
        self,
        actor_id: str,
        playlist_id: str,
        name: str | None = None,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Rename a playlist or change its description.

        Raises:
            InvalidArgumentError: If an identifier or the input is invalid
            NotFoundError: If the playlist does not exist
            UnauthorizedError: If the actor is not the owner
        """
        playlist = await self._load_owned(EntityKind.PLAYLIST, playlist_id, actor_id)
        data = parse_input(UpdatePlaylistInput, name=name, description=description)

        patch = {}
        if data.name is not None:
            patch["name"] = data.name
        if data.description is not None:
            patch["description"] = data.description
        await self._update(playlist, patch)
        return await self._playlist_document(playlist.entity_id)

    async def delete_playlist(self, actor_id: str, playlist_id: str) -> CascadeReport:
        """Delete a playlist and its entries; the videos stay.

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the playlist does not exist
            UnauthorizedError: If the actor is not the owner
        """
        playlist = await self._load_owned(
            EntityKind.PLAYLIST, playlist_id, actor_id, Action.DELETE
        )
        report = await self.cascade.delete_with_cascade(EntityKind.PLAYLIST, playlist.entity_id)
        logger.info("Playlist deleted", extra={"playlist_id": playlist.entity_id})
        return report
