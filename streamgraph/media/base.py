"""
Base protocol and types for the media store.

The media store holds the bytes of uploaded videos and thumbnails. The
core treats it as an opaque collaborator: it stores bytes and gets a
locator back, and asks for locators to be deleted when their owning
entity goes away.

Invariants:
    - A locator is an opaque string; only the issuing store interprets it
    - delete() reports failure instead of hiding it
    - Deleting an unknown locator is a failure, not an exception

How to change safely:
    - Protocol changes require updating all implementations
    - Keep locator formats stable; they are persisted in entity payloads
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class MediaStoreError(Exception):
    """Base exception for media store operations."""

    pass


class MediaType(Enum):
    """Kinds of media stored for videos."""

    VIDEO = "video"
    IMAGE = "image"

    @property
    def content_type(self) -> str:
        return "video/mp4" if self == MediaType.VIDEO else "image/jpeg"


@dataclass(frozen=True)
class StoredMedia:
    """Result of storing media bytes.

    Attributes:
        locator: Opaque locator to persist and later delete
        media_type: What was stored
        size_bytes: Stored size
    """

    locator: str
    media_type: MediaType
    size_bytes: int

    def to_pending(self) -> dict[str, str]:
        """Reconciliation-log form of this media."""
        return {"locator": self.locator, "media_type": self.media_type.value}


@runtime_checkable
class MediaStore(Protocol):
    """Protocol for media store backends.

    Example:
        >>> media = await store.store(data, MediaType.IMAGE)
        >>> ok = await store.delete(media.locator, MediaType.IMAGE)
    """

    @abstractmethod
    async def store(self, data: bytes, media_type: MediaType) -> StoredMedia:
        """Store bytes and return their locator.

        Raises:
            MediaStoreError: If the upload fails
        """
        ...

    @abstractmethod
    async def delete(self, locator: str, media_type: MediaType) -> bool:
        """Delete stored media.

        Returns:
            True if deleted or already absent, False on failure
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...
