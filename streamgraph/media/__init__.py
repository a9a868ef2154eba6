"""
Media store backends for StreamGraph.

Media bytes (video files, thumbnails) live outside the entity store:
- base: MediaStore protocol and shared types
- memory: in-memory backend for tests and local development
- s3: S3 backend (aiobotocore)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import MediaStore, MediaStoreError, MediaType, StoredMedia
from .memory import InMemoryMediaStore

if TYPE_CHECKING:
    from ..config import MediaConfig


def create_media_store(config: MediaConfig) -> MediaStore:
    """Factory function to create a media store from configuration.

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import MediaBackend
    from .s3 import S3MediaStore

    if config.backend == MediaBackend.MEMORY:
        return InMemoryMediaStore()
    elif config.backend == MediaBackend.S3:
        return S3MediaStore(config)
    else:
        raise ValueError(f"Unsupported media backend: {config.backend}")


__all__ = [
    "MediaStore",
    "MediaStoreError",
    "MediaType",
    "StoredMedia",
    "InMemoryMediaStore",
    "create_media_store",
]
