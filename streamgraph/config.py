"""
Configuration management for StreamGraph.

All configuration is done via environment variables.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep from_env() and the dataclass defaults in sync
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class MediaBackend(Enum):
    """Supported media store backends."""

    MEMORY = "memory"
    S3 = "s3"


@dataclass(frozen=True)
class StorageConfig:
    """Entity store configuration.

    Attributes:
        data_dir: Directory for the SQLite database
        db_filename: Database file name inside data_dir
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
    """

    data_dir: str = "/var/lib/streamgraph"
    db_filename: str = "streamgraph.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000  # 64MB

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "/var/lib/streamgraph"),
            db_filename=os.getenv("DB_FILENAME", "streamgraph.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-64000")),
        )


@dataclass(frozen=True)
class MediaConfig:
    """Media store configuration.

    Attributes:
        backend: Which media store to use
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        prefix: Key prefix for uploaded media
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    backend: MediaBackend = MediaBackend.MEMORY
    bucket: str = "streamgraph-media"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    prefix: str = "media"
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> MediaConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("MEDIA_BACKEND", "memory").lower()
        try:
            backend = MediaBackend(backend_str)
        except ValueError:
            raise ValueError(f"Invalid MEDIA_BACKEND '{backend_str}'. Must be one of: memory, s3")

        return cls(
            backend=backend,
            bucket=os.getenv("S3_BUCKET", "streamgraph-media"),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            prefix=os.getenv("S3_MEDIA_PREFIX", "media"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class PaginationConfig:
    """Defaults applied when page/limit are missing or invalid."""

    default_page: int = 1
    default_limit: int = 10

    @classmethod
    def from_env(cls) -> PaginationConfig:
        """Load configuration from environment variables."""
        return cls(
            default_page=int(os.getenv("DEFAULT_PAGE", "1")),
            default_limit=int(os.getenv("DEFAULT_PAGE_SIZE", "10")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class AppConfig:
    """Complete application configuration.

    Attributes:
        storage: Entity store configuration
        media: Media store configuration
        pagination: Pagination defaults
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            media=MediaConfig.from_env(),
            pagination=PaginationConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.media.backend == MediaBackend.S3 and not self.media.bucket:
            raise ValueError("S3_BUCKET is required when MEDIA_BACKEND=s3")

        if self.pagination.default_page < 1:
            raise ValueError("DEFAULT_PAGE must be a positive integer")
        if self.pagination.default_limit < 1:
            raise ValueError("DEFAULT_PAGE_SIZE must be a positive integer")

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Configuration loaded",
            extra={
                "data_dir": self.storage.data_dir,
                "db_filename": self.storage.db_filename,
                "media_backend": self.media.backend.value,
                "s3_bucket": self.media.bucket
                if self.media.backend == MediaBackend.S3
                else None,
                "default_limit": self.pagination.default_limit,
                "log_level": self.observability.log_level,
            },
        )
