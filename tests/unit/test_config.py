"""
Unit tests for configuration loading.

Tests cover:
- Defaults
- Environment overrides
- Validation
"""

import pytest

from streamgraph.config import (
    AppConfig,
    MediaBackend,
    MediaConfig,
    PaginationConfig,
    StorageConfig,
)


class TestConfig:
    """Tests for config dataclasses."""

    def test_defaults(self):
        """Defaults suit local development."""
        config = AppConfig()
        assert config.media.backend == MediaBackend.MEMORY
        assert config.pagination.default_page == 1
        assert config.pagination.default_limit == 10
        assert config.storage.wal_mode is True

    def test_storage_from_env(self, monkeypatch):
        """Storage settings come from the environment."""
        monkeypatch.setenv("DATA_DIR", "/tmp/sg")
        monkeypatch.setenv("SQLITE_WAL_MODE", "false")
        monkeypatch.setenv("SQLITE_BUSY_TIMEOUT_MS", "250")

        config = StorageConfig.from_env()
        assert config.data_dir == "/tmp/sg"
        assert config.wal_mode is False
        assert config.busy_timeout_ms == 250

    def test_media_from_env(self, monkeypatch):
        """S3 backend settings come from the environment."""
        monkeypatch.setenv("MEDIA_BACKEND", "S3")
        monkeypatch.setenv("S3_BUCKET", "videos")
        monkeypatch.setenv("S3_ENDPOINT", "http://localhost:9000")

        config = MediaConfig.from_env()
        assert config.backend == MediaBackend.S3
        assert config.bucket == "videos"
        assert config.endpoint_url == "http://localhost:9000"

    def test_invalid_media_backend(self, monkeypatch):
        """Unknown backend is rejected."""
        monkeypatch.setenv("MEDIA_BACKEND", "ftp")
        with pytest.raises(ValueError):
            MediaConfig.from_env()

    def test_page_size_from_env(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_PAGE_SIZE", "25")
        assert PaginationConfig.from_env().default_limit == 25

    def test_validate_rejects_bad_page_size(self, tmp_path):
        """Non-positive default page size is invalid."""
        config = AppConfig(
            storage=StorageConfig(data_dir=str(tmp_path)),
            pagination=PaginationConfig(default_limit=0),
        )
        with pytest.raises(ValueError):
            config.validate()

    def test_validate_requires_bucket_for_s3(self, tmp_path):
        config = AppConfig(
            storage=StorageConfig(data_dir=str(tmp_path)),
            media=MediaConfig(backend=MediaBackend.S3, bucket=""),
        )
        with pytest.raises(ValueError):
            config.validate()
