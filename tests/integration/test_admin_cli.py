"""
Integration tests for the admin CLI.

The CLI runs its own event loop, so these tests are synchronous and seed
the database with asyncio.run().
"""

import asyncio
import json
import logging

import pytest

from streamgraph.media import InMemoryMediaStore
from streamgraph.models import EntityKind
from streamgraph.store import EntityStore
from streamgraph.tools.admin_cli import main


def _run_cli(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


@pytest.fixture
def cli_env(monkeypatch, data_dir):
    monkeypatch.setenv("DATA_DIR", data_dir)
    monkeypatch.setenv("MEDIA_BACKEND", "memory")
    monkeypatch.setenv("LOG_FORMAT", "text")
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield data_dir
    root.handlers = handlers
    root.setLevel(level)


class TestAdminCLI:
    """Tests for streamgraph-admin commands."""

    def test_stats_requires_init(self, cli_env, capsys):
        assert _run_cli(["stats"]) == 1
        assert "run init first" in capsys.readouterr().err

    def test_init_then_stats(self, cli_env, capsys):
        assert _run_cli(["init"]) == 0
        assert "Initialized database" in capsys.readouterr().out

        assert _run_cli(["stats"]) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats["user"] == 0
        assert stats["like_edges"] == 0
        assert stats["pending_reconciliations"] == 0

    def test_data_dir_flag_overrides_env(self, cli_env, tmp_path, capsys):
        other = tmp_path / "other"
        assert _run_cli(["--data-dir", str(other), "init"]) == 0
        assert str(other) in capsys.readouterr().out

    def test_reconcile_nothing_pending(self, cli_env, capsys):
        _run_cli(["init"])
        capsys.readouterr()

        assert _run_cli(["reconcile"]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["attempted"] == 0
        assert summary["remaining"] == 0

    def _seed_media_entry(self, data_dir):
        store = EntityStore(data_dir=data_dir, wal_mode=False)

        async def seed():
            await store.initialize()
            return await store.record_reconciliation(
                EntityKind.VIDEO,
                "0b7c1f2e-4f59-4a8e-9a51-3f1f4a2d6c10",
                "media",
                "delete failed",
                [{"locator": "memory://video/missing", "media_type": "video"}],
            )

        return asyncio.run(seed())

    def test_reconcile_resolves_already_deleted_media(self, cli_env, capsys):
        """Media that is already gone counts as released."""
        self._seed_media_entry(cli_env)

        assert _run_cli(["reconcile"]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["resolved"] == 1
        assert summary["remaining"] == 0

        assert _run_cli(["stats"]) == 0
        assert json.loads(capsys.readouterr().out)["pending_reconciliations"] == 0

    def test_reconcile_unresolved_exits_nonzero(self, cli_env, capsys, monkeypatch):
        """Media the store cannot delete keeps the entry pending."""

        async def failing_delete(self, locator, media_type):
            return False

        monkeypatch.setattr(InMemoryMediaStore, "delete", failing_delete)
        entry = self._seed_media_entry(cli_env)

        assert _run_cli(["reconcile", "--limit", "10"]) == 1
        summary = json.loads(capsys.readouterr().out)
        assert summary["attempted"] == 1
        assert summary["failed_ids"] == [entry.entry_id]
