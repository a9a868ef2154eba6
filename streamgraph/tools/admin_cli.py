"""
Admin CLI for StreamGraph.

This tool manages a StreamGraph database:
- init: Create the database schema
- stats: Print row counts as JSON
- reconcile: Retry cascades recorded in the reconciliation log

Usage:
    streamgraph-admin init --data-dir /var/lib/streamgraph
    streamgraph-admin stats
    streamgraph-admin reconcile --limit 500

Configuration comes from the environment (see streamgraph.config);
--data-dir overrides DATA_DIR.

Invariants:
    - reconcile exits non-zero while entries remain unresolved
    - stats output is deterministic (sorted JSON)

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for scripts
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any

from ..app import Platform, setup_logging
from ..config import AppConfig

logger = logging.getLogger(__name__)


class AdminCLI:
    """Admin commands over a Platform.

    Example:
        >>> cli = AdminCLI(Platform(config))
        >>> await cli.stats()
        {'user': 3, 'video': 12, ...}
    """

    def __init__(self, platform: Platform) -> None:
        self.platform = platform

    async def init(self) -> str:
        """Create the schema; returns the database path."""
        await self.platform.store.initialize()
        return str(self.platform.store.db_path)

    async def stats(self) -> dict[str, int]:
        """Row counts per entity kind, edge kind and reconciliation state."""
        return await self.platform.store.get_stats()

    async def reconcile(self, limit: int) -> dict[str, Any]:
        """Retry pending reconciliation entries."""
        summary = await self.platform.cascade.reconcile_pending(limit=limit)
        return dataclasses.asdict(summary)


def _build_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.from_env()
    if args.data_dir:
        config.storage = dataclasses.replace(config.storage, data_dir=args.data_dir)
    return config


async def _run(args: argparse.Namespace) -> int:
    config = _build_config(args)
    setup_logging(config)
    platform = Platform(config)
    cli = AdminCLI(platform)

    try:
        if args.command == "init":
            path = await cli.init()
            print(f"Initialized database at {path}")
            return 0

        if not await platform.store.exists():
            print(f"Database not found in {config.storage.data_dir}; run init first", file=sys.stderr)
            return 1

        if args.command == "stats":
            print(json.dumps(await cli.stats(), indent=2, sort_keys=True))
            return 0

        if args.command == "reconcile":
            summary = await cli.reconcile(args.limit)
            print(json.dumps(summary, indent=2, sort_keys=True))
            return 1 if summary["remaining"] else 0

        return 2
    finally:
        await platform.media_store.close()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the admin tool."""
    parser = argparse.ArgumentParser(description="StreamGraph admin tool")
    parser.add_argument("--data-dir", help="Database directory (overrides DATA_DIR)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the database schema")
    subparsers.add_parser("stats", help="Print row counts as JSON")

    reconcile_parser = subparsers.add_parser("reconcile", help="Retry pending reconciliations")
    reconcile_parser.add_argument(
        "--limit", type=int, default=100, help="Maximum entries to retry (default: 100)"
    )

    args = parser.parse_args(argv)

    try:
        code = asyncio.run(_run(args))
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
