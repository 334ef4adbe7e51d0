"""CLI entry point: sync, scheduler, status, zip, init-db."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import os
from pathlib import Path
from typing import Optional

from catalog_sync.base_provider import BaseEntityProvider
from catalog_sync.config import CatalogSyncConfig, load_config
from catalog_sync.connections import DatabaseEntityConnection, StdoutEntityConnection
from catalog_sync.db import Database
from catalog_sync.logging_config import configure_logging

logger = logging.getLogger("catalog_sync.cli")

PROVIDER_REGISTRY: dict[str, tuple[str, str, str]] = {
    # name -> (config_attr, module_path, class_name)
    "okta_group": ("okta", "catalog_sync.providers.okta_group", "OktaGroupEntityProvider"),
}

PROVIDER_CHOICES = ["all", *PROVIDER_REGISTRY]


def _get_provider(name: str, config: CatalogSyncConfig) -> Optional[BaseEntityProvider]:
    """Instantiate a provider by name. Returns None if unconfigured."""
    entry = PROVIDER_REGISTRY.get(name)
    if not entry:
        return None

    config_attr, module_path, class_name = entry
    provider_config = getattr(config, config_attr, None)
    if not provider_config:
        logger.warning("%s not configured, skipping", name)
        return None

    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls.from_config(provider_config)


def _connected_provider(
    name: str, config: CatalogSyncConfig, db: Database
) -> Optional[BaseEntityProvider]:
    provider = _get_provider(name, config)
    if provider is not None:
        provider.connect(
            DatabaseEntityConnection(db, provider.get_provider_name(), config.batch_size)
        )
    return provider


def _selected(provider: str) -> list[str]:
    return list(PROVIDER_REGISTRY) if provider == "all" else [provider]


def cmd_sync(args: argparse.Namespace) -> None:
    """Run one pass for the specified provider(s)."""
    config = load_config()

    if args.dry_run:
        for name in _selected(args.provider):
            provider = _get_provider(name, config)
            if provider is None:
                continue
            provider.connect(StdoutEntityConnection())
            asyncio.run(provider.run())
        return

    db = Database(config.database)
    try:
        for name in _selected(args.provider):
            provider = _connected_provider(name, config, db)
            if provider is None:
                continue
            logger.info("Starting sync for %s", name)
            count = asyncio.run(provider.run_with_tracking(db))
            logger.info("Sync for %s submitted %d entities", name, count)
    finally:
        db.close()


def cmd_scheduler(args: argparse.Namespace) -> None:
    """Start the APScheduler-based scheduling loop."""
    from catalog_sync.scheduler import start_scheduler

    config = load_config()
    db = Database(config.database)
    try:
        start_scheduler(config, db)
    finally:
        db.close()


def cmd_status(args: argparse.Namespace) -> None:
    """Show recent ingestion runs."""
    config = load_config()
    db = Database(config.database)

    try:
        runs = db.get_recent_runs(
            provider=args.provider if args.provider != "all" else None,
            limit=args.limit,
        )
        if not runs:
            print("No ingestion runs found.")
            return

        fmt = "{:<36}  {:<12}  {:<8}  {:<20}  {:<20}  {:>8}  {}"
        print(fmt.format(
            "RUN ID", "PROVIDER", "STATUS", "STARTED", "FINISHED", "ENTITIES", "ERROR",
        ))
        print("-" * 130)
        for r in runs:
            started = str(r["started_at"])[:19] if r["started_at"] else ""
            finished = str(r["finished_at"])[:19] if r["finished_at"] else ""
            error = (r.get("error_message") or "")[:40]
            print(fmt.format(
                str(r["id"])[:36],
                r["provider"],
                r["status"],
                started,
                finished,
                r.get("entities_submitted") or 0,
                error,
            ))
    finally:
        db.close()


def cmd_init_db(args: argparse.Namespace) -> None:
    """Create the catalog tables if they do not exist."""
    config = load_config()
    db = Database(config.database)
    try:
        db.ensure_schema()
        logger.info("Schema ready")
    finally:
        db.close()


def cmd_zip(args: argparse.Namespace) -> None:
    """Run the zip scaffolder action against a local directory."""
    from catalog_sync.scaffolder import builtin_actions

    action = builtin_actions()["roadiehq:utils:zip"]
    outputs = asyncio.run(action.execute(Path(args.workspace), {"path": args.path}))
    print(json.dumps(outputs))


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    parser = argparse.ArgumentParser(
        prog="catalog-sync",
        description="Software catalog integrations: Okta group sync and scaffolder actions",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run one sync pass")
    sync_parser.add_argument(
        "--provider", "-p",
        choices=PROVIDER_CHOICES,
        default="all",
        help="Provider to sync (default: all)",
    )
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the mutation as JSON instead of writing to the database",
    )
    sync_parser.set_defaults(func=cmd_sync)

    sched_parser = subparsers.add_parser("scheduler", help="Start scheduled sync loop")
    sched_parser.set_defaults(func=cmd_scheduler)

    status_parser = subparsers.add_parser("status", help="Show recent ingestion runs")
    status_parser.add_argument(
        "--provider", "-p",
        choices=PROVIDER_CHOICES,
        default="all",
        help="Filter by provider",
    )
    status_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )
    status_parser.set_defaults(func=cmd_status)

    init_parser = subparsers.add_parser("init-db", help="Create catalog tables")
    init_parser.set_defaults(func=cmd_init_db)

    zip_parser = subparsers.add_parser("zip", help="Zip a workspace directory")
    zip_parser.add_argument("--workspace", "-w", default=".", help="Workspace directory")
    zip_parser.add_argument("--path", required=True, help="Archive path, relative to the workspace")
    zip_parser.set_defaults(func=cmd_zip)

    args = parser.parse_args(argv)
    args.func(args)
