"""CLI entry point: sync, validate, scheduler, status."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Optional

from auth0_ingestion.config import IngestionConfig, load_config
from auth0_ingestion.db import Database
from auth0_ingestion.logging_config import configure_logging
from auth0_ingestion.providers.auth0 import Auth0Provider, validate_invocation

logger = logging.getLogger("ingestion.cli")


def _open_db(config: IngestionConfig) -> Optional[Database]:
    if config.database is None:
        logger.warning("No DATABASE_URL or PG_HOST configured, running dry")
        return None
    return Database(config.database)


def run_sync(config: IngestionConfig, db: Optional[Database]) -> dict[str, int]:
    """Validate once, then run every Auth0 step with run tracking."""
    api_client = validate_invocation(config)
    provider = Auth0Provider(config, db, api_client=api_client)
    return provider.sync_with_tracking()


def cmd_sync(args: argparse.Namespace) -> None:
    """Run one-shot sync."""
    config = load_config()
    db = _open_db(config)
    try:
        results = run_sync(config, db)
        logger.info("Sync results: %s", results)
    finally:
        if db is not None:
            db.close()


def cmd_validate(args: argparse.Namespace) -> None:
    """Check config and credentials without ingesting anything."""
    validate_invocation(load_config())
    print("Configuration and credentials OK.")


def cmd_scheduler(args: argparse.Namespace) -> None:
    """Start the APScheduler-based scheduling loop."""
    from auth0_ingestion.scheduler import start_scheduler

    config = load_config()
    db = _open_db(config)
    try:
        start_scheduler(config, db)
    finally:
        if db is not None:
            db.close()


def cmd_status(args: argparse.Namespace) -> None:
    """Show recent ingestion runs."""
    config = load_config()
    db = _open_db(config)
    if db is None:
        print("No database configured.")
        return

    try:
        runs = db.get_recent_runs(instance_id=config.instance_id, limit=args.limit)
        if not runs:
            print("No ingestion runs found.")
            return

        fmt = "{:<36}  {:<8}  {:<8}  {:<20}  {:<20}  {:>8}  {:>8}  {}"
        print(fmt.format(
            "RUN ID", "PROVIDER", "STATUS", "STARTED", "FINISHED",
            "ENTITIES", "RELS", "ERROR",
        ))
        print("-" * 140)
        for r in runs:
            started = str(r["started_at"])[:19] if r["started_at"] else ""
            finished = str(r["finished_at"])[:19] if r["finished_at"] else ""
            print(fmt.format(
                str(r["id"])[:36],
                r["provider"],
                r["status"],
                started,
                finished,
                r.get("entities_upserted") or 0,
                r.get("relationships_upserted") or 0,
                (r.get("error_message") or "")[:40],
            ))
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auth0-ingestion",
        description="Auth0 identity graph ingestion",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run one-shot sync")
    sync_parser.set_defaults(func=cmd_sync)

    validate_parser = subparsers.add_parser("validate", help="Verify config and credentials")
    validate_parser.set_defaults(func=cmd_validate)

    sched_parser = subparsers.add_parser("scheduler", help="Start scheduled sync loop")
    sched_parser.set_defaults(func=cmd_scheduler)

    status_parser = subparsers.add_parser("status", help="Show recent ingestion runs")
    status_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )
    status_parser.set_defaults(func=cmd_status)
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    args = build_parser().parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
