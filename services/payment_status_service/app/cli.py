#!/usr/bin/env python3
"""Apply the payment status schema from the command line.

Runs the two idempotent steps (UUID extension, then tables and indexes) in a
single transaction against the configured database. With ``--dry-run`` the
PostgreSQL DDL is printed instead and no connection is opened. Database errors
are reported verbatim and the process exits with status 1; re-running after
fixing the cause is safe.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError

from services.common import ServiceSettings, configure_logging, create_engine_from_settings, dispose_engines, get_settings

from .schema import DEFAULT_DATABASE_URL, apply_schema, iter_ddl


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the websocket_connections and payment_events tables")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: SERVICE_DATABASE_URL or %s)" % DEFAULT_DATABASE_URL,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the PostgreSQL DDL without executing it",
    )
    return parser.parse_args(argv)


async def _run(settings: ServiceSettings) -> None:
    engine = create_engine_from_settings(settings, DEFAULT_DATABASE_URL)
    try:
        await apply_schema(engine)
    finally:
        await dispose_engines()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if args.dry_run:
        for statement in iter_ddl():
            print(f"{statement};")
        return 0

    settings = get_settings()
    if args.database_url:
        settings = settings.model_copy(update={"database_url": args.database_url})
    configure_logging(settings)
    try:
        asyncio.run(_run(settings))
    except SQLAlchemyError as exc:
        print(f"Schema application failed: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
