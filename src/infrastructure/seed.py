"""Seed synthetic drive items into the documents table.

    python -m src.infrastructure.seed --app-id A1 --limit 25 --set type=video

Logging is configured from Settings (LOG_LEVEL / LOG_FILE) before anything
touches the database.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import Any

from src.domain.models.envelope import Result
from src.infrastructure.database import AsyncSessionLocal
from src.infrastructure.logging_config import configure_logging
from src.infrastructure.persistence.resources import get_resources
from src.infrastructure.settings import Settings
from src.infrastructure.settings import settings as default_settings

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resource-seed",
        description="Insert synthetic drive items for one app scope.",
    )
    parser.add_argument("--app-id", required=True, help="Scope the documents are created in")
    parser.add_argument("--limit", type=int, default=10, help="Number of documents (default 10)")
    parser.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="FIELD",
        help="Field to leave out of every document (repeatable)",
    )
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="FIELD=VALUE",
        dest="values",
        help="Fixed value for a field on every document (repeatable)",
    )
    return parser


def parse_values(pairs: Sequence[str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for pair in pairs:
        field, sep, value = pair.partition("=")
        if not sep or not field:
            raise ValueError(f"expected FIELD=VALUE, got {pair!r}")
        values[field] = value
    return values


async def seed(
    app_id: str,
    limit: int,
    ignored_fields: Sequence[str] = (),
    custom_values: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> Result:
    """Generate and commit `limit` drive items in one transaction."""
    async with AsyncSessionLocal() as session:
        resources = get_resources(session, app_id, settings)
        result = await resources.drive_items.generate_dummy_data(
            ignored_fields, custom_values, limit=limit
        )
        if result.is_success:
            await session.commit()
        else:
            await session.rollback()
        return result


def main(argv: Sequence[str] | None = None, settings: Settings | None = None) -> int:
    settings = settings or default_settings
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        custom_values = parse_values(args.values)
    except ValueError as exc:
        parser.error(str(exc))
    if args.limit < 1:
        parser.error("--limit must be at least 1")

    configure_logging(settings.log_level, settings.log_file)
    result = asyncio.run(seed(args.app_id, args.limit, args.ignore, custom_values, settings))
    if not result.is_success:
        logger.error("Seeding app %s failed: %s", args.app_id, result.message)
        return 1
    logger.info("Seeded %d drive items for app %s", len(result.data), args.app_id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
