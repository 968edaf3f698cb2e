"""Console entry point for the Genie client."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

import structlog

from .client import GenieClient
from .config import Settings
from .resort import Resort, load_resort


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog + stdlib logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


LOGGER = structlog.get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Inspect Lightning Lane bookings and experiences.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("bookings", help="Print the normalized itinerary for today.")
    experiences = commands.add_parser("experiences", help="Print a park's experiences.")
    experiences.add_argument("park_id", help="Park id from the reference catalog.")
    return parser.parse_args(argv)


async def run(settings: Settings, resort: Resort, args: argparse.Namespace) -> list:
    client = GenieClient(settings, resort)
    if args.command == "bookings":
        return [asdict(booking) for booking in await client.bookings()]
    park = resort.park(args.park_id)
    return [asdict(exp) for exp in await client.experiences(park)]


def cli(argv: Optional[List[str]] = None) -> None:
    """Console script entrypoint."""
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = Settings()
        resort = load_resort(settings.catalog_path) if settings.catalog_path else Resort(settings.resort, [], [])
    except Exception as exc:  # pragma: no cover - startup validation
        LOGGER.exception("settings.error", error=str(exc))
        raise SystemExit(2) from exc

    try:
        result = asyncio.run(run(settings, resort, args))
    except Exception as exc:  # pragma: no cover - top level
        LOGGER.exception("cli.failed", error=str(exc))
        raise SystemExit(1) from exc

    print(json.dumps(result, indent=2, default=_json_default))


def _json_default(value):
    """Serialise enums and pydantic sub-models found in bookings/experiences."""
    if hasattr(value, "model_dump"):
        return value.model_dump()
    if hasattr(value, "value"):
        return value.value
    return str(value)


if __name__ == "__main__":  # pragma: no cover
    cli()
