"""
Command-line entry point for the community event aggregator.

Run with: python -m servers.community_events <command>

Commands:
    run-once --lat LAT --lon LON   Run one aggregation pass and print the summary
    run-community --community-id ID --lat LAT --lon LON
                                   Scrape for one community and print the count
    serve                          Start the scheduler until interrupted
    status                         Print the current scraping status
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

import structlog

from .config.settings import load_config
from .errors import ConfigError
from .models import Coordinates
from .orchestrator import EventOrchestrator
from .persistence import InMemoryEventGateway
from .scheduler import EventScrapingScheduler
from .sources import build_default_adapters

logger = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Console logging with structlog key/value rendering."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m servers.community_events",
        description="Aggregate community events from external providers",
    )
    parser.add_argument("--seed", help="JSON file with communities, users and events")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_once = subparsers.add_parser("run-once", help="Run one aggregation pass")
    run_once.add_argument("--lat", type=float, required=True, help="Reference latitude")
    run_once.add_argument("--lon", type=float, required=True, help="Reference longitude")

    run_community = subparsers.add_parser("run-community", help="Scrape for a single community")
    run_community.add_argument("--community-id", type=int, required=True, help="Community id")
    run_community.add_argument("--lat", type=float, required=True, help="Reference latitude")
    run_community.add_argument("--lon", type=float, required=True, help="Reference longitude")

    subparsers.add_parser("serve", help="Start the periodic scheduler")
    subparsers.add_parser("status", help="Show scraping status")
    return parser


def build_scheduler(seed: Optional[str]) -> EventScrapingScheduler:
    config = load_config()
    gateway = InMemoryEventGateway.from_json(seed) if seed else InMemoryEventGateway()
    orchestrator = EventOrchestrator(gateway, build_default_adapters(config), config=config)
    return EventScrapingScheduler(orchestrator, gateway, config=config)


async def serve(scheduler: EventScrapingScheduler) -> None:
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()
        await scheduler.wait_for_runs()


async def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        scheduler = build_scheduler(args.seed)
    except ConfigError as e:
        for problem in e.problems:
            print(f"Config error: {problem}", file=sys.stderr)
        return 2

    if args.command == "run-once":
        summary = await scheduler.trigger_manual_scraping(Coordinates(lat=args.lat, lon=args.lon))
        print(json.dumps({
            "total_events": summary.total_events,
            "communities_updated": summary.communities_updated,
            "errors": summary.errors,
            "used_fallback": summary.used_fallback,
            "sources": summary.source_breakdown(),
            "health": summary.health.get("summary", {}),
            "open_circuits": summary.open_circuits(),
        }, indent=2))
    elif args.command == "run-community":
        created = await scheduler.trigger_community_scraping(
            args.community_id, Coordinates(lat=args.lat, lon=args.lon)
        )
        print(json.dumps({"community_id": args.community_id, "total_events": created}, indent=2))
    elif args.command == "status":
        status = await scheduler.get_scraping_status()
        print(status.model_dump_json(indent=2))
    elif args.command == "serve":
        await serve(scheduler)
    return 0


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("shutdown_requested")


if __name__ == "__main__":
    cli()
