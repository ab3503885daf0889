#!/usr/bin/env python3
"""
Blocks Analytics - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
This is the ONE executable entry point for the pipeline.

- Applies ClickHouse migrations
- Streams blocks from the chain-sync relay (when OGMIOS_URL is set)
- Serves the dashboard API and live websocket
- Handles SIGINT/SIGTERM gracefully

============================================================
USAGE
============================================================
Direct execution:
    python app.py

Schema only:
    python app.py --migrate-only

Feed without the API:
    OGMIOS_URL=ws://relay:1337 python app.py --no-dashboard

============================================================
"""

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from typing import List, Optional

import uvicorn

from core.logging_config import setup_logging
from core.settings import AppSettings, load_settings
from dashboard.main import create_app
from dashboard.services import BlockAnalyticsService
from data_ingestion.feeds import WebSocketBlockFeed
from data_ingestion.ingestion_service import BlockIngestionService
from data_ingestion.normalizers import BlockNormalizer
from realtime.block_window import BlockWindow
from realtime.broadcaster import LiveBroadcaster
from storage.clickhouse import ClickHouseClient
from storage.migrations import apply_migrations
from storage.repositories import BlockRepository, SchemaError


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="blocks-analytics",
        description="Cardano block ingestion and analytics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Feed (if configured) + dashboard
  %(prog)s --migrate-only           # Create the blocks table and exit
  %(prog)s --no-dashboard           # Feed only
  %(prog)s --log-format json        # One JSON object per log line
        """
    )

    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        metavar="PATH",
        help="Read environment from this file (default: .env if present)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override LOG_LEVEL",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["text", "json"],
        default=None,
        help="Override LOG_FORMAT",
    )

    # --------------------------------------------------------
    # Runtime Options
    # --------------------------------------------------------
    runtime_group = parser.add_argument_group("Runtime Options")

    runtime_group.add_argument(
        "--no-dashboard",
        action="store_true",
        help="Do not start the HTTP API",
    )

    runtime_group.add_argument(
        "--migrate-only",
        action="store_true",
        help="Apply migrations and exit",
    )

    return parser


# ============================================================
# WIRING
# ============================================================

@dataclass
class Runtime:
    """Everything the process wires together."""
    settings: AppSettings
    client: ClickHouseClient
    repository: BlockRepository
    window: BlockWindow
    broadcaster: LiveBroadcaster
    ingestion: BlockIngestionService
    analytics: BlockAnalyticsService
    feed: Optional[WebSocketBlockFeed] = None


def build_runtime(settings: AppSettings) -> Runtime:
    client = ClickHouseClient(settings.clickhouse)
    repository = BlockRepository(client, table=settings.clickhouse.table)
    window = BlockWindow(settings.window_capacity)
    broadcaster = LiveBroadcaster()
    ingestion = BlockIngestionService(
        normalizer=BlockNormalizer(),
        window=window,
        repository=repository,
        broadcaster=broadcaster,
    )

    feed = None
    if settings.feed.enabled:
        feed = WebSocketBlockFeed(
            settings.feed.ws_url,
            ingestion,
            reconnect_attempts=settings.feed.reconnect_attempts,
            heartbeat_interval_seconds=settings.feed.heartbeat_interval_seconds,
        )

    return Runtime(
        settings=settings,
        client=client,
        repository=repository,
        window=window,
        broadcaster=broadcaster,
        ingestion=ingestion,
        analytics=BlockAnalyticsService(repository, client),
        feed=feed,
    )


# ============================================================
# MAIN FUNCTION
# ============================================================

async def run_application(args, settings: AppSettings) -> int:
    """
    Run the pipeline until the feed ends or the process is stopped.

    Returns:
        Exit code
    """
    logger = logging.getLogger(__name__)
    runtime = build_runtime(settings)

    try:
        if settings.run_migrations or args.migrate_only:
            try:
                applied = await apply_migrations(
                    runtime.client,
                    settings.clickhouse.table,
                    settings.clickhouse.table_settings,
                )
                logger.info(f"Migrations applied: {', '.join(applied) or 'none'}")
            except SchemaError as e:
                logger.error(f"Migrations failed: {e}")
                if args.migrate_only:
                    return 1
                # Ingestion keeps running without the store
                logger.warning("Continuing without a verified schema")

        if args.migrate_only:
            return 0

        tasks: List[asyncio.Task] = []

        if runtime.feed is not None:
            tasks.append(asyncio.create_task(runtime.feed.run(), name="feed"))
        else:
            logger.warning("OGMIOS_URL not set, live feed disabled")

        if not args.no_dashboard:
            app = create_app(
                runtime.analytics,
                runtime.window,
                runtime.broadcaster,
                ingestion=runtime.ingestion,
            )
            server = uvicorn.Server(uvicorn.Config(
                app,
                host=settings.dashboard_host,
                port=settings.dashboard_port,
                log_config=None,
            ))
            tasks.append(asyncio.create_task(server.serve(), name="dashboard"))
        elif runtime.feed is not None:
            _install_signal_handlers(runtime.feed)

        if not tasks:
            logger.warning("Nothing to run: no feed configured and dashboard disabled")
            return 0

        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

        if runtime.feed is not None:
            await runtime.feed.stop()
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        exit_code = 0
        for task in done:
            if task.exception() is not None:
                logger.error(f"{task.get_name()} stopped with error: {task.exception()}")
                exit_code = 1
        return exit_code

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    finally:
        await runtime.client.close()
        logger.info(f"Shutdown complete. Ingestion: {runtime.ingestion.get_metrics().to_dict()}")


def _install_signal_handlers(feed: WebSocketBlockFeed) -> None:
    """Stop the feed on SIGINT/SIGTERM (Unix only)."""
    if sys.platform == "win32":
        return
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: asyncio.ensure_future(feed.stop()))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = load_settings(args.env_file)
    logger = setup_logging(
        level=args.log_level or settings.log_level,
        log_format=args.log_format or settings.log_format,
    )
    logger.info(
        f"Starting blocks analytics (store={settings.clickhouse.url}, "
        f"database={settings.clickhouse.database}, window={settings.window_capacity})"
    )

    return asyncio.run(run_application(args, settings))


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
