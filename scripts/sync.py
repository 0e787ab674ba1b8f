"""
Script to sync Bitcoin partitions (download if needed, then load) for one or more dates
"""

import argparse
import asyncio
import signal
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import reload_settings, settings
from core.database import build_engine, build_session_maker
from core.exceptions import ETLException, IngestionCancelled
from core.logging import setup_logging
from ingestion.extractors.s3_fetcher import S3PartitionFetcher
from ingestion.partitions import resolve_dates
from ingestion.runner import IngestionRunner

logger = logging.getLogger("scripts.sync")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync Bitcoin Parquet partitions into the database")
    parser.add_argument("--date", help="Date to sync (YYYY-MM-DD)")
    parser.add_argument("--start", help="Start date for a date range (YYYY-MM-DD)")
    parser.add_argument("--end", help="End date for a date range (YYYY-MM-DD, inclusive)")
    parser.add_argument("--latest", action="store_true", help="Sync today's date (UTC)")
    parser.add_argument("--env-file", default=None, help="Read settings from this env file instead of .env")
    parser.add_argument("--skip-download", action="store_true", help="Only load files already present locally")
    return parser


def install_signal_handlers(cancel_event: asyncio.Event) -> None:
    """Set the cancellation token on SIGINT/SIGTERM so the current file checkpoints"""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
        except NotImplementedError:
            logger.warning(f"Cannot install handler for {sig.name} on this platform")


async def run_sync(args: argparse.Namespace) -> int:
    """Run the sync; returns the process exit code"""
    try:
        dates = resolve_dates(args.date, args.start, args.end, args.latest)
    except ETLException as e:
        logger.error(e.message)
        return 1

    cancel_event = asyncio.Event()
    install_signal_handlers(cancel_event)

    engine = build_engine()
    SessionLocal = build_session_maker(engine)

    try:
        async with SessionLocal() as session:
            fetcher = None if args.skip_download else S3PartitionFetcher()
            runner = IngestionRunner(session, fetcher=fetcher, cancel_event=cancel_event)

            if args.date or args.latest:
                await runner.sync_date(dates[0], stop_on_error=True)
                logger.info(f"Sync completed for {dates[0].isoformat()}")
                return 0

            result = await runner.sync_dates(dates)
            return 1 if result["dates_failed"] else 0

    except IngestionCancelled as e:
        logger.warning(f"Sync cancelled: {e}")
        return 1
    except ETLException as e:
        logger.error(f"Sync failed: {e}", extra={"error_context": e.to_dict()})
        return 1
    finally:
        await engine.dispose()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.env_file:
        reload_settings(args.env_file)
    setup_logging()
    logger.info(f"Syncing chain {settings.CHAIN} into {settings.ENVIRONMENT} database")
    return asyncio.run(run_sync(args))


if __name__ == "__main__":
    sys.exit(main())
