"""
Script to download Bitcoin partitions from the AWS public blockchain bucket
"""

import argparse
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import reload_settings
from core.exceptions import ETLException
from core.logging import setup_logging
from ingestion.extractors.s3_fetcher import S3PartitionFetcher
from ingestion.partitions import resolve_dates

logger = logging.getLogger("scripts.download")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Download Bitcoin Parquet partitions")
    parser.add_argument("--date", help="Date to download (YYYY-MM-DD)")
    parser.add_argument("--start", help="Start date for a date range (YYYY-MM-DD)")
    parser.add_argument("--end", help="End date for a date range (YYYY-MM-DD, inclusive)")
    parser.add_argument("--dry-run", action="store_true", help="List what would be downloaded")
    parser.add_argument("--env-file", default=None, help="Read settings from this env file instead of .env")
    args = parser.parse_args(argv)

    if args.env_file:
        reload_settings(args.env_file)
    setup_logging()

    try:
        dates = resolve_dates(args.date, args.start, args.end)
        fetcher = S3PartitionFetcher(dry_run=True if args.dry_run else None)
        for day in dates:
            counts = fetcher.ensure_partition(day)
            logger.info(f"{day.isoformat()}: {counts}")
    except ETLException as e:
        logger.error(f"Download failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
