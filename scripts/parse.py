"""
Script to print the decoded records of local Bitcoin partitions (debugging aid)
"""

import argparse
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import reload_settings, settings
from core.exceptions import ETLException
from core.logging import setup_logging
from ingestion.extractors.parquet_reader import ParquetRecordReader
from ingestion.partitions import iter_parquet_files, partition_dir, resolve_dates
from models.base import DatasetKind
from schemas.records import Block, Transaction

logger = logging.getLogger("scripts.parse")

RECORD_MODELS = {
    DatasetKind.BLOCKS: Block,
    DatasetKind.TRANSACTIONS: Transaction,
}


def print_directory(directory, kind: DatasetKind, chunk_size: int) -> None:
    if not directory.is_dir():
        print(f"{kind.value.capitalize()} directory does not exist: {directory}")
        return

    for path in iter_parquet_files(directory):
        if path.stat().st_size == 0:
            print(f"Skipping empty file: {path}")
            continue
        print(f"\n--- {path} ---")
        with ParquetRecordReader(path, RECORD_MODELS[kind]) as reader:
            print(f"Total rows: {reader.total_rows}")
            while True:
                records = reader.read_chunk(chunk_size)
                if not records:
                    break
                for record in records:
                    print(record.model_dump_json(indent=2))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Print records from local Bitcoin Parquet partitions")
    parser.add_argument("--date", help="Date to parse (YYYY-MM-DD)")
    parser.add_argument("--start", help="Start date for a date range (YYYY-MM-DD)")
    parser.add_argument("--end", help="End date for a date range (YYYY-MM-DD, inclusive)")
    parser.add_argument("--env-file", default=None, help="Read settings from this env file instead of .env")
    args = parser.parse_args(argv)

    if args.env_file:
        reload_settings(args.env_file)
    setup_logging()

    try:
        dates = resolve_dates(args.date, args.start, args.end)
    except ETLException as e:
        logger.error(e.message)
        return 1

    exit_code = 0
    for day in dates:
        print(f"\n=== Processing date: {day.isoformat()} ===")
        for kind in (DatasetKind.BLOCKS, DatasetKind.TRANSACTIONS):
            try:
                print_directory(partition_dir(settings.OUT_DIR, kind.value, day), kind, settings.BLOCK_BATCH_SIZE)
            except ETLException as e:
                # Continue with the next dataset / date
                logger.error(f"Error parsing {kind.value} for date {day.isoformat()}: {e}")
                exit_code = 1
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
