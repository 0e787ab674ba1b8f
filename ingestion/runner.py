# ============================================================================
# File: ingestion/runner.py
# Description: Sync orchestrator for dates, partition directories and files
# ============================================================================
"""
Ingestion Runner - orchestrates fetch, resume and load per date.

This module provides the driver on top of the Record Loader with:
- Per-file resumption from persisted progress state
- Skipping of completed and empty files
- Periodic progress saves plus an unconditional save when a file ends
- Fail-fast (single date) or continue-on-error (date ranges) modes
- Error details with file path and date, sufficient to re-run safely
"""

import asyncio
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.config import settings
from core.exceptions import (
    CheckpointError,
    ConfigurationError,
    IngestionCancelled,
    PartitionSyncError,
)
from ingestion.extractors.s3_fetcher import S3PartitionFetcher
from ingestion.loaders.record_loader import RecordLoader
from ingestion.partitions import format_partition_date, iter_parquet_files, partition_dir
from ingestion.progress import ProgressStore, is_complete
from models.base import DatasetKind
from schemas.progress import ResumptionState

logger = logging.getLogger(__name__)


class IngestionRunner:
    """
    Sync orchestrator

    Responsibilities:
    - Ensure a date's partition is present locally (when a fetcher is configured)
    - Load blocks, then transactions, one file at a time
    - Control progress state advancement per file
    - Collect per-file and per-date outcomes
    """

    def __init__(
        self,
        db_session: AsyncSession,
        out_dir: Optional[str] = None,
        fetcher: Optional[S3PartitionFetcher] = None,
        loader: Optional[RecordLoader] = None,
        progress_store: Optional[ProgressStore] = None,
        save_interval: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.db = db_session
        self.out_dir = Path(out_dir or settings.OUT_DIR)
        self.fetcher = fetcher
        self.loader = loader or RecordLoader(db_session)
        self.progress = progress_store or ProgressStore()
        self.save_interval = save_interval or settings.STATUS_SAVE_INTERVAL
        self.cancel_event = cancel_event

    async def sync_file(self, file_path: Union[str, Path], dataset: Union[str, DatasetKind]) -> Dict[str, Any]:
        """
        Load one file, resuming from its persisted cursor.

        Args:
            file_path: Parquet file to load
            dataset: "blocks" or "transactions"

        Returns:
            Dictionary with file statistics:
            - status: "success" or "skipped"
            - file_path, dataset, start_row, cursor, total_rows
            - load: Loader summary (when loaded)

        Raises:
            ConfigurationError: If the dataset is unknown
            ETLException: Any loader failure, after the state has been saved
        """
        kind = _dataset_kind(dataset)
        path = str(file_path)

        try:
            state = self.progress.load(path)
        except CheckpointError as e:
            logger.warning(f"Failed to load status for {path}: {e}")
            state = ResumptionState()

        if is_complete(state):
            logger.info(
                f"Skipping already completed {kind.value} file: {path} "
                f"({state.cursor}/{state.total_rows} rows)"
            )
            return {
                "status": "skipped",
                "file_path": path,
                "dataset": kind.value,
                "start_row": state.cursor,
                "cursor": state.cursor,
                "total_rows": state.total_rows,
            }

        start_row = state.cursor
        if start_row > 0:
            logger.info(f"Resuming {kind.value} file: {path} from row {start_row}")
        else:
            logger.info(f"Loading {kind.value} file: {path}")

        reports = 0

        def on_progress(_path: str, cursor: int, total_rows: int) -> None:
            nonlocal reports
            state.cursor = cursor
            state.total_rows = total_rows
            reports += 1
            if reports % self.save_interval == 0:
                self.progress.save(path, state)

        try:
            if kind == DatasetKind.BLOCKS:
                summary = await self.loader.load_blocks(
                    path, start_row=start_row, on_progress=on_progress, cancel_event=self.cancel_event
                )
            else:
                summary = await self.loader.load_transactions(
                    path, start_row=start_row, on_progress=on_progress, cancel_event=self.cancel_event
                )
            state.total_rows = summary["total_rows"]
            state.cursor = summary["cursor"]
        finally:
            try:
                self.progress.save(path, state)
            except CheckpointError as e:
                logger.warning(f"Failed to save status for {path}: {e}")

        return {
            "status": "success",
            "file_path": path,
            "dataset": kind.value,
            "start_row": start_row,
            "cursor": state.cursor,
            "total_rows": state.total_rows,
            "load": summary,
        }

    async def sync_directory(
        self,
        directory: Union[str, Path],
        dataset: Union[str, DatasetKind],
        stop_on_error: bool = True,
    ) -> Dict[str, Any]:
        """
        Load every Parquet file below a directory, one at a time in sorted order.

        Args:
            directory: Partition directory to walk
            dataset: "blocks" or "transactions"
            stop_on_error: Propagate the first file failure instead of continuing

        Returns:
            Dictionary with directory statistics:
            - status: "success" or "partial_success"
            - files_total, files_loaded, files_skipped, files_empty, files_failed
            - errors: List of {file_path, dataset, error_type, error}
        """
        kind = _dataset_kind(dataset)
        root = Path(directory)

        result: Dict[str, Any] = {
            "status": "success",
            "dataset": kind.value,
            "directory": str(root),
            "files_total": 0,
            "files_loaded": 0,
            "files_skipped": 0,
            "files_empty": 0,
            "files_failed": 0,
            "errors": [],
        }

        if not root.is_dir():
            logger.warning(f"No {kind.value} directory found at {root}")
            return result

        files = iter_parquet_files(root)
        result["files_total"] = len(files)
        logger.info(f"Found {len(files)} {kind.value} files in {root}")

        for path in files:
            if path.stat().st_size == 0:
                logger.warning(f"Skipping empty file: {path}")
                result["files_empty"] += 1
                continue

            try:
                outcome = await self.sync_file(path, kind)
            except IngestionCancelled:
                raise
            except Exception as e:
                if stop_on_error:
                    raise
                error_detail = {
                    "file_path": str(path),
                    "dataset": kind.value,
                    "error_type": type(e).__name__,
                    "error": str(e),
                }
                result["errors"].append(error_detail)
                result["files_failed"] += 1
                logger.error(
                    f"Failed to load {kind.value} file {path}: {e}",
                    extra={"error_context": error_detail}
                )
                continue

            if outcome["status"] == "skipped":
                result["files_skipped"] += 1
            else:
                result["files_loaded"] += 1

        if result["files_failed"]:
            result["status"] = "partial_success"
        return result

    async def sync_date(self, day: date, stop_on_error: bool = True) -> Dict[str, Any]:
        """
        Fetch (if configured) and load one date: blocks first, then transactions.

        With ``stop_on_error`` the first failing file propagates. Otherwise all
        files are attempted and PartitionSyncError is raised at the end if any
        of them failed.

        Raises:
            DownloadError: If the partition cannot be fetched
            PartitionSyncError: If files failed in continue-on-error mode
        """
        date_str = format_partition_date(day)
        logger.info(f"--- Processing date: {date_str} ---")

        if self.fetcher is not None:
            await asyncio.to_thread(self.fetcher.ensure_partition, day)

        results = {}
        for kind in (DatasetKind.BLOCKS, DatasetKind.TRANSACTIONS):
            logger.info(f"Loading {kind.value} for date {date_str}...")
            results[kind.value] = await self.sync_directory(
                partition_dir(self.out_dir, kind.value, day), kind, stop_on_error=stop_on_error
            )

        errors = [error for result in results.values() for error in result["errors"]]
        if errors:
            raise PartitionSyncError(
                f"{len(errors)} file(s) failed for {date_str}",
                context={
                    "date": date_str,
                    "failed_files": [error["file_path"] for error in errors],
                    "errors": errors,
                },
            )

        return {"status": "success", "date": date_str, **results}

    async def sync_dates(self, days: List[date]) -> Dict[str, Any]:
        """
        Sync several dates, continuing past failed dates.

        Returns:
            Dictionary with run statistics:
            - status: "success", "partial_success" or "failed"
            - dates_total, dates_succeeded, dates_failed
            - results: Per-date results of successful dates
            - errors: Per-date error details (exception to_dict() where available)
        """
        summary: Dict[str, Any] = {
            "status": "success",
            "dates_total": len(days),
            "dates_succeeded": 0,
            "dates_failed": 0,
            "results": {},
            "errors": [],
        }

        for day in days:
            date_str = format_partition_date(day)
            try:
                summary["results"][date_str] = await self.sync_date(day, stop_on_error=False)
                summary["dates_succeeded"] += 1
            except IngestionCancelled:
                raise
            except Exception as e:
                summary["dates_failed"] += 1
                detail = e.to_dict() if hasattr(e, "to_dict") else {"error_type": type(e).__name__, "message": str(e)}
                detail["date"] = date_str
                summary["errors"].append(detail)
                logger.error(f"Error syncing date {date_str}: {e}")

        if summary["dates_failed"]:
            summary["status"] = "failed" if not summary["dates_succeeded"] else "partial_success"

        logger.info(
            f"Sync completed: {summary['status']} - "
            f"Dates: {summary['dates_total']}, Succeeded: {summary['dates_succeeded']}, "
            f"Failed: {summary['dates_failed']}"
        )
        return summary


def _dataset_kind(dataset: Union[str, DatasetKind]) -> DatasetKind:
    try:
        return DatasetKind(dataset)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown dataset: {dataset}",
            context={"dataset": str(dataset)},
            original_exception=e,
        )
