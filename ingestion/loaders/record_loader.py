# ============================================================================
# File: ingestion/loaders/record_loader.py
# Description: Resumable, batched loading of one Parquet file into the store
# ============================================================================
"""
Record Loader - streams one source file into its target tables.

A single skeleton drives both file kinds. What differs between blocks and
transactions is captured in a LoadPlan: the parent entity, the record model
and any child streams (transaction inputs and outputs) pulled out of each
parent. Per file the loader:

1. Opens the file and reads the declared row count
2. Seeks to the resume row (a seek failure is fatal, never retried)
3. Reads chunks of ``batch_size`` parents and flattens them into buffers
4. Writes every full buffer through a reusable prepared statement
5. Reports a safe cursor after each round that committed anything
6. Writes leftovers with direct statements once the file is exhausted

The reported cursor only covers parent rows whose own row and all of whose
children are committed, so resuming from any reported value never skips data.
"""

import asyncio
import inspect
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import IngestionCancelled
from ingestion.batching import BatchBuffer, BufferedRow
from ingestion.extractors.parquet_reader import ParquetRecordReader
from ingestion.loaders import entities
from ingestion.loaders.entities import Entity, Row
from ingestion.loaders.postgres_loader import PreparedBatch, SQLBatchWriter
from ingestion.partitions import partition_date_for_file
from ingestion.retry import retry_with_backoff
from schemas.records import Block, Transaction

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], Any]


@dataclass(frozen=True)
class ChildPlan:
    """One child stream pulled out of each parent record"""
    entity: Entity
    items: Callable[[Any], Sequence[Any]]
    flatten: Callable[[date, Any, int, Any], Row]
    batch_size: int


@dataclass(frozen=True)
class LoadPlan:
    """Everything that differs between loading blocks and transactions"""
    entity: Entity
    record_model: Type[BaseModel]
    flatten: Callable[[date, Any], Row]
    batch_size: int
    children: Tuple[ChildPlan, ...] = ()


@dataclass
class _Stream:
    entity: Entity
    buffer: BatchBuffer
    prepared: Optional[PreparedBatch] = None
    rows_written: int = 0
    batches_written: int = 0
    direct_writes: int = 0

    def stats(self) -> Dict[str, int]:
        return {
            "rows_written": self.rows_written,
            "batches_written": self.batches_written,
            "direct_writes": self.direct_writes,
        }


def block_plan(batch_size: Optional[int] = None) -> LoadPlan:
    return LoadPlan(
        entity=entities.BLOCKS,
        record_model=Block,
        flatten=entities.flatten_block,
        batch_size=batch_size or settings.BLOCK_BATCH_SIZE,
    )


def transaction_plan(
    batch_size: Optional[int] = None,
    input_batch_size: Optional[int] = None,
    output_batch_size: Optional[int] = None,
) -> LoadPlan:
    return LoadPlan(
        entity=entities.TRANSACTIONS,
        record_model=Transaction,
        flatten=entities.flatten_transaction,
        batch_size=batch_size or settings.TRANSACTION_BATCH_SIZE,
        children=(
            ChildPlan(
                entity=entities.TRANSACTION_INPUTS,
                items=lambda tx: tx.inputs,
                flatten=entities.flatten_input,
                batch_size=input_batch_size or settings.INPUT_BATCH_SIZE,
            ),
            ChildPlan(
                entity=entities.TRANSACTION_OUTPUTS,
                items=lambda tx: tx.outputs,
                flatten=entities.flatten_output,
                batch_size=output_batch_size or settings.OUTPUT_BATCH_SIZE,
            ),
        ),
    )


class RecordLoader:
    """
    Load Parquet files of blocks or transactions with resume support.

    Ensures:
    - Idempotent writes (natural-key conflicts are skipped)
    - Bounded retry with linear backoff around every store operation
    - Reported cursors never run ahead of committed rows
    - Prepared statements are released on every exit path
    """

    def __init__(
        self,
        db_session: AsyncSession,
        writer: Optional[SQLBatchWriter] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        reader_factory: Callable[..., ParquetRecordReader] = ParquetRecordReader,
    ):
        self.db = db_session
        self.writer = writer or SQLBatchWriter(db_session)
        self.max_retries = max_retries if max_retries is not None else settings.MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.RETRY_DELAY_SECONDS
        self.sleep = sleep
        self.reader_factory = reader_factory

    async def load_blocks(
        self,
        file_path: Union[str, Path],
        start_row: int = 0,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        batch_size: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Load a block file into btc_blocks"""
        return await self.load_file(
            block_plan(batch_size), file_path, start_row, on_progress, cancel_event
        )

    async def load_transactions(
        self,
        file_path: Union[str, Path],
        start_row: int = 0,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        batch_size: Optional[int] = None,
        input_batch_size: Optional[int] = None,
        output_batch_size: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Load a transaction file into btc_transactions and its input/output tables"""
        plan = transaction_plan(batch_size, input_batch_size, output_batch_size)
        return await self.load_file(plan, file_path, start_row, on_progress, cancel_event)

    async def load_file(
        self,
        plan: LoadPlan,
        file_path: Union[str, Path],
        start_row: int = 0,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        partition_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Load one source file according to a plan.

        Args:
            plan: Parent entity, record model and child streams
            file_path: Parquet file to read
            start_row: Number of leading rows already committed
            on_progress: Called as ``(file_path, cursor, total_rows)`` after
                each round that wrote anything and after the final flush
            cancel_event: When set, loading stops before the next read
            partition_date: Overrides the date derived from the file location

        Returns:
            Dictionary with load statistics:
            - status: "success"
            - file_path, partition_date, total_rows, start_row
            - cursor: Final safe cursor
            - rows_read: Parent rows read from the file
            - entities: Per entity rows/batches/direct writes

        Raises:
            ConfigurationError: If no partition date can be derived
            SourceFileError: If the file cannot be opened or decoded
            SeekError: If the reader cannot be positioned at start_row
            RetryExhaustedError: If a store operation keeps failing
            IngestionCancelled: If cancel_event is set between reads
        """
        path = str(file_path)
        name = Path(path).name
        record_date = partition_date or partition_date_for_file(path)

        parent = _Stream(plan.entity, BatchBuffer(plan.batch_size))
        children = [(child, _Stream(child.entity, BatchBuffer(child.batch_size))) for child in plan.children]
        streams = [parent] + [stream for _, stream in children]

        rows_read = 0
        cursor = start_row

        with ExitStack() as stack:
            reader = self.reader_factory(path, plan.record_model)
            stack.enter_context(reader)
            stack.callback(self._release, streams)

            total_rows = reader.total_rows

            if start_row > 0:
                reader.seek_to_row(start_row)
                logger.info(f"Resuming from row {start_row}/{total_rows} in {name}")

            while True:
                if cancel_event is not None and cancel_event.is_set():
                    raise IngestionCancelled(
                        "Ingestion cancelled",
                        context={"file_path": path, "cursor": cursor, "total_rows": total_rows},
                    )

                records = reader.read_chunk(plan.batch_size)
                if not records:
                    break

                for offset, record in enumerate(records):
                    source_row = start_row + rows_read + offset
                    parent.buffer.append(source_row, plan.flatten(record_date, record))
                    for child, stream in children:
                        for ordinal, item in enumerate(child.items(record)):
                            stream.buffer.append(source_row, child.flatten(record_date, record, ordinal, item))
                rows_read += len(records)

                wrote = False
                for stream in streams:
                    wrote = await self._write_full_batches(stream) or wrote

                if wrote:
                    cursor = self._safe_cursor(start_row, parent, children)
                    logger.info(
                        f"Inserted {plan.entity.name} batches from {name} "
                        f"(total: {cursor}/{total_rows})"
                    )
                    await self._report(on_progress, path, cursor, total_rows)

                if len(records) < plan.batch_size:
                    break

            flushed = False
            for stream in streams:
                flushed = await self._flush(stream) or flushed

            if flushed:
                cursor = self._safe_cursor(start_row, parent, children)
                logger.info(
                    f"Inserted remaining {plan.entity.name} rows from {name} "
                    f"(total: {cursor}/{total_rows})"
                )
                await self._report(on_progress, path, cursor, total_rows)

        return {
            "status": "success",
            "file_path": path,
            "partition_date": record_date.isoformat(),
            "total_rows": total_rows,
            "start_row": start_row,
            "cursor": cursor,
            "rows_read": rows_read,
            "entities": {stream.entity.name: stream.stats() for stream in streams},
        }

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def _retry(self, operation, label: str):
        return await retry_with_backoff(
            operation,
            label,
            max_attempts=self.max_retries,
            base_delay=self.retry_delay,
            sleep=self.sleep,
        )

    async def _write_full_batches(self, stream: _Stream) -> bool:
        wrote = False
        while True:
            batch = stream.buffer.take_full()
            if batch is None:
                return wrote

            if stream.prepared is None:
                stream.prepared = await self._retry(
                    lambda: self.writer.prepare_batch(stream.entity, stream.buffer.capacity),
                    f"prepare {stream.entity.name} statement",
                )

            rows = _values(batch)
            await self._retry(
                lambda: self.writer.execute_prepared(stream.prepared, rows),
                f"{stream.entity.name} batch insert",
            )
            stream.rows_written += len(rows)
            stream.batches_written += 1
            wrote = True

    async def _flush(self, stream: _Stream) -> bool:
        rows = _values(stream.buffer.drain())
        if not rows:
            return False
        await self._retry(
            lambda: self.writer.execute_direct(stream.entity, rows),
            f"{stream.entity.name} direct insert",
        )
        stream.rows_written += len(rows)
        stream.direct_writes += 1
        return True

    @staticmethod
    def _release(streams: List[_Stream]) -> None:
        for stream in streams:
            if stream.prepared is not None:
                stream.prepared.close()
                stream.prepared = None

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_cursor(start_row: int, parent: _Stream, children: List[Tuple[ChildPlan, _Stream]]) -> int:
        cursor = start_row + parent.rows_written
        for _, stream in children:
            pending = stream.buffer.oldest_source_row()
            if pending is not None:
                cursor = min(cursor, pending)
        return cursor

    @staticmethod
    async def _report(on_progress: Optional[ProgressCallback], path: str, cursor: int, total_rows: int) -> None:
        if on_progress is None:
            return
        try:
            result = on_progress(path, cursor, total_rows)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Progress callback failed for {path}: {e}")


def _values(batch: Sequence[BufferedRow]) -> List[Row]:
    return [row.values for row in batch]
