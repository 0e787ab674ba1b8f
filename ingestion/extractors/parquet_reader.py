"""
Parquet source reader with row-level seek
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Type, Union

import pyarrow as pa
import pyarrow.parquet as pq
from pydantic import BaseModel, ValidationError

from core.exceptions import SeekError, SourceFileError

logger = logging.getLogger(__name__)

# Rows decoded per pyarrow batch; independent of the loader's chunk size
DECODE_BATCH_SIZE = 1024


class ParquetRecordReader:
    """
    Read a Parquet file as validated pydantic records.

    Provides:
    - Declared row count from the file footer
    - Seeking to an arbitrary row (whole row groups are skipped unread)
    - Chunked reads of up to N records; an empty list means end of data

    Only the columns the record model declares are read. INT96 timestamps
    are decoded at microsecond precision. Any pyarrow, I/O or validation
    fault surfaces as SourceFileError carrying the file path and row.
    """

    def __init__(self, file_path: Union[str, Path], record_model: Type[BaseModel]):
        self.file_path = Path(file_path)
        self.record_model = record_model
        self._file: Optional[pq.ParquetFile] = None
        self._batches: Optional[Iterator[pa.RecordBatch]] = None
        self._pending: List[Dict[str, Any]] = []
        self._skip = 0
        self._position = 0
        self._columns: List[str] = []

    def open(self) -> "ParquetRecordReader":
        try:
            self._file = pq.ParquetFile(self.file_path, coerce_int96_timestamp_unit="us")
        except (pa.ArrowException, OSError) as e:
            raise SourceFileError(
                "Failed to open parquet file",
                context={"file_path": str(self.file_path)},
                original_exception=e,
            )

        available = set(self._file.schema_arrow.names)
        self._columns = [name for name in self.record_model.model_fields if name in available]
        self._reset(first_row_group=0, skip=0)
        self._position = 0
        return self

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
        self._file = None
        self._batches = None
        self._pending = []

    def __enter__(self) -> "ParquetRecordReader":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def total_rows(self) -> int:
        return self._require_open().metadata.num_rows

    @property
    def position(self) -> int:
        """Index of the next row read_chunk will return"""
        return self._position

    def seek_to_row(self, row: int) -> None:
        """
        Position the reader so the next read starts at ``row``.

        Seeking to ``total_rows`` is valid and leaves nothing to read.

        Raises:
            SeekError: If row is negative or beyond the declared row count
        """
        parquet_file = self._require_open()
        total = parquet_file.metadata.num_rows

        if row < 0 or row > total:
            raise SeekError(
                f"Failed to seek to row {row}",
                context={"file_path": str(self.file_path), "row": row, "total_rows": total},
            )

        skipped = 0
        group = 0
        num_groups = parquet_file.metadata.num_row_groups
        while group < num_groups:
            group_rows = parquet_file.metadata.row_group(group).num_rows
            if skipped + group_rows > row:
                break
            skipped += group_rows
            group += 1

        self._reset(first_row_group=group, skip=row - skipped)
        self._position = row

    def read_chunk(self, max_count: int) -> List[BaseModel]:
        """
        Read up to ``max_count`` records from the current position.

        Returns fewer records at the end of the file and an empty list once
        every row has been read.
        """
        self._require_open()

        try:
            while len(self._pending) < max_count and self._batches is not None:
                batch = next(self._batches, None)
                if batch is None:
                    self._batches = None
                    break
                rows = batch.to_pylist()
                if self._skip:
                    dropped = min(self._skip, len(rows))
                    rows = rows[dropped:]
                    self._skip -= dropped
                self._pending.extend(rows)
        except (pa.ArrowException, OSError) as e:
            raise SourceFileError(
                "Failed to read parquet file",
                context={"file_path": str(self.file_path), "row": self._position},
                original_exception=e,
            )

        raw_rows = self._pending[:max_count]
        self._pending = self._pending[max_count:]

        records = []
        for offset, raw in enumerate(raw_rows):
            try:
                records.append(self.record_model.model_validate(raw))
            except ValidationError as e:
                raise SourceFileError(
                    "Failed to decode parquet row",
                    context={"file_path": str(self.file_path), "row": self._position + offset},
                    original_exception=e,
                )

        self._position += len(records)
        return records

    def _reset(self, first_row_group: int, skip: int) -> None:
        parquet_file = self._require_open()
        row_groups = list(range(first_row_group, parquet_file.metadata.num_row_groups))
        self._pending = []
        self._skip = skip
        if not row_groups:
            self._batches = None
            return
        self._batches = parquet_file.iter_batches(
            batch_size=DECODE_BATCH_SIZE,
            row_groups=row_groups,
            columns=self._columns,
        )

    def _require_open(self) -> pq.ParquetFile:
        if self._file is None:
            raise SourceFileError(
                "Parquet file is not open",
                context={"file_path": str(self.file_path)},
            )
        return self._file
