"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import AsyncGenerator, List, Optional
import pyarrow as pa
import pyarrow.parquet as pq
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from models.base import Base
from core.exceptions import DatabaseError
from ingestion.loaders.postgres_loader import PreparedBatch

PARTITION_DATE = "2024-01-01"


# ============================================================================
# Database
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine with all tables"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


# ============================================================================
# Parquet fixtures
# ============================================================================

BLOCK_SCHEMA = pa.schema([
    ("date", pa.string()),
    ("hash", pa.string()),
    ("size", pa.int64()),
    ("stripped_size", pa.int64()),
    ("weight", pa.int64()),
    ("number", pa.int64()),
    ("version", pa.int32()),
    ("merkle_root", pa.string()),
    ("timestamp", pa.timestamp("us")),
    ("nonce", pa.int64()),
    ("bits", pa.string()),
    ("coinbase_param", pa.string()),
    ("transaction_count", pa.int64()),
    ("mediantime", pa.timestamp("us")),
    ("difficulty", pa.float64()),
    ("chainwork", pa.string()),
    ("previousblockhash", pa.string()),
])

INPUT_TYPE = pa.struct([
    ("index", pa.int64()),
    ("spent_transaction_hash", pa.string()),
    ("spent_output_index", pa.int64()),
    ("script_asm", pa.string()),
    ("script_hex", pa.string()),
    ("sequence", pa.int64()),
    ("required_signatures", pa.int64()),
    ("type", pa.string()),
    ("address", pa.string()),
    ("value", pa.float64()),
])

OUTPUT_TYPE = pa.struct([
    ("index", pa.int64()),
    ("script_asm", pa.string()),
    ("script_hex", pa.string()),
    ("required_signatures", pa.int64()),
    ("type", pa.string()),
    ("address", pa.string()),
    ("value", pa.float64()),
])

TRANSACTION_SCHEMA = pa.schema([
    ("date", pa.string()),
    ("hash", pa.string()),
    ("size", pa.int64()),
    ("virtual_size", pa.int64()),
    ("version", pa.int64()),
    ("lock_time", pa.int64()),
    ("block_hash", pa.string()),
    ("block_number", pa.int64()),
    ("block_timestamp", pa.timestamp("us")),
    ("index", pa.int64()),
    ("input_count", pa.int64()),
    ("output_count", pa.int64()),
    ("input_value", pa.float64()),
    ("output_value", pa.float64()),
    ("is_coinbase", pa.bool_()),
    ("fee", pa.float64()),
    ("inputs", pa.list_(INPUT_TYPE)),
    ("outputs", pa.list_(OUTPUT_TYPE)),
])

BASE_TIME = datetime(2024, 1, 1, 0, 0, 0)


def block_row(i: int) -> dict:
    return {
        "date": PARTITION_DATE,
        "hash": f"block{i:06d}",
        "size": 1000 + i,
        "stripped_size": 900 + i,
        "weight": 4000 + i,
        "number": 800000 + i,
        "version": 536870912,
        "merkle_root": f"merkle{i:06d}",
        "timestamp": BASE_TIME + timedelta(minutes=10 * i),
        "nonce": i * 7,
        "bits": "17034219",
        "coinbase_param": "03a0bb0d",
        "transaction_count": 3,
        "mediantime": None if i % 5 == 0 else BASE_TIME + timedelta(minutes=10 * i - 60),
        "difficulty": 72006146478567.1,
        "chainwork": "0000000000000000000000000000000000000000633c8d3dc8d9c5a6b5a1c3a0",
        "previousblockhash": f"block{i - 1:06d}",
    }


def transaction_row(i: int, n_inputs: int = 1, n_outputs: int = 2) -> dict:
    tx_hash = f"tx{i:06d}"
    return {
        "date": PARTITION_DATE,
        "hash": tx_hash,
        "size": 250,
        "virtual_size": 140,
        "version": 2,
        "lock_time": 0,
        "block_hash": f"block{i // 10:06d}",
        "block_number": 800000 + i // 10,
        "block_timestamp": BASE_TIME + timedelta(minutes=i),
        "index": i % 10,
        "input_count": n_inputs,
        "output_count": n_outputs,
        "input_value": 1.5,
        "output_value": 1.4999,
        "is_coinbase": i % 10 == 0,
        "fee": 0.0001,
        "inputs": None if n_inputs is None else [
            {
                "index": k,
                "spent_transaction_hash": f"prev{i:06d}{k}",
                "spent_output_index": k,
                "script_asm": "0 3045...",
                "script_hex": "00473045",
                "sequence": 4294967295,
                "required_signatures": 1,
                "type": "witness_v0_keyhash",
                "address": f"bc1qin{i}{k}",
                "value": 1.5 / max(n_inputs, 1),
            }
            for k in range(n_inputs)
        ],
        "outputs": [
            {
                "index": k,
                "script_asm": "0 751e...",
                "script_hex": "0014751e",
                "required_signatures": 1,
                "type": "witness_v0_keyhash",
                "address": f"bc1qout{i}{k}",
                "value": 0.5,
            }
            for k in range(n_outputs)
        ],
    }


@pytest.fixture
def out_dir(tmp_path) -> Path:
    """Root of the local partition tree"""
    return tmp_path / "out"


@pytest.fixture
def make_block_file(out_dir):
    """Factory writing a block Parquet file into the partition layout"""
    def _make(
        num_rows: int,
        name: str = "part-00000.snappy.parquet",
        row_group_size: int = 64,
        partition: str = PARTITION_DATE,
        first: int = 0,
    ) -> Path:
        directory = out_dir / "btc" / "blocks" / partition
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        rows = [block_row(first + i) for i in range(num_rows)]
        table = pa.Table.from_pylist(rows, schema=BLOCK_SCHEMA)
        pq.write_table(table, path, row_group_size=row_group_size)
        return path
    return _make


@pytest.fixture
def make_transaction_file(out_dir):
    """Factory writing a transaction Parquet file into the partition layout"""
    def _make(
        num_rows: int,
        name: str = "part-00000.snappy.parquet",
        row_group_size: int = 64,
        partition: str = PARTITION_DATE,
        n_inputs: Optional[int] = 1,
        n_outputs: int = 2,
    ) -> Path:
        directory = out_dir / "btc" / "transactions" / partition
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        rows = [transaction_row(i, n_inputs, n_outputs) for i in range(num_rows)]
        table = pa.Table.from_pylist(rows, schema=TRANSACTION_SCHEMA)
        pq.write_table(table, path, row_group_size=row_group_size)
        return path
    return _make


# ============================================================================
# Fakes
# ============================================================================

class RecordingWriter:
    """
    In-memory stand-in for SQLBatchWriter.

    Records every write as (kind, entity name, row count, rows). ``fail_writes``
    makes the next N execute calls raise DatabaseError.
    """

    def __init__(self, fail_writes: int = 0, fail_prepares: int = 0):
        self.calls: List[tuple] = []
        self.prepared: List[PreparedBatch] = []
        self.fail_writes = fail_writes
        self.fail_prepares = fail_prepares
        self.attempts = 0

    async def prepare_batch(self, entity, row_count):
        if self.fail_prepares:
            self.fail_prepares -= 1
            raise DatabaseError("prepare failed")
        prepared = PreparedBatch(entity, row_count, statement=None, param_names=[])
        self.prepared.append(prepared)
        return prepared

    async def execute_prepared(self, prepared, rows):
        return self._record("prepared", prepared.entity, rows)

    async def execute_direct(self, entity, rows):
        return self._record("direct", entity, rows)

    def _record(self, kind, entity, rows):
        self.attempts += 1
        if self.fail_writes:
            self.fail_writes -= 1
            raise DatabaseError("connection reset")
        self.calls.append((kind, entity.name, len(rows), list(rows)))
        return len(rows)

    def rows_for(self, entity_name: str) -> list:
        return [row for _, name, _, rows in self.calls if name == entity_name for row in rows]


@pytest.fixture
def recording_writer():
    return RecordingWriter()


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays"""
    delays = []

    async def _sleep(delay):
        delays.append(delay)

    _sleep.delays = delays
    return _sleep
