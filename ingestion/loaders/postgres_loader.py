"""
Write flattened rows into the store with multi-row idempotent inserts
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy import bindparam
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from ingestion.loaders.entities import Entity
from core.exceptions import BatchShapeError, DatabaseError, StatementClosedError
import logging

logger = logging.getLogger(__name__)

Row = Tuple[Any, ...]


class PreparedBatch:
    """
    A multi-row INSERT built once for a fixed row count and reused.

    Bind parameter names are laid out row-major (``r0_hash``, ``r0_size``,
    ..., ``r1_hash``, ...) so a batch of flattened rows maps onto them in
    order. Executing a closed batch raises StatementClosedError.
    """

    def __init__(self, entity: Entity, row_count: int, statement, param_names: List[List[str]]):
        self.entity = entity
        self.row_count = row_count
        self.statement = statement
        self.param_names = param_names
        self.closed = False

    def bind(self, rows: Sequence[Row]) -> Dict[str, Any]:
        if len(rows) != self.row_count:
            raise BatchShapeError(
                f"Prepared {self.entity.name} batch expects {self.row_count} rows, got {len(rows)}",
                context={
                    "table_name": self.entity.table.name,
                    "expected": self.row_count,
                    "row_count": len(rows),
                },
            )
        params = {}
        for names, values in zip(self.param_names, rows):
            params.update(zip(names, values))
        return params

    def close(self) -> None:
        self.closed = True


class SQLBatchWriter:
    """
    Insert rows with "insert, skip on natural-key conflict" semantics.

    Ensures:
    - No duplicate rows on repeated runs (conflicts on the primary key are skipped)
    - Each write is its own transaction (commit on success, rollback on error)
    - PostgreSQL and SQLite dialects are both supported
    """

    def __init__(self, db_session: AsyncSession, dialect_name: Optional[str] = None):
        self.db = db_session
        if dialect_name is None:
            bind = db_session.bind
            dialect_name = bind.dialect.name if bind is not None else "postgresql"
        self.dialect_name = dialect_name

    def _build(self, entity: Entity, row_count: int) -> Tuple[Any, List[List[str]]]:
        if row_count <= 0:
            raise BatchShapeError(
                f"Row count must be positive, got {row_count}",
                context={"table_name": entity.table.name, "row_count": row_count},
            )

        # Choose insert function based on dialect
        insert_fn = pg_insert if self.dialect_name == "postgresql" else sqlite_insert

        param_names = [[f"r{i}_{column}" for column in entity.columns] for i in range(row_count)]
        values = [
            {
                column: bindparam(name, type_=entity.table.c[column].type)
                for column, name in zip(entity.columns, names)
            }
            for names in param_names
        ]
        stmt = insert_fn(entity.table).values(values)
        stmt = stmt.on_conflict_do_nothing(index_elements=entity.key_columns)
        return stmt, param_names

    async def prepare_batch(self, entity: Entity, row_count: int) -> PreparedBatch:
        """
        Build a reusable INSERT statement sized for exactly ``row_count`` rows.

        Raises:
            BatchShapeError: If row_count is not positive
            DatabaseError: If the statement cannot be constructed
        """
        try:
            stmt, param_names = self._build(entity, row_count)
        except BatchShapeError:
            raise
        except Exception as e:
            raise DatabaseError(
                f"Failed to prepare {entity.name} statement",
                context={
                    "operation": "PREPARE",
                    "table_name": entity.table.name,
                    "row_count": row_count,
                },
                original_exception=e,
            )
        logger.debug(f"Prepared {entity.name} statement for {row_count} rows")
        return PreparedBatch(entity, row_count, stmt, param_names)

    async def execute_prepared(self, prepared: PreparedBatch, rows: Sequence[Row]) -> int:
        """
        Execute a prepared batch with exactly ``prepared.row_count`` rows.

        Returns:
            Number of rows submitted

        Raises:
            StatementClosedError: If the batch was already released
            BatchShapeError: If the number of rows differs from the prepared size
            DatabaseError: If the insert fails (the transaction is rolled back)
        """
        if prepared.closed:
            raise StatementClosedError(
                f"Prepared {prepared.entity.name} statement is closed",
                context={"table_name": prepared.entity.table.name},
            )
        params = prepared.bind(rows)
        await self._execute(prepared.entity, prepared.statement, params, len(rows))
        return len(rows)

    async def execute_direct(self, entity: Entity, rows: Sequence[Row]) -> int:
        """
        Insert an arbitrary number of rows with a statement built for them.

        Used for the final partial batch of a file. An empty row list is a no-op.
        """
        if not rows:
            return 0
        stmt, param_names = self._build(entity, len(rows))
        params = {}
        for names, values in zip(param_names, rows):
            params.update(zip(names, values))
        await self._execute(entity, stmt, params, len(rows))
        return len(rows)

    async def _execute(self, entity: Entity, stmt, params: Dict[str, Any], row_count: int) -> None:
        try:
            await self.db.execute(stmt, params)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise DatabaseError(
                f"Failed to insert {entity.name} rows",
                context={
                    "operation": "INSERT",
                    "table_name": entity.table.name,
                    "row_count": row_count,
                },
                original_exception=e,
            )
