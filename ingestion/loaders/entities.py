"""
Entity definitions: target table, column order and row flattening.

The write path never looks inside a record; it only sees an entity's table,
its ordered columns and tuples produced by the entity's flatten function.
Column order matches the table definitions in ``models/``.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy import Table

from models.block import BtcBlock
from models.transaction import BtcTransaction, BtcTransactionInput, BtcTransactionOutput
from schemas.records import Block, Transaction, TransactionInput, TransactionOutput

Row = Tuple[Any, ...]


@dataclass(frozen=True)
class Entity:
    """A target table plus the columns written to it, in order"""
    name: str
    table: Table
    columns: Tuple[str, ...]

    @property
    def key_columns(self) -> List[str]:
        return [column.name for column in self.table.primary_key.columns]


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamp columns are stored without zone, in UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# ============================================================================
# Blocks
# ============================================================================

BLOCKS = Entity(
    name="block",
    table=BtcBlock.__table__,
    columns=(
        "record_date", "hash", "size", "stripped_size", "weight", "number",
        "version", "merkle_root", "block_timestamp", "nonce", "bits",
        "coinbase_param", "transaction_count", "mediantime", "difficulty",
        "chainwork", "previousblockhash",
    ),
)


def flatten_block(record_date: date, block: Block) -> Row:
    return (
        record_date,
        block.hash,
        block.size,
        block.stripped_size,
        block.weight,
        block.number,
        block.version,
        block.merkle_root,
        _naive_utc(block.timestamp),
        block.nonce,
        block.bits,
        block.coinbase_param,
        block.transaction_count,
        _naive_utc(block.mediantime),
        block.difficulty,
        block.chainwork,
        block.previousblockhash,
    )


# ============================================================================
# Transactions
# ============================================================================

TRANSACTIONS = Entity(
    name="transaction",
    table=BtcTransaction.__table__,
    columns=(
        "record_date", "hash", "size", "virtual_size", "version", "lock_time",
        "block_hash", "block_number", "block_timestamp", "tx_index",
        "input_count", "output_count", "input_value", "output_value",
        "is_coinbase", "fee",
    ),
)


def flatten_transaction(record_date: date, tx: Transaction) -> Row:
    return (
        record_date,
        tx.hash,
        tx.size,
        tx.virtual_size,
        tx.version,
        tx.lock_time,
        tx.block_hash,
        tx.block_number,
        _naive_utc(tx.block_timestamp),
        tx.index,
        tx.input_count,
        tx.output_count,
        tx.input_value,
        tx.output_value,
        tx.is_coinbase,
        tx.fee,
    )


TRANSACTION_INPUTS = Entity(
    name="transaction input",
    table=BtcTransactionInput.__table__,
    columns=(
        "record_date", "transaction_hash", "input_index",
        "spent_transaction_hash", "spent_output_index", "script_asm",
        "script_hex", "sequence", "required_signatures", "input_type",
        "address", "spent_value",
    ),
)


def flatten_input(record_date: date, tx: Transaction, ordinal: int, item: TransactionInput) -> Row:
    return (
        record_date,
        tx.hash,
        ordinal,
        item.spent_transaction_hash,
        item.spent_output_index,
        item.script_asm,
        item.script_hex,
        item.sequence,
        item.required_signatures,
        item.type,
        item.address,
        item.value,
    )


TRANSACTION_OUTPUTS = Entity(
    name="transaction output",
    table=BtcTransactionOutput.__table__,
    columns=(
        "record_date", "transaction_hash", "output_index", "script_asm",
        "script_hex", "required_signatures", "output_type", "address",
        "output_amount",
    ),
)


def flatten_output(record_date: date, tx: Transaction, ordinal: int, item: TransactionOutput) -> Row:
    return (
        record_date,
        tx.hash,
        ordinal,
        item.script_asm,
        item.script_hex,
        item.required_signatures,
        item.type,
        item.address,
        item.value,
    )
