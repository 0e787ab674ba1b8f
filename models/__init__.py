"""
SQLAlchemy ORM models for database tables.

This package defines the target schema for synced chain data:

Models:
    base: Base declarative class and shared enums (DatasetKind)
    block: Bitcoin blocks
    transaction: Bitcoin transactions plus their flattened inputs and outputs

Database Schema:
    Every table is keyed by (record_date, ...) where record_date is the
    partition date the row was read from. There are no foreign keys:
    inputs and outputs carry a denormalized copy of the transaction hash.

Usage:
    from models.base import Base, DatasetKind
    from models.block import BtcBlock
    from models.transaction import BtcTransaction, BtcTransactionInput, BtcTransactionOutput

Example:
    # Create all tables (bootstrap only, not a migration tool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
"""

__all__ = [
    "Base",
    "DatasetKind",
    "BtcBlock",
    "BtcTransaction",
    "BtcTransactionInput",
    "BtcTransactionOutput",
]
