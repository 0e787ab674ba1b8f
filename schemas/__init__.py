"""
Pydantic schemas for data validation and serialization.

Schemas:
    records: Source records read from Parquet (Block, Transaction and
        the nested TransactionInput / TransactionOutput)
    progress: Per-file resumption state persisted beside each source file

Usage:
    from schemas.records import Block, Transaction
    from schemas.progress import ResumptionState

Example:
    tx = Transaction.model_validate(row)
    # Null nested lists are normalized to empty lists
    assert tx.inputs == []
"""

__all__ = [
    "Block",
    "Transaction",
    "TransactionInput",
    "TransactionOutput",
    "ResumptionState",
]
