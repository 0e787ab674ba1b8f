"""
Pydantic schemas for Bitcoin source records read from Parquet files
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime


class TransactionInput(BaseModel):
    """One element of a transaction's nested inputs list"""

    model_config = ConfigDict(frozen=True)

    spent_transaction_hash: Optional[str] = None
    spent_output_index: Optional[int] = None
    script_asm: Optional[str] = None
    script_hex: Optional[str] = None
    sequence: Optional[int] = None
    required_signatures: Optional[int] = None
    type: Optional[str] = None
    address: Optional[str] = None
    value: Optional[float] = None


class TransactionOutput(BaseModel):
    """One element of a transaction's nested outputs list"""

    model_config = ConfigDict(frozen=True)

    script_asm: Optional[str] = None
    script_hex: Optional[str] = None
    required_signatures: Optional[int] = None
    type: Optional[str] = None
    address: Optional[str] = None
    value: Optional[float] = None


class Block(BaseModel):
    """
    Bitcoin block as stored in the public blocks dataset.

    The partition date is deliberately absent: it is derived from the
    directory the file lives in.
    """

    model_config = ConfigDict(frozen=True)

    hash: str = Field(..., min_length=1)
    size: Optional[int] = None
    stripped_size: Optional[int] = None
    weight: Optional[int] = None
    number: int
    version: Optional[int] = None
    merkle_root: Optional[str] = None
    timestamp: Optional[datetime] = None
    nonce: Optional[int] = None
    bits: Optional[str] = None
    coinbase_param: Optional[str] = None
    transaction_count: Optional[int] = None
    mediantime: Optional[datetime] = None
    difficulty: Optional[float] = None
    chainwork: Optional[str] = None
    previousblockhash: Optional[str] = None


class Transaction(BaseModel):
    """
    Bitcoin transaction with its ordered inputs and outputs.

    Ordinal positions of inputs/outputs are their list positions, so the
    order read from the file is preserved as-is.
    """

    model_config = ConfigDict(frozen=True)

    hash: str = Field(..., min_length=1)
    size: Optional[int] = None
    virtual_size: Optional[int] = None
    version: Optional[int] = None
    lock_time: Optional[int] = None
    block_hash: str
    block_number: int
    block_timestamp: Optional[datetime] = None
    index: int
    input_count: Optional[int] = None
    output_count: Optional[int] = None
    input_value: Optional[float] = None
    output_value: Optional[float] = None
    is_coinbase: Optional[bool] = None
    fee: Optional[float] = None
    inputs: List[TransactionInput] = Field(default_factory=list)
    outputs: List[TransactionOutput] = Field(default_factory=list)

    @field_validator("inputs", "outputs", mode="before")
    @classmethod
    def null_list_as_empty(cls, v):
        """Null nested lists are treated as empty"""
        if v is None:
            return []
        return v
