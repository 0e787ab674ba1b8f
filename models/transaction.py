from sqlalchemy import Column, String, BigInteger, Boolean, Date, DateTime, Float, Text
from models.base import Base


class BtcTransaction(Base):
    """
    One Bitcoin transaction per row.

    Inputs and outputs are not stored here; they are flattened into
    btc_transaction_inputs / btc_transaction_outputs keyed by the
    transaction hash and their 0-based position.
    """
    __tablename__ = "btc_transactions"

    record_date = Column(Date, primary_key=True)
    hash = Column(String(80), primary_key=True)

    size = Column(BigInteger, nullable=True)
    virtual_size = Column(BigInteger, nullable=True)
    version = Column(BigInteger, nullable=True)
    lock_time = Column(BigInteger, nullable=True)
    block_hash = Column(String(80), nullable=False)
    block_number = Column(BigInteger, nullable=False)
    block_timestamp = Column(DateTime, nullable=True)
    tx_index = Column(BigInteger, nullable=False)
    input_count = Column(BigInteger, nullable=True)
    output_count = Column(BigInteger, nullable=True)
    input_value = Column(Float, nullable=True)
    output_value = Column(Float, nullable=True)
    is_coinbase = Column(Boolean, nullable=True)
    fee = Column(Float, nullable=True)


class BtcTransactionInput(Base):
    """Transaction input, denormalized from the nested inputs list"""
    __tablename__ = "btc_transaction_inputs"

    record_date = Column(Date, primary_key=True)
    transaction_hash = Column(String(80), primary_key=True)
    input_index = Column(BigInteger, primary_key=True, autoincrement=False)  # 0-based position

    spent_transaction_hash = Column(String(80), nullable=True)
    spent_output_index = Column(BigInteger, nullable=True)
    script_asm = Column(Text, nullable=True)
    script_hex = Column(Text, nullable=True)
    sequence = Column(BigInteger, nullable=True)
    required_signatures = Column(BigInteger, nullable=True)
    input_type = Column(String(32), nullable=True)
    address = Column(String(128), nullable=True)
    spent_value = Column(Float, nullable=True)


class BtcTransactionOutput(Base):
    """Transaction output, denormalized from the nested outputs list"""
    __tablename__ = "btc_transaction_outputs"

    record_date = Column(Date, primary_key=True)
    transaction_hash = Column(String(80), primary_key=True)
    output_index = Column(BigInteger, primary_key=True, autoincrement=False)  # 0-based position

    script_asm = Column(Text, nullable=True)
    script_hex = Column(Text, nullable=True)
    required_signatures = Column(BigInteger, nullable=True)
    output_type = Column(String(32), nullable=True)
    address = Column(String(128), nullable=True)
    output_amount = Column(Float, nullable=True)
