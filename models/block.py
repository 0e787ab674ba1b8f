from sqlalchemy import Column, String, BigInteger, Integer, Date, DateTime, Float, Text
from models.base import Base


class BtcBlock(Base):
    """
    One Bitcoin block per row.

    Natural key: (record_date, hash). The record date is the partition the
    block was read from, not a field of the block itself. Writes are
    "insert, skip on conflict" so re-ingesting a file is harmless.
    """
    __tablename__ = "btc_blocks"

    record_date = Column(Date, primary_key=True)
    hash = Column(String(80), primary_key=True)

    size = Column(BigInteger, nullable=True)
    stripped_size = Column(BigInteger, nullable=True)
    weight = Column(BigInteger, nullable=True)
    number = Column(BigInteger, nullable=False)
    version = Column(Integer, nullable=True)
    merkle_root = Column(String(80), nullable=True)
    block_timestamp = Column(DateTime, nullable=True)
    nonce = Column(BigInteger, nullable=True)
    bits = Column(String(32), nullable=True)
    coinbase_param = Column(Text, nullable=True)
    transaction_count = Column(BigInteger, nullable=True)
    mediantime = Column(DateTime, nullable=True)
    difficulty = Column(Float, nullable=True)
    chainwork = Column(String(128), nullable=True)
    previousblockhash = Column(String(80), nullable=True)
