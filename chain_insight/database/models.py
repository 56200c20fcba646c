"""
SQLAlchemy table models for the indexed chain data the pipeline reads.

The pipeline itself only issues read-only ``text()`` queries; these models
describe the expected schema and are used to create it for local stores and
tests. Large quantities (value, gas prices) are stored as decimal text so
they keep full width on every backend.
"""

from sqlalchemy import BigInteger, Column, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class TransactionRow(Base):
    """Indexed transactions with receipt fields."""

    __tablename__ = "source_1"

    hash = Column(String(66), primary_key=True)
    block_number = Column(BigInteger, nullable=False)
    block_timestamp = Column(BigInteger, nullable=False)  # unix seconds
    block_hash = Column(String(66))
    transaction_index = Column(Integer, default=0)
    from_address = Column(String(42), nullable=False)
    to_address = Column(String(42))
    value = Column(String(80), default="0")
    gas = Column(String(40), default="21000")
    gas_price = Column(String(80), default="0")
    receipt_gas_used = Column(String(40), default="0")
    receipt_effective_gas_price = Column(String(80))
    receipt_status = Column(Integer, default=1)
    input = Column(Text, default="0x")
    nonce = Column(BigInteger, default=0)
    transaction_type = Column(Integer, default=0)

    __table_args__ = (
        Index("idx_source_1_block_number", "block_number"),
        Index("idx_source_1_from_address", "from_address"),
        Index("idx_source_1_to_address", "to_address"),
    )


class BlockRow(Base):
    """Indexed blocks."""

    __tablename__ = "raw_1"

    number = Column(BigInteger, primary_key=True)
    hash = Column(String(66), nullable=False)
    parent_hash = Column(String(66))
    timestamp = Column(BigInteger, nullable=False)  # unix seconds
    gas_used = Column(String(40), default="0")
    gas_limit = Column(String(40), default="30000000")
    base_fee_per_gas = Column(String(80), default="0")
    miner = Column(String(42), default="")
    size = Column(BigInteger, default=0)
    transaction_count = Column(Integer, default=0)


class TransactionLogRow(Base):
    """
    Receipt logs, optional.

    ``topics`` holds a JSON array of hex topic strings.
    """

    __tablename__ = "logs_1"

    transaction_hash = Column(String(66), primary_key=True)
    log_index = Column(Integer, primary_key=True)
    address = Column(String(42), nullable=False)
    topics = Column(Text, default="[]")
    data = Column(Text, default="0x")
