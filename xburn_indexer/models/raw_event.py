from sqlalchemy import Column, Integer, String, DateTime, BigInteger, UniqueConstraint, Index
from sqlalchemy.sql import func
from .base import Base
from .types import JSONPayload

UNKNOWN_EVENT_TYPE = "unknown"


class RawEvent(Base):
    """Immutable audit row per fetched log; only event_type is back-filled"""

    __tablename__ = "raw_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tx_hash = Column(String(66), index=True, nullable=False)
    log_index = Column(Integer, nullable=False)
    chain_id = Column(String(32), index=True, nullable=False)
    block_number = Column(BigInteger, index=True, nullable=False)
    address = Column(String(42), index=True, nullable=False)
    event_type = Column(String(64), nullable=False, default=UNKNOWN_EVENT_TYPE)
    data = Column(JSONPayload, nullable=False)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", "chain_id", name="raw_events_unique_event"),
        Index("ix_raw_events_chain_block", "chain_id", "block_number"),
    )
