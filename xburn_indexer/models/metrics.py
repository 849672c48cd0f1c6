from sqlalchemy import Column, Integer, String, DateTime, BigInteger, Float, Index
from sqlalchemy.sql import func
from .base import Base


class IndexerMetric(Base):
    """One row per processed batch, observational only"""

    __tablename__ = "indexer_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chain_id = Column(String(32), index=True, nullable=False)
    block_number = Column(BigInteger, nullable=False)
    last_indexed_block = Column(BigInteger, nullable=False)
    batch_size = Column(Integer, nullable=False)
    events_processed = Column(Integer, nullable=False)
    batch_time_ms = Column(Integer, nullable=False)
    memory_usage_mb = Column(Float, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=func.now())

    __table_args__ = (Index("ix_indexer_metrics_chain_timestamp", "chain_id", "timestamp"),)
