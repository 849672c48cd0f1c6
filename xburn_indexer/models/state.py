from sqlalchemy import Column, Integer, String, DateTime, BigInteger
from sqlalchemy.sql import func
from .base import Base


class IndexerState(Base):
    """Checkpoint row, one per indexed chain"""

    __tablename__ = "indexer_state"

    chain_id = Column(String(32), primary_key=True)
    last_indexed_block = Column(BigInteger, nullable=False)
    last_indexed_at = Column(DateTime, nullable=False, default=func.now())
    batch_size = Column(Integer, nullable=False)
    retry_count = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return (
            f"<IndexerState(chain_id='{self.chain_id}', "
            f"last_indexed_block={self.last_indexed_block}, batch_size={self.batch_size})>"
        )
