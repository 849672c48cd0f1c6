from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import Session
from .base import Base
from .types import UInt256


class WalletStats(Base):
    """Per-wallet aggregate cache, rebuildable from the event tables"""

    __tablename__ = "wallet_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chain_id = Column(String(32), nullable=False)
    wallet = Column(String(42), index=True, nullable=False)
    total_xen_burned = Column(UInt256, nullable=False, default="0")
    total_xburn_burned = Column(UInt256, nullable=False, default="0")
    total_xburn_claimed = Column(UInt256, nullable=False, default="0")
    active_locks = Column(Integer, nullable=False, default=0)
    completed_locks = Column(Integer, nullable=False, default=0)
    early_unlocks = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("chain_id", "wallet", name="wallet_stats_unique_wallet"),)

    @classmethod
    def get_or_create(cls, session: Session, chain_id: str, wallet: str) -> "WalletStats":
        stats = session.query(cls).filter_by(chain_id=chain_id, wallet=wallet).first()
        if not stats:
            stats = cls(
                chain_id=chain_id,
                wallet=wallet,
                total_xen_burned="0",
                total_xburn_burned="0",
                total_xburn_claimed="0",
                active_locks=0,
                completed_locks=0,
                early_unlocks=0,
            )
            session.add(stats)
            session.flush()
        return stats


class TermStats(Base):
    """Per-term (lock duration in days) aggregate cache"""

    __tablename__ = "term_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chain_id = Column(String(32), nullable=False)
    term_days = Column(Integer, index=True, nullable=False)
    total_locks = Column(Integer, nullable=False, default=0)
    active_locks = Column(Integer, nullable=False, default=0)
    total_xen_locked = Column(UInt256, nullable=False, default="0")
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("chain_id", "term_days", name="term_stats_unique_term"),)

    @classmethod
    def get_or_create(cls, session: Session, chain_id: str, term_days: int) -> "TermStats":
        stats = session.query(cls).filter_by(chain_id=chain_id, term_days=term_days).first()
        if not stats:
            stats = cls(
                chain_id=chain_id,
                term_days=term_days,
                total_locks=0,
                active_locks=0,
                total_xen_locked="0",
            )
            session.add(stats)
            session.flush()
        return stats
