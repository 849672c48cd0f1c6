from sqlalchemy import Column, Integer, String, DateTime, BigInteger, UniqueConstraint, Index
from sqlalchemy.sql import func
from .base import Base
from .types import UInt256


class XenBurn(Base):
    """XEN burned through the minter, split into accumulated and direct shares"""

    __tablename__ = "xen_burns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tx_hash = Column(String(66), nullable=False)
    log_index = Column(Integer, nullable=False)
    chain_id = Column(String(32), nullable=False)
    block_number = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    user = Column(String(42), index=True, nullable=False)
    amount = Column(UInt256, nullable=False)
    accumulated_amount = Column(UInt256, nullable=False)
    direct_burn_amount = Column(UInt256, nullable=False)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", "chain_id", name="xen_burns_unique_event"),
        Index("ix_xen_burns_chain_block", "chain_id", "block_number"),
    )


class XburnBurn(Base):
    __tablename__ = "xburn_burns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tx_hash = Column(String(66), nullable=False)
    log_index = Column(Integer, nullable=False)
    chain_id = Column(String(32), nullable=False)
    block_number = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    user = Column(String(42), index=True, nullable=False)
    amount = Column(UInt256, nullable=False)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", "chain_id", name="xburn_burns_unique_event"),
        Index("ix_xburn_burns_chain_block", "chain_id", "block_number"),
    )


class XburnClaim(Base):
    __tablename__ = "xburn_claims"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tx_hash = Column(String(66), nullable=False)
    log_index = Column(Integer, nullable=False)
    chain_id = Column(String(32), nullable=False)
    block_number = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    user_address = Column(String(42), index=True, nullable=False)
    token_id = Column(UInt256, index=True, nullable=False)
    base_amount = Column(UInt256, nullable=False)
    bonus_amount = Column(UInt256, nullable=False)
    total_amount = Column(UInt256, nullable=False)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", "chain_id", name="xburn_claims_unique_event"),
        Index("ix_xburn_claims_chain_block", "chain_id", "block_number"),
    )


class NftTransfer(Base):
    __tablename__ = "nft_transfers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tx_hash = Column(String(66), nullable=False)
    log_index = Column(Integer, nullable=False)
    chain_id = Column(String(32), nullable=False)
    block_number = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    token_id = Column(UInt256, index=True, nullable=False)
    from_address = Column(String(42), index=True, nullable=False)
    to_address = Column(String(42), index=True, nullable=False)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", "chain_id", name="nft_transfers_unique_event"),
        Index("ix_nft_transfers_chain_block", "chain_id", "block_number"),
    )
