from sqlalchemy import Column, Integer, String, DateTime, BigInteger, Boolean, UniqueConstraint, Index
from sqlalchemy.sql import func
from .base import Base
from .types import UInt256


class BurnNFT(Base):
    """
    Time-locked XEN burn position represented by an NFT.

    Created once by a mint-type event, then only moves forward: created, then
    claimed and/or burned, never back. A claimed lock can still be burned
    (claiming burns the NFT in the same transaction), but a burned lock is
    never claimed. Ownership follows transfers only while the lock is active.
    """

    __tablename__ = "burn_nfts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_id = Column(UInt256, nullable=False)
    chain_id = Column(String(32), nullable=False)
    tx_hash = Column(String(66), nullable=False)
    log_index = Column(Integer, nullable=False)
    block_number = Column(BigInteger, nullable=False)
    timestamp = Column(DateTime, nullable=False)

    user = Column(String(42), index=True, nullable=False, comment="Current owner of the lock")
    minter = Column(String(42), index=True, nullable=False, comment="Address that created the lock")
    xen_amount = Column(UInt256, nullable=False)
    term_days = Column(Integer, index=True, nullable=False)
    maturity_timestamp = Column(DateTime, nullable=False)

    claimed = Column(Boolean, nullable=False, default=False, index=True)
    claimed_at = Column(DateTime, nullable=True)
    claim_tx_hash = Column(String(66), nullable=True)

    burned = Column(Boolean, nullable=False, default=False, index=True)
    burned_at = Column(DateTime, nullable=True)
    burn_tx_hash = Column(String(66), nullable=True)
    early_burn = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", "chain_id", name="burn_nfts_unique_event"),
        UniqueConstraint("token_id", "chain_id", name="burn_nfts_unique_token"),
        Index("ix_burn_nfts_chain_block", "chain_id", "block_number"),
    )

    @property
    def is_active(self) -> bool:
        return not self.claimed and not self.burned

    def __repr__(self):
        return (
            f"<BurnNFT(token_id={self.token_id}, user='{self.user}', "
            f"claimed={self.claimed}, burned={self.burned})>"
        )
