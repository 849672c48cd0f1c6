from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class OrmConfig(BaseModel):
    class Config:
        from_attributes = True


class BurnLockItem(OrmConfig):
    token_id: str = Field(description="NFT token id (decimal string)")
    user: str = Field(description="Current owner of the lock")
    minter: str = Field(description="Address that created the lock")
    xen_amount: str = Field(description="XEN locked (decimal string)")
    term_days: int = Field(description="Lock duration in days")
    maturity_timestamp: datetime
    block_number: int = Field(description="Block of the creating event")
    tx_hash: str = Field(description="Transaction of the creating event")
    claimed: bool
    claimed_at: Optional[datetime] = None
    claim_tx_hash: Optional[str] = None
    burned: bool
    burned_at: Optional[datetime] = None
    burn_tx_hash: Optional[str] = None
    early_burn: bool


class LockListResponse(BaseModel):
    total: int
    items: List[BurnLockItem]


class WalletStatsResponse(BaseModel):
    wallet: str
    total_xen_burned: str
    total_xburn_burned: str
    total_xburn_claimed: str
    active_locks: int
    completed_locks: int
    early_unlocks: int


class TermStatsItem(BaseModel):
    term_days: int
    total_locks: int
    active_locks: int
    total_xen_locked: str


class TopBurnerItem(BaseModel):
    rank: int
    wallet: str
    total_xen_burned: str
    burn_count: int


class IndexerStatus(BaseModel):
    chain_id: str
    chain_name: str
    last_indexed_block: Optional[int] = None
    last_indexed_at: Optional[datetime] = None
    batch_size: Optional[int] = None
    retry_count: Optional[int] = None
