"""
Raw log and decoded domain event types.

`DomainEvent` subclasses form a closed set; each carries its `EventKind`,
which is also the value stored in `raw_events.event_type`.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Tuple


class EventKind(Enum):

    TOKEN_BURNED = "xen_burned"
    REWARD_TOKEN_BURNED = "xburn_burned"
    LOCK_CREATED = "lock_created"
    LOCK_CLAIMED = "claimed"
    LOCK_BURNED = "burned"
    NFT_TRANSFERRED = "transfer"


@dataclass(frozen=True)
class RawLog:
    """One eth_getLogs entry, normalized to lower-case 0x hex strings"""

    address: str
    topics: Tuple[str, ...]
    data: str
    block_number: int
    block_hash: str
    tx_hash: str
    tx_index: int
    log_index: int
    removed: bool = False

    @property
    def key(self) -> Tuple[str, int]:
        return self.tx_hash, self.log_index

    def to_payload(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "topics": list(self.topics),
            "data": self.data,
            "blockNumber": self.block_number,
            "blockHash": self.block_hash,
            "transactionHash": self.tx_hash,
            "transactionIndex": self.tx_index,
            "logIndex": self.log_index,
            "removed": self.removed,
        }


@dataclass(frozen=True)
class DomainEvent:
    """Fields shared by every decoded event"""

    tx_hash: str
    log_index: int
    block_number: int
    timestamp: datetime
    contract: str
    name: str

    kind = None  # overridden per variant


@dataclass(frozen=True)
class TokenBurned(DomainEvent):
    user: str = ""
    amount: str = "0"
    accumulated_amount: str = "0"
    direct_burn_amount: str = "0"

    kind = EventKind.TOKEN_BURNED


@dataclass(frozen=True)
class RewardTokenBurned(DomainEvent):
    user: str = ""
    amount: str = "0"

    kind = EventKind.REWARD_TOKEN_BURNED


@dataclass(frozen=True)
class LockCreated(DomainEvent):
    token_id: str = "0"
    user: str = ""
    xen_amount: str = "0"
    term_days: int = 0

    kind = EventKind.LOCK_CREATED


@dataclass(frozen=True)
class LockClaimed(DomainEvent):
    token_id: str = "0"
    user: str = ""
    base_amount: str = "0"
    bonus_amount: str = "0"
    total_amount: str = "0"

    kind = EventKind.LOCK_CLAIMED


@dataclass(frozen=True)
class LockBurned(DomainEvent):
    token_id: str = "0"

    kind = EventKind.LOCK_BURNED


@dataclass(frozen=True)
class NftTransferred(DomainEvent):
    token_id: str = "0"
    from_address: str = ""
    to_address: str = ""

    kind = EventKind.NFT_TRANSFERRED


EVENT_VARIANTS = {
    variant.kind: variant
    for variant in (TokenBurned, RewardTokenBurned, LockCreated, LockClaimed, LockBurned, NftTransferred)
}


@dataclass
class DecodedArgs:
    """Named event arguments as produced by ABI decoding"""

    name: str
    values: Dict[str, Any] = field(default_factory=dict)
