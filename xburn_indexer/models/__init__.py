from .base import Base
from .state import IndexerState
from .raw_event import RawEvent, UNKNOWN_EVENT_TYPE
from .events import XenBurn, XburnBurn, XburnClaim, NftTransfer
from .burn_nft import BurnNFT
from .stats import WalletStats, TermStats
from .metrics import IndexerMetric

__all__ = [
    "Base",
    "IndexerState",
    "RawEvent",
    "UNKNOWN_EVENT_TYPE",
    "XenBurn",
    "XburnBurn",
    "XburnClaim",
    "NftTransfer",
    "BurnNFT",
    "WalletStats",
    "TermStats",
    "IndexerMetric",
]
