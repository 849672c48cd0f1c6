from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from xburn_indexer.models.burn_nft import BurnNFT
from xburn_indexer.models.events import XenBurn
from xburn_indexer.services.aggregates import term_totals, wallet_totals
from xburn_indexer.utils.amounts import to_int


class QueryService:
    """Read views computed directly from the append-only tables"""

    def __init__(self, db: Session, chain_id: str):
        self.db = db
        self.chain_id = chain_id

    def active_locks(self, limit: int = 100, offset: int = 0) -> Tuple[List[BurnNFT], int]:
        q = self.db.query(BurnNFT).filter(
            BurnNFT.chain_id == self.chain_id,
            BurnNFT.claimed.is_(False),
            BurnNFT.burned.is_(False),
        )
        total = q.count()
        items = q.order_by(BurnNFT.maturity_timestamp.asc(), BurnNFT.id.asc()).offset(offset).limit(limit).all()
        return items, total

    def early_burn_locks(self, limit: int = 100, offset: int = 0) -> Tuple[List[BurnNFT], int]:
        q = self.db.query(BurnNFT).filter(
            BurnNFT.chain_id == self.chain_id,
            BurnNFT.burned.is_(True),
            BurnNFT.early_burn.is_(True),
        )
        total = q.count()
        items = q.order_by(BurnNFT.burned_at.desc(), BurnNFT.id.desc()).offset(offset).limit(limit).all()
        return items, total

    def get_lock(self, token_id: str) -> Optional[BurnNFT]:
        return self.db.query(BurnNFT).filter_by(chain_id=self.chain_id, token_id=str(token_id)).first()

    def wallet_stats(self, wallet: str) -> Dict[str, object]:
        wallet = wallet.lower()
        totals = wallet_totals(self.db, self.chain_id, wallet).get(wallet) or {}
        return {
            "wallet": wallet,
            "total_xen_burned": str(totals.get("total_xen_burned", 0)),
            "total_xburn_burned": str(totals.get("total_xburn_burned", 0)),
            "total_xburn_claimed": str(totals.get("total_xburn_claimed", 0)),
            "active_locks": totals.get("active_locks", 0),
            "completed_locks": totals.get("completed_locks", 0),
            "early_unlocks": totals.get("early_unlocks", 0),
        }

    def term_stats(self) -> List[Dict[str, object]]:
        return [
            {
                "term_days": term_days,
                "total_locks": values["total_locks"],
                "active_locks": values["active_locks"],
                "total_xen_locked": str(values["total_xen_locked"]),
            }
            for term_days, values in sorted(term_totals(self.db, self.chain_id).items())
        ]

    def top_burners(self, limit: int = 100) -> List[Dict[str, object]]:
        totals: Dict[str, int] = defaultdict(int)
        burns: Dict[str, int] = defaultdict(int)
        for user, amount in self.db.query(XenBurn.user, XenBurn.amount).filter_by(chain_id=self.chain_id):
            totals[user] += to_int(amount)
            burns[user] += 1

        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))[:limit]
        return [
            {"rank": rank, "wallet": wallet, "total_xen_burned": str(total), "burn_count": burns[wallet]}
            for rank, (wallet, total) in enumerate(ranked, start=1)
        ]
