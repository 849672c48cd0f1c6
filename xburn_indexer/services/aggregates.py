"""
Wallet and term aggregates.

Both tables are caches over the append-only event tables: the processor
applies deltas as events arrive, and `rebuild` recomputes them from scratch.
"""

from collections import defaultdict
from typing import Dict, Optional

import structlog
from sqlalchemy.orm import Session

from xburn_indexer.models.burn_nft import BurnNFT
from xburn_indexer.models.events import XburnBurn, XburnClaim, XenBurn
from xburn_indexer.models.stats import TermStats, WalletStats
from xburn_indexer.utils.amounts import add_amounts, to_int

WALLET_AMOUNT_FIELDS = ("total_xen_burned", "total_xburn_burned", "total_xburn_claimed")
WALLET_COUNT_FIELDS = ("active_locks", "completed_locks", "early_unlocks")
TERM_AMOUNT_FIELDS = ("total_xen_locked",)
TERM_COUNT_FIELDS = ("total_locks", "active_locks")


def _apply_deltas(stats, amount_fields, count_fields, deltas: Dict) -> None:
    for name, delta in deltas.items():
        if name in amount_fields:
            setattr(stats, name, add_amounts(getattr(stats, name) or "0", delta))
        elif name in count_fields:
            setattr(stats, name, (getattr(stats, name) or 0) + int(delta))
        else:
            raise ValueError(f"Unknown aggregate field: {name}")


def _empty_wallet() -> Dict[str, int]:
    return {name: 0 for name in WALLET_AMOUNT_FIELDS + WALLET_COUNT_FIELDS}


def _empty_term() -> Dict[str, int]:
    return {name: 0 for name in TERM_COUNT_FIELDS + TERM_AMOUNT_FIELDS}


def wallet_totals(session: Session, chain_id: str, wallet: Optional[str] = None) -> Dict[str, Dict[str, int]]:
    """
    Per-wallet totals computed from the event tables, optionally for one wallet.

    Amounts are Python ints so 256-bit sums stay exact on every backend.
    """
    wallets: Dict[str, Dict[str, int]] = defaultdict(_empty_wallet)

    xen_burns = session.query(XenBurn.user, XenBurn.amount).filter(XenBurn.chain_id == chain_id)
    xburn_burns = session.query(XburnBurn.user, XburnBurn.amount).filter(XburnBurn.chain_id == chain_id)
    claims = session.query(XburnClaim.user_address, XburnClaim.total_amount).filter(XburnClaim.chain_id == chain_id)
    locks = session.query(BurnNFT).filter(BurnNFT.chain_id == chain_id)
    if wallet is not None:
        wallet = wallet.lower()
        xen_burns = xen_burns.filter(XenBurn.user == wallet)
        xburn_burns = xburn_burns.filter(XburnBurn.user == wallet)
        claims = claims.filter(XburnClaim.user_address == wallet)
        locks = locks.filter(BurnNFT.user == wallet)

    for user, amount in xen_burns:
        wallets[user]["total_xen_burned"] += to_int(amount)
    for user, amount in xburn_burns:
        wallets[user]["total_xburn_burned"] += to_int(amount)
    for user, total in claims:
        wallets[user]["total_xburn_claimed"] += to_int(total)
    for nft in locks:
        if nft.is_active:
            wallets[nft.user]["active_locks"] += 1
        if nft.claimed:
            wallets[nft.user]["completed_locks"] += 1
        if nft.burned and nft.early_burn:
            wallets[nft.user]["early_unlocks"] += 1
    return dict(wallets)


def term_totals(session: Session, chain_id: str) -> Dict[int, Dict[str, int]]:
    terms: Dict[int, Dict[str, int]] = defaultdict(_empty_term)
    for nft in session.query(BurnNFT).filter(BurnNFT.chain_id == chain_id):
        term = terms[nft.term_days]
        term["total_locks"] += 1
        term["total_xen_locked"] += to_int(nft.xen_amount)
        if nft.is_active:
            term["active_locks"] += 1
    return dict(terms)


class AggregateService:
    def __init__(self):
        self.logger = structlog.get_logger()

    def apply_wallet(self, session: Session, chain_id: str, wallet: str, **deltas) -> WalletStats:
        stats = WalletStats.get_or_create(session, chain_id, wallet.lower())
        _apply_deltas(stats, WALLET_AMOUNT_FIELDS, WALLET_COUNT_FIELDS, deltas)
        return stats

    def apply_term(self, session: Session, chain_id: str, term_days: int, **deltas) -> TermStats:
        stats = TermStats.get_or_create(session, chain_id, int(term_days))
        _apply_deltas(stats, TERM_AMOUNT_FIELDS, TERM_COUNT_FIELDS, deltas)
        return stats

    def rebuild(self, session: Session, chain_id: str) -> Dict[str, int]:
        """
        Recompute wallet_stats and term_stats for one chain from the event tables.

        Returns the number of rows written per table.
        """
        wallets = wallet_totals(session, chain_id)
        terms = term_totals(session, chain_id)

        session.query(WalletStats).filter(WalletStats.chain_id == chain_id).delete(synchronize_session=False)
        session.query(TermStats).filter(TermStats.chain_id == chain_id).delete(synchronize_session=False)

        for wallet, values in wallets.items():
            session.add(
                WalletStats(
                    chain_id=chain_id,
                    wallet=wallet,
                    total_xen_burned=str(values["total_xen_burned"]),
                    total_xburn_burned=str(values["total_xburn_burned"]),
                    total_xburn_claimed=str(values["total_xburn_claimed"]),
                    active_locks=values["active_locks"],
                    completed_locks=values["completed_locks"],
                    early_unlocks=values["early_unlocks"],
                )
            )
        for term_days, values in terms.items():
            session.add(
                TermStats(
                    chain_id=chain_id,
                    term_days=term_days,
                    total_locks=values["total_locks"],
                    active_locks=values["active_locks"],
                    total_xen_locked=str(values["total_xen_locked"]),
                )
            )
        session.flush()

        self.logger.info("Aggregates rebuilt", chain_id=chain_id, wallets=len(wallets), terms=len(terms))
        return {"wallet_stats": len(wallets), "term_stats": len(terms)}
