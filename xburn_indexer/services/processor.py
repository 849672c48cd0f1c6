"""
Event processor: persists decoded events and drives the BurnNFT lifecycle.

Every write is keyed by (tx_hash, log_index, chain_id) and lock transitions
only move forward, so processing the same log any number of times leaves the
store as if it had been processed once.
"""

from typing import Callable, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from xburn_indexer.database.statements import insert_or_refresh
from xburn_indexer.models.burn_nft import BurnNFT
from xburn_indexer.models.events import NftTransfer, XburnBurn, XburnClaim, XenBurn
from xburn_indexer.models.raw_event import UNKNOWN_EVENT_TYPE, RawEvent
from xburn_indexer.utils.exceptions import DecodeError
from xburn_indexer.utils.time import maturity_from
from .aggregates import AggregateService
from .decoder import EventDecoder
from .event_types import (
    DomainEvent,
    EventKind,
    LockBurned,
    LockClaimed,
    LockCreated,
    NftTransferred,
    RawLog,
    RewardTokenBurned,
    TokenBurned,
)

ZERO_ADDRESS = "0x" + "0" * 40


def verify_handlers(handlers: Dict[EventKind, Callable]) -> None:
    """Raise unless every EventKind has a handler"""
    missing = set(EventKind) - set(handlers)
    if missing:
        raise RuntimeError(f"No handler for event kinds: {sorted(kind.value for kind in missing)}")


class EventProcessor:
    def __init__(self, decoder: EventDecoder, aggregates: AggregateService, chain_id: str):
        self.decoder = decoder
        self.aggregates = aggregates
        self.chain_id = chain_id
        self.logger = structlog.get_logger().bind(chain_id=chain_id)

        self.handlers: Dict[EventKind, Callable[[Session, DomainEvent], None]] = {
            EventKind.TOKEN_BURNED: self._handle_token_burned,
            EventKind.REWARD_TOKEN_BURNED: self._handle_reward_token_burned,
            EventKind.LOCK_CREATED: self._handle_lock_created,
            EventKind.LOCK_CLAIMED: self._handle_lock_claimed,
            EventKind.LOCK_BURNED: self._handle_lock_burned,
            EventKind.NFT_TRANSFERRED: self._handle_nft_transferred,
        }
        verify_handlers(self.handlers)

    def process_log(self, session: Session, raw_log: RawLog, block_timestamp: int) -> Optional[EventKind]:
        """
        Persist one raw log and apply its domain effects within `session`.

        Returns the event kind, or None when the log could not be decoded (the
        raw event row is kept with type "unknown"). Database errors propagate.
        """
        insert_or_refresh(
            session,
            RawEvent,
            {
                "tx_hash": raw_log.tx_hash,
                "log_index": raw_log.log_index,
                "chain_id": self.chain_id,
                "block_number": raw_log.block_number,
                "address": raw_log.address,
                "event_type": UNKNOWN_EVENT_TYPE,
                "data": raw_log.to_payload(),
            },
            refresh=("block_number", "address", "data"),
        )

        try:
            event = self.decoder.decode(raw_log, block_timestamp)
        except DecodeError as e:
            self.logger.warning(
                "Failed to decode log",
                error=e.message,
                tx_hash=raw_log.tx_hash,
                log_index=raw_log.log_index,
                block_number=raw_log.block_number,
                address=raw_log.address,
            )
            return None

        self.handlers[event.kind](session, event)

        session.query(RawEvent).filter_by(
            tx_hash=raw_log.tx_hash,
            log_index=raw_log.log_index,
            chain_id=self.chain_id,
        ).update({"event_type": event.kind.value}, synchronize_session=False)

        return event.kind

    def _event_key(self, event: DomainEvent) -> Dict:
        return {
            "tx_hash": event.tx_hash,
            "log_index": event.log_index,
            "chain_id": self.chain_id,
            "block_number": event.block_number,
            "timestamp": event.timestamp,
        }

    def _get_lock(self, session: Session, token_id: str) -> Optional[BurnNFT]:
        return session.query(BurnNFT).filter_by(token_id=token_id, chain_id=self.chain_id).first()

    def _handle_token_burned(self, session: Session, event: TokenBurned) -> None:
        inserted = insert_or_refresh(
            session,
            XenBurn,
            {
                **self._event_key(event),
                "user": event.user,
                "amount": event.amount,
                "accumulated_amount": event.accumulated_amount,
                "direct_burn_amount": event.direct_burn_amount,
            },
        )
        if inserted:
            self.aggregates.apply_wallet(session, self.chain_id, event.user, total_xen_burned=event.amount)

    def _handle_reward_token_burned(self, session: Session, event: RewardTokenBurned) -> None:
        inserted = insert_or_refresh(
            session,
            XburnBurn,
            {**self._event_key(event), "user": event.user, "amount": event.amount},
        )
        if inserted:
            self.aggregates.apply_wallet(session, self.chain_id, event.user, total_xburn_burned=event.amount)

    def _handle_lock_created(self, session: Session, event: LockCreated) -> None:
        inserted = insert_or_refresh(
            session,
            BurnNFT,
            {
                **self._event_key(event),
                "token_id": event.token_id,
                "user": event.user,
                "minter": event.user,
                "xen_amount": event.xen_amount,
                "term_days": event.term_days,
                "maturity_timestamp": maturity_from(event.timestamp, event.term_days),
                "claimed": False,
                "burned": False,
                "early_burn": False,
            },
        )
        if not inserted:
            self.logger.debug("Lock already recorded", token_id=event.token_id, tx_hash=event.tx_hash)
            return

        self.aggregates.apply_wallet(session, self.chain_id, event.user, active_locks=1)
        self.aggregates.apply_term(
            session,
            self.chain_id,
            event.term_days,
            total_locks=1,
            active_locks=1,
            total_xen_locked=event.xen_amount,
        )
        self.logger.info(
            "Lock created",
            token_id=event.token_id,
            user=event.user,
            term_days=event.term_days,
            block_number=event.block_number,
        )

    def _handle_lock_claimed(self, session: Session, event: LockClaimed) -> None:
        lock = self._get_lock(session, event.token_id)
        if lock is None:
            self.logger.warning("Lock not found for claim event", token_id=event.token_id, tx_hash=event.tx_hash)
            return
        if lock.claimed and lock.claim_tx_hash == event.tx_hash:
            # same claim replayed, possibly at a new block
            lock.claimed_at = event.timestamp
            self._record_claim(session, event)
            return
        if not lock.is_active:
            self.logger.debug(
                "Ignoring claim of inactive lock",
                token_id=event.token_id,
                claimed=lock.claimed,
                burned=lock.burned,
            )
            return

        lock.claimed = True
        lock.claimed_at = event.timestamp
        lock.claim_tx_hash = event.tx_hash

        self._record_claim(session, event)

        self.aggregates.apply_wallet(session, self.chain_id, lock.user, active_locks=-1, completed_locks=1)
        self.aggregates.apply_wallet(session, self.chain_id, event.user, total_xburn_claimed=event.total_amount)
        self.aggregates.apply_term(session, self.chain_id, lock.term_days, active_locks=-1)

    def _record_claim(self, session: Session, event: LockClaimed) -> None:
        insert_or_refresh(
            session,
            XburnClaim,
            {
                **self._event_key(event),
                "user_address": event.user,
                "token_id": event.token_id,
                "base_amount": event.base_amount,
                "bonus_amount": event.bonus_amount,
                "total_amount": event.total_amount,
            },
        )

    def _handle_lock_burned(self, session: Session, event: LockBurned) -> None:
        lock = self._get_lock(session, event.token_id)
        if lock is None:
            self.logger.warning("Lock not found for burn event", token_id=event.token_id, tx_hash=event.tx_hash)
            return
        if lock.burned:
            if lock.burn_tx_hash == event.tx_hash and lock.burned_at != event.timestamp:
                self._refresh_burn(session, lock, event)
            return

        was_active = lock.is_active
        early_burn = event.timestamp < lock.maturity_timestamp

        lock.burned = True
        lock.burned_at = event.timestamp
        lock.burn_tx_hash = event.tx_hash
        lock.early_burn = early_burn

        deltas = {}
        if was_active:
            deltas["active_locks"] = -1
            self.aggregates.apply_term(session, self.chain_id, lock.term_days, active_locks=-1)
        if early_burn:
            deltas["early_unlocks"] = 1
        if deltas:
            self.aggregates.apply_wallet(session, self.chain_id, lock.user, **deltas)

        self.logger.info("Lock burned", token_id=event.token_id, early_burn=early_burn, user=lock.user)

    def _refresh_burn(self, session: Session, lock: BurnNFT, event: LockBurned) -> None:
        """Move a recorded burn to the replayed block time and re-derive early_burn"""
        early_burn = event.timestamp < lock.maturity_timestamp
        if early_burn != lock.early_burn:
            self.aggregates.apply_wallet(session, self.chain_id, lock.user, early_unlocks=1 if early_burn else -1)
        lock.burned_at = event.timestamp
        lock.early_burn = early_burn
        self.logger.info("Burn moved by replay", token_id=event.token_id, early_burn=early_burn, tx_hash=event.tx_hash)

    def _handle_nft_transferred(self, session: Session, event: NftTransferred) -> None:
        inserted = insert_or_refresh(
            session,
            NftTransfer,
            {
                **self._event_key(event),
                "token_id": event.token_id,
                "from_address": event.from_address,
                "to_address": event.to_address,
            },
        )
        if not inserted:
            return

        # transfers to the zero address are ERC-721 burns, settled by LockBurned
        if event.to_address == ZERO_ADDRESS:
            return

        lock = self._get_lock(session, event.token_id)
        if lock is None or not lock.is_active or lock.user == event.to_address:
            return

        previous_owner = lock.user
        lock.user = event.to_address
        self.aggregates.apply_wallet(session, self.chain_id, previous_owner, active_locks=-1)
        self.aggregates.apply_wallet(session, self.chain_id, event.to_address, active_locks=1)
