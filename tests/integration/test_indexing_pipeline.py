"""
End-to-end indexing: scheduler, processor and SQLite with a scripted chain.
"""

from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from conftest import ALICE, BASE_TIMESTAMP, BOB, CAROL, CHAIN_ID, DAY, ZERO_ADDRESS
from xburn_indexer.main import build_scheduler
from xburn_indexer.models import BurnNFT, IndexerMetric, RawEvent, TermStats, WalletStats, XenBurn
from xburn_indexer.services.aggregates import AggregateService
from xburn_indexer.services.chain_reader import ChainReader
from xburn_indexer.services.scheduler import BatchStatus
from xburn_indexer.utils.time import from_unix


class ScriptedChain:
    """Serves a fixed set of logs by block range, the way get_logs filters them"""

    def __init__(self, logs, head):
        self.logs = logs
        self.head = head
        self.requested = []
        self.failures = {}

    def current_height(self):
        return self.head

    def get_logs(self, from_block, to_block):
        self.requested.append((from_block, to_block))
        remaining = self.failures.get((from_block, to_block), 0)
        if remaining:
            self.failures[(from_block, to_block)] = remaining - 1
            raise ConnectionError("connection reset by peer")
        return sorted(
            (log for log in self.logs if from_block <= log.block_number <= to_block),
            key=lambda log: (log.block_number, log.log_index),
        )

    def get_block_timestamps(self, block_numbers):
        return {number: BASE_TIMESTAMP + number * 12 for number in set(block_numbers)}

    def prune_timestamp_cache(self, head):
        return 0


@pytest.fixture
def chain_logs(log_factory):
    return [
        log_factory.xen_burned(ALICE, 10**21, block_number=150, log_index=0),
        log_factory.burn_nft_minted(ALICE, 7, 5000, 1, block_number=200, log_index=1),
        log_factory.burn_lock_created(7, ALICE, 5000, 1, BASE_TIMESTAMP + DAY, block_number=200, log_index=2),
        log_factory.transfer(ZERO_ADDRESS, ALICE, 7, block_number=200, log_index=3),
        log_factory.transfer(ALICE, BOB, 7, block_number=585, log_index=0),
        log_factory.xburn_burned(CAROL, 12, block_number=600, log_index=0),
        log_factory.burn_nft_minted(CAROL, 8, 900, 30, block_number=650, log_index=0),
        log_factory.lock_burned(8, block_number=690, log_index=0),
        log_factory.transfer(CAROL, ZERO_ADDRESS, 8, block_number=690, log_index=1),
    ]


@pytest.fixture
def scheduler(test_settings, database, chain_logs):
    scheduler = build_scheduler(test_settings, database)
    scheduler.chain_reader = ScriptedChain(chain_logs, head=700)
    scheduler.checkpoint.advance(100, batch_size=500)
    scheduler._sleep = MagicMock()
    return scheduler


def test_build_scheduler_wires_the_pipeline(test_settings, database):
    scheduler = build_scheduler(test_settings, database)

    assert isinstance(scheduler.chain_reader, ChainReader)
    assert scheduler.chain_reader.endpoints == test_settings.rpc_endpoints
    assert scheduler.processor.chain_id == CHAIN_ID
    assert scheduler.error_handler.max_retries == 5
    assert scheduler.initial_batch_size == 500


def test_indexes_to_head(scheduler, database):
    """Overlapping windows re-read block 585 without double counting"""
    scheduler.run(until_idle=True)

    assert scheduler.chain_reader.requested == [(91, 590), (581, 700)]
    with database.transaction() as session:
        assert session.query(RawEvent).count() == 9
        assert session.query(RawEvent).filter_by(event_type="unknown").count() == 0
        assert session.query(XenBurn).count() == 1
        assert session.query(IndexerMetric).count() == 2

        transferred = session.query(BurnNFT).filter_by(token_id="7").one()
        assert transferred.user == BOB
        assert transferred.minter == ALICE
        assert transferred.is_active

        burned = session.query(BurnNFT).filter_by(token_id="8").one()
        assert burned.burned and burned.early_burn
        assert burned.user == CAROL

        carol = session.query(WalletStats).filter_by(wallet=CAROL).one()
        assert carol.total_xburn_burned == "12"
        assert carol.early_unlocks == 1
        assert carol.active_locks == 0

        bob = session.query(WalletStats).filter_by(wallet=BOB).one()
        assert bob.active_locks == 1

        terms = {row.term_days: (row.total_locks, row.active_locks) for row in session.query(TermStats)}
        assert terms == {1: (1, 1), 30: (1, 0)}


def test_reindexing_is_idempotent(scheduler, database):
    """Replaying every window from scratch leaves the same state"""
    scheduler.run(until_idle=True)
    with database.transaction() as session:
        before = {
            row.wallet: (row.total_xen_burned, row.active_locks, row.early_unlocks)
            for row in session.query(WalletStats)
        }

    for from_block, to_block in [(91, 590), (581, 700)]:
        scheduler._index_window(from_block, to_block)

    with database.transaction() as session:
        after = {
            row.wallet: (row.total_xen_burned, row.active_locks, row.early_unlocks)
            for row in session.query(WalletStats)
        }
        assert after == before
        assert session.query(RawEvent).count() == 9
        assert session.query(BurnNFT).count() == 2


def test_reorged_log_moves_to_its_new_block(scheduler, database):
    """A log re-included at another block after a reorg updates the stored position"""
    scheduler.run(until_idle=True)
    chain = scheduler.chain_reader
    chain.logs = [replace(log, block_number=152) if log.block_number == 150 else log for log in chain.logs]

    scheduler._index_window(91, 590)

    with database.transaction() as session:
        burn = session.query(XenBurn).one()
        assert burn.block_number == 152
        assert burn.timestamp == from_unix(BASE_TIMESTAMP + 152 * 12)
        assert session.query(RawEvent).filter_by(tx_hash=burn.tx_hash).one().block_number == 152
        assert session.query(WalletStats).filter_by(wallet=ALICE).one().total_xen_burned == str(10**21)


def test_failed_window_is_retried_then_indexed(scheduler, database):
    scheduler.chain_reader.failures[(91, 590)] = 2

    scheduler.run(until_idle=True)

    assert scheduler.chain_reader.requested[:3] == [(91, 590)] * 3
    assert [call.args[0] for call in scheduler._sleep.call_args_list] == [2.0, 4.0]
    assert scheduler.checkpoint.last_indexed_block() == 700
    with database.transaction() as session:
        assert session.query(BurnNFT).count() == 2


def test_persistently_failing_window_is_skipped(scheduler, database):
    """After the retry ceiling the window is skipped and indexing continues"""
    scheduler.chain_reader.failures[(91, 590)] = 5

    scheduler.run(until_idle=True)

    assert scheduler.checkpoint.last_indexed_block() == 700
    assert scheduler.chain_reader.requested.count((91, 590)) == 5
    with database.transaction() as session:
        # only the events after the skipped window were indexed
        assert session.query(XenBurn).count() == 0
        assert session.query(BurnNFT).filter_by(token_id="8").one().burned


def test_rebuild_after_indexing_matches(scheduler, database):
    scheduler.run(until_idle=True)
    with database.transaction() as session:
        cached = {row.wallet: (row.total_xen_burned, row.active_locks) for row in session.query(WalletStats)}

    with database.transaction() as session:
        AggregateService().rebuild(session, CHAIN_ID)

    with database.transaction() as session:
        rebuilt = {
            row.wallet: (row.total_xen_burned, row.active_locks)
            for row in session.query(WalletStats)
            if row.total_xen_burned != "0" or row.active_locks
        }
        assert rebuilt == {wallet: values for wallet, values in cached.items() if values != ("0", 0)}
