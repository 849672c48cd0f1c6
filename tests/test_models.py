from datetime import datetime

from conftest import ALICE, CHAIN_ID
from xburn_indexer.models import BurnNFT, IndexerState, RawEvent, WalletStats, XenBurn


def test_models_import():
    """Test that all models can be imported"""
    assert IndexerState is not None
    assert RawEvent is not None
    assert XenBurn is not None
    assert BurnNFT is not None


def _lock(**overrides):
    values = dict(
        token_id="1",
        chain_id=CHAIN_ID,
        tx_hash="0x" + "01" * 32,
        log_index=0,
        block_number=100,
        timestamp=datetime(2024, 1, 1),
        user=ALICE,
        minter=ALICE,
        xen_amount="1000",
        term_days=7,
        maturity_timestamp=datetime(2024, 1, 8),
        claimed=False,
        burned=False,
        early_burn=False,
    )
    values.update(overrides)
    return BurnNFT(**values)


def test_lock_active_until_claimed_or_burned():
    assert _lock().is_active
    assert not _lock(claimed=True).is_active
    assert not _lock(burned=True).is_active


def test_uint256_round_trips_exactly(db_session):
    """Amounts beyond 64 bits come back as exact decimal strings"""
    amount = str(2**256 - 1)
    db_session.add(
        XenBurn(
            chain_id=CHAIN_ID,
            tx_hash="0x" + "02" * 32,
            log_index=0,
            block_number=100,
            timestamp=datetime(2024, 1, 1),
            user=ALICE,
            amount=amount,
            accumulated_amount="0",
            direct_burn_amount=amount,
        )
    )
    db_session.commit()
    db_session.expire_all()

    assert db_session.query(XenBurn).one().amount == amount


def test_wallet_stats_get_or_create(db_session):
    first = WalletStats.get_or_create(db_session, CHAIN_ID, ALICE)
    second = WalletStats.get_or_create(db_session, CHAIN_ID, ALICE)

    assert first is second
    assert first.total_xen_burned == "0"
    assert first.active_locks == 0
