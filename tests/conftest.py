import logging

import pytest
import structlog
from eth_abi import encode
from fastapi.testclient import TestClient

from xburn_indexer.api.main import create_app
from xburn_indexer.config import Settings
from xburn_indexer.database.connection import Database
from xburn_indexer.services.aggregates import AggregateService
from xburn_indexer.services.decoder import MINTER, NFT, EventDecoder, event_topic, load_abi
from xburn_indexer.services.event_types import RawLog
from xburn_indexer.services.processor import EventProcessor

MINTER_ADDRESS = "0x0598dd8acabd947e2df48e1368779849d07f8483"
NFT_ADDRESS = "0xcb7d2a11d3271d2793e76c37ad06ddeeb514c1fa"
CHAIN_ID = "1"

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
ZERO_ADDRESS = "0x" + "0" * 40

DAY = 86400
BASE_TIMESTAMP = 1_700_000_000


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        cache_logger_on_first_use=False,
    )


def _topics_by_name(contract_name):
    return {item["name"]: event_topic(item) for item in load_abi(contract_name) if item.get("type") == "event"}


def _topic(abi_type, value) -> str:
    return "0x" + encode([abi_type], [value]).hex()


class LogFactory:
    """Builds RawLog entries the way eth_getLogs reports XBurn events"""

    def __init__(self, minter_address=MINTER_ADDRESS, nft_address=NFT_ADDRESS):
        self.minter_address = minter_address
        self.nft_address = nft_address
        self.minter_topics = _topics_by_name(MINTER)
        self.nft_topics = _topics_by_name(NFT)
        self._counter = 0

    def raw(self, address, topics, data=b"", block_number=100, log_index=None, tx_hash=None):
        self._counter += 1
        return RawLog(
            address=address,
            topics=tuple(topics),
            data="0x" + data.hex(),
            block_number=block_number,
            block_hash="0x" + format(block_number, "064x"),
            tx_hash=tx_hash or "0x" + format(self._counter, "064x"),
            tx_index=0,
            log_index=self._counter if log_index is None else log_index,
        )

    def xen_burned(self, user, amount, **kwargs):
        return self.raw(
            self.minter_address,
            [self.minter_topics["XENBurned"], _topic("address", user)],
            encode(["uint256"], [amount]),
            **kwargs,
        )

    def xburn_burned(self, user, amount, **kwargs):
        return self.raw(
            self.minter_address,
            [self.minter_topics["XBURNBurned"], _topic("address", user)],
            encode(["uint256"], [amount]),
            **kwargs,
        )

    def burn_nft_minted(self, user, token_id, xen_amount, term_days, **kwargs):
        return self.raw(
            self.minter_address,
            [self.minter_topics["BurnNFTMinted"], _topic("address", user), _topic("uint256", token_id)],
            encode(["uint256", "uint256"], [xen_amount, term_days]),
            **kwargs,
        )

    def xburn_claimed(self, user, token_id, base_amount, bonus_amount, total_amount, **kwargs):
        return self.raw(
            self.minter_address,
            [self.minter_topics["XBURNClaimed"], _topic("address", user), _topic("uint256", token_id)],
            encode(["uint256", "uint256", "uint256"], [base_amount, bonus_amount, total_amount]),
            **kwargs,
        )

    def burn_lock_created(self, token_id, user, amount, term_days, maturity, **kwargs):
        return self.raw(
            self.nft_address,
            [self.nft_topics["BurnLockCreated"], _topic("uint256", token_id), _topic("address", user)],
            encode(["uint256", "uint256", "uint256"], [amount, term_days, maturity]),
            **kwargs,
        )

    def lock_burned(self, token_id, **kwargs):
        return self.raw(self.nft_address, [self.nft_topics["LockBurned"], _topic("uint256", token_id)], **kwargs)

    def transfer(self, from_address, to_address, token_id, **kwargs):
        return self.raw(
            self.nft_address,
            [
                self.nft_topics["Transfer"],
                _topic("address", from_address),
                _topic("address", to_address),
                _topic("uint256", token_id),
            ],
            **kwargs,
        )


@pytest.fixture
def log_factory():
    return LogFactory()


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite://",
        CHAIN_ID=CHAIN_ID,
        CHAIN_NAME="ethereum",
        RPC_URL="http://primary.invalid",
        BACKUP_RPC_URLS="http://backup-1.invalid, http://backup-2.invalid",
        XBURN_MINTER_CONTRACT=MINTER_ADDRESS,
        XBURN_NFT_CONTRACT=NFT_ADDRESS,
        START_BLOCK=0,
        BATCH_SIZE=500,
        REORG_BUFFER_BLOCKS=10,
        BATCH_GROWTH_FACTOR=1.5,
        POLL_INTERVAL=15.0,
        MAX_RETRIES=5,
        RETRY_BASE_DELAY=1.0,
        MAX_RETRY_DELAY=30.0,
        HEALTH_STALE_SECONDS=300,
    )


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_schema()
    try:
        yield db
    finally:
        db.drop_schema()
        db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def decoder():
    return EventDecoder(MINTER_ADDRESS, NFT_ADDRESS)


@pytest.fixture
def processor(decoder):
    return EventProcessor(decoder, AggregateService(), CHAIN_ID)


@pytest.fixture
def client(database, test_settings):
    with TestClient(create_app(database, test_settings)) as test_client:
        yield test_client
