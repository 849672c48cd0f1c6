"""
Main entry point for the XBurn indexer.
"""

import signal

import structlog

from .config import settings
from .database.connection import Database
from .services.aggregates import AggregateService
from .services.chain_reader import ChainReader
from .services.checkpoint import CheckpointStore
from .services.decoder import EventDecoder
from .services.error_handler import ErrorHandler
from .services.metrics import MetricsRecorder
from .services.processor import EventProcessor
from .services.scheduler import BatchScheduler
from .utils.logging import get_chain_logger, setup_logging


def build_scheduler(app_settings, database: Database) -> BatchScheduler:
    """Wire one chain's indexing pipeline around an open database"""
    decoder = EventDecoder(app_settings.XBURN_MINTER_CONTRACT, app_settings.XBURN_NFT_CONTRACT)
    chain_reader = ChainReader(
        app_settings.rpc_endpoints,
        decoder,
        timeout=app_settings.RPC_TIMEOUT,
        cache_depth=app_settings.TIMESTAMP_CACHE_DEPTH,
    )
    processor = EventProcessor(decoder, AggregateService(), app_settings.CHAIN_ID)
    checkpoint = CheckpointStore(database, app_settings.CHAIN_ID, app_settings.START_BLOCK, app_settings.BATCH_SIZE)
    error_handler = ErrorHandler(
        max_retries=app_settings.MAX_RETRIES,
        base_delay=app_settings.RETRY_BASE_DELAY,
        max_delay=app_settings.MAX_RETRY_DELAY,
    )
    return BatchScheduler(
        app_settings,
        database,
        chain_reader,
        processor,
        checkpoint,
        MetricsRecorder(app_settings.CHAIN_ID),
        error_handler,
    )


def main(continuous=True, debug=False, app_settings=None):
    """Main application entry point"""
    app_settings = app_settings or settings
    setup_logging("DEBUG" if debug else app_settings.LOG_LEVEL)
    logger = get_chain_logger(app_settings.CHAIN_ID, app_settings.CHAIN_NAME)
    logger.info(
        "Initializing XBurn Indexer",
        start_block=app_settings.START_BLOCK,
        batch_size=app_settings.BATCH_SIZE,
        rpc_endpoints=len(app_settings.rpc_endpoints),
    )

    database = Database(app_settings.DATABASE_URL, pool_size=app_settings.DB_POOL_SIZE)
    try:
        database.ping()
        scheduler = build_scheduler(app_settings, database)
        scheduler.chain_reader.initialize()

        def handle_signal(signum, frame):
            logger.info("Received shutdown signal", signal=signal.Signals(signum).name)
            scheduler.stop()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        scheduler.run(until_idle=not continuous)
    except Exception as e:
        logger.error("Unhandled exception", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        database.dispose()


if __name__ == "__main__":
    main()
