"""
Runnable script for the XBurn indexer.
"""

import argparse
import multiprocessing
import sys
import time

import structlog
import uvicorn

from xburn_indexer.config import settings
from xburn_indexer.database.connection import Database
from xburn_indexer.main import main as run_indexer
from xburn_indexer.services.aggregates import AggregateService
from xburn_indexer.utils.logging import setup_logging

logger = structlog.get_logger()


def start_indexer_process(continuous=True, debug=False):
    """Starts the indexer in a separate process."""
    logger.info("Starting indexer process...", continuous=continuous)
    run_indexer(continuous=continuous, debug=debug)


def start_api_server():
    """Starts the FastAPI server."""
    logger.info("Starting API server...", host=settings.API_HOST, port=settings.API_PORT)
    uvicorn.run(
        "xburn_indexer.api.main:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
    )


def rebuild_aggregates():
    """Recompute wallet and term statistics from the event tables."""
    setup_logging(settings.LOG_LEVEL)
    database = Database(settings.DATABASE_URL, pool_size=settings.DB_POOL_SIZE)
    try:
        with database.transaction() as session:
            AggregateService().rebuild(session, settings.CHAIN_ID)
    finally:
        database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="XBurn Indexer")
    parser.add_argument(
        "--indexer-only",
        action="store_true",
        help="Run only the indexer (no API server)",
    )
    parser.add_argument(
        "--api-only",
        action="store_true",
        help="Run only the API server",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Index up to the current head and exit",
    )
    parser.add_argument(
        "--rebuild-aggregates",
        action="store_true",
        help="Rebuild wallet_stats and term_stats, then exit",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.rebuild_aggregates:
        rebuild_aggregates()
        sys.exit(0)

    run_api = args.api_only or (settings.ENABLE_API and not args.indexer_only)

    if args.api_only:
        setup_logging(settings.LOG_LEVEL)
        start_api_server()
    elif not run_api:
        run_indexer(continuous=not args.once, debug=args.debug)
    else:
        indexer_process = multiprocessing.Process(
            target=start_indexer_process, args=(not args.once, args.debug)
        )
        indexer_process.start()

        time.sleep(5)

        setup_logging(settings.LOG_LEVEL)
        start_api_server()

        indexer_process.join()
        sys.exit(indexer_process.exitcode or 0)
