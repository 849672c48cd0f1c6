import structlog
import logging


def setup_logging(level: str = "INFO"):
    """Setup structured logging configuration"""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )


def get_chain_logger(chain_id: str, chain_name: str = None, **context):
    """Return a logger bound to the indexed chain, the way every log line is tagged"""
    logger = structlog.get_logger().bind(service="xburn-indexer", chain_id=chain_id)
    if chain_name:
        logger = logger.bind(chain=chain_name)
    if context:
        logger = logger.bind(**context)
    return logger
