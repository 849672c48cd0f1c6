"""
Error classification and retry policy for the XBurn indexer.

Batch failures are sorted into transport, persistence, decode and fatal
categories. Transport and persistence failures are retried with exponential
backoff up to a ceiling, after which the scheduler skips the window.
"""

from typing import Any, Dict, Optional

import structlog
from requests.exceptions import RequestException
from sqlalchemy.exc import SQLAlchemyError
from web3.exceptions import Web3Exception

from xburn_indexer.config import settings
from xburn_indexer.utils.exceptions import (
    DecodeError,
    ErrorCategory,
    MissingBlockTimestampError,
    ProviderInitializationError,
)

TRANSPORT_ERRORS = (
    RequestException,
    Web3Exception,
    ConnectionError,
    TimeoutError,
    MissingBlockTimestampError,
)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry `attempt` (1-based): base * 2**attempt, capped"""
    return min(base_delay * (2**attempt), max_delay)


class ErrorHandler:
    """Classify indexing errors and decide on retries"""

    def __init__(
        self,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        self.logger = structlog.get_logger()
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = settings.RETRY_BASE_DELAY if base_delay is None else base_delay
        self.max_delay = settings.MAX_RETRY_DELAY if max_delay is None else max_delay

    def classify(self, error: Exception) -> ErrorCategory:
        if isinstance(error, ProviderInitializationError):
            return ErrorCategory.FATAL
        if isinstance(error, DecodeError):
            return ErrorCategory.DECODE
        if isinstance(error, SQLAlchemyError):
            return ErrorCategory.PERSISTENCE
        if isinstance(error, TRANSPORT_ERRORS):
            return ErrorCategory.TRANSPORT
        return ErrorCategory.UNKNOWN

    def handle_batch_error(self, error: Exception, context: Dict[str, Any]) -> ErrorCategory:
        """
        Log a failed batch and return its category.

        Args:
            error: The exception that aborted the batch
            context: Window and attempt information for the log line

        Returns:
            The error category; FATAL means the worker must stop
        """
        category = self.classify(error)
        if category == ErrorCategory.TRANSPORT:
            self.handle_rpc_error(error, context)
        elif category == ErrorCategory.PERSISTENCE:
            self.handle_database_error(error, context)
        elif category == ErrorCategory.DECODE:
            self.handle_decode_error(error, context)
        else:
            self.logger.error(
                "Batch failed",
                category=category.value,
                error=str(error),
                error_type=type(error).__name__,
                context=context,
            )
        return category

    def handle_rpc_error(self, error: Exception, context: Dict[str, Any]) -> bool:
        self.logger.error("RPC error occurred", error=str(error), error_type=type(error).__name__, context=context)
        return True

    def handle_database_error(self, error: Exception, context: Dict[str, Any]) -> bool:
        self.logger.error("Database error occurred", error=str(error), context=context)
        return True

    def handle_decode_error(self, error: DecodeError, context: Dict[str, Any]) -> None:
        self.logger.warning(
            "Decode error",
            error=error.message,
            tx_hash=error.tx_hash,
            log_index=error.log_index,
            context=context,
        )

    def should_retry(self, attempt: int) -> bool:
        """
        Determine if a failed window should be retried.

        Args:
            attempt: Number of consecutive failures of the window so far

        Returns:
            True while the retry ceiling has not been reached
        """
        return attempt < self.max_retries

    def get_retry_delay(self, attempt: int) -> float:
        """Exponential backoff in seconds for the given attempt"""
        return backoff_delay(attempt, self.base_delay, self.max_delay)
