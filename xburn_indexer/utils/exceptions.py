"""
XBurn indexer exceptions and error categories
"""

from enum import Enum


class ErrorCategory(Enum):

    TRANSPORT = "transport"
    PERSISTENCE = "persistence"
    DECODE = "decode"
    FATAL = "fatal"
    UNKNOWN = "unknown"


class IndexerError(Exception):

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ProviderInitializationError(IndexerError):
    """No configured RPC endpoint could be reached"""

    def __init__(self, message: str, endpoints=None):
        self.endpoints = list(endpoints or [])
        super().__init__(message)


class DecodeError(IndexerError):
    """A log could not be mapped to a known domain event"""

    def __init__(self, message: str, tx_hash: str = None, log_index: int = None):
        self.tx_hash = tx_hash
        self.log_index = log_index
        super().__init__(message)


class MissingBlockTimestampError(IndexerError):

    def __init__(self, block_number: int):
        self.block_number = block_number
        super().__init__(f"No timestamp found for block {block_number}")
