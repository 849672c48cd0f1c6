"""
Chain reader for one logical EVM chain.

Wraps a prioritized list of JSON-RPC endpoints behind web3. Failover only
happens while initializing: a connection failure moves to the next endpoint
(cyclically) and exhausting the list is fatal. Errors raised while a batch
is being fetched are left to the scheduler's retry policy.
"""

from typing import Callable, Dict, Iterable, List, Optional

import structlog
from web3 import Web3

from xburn_indexer.utils.exceptions import (
    IndexerError,
    MissingBlockTimestampError,
    ProviderInitializationError,
)
from .decoder import EventDecoder
from .event_types import RawLog

logger = structlog.get_logger()


def _hex(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value).lower()
    return str(value).lower()


def _int(value) -> int:
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


def to_raw_log(entry) -> RawLog:
    """Normalize one eth_getLogs entry (web3 AttributeDict or plain dict)"""
    return RawLog(
        address=_hex(entry["address"]),
        topics=tuple(_hex(topic) for topic in entry["topics"]),
        data=_hex(entry.get("data")) or "0x",
        block_number=_int(entry["blockNumber"]),
        block_hash=_hex(entry.get("blockHash")),
        tx_hash=_hex(entry["transactionHash"]),
        tx_index=_int(entry.get("transactionIndex", 0)),
        log_index=_int(entry["logIndex"]),
        removed=bool(entry.get("removed", False)),
    )


class BlockTimestampCache:
    """
    Block number -> unix timestamp memo.

    Eviction is tied to the chain head: entries more than `depth` blocks
    behind it are dropped on `prune`. This bounds the cache approximately,
    it is not an LRU.
    """

    def __init__(self, depth: int = 1000):
        self.depth = depth
        self._timestamps: Dict[int, int] = {}

    def get(self, block_number: int) -> Optional[int]:
        return self._timestamps.get(block_number)

    def put(self, block_number: int, timestamp: int) -> None:
        self._timestamps[block_number] = timestamp

    def prune(self, head: int) -> int:
        oldest_relevant = head - self.depth
        stale = [number for number in self._timestamps if number < oldest_relevant]
        for number in stale:
            del self._timestamps[number]
        return len(stale)

    def __contains__(self, block_number: int) -> bool:
        return block_number in self._timestamps

    def __len__(self) -> int:
        return len(self._timestamps)


class ChainReader:
    def __init__(
        self,
        endpoints: List[str],
        decoder: EventDecoder,
        timeout: int = 30,
        cache_depth: int = 1000,
        web3_factory: Optional[Callable[[str], Web3]] = None,
    ):
        if not endpoints:
            raise ValueError("At least one RPC endpoint is required")

        self.endpoints = list(endpoints)
        self.decoder = decoder
        self.timeout = timeout
        self.current_provider = 0
        self.timestamp_cache = BlockTimestampCache(cache_depth)
        self._web3_factory = web3_factory or self._default_web3
        self._w3: Optional[Web3] = None

    def _default_web3(self, url: str) -> Web3:
        return Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": self.timeout}))

    @property
    def w3(self) -> Web3:
        if self._w3 is None:
            raise IndexerError("Chain reader used before initialize()")
        return self._w3

    @property
    def current_url(self) -> str:
        return self.endpoints[self.current_provider]

    def initialize(self) -> None:
        """Connect to the first reachable endpoint, starting at the current one"""
        for _ in range(len(self.endpoints)):
            url = self.current_url
            try:
                w3 = self._web3_factory(url)
                network_chain_id = w3.eth.chain_id
            except Exception as e:
                logger.error(
                    "Failed to connect to RPC provider",
                    url=url,
                    provider_index=self.current_provider,
                    error=str(e),
                )
                self.current_provider = (self.current_provider + 1) % len(self.endpoints)
                continue

            self._w3 = w3
            logger.info(
                "Connected to RPC provider",
                url=url,
                provider_index=self.current_provider,
                network_chain_id=network_chain_id,
            )
            self._validate_contracts()
            return

        raise ProviderInitializationError("All RPC providers failed", endpoints=self.endpoints)

    def _validate_contracts(self) -> None:
        for address in self.decoder.addresses:
            try:
                code = self.w3.eth.get_code(Web3.to_checksum_address(address))
            except Exception as e:
                raise ProviderInitializationError(f"Contract validation failed at {address}: {e}")
            if len(code) == 0:
                logger.warning("No contract code at indexed address", address=address)

    def current_height(self) -> int:
        return int(self.w3.eth.block_number)

    def get_logs(self, from_block: int, to_block: int) -> List[RawLog]:
        """
        Fetch the known events of both indexed contracts over [from_block, to_block].

        Each contract is queried with its own address and topic0 list, so logs
        of any other event are never transferred. The merged result is ordered
        by (block_number, log_index).
        """
        logs: List[RawLog] = []
        for address in self.decoder.addresses:
            entries = self.w3.eth.get_logs(
                {
                    "fromBlock": from_block,
                    "toBlock": to_block,
                    "address": Web3.to_checksum_address(address),
                    "topics": [self.decoder.topics_for(address)],
                }
            )
            for entry in entries:
                raw_log = to_raw_log(entry)
                if raw_log.removed:
                    logger.debug("Skipping removed log", tx_hash=raw_log.tx_hash, log_index=raw_log.log_index)
                    continue
                logs.append(raw_log)

        logs.sort(key=lambda log: (log.block_number, log.log_index))
        return logs

    def get_block_timestamp(self, block_number: int) -> int:
        cached = self.timestamp_cache.get(block_number)
        if cached is not None:
            return cached

        block = self.w3.eth.get_block(block_number)
        if block is None:
            raise MissingBlockTimestampError(block_number)
        timestamp = int(block["timestamp"])
        self.timestamp_cache.put(block_number, timestamp)
        return timestamp

    def get_block_timestamps(self, block_numbers: Iterable[int]) -> Dict[int, int]:
        return {number: self.get_block_timestamp(number) for number in sorted(set(block_numbers))}

    def prune_timestamp_cache(self, head: int) -> int:
        removed = self.timestamp_cache.prune(head)
        if removed:
            logger.debug("Pruned block timestamp cache", removed=removed, remaining=len(self.timestamp_cache))
        return removed
