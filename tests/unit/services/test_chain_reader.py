"""
Tests for ChainReader and BlockTimestampCache.
"""

from unittest.mock import MagicMock

import pytest

from conftest import ALICE, MINTER_ADDRESS, NFT_ADDRESS
from xburn_indexer.services.chain_reader import BlockTimestampCache, ChainReader, to_raw_log
from xburn_indexer.utils.exceptions import IndexerError, MissingBlockTimestampError, ProviderInitializationError

ENDPOINTS = ["http://primary.invalid", "http://backup-1.invalid", "http://backup-2.invalid"]


def make_web3(chain_id=1, code=b"\x60\x80"):
    w3 = MagicMock()
    w3.eth.chain_id = chain_id
    w3.eth.get_code.return_value = code
    return w3


def log_entry(address, block_number, log_index, topic0="0x" + "11" * 32):
    return {
        "address": address,
        "topics": [bytes.fromhex(topic0[2:])],
        "data": b"\x00" * 32,
        "blockNumber": block_number,
        "blockHash": b"\x22" * 32,
        "transactionHash": bytes([log_index]) * 32,
        "transactionIndex": 0,
        "logIndex": log_index,
        "removed": False,
    }


class TestInitialize:
    def test_connects_to_first_endpoint(self, decoder):
        factory = MagicMock(return_value=make_web3())
        reader = ChainReader(ENDPOINTS, decoder, web3_factory=factory)

        reader.initialize()

        factory.assert_called_once_with(ENDPOINTS[0])
        assert reader.current_provider == 0

    def test_fails_over_to_next_endpoint(self, decoder):
        """A connection failure advances to the next endpoint in priority order"""
        w3 = make_web3()
        factory = MagicMock(side_effect=[ConnectionError("refused"), w3])
        reader = ChainReader(ENDPOINTS, decoder, web3_factory=factory)

        reader.initialize()

        assert reader.current_provider == 1
        assert reader.current_url == ENDPOINTS[1]
        assert reader.w3 is w3

    def test_wraps_around_from_current_endpoint(self, decoder):
        """Failover is cyclic, starting at the current endpoint"""
        calls = []

        def factory(url):
            calls.append(url)
            if url != ENDPOINTS[0]:
                raise ConnectionError("down")
            return make_web3()

        reader = ChainReader(ENDPOINTS, decoder, web3_factory=factory)
        reader.current_provider = 1

        reader.initialize()

        assert calls == [ENDPOINTS[1], ENDPOINTS[2], ENDPOINTS[0]]
        assert reader.current_provider == 0

    def test_all_endpoints_failing_is_fatal(self, decoder):
        factory = MagicMock(side_effect=ConnectionError("down"))
        reader = ChainReader(ENDPOINTS, decoder, web3_factory=factory)

        with pytest.raises(ProviderInitializationError) as exc_info:
            reader.initialize()

        assert factory.call_count == len(ENDPOINTS)
        assert exc_info.value.endpoints == ENDPOINTS

    def test_contract_validation_failure_is_fatal(self, decoder):
        w3 = make_web3()
        w3.eth.get_code.side_effect = ValueError("execution reverted")
        reader = ChainReader(ENDPOINTS, decoder, web3_factory=MagicMock(return_value=w3))

        with pytest.raises(ProviderInitializationError, match="Contract validation failed"):
            reader.initialize()

    def test_missing_contract_code_is_only_a_warning(self, decoder):
        w3 = make_web3(code=b"")
        reader = ChainReader(ENDPOINTS, decoder, web3_factory=MagicMock(return_value=w3))

        reader.initialize()

        assert w3.eth.get_code.call_count == 2

    def test_use_before_initialize(self, decoder):
        reader = ChainReader(ENDPOINTS, decoder)
        with pytest.raises(IndexerError):
            reader.current_height()

    def test_requires_an_endpoint(self, decoder):
        with pytest.raises(ValueError):
            ChainReader([], decoder)


class TestGetLogs:
    @pytest.fixture
    def reader(self, decoder):
        reader = ChainReader(ENDPOINTS, decoder, web3_factory=MagicMock(return_value=make_web3()))
        reader.initialize()
        return reader

    def test_queries_each_contract_with_its_topics(self, reader, decoder):
        """Each contract is queried with its own address and topic0 list"""
        reader.w3.eth.get_logs.return_value = []

        reader.get_logs(100, 200)

        filters = [call.args[0] for call in reader.w3.eth.get_logs.call_args_list]
        assert [f["address"].lower() for f in filters] == [MINTER_ADDRESS, NFT_ADDRESS]
        assert filters[0]["topics"] == [decoder.topics_for(MINTER_ADDRESS)]
        assert filters[1]["topics"] == [decoder.topics_for(NFT_ADDRESS)]
        assert all(f["fromBlock"] == 100 and f["toBlock"] == 200 for f in filters)

    def test_merges_logs_in_chain_order(self, reader):
        minter_logs = [log_entry(MINTER_ADDRESS, 105, 4), log_entry(MINTER_ADDRESS, 101, 9)]
        nft_logs = [log_entry(NFT_ADDRESS, 105, 2), log_entry(NFT_ADDRESS, 101, 10)]
        reader.w3.eth.get_logs.side_effect = [minter_logs, nft_logs]

        logs = reader.get_logs(100, 200)

        assert [(log.block_number, log.log_index) for log in logs] == [(101, 9), (101, 10), (105, 2), (105, 4)]

    def test_skips_removed_logs(self, reader):
        removed = log_entry(MINTER_ADDRESS, 101, 1)
        removed["removed"] = True
        reader.w3.eth.get_logs.side_effect = [[removed], []]

        assert reader.get_logs(100, 200) == []

    def test_rpc_errors_propagate(self, reader):
        reader.w3.eth.get_logs.side_effect = TimeoutError("read timed out")

        with pytest.raises(TimeoutError):
            reader.get_logs(100, 200)


class TestRawLogConversion:
    def test_normalizes_bytes_to_lower_case_hex(self):
        entry = log_entry("0x0598dd8aCaBD947e2df48E1368779849D07f8483", 7, 3, topic0="0x" + "AB" * 32)

        raw_log = to_raw_log(entry)

        assert raw_log.address == MINTER_ADDRESS
        assert raw_log.topics == ("0x" + "ab" * 32,)
        assert raw_log.data == "0x" + "00" * 32
        assert raw_log.tx_hash == "0x" + "03" * 32
        assert raw_log.key == ("0x" + "03" * 32, 3)

    def test_accepts_hex_quantities(self):
        entry = log_entry(ALICE, 7, 3)
        entry["blockNumber"] = "0x10"
        entry["logIndex"] = "0x2"

        raw_log = to_raw_log(entry)

        assert (raw_log.block_number, raw_log.log_index) == (16, 2)


class TestBlockTimestamps:
    @pytest.fixture
    def reader(self, decoder):
        reader = ChainReader(ENDPOINTS, decoder, cache_depth=1000, web3_factory=MagicMock(return_value=make_web3()))
        reader.initialize()
        reader.w3.eth.get_block.side_effect = lambda number: {"number": number, "timestamp": 1_700_000_000 + number}
        return reader

    def test_timestamps_are_memoized(self, reader):
        assert reader.get_block_timestamp(5) == 1_700_000_005
        assert reader.get_block_timestamp(5) == 1_700_000_005
        reader.w3.eth.get_block.assert_called_once_with(5)

    def test_batch_lookup_fetches_each_block_once(self, reader):
        timestamps = reader.get_block_timestamps([3, 1, 3, 2])

        assert timestamps == {1: 1_700_000_001, 2: 1_700_000_002, 3: 1_700_000_003}
        assert reader.w3.eth.get_block.call_count == 3

    def test_missing_block(self, reader):
        reader.w3.eth.get_block.side_effect = lambda number: None

        with pytest.raises(MissingBlockTimestampError):
            reader.get_block_timestamp(9)

    def test_prune_drops_entries_behind_head(self, reader):
        """Entries more than cache_depth blocks behind the head are evicted"""
        for number in (100, 1500, 2000, 2500):
            reader.get_block_timestamp(number)

        removed = reader.prune_timestamp_cache(2600)

        assert removed == 2
        assert 100 not in reader.timestamp_cache
        assert 1500 not in reader.timestamp_cache
        assert len(reader.timestamp_cache) == 2


class TestBlockTimestampCache:
    def test_prune_is_head_relative(self):
        cache = BlockTimestampCache(depth=10)
        for number in range(20):
            cache.put(number, number)

        assert cache.prune(25) == 15
        assert sorted(cache._timestamps) == [15, 16, 17, 18, 19]
