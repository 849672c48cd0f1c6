"""
Tests for MetricsRecorder.
"""

from datetime import datetime

from conftest import CHAIN_ID
from xburn_indexer.models import IndexerMetric
from xburn_indexer.services.metrics import MetricsRecorder, memory_usage_mb


class TestMetricsRecorder:
    def test_record_batch(self, db_session):
        """One row per batch, keyed by the last block of the window"""
        recorder = MetricsRecorder(CHAIN_ID)

        recorder.record_batch(db_session, 91, 590, events_processed=12, batch_time_ms=340)
        db_session.commit()

        metric = db_session.query(IndexerMetric).one()
        assert metric.chain_id == CHAIN_ID
        assert metric.block_number == 590
        assert metric.last_indexed_block == 590
        assert metric.batch_size == 500
        assert metric.events_processed == 12
        assert metric.batch_time_ms == 340
        assert metric.memory_usage_mb > 0
        assert metric.timestamp is not None

    def test_latest(self, db_session):
        recorder = MetricsRecorder(CHAIN_ID)
        first = recorder.record_batch(db_session, 1, 10, 0, 5)
        second = recorder.record_batch(db_session, 11, 20, 3, 7)
        first.timestamp = second.timestamp = datetime(2024, 1, 1)
        MetricsRecorder("137").record_batch(db_session, 21, 30, 1, 1)
        db_session.commit()

        latest = MetricsRecorder.latest(db_session, CHAIN_ID)

        assert latest.block_number == 20

    def test_latest_without_rows(self, db_session):
        assert MetricsRecorder.latest(db_session, CHAIN_ID) is None


def test_memory_usage_is_reported_in_megabytes():
    assert 0 < memory_usage_mb() < 1024 * 1024
