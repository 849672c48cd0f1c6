import os
from typing import Optional

import psutil
import structlog
from sqlalchemy import desc
from sqlalchemy.orm import Session

from xburn_indexer.models.metrics import IndexerMetric
from xburn_indexer.utils.time import utc_now


def memory_usage_mb() -> float:
    """Resident set size of this process in MB"""
    process = psutil.Process(os.getpid())
    return round(process.memory_info().rss / (1024 * 1024), 2)


class MetricsRecorder:
    """Appends one indexer_metrics row per committed batch"""

    def __init__(self, chain_id: str):
        self.chain_id = chain_id
        self.logger = structlog.get_logger().bind(chain_id=chain_id)

    def record_batch(
        self,
        session: Session,
        from_block: int,
        to_block: int,
        events_processed: int,
        batch_time_ms: int,
    ) -> IndexerMetric:
        metric = IndexerMetric(
            chain_id=self.chain_id,
            block_number=to_block,
            last_indexed_block=to_block,
            batch_size=to_block - from_block + 1,
            events_processed=events_processed,
            batch_time_ms=int(batch_time_ms),
            memory_usage_mb=memory_usage_mb(),
            timestamp=utc_now(),
        )
        session.add(metric)
        self.logger.debug(
            "Batch metrics recorded",
            from_block=from_block,
            to_block=to_block,
            events_processed=events_processed,
            batch_time_ms=metric.batch_time_ms,
            memory_usage_mb=metric.memory_usage_mb,
        )
        return metric

    @staticmethod
    def latest(session: Session, chain_id: str) -> Optional[IndexerMetric]:
        return (
            session.query(IndexerMetric)
            .filter(IndexerMetric.chain_id == chain_id)
            .order_by(desc(IndexerMetric.timestamp), desc(IndexerMetric.id))
            .first()
        )
