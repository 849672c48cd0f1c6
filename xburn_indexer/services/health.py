"""
Indexer health derived from the checkpoint row and the latest metrics row.

A chain is healthy while its checkpoint exists and has been touched within
HEALTH_STALE_SECONDS. Database failures are reported, not raised.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from xburn_indexer.database.connection import Database
from xburn_indexer.models.state import IndexerState
from xburn_indexer.utils.time import utc_now
from .metrics import MetricsRecorder

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


@dataclass
class HealthReport:

    status: str
    chain_id: str
    chain_name: str
    last_indexed_block: Optional[int] = None
    last_indexed_at: Optional[datetime] = None
    metrics: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "lastIndexedBlock": self.last_indexed_block,
            "lastIndexedAt": self.last_indexed_at.isoformat() if self.last_indexed_at else None,
            "metrics": self.metrics,
            "message": self.message,
        }


class HealthService:
    def __init__(self, database: Database, settings):
        self.database = database
        self.chain_id = settings.CHAIN_ID
        self.chain_name = settings.CHAIN_NAME
        self.stale_after = timedelta(seconds=settings.HEALTH_STALE_SECONDS)
        self.logger = structlog.get_logger()

    def check(self, now: Optional[datetime] = None) -> HealthReport:
        now = now or utc_now()
        session = self.database.session()
        try:
            state = session.get(IndexerState, self.chain_id)
            latest = MetricsRecorder.latest(session, self.chain_id)
        except SQLAlchemyError as e:
            self.logger.error("Health check failed", chain_id=self.chain_id, error=str(e))
            return HealthReport(
                status=UNHEALTHY,
                chain_id=self.chain_id,
                chain_name=self.chain_name,
                message=f"Database error: {e}",
            )
        finally:
            session.close()

        if state is None:
            return HealthReport(
                status=UNHEALTHY,
                chain_id=self.chain_id,
                chain_name=self.chain_name,
                message="No indexer state found",
            )

        metrics = {}
        if latest is not None:
            metrics = {
                "batchSize": latest.batch_size,
                "eventsProcessed": latest.events_processed,
                "batchTimeMs": latest.batch_time_ms,
                "memoryUsageMb": latest.memory_usage_mb,
            }

        report = HealthReport(
            status=HEALTHY,
            chain_id=self.chain_id,
            chain_name=self.chain_name,
            last_indexed_block=state.last_indexed_block,
            last_indexed_at=state.last_indexed_at,
            metrics=metrics,
        )
        if state.last_indexed_at is None or now - state.last_indexed_at > self.stale_after:
            report.status = UNHEALTHY
            report.message = f"Indexer has not advanced in over {int(self.stale_after.total_seconds())} seconds"
        return report
