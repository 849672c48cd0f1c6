"""
Batch scheduler: the per-chain indexing loop.

Each iteration picks a block window behind the last checkpoint (re-scanning
a reorg buffer), fetches and processes its logs in one transaction, then
advances the checkpoint. Failures are retried with exponential backoff and
a window that keeps failing is eventually skipped.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

import structlog
from sqlalchemy.exc import SQLAlchemyError

from xburn_indexer.database.connection import Database
from xburn_indexer.utils.exceptions import ErrorCategory
from .chain_reader import ChainReader
from .checkpoint import CheckpointStore
from .error_handler import ErrorHandler
from .metrics import MetricsRecorder
from .processor import EventProcessor

PROGRESS_LOG_INTERVAL = 1000


class BatchStatus(Enum):

    IDLE = "idle"
    SUCCESS = "success"
    RETRY = "retry"
    SKIPPED = "skipped"
    FATAL = "fatal"


@dataclass
class BatchOutcome:

    status: BatchStatus
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    events_processed: int = 0
    delay: float = 0.0
    error: Optional[Exception] = None


def compute_window(
    checkpoint: int, head: int, batch_size: int, reorg_buffer: int, start_block: int
) -> Optional[Tuple[int, int]]:
    """
    Next block window to index, or None when the checkpoint has reached the head.

    The window starts `reorg_buffer` blocks before the first unindexed block
    (never before `start_block`) and always reaches past the checkpoint.
    """
    if checkpoint >= head:
        return None
    from_block = max(checkpoint + 1 - reorg_buffer, start_block)
    to_block = min(max(from_block + batch_size - 1, checkpoint + 1), head)
    return from_block, to_block


def grow_batch_size(current: int, initial: int, factor: float) -> int:
    return min(max(int(current * factor), current), initial)


class BatchScheduler:
    def __init__(
        self,
        settings,
        database: Database,
        chain_reader: ChainReader,
        processor: EventProcessor,
        checkpoint: CheckpointStore,
        metrics: MetricsRecorder,
        error_handler: ErrorHandler,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.database = database
        self.chain_reader = chain_reader
        self.processor = processor
        self.checkpoint = checkpoint
        self.metrics = metrics
        self.error_handler = error_handler
        self._sleep = sleep
        self.logger = structlog.get_logger().bind(chain_id=settings.CHAIN_ID)

        self.initial_batch_size = settings.BATCH_SIZE
        self.batch_size: Optional[int] = None
        self.retry_count = 0
        self.lookup_failures = 0
        self.pending_window: Optional[Tuple[int, int]] = None
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return not self._stopped

    def stop(self) -> None:
        """Ask the loop to exit after the current iteration"""
        self._stopped = True
        self.logger.info("Stop requested")

    def run(self, until_idle: bool = False) -> None:
        """
        Loop until stop() is called, or until the head is reached with `until_idle`.

        Raises the underlying error on a fatal outcome.
        """
        self.logger.info(
            "Starting indexing loop",
            start_block=self.settings.START_BLOCK,
            batch_size=self.initial_batch_size,
            reorg_buffer=self.settings.REORG_BUFFER_BLOCKS,
        )
        while not self._stopped:
            outcome = self.run_once()
            if outcome.status == BatchStatus.FATAL:
                self.logger.error("Fatal indexer error", error=str(outcome.error))
                raise outcome.error
            if outcome.status == BatchStatus.IDLE and until_idle:
                break
            if outcome.delay > 0 and not self._stopped:
                self._sleep(outcome.delay)
        self.logger.info("Indexing loop stopped")

    def run_once(self) -> BatchOutcome:
        """One loop iteration; never sleeps and never raises for batch failures"""
        try:
            state = self.checkpoint.get_state()
            head = self.chain_reader.current_height()
        except Exception as e:
            return self._handle_lookup_failure(e)
        self.lookup_failures = 0

        if self.batch_size is None:
            self.batch_size = min(state.batch_size, self.initial_batch_size)

        if self.pending_window is not None:
            window = self.pending_window
        else:
            # a fresh window gets the full retry budget
            self.retry_count = 0
            window = compute_window(
                state.last_indexed_block,
                head,
                self.batch_size,
                self.settings.REORG_BUFFER_BLOCKS,
                self.settings.START_BLOCK,
            )
        if window is None:
            self.chain_reader.prune_timestamp_cache(head)
            return BatchOutcome(status=BatchStatus.IDLE, delay=self.settings.POLL_INTERVAL)

        from_block, to_block = window
        try:
            events_processed = self._index_window(from_block, to_block)
            next_batch_size = grow_batch_size(self.batch_size, self.initial_batch_size, self.settings.BATCH_GROWTH_FACTOR)
            self.checkpoint.advance(to_block, next_batch_size, 0)
        except Exception as e:
            return self._handle_failure(e, window)

        self.batch_size = next_batch_size
        self.retry_count = 0
        self.pending_window = None
        self._log_progress(from_block, to_block, head)
        return BatchOutcome(
            status=BatchStatus.SUCCESS,
            from_block=from_block,
            to_block=to_block,
            events_processed=events_processed,
        )

    def _index_window(self, from_block: int, to_block: int) -> int:
        self.logger.info(
            "Indexing blocks",
            from_block=from_block,
            to_block=to_block,
            batch_size=self.batch_size,
            retry_count=self.retry_count,
        )
        started = time.monotonic()

        logs = self.chain_reader.get_logs(from_block, to_block)
        timestamps = self.chain_reader.get_block_timestamps(log.block_number for log in logs)

        events_processed = 0
        with self.database.transaction() as session:
            for raw_log in logs:
                self.processor.process_log(session, raw_log, timestamps[raw_log.block_number])
                events_processed += 1

            batch_time_ms = int((time.monotonic() - started) * 1000)
            self.metrics.record_batch(session, from_block, to_block, events_processed, batch_time_ms)

        self.logger.info(
            "Batch committed",
            from_block=from_block,
            to_block=to_block,
            events_processed=events_processed,
            batch_time_ms=batch_time_ms,
        )
        return events_processed

    def _handle_failure(self, error: Exception, window: Tuple[int, int]) -> BatchOutcome:
        from_block, to_block = window
        category = self.error_handler.handle_batch_error(
            error,
            {
                "from_block": from_block,
                "to_block": to_block,
                "retry_count": self.retry_count + 1,
            },
        )
        if category == ErrorCategory.FATAL:
            return BatchOutcome(status=BatchStatus.FATAL, from_block=from_block, to_block=to_block, error=error)

        self.retry_count += 1

        if self.error_handler.should_retry(self.retry_count):
            self.pending_window = window
            self._persist_retry_count()
            return BatchOutcome(
                status=BatchStatus.RETRY,
                from_block=from_block,
                to_block=to_block,
                delay=self.error_handler.get_retry_delay(min(self.retry_count, self.error_handler.max_retries)),
                error=error,
            )

        self.logger.error(
            "Max retries exceeded, skipping batch",
            from_block=from_block,
            to_block=to_block,
            error=str(error),
        )
        self.retry_count = 0
        self.pending_window = None
        try:
            self.checkpoint.advance(to_block, self.batch_size or self.initial_batch_size, 0)
        except SQLAlchemyError as e:
            # window is re-derived from the unchanged checkpoint next iteration
            self.logger.error("Failed to advance checkpoint past skipped batch", to_block=to_block, error=str(e))
            return BatchOutcome(
                status=BatchStatus.RETRY,
                from_block=from_block,
                to_block=to_block,
                delay=self.error_handler.get_retry_delay(self.error_handler.max_retries),
                error=e,
            )
        return BatchOutcome(status=BatchStatus.SKIPPED, from_block=from_block, to_block=to_block, error=error)

    def _handle_lookup_failure(self, error: Exception) -> BatchOutcome:
        """Checkpoint or head lookup failed; backs off without spending any window's retry budget"""
        category = self.error_handler.handle_batch_error(error, {"lookup_failures": self.lookup_failures + 1})
        if category == ErrorCategory.FATAL:
            return BatchOutcome(status=BatchStatus.FATAL, error=error)

        self.lookup_failures += 1
        return BatchOutcome(
            status=BatchStatus.RETRY,
            delay=self.error_handler.get_retry_delay(min(self.lookup_failures, self.error_handler.max_retries)),
            error=error,
        )

    def _persist_retry_count(self) -> None:
        try:
            self.checkpoint.record_retry(self.retry_count)
        except SQLAlchemyError as e:
            self.logger.warning("Failed to persist retry count", retry_count=self.retry_count, error=str(e))

    def _log_progress(self, from_block: int, to_block: int, head: int) -> None:
        if to_block // PROGRESS_LOG_INTERVAL == (from_block - 1) // PROGRESS_LOG_INTERVAL:
            return
        start_block = self.settings.START_BLOCK
        total = max(head - start_block, 1)
        self.logger.info(
            "Indexing progress",
            current_block=to_block,
            total_blocks=head - start_block,
            percent_complete=round((to_block - start_block) / total * 100, 2),
        )
