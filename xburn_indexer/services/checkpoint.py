"""Per-chain indexing watermark persisted in indexer_state"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from xburn_indexer.database.connection import Database
from xburn_indexer.models.state import IndexerState
from xburn_indexer.utils.time import utc_now


@dataclass
class CheckpointState:

    chain_id: str
    last_indexed_block: int
    last_indexed_at: Optional[datetime]
    batch_size: int
    retry_count: int


class CheckpointStore:
    def __init__(self, database: Database, chain_id: str, start_block: int, default_batch_size: int):
        self.database = database
        self.chain_id = chain_id
        self.start_block = start_block
        self.default_batch_size = default_batch_size
        self.logger = structlog.get_logger().bind(chain_id=chain_id)

    def _get_or_create(self, session: Session) -> IndexerState:
        state = session.get(IndexerState, self.chain_id)
        if state is None:
            state = IndexerState(
                chain_id=self.chain_id,
                last_indexed_block=self.start_block,
                last_indexed_at=utc_now(),
                batch_size=self.default_batch_size,
                retry_count=0,
            )
            session.add(state)
            session.flush()
            self.logger.info("Created checkpoint", start_block=self.start_block, batch_size=self.default_batch_size)
        return state

    def get_state(self) -> CheckpointState:
        with self.database.transaction() as session:
            state = self._get_or_create(session)
            return CheckpointState(
                chain_id=state.chain_id,
                last_indexed_block=state.last_indexed_block,
                last_indexed_at=state.last_indexed_at,
                batch_size=state.batch_size,
                retry_count=state.retry_count,
            )

    def last_indexed_block(self) -> int:
        return self.get_state().last_indexed_block

    def advance(self, block: int, batch_size: int, retry_count: int = 0) -> int:
        """
        Record `block` as fully indexed.

        The watermark never moves backwards: an older block only refreshes
        the batch size, retry counter and timestamp. Returns the stored block.
        """
        with self.database.transaction() as session:
            state = self._get_or_create(session)
            if block < state.last_indexed_block:
                self.logger.warning(
                    "Refusing to move checkpoint backwards",
                    current=state.last_indexed_block,
                    requested=block,
                )
            else:
                state.last_indexed_block = block
            state.batch_size = batch_size
            state.retry_count = retry_count
            state.last_indexed_at = utc_now()
            return state.last_indexed_block

    def record_retry(self, retry_count: int) -> None:
        with self.database.transaction() as session:
            state = self._get_or_create(session)
            state.retry_count = retry_count
