"""Dialect-aware insert-or-ignore used for every idempotent write"""

from typing import Any, Dict, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def insert_ignore(session: Session, model, values: Dict[str, Any]) -> bool:
    """
    Insert one row unless it collides with any unique constraint.

    Returns True when the row was written, False when an existing row with
    the same key made the insert a no-op.
    """
    dialect = session.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"insert_ignore is not supported on {dialect}")

    stmt = insert(model.__table__).values(**values).on_conflict_do_nothing()
    result = session.execute(stmt)
    return result.rowcount == 1


EVENT_KEY = ("tx_hash", "log_index", "chain_id")
CHAIN_POSITION = ("block_number", "timestamp")


def insert_or_refresh(session: Session, model, values: Dict[str, Any], refresh: Sequence[str] = CHAIN_POSITION) -> bool:
    """
    Insert one event row, or overwrite the `refresh` columns of the row
    already stored under the same (tx_hash, log_index, chain_id).

    A log re-included at another block after a reorg keeps its identity
    but moves; the stored row follows the newest replay. Returns True only
    when a new row was written.
    """
    if insert_ignore(session, model, values):
        return True
    session.query(model).filter_by(**{name: values[name] for name in EVENT_KEY}).update(
        {name: values[name] for name in refresh}, synchronize_session=False
    )
    return False
