"""Initial XBurn indexer schema and read views

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UINT256 = sa.Numeric(78, 0)


def _event_columns():
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tx_hash", sa.String(66), nullable=False),
        sa.Column("log_index", sa.Integer(), nullable=False),
        sa.Column("chain_id", sa.String(32), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
    ]


def _event_table(name, *columns):
    op.create_table(
        name,
        *_event_columns(),
        *columns,
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("tx_hash", "log_index", "chain_id", name=f"{name}_unique_event"),
    )
    op.create_index(f"ix_{name}_chain_block", name, ["chain_id", "block_number"])


CREATE_VIEWS_SQL = [
    """
    CREATE OR REPLACE VIEW active_locks AS
    SELECT chain_id, token_id, "user", minter, xen_amount, term_days, maturity_timestamp,
           block_number, tx_hash, timestamp
    FROM burn_nfts
    WHERE NOT claimed AND NOT burned;
    """,
    """
    CREATE OR REPLACE VIEW early_burn_locks AS
    SELECT chain_id, token_id, "user", xen_amount, term_days, maturity_timestamp,
           burned_at, burn_tx_hash
    FROM burn_nfts
    WHERE burned AND early_burn;
    """,
    """
    CREATE OR REPLACE VIEW wallet_stats_view AS
    WITH wallets AS (
        SELECT chain_id, "user" AS wallet FROM xen_burns
        UNION SELECT chain_id, "user" FROM xburn_burns
        UNION SELECT chain_id, user_address FROM xburn_claims
        UNION SELECT chain_id, "user" FROM burn_nfts
    )
    SELECT
        w.chain_id,
        w.wallet,
        COALESCE((SELECT SUM(x.amount) FROM xen_burns x
                  WHERE x.chain_id = w.chain_id AND x."user" = w.wallet), 0) AS total_xen_burned,
        COALESCE((SELECT SUM(b.amount) FROM xburn_burns b
                  WHERE b.chain_id = w.chain_id AND b."user" = w.wallet), 0) AS total_xburn_burned,
        COALESCE((SELECT SUM(c.total_amount) FROM xburn_claims c
                  WHERE c.chain_id = w.chain_id AND c.user_address = w.wallet), 0) AS total_xburn_claimed,
        (SELECT COUNT(*) FROM burn_nfts n
         WHERE n.chain_id = w.chain_id AND n."user" = w.wallet AND NOT n.claimed AND NOT n.burned) AS active_locks,
        (SELECT COUNT(*) FROM burn_nfts n
         WHERE n.chain_id = w.chain_id AND n."user" = w.wallet AND n.claimed) AS completed_locks,
        (SELECT COUNT(*) FROM burn_nfts n
         WHERE n.chain_id = w.chain_id AND n."user" = w.wallet AND n.burned AND n.early_burn) AS early_unlocks
    FROM wallets w;
    """,
    """
    CREATE OR REPLACE VIEW term_stats_view AS
    SELECT
        chain_id,
        term_days,
        COUNT(*) AS total_locks,
        COUNT(*) FILTER (WHERE NOT claimed AND NOT burned) AS active_locks,
        SUM(xen_amount) AS total_xen_locked
    FROM burn_nfts
    GROUP BY chain_id, term_days;
    """,
    """
    CREATE OR REPLACE VIEW top_burners AS
    SELECT
        chain_id,
        "user" AS wallet,
        SUM(amount) AS total_xen_burned,
        COUNT(*) AS burn_count,
        RANK() OVER (PARTITION BY chain_id ORDER BY SUM(amount) DESC) AS rank
    FROM xen_burns
    GROUP BY chain_id, "user";
    """,
]

DROP_VIEWS_SQL = [
    "DROP VIEW IF EXISTS top_burners;",
    "DROP VIEW IF EXISTS term_stats_view;",
    "DROP VIEW IF EXISTS wallet_stats_view;",
    "DROP VIEW IF EXISTS early_burn_locks;",
    "DROP VIEW IF EXISTS active_locks;",
]


def upgrade() -> None:
    op.create_table(
        "indexer_state",
        sa.Column("chain_id", sa.String(32), primary_key=True),
        sa.Column("last_indexed_block", sa.BigInteger(), nullable=False),
        sa.Column("last_indexed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("batch_size", sa.Integer(), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "raw_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tx_hash", sa.String(66), nullable=False),
        sa.Column("log_index", sa.Integer(), nullable=False),
        sa.Column("chain_id", sa.String(32), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("address", sa.String(42), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False, server_default="unknown"),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("tx_hash", "log_index", "chain_id", name="raw_events_unique_event"),
    )
    op.create_index("ix_raw_events_tx_hash", "raw_events", ["tx_hash"])
    op.create_index("ix_raw_events_chain_id", "raw_events", ["chain_id"])
    op.create_index("ix_raw_events_block_number", "raw_events", ["block_number"])
    op.create_index("ix_raw_events_address", "raw_events", ["address"])
    op.create_index("ix_raw_events_chain_block", "raw_events", ["chain_id", "block_number"])

    _event_table(
        "xen_burns",
        sa.Column("user", sa.String(42), nullable=False),
        sa.Column("amount", UINT256, nullable=False),
        sa.Column("accumulated_amount", UINT256, nullable=False),
        sa.Column("direct_burn_amount", UINT256, nullable=False),
    )
    op.create_index("ix_xen_burns_user", "xen_burns", ["user"])

    _event_table(
        "xburn_burns",
        sa.Column("user", sa.String(42), nullable=False),
        sa.Column("amount", UINT256, nullable=False),
    )
    op.create_index("ix_xburn_burns_user", "xburn_burns", ["user"])

    _event_table(
        "xburn_claims",
        sa.Column("user_address", sa.String(42), nullable=False),
        sa.Column("token_id", UINT256, nullable=False),
        sa.Column("base_amount", UINT256, nullable=False),
        sa.Column("bonus_amount", UINT256, nullable=False),
        sa.Column("total_amount", UINT256, nullable=False),
    )
    op.create_index("ix_xburn_claims_user_address", "xburn_claims", ["user_address"])
    op.create_index("ix_xburn_claims_token_id", "xburn_claims", ["token_id"])

    _event_table(
        "nft_transfers",
        sa.Column("token_id", UINT256, nullable=False),
        sa.Column("from_address", sa.String(42), nullable=False),
        sa.Column("to_address", sa.String(42), nullable=False),
    )
    op.create_index("ix_nft_transfers_token_id", "nft_transfers", ["token_id"])
    op.create_index("ix_nft_transfers_from_address", "nft_transfers", ["from_address"])
    op.create_index("ix_nft_transfers_to_address", "nft_transfers", ["to_address"])

    op.create_table(
        "burn_nfts",
        *_event_columns(),
        sa.Column("token_id", UINT256, nullable=False),
        sa.Column("user", sa.String(42), nullable=False, comment="Current owner of the lock"),
        sa.Column("minter", sa.String(42), nullable=False, comment="Address that created the lock"),
        sa.Column("xen_amount", UINT256, nullable=False),
        sa.Column("term_days", sa.Integer(), nullable=False),
        sa.Column("maturity_timestamp", sa.DateTime(), nullable=False),
        sa.Column("claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("claim_tx_hash", sa.String(66), nullable=True),
        sa.Column("burned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("burned_at", sa.DateTime(), nullable=True),
        sa.Column("burn_tx_hash", sa.String(66), nullable=True),
        sa.Column("early_burn", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("tx_hash", "log_index", "chain_id", name="burn_nfts_unique_event"),
        sa.UniqueConstraint("token_id", "chain_id", name="burn_nfts_unique_token"),
    )
    op.create_index("ix_burn_nfts_chain_block", "burn_nfts", ["chain_id", "block_number"])
    op.create_index("ix_burn_nfts_user", "burn_nfts", ["user"])
    op.create_index("ix_burn_nfts_minter", "burn_nfts", ["minter"])
    op.create_index("ix_burn_nfts_term_days", "burn_nfts", ["term_days"])
    op.create_index("ix_burn_nfts_claimed", "burn_nfts", ["claimed"])
    op.create_index("ix_burn_nfts_burned", "burn_nfts", ["burned"])

    op.create_table(
        "wallet_stats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chain_id", sa.String(32), nullable=False),
        sa.Column("wallet", sa.String(42), nullable=False),
        sa.Column("total_xen_burned", UINT256, nullable=False, server_default="0"),
        sa.Column("total_xburn_burned", UINT256, nullable=False, server_default="0"),
        sa.Column("total_xburn_claimed", UINT256, nullable=False, server_default="0"),
        sa.Column("active_locks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_locks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("early_unlocks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("chain_id", "wallet", name="wallet_stats_unique_wallet"),
    )
    op.create_index("ix_wallet_stats_wallet", "wallet_stats", ["wallet"])

    op.create_table(
        "term_stats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chain_id", sa.String(32), nullable=False),
        sa.Column("term_days", sa.Integer(), nullable=False),
        sa.Column("total_locks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active_locks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_xen_locked", UINT256, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("chain_id", "term_days", name="term_stats_unique_term"),
    )
    op.create_index("ix_term_stats_term_days", "term_stats", ["term_days"])

    op.create_table(
        "indexer_metrics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chain_id", sa.String(32), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("last_indexed_block", sa.BigInteger(), nullable=False),
        sa.Column("batch_size", sa.Integer(), nullable=False),
        sa.Column("events_processed", sa.Integer(), nullable=False),
        sa.Column("batch_time_ms", sa.Integer(), nullable=False),
        sa.Column("memory_usage_mb", sa.Float(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_indexer_metrics_chain_id", "indexer_metrics", ["chain_id"])
    op.create_index("ix_indexer_metrics_chain_timestamp", "indexer_metrics", ["chain_id", "timestamp"])

    for statement in CREATE_VIEWS_SQL:
        op.execute(statement)


def downgrade() -> None:
    for statement in DROP_VIEWS_SQL:
        op.execute(statement)

    for table in (
        "indexer_metrics",
        "term_stats",
        "wallet_stats",
        "burn_nfts",
        "nft_transfers",
        "xburn_claims",
        "xburn_burns",
        "xen_burns",
        "raw_events",
        "indexer_state",
    ):
        op.drop_table(table)
