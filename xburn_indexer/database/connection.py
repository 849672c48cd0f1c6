"""
Database context for the XBurn indexer.

A single `Database` object is built at startup and handed to every component
that needs a session; its lifecycle (open/dispose) belongs to the process
entry point.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from xburn_indexer.models.base import Base

logger = structlog.get_logger()


class Database:
    def __init__(self, database_url: str, pool_size: int = 5, echo: bool = False, engine: Optional[Engine] = None):
        self.database_url = database_url
        self.engine = engine or self._create_engine(database_url, pool_size, echo)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=True, bind=self.engine)

    @staticmethod
    def _create_engine(database_url: str, pool_size: int, echo: bool) -> Engine:
        if database_url.startswith("sqlite"):
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                return create_engine(
                    database_url,
                    echo=echo,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
        return create_engine(database_url, echo=echo, pool_size=pool_size, pool_pre_ping=True)

    def create_schema(self) -> None:
        """Create all tables (development and tests; production uses alembic)"""
        Base.metadata.create_all(bind=self.engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def session(self) -> Session:
        return self.SessionLocal()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session whose writes commit together or not at all"""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database connection closed")


def get_db(database: Database) -> Iterator[Session]:
    db = database.session()
    try:
        yield db
    finally:
        db.close()
