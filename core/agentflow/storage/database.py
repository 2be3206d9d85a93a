"""Database connection management for the execution store."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Self

from sqlalchemy import Connection, Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool

from agentflow.storage.schema import metadata

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the SQLAlchemy engine and the table metadata.

    Example:
        db = Database.from_url("sqlite:///./agentflow.db")
        with db.transaction() as conn:
            conn.execute(...)
    """

    def __init__(self, engine: Engine, url: str):
        self._engine: Engine | None = engine
        self.url = url

    @staticmethod
    def _configure_sqlite(engine: Engine) -> None:
        """Enforce foreign keys on every new SQLite connection."""

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @classmethod
    def from_url(cls, url: str, *, create_tables: bool = True) -> Self:
        """Create a database from a SQLAlchemy URL, creating tables if missing."""
        parsed = make_url(url)
        if parsed.drivername.startswith("sqlite") and parsed.database not in (None, "", ":memory:"):
            Path(parsed.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(url, echo=False)
        if url.startswith("sqlite"):
            cls._configure_sqlite(engine)
        if create_tables:
            metadata.create_all(engine)
        logger.debug(f"Database ready at {parsed.render_as_string(hide_password=True)}")
        return cls(engine, url)

    @classmethod
    def in_memory(cls) -> Self:
        """In-memory SQLite database for tests. All connections share one database."""
        engine = create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls._configure_sqlite(engine)
        metadata.create_all(engine)
        return cls(engine, "sqlite://")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not initialized")
        return self._engine

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Connection inside a transaction. Commits on success, rolls back on error."""
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Plain connection for reads."""
        with self.engine.connect() as conn:
            yield conn

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
