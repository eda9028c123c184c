"""Database handle: engine construction, schema creation and transactional scopes."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..logging import get_logger
from .schema import Base

# Refreshed after every load; only PostgreSQL deployments define them.
MATERIALIZED_VIEWS: tuple[str, ...] = (
    "mv_monthly_stats_by_repo",
    "mv_monthly_category_stats",
)


class Database:
    """Owns the engine for one run; hands out one session per unit of work."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.engine: Engine = create_engine(url, echo=echo)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _configure_sqlite_connection)
            event.listen(self.engine, "begin", _begin_sqlite_transaction)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.logger = get_logger("stores.database")

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_schema(self) -> None:
        """Create missing tables; existing tables are left untouched."""
        Base.metadata.create_all(self.engine)
        self.logger.info("Schema ready on %s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session whose work commits on success and rolls back on any exception."""
        with self._session_factory() as session:
            with session.begin():
                yield session

    def refresh_views(self) -> bool:
        """Refresh reporting views; failures are logged, never raised."""
        if self.dialect != "postgresql":
            self.logger.debug("Skipping materialized view refresh on %s", self.dialect)
            return False
        self.logger.info("Refreshing materialized views...")
        try:
            with self.engine.begin() as connection:
                for view in MATERIALIZED_VIEWS:
                    connection.execute(text(f"REFRESH MATERIALIZED VIEW {view}"))
        except SQLAlchemyError as exc:
            self.logger.warning("Failed to refresh materialized views: %s", exc)
            return False
        self.logger.info("Materialized views refreshed successfully")
        return True

    def dispose(self) -> None:
        self.engine.dispose()


def _configure_sqlite_connection(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
    # Hand transaction control to SQLAlchemy so SAVEPOINTs nest inside the outer BEGIN.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(connection) -> None:  # type: ignore[no-untyped-def]
    connection.exec_driver_sql("BEGIN")


__all__ = ["Database", "MATERIALIZED_VIEWS"]
