"""Database infrastructure: engine, schema and session factories."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, Tuple

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ..config import BaseConfig
from ..logging_config import get_logger

logger = get_logger("infra.database")


def _apply_sqlite_pragmas(engine: Engine, pragmas: dict[str, str]) -> None:
    """Run PRAGMA statements on every new SQLite connection."""

    @event.listens_for(engine, "connect")
    def _set_pragmas(dbapi_connection, _record) -> None:  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        try:
            for key, value in pragmas.items():
                cursor.execute(f"PRAGMA {key}={value}")
        finally:
            cursor.close()


def create_db_engine(config: BaseConfig) -> Engine:
    """Create the SQLModel engine, enabling WAL + foreign keys on SQLite."""

    engine = create_engine(config.DATABASE_URL, **config.sqlalchemy_engine_options())
    if config.is_sqlite:
        _apply_sqlite_pragmas(engine, config.SQLITE_PRAGMAS)
    return engine


def init_database(engine: Engine) -> None:
    """Create every table registered on the SQLModel metadata."""

    from .. import models  # noqa: F401  # register tables

    SQLModel.metadata.create_all(engine)
    logger.debug("Schema ensured", extra={"tables": sorted(SQLModel.metadata.tables)})


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Provide a transactional scope; rolls back and re-raises on error."""

    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_session_factory(engine: Engine):
    """Return a zero-argument callable producing ``session_scope`` contexts."""

    def factory():
        return session_scope(engine)

    return factory


def bootstrap_database(config: BaseConfig | None = None) -> Tuple[Engine, Callable]:
    """Build engine + session factory with the schema in place.

    Used by the CLI and the test-suite so both get identical engine options.
    """

    cfg = config or BaseConfig()
    engine = create_db_engine(cfg)
    init_database(engine)
    return engine, create_session_factory(engine)
