# src/cryptoadvisor/infrastructure/db/uow.py
"""
Database engine and the unit-of-work context manager.

`session_scope()` is the single transactional boundary used by stores and
services: commit on success, rollback and re-raise on any exception.
"""

import json
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, ContextManager, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, scoped_session

from cryptoadvisor.config import settings
from .models import Base

log = logging.getLogger(__name__)

SessionScope = Callable[[], ContextManager[Session]]


def _json_default(obj: Any) -> Any:
    """Decimals are written to JSON columns as strings."""
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Object of type {obj.__class__.__name__} is not JSON serializable")


def build_engine(url: str, **engine_kwargs: Any) -> Engine:
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)

    if url.startswith("sqlite"):
        # The scheduler thread and request threads share the file.
        connect_args = {"check_same_thread": False}
    else:
        connect_args = {
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        }

    options = dict(
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args=connect_args,
        json_serializer=lambda obj: json.dumps(obj, default=_json_default),
    )
    options.update(engine_kwargs)
    engine = create_engine(url, **options)

    if url.startswith("sqlite"):
        # SQLite ignores ON DELETE CASCADE / SET NULL unless asked per connection.
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def make_session_scope(factory: Callable[[], Session]) -> SessionScope:
    """Build a `session_scope`-style context manager over any session factory."""

    @contextmanager
    def _scope() -> Generator[Session, None, None]:
        session = factory()
        log.debug("Session %s opened.", id(session))
        try:
            yield session
            session.commit()
            log.debug("Session %s committed.", id(session))
        except Exception as e:
            log.error("Session %s rollback due to exception: %s", id(session), e)
            session.rollback()
            raise
        finally:
            if isinstance(factory, scoped_session):
                factory.remove()
            else:
                session.close()

    return _scope


# --- Database Engine & Session Setup ---

try:
    log.info("Initializing database engine for URL: ...%s", settings.DATABASE_URL[-20:])
    engine = build_engine(settings.DATABASE_URL)
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    SessionScoped = scoped_session(_session_factory)
except Exception as e:
    log.critical("Failed to initialize database engine: %s", e, exc_info=True)
    raise

session_scope = make_session_scope(SessionScoped)


def create_tables() -> None:
    """Creates all tables registered on Base.metadata (dev and tests; production uses Alembic)."""
    log.info("Creating database tables if they do not exist...")
    try:
        Base.metadata.create_all(engine)
        log.info("Database tables checked/created successfully.")
    except Exception as e:
        log.critical("Failed to create database tables: %s", e, exc_info=True)
        raise
