"""
Store handle for the platelog backend.

Uses SQLAlchemy 2.x style `Session` and declarative models. A `Store` is
constructed once at process start and passed to the schema manager, the
query layer and the importer; nothing reaches the database through module
globals. All writes are sequenced through one mutex so concurrent callers
queue rather than interleave.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .config import Settings
from .errors import SchemaError, translate_store_error

logger = logging.getLogger("store")


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def build_engine(database_url: str) -> Engine:
    engine = create_engine(database_url, echo=False, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class Store:
    """Single logical connection to the catalogue store."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
        self._write_lock = threading.RLock()
        self.ready = False

    def _ensure_ready(self) -> None:
        if not self.ready:
            raise SchemaError("Store schema is not initialized; refusing to read or write")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read session. Does not take the write lock."""
        self._ensure_ready()
        db = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            raise translate_store_error(exc) from exc
        finally:
            db.close()

    @contextmanager
    def write(self) -> Iterator[Session]:
        """One unit of work: lock, yield a session, commit or roll back."""
        self._ensure_ready()
        with self._write_lock:
            db = self.session_factory()
            try:
                yield db
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise translate_store_error(exc) from exc
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    @contextmanager
    def schema_lock(self) -> Iterator[None]:
        """Serialize schema changes with ordinary writes."""
        with self._write_lock:
            yield

    def dispose(self) -> None:
        self.ready = False
        self.engine.dispose()
        logger.info("Store disposed url=%s", self.engine.url.render_as_string(hide_password=True))


def create_store(cfg: Settings | str) -> Store:
    url = cfg if isinstance(cfg, str) else cfg.database_url
    return Store(build_engine(url))


def get_store(request: Request) -> Store:
    """FastAPI dependency: the store built at application start."""
    return request.app.state.store
