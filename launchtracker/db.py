from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from fastapi import Request
from sqlalchemy import case, create_engine, event, func
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.elements import ColumnElement

from launchtracker.models import Base

log = logging.getLogger(__name__)


class Database:
    """One engine plus session factory; constructed at startup and injected.

    Usage::

        db = Database(settings.database_url)
        db.create_all()
        with db.session_scope() as session:
            ...
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = make_url(url)
        kwargs: dict = {"echo": echo}
        if self.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.url.database in (None, "", ":memory:"):
                # every connection must see the same in-memory database
                kwargs["poolclass"] = StaticPool
            else:
                Path(self.url.database).parent.mkdir(parents=True, exist_ok=True)
        else:
            kwargs["pool_pre_ping"] = True
        self.engine: Engine = create_engine(self.url, **kwargs)
        if self.is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    @property
    def is_sqlite(self) -> bool:
        return self.url.get_backend_name() == "sqlite"

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)
        log.info("Schema ready on %s", self.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()

    def session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Context manager providing a transactional session scope (scripts, seeding)."""
        session = self.session()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def session_generator(self) -> Generator[Session, None, None]:
        """Generator-based session suitable for FastAPI ``Depends()``."""
        session = self.session()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ---------------------------------------------------------------------------
# Aggregate helpers
#
# PostgreSQL has ``count(*) filter (where ...)`` and ``bool_or``; SQLite has
# neither. These CASE-based forms run unchanged on both.
# ---------------------------------------------------------------------------


def count_all() -> ColumnElement[int]:
    return func.count()


def count_where(condition: ColumnElement[bool]) -> ColumnElement[int]:
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def bool_or(condition: ColumnElement[bool]) -> ColumnElement[bool]:
    return func.coalesce(func.max(case((condition, 1), else_=0)), 0) == 1


def db_session(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request from the app's ``Database``."""
    yield from request.app.state.db.session_generator()
