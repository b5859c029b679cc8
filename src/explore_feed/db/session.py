"""Engine, session factory and request-scoped sessions for the feed database."""

from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from explore_feed.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base for the post, category and profile tables."""


# Model modules register their tables on Base.metadata when imported.
import explore_feed.models  # noqa: E402,F401


def build_engine(url: str, **engine_options: Any) -> Engine:
    """Create an engine for ``url``.

    SQLite connections are shared with worker threads, which run the
    ranking queries, so the same-thread check is disabled for them.
    """
    if url.startswith("sqlite"):
        connect_args = engine_options.pop("connect_args", {})
        engine_options["connect_args"] = {"check_same_thread": False, **connect_args}
    engine_options.setdefault("pool_pre_ping", True)
    return create_engine(url, **engine_options)


engine = build_engine(settings.effective_database_url, echo=settings.sql_debug)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a session for one request and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success, roll back on error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    Base.metadata.drop_all(bind=engine)
