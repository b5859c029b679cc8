# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from datetime import datetime, timedelta
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from explore_feed.api.v1.dependencies import get_view_ledger_dep
from explore_feed.db.session import Base, build_engine
from explore_feed.db.session import get_db as app_get_session
from explore_feed.db.time import utcnow
from explore_feed.main import app as fastapi_app
from explore_feed.models import Post, PostCategory, Profile
from explore_feed.services.view_ledger import InMemoryViewLedger

TEST_DB_URL = "sqlite://"

_PROFILE_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def view_ledger() -> InMemoryViewLedger:
    """Fresh view ledger so sessions never leak between tests."""
    return InMemoryViewLedger(ttl_seconds=3600)


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    view_ledger: InMemoryViewLedger,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_view_ledger_dep] = lambda: view_ledger
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_view_ledger_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_profile(db_session: Session) -> Callable[..., Profile]:
    """Return a factory persisting author profiles."""

    def _make(profile_id: str | None = None, **fields: Any) -> Profile:
        number = next(_PROFILE_COUNTER)
        profile = Profile(
            id=profile_id or f"user-{number}",
            username=fields.pop("username", f"user_{number}"),
            full_name=fields.pop("full_name", f"User {number}"),
            avatar_url=fields.pop("avatar_url", None),
        )
        db_session.add(profile)
        db_session.flush()
        return profile

    return _make


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    """Return a factory persisting posts created ``hours_ago`` before ``now``."""

    def _make(
        author: Profile | str,
        *,
        content: str = "Test post content",
        hours_ago: float = 1.0,
        now: datetime | None = None,
        categories: list[str] | None = None,
        **fields: Any,
    ) -> Post:
        user_id = author if isinstance(author, str) else author.id
        post = Post(
            user_id=user_id,
            content=content,
            created_at=(now or utcnow()) - timedelta(hours=hours_ago),
            categories=[PostCategory(category=tag) for tag in categories or []],
            **fields,
        )
        db_session.add(post)
        db_session.flush()
        return post

    return _make


@pytest.fixture()
def author(make_profile: Callable[..., Profile]) -> Profile:
    return make_profile("author-1", username="alice_tech", full_name="Alice Johnson")


@pytest.fixture()
def test_post(make_post: Callable[..., Post], author: Profile) -> Post:
    """Create a baseline post for tests."""
    return make_post(author, content="Just launched my new AI project!")
