"""Atomic post counter updates."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from explore_feed.models.post import Post
from explore_feed.repositories.post_repo import PostRepository
from explore_feed.services.errors import CounterStoreUnavailable, PostNotFound
from explore_feed.services.types import PostCounters

logger = logging.getLogger(__name__)


class CounterStore(Protocol):
    """Storage surface that applies counter changes without read-modify-write."""

    async def increment(self, post_id: str, field: str, by: int) -> PostCounters:
        ...

    async def set(self, post_id: str, field: str, value: int | float) -> PostCounters:
        ...

    async def get(self, post_id: str) -> PostCounters:
        ...


def to_counters(post: Post) -> PostCounters:
    return PostCounters(
        post_id=post.id,
        likes_count=post.likes_count,
        comments_count=post.comments_count,
        reposts_count=post.reposts_count,
        save_count=post.save_count,
        view_count=post.view_count,
        avg_view_time_seconds=post.avg_view_time_seconds,
    )


class SqlCounterStore:
    """Counter store issuing single-statement UPDATEs against the ``post`` table.

    Increments are expressed as ``SET field = field + :by`` so concurrent
    updates from different sessions are serialised by the database.
    Database failures roll the session back and raise ``CounterStoreUnavailable``.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.repo = PostRepository(session)

    def _fail(self, post_id: str, exc: SQLAlchemyError) -> CounterStoreUnavailable:
        self.session.rollback()
        logger.error("Counter update for post %s failed: %s", post_id, exc)
        return CounterStoreUnavailable(f"Counter update failed: {exc}")

    async def increment(self, post_id: str, field: str, by: int) -> PostCounters:
        try:
            updated = self.repo.increment_counter(post_id, field, by)
        except SQLAlchemyError as exc:
            raise self._fail(post_id, exc) from exc
        if not updated:
            raise PostNotFound(post_id)
        return await self.get(post_id)

    async def set(self, post_id: str, field: str, value: int | float) -> PostCounters:
        try:
            updated = self.repo.set_counter(post_id, field, value)
        except SQLAlchemyError as exc:
            raise self._fail(post_id, exc) from exc
        if not updated:
            raise PostNotFound(post_id)
        return await self.get(post_id)

    async def get(self, post_id: str) -> PostCounters:
        try:
            post = self.repo.get_by_id(post_id)
        except SQLAlchemyError as exc:
            raise self._fail(post_id, exc) from exc
        if post is None:
            raise PostNotFound(post_id)
        return to_counters(post)
