"""Trending category tags for the explore sidebar."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from explore_feed.db.time import utcnow
from explore_feed.repositories.post_repo import PostRepository
from explore_feed.services.errors import InvalidQuery, UpstreamUnavailable
from explore_feed.services.types import Timeframe, TopicCount


def trending_topics(
    session: Session,
    *,
    timeframe: str,
    limit: int,
    clock: Callable[[], datetime] = utcnow,
) -> list[TopicCount]:
    """Return the category tags used by the most posts within ``timeframe``.

    Ties are broken alphabetically so the list is stable.
    """
    try:
        window = Timeframe(timeframe).window
    except ValueError as exc:
        raise InvalidQuery(f"Unknown timeframe: {timeframe}") from exc
    if limit <= 0:
        raise InvalidQuery("limit must be a positive integer")

    repo = PostRepository(session)
    try:
        rows = repo.count_categories(since=clock() - window, limit=limit)
    except SQLAlchemyError as exc:
        raise UpstreamUnavailable(f"Topic aggregation failed: {exc}") from exc
    return [TopicCount(tag=tag, count=count) for tag, count in rows]
