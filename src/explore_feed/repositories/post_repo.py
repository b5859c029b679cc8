"""Data access helpers for working with posts."""
from __future__ import annotations

from datetime import datetime
from typing import Final

from sqlalchemy import ColumnElement, Select, func, select, update
from sqlalchemy.orm import Session

from explore_feed.models.post import Post, PostCategory

__all__ = ["COUNTER_FIELDS", "PostRepository", "popularity"]

# Counters the engagement pipeline is allowed to touch.
COUNTER_FIELDS: Final[frozenset[str]] = frozenset(
    {"view_count", "save_count", "avg_view_time_seconds"}
)


def popularity() -> ColumnElement[int]:
    """Return the SQL expression summing a post's social interactions."""
    return Post.likes_count + Post.comments_count + Post.reposts_count


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_id(self, post_id: str) -> Post | None:
        """Return a post by identifier, reloading any cached counters."""
        result = self.session.execute(
            select(Post)
            .where(Post.id == post_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    def _candidates(
        self,
        *,
        since: datetime,
        category: str | None,
        media_only: bool,
    ) -> Select[tuple[Post]]:
        stmt = select(Post).where(Post.created_at >= since)
        if category:
            tagged = select(PostCategory.post_id).where(
                func.lower(PostCategory.category) == category.lower()
            )
            stmt = stmt.where(Post.id.in_(tagged))
        if media_only:
            stmt = stmt.where(func.json_array_length(Post.media_urls) > 0)
        return stmt

    def list_latest(
        self,
        *,
        since: datetime,
        category: str | None,
        media_only: bool,
        limit: int,
        offset: int,
    ) -> list[Post]:
        """Return candidates newest first, identifier breaking ties."""
        stmt = (
            self._candidates(since=since, category=category, media_only=media_only)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.execute(stmt).scalars())

    def list_popular(
        self,
        *,
        since: datetime,
        category: str | None,
        limit: int,
        offset: int,
    ) -> list[Post]:
        """Return candidates by interaction count, then recency, then identifier."""
        stmt = (
            self._candidates(since=since, category=category, media_only=False)
            .order_by(popularity().desc(), Post.created_at.desc(), Post.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.execute(stmt).scalars())

    def list_window(
        self,
        *,
        since: datetime,
        category: str | None,
        media_only: bool = False,
    ) -> list[Post]:
        """Return the full unpaginated candidate set for in-process scoring."""
        stmt = self._candidates(since=since, category=category, media_only=media_only)
        return list(self.session.execute(stmt).scalars())

    def count_categories(self, *, since: datetime, limit: int) -> list[tuple[str, int]]:
        """Return the most used category tags among posts created since ``since``."""
        post_count = func.count(PostCategory.post_id)
        stmt = (
            select(PostCategory.category, post_count)
            .join(Post, Post.id == PostCategory.post_id)
            .where(Post.created_at >= since)
            .group_by(PostCategory.category)
            .order_by(post_count.desc(), PostCategory.category.asc())
            .limit(limit)
        )
        return [(tag, int(count)) for tag, count in self.session.execute(stmt).all()]

    def increment_counter(self, post_id: str, field: str, by: int) -> bool:
        """Atomically add ``by`` to a counter column.

        Returns False when no post matched.
        """
        column = _counter_column(field)
        result = self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values({column: column + by})
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount > 0

    def set_counter(self, post_id: str, field: str, value: int | float) -> bool:
        """Overwrite a counter column. Returns False when no post matched."""
        column = _counter_column(field)
        result = self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values({column: value})
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount > 0


def _counter_column(field: str):
    if field not in COUNTER_FIELDS:
        raise ValueError(f"Unsupported counter field: {field}")
    return getattr(Post, field)
