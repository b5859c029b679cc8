"""Ranking sources that order explore feed candidates.

A ranking source is an opaque total-order generator over the candidate set
of a query. The feed service never re-sorts what a source returns, so a
source must paginate stably: for an unchanged data set, consecutive offsets
must neither repeat nor skip posts.

Two implementations are provided:

- ``SqlRankingSource`` ranks against the local database.
- ``RemoteRankingSource`` delegates to an external ranking RPC over HTTP.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

import httpx
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from explore_feed.core.settings import Settings, settings
from explore_feed.db.time import as_utc, utcnow
from explore_feed.models.post import Post
from explore_feed.repositories.post_repo import PostRepository
from explore_feed.schemas.feed import RankedPostRow
from explore_feed.services.errors import UpstreamUnavailable
from explore_feed.services.types import FeedFilter, FeedQuery, RankedPost, Timeframe

logger = logging.getLogger(__name__)

Scorer = Callable[[Post, datetime], float]

# Weights for the default trending score.
_W_LIKE = 1.0
_W_COMMENT = 2.0
_W_REPOST = 3.0
_W_SAVE = 2.0
_W_VIEW = 0.1
_AGE_OFFSET_HOURS = 2.0
_GRAVITY = 1.5


class RankingSource(Protocol):
    """Strategy producing an ordered page of candidate posts."""

    async def rank(self, query: FeedQuery, *, limit: int, offset: int) -> list[RankedPost]:
        ...


def engagement_score(post: Post, now: datetime) -> float:
    """Weighted engagement decayed by post age in hours."""
    interactions = (
        post.likes_count * _W_LIKE
        + post.comments_count * _W_COMMENT
        + post.reposts_count * _W_REPOST
        + post.save_count * _W_SAVE
        + post.view_count * _W_VIEW
    )
    age_hours = max((now - as_utc(post.created_at)).total_seconds() / 3600.0, 0.0)
    return (interactions + 1.0) / (age_hours + _AGE_OFFSET_HOURS) ** _GRAVITY


def to_ranked_post(post: Post, score: float) -> RankedPost:
    """Convert a Post ORM instance into the ranking-source output type."""
    return RankedPost(
        id=post.id,
        user_id=post.user_id,
        content=post.content,
        created_at=as_utc(post.created_at),
        media_urls=list(post.media_urls or []),
        poll_id=post.poll_id,
        likes_count=post.likes_count,
        comments_count=post.comments_count,
        reposts_count=post.reposts_count,
        save_count=post.save_count,
        view_count=post.view_count,
        avg_view_time_seconds=post.avg_view_time_seconds,
        score=float(score),
        categories=post.category_names,
    )


class SqlRankingSource:
    """Rank posts stored in the local database.

    ``latest``, ``media`` and ``popular`` are ordered and paginated in SQL.
    ``trending`` scores the whole window in process with ``scorer`` and then
    slices it. Every ordering ends on the post identifier, so the order is
    total and pagination is stable for a fixed snapshot and clock.

    The viewer identity is accepted but this source is not personalised.
    Queries and scoring run in a worker thread so the caller's time bound can
    fire while they are in progress.
    """

    def __init__(
        self,
        session: Session,
        *,
        scorer: Scorer = engagement_score,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repo = PostRepository(session)
        self.scorer = scorer
        self.clock = clock

    async def rank(self, query: FeedQuery, *, limit: int, offset: int) -> list[RankedPost]:
        try:
            return await asyncio.to_thread(self._rank_sync, query, limit, offset)
        except SQLAlchemyError as exc:
            logger.error("Ranking query failed for filter %s: %s", query.filter, exc)
            raise UpstreamUnavailable(f"Ranking query failed: {exc}") from exc

    def _rank_sync(self, query: FeedQuery, limit: int, offset: int) -> list[RankedPost]:
        now = self.clock()
        since = now - Timeframe(query.timeframe).window
        mode = FeedFilter(query.filter)
        if mode is FeedFilter.TRENDING:
            return self._trending(query, since, now, limit, offset)
        if mode is FeedFilter.POPULAR:
            posts = self.repo.list_popular(
                since=since,
                category=query.category,
                limit=limit,
                offset=offset,
            )
            return [
                to_ranked_post(post, post.likes_count + post.comments_count + post.reposts_count)
                for post in posts
            ]
        posts = self.repo.list_latest(
            since=since,
            category=query.category,
            media_only=mode is FeedFilter.MEDIA,
            limit=limit,
            offset=offset,
        )
        return [to_ranked_post(post, as_utc(post.created_at).timestamp()) for post in posts]

    def _trending(
        self,
        query: FeedQuery,
        since: datetime,
        now: datetime,
        limit: int,
        offset: int,
    ) -> list[RankedPost]:
        posts = self.repo.list_window(since=since, category=query.category)
        scored = [(self.scorer(post, now), post) for post in posts]
        scored.sort(
            key=lambda pair: (pair[0], as_utc(pair[1].created_at), pair[1].id),
            reverse=True,
        )
        return [to_ranked_post(post, score) for score, post in scored[offset:offset + limit]]


class RemoteRankingSource:
    """Delegate ranking to an external RPC endpoint over HTTP.

    The endpoint receives the query as ``p_*`` parameters and answers with a
    JSON array of post rows in ranked order.
    """

    def __init__(
        self,
        base_url: str,
        *,
        path: str,
        timeout_seconds: float,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self.path = path
        self.timeout_seconds = timeout_seconds
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def rank(self, query: FeedQuery, *, limit: int, offset: int) -> list[RankedPost]:
        payload: dict[str, Any] = {
            "p_user_id": query.viewer_id,
            "p_limit": limit,
            "p_offset": offset,
            "p_filter": query.filter,
            "p_category": query.category,
            "p_timeframe": query.timeframe,
        }
        try:
            response = await self._client.post(self.path, json=payload, headers=self._headers())
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPError as exc:
            logger.error("Ranking RPC request failed: %s", exc)
            raise UpstreamUnavailable(f"Ranking RPC request failed: {exc}") from exc
        except ValueError as exc:
            raise UpstreamUnavailable("Ranking RPC returned invalid JSON") from exc

        if not isinstance(rows, list):
            raise UpstreamUnavailable("Ranking RPC returned a non-list payload")
        try:
            return [RankedPostRow.model_validate(row).to_ranked_post() for row in rows]
        except ValidationError as exc:
            logger.error("Ranking RPC returned malformed rows: %s", exc)
            raise UpstreamUnavailable("Ranking RPC returned malformed rows") from exc

    async def close(self) -> None:
        """Close the underlying HTTP client if this source created it."""
        if self._owns_client:
            await self._client.aclose()


_REMOTE_SOURCE: RemoteRankingSource | None = None


def get_remote_ranking_source(config: Settings | None = None) -> RemoteRankingSource:
    """Return the process-wide remote ranking source, creating it on first use."""
    global _REMOTE_SOURCE
    config = config or settings
    if _REMOTE_SOURCE is None:
        if not config.ranking_base_url:
            raise ValueError("RANKING_BASE_URL must be set when RANKING_BACKEND=remote")
        _REMOTE_SOURCE = RemoteRankingSource(
            config.ranking_base_url,
            path=config.ranking_rpc_path,
            timeout_seconds=config.ranking_timeout_seconds,
            api_key=config.ranking_api_key,
        )
    return _REMOTE_SOURCE


async def close_remote_ranking_source() -> None:
    """Release the process-wide remote ranking source, if one was created."""
    global _REMOTE_SOURCE
    if _REMOTE_SOURCE is not None:
        await _REMOTE_SOURCE.close()
        _REMOTE_SOURCE = None


def build_ranking_source(session: Session, config: Settings | None = None) -> RankingSource:
    """Select the ranking source configured by ``RANKING_BACKEND``."""
    config = config or settings
    backend = config.ranking_backend.lower()
    if backend == "sql":
        return SqlRankingSource(session)
    if backend == "remote":
        return get_remote_ranking_source(config)
    raise ValueError(f"Unknown ranking backend: {config.ranking_backend}")
