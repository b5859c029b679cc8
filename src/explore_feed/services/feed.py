"""Explore feed query service.

Resolves a page of ranked posts, joins the author summaries in one batched
lookup and reports whether another page is likely to follow.

Pagination stability across pages is the ranking source's responsibility.
This service relays the order it is given and only removes repeated
identifiers within a page.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from explore_feed.core.settings import settings
from explore_feed.services.errors import (
    FeedError,
    InternalAggregationError,
    InvalidQuery,
    UpstreamUnavailable,
)
from explore_feed.services.profiles import ProfileStore
from explore_feed.services.ranking import RankingSource
from explore_feed.services.types import (
    AuthorSummary,
    FeedEntry,
    FeedFilter,
    FeedPage,
    FeedQuery,
    RankedPost,
    Timeframe,
)

logger = logging.getLogger(__name__)

_TIMEFRAMES = frozenset(item.value for item in Timeframe)
_FILTERS = frozenset(item.value for item in FeedFilter)


class FeedQueryService:
    """Assemble explore feed pages from a ranking source and a profile store."""

    def __init__(
        self,
        ranking: RankingSource,
        profiles: ProfileStore,
        *,
        timeout_seconds: float | None = None,
        max_limit: int | None = None,
        allowed_filters: Iterable[str] | None = None,
    ) -> None:
        self.ranking = ranking
        self.profiles = profiles
        self.timeout_seconds = (
            settings.ranking_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.max_limit = settings.max_page_size if max_limit is None else max_limit
        allowed = settings.feed_filters if allowed_filters is None else allowed_filters
        self.allowed_filters = frozenset(allowed) & _FILTERS

    def validate(self, query: FeedQuery) -> None:
        """Raise ``InvalidQuery`` for anything the ranking source must never see."""
        if query.page < 0:
            raise InvalidQuery("page must be zero or greater")
        if query.limit <= 0:
            raise InvalidQuery("limit must be a positive integer")
        if query.limit > self.max_limit:
            raise InvalidQuery(f"limit must not exceed {self.max_limit}")
        if query.timeframe not in _TIMEFRAMES:
            raise InvalidQuery(f"Unknown timeframe: {query.timeframe}")
        if query.filter not in self.allowed_filters:
            raise InvalidQuery(f"Unknown filter: {query.filter}")

    async def get_feed_page(self, query: FeedQuery) -> FeedPage:
        """Return one page of the explore feed for ``query``.

        Raises:
            InvalidQuery: If page, limit, filter or timeframe is out of range.
            UpstreamUnavailable: If the ranking source or profile store fails
                or the ranking fetch exceeds its time bound.
            InternalAggregationError: If posts cannot be joined to authors.
        """
        self.validate(query)
        offset = query.offset

        posts = await self._fetch_ranked(query, offset)
        full_page = len(posts) >= query.limit
        if len(posts) > query.limit:
            logger.warning(
                "Ranking source returned %d posts for limit %d; trimming",
                len(posts),
                query.limit,
            )
            posts = posts[:query.limit]
        unique_posts = _dedupe(posts)
        if len(unique_posts) != len(posts):
            logger.warning(
                "Ranking source repeated %d post(s) on page %d",
                len(posts) - len(unique_posts),
                query.page,
            )

        author_ids = {post.user_id for post in unique_posts}
        authors = await self._fetch_authors(author_ids)
        entries = _join_authors(unique_posts, authors)

        page = FeedPage(
            entries=entries,
            page=query.page,
            limit=query.limit,
            offset=offset,
            # Approximation: a full page implies more may follow.
            has_more=full_page,
        )
        logger.debug(
            "Assembled feed page %d (%s, %s): %d posts from %d authors",
            query.page,
            query.filter,
            query.timeframe,
            len(entries),
            len(author_ids),
        )
        return page

    async def _fetch_ranked(self, query: FeedQuery, offset: int) -> list[RankedPost]:
        try:
            return await asyncio.wait_for(
                self.ranking.rank(query, limit=query.limit, offset=offset),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as exc:
            logger.error("Ranking source timed out after %.1fs", self.timeout_seconds)
            raise UpstreamUnavailable("Ranking source timed out") from exc
        except FeedError:
            raise
        except Exception as exc:
            logger.error("Ranking source failed: %s", exc)
            raise UpstreamUnavailable(f"Ranking source failed: {exc}") from exc

    async def _fetch_authors(self, author_ids: set[str]) -> dict[str, AuthorSummary]:
        if not author_ids:
            return {}
        try:
            return await self.profiles.get_profiles(author_ids)
        except FeedError:
            raise
        except Exception as exc:
            logger.error("Profile store failed: %s", exc)
            raise UpstreamUnavailable(f"Profile store failed: {exc}") from exc


def _dedupe(posts: list[RankedPost]) -> list[RankedPost]:
    seen: set[str] = set()
    unique: list[RankedPost] = []
    for post in posts:
        if post.id in seen:
            continue
        seen.add(post.id)
        unique.append(post)
    return unique


def _join_authors(
    posts: list[RankedPost],
    authors: dict[str, AuthorSummary],
) -> list[FeedEntry]:
    entries: list[FeedEntry] = []
    missing: set[str] = set()
    # Only a profile store breaking its own return type lands in the except.
    try:
        for post in posts:
            author = authors.get(post.user_id)
            if author is None:
                missing.add(post.user_id)
            entries.append(FeedEntry(post=post, author=author))
    except (AttributeError, TypeError) as exc:
        raise InternalAggregationError(f"Could not join posts to authors: {exc}") from exc
    if missing:
        logger.warning("No profile for %d author(s); posts kept without author", len(missing))
    return entries
