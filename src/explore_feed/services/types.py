"""Domain types shared by the feed query and engagement services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class FeedFilter(str, Enum):
    """Filter modes understood by the ranking sources."""

    TRENDING = "trending"
    LATEST = "latest"
    POPULAR = "popular"
    MEDIA = "media"


class Timeframe(str, Enum):
    """Candidate windows measured back from the current time."""

    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"

    @property
    def window(self) -> timedelta:
        return _TIMEFRAME_WINDOWS[self]


_TIMEFRAME_WINDOWS: dict[Timeframe, timedelta] = {
    Timeframe.DAY: timedelta(hours=24),
    Timeframe.WEEK: timedelta(days=7),
    Timeframe.MONTH: timedelta(days=30),
}


class MetricKind(str, Enum):
    """Engagement signals folded into post counters."""

    VIEW = "view"
    SAVE = "save"
    VIEW_TIME = "view_time"


@dataclass(frozen=True)
class FeedQuery:
    """Input descriptor for a single feed page.

    ``filter`` and ``timeframe`` are kept as raw strings so that validation,
    and the ``InvalidQuery`` it raises, stays with the feed service.
    """

    viewer_id: str | None = None
    filter: str = FeedFilter.TRENDING.value
    category: str | None = None
    timeframe: str = Timeframe.WEEK.value
    page: int = 0
    limit: int = 20

    @property
    def offset(self) -> int:
        return self.page * self.limit


@dataclass(frozen=True)
class RankedPost:
    """A candidate post as ordered by a ranking source."""

    id: str
    user_id: str
    content: str
    created_at: datetime
    media_urls: list[str] = field(default_factory=list)
    poll_id: str | None = None
    likes_count: int = 0
    comments_count: int = 0
    reposts_count: int = 0
    save_count: int = 0
    view_count: int = 0
    avg_view_time_seconds: float = 0.0
    score: float = 0.0
    categories: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AuthorSummary:
    """Minimal profile projection joined onto a post for display."""

    id: str
    display_name: str | None
    handle: str
    avatar_url: str | None = None


@dataclass(frozen=True)
class FeedEntry:
    post: RankedPost
    # None when the author's profile is missing; rendered as an unknown user.
    author: AuthorSummary | None


@dataclass(frozen=True)
class FeedPage:
    """One request-scoped page of the explore feed. Never persisted."""

    entries: list[FeedEntry]
    page: int
    limit: int
    offset: int
    has_more: bool


@dataclass(frozen=True)
class EngagementEvent:
    post_id: str
    metric: str
    value: object
    # Used only for view de-duplication; never forwarded to the counter store.
    session_id: str | None = None


@dataclass(frozen=True)
class PostCounters:
    """Counter snapshot of a single post after an engagement update."""

    post_id: str
    likes_count: int
    comments_count: int
    reposts_count: int
    save_count: int
    view_count: int
    avg_view_time_seconds: float


@dataclass(frozen=True)
class EngagementResult:
    counted: bool
    counters: PostCounters


@dataclass(frozen=True)
class TopicCount:
    tag: str
    count: int
