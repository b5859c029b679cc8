# src/explore_feed/schemas/feed.py
"""Feed and engagement Pydantic schemas."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from explore_feed.services.types import (
    AuthorSummary,
    FeedEntry,
    FeedPage,
    PostCounters,
    RankedPost,
    TopicCount,
)


class RankedPostRow(BaseModel):
    """Post row as returned by an external ranking RPC."""

    id: str
    user_id: str
    content: str = ""
    created_at: datetime
    media_urls: list[str] = Field(default_factory=list)
    poll_id: str | None = None
    likes_count: int = Field(default=0, validation_alias=AliasChoices("likes_count", "likes"))
    comments_count: int = Field(
        default=0,
        validation_alias=AliasChoices("comments_count", "comments"),
    )
    reposts_count: int = Field(
        default=0,
        validation_alias=AliasChoices("reposts_count", "reposts"),
    )
    save_count: int = 0
    view_count: int = 0
    avg_view_time_seconds: float = 0.0
    score: float = Field(default=0.0, validation_alias=AliasChoices("score", "ranking_score"))
    categories: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    def to_ranked_post(self) -> RankedPost:
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        return RankedPost(
            id=self.id,
            user_id=self.user_id,
            content=self.content,
            created_at=created_at,
            media_urls=list(self.media_urls),
            poll_id=self.poll_id,
            likes_count=self.likes_count,
            comments_count=self.comments_count,
            reposts_count=self.reposts_count,
            save_count=self.save_count,
            view_count=self.view_count,
            avg_view_time_seconds=self.avg_view_time_seconds,
            score=self.score,
            categories=list(self.categories),
        )


class AuthorOut(BaseModel):
    """Author summary attached to a feed post."""

    id: str
    username: str
    full_name: str | None
    avatar_url: str | None

    @classmethod
    def from_summary(cls, author: AuthorSummary) -> AuthorOut:
        return cls(
            id=author.id,
            username=author.handle,
            full_name=author.display_name,
            avatar_url=author.avatar_url,
        )


class FeedPostOut(BaseModel):
    """A ranked post merged with its author; ``user`` is null for unknown authors."""

    id: str
    user_id: str
    content: str
    media_urls: list[str]
    poll_id: str | None
    likes_count: int
    comments_count: int
    reposts_count: int
    save_count: int
    view_count: int
    avg_view_time_seconds: float
    score: float
    categories: list[str]
    created_at: datetime
    user: AuthorOut | None

    @classmethod
    def from_entry(cls, entry: FeedEntry) -> FeedPostOut:
        post = entry.post
        return cls(
            id=post.id,
            user_id=post.user_id,
            content=post.content,
            media_urls=post.media_urls,
            poll_id=post.poll_id,
            likes_count=post.likes_count,
            comments_count=post.comments_count,
            reposts_count=post.reposts_count,
            save_count=post.save_count,
            view_count=post.view_count,
            avg_view_time_seconds=post.avg_view_time_seconds,
            score=post.score,
            categories=post.categories,
            created_at=post.created_at,
            user=AuthorOut.from_summary(entry.author) if entry.author else None,
        )


class PaginationOut(BaseModel):
    page: int
    limit: int
    offset: int
    has_more: bool


class FeedResponse(BaseModel):
    """Envelope returned by the explore feed endpoint."""

    status: Literal["success"] = "success"
    data: list[FeedPostOut]
    pagination: PaginationOut

    @classmethod
    def from_page(cls, page: FeedPage) -> FeedResponse:
        return cls(
            data=[FeedPostOut.from_entry(entry) for entry in page.entries],
            pagination=PaginationOut(
                page=page.page,
                limit=page.limit,
                offset=page.offset,
                has_more=page.has_more,
            ),
        )


class EngagementCreate(BaseModel):
    """Engagement signal submitted by a client.

    Every field is optional at the schema level so that missing parameters
    surface as a 400 error envelope rather than a validation error.
    """

    post_id: str | None = Field(None, description="Target post identifier")
    metric_type: str | None = Field(None, description="One of view, save, view_time")
    value: Any = Field(None, description="Metric value")
    session_id: str | None = Field(None, description="Client viewing session identifier")


class CountersOut(BaseModel):
    post_id: str
    likes_count: int
    comments_count: int
    reposts_count: int
    save_count: int
    view_count: int
    avg_view_time_seconds: float

    @classmethod
    def from_counters(cls, counters: PostCounters) -> CountersOut:
        return cls(
            post_id=counters.post_id,
            likes_count=counters.likes_count,
            comments_count=counters.comments_count,
            reposts_count=counters.reposts_count,
            save_count=counters.save_count,
            view_count=counters.view_count,
            avg_view_time_seconds=counters.avg_view_time_seconds,
        )


class EngagementResponse(BaseModel):
    status: Literal["success"] = "success"
    data: CountersOut
    counted: bool = Field(..., description="False when a repeated view was ignored")


class TopicOut(BaseModel):
    tag: str
    count: int

    @classmethod
    def from_topic(cls, topic: TopicCount) -> TopicOut:
        return cls(tag=topic.tag, count=topic.count)


class TopicsResponse(BaseModel):
    status: Literal["success"] = "success"
    data: list[TopicOut]


class ErrorResponse(BaseModel):
    """Error envelope shared by every feed endpoint."""

    status: Literal["error"] = "error"
    message: str
    error: str | None = None
