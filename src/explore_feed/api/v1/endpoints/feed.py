# src/explore_feed/api/v1/endpoints/feed.py
"""Explore feed and engagement endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Header, Query, status

from explore_feed.api.v1.dependencies import (
    EngagementRecorderDep,
    FeedServiceDep,
    SessionDep,
)
from explore_feed.core.settings import settings
from explore_feed.schemas.feed import (
    CountersOut,
    EngagementCreate,
    EngagementResponse,
    ErrorResponse,
    FeedResponse,
    TopicOut,
    TopicsResponse,
)
from explore_feed.services.errors import FeedError
from explore_feed.services.topics import trending_topics
from explore_feed.services.types import EngagementEvent, FeedFilter, FeedQuery, Timeframe

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/feed",
    tags=["feed"],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)


@router.get("", response_model=FeedResponse)
async def get_explore_feed(
    feed_service: FeedServiceDep,
    feed_filter: str = Query(
        FeedFilter.TRENDING.value,
        alias="filter",
        description="trending, latest, popular or media",
    ),
    category: str | None = Query(None, description="Restrict to a category tag"),
    timeframe: str = Query(Timeframe.WEEK.value, description="24h, 7d or 30d"),
    page: int = Query(0, description="Zero-based page index"),
    limit: int = Query(settings.default_page_size, description="Page size"),
    user_id: str | None = Query(None, description="Viewer identity for personalised ranking"),
) -> FeedResponse:
    """Return one page of the explore feed with author summaries attached.

    Args:
        feed_service: Feed query service for this request
        feed_filter: Ranking mode
        category: Optional category filter
        timeframe: Candidate window
        page: Zero-based page index
        limit: Number of posts per page
        user_id: Optional viewer identity

    Returns:
        Posts in ranked order plus the pagination descriptor

    Raises:
        InvalidQuery: If page, limit, filter or timeframe is out of range
        UpstreamUnavailable: If ranking or profile lookup fails
    """
    query = FeedQuery(
        viewer_id=user_id or None,
        filter=feed_filter,
        category=category or None,
        timeframe=timeframe,
        page=page,
        limit=limit,
    )
    feed_page = await feed_service.get_feed_page(query)
    return FeedResponse.from_page(feed_page)


@router.post(
    "/engagement",
    response_model=EngagementResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def record_engagement(
    payload: EngagementCreate,
    recorder: EngagementRecorderDep,
    x_session_id: Annotated[str | None, Header()] = None,
) -> EngagementResponse:
    """Fold a view, save or view-time signal into a post's counters.

    The viewing session comes from the body or the ``X-Session-Id`` header.
    A repeated view in the same session is acknowledged without counting.
    """
    event = EngagementEvent(
        post_id=payload.post_id or "",
        metric=payload.metric_type or "",
        value=payload.value,
        session_id=payload.session_id or x_session_id or None,
    )
    try:
        result = await recorder.record(event)
    except FeedError as exc:
        logger.warning("Engagement %s on %s rejected: %s", event.metric, event.post_id, exc)
        raise
    return EngagementResponse(
        data=CountersOut.from_counters(result.counters),
        counted=result.counted,
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_viewing_session(session_id: str, recorder: EngagementRecorderDep) -> None:
    """Forget the views counted for a finished client session."""
    recorder.end_session(session_id)


@router.get("/trending-topics", response_model=TopicsResponse)
async def get_trending_topics(
    db: SessionDep,
    timeframe: str = Query(Timeframe.WEEK.value, description="24h, 7d or 30d"),
    limit: int = Query(settings.trending_topics_limit, description="Number of topics"),
) -> TopicsResponse:
    """Return the most used category tags within the timeframe."""
    topics = trending_topics(db, timeframe=timeframe, limit=limit)
    return TopicsResponse(data=[TopicOut.from_topic(topic) for topic in topics])
