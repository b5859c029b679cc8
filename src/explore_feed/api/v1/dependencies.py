"""Shared API dependencies wiring stores and services per request."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from explore_feed.db.session import get_db
from explore_feed.services.counters import SqlCounterStore
from explore_feed.services.engagement import EngagementRecorder
from explore_feed.services.feed import FeedQueryService
from explore_feed.services.profiles import SqlProfileStore
from explore_feed.services.ranking import build_ranking_source
from explore_feed.services.view_ledger import ViewLedger, get_view_ledger

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_view_ledger_dep() -> ViewLedger:
    """Return the shared view ledger."""
    return get_view_ledger()


def get_feed_service(db: SessionDep) -> FeedQueryService:
    """Build a feed service over the configured ranking source and the profile table."""
    return FeedQueryService(build_ranking_source(db), SqlProfileStore(db))


def get_engagement_recorder(
    db: SessionDep,
    ledger: Annotated[ViewLedger, Depends(get_view_ledger_dep)],
) -> EngagementRecorder:
    """Build an engagement recorder over the post counters and the shared ledger."""
    return EngagementRecorder(SqlCounterStore(db), ledger)


FeedServiceDep = Annotated[FeedQueryService, Depends(get_feed_service)]
EngagementRecorderDep = Annotated[EngagementRecorder, Depends(get_engagement_recorder)]
