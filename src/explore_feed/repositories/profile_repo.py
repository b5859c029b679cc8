"""Data access helpers for author profiles."""
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from explore_feed.models.profile import Profile

__all__ = ["ProfileRepository"]


class ProfileRepository:
    """Thin wrapper around database access for profile entities."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_by_ids(self, ids: Iterable[str]) -> list[Profile]:
        """Return every profile whose identifier is in ``ids`` with one query."""
        wanted = sorted(set(ids))
        if not wanted:
            return []
        result = self.session.execute(select(Profile).where(Profile.id.in_(wanted)))
        return list(result.scalars())
