"""Batched author profile lookups."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from explore_feed.models.profile import Profile
from explore_feed.repositories.profile_repo import ProfileRepository
from explore_feed.services.errors import UpstreamUnavailable
from explore_feed.services.types import AuthorSummary

logger = logging.getLogger(__name__)


class ProfileStore(Protocol):
    """Resolve many author identifiers in a single request."""

    async def get_profiles(self, ids: set[str]) -> dict[str, AuthorSummary]:
        ...


def to_author_summary(profile: Profile) -> AuthorSummary:
    """Project a Profile ORM instance onto the fields shown next to a post."""
    return AuthorSummary(
        id=profile.id,
        display_name=profile.full_name,
        handle=profile.username,
        avatar_url=profile.avatar_url,
    )


class SqlProfileStore:
    """Profile store backed by the ``profile`` table."""

    def __init__(self, session: Session) -> None:
        self.repo = ProfileRepository(session)

    async def get_profiles(self, ids: set[str]) -> dict[str, AuthorSummary]:
        if not ids:
            return {}
        try:
            profiles = self.repo.list_by_ids(ids)
        except SQLAlchemyError as exc:
            logger.error("Profile lookup failed for %d authors: %s", len(ids), exc)
            raise UpstreamUnavailable(f"Profile lookup failed: {exc}") from exc
        return {profile.id: to_author_summary(profile) for profile in profiles}
