# src/explore_feed/models/post.py
"""SQLAlchemy models for posts and their category tags."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from explore_feed.db.session import Base
from explore_feed.db.time import utcnow


def _new_post_id() -> str:
    return str(uuid.uuid4())


class Post(Base):
    """Candidate content entity surfaced by the explore feed.

    Identity is immutable. Counters are mutated only through atomic updates
    issued by the counter store.
    """

    __tablename__ = "post"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_post_id)
    # Plain column rather than a foreign key: posts outlive deleted profiles.
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    media_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    poll_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comments_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reposts_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    save_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_view_time_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    categories: Mapped[list[PostCategory]] = relationship(
        "PostCategory",
        back_populates="post",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def category_names(self) -> list[str]:
        """Return the post's category tags in stable order."""
        return sorted(category.category for category in self.categories)


class PostCategory(Base):
    """Join table tagging posts with categories."""

    __tablename__ = "post_category"

    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    category: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)

    post: Mapped[Post] = relationship("Post", back_populates="categories")
