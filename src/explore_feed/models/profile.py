# src/explore_feed/models/profile.py
"""SQLAlchemy model for author profiles."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from explore_feed.db.session import Base


class Profile(Base):
    """Public profile projected onto posts as an author summary."""

    __tablename__ = "profile"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
