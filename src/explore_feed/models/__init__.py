# src/explore_feed/models/__init__.py
"""SQLAlchemy models for the explore feed service."""

from .post import Post, PostCategory
from .profile import Profile

__all__ = [
    "Post", "PostCategory",
    "Profile",
]
