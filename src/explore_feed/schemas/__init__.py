# src/explore_feed/schemas/__init__.py
"""
Pydantic schemas for API request/response models.
"""

from .feed import (
    EngagementCreate,
    EngagementResponse,
    ErrorResponse,
    FeedResponse,
    TopicsResponse,
)

__all__ = [
    "EngagementCreate", "EngagementResponse",
    "ErrorResponse",
    "FeedResponse",
    "TopicsResponse",
]
