"""Typed failures raised by the feed and engagement services.

Each error carries the HTTP status the API layer renders it with. Services
raise these and chain the underlying cause; only the application layer turns
them into responses.
"""

from __future__ import annotations

HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_SERVER_ERROR = 500


class FeedError(RuntimeError):
    """Base exception for explore feed failures."""

    status_code: int = HTTP_INTERNAL_SERVER_ERROR
    message: str = "Explore feed request failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class InvalidQuery(FeedError):
    """Raised when a feed query carries an out-of-range page, limit, filter or timeframe."""

    status_code = HTTP_BAD_REQUEST
    message = "Invalid feed query"


class InvalidEngagement(FeedError):
    """Raised when an engagement request is missing required parameters."""

    status_code = HTTP_BAD_REQUEST
    message = "Missing required parameters"


class InvalidMetric(InvalidEngagement):
    """Raised for an unknown metric kind or a value the metric does not accept."""

    message = "Invalid metric type"


class PostNotFound(FeedError):
    """Raised when the target post of a counter update does not exist."""

    status_code = HTTP_NOT_FOUND
    message = "Post not found"

    def __init__(self, post_id: str) -> None:
        super().__init__(f"Post {post_id} not found")
        self.post_id = post_id


class UpstreamUnavailable(FeedError):
    """Raised when the ranking source or profile store cannot be reached.

    Transient: callers may retry with backoff. Never retried internally.
    """

    message = "Failed to fetch explore feed"


class InternalAggregationError(FeedError):
    """Raised when joining posts to their authors hits inconsistent data."""

    message = "Failed to assemble explore feed"


class CounterStoreUnavailable(UpstreamUnavailable):
    """Raised when a counter update cannot reach the database."""

    message = "Failed to record engagement"
