"""Engagement recorder folding view, save and view-time signals into post counters."""

from __future__ import annotations

import logging
import math
import numbers

from explore_feed.services.counters import CounterStore
from explore_feed.services.errors import InvalidEngagement, InvalidMetric, PostNotFound
from explore_feed.services.types import EngagementEvent, EngagementResult, MetricKind
from explore_feed.services.view_ledger import ViewLedger

logger = logging.getLogger(__name__)

# Largest value a 64-bit signed counter column holds.
MAX_COUNTER_VALUE = 2**63 - 1

_FIELD_BY_METRIC: dict[MetricKind, str] = {
    MetricKind.VIEW: "view_count",
    MetricKind.SAVE: "save_count",
    MetricKind.VIEW_TIME: "avg_view_time_seconds",
}


def parse_metric(metric: str) -> MetricKind:
    try:
        return MetricKind(metric)
    except ValueError as exc:
        raise InvalidMetric(f"Invalid metric type: {metric}") from exc


def validate_value(metric: MetricKind, value: object) -> int | float:
    """Return ``value`` if ``metric`` accepts it, else raise ``InvalidMetric``.

    Booleans are rejected even though Python treats them as integers.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidMetric(f"Value for {metric.value} must be a number")
    if metric is MetricKind.VIEW:
        if value != 1:
            raise InvalidMetric("A view must carry the value 1")
        return 1
    if metric is MetricKind.SAVE:
        if not isinstance(value, numbers.Integral) and not float(value).is_integer():
            raise InvalidMetric("Save count must be a whole number")
        if value < 0:
            raise InvalidMetric("Save count must not be negative")
        if value > MAX_COUNTER_VALUE:
            raise InvalidMetric("Save count is too large")
        return int(value)
    if not math.isfinite(value) or value < 0:
        raise InvalidMetric("View time must be a non-negative duration")
    return float(value)


class EngagementRecorder:
    """Apply engagement events to post counters.

    ``view`` increments by one, at most once per (post, session).
    ``save`` and ``view_time`` overwrite their field with the given value,
    mirroring state kept by the caller.
    """

    def __init__(self, counters: CounterStore, ledger: ViewLedger) -> None:
        self.counters = counters
        self.ledger = ledger

    async def record(self, event: EngagementEvent) -> EngagementResult:
        if not event.post_id or not event.metric or event.value is None:
            raise InvalidEngagement()

        metric = parse_metric(event.metric)
        value = validate_value(metric, event.value)
        field = _FIELD_BY_METRIC[metric]

        if metric is MetricKind.VIEW:
            return await self._record_view(event.post_id, event.session_id, field)

        try:
            counters = await self.counters.set(event.post_id, field, value)
        except PostNotFound:
            logger.warning("Engagement %s for unknown post %s", metric.value, event.post_id)
            raise
        logger.debug("Set %s=%s on post %s", field, value, event.post_id)
        return EngagementResult(counted=True, counters=counters)

    async def _record_view(
        self,
        post_id: str,
        session_id: str | None,
        field: str,
    ) -> EngagementResult:
        # Without a session there is nothing to de-duplicate against.
        if session_id is None:
            counters = await self.counters.increment(post_id, field, 1)
            return EngagementResult(counted=True, counters=counters)

        if not self.ledger.mark_viewed(session_id, post_id):
            logger.debug("Ignoring repeated view of %s in session %s", post_id, session_id)
            return EngagementResult(counted=False, counters=await self.counters.get(post_id))

        try:
            counters = await self.counters.increment(post_id, field, 1)
        except Exception:
            self.ledger.forget(session_id, post_id)
            logger.warning("View of post %s was not recorded", post_id)
            raise
        return EngagementResult(counted=True, counters=counters)

    def end_session(self, session_id: str) -> None:
        """Drop the view ledger of a finished client session."""
        self.ledger.end_session(session_id)
