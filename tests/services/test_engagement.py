# tests/services/test_engagement.py
"""Tests for the engagement recorder and view ledgers."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import redis

from explore_feed.services.engagement import EngagementRecorder
from explore_feed.services.errors import InvalidEngagement, InvalidMetric, PostNotFound
from explore_feed.services.types import EngagementEvent, PostCounters
from explore_feed.services.view_ledger import InMemoryViewLedger, RedisViewLedger


class FakeCounters:
    """Counter store keeping one dict of counters per post."""

    def __init__(self, *post_ids: str) -> None:
        self.rows = {
            post_id: {"view_count": 0, "save_count": 0, "avg_view_time_seconds": 0.0}
            for post_id in post_ids
        }
        self.mutations: list[tuple[str, str, str, float]] = []

    def _snapshot(self, post_id: str) -> PostCounters:
        row = self.rows[post_id]
        return PostCounters(
            post_id=post_id,
            likes_count=0,
            comments_count=0,
            reposts_count=0,
            save_count=row["save_count"],
            view_count=row["view_count"],
            avg_view_time_seconds=row["avg_view_time_seconds"],
        )

    async def increment(self, post_id: str, field: str, by: int) -> PostCounters:
        if post_id not in self.rows:
            raise PostNotFound(post_id)
        self.mutations.append(("increment", post_id, field, by))
        self.rows[post_id][field] += by
        return self._snapshot(post_id)

    async def set(self, post_id: str, field: str, value: float) -> PostCounters:
        if post_id not in self.rows:
            raise PostNotFound(post_id)
        self.mutations.append(("set", post_id, field, value))
        self.rows[post_id][field] = value
        return self._snapshot(post_id)

    async def get(self, post_id: str) -> PostCounters:
        if post_id not in self.rows:
            raise PostNotFound(post_id)
        return self._snapshot(post_id)


@pytest.fixture()
def counters() -> FakeCounters:
    return FakeCounters("p1", "p2")


@pytest.fixture()
def recorder(counters: FakeCounters) -> EngagementRecorder:
    return EngagementRecorder(counters, InMemoryViewLedger(ttl_seconds=3600))


@pytest.mark.asyncio
async def test_repeated_view_in_same_session_counts_once(
    recorder: EngagementRecorder,
    counters: FakeCounters,
) -> None:
    first = await recorder.record(EngagementEvent("p1", "view", 1, "s1"))
    second = await recorder.record(EngagementEvent("p1", "view", 1, "s1"))

    assert first.counted is True
    assert second.counted is False
    assert counters.rows["p1"]["view_count"] == 1
    assert second.counters.view_count == 1


@pytest.mark.asyncio
async def test_views_from_different_sessions_both_count(
    recorder: EngagementRecorder,
    counters: FakeCounters,
) -> None:
    await recorder.record(EngagementEvent("p1", "view", 1, "s1"))
    await recorder.record(EngagementEvent("p1", "view", 1, "s2"))

    assert counters.rows["p1"]["view_count"] == 2


@pytest.mark.asyncio
async def test_view_of_other_post_in_same_session_counts(
    recorder: EngagementRecorder,
    counters: FakeCounters,
) -> None:
    await recorder.record(EngagementEvent("p1", "view", 1, "s1"))
    await recorder.record(EngagementEvent("p2", "view", 1, "s1"))

    assert counters.rows["p1"]["view_count"] == 1
    assert counters.rows["p2"]["view_count"] == 1


@pytest.mark.asyncio
async def test_view_without_session_is_counted_each_time(
    recorder: EngagementRecorder,
    counters: FakeCounters,
) -> None:
    await recorder.record(EngagementEvent("p1", "view", 1))
    await recorder.record(EngagementEvent("p1", "view", 1))

    assert counters.rows["p1"]["view_count"] == 2


@pytest.mark.asyncio
async def test_save_overwrites_rather_than_accumulates(
    recorder: EngagementRecorder,
    counters: FakeCounters,
) -> None:
    await recorder.record(EngagementEvent("p1", "save", 5, "s1"))
    result = await recorder.record(EngagementEvent("p1", "save", 3, "s1"))

    assert counters.rows["p1"]["save_count"] == 3
    assert result.counters.save_count == 3
    assert [m[0] for m in counters.mutations] == ["set", "set"]


@pytest.mark.asyncio
async def test_view_time_overwrites_average(
    recorder: EngagementRecorder,
    counters: FakeCounters,
) -> None:
    await recorder.record(EngagementEvent("p1", "view_time", 12.5, "s1"))
    await recorder.record(EngagementEvent("p1", "view_time", 4, "s1"))

    assert counters.rows["p1"]["avg_view_time_seconds"] == 4.0


@pytest.mark.asyncio
async def test_only_the_target_post_is_mutated(
    recorder: EngagementRecorder,
    counters: FakeCounters,
) -> None:
    await recorder.record(EngagementEvent("p1", "save", 2, "s1"))

    assert counters.rows["p2"] == {"view_count": 0, "save_count": 0, "avg_view_time_seconds": 0.0}


@pytest.mark.asyncio
async def test_unknown_metric_is_rejected_without_mutation(
    recorder: EngagementRecorder,
    counters: FakeCounters,
) -> None:
    with pytest.raises(InvalidMetric):
        await recorder.record(EngagementEvent("p1", "bookmark", 1, "s1"))

    assert counters.mutations == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("metric", "value"),
    [
        ("view", 2),
        ("view", 0),
        ("view", True),
        ("save", -1),
        ("save", 1.5),
        ("save", "5"),
        ("save", 10**20),
        ("save", 1e20),
        ("view_time", -0.1),
        ("view_time", float("inf")),
        ("view_time", float("nan")),
    ],
)
async def test_invalid_values_are_rejected(
    recorder: EngagementRecorder,
    counters: FakeCounters,
    metric: str,
    value: object,
) -> None:
    with pytest.raises(InvalidMetric):
        await recorder.record(EngagementEvent("p1", metric, value, "s1"))

    assert counters.mutations == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event",
    [
        EngagementEvent("", "view", 1, "s1"),
        EngagementEvent("p1", "", 1, "s1"),
        EngagementEvent("p1", "view", None, "s1"),
    ],
)
async def test_missing_parameters_are_rejected(
    recorder: EngagementRecorder,
    event: EngagementEvent,
) -> None:
    with pytest.raises(InvalidEngagement):
        await recorder.record(event)


@pytest.mark.asyncio
async def test_unknown_post_raises_and_view_can_be_retried(
    counters: FakeCounters,
) -> None:
    ledger = InMemoryViewLedger(ttl_seconds=3600)
    recorder = EngagementRecorder(counters, ledger)

    with pytest.raises(PostNotFound):
        await recorder.record(EngagementEvent("missing", "view", 1, "s1"))

    # The failed view was not left in the ledger.
    assert ledger.mark_viewed("s1", "missing") is True


@pytest.mark.asyncio
async def test_unknown_post_on_save_raises(recorder: EngagementRecorder) -> None:
    with pytest.raises(PostNotFound):
        await recorder.record(EngagementEvent("missing", "save", 1, "s1"))


@pytest.mark.asyncio
async def test_ending_session_allows_view_to_count_again(
    recorder: EngagementRecorder,
    counters: FakeCounters,
) -> None:
    await recorder.record(EngagementEvent("p1", "view", 1, "s1"))
    recorder.end_session("s1")
    await recorder.record(EngagementEvent("p1", "view", 1, "s1"))

    assert counters.rows["p1"]["view_count"] == 2


def test_in_memory_ledger_expires_idle_sessions() -> None:
    now = [1000.0]
    ledger = InMemoryViewLedger(ttl_seconds=60, clock=lambda: now[0])

    assert ledger.mark_viewed("s1", "p1") is True
    assert ledger.mark_viewed("s1", "p1") is False

    now[0] += 61
    assert ledger.mark_viewed("s2", "p9") is True
    assert ledger.session_count() == 1
    assert ledger.mark_viewed("s1", "p1") is True


def test_redis_ledger_uses_set_membership() -> None:
    client = MagicMock()
    pipe = client.pipeline.return_value
    pipe.execute.side_effect = [[1, True], [0, True]]
    ledger = RedisViewLedger(client, ttl_seconds=120)

    assert ledger.mark_viewed("s1", "p1") is True
    assert ledger.mark_viewed("s1", "p1") is False

    pipe.sadd.assert_called_with("views:s1", "p1")
    pipe.expire.assert_called_with("views:s1", 120)

    ledger.end_session("s1")
    client.delete.assert_called_once_with("views:s1")


def test_redis_ledger_falls_back_to_local_when_unreachable() -> None:
    client = MagicMock()
    client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
    ledger = RedisViewLedger(client, ttl_seconds=120)

    assert ledger.mark_viewed("s1", "p1") is True
    assert ledger.mark_viewed("s1", "p1") is False


def test_in_memory_ledger_drops_stale_session_on_touch() -> None:
    now = [1000.0]
    ledger = InMemoryViewLedger(ttl_seconds=60, clock=lambda: now[0])

    ledger.mark_viewed("s1", "p1")
    now[0] = 1030.0
    ledger.mark_viewed("s2", "p1")
    now[0] = 1095.0

    assert ledger.mark_viewed("s1", "p1") is True
    assert ledger.session_count() == 1


def test_in_memory_ledger_sweeps_at_most_once_per_ttl() -> None:
    now = [0.0]
    ledger = InMemoryViewLedger(ttl_seconds=60, clock=lambda: now[0])

    ledger.mark_viewed("s1", "p1")
    now[0] = 59.0
    ledger.mark_viewed("s1", "p2")
    now[0] = 100.0
    ledger.mark_viewed("s2", "p1")

    # s1 is idle past the TTL, but the next full sweep is not due until t=160.
    now[0] = 150.0
    ledger.mark_viewed("s2", "p2")
    assert ledger.session_count() == 2

    now[0] = 161.0
    ledger.mark_viewed("s2", "p2")
    assert ledger.session_count() == 1
