# tests/services/test_remote_ranking.py
"""Tests for the HTTP ranking source."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import httpx
import pytest

from explore_feed.core.settings import Settings
from explore_feed.services.errors import UpstreamUnavailable
from explore_feed.services.ranking import (
    RemoteRankingSource,
    SqlRankingSource,
    build_ranking_source,
    close_remote_ranking_source,
)
from explore_feed.services.types import FeedQuery

RPC_PATH = "/rest/v1/rpc/get_explore_feed"


def _source(handler, **kwargs) -> RemoteRankingSource:
    client = httpx.AsyncClient(
        base_url="http://ranking.test",
        transport=httpx.MockTransport(handler),
    )
    return RemoteRankingSource(
        "http://ranking.test",
        path=RPC_PATH,
        timeout_seconds=1.0,
        client=client,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_rank_posts_query_parameters_and_parses_rows() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {
                    "id": "p1",
                    "user_id": "u1",
                    "content": "hello",
                    "created_at": "2026-10-18T10:00:00Z",
                    "media_urls": ["a.jpg"],
                    "likes": 4,
                    "comments_count": 2,
                    "score": 9.5,
                    "unexpected": "ignored",
                },
                {
                    "id": "p2",
                    "user_id": "u2",
                    "created_at": "2026-10-18T09:00:00",
                },
            ],
        )

    source = _source(handler, api_key="secret")
    query = FeedQuery(viewer_id="viewer", filter="popular", category="art", timeframe="24h", page=1, limit=2)

    posts = await source.rank(query, limit=2, offset=2)

    assert [post.id for post in posts] == ["p1", "p2"]
    assert posts[0].likes_count == 4
    assert posts[0].comments_count == 2
    assert posts[0].score == 9.5
    assert posts[0].media_urls == ["a.jpg"]
    assert posts[1].created_at == datetime(2026, 10, 18, 9, 0, tzinfo=UTC)

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == RPC_PATH
    assert request.headers["apikey"] == "secret"
    assert json.loads(request.content) == {
        "p_user_id": "viewer",
        "p_limit": 2,
        "p_offset": 2,
        "p_filter": "popular",
        "p_category": "art",
        "p_timeframe": "24h",
    }


@pytest.mark.asyncio
async def test_server_error_is_upstream_unavailable() -> None:
    source = _source(lambda request: httpx.Response(500, json={"message": "boom"}))

    with pytest.raises(UpstreamUnavailable):
        await source.rank(FeedQuery(), limit=20, offset=0)


@pytest.mark.asyncio
async def test_timeout_is_upstream_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(UpstreamUnavailable):
        await _source(handler).rank(FeedQuery(), limit=20, offset=0)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, content=b"not json"),
        httpx.Response(200, json={"data": []}),
        httpx.Response(200, json=[{"id": "p1"}]),
    ],
)
async def test_malformed_payload_is_upstream_unavailable(response: httpx.Response) -> None:
    source = _source(lambda request: response)

    with pytest.raises(UpstreamUnavailable):
        await source.rank(FeedQuery(), limit=20, offset=0)


@pytest.mark.asyncio
async def test_build_ranking_source_selects_backend(db_session) -> None:
    assert isinstance(build_ranking_source(db_session, Settings(RANKING_BACKEND="sql")), SqlRankingSource)

    remote = build_ranking_source(
        db_session,
        Settings(RANKING_BACKEND="remote", RANKING_BASE_URL="http://ranking.test"),
    )
    try:
        assert isinstance(remote, RemoteRankingSource)
        assert remote.path == RPC_PATH
    finally:
        await close_remote_ranking_source()

    with pytest.raises(ValueError):
        build_ranking_source(db_session, Settings(RANKING_BACKEND="graph"))
