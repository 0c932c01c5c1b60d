"""Sleeper client: conditional requests and failure mapping."""

import httpx
import pytest

from charta.connectors.sleeper.client import NOT_MODIFIED, CacheTagStore
from charta.core.errors import FetchFailed

from conftest import SAMPLE_LEAGUE, SLEEPER_LEAGUE_ID


@pytest.mark.asyncio
async def test_fetch_league_returns_payload_and_tag(fake_sleeper):
    fake_sleeper.reply(200, SAMPLE_LEAGUE, etag='"v1"')

    async with fake_sleeper.client() as client:
        result = await client.fetch_league(SLEEPER_LEAGUE_ID)

    assert result.payload["name"] == "Gridiron Legends"
    assert result.cache_tag == '"v1"'
    assert fake_sleeper.requests[0].url.path == f"/v1/league/{SLEEPER_LEAGUE_ID}"
    assert "If-None-Match" not in fake_sleeper.requests[0].headers


@pytest.mark.asyncio
async def test_client_keeps_no_tags_between_fetches(fake_sleeper):
    fake_sleeper.serve(SAMPLE_LEAGUE, etag='"v1"')

    async with fake_sleeper.client() as client:
        first = await client.fetch_league(SLEEPER_LEAGUE_ID)
        second = await client.fetch_league(SLEEPER_LEAGUE_ID)

    assert first.payload == second.payload
    assert "If-None-Match" not in fake_sleeper.requests[1].headers


@pytest.mark.asyncio
async def test_given_cache_tag_is_sent_and_304_maps_to_not_modified(fake_sleeper):
    fake_sleeper.serve(SAMPLE_LEAGUE, etag='"v1"')

    async with fake_sleeper.client() as client:
        result = await client.fetch_league(SLEEPER_LEAGUE_ID, cache_tag='"v1"')

    assert result is NOT_MODIFIED
    assert not result
    assert fake_sleeper.requests[0].headers["If-None-Match"] == '"v1"'


def test_tag_store_separates_leagues_and_purposes():
    tags = CacheTagStore()
    tags.put("league-a", '"v1"')
    tags.put("league-a", '"d1"', "draft")
    tags.put("league-b", None)

    assert tags.get("league-a") == '"v1"'
    assert tags.get("league-a", "draft") == '"d1"'
    assert tags.get("league-b") is None
    tags.forget("league-a")
    assert tags.get("league-a") is None
    assert len(tags) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 429, 500, 503])
async def test_error_status_raises_with_code(fake_sleeper, status):
    fake_sleeper.reply(status, {"error": "nope"})

    async with fake_sleeper.client() as client:
        with pytest.raises(FetchFailed) as exc_info:
            await client.fetch_league(SLEEPER_LEAGUE_ID)

    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_timeout_raises_without_status(fake_sleeper):
    fake_sleeper.fail(httpx.ReadTimeout("too slow"))

    async with fake_sleeper.client() as client:
        with pytest.raises(FetchFailed) as exc_info:
            await client.fetch_league(SLEEPER_LEAGUE_ID)

    assert exc_info.value.status_code == 0


@pytest.mark.asyncio
async def test_malformed_body_raises(fake_sleeper):
    fake_sleeper.reply(200, "{not json")

    async with fake_sleeper.client() as client:
        with pytest.raises(FetchFailed) as exc_info:
            await client.fetch_league(SLEEPER_LEAGUE_ID)

    assert exc_info.value.status_code == 0


@pytest.mark.asyncio
async def test_unknown_league_null_body_is_not_found(fake_sleeper):
    fake_sleeper.reply(200, "null")

    async with fake_sleeper.client() as client:
        with pytest.raises(FetchFailed) as exc_info:
            await client.fetch_league("nope")

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_user_leagues_lookup(fake_sleeper):
    fake_sleeper.reply(200, {"user_id": "u1", "username": "commish"})

    async with fake_sleeper.client() as client:
        user = await client.user_by_username("commish")
        fake_sleeper.responses = []
        fake_sleeper.reply(200, [SAMPLE_LEAGUE])
        leagues = await client.leagues_for_user(user["user_id"], "2026")

    assert leagues[0]["league_id"] == SLEEPER_LEAGUE_ID
    assert fake_sleeper.requests[1].url.path == "/v1/user/u1/leagues/nfl/2026"
