"""Shared test fixtures for CHARTA."""

import copy
import json
from typing import Callable, List

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import charta.database  # noqa: F401  (registers every table)
from charta.config import settings
from charta.connectors.sleeper.client import CacheTagStore, SleeperClient, cache_tags
from charta.connectors.sleeper.transformer import normalize_league
from charta.constitution.index import DocumentIndex
from charta.core.idempotency import LeagueLocks
from charta.models.league_models import League
from charta.models.normalized_models import LeagueSettings

SLEEPER_LEAGUE_ID = "998877"

SAMPLE_LEAGUE = {
    "league_id": SLEEPER_LEAGUE_ID,
    "name": "Gridiron Legends",
    "season": "2026",
    "sport": "nfl",
    "status": "in_season",
    "total_rosters": 12,
    "roster_positions": ["QB", "RB", "RB", "WR", "WR", "TE", "FLEX", "BN", "BN"],
    "scoring_settings": {"rec": 0.5, "pass_td": 4, "bonus_rec_te": 0.5},
    "settings": {
        "waiver_type": 1,
        "waiver_budget": 100,
        "waiver_day_of_week": 2,
        "playoff_teams": 6,
        "playoff_week_start": 15,
        "trade_deadline": 11,
        "taxi_slots": 0,
        "reserve_slots": 2,
        "veto_votes_needed": 0,
        "type": 0,
        "divisions": 2,
    },
}


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(settings, "retry_base_delay", 0.0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def sample_league():
    return copy.deepcopy(SAMPLE_LEAGUE)


@pytest.fixture
def league(session):
    league = League(
        name="Gridiron Legends",
        season="2026",
        sleeper_league_id=SLEEPER_LEAGUE_ID,
    )
    session.add(league)
    session.commit()
    session.refresh(league)
    return league


@pytest.fixture
def locks():
    return LeagueLocks()


@pytest.fixture
def tag_store():
    return CacheTagStore()


@pytest.fixture(autouse=True)
def fresh_cache_tags():
    cache_tags.clear()
    yield
    cache_tags.clear()


def seed_settings(session: Session, league_id: str, payload: dict) -> LeagueSettings:
    row = LeagueSettings(league_id=league_id)
    row.replace_with(normalize_league(payload).categories(), settings.settings_schema_version)
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def league_payload(**scoring) -> dict:
    payload = copy.deepcopy(SAMPLE_LEAGUE)
    payload["scoring_settings"].update(scoring)
    return payload


class FakeSleeper:
    """Scripted Sleeper API behind an httpx MockTransport."""

    def __init__(self):
        self.responses: List[Callable[[httpx.Request], httpx.Response]] = []
        self.requests: List[httpx.Request] = []

    def reply(self, status: int = 200, body=None, etag: str | None = None) -> "FakeSleeper":
        headers = {"ETag": etag} if etag else {}

        def respond(request: httpx.Request) -> httpx.Response:
            if body is None:
                return httpx.Response(status, headers=headers)
            if isinstance(body, (bytes, str)):
                return httpx.Response(status, content=body, headers=headers)
            return httpx.Response(status, content=json.dumps(body), headers=headers)

        self.responses.append(respond)
        return self

    def serve(self, body, etag: str) -> "FakeSleeper":
        """Answer like a real conditional GET: 304 when the caller already has ``etag``."""

        def respond(request: httpx.Request) -> httpx.Response:
            if request.headers.get("If-None-Match") == etag:
                return httpx.Response(304)
            return httpx.Response(200, content=json.dumps(body), headers={"ETag": etag})

        self.responses.append(respond)
        return self

    def fail(self, exc: Exception) -> "FakeSleeper":
        def respond(request: httpx.Request) -> httpx.Response:
            raise exc

        self.responses.append(respond)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.url}")
        respond = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return respond(request)

    def client(self) -> SleeperClient:
        return SleeperClient(
            base_url="https://sleeper.test",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def fake_sleeper():
    return FakeSleeper()


class RecordingIndex(DocumentIndex):
    """Document index that remembers calls and can fail for chosen titles."""

    def __init__(self, fail_for: tuple = ()):
        self.calls: List[dict] = []
        self.fail_for = fail_for

    async def index(self, league_id, markdown, version, kind="NORMALIZED", title=""):
        if any(token in title for token in self.fail_for):
            raise RuntimeError(f"index unavailable for {title}")
        self.calls.append(
            {"league_id": league_id, "markdown": markdown, "version": version, "kind": kind, "title": title}
        )
        return 1


@pytest.fixture
def recording_index():
    return RecordingIndex()
