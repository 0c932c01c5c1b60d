"""Scheduled sync of every linked league."""

from unittest.mock import AsyncMock

import pytest
from sqlmodel import Session

from charta.config import settings
from charta.models.league_models import League
from charta.scheduler import jobs

from conftest import seed_settings


@pytest.fixture
def job_sessions(engine, monkeypatch):
    monkeypatch.setattr(jobs, "new_session", lambda: Session(engine))


def test_only_linked_leagues_are_scheduled(session, league, job_sessions):
    session.add(League(name="Paper League"))
    session.commit()

    assert jobs.linked_league_ids() == [league.id]


@pytest.mark.asyncio
async def test_one_failing_league_does_not_stop_the_rest(monkeypatch):
    monkeypatch.setattr(jobs, "linked_league_ids", lambda: ["a", "b", "c"])
    monkeypatch.setattr(settings, "sync_concurrency", 2)

    async def fake_sync(league_id, client, mode):
        if league_id == "b":
            raise RuntimeError("sleeper down")
        return f"{mode} ok"

    monkeypatch.setattr(jobs, "sync_league", AsyncMock(side_effect=fake_sync))

    outcomes = await jobs.sync_all_leagues("auto")

    assert outcomes == {"a": "auto ok", "b": "failed: sleeper down", "c": "auto ok"}


@pytest.mark.asyncio
async def test_auto_mode_applies_changes(session, league, fake_sleeper, job_sessions, sample_league):
    seed_settings(session, league.id, sample_league)
    sample_league["scoring_settings"]["rec"] = 1
    fake_sleeper.reply(200, sample_league)

    outcome = await jobs.sync_league(league.id, fake_sleeper.client(), "auto")

    assert outcome == "1 changes"


@pytest.mark.asyncio
async def test_draft_mode_stages_a_draft(league, fake_sleeper, job_sessions, sample_league):
    fake_sleeper.reply(200, sample_league).reply(304)
    client = fake_sleeper.client()

    first = await jobs.sync_league(league.id, client, "draft")
    second = await jobs.sync_league(league.id, client, "draft")

    assert first.startswith("draft ")
    assert second == "not modified"


def test_scheduler_respects_config(monkeypatch):
    monkeypatch.setattr(settings, "scheduler_enabled", False)
    jobs.start_scheduler()
    assert not jobs.scheduler.running
