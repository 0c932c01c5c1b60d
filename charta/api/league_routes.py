"""CHARTA — League, Sync & Settings Routes."""

import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from charta.api.deps import enforce_trigger_limit, get_sleeper_client
from charta.connectors.sleeper.client import SleeperClient
from charta.constitution.merger import merge_settings
from charta.core.errors import FetchFailed, LeagueNotLinked, PersistenceError
from charta.core.logging import get_logger
from charta.database import get_session
from charta.models.league_models import League
from charta.models.normalized_models import (
    SETTINGS_CATEGORIES,
    LeagueSettings,
    LeagueSettingsOverride,
)
from charta.sync.orchestrator import SyncOrchestrator, SyncResult, load_change_events

logger = get_logger("api.leagues")

router = APIRouter(tags=["Leagues"])


# ── Request / Response Models ──


class CreateLeagueRequest(BaseModel):
    """Request body for POST /leagues."""

    name: str
    season: str = ""
    sleeper_league_id: Optional[str] = None
    sleeper_username: Optional[str] = None


class OverridesRequest(BaseModel):
    """Request body for PUT /leagues/{league_id}/settings/overrides.

    Sparse ``{category: {key: value}}``; replaces any previous overrides.
    """

    overrides: Dict[str, Dict[str, Any]] = {}


def _get_league_or_404(session: Session, league_id: str) -> League:
    league = session.get(League, league_id)
    if not league:
        raise HTTPException(status_code=404, detail="League not found")
    return league


# ── Linking ──


@router.get("/sleeper/leagues")
async def find_sleeper_leagues(
    username: str = Query(...),
    season: str = Query(...),
    client: SleeperClient = Depends(get_sleeper_client),
):
    """List a Sleeper user's leagues for a season, to pick one to link."""
    try:
        user = await client.user_by_username(username)
        leagues = await client.leagues_for_user(user.get("user_id", ""), season)
    except FetchFailed as e:
        status = 404 if e.status_code == 404 else 502
        raise HTTPException(status_code=status, detail=str(e))
    return {
        "status": "success",
        "leagues": [
            {
                "id": lg.get("league_id"),
                "name": lg.get("name"),
                "season": lg.get("season"),
                "sport": lg.get("sport"),
                "status": lg.get("status"),
            }
            for lg in leagues
        ],
    }


@router.post("/leagues")
async def create_league(request: CreateLeagueRequest, session: Session = Depends(get_session)):
    league = League(
        name=request.name,
        season=request.season,
        sleeper_league_id=request.sleeper_league_id,
        sleeper_username=request.sleeper_username,
    )
    session.add(league)
    session.commit()
    session.refresh(league)
    return {"status": "success", "league": league}


@router.get("/leagues/{league_id}")
async def get_league(league_id: str, session: Session = Depends(get_session)):
    league = _get_league_or_404(session, league_id)
    return {"status": "success", "league": league, "constitution": league.constitution}


# ── Sync ──


@router.post("/leagues/{league_id}/sync", response_model=SyncResult)
async def trigger_sync(
    league_id: str,
    session: Session = Depends(get_session),
    client: SleeperClient = Depends(get_sleeper_client),
):
    """Fetch the league from Sleeper now and apply any changes."""
    _get_league_or_404(session, league_id)
    enforce_trigger_limit(league_id)
    try:
        return await SyncOrchestrator(session, client=client).sync(league_id)
    except LeagueNotLinked as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FetchFailed as e:
        raise HTTPException(status_code=502, detail=f"Sleeper fetch failed: {e}")
    except PersistenceError as e:
        logger.error(f"Sync failed: {e}")
        raise HTTPException(status_code=500, detail=f"Sync failed: {e}")


# ── Settings ──


@router.get("/leagues/{league_id}/settings")
async def get_settings(league_id: str, session: Session = Depends(get_session)):
    """Canonical, override and effective settings side by side."""
    _get_league_or_404(session, league_id)
    base = session.exec(
        select(LeagueSettings).where(LeagueSettings.league_id == league_id)
    ).first()
    override = session.exec(
        select(LeagueSettingsOverride).where(LeagueSettingsOverride.league_id == league_id)
    ).first()
    if not base:
        return {"status": "no_data", "message": "League has not been synced yet."}
    overrides = override.overrides if override else {}
    return {
        "status": "success",
        "schema_version": base.schema_version,
        "updated_at": base.updated_at,
        "canonical": base.as_dict(),
        "overrides": overrides,
        "effective": merge_settings(base.as_dict(), overrides),
    }


@router.put("/leagues/{league_id}/settings/overrides")
async def save_overrides(
    league_id: str,
    request: OverridesRequest,
    session: Session = Depends(get_session),
):
    _get_league_or_404(session, league_id)
    unknown = sorted(set(request.overrides) - set(SETTINGS_CATEGORIES))
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown categories: {', '.join(unknown)}")

    row = session.exec(
        select(LeagueSettingsOverride).where(LeagueSettingsOverride.league_id == league_id)
    ).first()
    if row is None:
        row = LeagueSettingsOverride(league_id=league_id)
    row.overrides_json = json.dumps(request.overrides, sort_keys=True)
    session.add(row)
    session.commit()
    session.refresh(row)
    return {"status": "success", "overrides": row.overrides}


@router.get("/leagues/{league_id}/settings/changes")
async def list_changes(
    league_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    session: Session = Depends(get_session),
):
    events = load_change_events(session, league_id, limit)
    return {
        "status": "success",
        "changes": [
            {
                "path": e.path,
                "source": e.source,
                "old_value": e.old_value,
                "new_value": e.new_value,
                "detected_at": e.detected_at,
            }
            for e in events
        ],
    }
