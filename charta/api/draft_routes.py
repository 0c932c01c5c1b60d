"""CHARTA — Constitution Draft Routes."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from charta.api.deps import enforce_trigger_limit, get_sleeper_client
from charta.connectors.sleeper.client import SleeperClient
from charta.constitution.pipeline import RenderPipeline
from charta.core.errors import DraftNotFound, FetchFailed, LeagueNotLinked, PersistenceError
from charta.core.logging import get_logger
from charta.database import get_session
from charta.models.draft_models import DraftOut, DraftSkipped
from charta.sync.drafts import DraftService

logger = get_logger("api.drafts")

router = APIRouter(tags=["Drafts"])


@router.post("/leagues/{league_id}/drafts")
async def propose_draft(
    league_id: str,
    session: Session = Depends(get_session),
    client: SleeperClient = Depends(get_sleeper_client),
):
    """Fetch Sleeper settings and stage them as a draft for review."""
    enforce_trigger_limit(league_id)
    try:
        outcome = await DraftService(session, client=client).propose(league_id)
    except LeagueNotLinked as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FetchFailed as e:
        raise HTTPException(status_code=502, detail=f"Sleeper fetch failed: {e}")
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if outcome is None:
        return {"status": "not_modified"}
    if isinstance(outcome, DraftSkipped):
        return {"status": "skipped", "reason": outcome.reason}
    return {"status": "created", "draft": DraftOut.from_row(outcome)}


@router.get("/leagues/{league_id}/drafts")
async def list_drafts(league_id: str, session: Session = Depends(get_session)):
    drafts = DraftService(session).list_drafts(league_id)
    return {"status": "success", "drafts": [DraftOut.from_row(d) for d in drafts]}


@router.post("/drafts/{draft_id}/apply", response_model=DraftOut)
async def apply_draft(draft_id: str, session: Session = Depends(get_session)):
    service = DraftService(session, pipeline=RenderPipeline(session))
    try:
        draft = await service.apply_draft(draft_id)
    except DraftNotFound:
        raise HTTPException(status_code=404, detail="DRAFT_NOT_FOUND")
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return DraftOut.from_row(draft)


@router.post("/drafts/{draft_id}/reject", response_model=DraftOut)
async def reject_draft(draft_id: str, session: Session = Depends(get_session)):
    try:
        draft = DraftService(session).reject_draft(draft_id)
    except DraftNotFound:
        raise HTTPException(status_code=404, detail="DRAFT_NOT_FOUND")
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return DraftOut.from_row(draft)
