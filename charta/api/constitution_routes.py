"""CHARTA — Constitution Template & Render Routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from charta.constitution.pipeline import RenderPipeline
from charta.database import get_session
from charta.models.constitution_models import (
    ConstitutionTemplate,
    PipelineResult,
    RenderedSection,
)
from charta.core.logging import get_logger

logger = get_logger("api.constitution")

router = APIRouter(tags=["Constitution"])


class TemplateRequest(BaseModel):
    """Request body for PUT /leagues/{league_id}/templates/{slug}."""

    template_md: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"template_md": "## Scoring\n\nReceptions are worth {{ scoring.rec }} points."}
            ]
        }
    }


@router.get("/leagues/{league_id}/templates")
async def list_templates(league_id: str, session: Session = Depends(get_session)):
    templates = session.exec(
        select(ConstitutionTemplate)
        .where(ConstitutionTemplate.league_id == league_id)
        .order_by(ConstitutionTemplate.id)  # type: ignore
    ).all()
    return {"status": "success", "templates": templates}


@router.put("/leagues/{league_id}/templates/{slug}")
async def save_template(
    league_id: str,
    slug: str,
    request: TemplateRequest,
    session: Session = Depends(get_session),
):
    """Create or replace one section template."""
    row = session.exec(
        select(ConstitutionTemplate).where(
            ConstitutionTemplate.league_id == league_id,
            ConstitutionTemplate.slug == slug,
        )
    ).first()
    if row is None:
        row = ConstitutionTemplate(league_id=league_id, slug=slug, template_md=request.template_md)
    else:
        row.template_md = request.template_md
        row.updated_at = datetime.now(timezone.utc)
    session.add(row)
    session.commit()
    session.refresh(row)
    return {"status": "success", "template": row}


@router.post("/leagues/{league_id}/constitution/render", response_model=PipelineResult)
async def render_constitution(league_id: str, session: Session = Depends(get_session)):
    """Re-render and re-index every section for a league."""
    result = await RenderPipeline(session).render_and_index(league_id)
    if not result.success:
        logger.warning(f"Render finished with errors: {result.summary}")
    return result


@router.get("/leagues/{league_id}/constitution")
async def get_constitution(league_id: str, session: Session = Depends(get_session)):
    """The last rendered markdown for every section."""
    sections = session.exec(
        select(RenderedSection)
        .where(RenderedSection.league_id == league_id)
        .order_by(RenderedSection.slug)  # type: ignore
    ).all()
    if not sections:
        raise HTTPException(status_code=404, detail="No rendered constitution for this league")
    return {
        "status": "success",
        "sections": [
            {"slug": s.slug, "content_md": s.content_md, "rendered_at": s.rendered_at}
            for s in sections
        ],
    }
