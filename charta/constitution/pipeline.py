"""CHARTA — Constitution Render Pipeline.

Runs the full document flow for one league:
  effective settings → render each section → persist → index

Best-effort: a failing section is recorded and skipped, and every
other section still renders, persists and indexes.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from charta.constitution.index import DatabaseDocumentIndex, DocumentIndex
from charta.constitution.merger import merge_settings
from charta.constitution.renderer import TemplateRenderer
from charta.core.errors import StageError, TemplateRenderError, describe
from charta.core.logging import get_logger, timed_stage
from charta.core.retry import with_retry
from charta.models.constitution_models import (
    ConstitutionTemplate,
    PipelineResult,
    RenderedSection,
)
from charta.models.league_models import League
from charta.models.normalized_models import (
    SETTINGS_CATEGORIES,
    LeagueSettings,
    LeagueSettingsOverride,
)

logger = get_logger("constitution.pipeline")


def format_slug_as_title(slug: str) -> str:
    """``scoring-rules`` → ``Scoring Rules``."""
    return " ".join(word[:1].upper() + word[1:] for word in slug.split("-") if word)


def version_tag(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"v{now.strftime('%Y-%m-%d')}"


def build_summary(result: PipelineResult) -> str:
    if result.sections_rendered == 0:
        return "No sections rendered"
    parts = [
        f"{result.sections_rendered} section(s) rendered",
        f"{result.sections_indexed} section(s) indexed",
    ]
    if result.errors:
        parts.append(f"{len(result.errors)} error(s)")
    return ", ".join(parts)


def load_effective_settings(session: Session, league_id: str) -> Optional[Dict[str, Any]]:
    """Canonical settings with overrides merged on top; None if never synced."""
    base = session.exec(
        select(LeagueSettings).where(LeagueSettings.league_id == league_id)
    ).first()
    if base is None:
        return None
    override = session.exec(
        select(LeagueSettingsOverride).where(LeagueSettingsOverride.league_id == league_id)
    ).first()
    return merge_settings(base.as_dict(), override.overrides if override else None)


class RenderPipeline:
    """Renders every constitution template for a league and indexes the results."""

    def __init__(
        self,
        session: Session,
        index: Optional[DocumentIndex] = None,
        renderer: Optional[TemplateRenderer] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session = session
        self.index = index or DatabaseDocumentIndex(session)
        self.renderer = renderer or TemplateRenderer()
        self.clock = clock

    def _build_context(self, league_id: str, effective: Dict[str, Any]) -> Dict[str, Any]:
        league = self.session.get(League, league_id)
        context: Dict[str, Any] = {
            "league": {
                "name": league.name if league else "League",
                "season": (league.season if league and league.season else str(self.clock().year)),
            }
        }
        for category in SETTINGS_CATEGORIES:
            context[category] = effective.get(category) or {}
        return context

    def _persist(self, league_id: str, slug: str, content_md: str) -> None:
        existing = self.session.exec(
            select(RenderedSection).where(
                RenderedSection.league_id == league_id,
                RenderedSection.slug == slug,
            )
        ).first()
        if existing:
            existing.content_md = content_md
            existing.rendered_at = self.clock()
            self.session.add(existing)
        else:
            self.session.add(
                RenderedSection(
                    league_id=league_id,
                    slug=slug,
                    content_md=content_md,
                    rendered_at=self.clock(),
                )
            )
        self.session.commit()

    async def render_and_index(self, league_id: str) -> PipelineResult:
        result = PipelineResult()
        errors: List[StageError] = []
        logger.info(f"Starting pipeline for league {league_id}", extra={"league_id": league_id})

        try:
            # ── Step 1: Effective settings ──
            effective = load_effective_settings(self.session, league_id)
            if effective is None:
                logger.warning(f"No settings found for league {league_id}, skipping")
                result.summary = "No settings available for rendering"
                return result

            # ── Step 2: Templates ──
            templates = self.session.exec(
                select(ConstitutionTemplate)
                .where(ConstitutionTemplate.league_id == league_id)
                .order_by(ConstitutionTemplate.id)  # type: ignore
            ).all()
            if not templates:
                logger.warning(f"No templates found for league {league_id}")
                result.summary = "No templates to render"
                return result

            context = self._build_context(league_id, effective)

            # ── Step 3: Render ──
            rendered: List[Dict[str, str]] = []
            for template in templates:
                try:
                    content_md = self.renderer.render(template.slug, template.template_md, context)
                except TemplateRenderError as e:
                    errors.append(StageError(context=template.slug, stage="render", error=str(e)))
                    continue
                rendered.append({"slug": template.slug, "content_md": content_md})
            result.sections_rendered = len(rendered)

            # ── Step 4: Persist ──
            persisted: List[Dict[str, str]] = []
            for section in rendered:
                try:
                    self._persist(league_id, section["slug"], section["content_md"])
                except SQLAlchemyError as e:
                    self.session.rollback()
                    logger.error(
                        f"Failed to persist section {section['slug']}: {e}",
                        extra={"league_id": league_id, "slug": section["slug"]},
                    )
                    errors.append(
                        StageError(context=section["slug"], stage="persist", error=describe(e))
                    )
                    continue
                persisted.append(section)

            # ── Step 5: Index ──
            version = version_tag(self.clock())
            with timed_stage(logger, "index", league_id):
                for section in persisted:
                    title = f"Constitution › {format_slug_as_title(section['slug'])} › {version}"
                    try:
                        await with_retry(
                            lambda s=section, t=title: self.index.index(
                                league_id, s["content_md"], version, "NORMALIZED", t
                            )
                        )
                    except Exception as e:
                        logger.error(
                            f"Failed to index section {section['slug']}: {e}",
                            extra={"league_id": league_id, "slug": section["slug"]},
                        )
                        errors.append(
                            StageError(context=section["slug"], stage="index", error=describe(e))
                        )
                        continue
                    result.sections_indexed += 1

        except SQLAlchemyError as e:
            logger.error(f"Pipeline failed for league {league_id}: {e}")
            errors.append(StageError(context=league_id, stage="load", error=describe(e)))
            result.errors = errors
            result.success = False
            result.summary = f"Pipeline failed: {describe(e)}"
            return result

        result.errors = errors
        result.success = not errors
        result.summary = build_summary(result)
        logger.info(f"Pipeline complete: {result.summary}", extra={"league_id": league_id})
        return result
