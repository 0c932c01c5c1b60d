"""Constitution render → persist → index pipeline."""

from datetime import datetime

import pytest
from sqlmodel import select

from charta.constitution.pipeline import RenderPipeline, format_slug_as_title, version_tag
from charta.models.constitution_models import (
    ConstitutionTemplate,
    IndexedDocument,
    RenderedSection,
)
from charta.models.normalized_models import LeagueSettingsOverride

from conftest import RecordingIndex, seed_settings

TEMPLATES = [
    ("scoring-rules", "## Scoring\n\nReceptions: {{ scoring.rec }}\n"),
    ("roster", "## Roster\n\n{{ roster.positions | join(', ') }}\n"),
    ("playoffs", "## Playoffs\n\n{% if playoffs.teams %}{{ playoffs.teams }} teams\n"),
    ("waivers", "## Waivers\n\n{{ waivers.type }} with ${{ waivers.budget }}\n"),
    ("trades", "## Trades\n\nDeadline: week {{ trades.deadline_week }}\n"),
]


def add_templates(session, league_id, templates=TEMPLATES):
    for slug, body in templates:
        session.add(ConstitutionTemplate(league_id=league_id, slug=slug, template_md=body))
    session.commit()


def test_slug_titles_and_versions():
    assert format_slug_as_title("scoring-rules") == "Scoring Rules"
    assert version_tag(datetime(2026, 9, 7)) == "v2026-09-07"


@pytest.mark.asyncio
async def test_one_broken_template_does_not_stop_the_others(session, league, sample_league):
    seed_settings(session, league.id, sample_league)
    add_templates(session, league.id)
    index = RecordingIndex()

    result = await RenderPipeline(session, index=index).render_and_index(league.id)

    assert result.sections_rendered == 4
    assert result.sections_indexed == 4
    assert result.success is False
    assert len(result.errors) == 1
    assert result.errors[0].context == "playoffs"
    assert result.errors[0].stage == "render"

    slugs = {row.slug for row in session.exec(select(RenderedSection)).all()}
    assert slugs == {"scoring-rules", "roster", "waivers", "trades"}
    assert len(index.calls) == 4
    assert index.calls[0]["title"].startswith("Constitution › Scoring Rules › v")
    assert "4 section(s) rendered" in result.summary


@pytest.mark.asyncio
async def test_runaway_template_between_good_ones_is_recorded(session, league, sample_league):
    seed_settings(session, league.id, sample_league)
    add_templates(
        session,
        league.id,
        [
            TEMPLATES[0],
            ("tiebreakers", "{% macro m() %}{{ m() }}{% endmacro %}{{ m() }}"),
            TEMPLATES[3],
        ],
    )

    result = await RenderPipeline(session, index=RecordingIndex()).render_and_index(league.id)

    assert result.sections_rendered == 2
    assert [(e.context, e.stage) for e in result.errors] == [("tiebreakers", "render")]
    slugs = {row.slug for row in session.exec(select(RenderedSection)).all()}
    assert slugs == {"scoring-rules", "waivers"}


@pytest.mark.asyncio
async def test_overrides_apply_to_rendered_text(session, league, sample_league):
    seed_settings(session, league.id, sample_league)
    add_templates(session, league.id, TEMPLATES[:1])
    session.add(
        LeagueSettingsOverride(league_id=league.id, overrides_json='{"scoring": {"rec": 1.0}}')
    )
    session.commit()

    result = await RenderPipeline(session, index=RecordingIndex()).render_and_index(league.id)

    assert result.success is True
    section = session.exec(select(RenderedSection)).one()
    assert section.content_md == "## Scoring\n\nReceptions: 1.0\n"


@pytest.mark.asyncio
async def test_index_failure_keeps_the_render(session, league, sample_league):
    seed_settings(session, league.id, sample_league)
    add_templates(session, league.id, TEMPLATES[:2])
    index = RecordingIndex(fail_for=("Roster",))

    result = await RenderPipeline(session, index=index).render_and_index(league.id)

    assert result.sections_rendered == 2
    assert result.sections_indexed == 1
    assert [(e.context, e.stage) for e in result.errors] == [("roster", "index")]
    assert len(session.exec(select(RenderedSection)).all()) == 2


@pytest.mark.asyncio
async def test_rerender_overwrites_existing_section(session, league, sample_league):
    seed_settings(session, league.id, sample_league)
    add_templates(session, league.id, TEMPLATES[:1])
    pipeline = RenderPipeline(session, index=RecordingIndex())

    await pipeline.render_and_index(league.id)
    await pipeline.render_and_index(league.id)

    assert len(session.exec(select(RenderedSection)).all()) == 1


@pytest.mark.asyncio
async def test_default_index_stores_documents(session, league, sample_league):
    seed_settings(session, league.id, sample_league)
    add_templates(session, league.id, TEMPLATES[:1])

    result = await RenderPipeline(session).render_and_index(league.id)

    assert result.sections_indexed == 1
    doc = session.exec(select(IndexedDocument)).one()
    assert doc.rules_indexed == 1
    assert doc.kind == "NORMALIZED"


@pytest.mark.asyncio
async def test_no_settings(session, league):
    result = await RenderPipeline(session, index=RecordingIndex()).render_and_index(league.id)
    assert result.summary == "No settings available for rendering"
    assert result.sections_rendered == 0


@pytest.mark.asyncio
async def test_no_templates(session, league, sample_league):
    seed_settings(session, league.id, sample_league)
    result = await RenderPipeline(session, index=RecordingIndex()).render_and_index(league.id)
    assert result.summary == "No templates to render"
    assert result.success is True
