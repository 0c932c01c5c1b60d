"""Constitution section rendering."""

import pytest

from charta.constitution.renderer import TemplateRenderer
from charta.core.errors import TemplateRenderError

CONTEXT = {
    "league": {"name": "Gridiron Legends", "season": "2026"},
    "scoring": {"rec": 0.5},
    "roster": {"positions": ["QB", "RB", "WR"]},
}


def test_renders_dotted_settings():
    md = TemplateRenderer().render(
        "scoring-rules",
        "## {{ league.name }} Scoring\n\nReceptions: {{ scoring.rec }} pts\n",
        CONTEXT,
    )
    assert md == "## Gridiron Legends Scoring\n\nReceptions: 0.5 pts\n"


def test_renders_loops():
    md = TemplateRenderer().render(
        "roster", "{% for p in roster.positions %}- {{ p }}\n{% endfor %}", CONTEXT
    )
    assert md == "- QB\n- RB\n- WR\n"


def test_malformed_template_names_the_slug():
    with pytest.raises(TemplateRenderError) as exc_info:
        TemplateRenderer().render("playoffs", "{% if playoffs.teams %}unclosed", CONTEXT)
    assert exc_info.value.slug == "playoffs"
    assert "playoffs" in str(exc_info.value)


def test_undefined_variable_is_an_error_not_blank_text():
    with pytest.raises(TemplateRenderError) as exc_info:
        TemplateRenderer().render("trades", "Deadline: week {{ trades.deadline_week }}", CONTEXT)
    assert exc_info.value.slug == "trades"


def test_sandbox_blocks_attribute_escapes():
    with pytest.raises(TemplateRenderError):
        TemplateRenderer().render("evil", "{{ league.__class__.__mro__ }}", CONTEXT)


def test_runaway_macro_recursion_is_a_render_error():
    with pytest.raises(TemplateRenderError) as exc_info:
        TemplateRenderer().render(
            "tiebreakers", "{% macro m() %}{{ m() }}{% endmacro %}{{ m() }}", CONTEXT
        )
    assert exc_info.value.slug == "tiebreakers"
