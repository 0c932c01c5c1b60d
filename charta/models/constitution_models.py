"""CHARTA — Constitution Template, Render & Index Models."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel
from sqlmodel import SQLModel, Field, UniqueConstraint

from charta.core.errors import StageError


class ConstitutionTemplate(SQLModel, table=True):
    """Template source for one constitution section."""

    __tablename__ = "constitution_templates"
    __table_args__ = (
        UniqueConstraint("league_id", "slug", name="uq_constitution_template"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(index=True)
    slug: str = Field(description="e.g. scoring-rules")
    template_md: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RenderedSection(SQLModel, table=True):
    """Last successful render of one section. Overwritten per section only."""

    __tablename__ = "constitution_renders"
    __table_args__ = (
        UniqueConstraint("league_id", "slug", name="uq_constitution_render"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(index=True)
    slug: str
    content_md: str
    rendered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class IndexedDocument(SQLModel, table=True):
    """Document handed to the search index, with its section count."""

    __tablename__ = "indexed_documents"

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(index=True)
    kind: str = Field(default="NORMALIZED", description="ORIGINAL | NORMALIZED")
    version: str
    title: str = Field(default="")
    content: str
    rules_indexed: int = Field(default=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS — Pipeline Output
# ─────────────────────────────────────────────


class PipelineResult(BaseModel):
    """Outcome of one render-and-index run. Partial results are still persisted."""

    success: bool = True
    sections_rendered: int = 0
    sections_indexed: int = 0
    errors: List[StageError] = []
    summary: str = ""
