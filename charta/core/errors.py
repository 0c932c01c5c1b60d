"""CHARTA — Error Taxonomy.

Only genuine failures are exceptions. "Not modified" and "duplicate" are
ordinary return values of the client and the draft service.
"""

from typing import Optional

from pydantic import BaseModel


class ChartaError(Exception):
    """Base class for all CHARTA errors."""


class FetchFailed(ChartaError):
    """Raised when the external platform cannot produce a usable payload.

    Covers timeouts, transport errors, non-2xx statuses and malformed bodies.
    ``status_code`` is 0 when no HTTP response was received.
    """

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class LeagueNotLinked(ChartaError):
    """Raised when a league has no external league id to sync from."""

    def __init__(self, league_id: str):
        self.league_id = league_id
        super().__init__(f"League {league_id} is not linked to Sleeper")


class DraftNotFound(ChartaError):
    """No PENDING draft with this id. Never-existed and already-decided look the same."""

    def __init__(self, draft_id: str):
        self.draft_id = draft_id
        super().__init__("DRAFT_NOT_FOUND")


class TemplateRenderError(ChartaError):
    """Raised when a constitution section template cannot be rendered."""

    def __init__(self, slug: str, message: str):
        self.slug = slug
        super().__init__(f"Template '{slug}' failed to render: {message}")


class PersistenceError(ChartaError):
    """Raised when a write that the caller depends on fails."""

    def __init__(self, context: str, message: str):
        self.context = context
        super().__init__(f"{context}: {message}")


class StageError(BaseModel):
    """A failure that was recorded and swallowed so the run could continue.

    ``context`` is the section slug, dotted settings path or league id.
    """

    context: str
    stage: str
    error: str


def describe(exc: Optional[BaseException]) -> str:
    """Short human-readable message for an exception."""
    if exc is None:
        return "Unknown error"
    return str(exc) or exc.__class__.__name__
