"""CHARTA — Constitution Draft Models."""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlmodel import SQLModel, Field


class DraftStatus(str, Enum):
    """PENDING moves to exactly one of the terminal states, once."""

    PENDING = "PENDING"
    APPLIED = "APPLIED"
    REJECTED = "REJECTED"


class ConstitutionDraft(SQLModel, table=True):
    """A proposed set of constitution changes awaiting a commissioner decision."""

    __tablename__ = "constitution_drafts"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    league_id: str = Field(index=True)
    source: str = Field(default="sleeper-sync")
    proposed_json: str = Field(default="[]", description="List of {path, old_value, new_value}")
    status: str = Field(default=DraftStatus.PENDING.value, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    decided_at: Optional[datetime] = Field(default=None)

    @property
    def proposed(self) -> List[Dict[str, Any]]:
        return json.loads(self.proposed_json or "[]")


class DraftSkipped(BaseModel):
    """``build_draft`` outcome when the payload was already seen."""

    reason: str = "DUPLICATE"
    league_id: str
    fingerprint: str


class DraftOut(BaseModel):
    """API view of a draft."""

    id: str
    league_id: str
    source: str
    status: str
    changes: List[Dict[str, Any]]
    created_at: datetime
    decided_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, draft: ConstitutionDraft) -> "DraftOut":
        return cls(
            id=draft.id,
            league_id=draft.league_id,
            source=draft.source,
            status=draft.status,
            changes=draft.proposed,
            created_at=draft.created_at,
            decided_at=draft.decided_at,
        )
