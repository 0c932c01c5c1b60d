"""CHARTA — League Models."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from sqlmodel import SQLModel, Field


class League(SQLModel, table=True):
    """A league (tenant) and its stored constitution document.

    ``constitution_json`` is the commissioner-approved ``{category: {key: value}}``
    document that applied drafts are merged into.
    """

    __tablename__ = "leagues"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(default="League")
    season: str = Field(default="")
    sleeper_league_id: Optional[str] = Field(default=None, index=True)
    sleeper_username: Optional[str] = Field(default=None)
    constitution_json: str = Field(default="{}")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def constitution(self) -> Dict[str, Any]:
        return json.loads(self.constitution_json or "{}")
