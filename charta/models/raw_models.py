"""CHARTA — Raw Snapshot Models (Immutable)."""

from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


class RawSnapshot(SQLModel, table=True):
    """Immutable raw response from the Sleeper API.

    Never modify this data — it's the audit trail.
    """

    __tablename__ = "raw_snapshots"

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(index=True, description="Internal league id")
    source: str = Field(default="sleeper", description="External platform")
    external_id: str = Field(default="", description="Sleeper league id")
    cache_tag: str = Field(default="", description="ETag returned with the payload")
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payload_json: str = Field(description="Full raw JSON response")
