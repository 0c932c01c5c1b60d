"""CHARTA — Canonical League Settings (Versioned Internal Schema).

Every connector normalizes into ``NormalizedSettings``. The six categories
are fixed; each field has a default so the shape never has holes.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field as SchemaField
from sqlmodel import SQLModel, Field, UniqueConstraint

SETTINGS_CATEGORIES = ("scoring", "roster", "waivers", "playoffs", "trades", "misc")


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS — Canonical Settings v1
# ─────────────────────────────────────────────


class RosterSettings(BaseModel):
    positions: List[str] = []
    taxi: bool = False
    ir_slots: int = 0
    max_keep: int = 0


class WaiverSettings(BaseModel):
    type: str = "None"  # "FAAB" | "Rolling" | "None"
    budget: int = 0
    run_day: int = 0
    clear_days: int = 0
    bid_min: int = 0


class PlayoffSettings(BaseModel):
    teams: int = 6
    start_week: int = 15
    round_type: int = 0


class TradeSettings(BaseModel):
    deadline_week: int = 0  # 0 = no deadline
    veto: str = "None"  # "None" | "League" | "Commissioner"
    review_period_hours: int = 0


class MiscSettings(BaseModel):
    divisions: int = 0
    schedule_weeks: int = 14
    draft_type: str = "snake"
    keeper_count: int = 0


class NormalizedSettings(BaseModel):
    """The full canonical settings document for one league."""

    scoring: Dict[str, float] = {}
    roster: RosterSettings = SchemaField(default_factory=RosterSettings)
    waivers: WaiverSettings = SchemaField(default_factory=WaiverSettings)
    playoffs: PlayoffSettings = SchemaField(default_factory=PlayoffSettings)
    trades: TradeSettings = SchemaField(default_factory=TradeSettings)
    misc: MiscSettings = SchemaField(default_factory=MiscSettings)

    def categories(self) -> Dict[str, Dict[str, Any]]:
        """Plain ``{category: {key: value}}`` view."""
        return self.model_dump()


# ─────────────────────────────────────────────
# DATABASE MODELS
# ─────────────────────────────────────────────


class LeagueSettings(SQLModel, table=True):
    """Live canonical settings — exactly one row per league, replaced on sync."""

    __tablename__ = "league_settings"
    __table_args__ = (UniqueConstraint("league_id", name="uq_league_settings"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(index=True)
    schema_version: str = Field(default="1.0.0")
    scoring_json: str = Field(default="{}")
    roster_json: str = Field(default="{}")
    waivers_json: str = Field(default="{}")
    playoffs_json: str = Field(default="{}")
    trades_json: str = Field(default="{}")
    misc_json: str = Field(default="{}")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, Any]:
        return {
            category: json.loads(getattr(self, f"{category}_json") or "{}")
            for category in SETTINGS_CATEGORIES
        }

    def replace_with(self, categories: Dict[str, Any], schema_version: str) -> None:
        """Full replace of all six categories."""
        for category in SETTINGS_CATEGORIES:
            setattr(
                self,
                f"{category}_json",
                json.dumps(categories.get(category, {}), sort_keys=True),
            )
        self.schema_version = schema_version
        self.updated_at = datetime.now(timezone.utc)


class SettingsFingerprint(SQLModel, table=True):
    """Last fingerprint of a raw payload seen for a league.

    Unique on league_id so concurrent writers collide instead of both winning.
    """

    __tablename__ = "settings_fingerprints"
    __table_args__ = (UniqueConstraint("league_id", name="uq_settings_fingerprint"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(index=True)
    fingerprint: str
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SettingsChangeEvent(SQLModel, table=True):
    """One changed leaf field. Append-only."""

    __tablename__ = "settings_change_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(index=True)
    source: str = Field(default="sleeper")
    path: str = Field(description="Dotted path: category.key")
    old_value_json: str = Field(default="null")
    new_value_json: str = Field(default="null")
    detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def old_value(self) -> Any:
        return json.loads(self.old_value_json)

    @property
    def new_value(self) -> Any:
        return json.loads(self.new_value_json)


class LeagueSettingsOverride(SQLModel, table=True):
    """Commissioner-pinned values, sparse, same category shape as the settings."""

    __tablename__ = "league_settings_overrides"
    __table_args__ = (UniqueConstraint("league_id", name="uq_settings_override"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(index=True)
    overrides_json: str = Field(default="{}")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def overrides(self) -> Dict[str, Any]:
        return json.loads(self.overrides_json or "{}")
