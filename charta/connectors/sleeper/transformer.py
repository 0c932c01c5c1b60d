"""CHARTA — Sleeper Raw → Canonical Settings Transformer.

Pure and deterministic: the same payload always yields the same structure.
Absent or junk fields fall back to the category default, so the canonical
shape never has holes and diffing never special-cases absence.
"""

from typing import Any, Dict

from charta.models.normalized_models import (
    MiscSettings,
    NormalizedSettings,
    PlayoffSettings,
    RosterSettings,
    TradeSettings,
    WaiverSettings,
)

# Scoring rules always present in the canonical shape, with Sleeper's defaults
DEFAULT_SCORING: Dict[str, float] = {
    "pass_td": 4,
    "pass_yd": 0.04,
    "pass_2pt": 2,
    "pass_int": -1,
    "rush_yd": 0.1,
    "rush_td": 6,
    "rush_2pt": 2,
    "rec": 0,  # PPR
    "rec_yd": 0.1,
    "rec_td": 6,
    "rec_2pt": 2,
    "fum_lost": -2,
    "bonus_rec_te": 0,
    "bonus_rush_yd_100": 0,
    "bonus_rush_yd_200": 0,
    "bonus_rec_yd_100": 0,
    "bonus_rec_yd_200": 0,
    "bonus_pass_yd_300": 0,
    "bonus_pass_yd_400": 0,
}

WAIVER_TYPES = {1: "FAAB", 2: "Rolling"}
DRAFT_TYPES = {0: "snake", 1: "keeper", 2: "dynasty"}


def _safe_float(value: Any, default: float) -> float:
    """Safely convert a value to float."""
    if value is None or isinstance(value, bool):
        return float(default)
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def _safe_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _map_scoring(raw: Dict[str, Any]) -> Dict[str, float]:
    scoring = {
        key: _safe_float(raw.get(key), default) for key, default in DEFAULT_SCORING.items()
    }
    # Carry through any extra numeric rules the league uses
    for key, value in raw.items():
        if key in scoring or isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            scoring[key] = float(value)
    return dict(sorted(scoring.items()))


def _map_roster(league: Dict[str, Any], s: Dict[str, Any]) -> RosterSettings:
    positions = league.get("roster_positions") or []
    return RosterSettings(
        positions=[str(p) for p in positions if p is not None],
        taxi=_safe_int(s.get("taxi_slots"), 0) > 0,
        ir_slots=_safe_int(s.get("reserve_slots"), 0),
        max_keep=_safe_int(s.get("keeper_count"), 0),
    )


def _map_waivers(s: Dict[str, Any]) -> WaiverSettings:
    return WaiverSettings(
        type=WAIVER_TYPES.get(_safe_int(s.get("waiver_type"), 0), "None"),
        budget=_safe_int(s.get("waiver_budget"), 0),
        run_day=_safe_int(s.get("waiver_day_of_week"), 0),
        clear_days=_safe_int(s.get("waiver_clear_days"), 0),
        bid_min=_safe_int(s.get("waiver_bid_min"), 0),
    )


def _map_playoffs(s: Dict[str, Any]) -> PlayoffSettings:
    return PlayoffSettings(
        teams=_safe_int(s.get("playoff_teams"), 6),
        start_week=_safe_int(s.get("playoff_week_start"), 15),
        round_type=_safe_int(s.get("playoff_round_type"), 0),
    )


def _map_trades(s: Dict[str, Any]) -> TradeSettings:
    return TradeSettings(
        deadline_week=_safe_int(s.get("trade_deadline"), 0),
        veto="League" if _safe_int(s.get("veto_votes_needed"), 0) > 0 else "None",
        review_period_hours=_safe_int(s.get("trade_review_days"), 0) * 24,
    )


def _map_misc(s: Dict[str, Any]) -> MiscSettings:
    playoff_start = _safe_int(s.get("playoff_week_start"), 0)
    draft_type = s.get("type")
    if isinstance(draft_type, str) and draft_type:
        draft_type_name = draft_type
    else:
        draft_type_name = DRAFT_TYPES.get(_safe_int(draft_type, 0), "snake")
    return MiscSettings(
        divisions=_safe_int(s.get("divisions"), 0),
        schedule_weeks=playoff_start - 1 if playoff_start > 0 else 14,
        draft_type=draft_type_name,
        keeper_count=_safe_int(s.get("keeper_count"), 0),
    )


def normalize_league(league: Dict[str, Any]) -> NormalizedSettings:
    """Map a raw Sleeper league object onto the canonical settings schema."""
    league = league or {}
    s = league.get("settings") or {}
    scoring_raw = league.get("scoring_settings") or {}

    return NormalizedSettings(
        scoring=_map_scoring(scoring_raw),
        roster=_map_roster(league, s),
        waivers=_map_waivers(s),
        playoffs=_map_playoffs(s),
        trades=_map_trades(s),
        misc=_map_misc(s),
    )
