"""CHARTA — Settings Sync Orchestrator (automatic mode).

Runs the full settings flow for one league:
  fetch → store raw snapshot → normalize → diff → persist settings
  → persist change events → render constitution (when something changed)

Only the settings write is a correctness boundary. Snapshot, change-event
and render failures are recorded on the result and logged.
"""

import json
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from charta.config import settings
from charta.connectors.sleeper.client import (
    NOT_MODIFIED,
    CacheTagStore,
    FetchResult,
    SleeperClient,
    cache_tags,
)
from charta.connectors.sleeper.transformer import normalize_league
from charta.constitution.pipeline import RenderPipeline
from charta.core.errors import LeagueNotLinked, PersistenceError, StageError, describe
from charta.core.idempotency import LeagueLocks, league_locks
from charta.core.logging import get_logger, timed_stage
from charta.core.retry import with_retry
from charta.models.league_models import League
from charta.models.normalized_models import LeagueSettings, SettingsChangeEvent
from charta.models.raw_models import RawSnapshot
from charta.sync.differ import SettingsChange, diff_settings

logger = get_logger("sync.orchestrator")

SOURCE = "sleeper"


class SyncResult(BaseModel):
    league_id: str
    change_count: int = 0
    not_modified: bool = False
    initial: bool = False
    rendered: bool = False
    changes: List[SettingsChange] = []
    errors: List[StageError] = []


def resolve_external_id(session: Session, league_id: str) -> str:
    league = session.get(League, league_id)
    if league is None or not league.sleeper_league_id:
        raise LeagueNotLinked(league_id)
    return league.sleeper_league_id


async def fetch_with_retry(
    client: SleeperClient,
    external_id: str,
    timeout: Optional[float] = None,
    cache_tag: Optional[str] = None,
):
    """Sleeper league fetch wrapped in the retry policy."""
    return await with_retry(
        lambda: client.fetch_league(external_id, cache_tag=cache_tag, timeout=timeout)
    )


def store_snapshot(
    session: Session, league_id: str, external_id: str, fetched: FetchResult
) -> RawSnapshot:
    """Append one raw snapshot to the audit trail."""
    snapshot = RawSnapshot(
        league_id=league_id,
        source=SOURCE,
        external_id=external_id,
        cache_tag=fetched.cache_tag or "",
        payload_json=json.dumps(fetched.payload),
    )
    session.add(snapshot)
    session.commit()
    return snapshot


class SyncOrchestrator:
    """Automatic sync: detected changes are applied without review."""

    def __init__(
        self,
        session: Session,
        client: Optional[SleeperClient] = None,
        pipeline: Optional[RenderPipeline] = None,
        locks: Optional[LeagueLocks] = None,
        timeout: Optional[float] = None,
        tag_store: Optional[CacheTagStore] = None,
    ):
        self.session = session
        self.client = client
        self.pipeline = pipeline or RenderPipeline(session)
        self.locks = locks or league_locks
        self.timeout = timeout
        self.tag_store = tag_store if tag_store is not None else cache_tags

    async def sync(self, league_id: str) -> SyncResult:
        async with self.locks.for_league(league_id):
            if self.client is not None:
                return await self._sync(league_id, self.client)
            async with SleeperClient() as client:
                return await self._sync(league_id, client)

    async def _sync(self, league_id: str, client: SleeperClient) -> SyncResult:
        result = SyncResult(league_id=league_id)
        external_id = resolve_external_id(self.session, league_id)

        # ── Step 1: Fetch ──
        with timed_stage(logger, "fetch", league_id):
            fetched = await fetch_with_retry(
                client, external_id, self.timeout, self.tag_store.get(league_id)
            )
        if fetched is NOT_MODIFIED:
            logger.info(f"League {league_id} unchanged upstream", extra={"league_id": league_id})
            result.not_modified = True
            return result

        # ── Step 2: Audit snapshot ──
        try:
            store_snapshot(self.session, league_id, external_id, fetched)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Snapshot write failed for league {league_id}: {e}")
            result.errors.append(StageError(context=league_id, stage="snapshot", error=describe(e)))

        # ── Step 3: Normalize + diff ──
        existing = self.session.exec(
            select(LeagueSettings).where(LeagueSettings.league_id == league_id)
        ).first()
        previous = existing.as_dict() if existing else None
        normalized = normalize_league(fetched.payload).categories()
        changes = diff_settings(previous, normalized)
        result.initial = existing is None
        result.changes = changes
        result.change_count = len(changes)

        # ── Step 4: Persist settings (fatal on failure) ──
        self._save_settings(league_id, existing, normalized)
        self.tag_store.put(league_id, fetched.cache_tag)

        # ── Step 5: Change events (best-effort) ──
        self._save_change_events(league_id, changes, result.errors)

        logger.info(
            f"Synced league {league_id}: {len(changes)} changes detected",
            extra={"league_id": league_id},
        )

        # ── Step 6: Render ──
        # First sync renders too: there is no constitution text yet
        if changes or result.initial:
            reason = "initial sync" if result.initial else f"{len(changes)} settings changes"
            result.rendered = await self._render(league_id, reason, result.errors)
        return result

    def _save_settings(
        self, league_id: str, existing: Optional[LeagueSettings], normalized: dict
    ) -> None:
        row = existing or LeagueSettings(league_id=league_id)
        row.replace_with(normalized, settings.settings_schema_version)
        self.session.add(row)
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Settings write failed for league {league_id}: {e}")
            raise PersistenceError("settings", describe(e)) from e

    def _save_change_events(
        self, league_id: str, changes: List[SettingsChange], errors: List[StageError]
    ) -> None:
        detected_at = datetime.now(timezone.utc)
        for change in changes:
            event = SettingsChangeEvent(
                league_id=league_id,
                source=SOURCE,
                path=change.path,
                old_value_json=json.dumps(change.old_value),
                new_value_json=json.dumps(change.new_value),
                detected_at=detected_at,
            )
            try:
                self.session.add(event)
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Change event write failed for {change.path}: {e}")
                errors.append(StageError(context=change.path, stage="event", error=describe(e)))

    async def _render(self, league_id: str, reason: str, errors: List[StageError]) -> bool:
        logger.info(
            f"Triggering constitution pipeline after {reason}", extra={"league_id": league_id}
        )
        try:
            with timed_stage(logger, "render", league_id):
                outcome = await self.pipeline.render_and_index(league_id)
        except Exception as e:
            logger.error(f"Constitution pipeline failed for league {league_id}: {e}")
            errors.append(StageError(context=league_id, stage="render", error=describe(e)))
            return False
        logger.info(f"Constitution pipeline result: {outcome.summary}")
        return True


def load_change_events(
    session: Session, league_id: str, limit: int = 100
) -> List[SettingsChangeEvent]:
    return list(
        session.exec(
            select(SettingsChangeEvent)
            .where(SettingsChangeEvent.league_id == league_id)
            .order_by(SettingsChangeEvent.detected_at.desc(), SettingsChangeEvent.id.desc())  # type: ignore
            .limit(limit)
        ).all()
    )
