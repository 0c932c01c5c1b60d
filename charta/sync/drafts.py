"""CHARTA — Constitution Drafts (human-in-the-loop sync).

A Sleeper payload becomes a reviewable draft instead of being applied.
Drafts are idempotent per payload fingerprint and decided exactly once.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from charta.config import settings
from charta.connectors.sleeper.client import (
    NOT_MODIFIED,
    CacheTagStore,
    SleeperClient,
    cache_tags,
)
from charta.connectors.sleeper.transformer import normalize_league
from charta.constitution.pipeline import RenderPipeline
from charta.core.errors import DraftNotFound, PersistenceError, describe
from charta.core.idempotency import LeagueLocks, fingerprint, league_locks
from charta.core.logging import get_logger
from charta.models.draft_models import ConstitutionDraft, DraftSkipped, DraftStatus
from charta.models.league_models import League
from charta.models.normalized_models import SettingsFingerprint
from charta.sync.differ import apply_changes, diff_settings
from charta.sync.orchestrator import (
    fetch_with_retry,
    resolve_external_id,
    store_snapshot,
)

logger = get_logger("sync.drafts")

DRAFT_SOURCE = "sleeper-sync"
TAG_PURPOSE = "draft"


def _aware(dt: datetime) -> datetime:
    # SQLite hands datetimes back naive
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


class DraftService:
    def __init__(
        self,
        session: Session,
        client: Optional[SleeperClient] = None,
        pipeline: Optional[RenderPipeline] = None,
        locks: Optional[LeagueLocks] = None,
        freshness: Optional[timedelta] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        tag_store: Optional[CacheTagStore] = None,
    ):
        self.session = session
        self.client = client
        self.pipeline = pipeline
        self.locks = locks or league_locks
        self.freshness = freshness or timedelta(hours=settings.draft_freshness_hours)
        self.clock = clock
        self.tag_store = tag_store if tag_store is not None else cache_tags

    # ── Build ──

    def _is_duplicate(self, stored: Optional[SettingsFingerprint], digest: str) -> bool:
        if stored is None or stored.fingerprint != digest:
            return False
        return self.clock() - _aware(stored.recorded_at) < self.freshness

    def _build(
        self, league_id: str, raw_payload: Dict[str, Any]
    ) -> Union[ConstitutionDraft, DraftSkipped]:
        digest = fingerprint(raw_payload)
        stored = self.session.exec(
            select(SettingsFingerprint).where(SettingsFingerprint.league_id == league_id)
        ).first()
        if self._is_duplicate(stored, digest):
            logger.info(
                f"Skipping duplicate payload for league {league_id}",
                extra={"league_id": league_id},
            )
            return DraftSkipped(league_id=league_id, fingerprint=digest)

        league = self.session.get(League, league_id)
        constitution = league.constitution if league else {}
        proposed = diff_settings(
            constitution, normalize_league(raw_payload).categories(), missing_as_change=True
        )

        draft = ConstitutionDraft(
            league_id=league_id,
            source=DRAFT_SOURCE,
            proposed_json=json.dumps([c.model_dump() for c in proposed]),
            status=DraftStatus.PENDING.value,
            created_at=self.clock(),
        )
        if stored is None:
            stored = SettingsFingerprint(league_id=league_id, fingerprint=digest)
        stored.fingerprint = digest
        stored.recorded_at = self.clock()

        # Draft and fingerprint land together or not at all
        self.session.add(draft)
        self.session.add(stored)
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError("draft", describe(e)) from e
        self.session.refresh(draft)
        logger.info(
            f"Draft {draft.id} created with {len(proposed)} proposed changes",
            extra={"league_id": league_id},
        )
        return draft

    async def build_draft(
        self, league_id: str, raw_payload: Dict[str, Any]
    ) -> Union[ConstitutionDraft, DraftSkipped]:
        """Create a PENDING draft unless this payload was already seen recently."""
        async with self.locks.for_league(league_id):
            return self._build(league_id, raw_payload)

    async def propose(self, league_id: str) -> Union[ConstitutionDraft, DraftSkipped, None]:
        """Fetch the league from Sleeper and build a draft from it.

        Returns None when Sleeper reports the league unchanged since the last
        payload this flow processed. Sync keeps its own tags, so proposing
        never hides a change from the automatic sync.
        """
        if self.client is not None:
            return await self._propose(league_id, self.client)
        async with SleeperClient() as client:
            return await self._propose(league_id, client)

    async def _propose(
        self, league_id: str, client: SleeperClient
    ) -> Union[ConstitutionDraft, DraftSkipped, None]:
        async with self.locks.for_league(league_id):
            external_id = resolve_external_id(self.session, league_id)
            fetched = await fetch_with_retry(
                client, external_id, cache_tag=self.tag_store.get(league_id, TAG_PURPOSE)
            )
            if fetched is NOT_MODIFIED:
                return None
            try:
                store_snapshot(self.session, league_id, external_id, fetched)
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Snapshot write failed for league {league_id}: {e}")
            outcome = self._build(league_id, fetched.payload)
            self.tag_store.put(league_id, fetched.cache_tag, TAG_PURPOSE)
            return outcome

    # ── Read ──

    def list_drafts(self, league_id: str) -> List[ConstitutionDraft]:
        """All drafts for a league, newest first."""
        return list(
            self.session.exec(
                select(ConstitutionDraft)
                .where(ConstitutionDraft.league_id == league_id)
                .order_by(ConstitutionDraft.created_at.desc())  # type: ignore
            ).all()
        )

    # ── Decide ──

    def _claim(self, draft_id: str, status: DraftStatus) -> ConstitutionDraft:
        """Flip a PENDING draft to ``status`` inside the open transaction.

        The WHERE on status makes the transition one-way even under races.
        """
        outcome = self.session.connection().execute(
            update(ConstitutionDraft)
            .where(
                ConstitutionDraft.id == draft_id,
                ConstitutionDraft.status == DraftStatus.PENDING.value,
            )
            .values(status=status.value, decided_at=self.clock())
        )
        if outcome.rowcount != 1:
            self.session.rollback()
            raise DraftNotFound(draft_id)
        draft = self.session.get(ConstitutionDraft, draft_id)
        self.session.refresh(draft)
        return draft

    async def apply_draft(self, draft_id: str) -> ConstitutionDraft:
        """Merge a PENDING draft into the league constitution and mark it APPLIED."""
        try:
            draft = self._claim(draft_id, DraftStatus.APPLIED)
            league = self.session.get(League, draft.league_id)
            if league is None:
                league = League(id=draft.league_id)
            updated = apply_changes(league.constitution, draft.proposed)
            league.constitution_json = json.dumps(updated, sort_keys=True)
            self.session.add(league)
            self.session.commit()
        except DraftNotFound:
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Applying draft {draft_id} failed: {e}")
            raise PersistenceError("draft", describe(e)) from e
        except Exception:
            # Undo the claim so the draft stays PENDING
            self.session.rollback()
            raise

        self.session.refresh(draft)
        logger.info(f"Draft {draft_id} applied", extra={"league_id": draft.league_id})

        if self.pipeline is not None:
            try:
                outcome = await self.pipeline.render_and_index(draft.league_id)
                logger.info(f"Constitution pipeline result: {outcome.summary}")
            except Exception as e:
                logger.error(f"Constitution pipeline failed after applying {draft_id}: {e}")
        return draft

    def reject_draft(self, draft_id: str) -> ConstitutionDraft:
        """Mark a PENDING draft REJECTED. Nothing else changes."""
        try:
            draft = self._claim(draft_id, DraftStatus.REJECTED)
            self.session.commit()
        except DraftNotFound:
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError("draft", describe(e)) from e
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(draft)
        logger.info(f"Draft {draft_id} rejected", extra={"league_id": draft.league_id})
        return draft
