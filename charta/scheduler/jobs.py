"""CHARTA — Scheduler Jobs.

APScheduler daily job that syncs every linked league at the configured hour.
Leagues run concurrently, bounded by ``sync_concurrency``; each gets its own
DB session.
"""

import asyncio
from typing import Dict, List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlmodel import select

from charta.config import settings
from charta.connectors.sleeper.client import SleeperClient
from charta.constitution.pipeline import RenderPipeline
from charta.database import new_session
from charta.models.draft_models import DraftSkipped
from charta.models.league_models import League
from charta.sync.drafts import DraftService
from charta.sync.orchestrator import SyncOrchestrator
from charta.core.logging import get_logger

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()


def linked_league_ids() -> List[str]:
    with new_session() as session:
        return list(
            session.exec(
                select(League.id).where(League.sleeper_league_id.is_not(None))  # type: ignore
            ).all()
        )


async def sync_league(league_id: str, client: SleeperClient, mode: str) -> str:
    """Run one league in ``auto`` or ``draft`` mode and describe the outcome."""
    with new_session() as session:
        pipeline = RenderPipeline(session)
        if mode == "draft":
            outcome = await DraftService(session, client=client, pipeline=pipeline).propose(league_id)
            if outcome is None:
                return "not modified"
            if isinstance(outcome, DraftSkipped):
                return outcome.reason.lower()
            return f"draft {outcome.id}"
        result = await SyncOrchestrator(session, client=client, pipeline=pipeline).sync(league_id)
        if result.not_modified:
            return "not modified"
        return f"{result.change_count} changes"


async def sync_all_leagues(mode: str | None = None) -> Dict[str, str]:
    """Sync every linked league; one failure never stops the others."""
    mode = mode or settings.sync_mode
    league_ids = linked_league_ids()
    semaphore = asyncio.Semaphore(max(settings.sync_concurrency, 1))
    outcomes: Dict[str, str] = {}

    async with SleeperClient() as client:

        async def run(league_id: str) -> None:
            async with semaphore:
                try:
                    outcomes[league_id] = await sync_league(league_id, client, mode)
                except Exception as e:
                    logger.error(f"Sync failed for league {league_id}: {e}", extra={"league_id": league_id})
                    outcomes[league_id] = f"failed: {e}"

        await asyncio.gather(*(run(league_id) for league_id in league_ids))

    return outcomes


async def daily_sync_job():
    """Sync all linked leagues."""
    logger.info("Scheduled league sync starting...")
    try:
        outcomes = await sync_all_leagues()
        logger.info(f"Scheduled sync complete for {len(outcomes)} leagues")
    except Exception as e:
        logger.error(f"Scheduled sync failed: {e}")


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        daily_sync_job,
        "cron",
        hour=settings.sync_hour,
        minute=0,
        id="daily_sync",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.start()
    logger.info(f"Scheduler started. Daily sync at {settings.sync_hour}:00 UTC ({settings.sync_mode} mode)")


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
