"""CHARTA — FastAPI Application Entry Point.

Serves league linking, settings sync, constitution drafts and rendering, and
runs the daily Sleeper sync in-process (disable with ``SCHEDULER_ENABLED=false``).
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from charta.api.constitution_routes import router as constitution_router
from charta.api.draft_routes import router as draft_router
from charta.api.league_routes import router as league_router
from charta.config import settings
from charta.core.logging import get_logger
from charta.database import backend_name, check_connection, db_url, init_db, mask_url
from charta.scheduler.jobs import scheduler, start_scheduler, stop_scheduler

logger = get_logger("main")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 CHARTA {VERSION} starting")
    if check_connection():
        init_db()
    else:
        logger.error("❌ Starting without a database; league endpoints will fail")
    start_scheduler()
    yield
    stop_scheduler()
    logger.info("CHARTA shut down")


app = FastAPI(
    title="CHARTA",
    description=(
        "Keeps a fantasy league constitution in step with its Sleeper settings: "
        "sync or draft settings changes, apply overrides, render and index the constitution."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(league_router)
app.include_router(draft_router)
app.include_router(constitution_router)


@app.get("/health", tags=["System"])
async def health_check():
    return {
        "status": "healthy",
        "service": "charta",
        "version": VERSION,
        "sync_mode": settings.sync_mode,
        "scheduler_running": scheduler.running,
    }


@app.get("/debug/db", tags=["System"])
async def debug_db():
    """Database reachability and which backend is configured."""
    return {
        "connected": check_connection(),
        "backend": backend_name(db_url),
        "url": mask_url(db_url),
    }
