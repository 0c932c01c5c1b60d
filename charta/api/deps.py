"""CHARTA — Shared Route Dependencies."""

from fastapi import HTTPException

from charta.connectors.sleeper.client import SleeperClient
from charta.core.rate_limiter import trigger_limiter


async def get_sleeper_client():
    """Dependency — yields a Sleeper client closed after the request."""
    client = SleeperClient()
    try:
        yield client
    finally:
        await client.close()


def enforce_trigger_limit(league_id: str) -> None:
    """Reject manual triggers beyond the per-league token bucket."""
    if not trigger_limiter.allow(league_id):
        raise HTTPException(status_code=429, detail="Too many sync requests for this league")
