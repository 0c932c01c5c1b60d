"""CHARTA — Sleeper API Client.

Handles conditional (ETag) requests and maps every transport failure to
``FetchFailed``. Retries are the caller's job (see ``charta.core.retry``).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import quote

import httpx

from charta.config import settings
from charta.core.errors import FetchFailed
from charta.core.logging import get_logger

logger = get_logger("sleeper.client")


class _NotModified:
    """Sentinel: the remote source reports no change since the sent tag."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_MODIFIED"

    def __bool__(self) -> bool:
        return False


NOT_MODIFIED = _NotModified()


@dataclass
class FetchResult:
    payload: Any
    cache_tag: Optional[str] = None
    status_code: int = 200


class CacheTagStore:
    """Last processed ETag per (purpose, internal league id).

    Sync and draft flows keep separate tags, and two leagues linked to the
    same Sleeper league never share one. A tag is recorded only once its
    payload has been committed, so a failed run re-fetches in full.
    Process-wide and best-effort: empty after a restart.
    """

    def __init__(self):
        self._tags: Dict[Tuple[str, str], str] = {}

    def get(self, league_id: str, purpose: str = "sync") -> Optional[str]:
        return self._tags.get((purpose, league_id))

    def put(self, league_id: str, tag: Optional[str], purpose: str = "sync") -> None:
        if tag:
            self._tags[(purpose, league_id)] = tag

    def forget(self, league_id: str, purpose: str = "sync") -> None:
        self._tags.pop((purpose, league_id), None)

    def clear(self) -> None:
        self._tags.clear()

    def __len__(self) -> int:
        return len(self._tags)


cache_tags = CacheTagStore()


class SleeperClient:
    """Async HTTP client for the Sleeper read-only API."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.sleeper_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.fetch_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "SleeperClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ── Core Request Method ──

    async def _get(
        self,
        path: str,
        etag: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Union[FetchResult, _NotModified]:
        url = f"{self.base_url}{path}"
        headers = {"If-None-Match": etag} if etag else {}
        client = await self._get_client()

        try:
            resp = await client.get(
                url,
                headers=headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Sleeper request timed out for {path}: {e}")
            raise FetchFailed(f"Timed out fetching {path}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Sleeper request failed for {path}: {e}")
            raise FetchFailed(f"Request failed for {path}: {e}") from e

        if resp.status_code == 304:
            return NOT_MODIFIED

        if resp.status_code >= 400:
            logger.error(
                f"Sleeper API error {resp.status_code} for {path}",
                extra={"status_code": resp.status_code},
            )
            raise FetchFailed(
                f"Sleeper API error {resp.status_code} for {path}", resp.status_code
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise FetchFailed(f"Malformed JSON body from {path}") from e

        return FetchResult(
            payload=data,
            cache_tag=resp.headers.get("ETag"),
            status_code=resp.status_code,
        )

    # ── League Settings ──

    async def fetch_league(
        self,
        league_id: str,
        cache_tag: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Union[FetchResult, _NotModified]:
        """Fetch a league's settings payload.

        Sends ``cache_tag`` as ``If-None-Match`` and returns ``NOT_MODIFIED``
        on 304. The new ETag comes back on the result; recording it is the
        caller's job once the payload has been processed.
        """
        result = await self._get(f"/v1/league/{league_id}", etag=cache_tag, timeout=timeout)
        if result is NOT_MODIFIED:
            logger.info(f"League {league_id} not modified since {cache_tag}")
            return result
        if not isinstance(result.payload, dict):
            # Sleeper answers unknown league ids with a 200 and a null body
            raise FetchFailed(f"Sleeper league {league_id} not found", 404)
        return result

    # ── League Linking ──

    async def user_by_username(self, username: str) -> Dict[str, Any]:
        result = await self._get(f"/v1/user/{quote(username, safe='')}")
        if result is NOT_MODIFIED or not isinstance(result.payload, dict):
            raise FetchFailed(f"Sleeper user {username} not found", 404)
        return result.payload

    async def leagues_for_user(
        self, user_id: str, season: str, sport: str = "nfl"
    ) -> List[Dict[str, Any]]:
        result = await self._get(f"/v1/user/{user_id}/leagues/{sport}/{season}")
        if result is NOT_MODIFIED or not isinstance(result.payload, list):
            raise FetchFailed(f"No leagues for Sleeper user {user_id}", 404)
        return result.payload
