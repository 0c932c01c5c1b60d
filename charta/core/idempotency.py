"""CHARTA — Idempotency Primitives.

Stable payload fingerprints and per-league mutual exclusion.
"""

import asyncio
import hashlib
import json
from typing import Any, Dict


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys and compact separators.

    Equivalent payloads with different key order produce identical text.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def fingerprint(payload: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form of ``payload``."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


class LeagueLocks:
    """One asyncio.Lock per league id.

    Syncs and draft builds for the same league serialize on it; different
    leagues never contend.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def for_league(self, league_id: str) -> asyncio.Lock:
        lock = self._locks.get(league_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[league_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


league_locks = LeagueLocks()
