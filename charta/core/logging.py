"""CHARTA — Structured JSON Logging.

One JSON object per line on stdout. Sync and render code tag records with
``league_id``, ``slug`` or ``stage`` through ``extra``; those keys become
top-level fields so one league's run can be filtered out of the stream.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from charta.config import settings

ROOT_LOGGER = "charta"
CONTEXT_FIELDS = ("league_id", "slug", "stage", "duration_ms", "status_code")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
        root.propagate = False
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return root


def get_logger(name: str) -> logging.Logger:
    """``charta.<name>``, writing through the single JSON handler on ``charta``."""
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


@contextmanager
def timed_stage(
    logger: logging.Logger, stage: str, league_id: Optional[str] = None
) -> Iterator[None]:
    """Log the wall time of one sync or render stage, whether it raised or not."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = round((time.perf_counter() - started) * 1000, 1)
        logger.info(
            f"{stage} took {elapsed}ms",
            extra={"league_id": league_id, "stage": stage, "duration_ms": elapsed},
        )
