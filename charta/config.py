"""CHARTA — Central Configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Sleeper API ──
    sleeper_base_url: str = "https://api.sleeper.app"
    fetch_timeout_seconds: float = 15.0

    # ── Database ──
    database_url: str = ""

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    sync_hour: int = 6  # Daily sync at 6 AM UTC
    sync_mode: str = "auto"  # auto | draft
    sync_concurrency: int = 4

    # ── Retry ──
    retry_tries: int = 4
    retry_base_delay: float = 0.3  # seconds
    retry_factor: float = 2.0

    # ── Drafts ──
    draft_freshness_hours: int = 24

    # ── Manual trigger rate limit ──
    trigger_rate_per_sec: float = 1.0
    trigger_burst: int = 3

    # ── Settings schema ──
    settings_schema_version: str = "1.0.0"

    @property
    def effective_database_url(self) -> str:
        """``database_url`` when configured, else a local SQLite file."""
        return self.database_url or "sqlite:///./charta.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
