"""SproutSync — Central Configuration via Pydantic Settings."""

import os
from datetime import date
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Sprout Social API ──
    sprout_api_token: str = ""
    sprout_customer_id: str = ""
    sprout_base_url: str = "https://api.sproutsocial.com/v1"
    sprout_request_timeout: float = 30.0
    sprout_max_profiles_per_request: int = 50
    sprout_max_days_per_request: int = 31
    sprout_max_pages: int = 50

    # ── Retry policy (applies to every network call) ──
    retry_max_attempts: int = 3
    retry_delay_seconds: float = 10.0

    # ── Google Sheets / Drive ──
    google_client_email: Optional[str] = None
    google_private_key: Optional[str] = None
    google_credentials_file: str = "credentials.json"
    drive_folder_id: str = ""
    spreadsheet_title_prefix: str = "Sprout Analytics"

    # ── Throttling ──
    group_pause_seconds: float = 300.0  # 5 minutes between groups
    month_pause_seconds: float = 600.0  # 10 minutes between months
    watchdog_hours: float = 4.0

    # ── Reporting windows ──
    backfill_start: date = date(2024, 1, 1)
    write_monthly_summary: bool = True

    # ── Database (sync state + run history) ──
    database_url: str = ""

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    sync_hour: int = 2  # Daily run at 2 AM
    sync_minute: int = 0

    @property
    def effective_database_url(self) -> str:
        """Return the configured database URL, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/sproutsync.db"
        return "sqlite:///./sproutsync.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
