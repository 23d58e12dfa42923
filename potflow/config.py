"""
Runtime configuration for the pot automation service.

Values are read from environment variables (a .env file is loaded if present).
Tests build a Settings instance directly and pass it to create_app().
"""

import os
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


@dataclass
class Settings:
    """Application settings."""

    database_url: str = "sqlite:///data/potflow.db"
    secret_key: str = "dev-secret-key-change-in-production"
    monzo_client_id: str = ""
    monzo_client_secret: str = ""
    monzo_redirect_uri: str = ""
    app_url: str = "http://localhost:5000"
    cron_secret: Optional[str] = None
    automation_timezone: str = "Europe/London"
    monzo_http_timeout: int = 10
    scheduler_enabled: bool = False
    scheduler_interval_minutes: int = 15

    @property
    def redirect_uri(self) -> str:
        """Redirect URI registered with Monzo; must match the authorize request exactly."""
        return self.monzo_redirect_uri or f"{self.app_url}/auth/monzo/callback"

    @property
    def tz(self) -> ZoneInfo:
        """Zone whose local 09:00 is the automation run time."""
        return ZoneInfo(self.automation_timezone)

    @property
    def monzo_configured(self) -> bool:
        return bool(self.monzo_client_id and self.monzo_client_secret)


def load_settings() -> Settings:
    """Load settings from environment variables with development-safe defaults."""
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///data/potflow.db"),
        secret_key=os.getenv("SECRET_KEY") or "dev-secret-key-change-in-production",
        monzo_client_id=os.getenv("MONZO_CLIENT_ID", ""),
        monzo_client_secret=os.getenv("MONZO_CLIENT_SECRET", ""),
        monzo_redirect_uri=os.getenv("MONZO_REDIRECT_URI", ""),
        app_url=os.getenv("APP_URL", "http://localhost:5000").rstrip("/"),
        cron_secret=os.getenv("CRON_SECRET") or None,
        automation_timezone=os.getenv("AUTOMATION_TIMEZONE", "Europe/London"),
        monzo_http_timeout=int(os.getenv("MONZO_HTTP_TIMEOUT", "10")),
        scheduler_enabled=_env_bool("SCHEDULER_ENABLED"),
        scheduler_interval_minutes=int(os.getenv("SCHEDULER_INTERVAL_MINUTES", "15")),
    )
