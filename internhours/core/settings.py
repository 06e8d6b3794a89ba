from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo

import yaml

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

_DEFAULTS: dict = {
    "timezone": "UTC",
    "default_required_hours": 500,
    "log_level": "INFO",
    "database_url": "",
    "cors_origins": ["http://localhost:5173", "http://127.0.0.1:5173"],
}


@dataclass(frozen=True)
class Settings:
    timezone: str = "UTC"
    default_required_hours: Decimal = Decimal("500")
    log_level: str = "INFO"
    database_url: str = ""
    cors_origins: list[str] = field(default_factory=list)

    def tz(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)

    def today(self) -> date:
        return datetime.now(self.tz()).date()


def _load_yaml() -> dict:
    path = CONFIG_DIR / "settings.yaml"
    if not path.exists():
        return dict(_DEFAULTS)
    with path.open("r", encoding="utf-8") as fp:
        loaded = yaml.safe_load(fp) or {}
    return {**_DEFAULTS, **loaded}


def load_settings() -> Settings:
    """Read ``config/settings.yaml`` and apply environment overrides."""

    raw = _load_yaml()

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = [str(origin) for origin in raw.get("cors_origins") or []]

    return Settings(
        timezone=os.getenv("INTERNHOURS_TIMEZONE") or str(raw["timezone"]),
        default_required_hours=Decimal(
            str(os.getenv("INTERNHOURS_DEFAULT_REQUIRED_HOURS") or raw["default_required_hours"])
        ),
        log_level=(os.getenv("INTERNHOURS_LOG_LEVEL") or str(raw["log_level"])).upper(),
        database_url=os.getenv("INTERNHOURS_DATABASE_URL") or str(raw.get("database_url") or ""),
        cors_origins=origins,
    )
