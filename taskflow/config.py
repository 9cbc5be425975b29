from __future__ import annotations

import math
import os
import sys
from dataclasses import dataclass
from datetime import time
from pathlib import Path

from dotenv import load_dotenv

def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


def _parse_time_of_day(raw: str) -> time:
    try:
        hours, minutes = raw.strip().split(":", 1)
        return time(int(hours), int(minutes))
    except ValueError as exc:
        raise RuntimeError(f"SCHEDULER_RUN_AT must look like HH:MM, got {raw!r}") from exc


def _parse_period_hours(raw: str) -> float:
    try:
        hours = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"SCHEDULER_PERIOD_HOURS must be a number, got {raw!r}") from exc
    if not math.isfinite(hours) or hours <= 0:
        raise RuntimeError(f"SCHEDULER_PERIOD_HOURS must be positive, got {raw!r}")
    return hours


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str = "INFO"
    log_dir: str = "logs"
    scheduler_run_at: time = time(2, 0)
    scheduler_period_hours: float = 24.0


load_env()

DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

SETTINGS = Settings(
    database_url=DATABASE_URL,
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_dir=os.getenv("LOG_DIR", "logs"),
    scheduler_run_at=_parse_time_of_day(os.getenv("SCHEDULER_RUN_AT", "02:00")),
    scheduler_period_hours=_parse_period_hours(os.getenv("SCHEDULER_PERIOD_HOURS", "24")),
)
