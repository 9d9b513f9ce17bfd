# src/pocket_pilot/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Every tunable of the arbitration/scheduling core is overridable via POCKET_* env vars.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "POCKET"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Device ----
    device_pin: str
    shell_as_root: bool
    shell_timeout_seconds: float

    # ---- Arbitration / scheduling ----
    lock_timeout_seconds: float
    scheduler_interval_seconds: float
    notification_poll_seconds: float
    notification_max_age_seconds: float
    notifications_autostart: bool
    indicator_enabled: bool
    log_capacity: int
    result_max_chars: int

    # ---- LLM (OpenAI-compatible) ----
    openai_api_key: Optional[str]
    openai_base_url: str
    llm_models: List[str]

    # ---- Local data paths (ignored by git) ----
    data_dir: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "pocket-pilot") or "pocket-pilot"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        device_pin = (_first_env(_k("DEVICE_PIN"), "DEVICE_PIN", default="") or "").strip()
        shell_as_root = _env_bool(_k("SHELL_AS_ROOT"), True)
        shell_timeout_seconds = _env_float(_k("SHELL_TIMEOUT_SECONDS"), 10.0)

        lock_timeout_seconds = _env_float(_k("LOCK_TIMEOUT_SECONDS"), 120.0)
        scheduler_interval_seconds = _env_float(_k("SCHEDULER_INTERVAL_SECONDS"), 60.0)
        notification_poll_seconds = _env_float(_k("NOTIFICATION_POLL_SECONDS"), 5.0)
        notification_max_age_seconds = _env_float(_k("NOTIFICATION_MAX_AGE_SECONDS"), 60.0)
        notifications_autostart = _env_bool(_k("NOTIFICATIONS_AUTOSTART"), False)
        indicator_enabled = _env_bool(_k("INDICATOR_ENABLED"), True)
        log_capacity = _env_int(_k("LOG_CAPACITY"), 100)
        result_max_chars = _env_int(_k("RESULT_MAX_CHARS"), 500)

        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["gpt-4o-mini"])

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/pocket"))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            device_pin=device_pin,
            shell_as_root=shell_as_root,
            shell_timeout_seconds=max(0.5, shell_timeout_seconds),
            lock_timeout_seconds=max(1.0, lock_timeout_seconds),
            scheduler_interval_seconds=max(1.0, scheduler_interval_seconds),
            notification_poll_seconds=max(0.5, notification_poll_seconds),
            notification_max_age_seconds=notification_max_age_seconds,
            notifications_autostart=notifications_autostart,
            indicator_enabled=indicator_enabled,
            log_capacity=max(1, log_capacity),
            result_max_chars=max(16, result_max_chars),
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_models=llm_models,
            data_dir=data_dir,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
