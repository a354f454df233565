# src/tasklist_sync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKLIST"

BACKEND_MEMORY = "memory"
BACKEND_FIREBASE = "firebase"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


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
    data_dir: Path

    # ---- Backend ----
    backend: str
    firebase_api_key: str
    firebase_database_url: str
    offline_auto_verify: bool

    # ---- Timeouts ----
    request_timeout_seconds: float
    subscribe_timeout_seconds: float
    verification_send_timeout_seconds: float
    session_reload_timeout_seconds: float

    # ---- Verification ----
    resend_cooldown_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasklist").strip() or "tasklist"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasklist"))

        firebase_api_key = _env(_k("FIREBASE_API_KEY")).strip()
        firebase_database_url = _env(_k("FIREBASE_DATABASE_URL")).strip()

        # Default to Firebase only when it is fully configured.
        default_backend = BACKEND_FIREBASE if firebase_api_key and firebase_database_url else BACKEND_MEMORY
        backend = _env(_k("BACKEND"), default_backend).strip().lower() or default_backend

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            backend=backend,
            firebase_api_key=firebase_api_key,
            firebase_database_url=firebase_database_url,
            offline_auto_verify=_env_bool(_k("OFFLINE_AUTO_VERIFY"), True),
            request_timeout_seconds=_env_float(_k("REQUEST_TIMEOUT_SECONDS"), 15.0),
            subscribe_timeout_seconds=_env_float(_k("SUBSCRIBE_TIMEOUT_SECONDS"), 15.0),
            verification_send_timeout_seconds=_env_float(_k("VERIFICATION_SEND_TIMEOUT_SECONDS"), 20.0),
            session_reload_timeout_seconds=_env_float(_k("SESSION_RELOAD_TIMEOUT_SECONDS"), 20.0),
            resend_cooldown_seconds=_env_float(_k("RESEND_COOLDOWN_SECONDS"), 60.0),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Load .env (without overriding real env vars) and build Settings once."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
