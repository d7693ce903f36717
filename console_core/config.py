"""
Centralized configuration for the training console.

All settings come from environment variables (loaded from .env.local / .env
by main.py and the root conftest). Functions rather than module constants so
tests can monkeypatch the environment.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def is_dev_mode() -> bool:
    """Local development: relaxed env checks, Vite dev server as frontend."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    return os.getenv("APP_ENV", "").lower() == "production"


def is_sql_echo_enabled() -> bool:
    return os.environ.get("SQL_ECHO", "").lower() == "true"


def get_api_port() -> int:
    return int(os.getenv("API_PORT", "8000"))


def get_frontend_url() -> str:
    """Console frontend origin; the Vite dev server in development."""
    default = "http://localhost:5173" if is_dev_mode() else f"http://localhost:{get_api_port()}"
    return os.environ.get("FRONTEND_URL", default).rstrip("/")


def get_allowed_origins() -> list[str]:
    """CORS origins: local frontends plus the configured FRONTEND_URL."""
    origins = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        f"http://localhost:{get_api_port()}",
    ]
    frontend_url = get_frontend_url()
    if frontend_url not in origins:
        origins.append(frontend_url)
    return origins


def get_event_cache_windows() -> tuple[float, float]:
    """
    Get (stale_seconds, gc_seconds) for the event query cache.

    A cached entry is served without refetching while younger than
    stale_seconds, and dropped once unused for gc_seconds.
    """
    stale = float(os.getenv("EVENT_CACHE_STALE_SECONDS", "30"))
    gc = float(os.getenv("EVENT_CACHE_GC_SECONDS", "300"))
    if gc < stale:
        raise ValueError(
            f"EVENT_CACHE_GC_SECONDS ({gc}) must not be smaller than "
            f"EVENT_CACHE_STALE_SECONDS ({stale})"
        )
    return stale, gc


def get_impersonation_state_dir() -> Path:
    """Directory holding one persisted impersonation state file per actor."""
    return Path(os.getenv("IMPERSONATION_STATE_DIR", ".state/impersonation"))


def get_sentry_dsn() -> str | None:
    return os.environ.get("SENTRY_DSN") or None


# (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("JWT_SECRET", "Secret key for JWT tokens", True),
    ("SENTRY_DSN", "Sentry DSN for error reporting", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Report unset environment variables.

    In production any missing variable is fatal. Elsewhere missing ones only
    produce warnings, and optional ones are ignored in dev mode.

    Returns:
        (ok, warnings)
    """
    warnings = []
    missing = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        if os.environ.get(name):
            continue
        if is_production():
            missing.append(name)
            logger.error("%s is not set (%s)", name, description)
        elif required_in_dev or not in_dev:
            warnings.append(f"{name} is not set ({description})")

    return not missing, warnings
