"""Application settings and environment helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List

from dotenv import load_dotenv

load_dotenv(override=False)


def _require_env(name: str) -> str:
    """Return a required environment variable or raise an error."""

    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _split_csv(raw: str | None) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


# Identity backend -----------------------------------------------------------
SUPABASE_URL = _require_env("SUPABASE_URL").rstrip("/")
SUPABASE_ANON_KEY = _require_env("SUPABASE_ANON_KEY")
# Only needed for the Strava redirect callback, which has no user session.
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None


# Strava OAuth configuration -------------------------------------------------
_STRAVA_CLIENT_ID_RAW = _require_env("STRAVA_CLIENT_ID")
try:
    STRAVA_CLIENT_ID = int(_STRAVA_CLIENT_ID_RAW)
except ValueError as exc:  # pragma: no cover - defensive guard
    raise RuntimeError("STRAVA_CLIENT_ID must be an integer") from exc

STRAVA_CLIENT_SECRET = _require_env("STRAVA_CLIENT_SECRET")
STRAVA_REDIRECT_URI = _require_env("STRAVA_REDIRECT_URI")


# Application security -------------------------------------------------------
SECRET_KEY = _require_env("SECRET_KEY")

# SITE_URL can contain a comma-separated list for multi-domain deploys.
_site_origins = [origin.rstrip("/") for origin in _split_csv(_require_env("SITE_URL"))]
_additional_origins = _split_csv(os.getenv("ADDITIONAL_ALLOWED_ORIGINS"))

_local_dev_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

ALLOWED_CORS_ORIGINS = _unique(
    [
        *_site_origins,
        *_additional_origins,
        *_local_dev_origins,
    ]
)

SITE_ORIGINS = _site_origins
SITE_URL = SITE_ORIGINS[0] if SITE_ORIGINS else ""


# Runtime behaviour ----------------------------------------------------------
COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None
COOKIE_SECURE = _env_bool("COOKIE_SECURE", False)
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")

_DEFAULT_DB_PATH = Path(__file__).resolve().parents[2] / "data" / "app.db"
DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{_DEFAULT_DB_PATH}"
DB_RESET = _env_bool("DB_RESET", False)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# IANA zone that defines "today" for activity sync; server local time if unset.
APP_TIMEZONE = os.getenv("APP_TIMEZONE") or None


__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "APP_TIMEZONE",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DATABASE_URL",
    "DB_RESET",
    "LOG_LEVEL",
    "SECRET_KEY",
    "SITE_ORIGINS",
    "SITE_URL",
    "STRAVA_CLIENT_ID",
    "STRAVA_CLIENT_SECRET",
    "STRAVA_REDIRECT_URI",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_URL",
]
