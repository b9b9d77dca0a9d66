"""Core configuration and infrastructure helpers."""

from .config import (
    ALLOWED_CORS_ORIGINS,
    APP_TIMEZONE,
    COOKIE_DOMAIN,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    DB_RESET,
    LOG_LEVEL,
    SECRET_KEY,
    SITE_URL,
    STRAVA_CLIENT_ID,
    STRAVA_CLIENT_SECRET,
    STRAVA_REDIRECT_URI,
    SUPABASE_ANON_KEY,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)
from .database import engine, get_session
from .time import as_utc, isoformat, parse_datetime, utcnow

__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "APP_TIMEZONE",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DB_RESET",
    "LOG_LEVEL",
    "SECRET_KEY",
    "SITE_URL",
    "STRAVA_CLIENT_ID",
    "STRAVA_CLIENT_SECRET",
    "STRAVA_REDIRECT_URI",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_URL",
    "as_utc",
    "engine",
    "get_session",
    "isoformat",
    "parse_datetime",
    "utcnow",
]
