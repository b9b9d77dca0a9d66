"""Strava OAuth and API helpers."""

from __future__ import annotations

import logging
import time
from datetime import datetime, time as dtime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

import httpx

from ..core import (
    APP_TIMEZONE,
    STRAVA_CLIENT_ID,
    STRAVA_CLIENT_SECRET,
    STRAVA_REDIRECT_URI,
)
from ..core.errors import BadRequest
from ..core.time import parse_datetime
from .identity import AuthUser, IdentityClient, IdentityError

logger = logging.getLogger(__name__)

AUTH_BASE = "https://www.strava.com/oauth/authorize"
TOKEN_URL = "https://www.strava.com/oauth/token"
DEAUTHORIZE_URL = "https://www.strava.com/oauth/deauthorize"
API_BASE = "https://www.strava.com/api/v3"
SCOPES = ",".join(
    [
        "read",
        "read_all",
        "profile:read_all",
        "profile:write",
        "activity:read",
        "activity:read_all",
        "activity:write",
    ]
)

# Tokens this close to expiry are refreshed before use.
EXPIRY_BUFFER_SECONDS = 5 * 60

METADATA_KEYS = (
    "strava_access_token",
    "strava_refresh_token",
    "strava_expires_at",
    "strava_athlete_id",
)


class StravaError(Exception):
    """Raised when Strava credentials are missing or a Strava call fails."""


class StravaNotConnected(BadRequest):
    def __init__(self):
        super().__init__("Strava account is not connected")


def auth_url(state: str) -> str:
    """Generate the Strava OAuth authorization URL."""

    params = {
        "client_id": STRAVA_CLIENT_ID,
        "response_type": "code",
        "redirect_uri": STRAVA_REDIRECT_URI,
        "approval_prompt": "force",
        "scope": SCOPES,
        "state": state,
    }
    return f"{AUTH_BASE}?{urlencode(params)}"


async def exchange_code_for_token(code: str) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=20) as client:
        response = await client.post(
            TOKEN_URL,
            data={
                "client_id": STRAVA_CLIENT_ID,
                "client_secret": STRAVA_CLIENT_SECRET,
                "code": code,
                "grant_type": "authorization_code",
            },
        )
        response.raise_for_status()
        return response.json()


async def refresh_access_token(refresh_token: str) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=20) as client:
        response = await client.post(
            TOKEN_URL,
            data={
                "client_id": STRAVA_CLIENT_ID,
                "client_secret": STRAVA_CLIENT_SECRET,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
        )
        response.raise_for_status()
        return response.json()


async def deauthorize(access_token: str) -> None:
    async with httpx.AsyncClient(timeout=20) as client:
        response = await client.post(
            DEAUTHORIZE_URL, data={"access_token": access_token}
        )
        response.raise_for_status()


async def api_get(
    access_token: str, path: str, params: Optional[Dict[str, Any]] = None
) -> httpx.Response:
    url = f"{API_BASE}{path}"
    async with httpx.AsyncClient(timeout=30) as client:
        return await client.get(
            url,
            headers={"Authorization": f"Bearer {access_token}"},
            params=params or {},
        )


def describe_http_error(exc: Exception) -> str:
    """Prefer Strava's own ``message`` field when the response carries one."""

    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
    return str(exc) or exc.__class__.__name__


def _local_zone():
    if APP_TIMEZONE:
        return ZoneInfo(APP_TIMEZONE)
    return datetime.now().astimezone().tzinfo


def today_epoch_bounds(now: Optional[datetime] = None) -> Tuple[int, int]:
    """Epoch seconds for the start and last second of the current local day."""

    zone = _local_zone()
    current = now.astimezone(zone) if now else datetime.now(zone)
    start = datetime.combine(current.date(), dtime.min, tzinfo=zone)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return int(start.timestamp()), int(end.timestamp())


async def fetch_todays_activities(
    access_token: str, now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    start_of_day, end_of_day = today_epoch_bounds(now)
    response = await api_get(
        access_token,
        "/athlete/activities",
        params={
            "before": end_of_day,
            "after": start_of_day,
            "page": 1,
            "per_page": 30,
        },
    )
    response.raise_for_status()
    return response.json()


def transform_activity(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Strava activity summary onto ``Activity`` column names."""

    start_date = parse_datetime(raw["start_date"])
    return {
        "id": int(raw["id"]),
        "name": raw.get("name") or f"Activity {raw['id']}",
        "type": raw.get("type") or raw.get("sport_type") or "Workout",
        "sport_type": raw.get("sport_type") or raw.get("type") or "Workout",
        "distance": float(raw.get("distance") or 0),
        "moving_time": int(raw.get("moving_time") or 0),
        "elapsed_time": int(raw.get("elapsed_time") or 0),
        "total_elevation": float(raw.get("total_elevation_gain") or 0),
        "start_date": start_date,
        "start_date_local": parse_datetime(raw.get("start_date_local") or raw["start_date"]),
        "timezone": raw.get("timezone"),
        "average_speed": raw.get("average_speed"),
        "max_speed": raw.get("max_speed"),
        "workout_type": raw.get("workout_type"),
    }


def is_token_expired(expires_at: int, now: Optional[float] = None) -> bool:
    current = int(now if now is not None else time.time())
    return current >= int(expires_at) - EXPIRY_BUFFER_SECONDS


def has_strava_connected(user: AuthUser) -> bool:
    metadata = user.user_metadata
    return bool(metadata.get("strava_access_token") and metadata.get("strava_refresh_token"))


async def get_valid_strava_token(
    identity: IdentityClient,
    access_token: str,
    user: AuthUser,
    now: Optional[float] = None,
) -> str:
    """Return a usable Strava access token, refreshing it when near expiry.

    The refreshed pair is written back to the user's identity metadata.  No
    retry is attempted; failures propagate as ``StravaError``.
    """

    metadata = user.user_metadata
    cached_token = metadata.get("strava_access_token")
    refresh_token = metadata.get("strava_refresh_token")
    expires_at = metadata.get("strava_expires_at")

    if not cached_token or not refresh_token:
        raise StravaError("No Strava credentials found")

    if expires_at and not is_token_expired(expires_at, now):
        return cached_token

    logger.info("Strava token for %s expired or missing expiry, refreshing", user.id)
    try:
        refreshed = await refresh_access_token(refresh_token)
    except httpx.HTTPError as exc:
        logger.error("Strava token refresh failed for %s: %s", user.id, exc)
        raise StravaError(describe_http_error(exc)) from exc

    tokens = {
        "strava_access_token": refreshed["access_token"],
        "strava_refresh_token": refreshed.get("refresh_token", refresh_token),
        "strava_expires_at": int(refreshed["expires_at"]),
    }
    try:
        await identity.update_user(access_token, tokens)
    except IdentityError as exc:
        logger.error("Failed to store refreshed Strava tokens for %s: %s", user.id, exc.message)
        raise StravaError("Failed to update credentials") from exc

    metadata.update(tokens)
    logger.info("Strava token refreshed for %s", user.id)
    return tokens["strava_access_token"]


__all__ = [
    "EXPIRY_BUFFER_SECONDS",
    "METADATA_KEYS",
    "StravaError",
    "StravaNotConnected",
    "api_get",
    "auth_url",
    "deauthorize",
    "describe_http_error",
    "exchange_code_for_token",
    "fetch_todays_activities",
    "get_valid_strava_token",
    "has_strava_connected",
    "is_token_expired",
    "refresh_access_token",
    "today_epoch_bounds",
    "transform_activity",
]
