"""Pull today's Strava activities into the local store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from sqlmodel import Session

from .accounts import find_or_create_user
from .activities import store_activities
from .identity import AuthUser, IdentityClient
from .strava import (
    StravaError,
    describe_http_error,
    fetch_todays_activities,
    get_valid_strava_token,
    has_strava_connected,
    transform_activity,
)

logger = logging.getLogger(__name__)

NOT_CONNECTED_MESSAGE = "Strava not connected. Please connect your Strava account first."
FETCH_FAILED_MESSAGE = "Failed to fetch activities from Strava"
NOTHING_TO_SYNC_MESSAGE = "No activities found for today. Nothing to sync."


@dataclass
class SyncResult:
    success: bool
    message: str
    user_created: bool = False
    activities_fetched: int = 0
    activities_stored: int = 0
    activities_skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "details": {
                "userCreated": self.user_created,
                "activitiesFetched": self.activities_fetched,
                "activitiesStored": self.activities_stored,
                "activitiesSkipped": self.activities_skipped,
                "errors": list(self.errors),
            },
        }


async def sync_todays_activities(
    session: Session,
    identity: IdentityClient,
    access_token: str,
    user: AuthUser,
    now: Optional[datetime] = None,
) -> SyncResult:
    """Fetch, transform and store the member's activities for the local day.

    Records are inserted one at a time; duplicates are counted as skipped and
    per-record failures are collected in ``errors`` without aborting.
    """

    if not has_strava_connected(user):
        return SyncResult(success=False, message=NOT_CONNECTED_MESSAGE)

    try:
        member, created = find_or_create_user(session, user)
    except ValueError as exc:
        return SyncResult(success=False, message=str(exc), errors=[str(exc)])

    result = SyncResult(success=False, message="", user_created=created)

    try:
        strava_token = await get_valid_strava_token(identity, access_token, user)
        raw_activities = await fetch_todays_activities(strava_token, now)
    except (StravaError, httpx.HTTPError) as exc:
        detail = describe_http_error(exc) if isinstance(exc, httpx.HTTPError) else str(exc)
        logger.error("Strava fetch failed for %s: %s", member.krid, detail)
        result.message = FETCH_FAILED_MESSAGE
        result.errors.append(detail)
        return result

    result.activities_fetched = len(raw_activities)
    if not raw_activities:
        result.success = True
        result.message = NOTHING_TO_SYNC_MESSAGE
        return result

    transformed = []
    for raw in raw_activities:
        try:
            transformed.append(transform_activity(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed Strava activity %s: %s", raw.get("id"), exc)
            result.errors.append(f"Failed to transform activity {raw.get('id')}: {exc}")

    stored = store_activities(session, member.krid, transformed)
    result.activities_stored = stored.stored
    result.activities_skipped = stored.skipped
    result.errors.extend(stored.errors)
    result.success = True
    result.message = (
        f"Sync completed! {stored.stored} activities stored, {stored.skipped} skipped"
    )
    logger.info("Sync for %s: %s", member.krid, result.message)
    return result


__all__ = [
    "FETCH_FAILED_MESSAGE",
    "NOTHING_TO_SYNC_MESSAGE",
    "NOT_CONNECTED_MESSAGE",
    "SyncResult",
    "sync_todays_activities",
]
