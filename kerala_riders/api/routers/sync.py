"""On-demand Strava activity sync."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session

from ...core import get_session
from ...services.identity import IdentityClient
from ...services.sync import sync_todays_activities
from ..deps import AuthContext, get_identity, require_auth

router = APIRouter(prefix="/api/sync-activities", tags=["sync"])


@router.post("")
async def sync_activities(
    auth: AuthContext = Depends(require_auth),
    identity: IdentityClient = Depends(get_identity),
    session: Session = Depends(get_session),
):
    result = await sync_todays_activities(session, identity, auth.access_token, auth.user)
    payload = result.to_dict()
    if not result.success:
        return JSONResponse(
            {"success": False, "error": result.message, "details": payload["details"]},
            status_code=400,
        )
    return payload


@router.get("")
def describe_sync():
    return {
        "message": "Strava activity sync endpoint",
        "usage": "POST with a Bearer token to sync today's Strava activities",
        "requirements": [
            "Authenticated user session",
            "Connected Strava account",
        ],
    }


__all__ = ["router"]
