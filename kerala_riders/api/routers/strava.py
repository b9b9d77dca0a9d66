"""Strava account linking endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from ...core import SITE_URL, get_session
from ...core.errors import ApiError, BadRequest, Forbidden, Unauthorized
from ...services import strava
from ...services.accounts import apply_profile_updates, find_user_by_email
from ...services.identity import AuthUser, IdentityClient, IdentityError
from ..deps import AuthContext, get_identity, optional_auth, require_auth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/strava", tags=["strava"])


def _token_metadata(token_data: Dict[str, Any]) -> Dict[str, Any]:
    athlete = token_data.get("athlete") or {}
    return {
        "strava_access_token": token_data["access_token"],
        "strava_refresh_token": token_data["refresh_token"],
        "strava_expires_at": token_data["expires_at"],
        "strava_athlete_id": athlete.get("id"),
    }


def _mirror_athlete_id(session: Session, user: AuthUser, athlete_id: Any) -> None:
    member = find_user_by_email(session, user.email or "")
    if member:
        apply_profile_updates(session, member, {"strava_athlete_id": athlete_id})


def _check_caller(auth: Optional[AuthContext], user_id: str) -> AuthContext:
    if auth is None:
        raise Unauthorized("User must be authenticated")
    if auth.user.id != user_id:
        logger.error("Strava request for %s from session of %s", user_id, auth.user.id)
        raise Forbidden("Invalid user session")
    return auth


@router.get("/connect")
async def strava_connect(
    user_id: Optional[str] = None,
    code: Optional[str] = None,
    state: Optional[str] = None,
    identity: IdentityClient = Depends(get_identity),
    session: Session = Depends(get_session),
):
    """Start the Strava OAuth flow, or finish it when Strava redirects back."""

    if code and state:
        return await _finish_connect(code, state, identity, session)

    if not user_id:
        raise BadRequest("User ID is required")
    return RedirectResponse(strava.auth_url(user_id))


async def _finish_connect(
    code: str, user_id: str, identity: IdentityClient, session: Session
) -> RedirectResponse:
    try:
        token_data = await strava.exchange_code_for_token(code)
    except httpx.HTTPError as exc:
        logger.error("Strava code exchange failed: %s", strava.describe_http_error(exc))
        return RedirectResponse(f"{SITE_URL}?error=strava_connect_failed")

    try:
        tokens = _token_metadata(token_data)
    except KeyError as exc:
        logger.error("Strava token response missing %s", exc)
        return RedirectResponse(f"{SITE_URL}?error=strava_connect_failed")

    try:
        user = await identity.admin_get_user(user_id)
    except IdentityError as exc:
        logger.error("Strava connect: user %s not found: %s", user_id, exc.message)
        return RedirectResponse(f"{SITE_URL}?error=user_not_found")

    try:
        await identity.admin_update_user(user_id, {**user.user_metadata, **tokens})
    except IdentityError as exc:
        logger.error("Strava connect: metadata update failed for %s: %s", user_id, exc.message)
        return RedirectResponse(f"{SITE_URL}?error=update_failed")

    _mirror_athlete_id(session, user, tokens["strava_athlete_id"])
    logger.info("Strava connected for %s (athlete %s)", user_id, tokens["strava_athlete_id"])
    return RedirectResponse(f"{SITE_URL}?strava_connected=true")


@router.post("/connect")
async def strava_connect_post(
    body: Dict[str, Any],
    auth: Optional[AuthContext] = Depends(optional_auth),
    identity: IdentityClient = Depends(get_identity),
    session: Session = Depends(get_session),
):
    code = body.get("code")
    user_id = body.get("state")
    if not code:
        raise BadRequest("Authorization code is required")
    if not user_id:
        raise BadRequest("User ID is required")
    auth = _check_caller(auth, user_id)

    try:
        token_data = await strava.exchange_code_for_token(code)
    except httpx.HTTPError as exc:
        raise ApiError(strava.describe_http_error(exc)) from exc

    try:
        tokens = _token_metadata(token_data)
    except KeyError as exc:
        logger.error("Strava token response missing %s", exc)
        raise ApiError("Invalid token response from Strava") from exc

    try:
        await identity.update_user(auth.access_token, tokens)
    except IdentityError as exc:
        logger.error("Failed to store Strava credentials for %s: %s", user_id, exc.message)
        raise ApiError("Failed to store Strava credentials") from exc

    _mirror_athlete_id(session, auth.user, tokens["strava_athlete_id"])
    athlete = token_data.get("athlete") or {}
    logger.info("Strava connected for %s (athlete %s)", user_id, athlete.get("id"))
    return {
        "success": True,
        "athlete": {
            "id": athlete.get("id"),
            "username": athlete.get("username"),
            "firstname": athlete.get("firstname"),
            "lastname": athlete.get("lastname"),
        },
    }


@router.post("/refresh")
async def strava_refresh(
    body: Dict[str, Any],
    auth: Optional[AuthContext] = Depends(optional_auth),
    identity: IdentityClient = Depends(get_identity),
):
    user_id = body.get("userId")
    if not user_id:
        raise BadRequest("User ID is required")
    auth = _check_caller(auth, user_id)

    refresh_token = auth.user.user_metadata.get("strava_refresh_token")
    if not refresh_token:
        raise BadRequest("No Strava refresh token found")

    try:
        refreshed = await strava.refresh_access_token(refresh_token)
    except httpx.HTTPError as exc:
        raise ApiError(strava.describe_http_error(exc)) from exc

    tokens = {
        "strava_access_token": refreshed["access_token"],
        "strava_refresh_token": refreshed.get("refresh_token", refresh_token),
        "strava_expires_at": refreshed["expires_at"],
    }
    try:
        await identity.update_user(auth.access_token, tokens)
    except IdentityError as exc:
        logger.error("Failed to update Strava tokens for %s: %s", user_id, exc.message)
        raise ApiError("Failed to update Strava credentials") from exc

    logger.info("Strava token refreshed for %s", user_id)
    return {
        "success": True,
        "access_token": tokens["strava_access_token"],
        "expires_at": tokens["strava_expires_at"],
    }


@router.post("/disconnect")
async def strava_disconnect(
    auth: AuthContext = Depends(require_auth),
    identity: IdentityClient = Depends(get_identity),
    session: Session = Depends(get_session),
):
    metadata = auth.user.user_metadata
    if not strava.has_strava_connected(auth.user):
        raise strava.StravaNotConnected()

    try:
        await strava.deauthorize(metadata["strava_access_token"])
    except httpx.HTTPError as exc:
        logger.warning(
            "Strava deauthorization failed for %s: %s",
            auth.user.id,
            strava.describe_http_error(exc),
        )

    cleared = {key: None for key in strava.METADATA_KEYS}
    try:
        await identity.update_user(auth.access_token, cleared)
    except IdentityError as exc:
        logger.error("Failed to clear Strava credentials for %s: %s", auth.user.id, exc.message)
        raise ApiError("Failed to disconnect Strava account") from exc

    _mirror_athlete_id(session, auth.user, None)
    logger.info("Strava disconnected for %s", auth.user.id)
    return {"success": True, "message": "Strava account disconnected"}


__all__ = ["router"]
