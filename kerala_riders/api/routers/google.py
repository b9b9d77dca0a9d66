"""Google sign-in through the identity backend's OAuth (PKCE) flow."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from ...core import SITE_URL
from ...services.accounts import (
    default_user_metadata,
    has_provider_conflict,
    should_update_user_metadata,
)
from ...services.identity import IdentityClient, IdentityError
from ..deps import get_identity, set_session_cookies

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/google", tags=["auth"])

VERIFIER_SESSION_KEY = "google_code_verifier"
PROVIDER_CONFLICT_MESSAGE = (
    "This email is already registered with a different login method. "
    "Please use your password to sign in."
)


def safe_redirect(target: Optional[str]) -> str:
    """Resolve ``target`` against SITE_URL; anything off-site falls back to it."""

    target = (target or "/").strip()
    if target.startswith("/") and not target.startswith("//"):
        return f"{SITE_URL}{target}"
    if target == SITE_URL or target.startswith(f"{SITE_URL}/"):
        return target
    return f"{SITE_URL}/"


def _error_redirect(error: str, message: Optional[str] = None) -> RedirectResponse:
    params = {"error": error}
    if message:
        params["message"] = message
    return RedirectResponse(f"{SITE_URL}/auth/error?{urlencode(params)}")


@router.get("/signin")
async def google_signin(
    request: Request,
    redirect_to: str = "/",
    identity: IdentityClient = Depends(get_identity),
):
    verifier = generate_token(64)
    request.session[VERIFIER_SESSION_KEY] = verifier

    callback = f"{request.url_for('google_callback')}?{urlencode({'redirect_to': redirect_to})}"
    url = identity.authorize_url(
        "google",
        callback,
        create_s256_code_challenge(verifier),
        query_params={"access_type": "offline", "prompt": "consent"},
    )
    logger.info("Redirecting to Google OAuth")
    return RedirectResponse(url)


@router.get("/callback", name="google_callback")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    error: Optional[str] = None,
    redirect_to: str = "/",
    identity: IdentityClient = Depends(get_identity),
):
    if error:
        logger.error("Google OAuth returned an error: %s", error)
        return _error_redirect(error)
    if not code:
        return _error_redirect("no_code")

    verifier = request.session.pop(VERIFIER_SESSION_KEY, None) or ""
    try:
        auth_session = await identity.exchange_code_for_session(code, verifier)
    except IdentityError as exc:
        logger.error("Google session exchange failed: %s", exc.message)
        return _error_redirect(exc.message)

    user = auth_session.user
    if not user:
        return _error_redirect("no_user_data")

    if has_provider_conflict(user, "google"):
        logger.info("Provider conflict for %s", user.email)
        try:
            await identity.sign_out(auth_session.access_token)
        except IdentityError as exc:
            logger.warning("Failed to sign out conflicting session: %s", exc.message)
        return _error_redirect("provider_conflict", PROVIDER_CONFLICT_MESSAGE)

    if should_update_user_metadata(user):
        try:
            await identity.update_user(
                auth_session.access_token, default_user_metadata(user, provider="google")
            )
        except IdentityError as exc:
            logger.warning("Failed to update metadata for %s: %s", user.id, exc.message)

    response = RedirectResponse(safe_redirect(redirect_to))
    set_session_cookies(response, auth_session)
    logger.info("Google sign-in completed for %s", user.id)
    return response


__all__ = ["router", "safe_redirect"]
