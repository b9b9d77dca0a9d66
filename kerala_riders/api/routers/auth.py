"""Email/password authentication endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlmodel import Session

from ...core import SITE_URL, get_session
from ...core.errors import ApiError, BadRequest, Unauthorized
from ...services.accounts import apply_profile_updates, find_user_by_email
from ...services.identity import (
    OTP_MESSAGES,
    RESEND_MESSAGES,
    RESET_MESSAGES,
    SIGNIN_MESSAGES,
    IdentityClient,
    IdentityError,
    friendly_message,
)
from ..deps import (
    clear_session_cookies,
    extract_token,
    get_identity,
    set_session_cookies,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _credentials(body: Dict[str, Any]) -> tuple[str, str]:
    email = (body.get("email") or "").strip()
    password = body.get("password") or ""
    if not email or not password:
        raise BadRequest("Email and password are required")
    return email, password


@router.post("/signup")
async def signup(
    body: Dict[str, Any],
    response: Response,
    identity: IdentityClient = Depends(get_identity),
):
    email, password = _credentials(body)
    user_data = body.get("userData") or {}

    logger.info("Starting email signup for %s", email)
    try:
        result = await identity.sign_up(email, password, user_data)
    except IdentityError as exc:
        raise BadRequest(exc.message) from exc

    if result.user and not result.session:
        logger.info("Email confirmation required for %s", result.user.id)
        return {
            "success": True,
            "user": {
                "id": result.user.id,
                "email": result.user.email,
                "email_confirmed_at": result.user.email_confirmed_at,
            },
            "message": "Please check your email to confirm your account",
            "requiresConfirmation": True,
        }

    if result.session and result.session.user:
        set_session_cookies(response, result.session)
        logger.info("User %s signed up and signed in", result.session.user.id)
        return {
            "success": True,
            "user": result.session.user.to_dict(),
            "message": "Account created successfully",
        }

    raise ApiError("Signup completed but no session created")


@router.post("/signin")
async def signin(
    body: Dict[str, Any],
    response: Response,
    identity: IdentityClient = Depends(get_identity),
):
    email, password = _credentials(body)

    try:
        auth_session = await identity.sign_in_with_password(email, password)
    except IdentityError as exc:
        logger.info("Sign-in failed for %s: %s", email, exc.message)
        raise Unauthorized(friendly_message(exc.message, SIGNIN_MESSAGES)) from exc

    if not auth_session.user:
        raise ApiError("No user data received")

    set_session_cookies(response, auth_session)
    logger.info("User %s signed in", auth_session.user.id)
    return {
        "success": True,
        "user": auth_session.user.to_dict(),
        "session": auth_session.to_dict(),
        "message": "Signed in successfully",
    }


@router.post("/signout")
async def signout(request: Request, identity: IdentityClient = Depends(get_identity)):
    token = extract_token(request)
    try:
        if token:
            await identity.sign_out(token)
    except IdentityError as exc:
        logger.error("Sign-out failed: %s", exc.message)
        failure = JSONResponse(
            {"success": False, "error": exc.message}, status_code=500
        )
        clear_session_cookies(failure)
        return failure

    done = JSONResponse({"success": True, "message": "Signed out successfully"})
    clear_session_cookies(done)
    return done


@router.post("/verify-otp")
async def verify_otp(
    body: Dict[str, Any],
    response: Response,
    identity: IdentityClient = Depends(get_identity),
    session: Session = Depends(get_session),
):
    email = (body.get("email") or "").strip()
    token = (body.get("token") or "").strip()
    if not email or not token:
        raise BadRequest("Email and OTP token are required")

    try:
        auth_session = await identity.verify_otp(email, token, type="email")
    except IdentityError as exc:
        raise BadRequest(friendly_message(exc.message, OTP_MESSAGES)) from exc

    user = auth_session.user
    if not user:
        raise ApiError("Verification failed")

    try:
        await identity.update_user(auth_session.access_token, {"is_email_verified": True})
    except IdentityError as exc:
        logger.warning("Failed to mark %s as email verified: %s", user.id, exc.message)

    user.user_metadata["is_email_verified"] = True
    member = find_user_by_email(session, user.email or "")
    if member:
        apply_profile_updates(session, member, {"is_email_verified": True})

    set_session_cookies(response, auth_session)
    logger.info("Email verified for %s", user.id)
    return {
        "success": True,
        "user": user.to_dict(),
        "session": auth_session.to_dict(),
        "message": "Email verified successfully",
    }


@router.post("/resend-otp")
async def resend_otp(
    body: Dict[str, Any], identity: IdentityClient = Depends(get_identity)
):
    email = (body.get("email") or "").strip()
    if not email:
        raise BadRequest("Email is required")

    try:
        await identity.resend(email, type="signup")
    except IdentityError as exc:
        raise BadRequest(friendly_message(exc.message, RESEND_MESSAGES)) from exc

    logger.info("OTP resent to %s", email)
    return {"success": True, "message": "OTP has been sent to your email address"}


@router.post("/reset-password")
async def reset_password(
    body: Dict[str, Any], identity: IdentityClient = Depends(get_identity)
):
    email = (body.get("email") or "").strip()
    if not email:
        raise BadRequest("Email is required")

    try:
        await identity.reset_password_for_email(
            email, f"{SITE_URL}/auth/reset-password-confirm"
        )
    except IdentityError as exc:
        raise BadRequest(friendly_message(exc.message, RESET_MESSAGES)) from exc

    logger.info("Password reset link sent to %s", email)
    return {
        "success": True,
        "message": "Password reset link has been sent to your email address",
    }


__all__ = ["router"]
