"""Shared request dependencies: identity client, authentication, cookies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request, Response
from sqlmodel import Session

from ..core import (
    COOKIE_DOMAIN,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    SUPABASE_ANON_KEY,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
    get_session,
)
from ..core.errors import ApiError, Unauthorized
from ..models import User
from ..services.accounts import find_or_create_user
from ..services.identity import AuthSession, AuthUser, IdentityClient, IdentityError

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "sb-access-token"
REFRESH_COOKIE = "sb-refresh-token"
ACCESS_COOKIE_MAX_AGE = 60 * 60 * 24 * 7
REFRESH_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


@lru_cache
def get_identity() -> IdentityClient:
    return IdentityClient(
        SUPABASE_URL,
        SUPABASE_ANON_KEY,
        service_role_key=SUPABASE_SERVICE_ROLE_KEY,
    )


@dataclass
class AuthContext:
    user: AuthUser
    access_token: str
    member: Optional[User] = None


def extract_token(request: Request) -> Optional[str]:
    """Bearer header first, then the session cookie."""

    header = request.headers.get("Authorization") or ""
    if header.startswith("Bearer "):
        token = header[len("Bearer "):].strip()
        if token:
            return token
    return request.cookies.get(ACCESS_COOKIE) or None


async def optional_auth(
    request: Request, identity: IdentityClient = Depends(get_identity)
) -> Optional[AuthContext]:
    token = extract_token(request)
    if not token:
        return None
    try:
        user = await identity.get_user(token)
    except IdentityError:
        return None
    return AuthContext(user=user, access_token=token)


async def require_auth(
    request: Request, identity: IdentityClient = Depends(get_identity)
) -> AuthContext:
    token = extract_token(request)
    if not token:
        raise Unauthorized("Authorization header with Bearer token required")
    try:
        user = await identity.get_user(token)
    except IdentityError as exc:
        logger.info("Rejected access token: %s", exc.message)
        raise Unauthorized("Invalid or expired token") from exc
    return AuthContext(user=user, access_token=token)


def _attach_member(session: Session, auth: AuthContext) -> AuthContext:
    try:
        auth.member, _ = find_or_create_user(session, auth.user)
    except Exception as exc:
        logger.exception("Failed to resolve member profile for %s", auth.user.id)
        raise ApiError("Failed to get user information") from exc
    return auth


def require_member(
    auth: AuthContext = Depends(require_auth),
    session: Session = Depends(get_session),
) -> AuthContext:
    """Authenticated request with the caller's local profile resolved."""

    return _attach_member(session, auth)


def optional_member(
    auth: Optional[AuthContext] = Depends(optional_auth),
    session: Session = Depends(get_session),
) -> Optional[AuthContext]:
    if auth is None:
        return None
    return _attach_member(session, auth)


def set_session_cookies(response: Response, auth_session: AuthSession) -> None:
    options = dict(
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        domain=COOKIE_DOMAIN,
        path="/",
    )
    response.set_cookie(
        ACCESS_COOKIE,
        auth_session.access_token,
        max_age=ACCESS_COOKIE_MAX_AGE,
        **options,
    )
    if auth_session.refresh_token:
        response.set_cookie(
            REFRESH_COOKIE,
            auth_session.refresh_token,
            max_age=REFRESH_COOKIE_MAX_AGE,
            **options,
        )


def clear_session_cookies(response: Response) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.set_cookie(
            name,
            "",
            max_age=0,
            httponly=True,
            secure=COOKIE_SECURE,
            samesite=COOKIE_SAMESITE,
            domain=COOKIE_DOMAIN,
            path="/",
        )


__all__ = [
    "ACCESS_COOKIE",
    "AuthContext",
    "REFRESH_COOKIE",
    "clear_session_cookies",
    "extract_token",
    "get_identity",
    "optional_auth",
    "optional_member",
    "require_auth",
    "require_member",
    "set_session_cookies",
]
