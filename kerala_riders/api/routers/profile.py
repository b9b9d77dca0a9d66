"""Profile read/update endpoints backed by identity user metadata."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from ...core import get_session
from ...core.errors import BadRequest, Unauthorized
from ...services.accounts import apply_profile_updates, find_or_create_user
from ...services.identity import IdentityClient, IdentityError
from ..deps import AuthContext, extract_token, get_identity, require_auth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["profile"])


@router.get("/update-profile")
def get_profile(auth: AuthContext = Depends(require_auth)):
    return {"success": True, "user": auth.user.to_dict()}


@router.post("/update-profile")
async def update_profile(
    body: Dict[str, Any],
    request: Request,
    identity: IdentityClient = Depends(get_identity),
    session: Session = Depends(get_session),
):
    updates = body.get("updates")
    if not isinstance(updates, dict) or not updates:
        raise BadRequest("Profile updates are required")

    access_token = body.get("accessToken") or extract_token(request)
    if not access_token:
        raise Unauthorized("Access token required")

    try:
        user = await identity.update_user(access_token, updates)
    except IdentityError as exc:
        raise BadRequest(exc.message) from exc

    if user.email:
        member, _ = find_or_create_user(session, user)
        apply_profile_updates(session, member, updates)

    logger.info("Profile updated for %s", user.id)
    return {
        "success": True,
        "user": user.to_dict(),
        "message": "Profile updated successfully",
    }


__all__ = ["router"]
