"""Helpers linking identity-backend accounts to local member profiles."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from sqlmodel import Session, func, select

from ..core.time import utcnow
from ..models import User
from .identity import AuthUser

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "phone_number",
    "gender",
    "city",
    "kerala_district",
    "uae_emirate",
    "is_email_verified",
    "is_mobile_verified",
)


def is_existing_user(user: AuthUser) -> bool:
    """A freshly created account has matching timestamps and no profile flags."""

    return (
        user.created_at != user.updated_at
        or "is_active" in user.user_metadata
    )


def has_provider_conflict(user: AuthUser, provider: str) -> bool:
    providers = user.app_metadata.get("providers") or []
    return is_existing_user(user) and len(providers) > 0 and provider not in providers


def should_update_user_metadata(user: AuthUser) -> bool:
    return (
        not is_existing_user(user)
        or not user.user_metadata.get("is_active")
        or not user.user_metadata.get("full_name")
    )


def default_user_metadata(
    user: AuthUser, provider: str = "email", **overrides: Any
) -> Dict[str, Any]:
    """Profile defaults for new accounts; Google accounts arrive pre-verified."""

    metadata: Dict[str, Any] = {
        "full_name": user.user_metadata.get("full_name")
        or user.user_metadata.get("name")
        or "",
        "is_active": True,
        "is_data_consent": False,
        "is_email_verified": provider == "google",
        "is_mobile_verified": False,
        "phone_number": None,
        "gender": None,
        "uae_emirate": None,
        "city": None,
        "kerala_district": None,
    }
    metadata.update(overrides)
    return metadata


def _athlete_id(metadata: Dict[str, Any]) -> Optional[str]:
    raw = metadata.get("strava_athlete_id")
    return str(raw) if raw not in (None, "") else None


def find_user_by_email(session: Session, email: str) -> Optional[User]:
    normalized = (email or "").strip().lower()
    return session.exec(
        select(User).where(func.lower(User.email) == normalized)
    ).first()


def find_or_create_user(session: Session, auth_user: AuthUser) -> Tuple[User, bool]:
    """Return the local profile for ``auth_user``, creating it on first sight."""

    if not auth_user.email:
        raise ValueError("Identity has no email address")

    user = find_user_by_email(session, auth_user.email)
    if user:
        if not user.auth_id:
            user.auth_id = auth_user.id
            session.add(user)
            session.commit()
            session.refresh(user)
        return user, False

    metadata = auth_user.user_metadata
    user = User(
        krid=str(metadata.get("krid") or f"temp-{auth_user.id}"),
        auth_id=auth_user.id,
        email=auth_user.email.strip().lower(),
        name=metadata.get("full_name") or metadata.get("name"),
        athlete_id=_athlete_id(metadata),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Created member profile %s for %s", user.krid, user.email)
    return user, True


def apply_profile_updates(
    session: Session, user: User, updates: Dict[str, Any]
) -> User:
    """Mirror identity metadata changes onto the local profile row."""

    changed = False
    if "full_name" in updates and updates["full_name"] != user.name:
        user.name = updates["full_name"] or None
        changed = True
    if "strava_athlete_id" in updates:
        athlete_id = _athlete_id(updates)
        if athlete_id != user.athlete_id:
            user.athlete_id = athlete_id
            changed = True
    for name in PROFILE_FIELDS:
        if name in updates and getattr(user, name) != updates[name]:
            value = updates[name]
            if name.startswith("is_"):
                value = bool(value)
            setattr(user, name, value)
            changed = True

    if changed:
        user.updated_at = utcnow()
        session.add(user)
        session.commit()
        session.refresh(user)
    return user


__all__ = [
    "apply_profile_updates",
    "default_user_metadata",
    "find_or_create_user",
    "find_user_by_email",
    "has_provider_conflict",
    "is_existing_user",
    "should_update_user_metadata",
]
