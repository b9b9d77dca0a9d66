"""Database model for member profiles."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class User(SQLModel, table=True):
    """Local profile row for an identity-backend account, keyed by KRID."""

    krid: str = ORMField(primary_key=True)
    auth_id: Optional[str] = ORMField(default=None, index=True, unique=True)
    email: str = ORMField(index=True, unique=True)
    name: Optional[str] = None
    athlete_id: Optional[str] = ORMField(default=None, index=True)
    phone_number: Optional[str] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    kerala_district: Optional[str] = None
    uae_emirate: Optional[str] = None
    is_email_verified: bool = False
    is_mobile_verified: bool = False
    created_at: datetime = ORMField(default_factory=utcnow)
    updated_at: datetime = ORMField(default_factory=utcnow)


__all__ = ["User"]
