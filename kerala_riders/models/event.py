"""Database models for events and their participants."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow

STATUS_REGISTERED = "registered"
STATUS_WAITLIST = "waitlist"


def _new_id() -> str:
    return uuid.uuid4().hex


class Event(SQLModel, table=True):
    """Community ride/run organised by a member."""

    id: str = ORMField(default_factory=_new_id, primary_key=True)
    title: str
    description: Optional[str] = None
    date: datetime = ORMField(index=True)
    location: str
    max_participants: Optional[int] = None
    category: str = ORMField(index=True)
    difficulty: Optional[str] = None
    distance: Optional[float] = None
    registration_deadline: Optional[datetime] = None
    created_by: str = ORMField(foreign_key="user.krid", index=True)
    is_active: bool = ORMField(default=True, index=True)
    created_at: datetime = ORMField(default_factory=utcnow)
    updated_at: datetime = ORMField(default_factory=utcnow)


class EventParticipant(SQLModel, table=True):
    """A member's registration (or waitlist spot) for an event."""

    __tablename__ = "event_participant"
    __table_args__ = (
        UniqueConstraint("event_id", "user_krid", name="uq_event_participant_event_user"),
    )

    id: Optional[int] = ORMField(default=None, primary_key=True)
    event_id: str = ORMField(foreign_key="event.id", index=True)
    user_krid: str = ORMField(foreign_key="user.krid", index=True)
    status: str = ORMField(default=STATUS_REGISTERED)
    registered_at: datetime = ORMField(default_factory=utcnow)


__all__ = ["Event", "EventParticipant", "STATUS_REGISTERED", "STATUS_WAITLIST"]
