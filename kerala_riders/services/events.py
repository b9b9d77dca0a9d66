"""
Event participation workflow.

Joining checks for an existing participation, the event itself and its
registration deadline, then counts registered participants and lands the
member on the waitlist when capacity is already met.  Leaving deletes the
participation and promotes the earliest waitlisted member when a slot frees
up.  Both are plain read-then-write sequences; two concurrent joins at the
capacity boundary can both be registered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from ..core.errors import BadRequest, Conflict, Forbidden, NotFound
from ..core.time import as_utc, isoformat, utcnow
from ..models import (
    STATUS_REGISTERED,
    STATUS_WAITLIST,
    Event,
    EventParticipant,
    User,
)

logger = logging.getLogger(__name__)

EVENT_FIELDS = (
    "title",
    "description",
    "date",
    "location",
    "max_participants",
    "category",
    "difficulty",
    "distance",
    "registration_deadline",
)


class EventNotFound(NotFound):
    def __init__(self, detail: str = "Event not found"):
        super().__init__(detail)


class NotEventCreator(Forbidden):
    def __init__(self):
        super().__init__("Only the event creator can update this event")


class AlreadyParticipating(Conflict):
    def __init__(self):
        super().__init__("User already participating in this event")


class RegistrationClosed(BadRequest):
    def __init__(self):
        super().__init__("Registration deadline has passed")


class NotParticipating(BadRequest):
    def __init__(self):
        super().__init__("User is not participating in this event")


@dataclass
class EventFilters:
    category: Optional[str] = None
    difficulty: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    location: Optional[str] = None


def _active_event(session: Session, event_id: str) -> Optional[Event]:
    return session.exec(
        select(Event).where(Event.id == event_id, Event.is_active == True)  # noqa: E712
    ).first()


def registered_count(session: Session, event_id: str) -> int:
    return session.exec(
        select(func.count(EventParticipant.id)).where(
            EventParticipant.event_id == event_id,
            EventParticipant.status == STATUS_REGISTERED,
        )
    ).one()


def create_event(session: Session, data: Dict[str, Any], created_by: str) -> Event:
    event = Event(
        **{name: data.get(name) for name in EVENT_FIELDS},
        created_by=created_by,
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    logger.info("Event %s created by %s", event.id, created_by)
    return event


def list_events(session: Session, filters: Optional[EventFilters] = None) -> List[Event]:
    query = select(Event).where(Event.is_active == True)  # noqa: E712
    if filters:
        if filters.category:
            query = query.where(Event.category == filters.category)
        if filters.difficulty:
            query = query.where(Event.difficulty == filters.difficulty)
        if filters.date_from:
            query = query.where(Event.date >= filters.date_from)
        if filters.date_to:
            query = query.where(Event.date <= filters.date_to)
        if filters.location:
            query = query.where(
                func.lower(Event.location).contains(filters.location.lower())
            )
    return list(session.exec(query.order_by(Event.date)).all())


def get_event(session: Session, event_id: str) -> Event:
    event = _active_event(session, event_id)
    if not event:
        raise EventNotFound()
    return event


def update_event(
    session: Session, event_id: str, updates: Dict[str, Any], krid: str
) -> Event:
    event = get_event(session, event_id)
    if event.created_by != krid:
        raise NotEventCreator()

    for name, value in updates.items():
        if name in EVENT_FIELDS:
            setattr(event, name, value)
    event.updated_at = utcnow()
    session.add(event)
    session.commit()
    session.refresh(event)
    logger.info("Event %s updated by %s", event.id, krid)
    return event


def delete_event(session: Session, event_id: str, krid: str) -> None:
    """Soft delete: the event stays in the table with ``is_active`` off."""

    event = _active_event(session, event_id)
    if not event or event.created_by != krid:
        raise EventNotFound("Event not found or you are not the creator")
    event.is_active = False
    event.updated_at = utcnow()
    session.add(event)
    session.commit()
    logger.info("Event %s deleted (soft) by %s", event_id, krid)


def join_event(
    session: Session, event_id: str, krid: str, now: Optional[datetime] = None
) -> EventParticipant:
    existing = session.exec(
        select(EventParticipant).where(
            EventParticipant.event_id == event_id,
            EventParticipant.user_krid == krid,
        )
    ).first()
    if existing:
        raise AlreadyParticipating()

    event = get_event(session, event_id)

    current = as_utc(now) or utcnow()
    deadline = as_utc(event.registration_deadline)
    if deadline and current > deadline:
        raise RegistrationClosed()

    count = registered_count(session, event_id)
    status = (
        STATUS_WAITLIST
        if event.max_participants and count >= event.max_participants
        else STATUS_REGISTERED
    )

    participation = EventParticipant(event_id=event_id, user_krid=krid, status=status)
    session.add(participation)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise AlreadyParticipating() from exc
    session.refresh(participation)
    logger.info("User %s joined event %s with status %s", krid, event_id, status)
    return participation


def leave_event(session: Session, event_id: str, krid: str) -> Optional[EventParticipant]:
    """Remove the participation; return the promoted waitlist row, if any."""

    participation = session.exec(
        select(EventParticipant).where(
            EventParticipant.event_id == event_id,
            EventParticipant.user_krid == krid,
        )
    ).first()
    if not participation:
        raise NotParticipating()

    session.delete(participation)
    session.commit()
    logger.info("User %s left event %s", krid, event_id)

    event = _active_event(session, event_id)
    if not event or not event.max_participants:
        return None

    if registered_count(session, event_id) >= event.max_participants:
        return None

    next_in_line = session.exec(
        select(EventParticipant)
        .where(
            EventParticipant.event_id == event_id,
            EventParticipant.status == STATUS_WAITLIST,
        )
        .order_by(EventParticipant.registered_at, EventParticipant.id)
        .limit(1)
    ).first()
    if not next_in_line:
        return None

    next_in_line.status = STATUS_REGISTERED
    session.add(next_in_line)
    session.commit()
    session.refresh(next_in_line)
    logger.info(
        "Promoted user %s from waitlist to registered for event %s",
        next_in_line.user_krid,
        event_id,
    )
    return next_in_line


def get_user_events(session: Session, krid: str) -> Tuple[List[Event], List[Tuple[Event, EventParticipant]]]:
    """Events created by ``krid`` and events it is registered for."""

    created = session.exec(
        select(Event)
        .where(Event.created_by == krid, Event.is_active == True)  # noqa: E712
        .order_by(Event.date)
    ).all()
    joined = session.exec(
        select(Event, EventParticipant)
        .join(EventParticipant, EventParticipant.event_id == Event.id)
        .where(
            EventParticipant.user_krid == krid,
            EventParticipant.status == STATUS_REGISTERED,
            Event.is_active == True,  # noqa: E712
        )
        .order_by(Event.date)
    ).all()
    return list(created), [(event, participation) for event, participation in joined]


# Serialisation ---------------------------------------------------------------


def _user_summary(user: Optional[User], krid: str) -> Dict[str, Any]:
    return {
        "krid": krid,
        "name": user.name if user else None,
        "email": user.email if user else None,
    }


def participant_to_dict(participation: EventParticipant) -> Dict[str, Any]:
    return {
        "id": participation.id,
        "eventId": participation.event_id,
        "userKRId": participation.user_krid,
        "status": participation.status,
        "registeredAt": isoformat(participation.registered_at),
    }


def event_to_dict(
    session: Session,
    event: Event,
    current_krid: Optional[str] = None,
    participation: Optional[EventParticipant] = None,
) -> Dict[str, Any]:
    rows = session.exec(
        select(EventParticipant, User)
        .join(User, User.krid == EventParticipant.user_krid, isouter=True)
        .where(EventParticipant.event_id == event.id)
        .order_by(EventParticipant.registered_at, EventParticipant.id)
    ).all()

    participants = []
    own = participation
    for row, user in rows:
        participants.append(
            {**participant_to_dict(row), "user": _user_summary(user, row.user_krid)}
        )
        if own is None and current_krid and row.user_krid == current_krid:
            own = row

    creator = session.get(User, event.created_by)
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "date": isoformat(event.date),
        "location": event.location,
        "maxParticipants": event.max_participants,
        "category": event.category,
        "difficulty": event.difficulty,
        "distance": event.distance,
        "registrationDeadline": isoformat(event.registration_deadline),
        "createdBy": event.created_by,
        "isActive": event.is_active,
        "createdAt": isoformat(event.created_at),
        "updatedAt": isoformat(event.updated_at),
        "creator": _user_summary(creator, event.created_by),
        "participants": participants,
        "participantCount": sum(
            1 for item in participants if item["status"] == STATUS_REGISTERED
        ),
        "userParticipation": participant_to_dict(own) if own else None,
    }


__all__ = [
    "AlreadyParticipating",
    "EventFilters",
    "EventNotFound",
    "NotEventCreator",
    "NotParticipating",
    "RegistrationClosed",
    "create_event",
    "delete_event",
    "event_to_dict",
    "get_event",
    "get_user_events",
    "join_event",
    "leave_event",
    "list_events",
    "participant_to_dict",
    "registered_count",
    "update_event",
]
