"""Event endpoints: CRUD plus join/leave with waitlist handling."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ...core import get_session, parse_datetime, utcnow
from ...core.errors import BadRequest
from ...models import STATUS_WAITLIST
from ...services import events as event_service
from ...services.events import EventFilters, event_to_dict, participant_to_dict
from ..deps import AuthContext, optional_member, require_member

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])

REQUIRED_FIELDS = ("title", "date", "location", "category")
JOIN_MESSAGE = "Successfully joined the event"
WAITLIST_MESSAGE = (
    "Successfully joined the event waitlist. "
    "You'll be automatically registered when a spot becomes available."
)


def _parse_date(raw: Any, message: str) -> datetime:
    try:
        return parse_datetime(raw)
    except (TypeError, ValueError):
        raise BadRequest(message) from None


def _future_date(raw: Any) -> datetime:
    date = _parse_date(raw, "Invalid date format. Use ISO 8601 format.")
    if date <= utcnow():
        raise BadRequest("Event date must be in the future")
    return date


def _deadline(raw: Any, event_date: Optional[datetime]) -> datetime:
    deadline = _parse_date(
        raw, "Invalid registration deadline format. Use ISO 8601 format."
    )
    if event_date and deadline >= event_date:
        raise BadRequest("Registration deadline must be before the event date")
    return deadline


def _max_participants(raw: Any) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = 0
    if isinstance(raw, bool) or value <= 0:
        raise BadRequest("Maximum participants must be a positive number")
    return value


def _distance(raw: Any) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = -1.0
    if isinstance(raw, bool) or value < 0:
        raise BadRequest("Distance must be a non-negative number")
    return value


def _text(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    return raw.strip() or None


def _parse_new_event(body: Dict[str, Any]) -> Dict[str, Any]:
    for name in REQUIRED_FIELDS:
        value = body.get(name)
        if not value or (isinstance(value, str) and not value.strip()):
            raise BadRequest(f"Missing required field: {name}")

    event_date = _future_date(body["date"])
    deadline = (
        _deadline(body["registrationDeadline"], event_date)
        if body.get("registrationDeadline")
        else None
    )
    return {
        "title": str(body["title"]).strip(),
        "description": _text(body.get("description")),
        "date": event_date,
        "location": str(body["location"]).strip(),
        "max_participants": _max_participants(body.get("maxParticipants")),
        "category": str(body["category"]).strip(),
        "difficulty": _text(body.get("difficulty")),
        "distance": _distance(body.get("distance")),
        "registration_deadline": deadline,
    }


def _parse_event_updates(
    session: Session, event_id: str, body: Dict[str, Any]
) -> Dict[str, Any]:
    updates: Dict[str, Any] = {}

    if "title" in body:
        title = _text(body["title"])
        if not title:
            raise BadRequest("Title must be a non-empty string")
        updates["title"] = title
    if "description" in body:
        updates["description"] = _text(body["description"])
    if "date" in body:
        updates["date"] = _future_date(body["date"])
    if "location" in body:
        location = _text(body["location"])
        if not location:
            raise BadRequest("Location must be a non-empty string")
        updates["location"] = location
    if "maxParticipants" in body:
        updates["max_participants"] = _max_participants(body["maxParticipants"])
    if "category" in body:
        category = _text(body["category"])
        if not category:
            raise BadRequest("Category must be a non-empty string")
        updates["category"] = category
    if "difficulty" in body:
        updates["difficulty"] = _text(body["difficulty"])
    if "distance" in body:
        updates["distance"] = _distance(body["distance"])
    if "registrationDeadline" in body:
        if body["registrationDeadline"] is None:
            updates["registration_deadline"] = None
        else:
            event_date = updates.get("date")
            if event_date is None:
                event_date = event_service.get_event(session, event_id).date
            updates["registration_deadline"] = _deadline(
                body["registrationDeadline"], parse_datetime(event_date)
            )
    elif "date" in updates:
        stored = event_service.get_event(session, event_id).registration_deadline
        if stored is not None:
            _deadline(stored, updates["date"])

    if not updates:
        raise BadRequest("No valid fields to update")
    return updates


@router.get("")
def list_events(
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    dateFrom: Optional[str] = None,
    dateTo: Optional[str] = None,
    location: Optional[str] = None,
    auth: Optional[AuthContext] = Depends(optional_member),
    session: Session = Depends(get_session),
):
    filters = EventFilters(
        category=category,
        difficulty=difficulty,
        date_from=(
            _parse_date(dateFrom, "Invalid dateFrom format. Use ISO 8601 format.")
            if dateFrom
            else None
        ),
        date_to=(
            _parse_date(dateTo, "Invalid dateTo format. Use ISO 8601 format.")
            if dateTo
            else None
        ),
        location=location,
    )
    krid = auth.member.krid if auth else None
    events = event_service.list_events(session, filters)
    data = [event_to_dict(session, event, krid) for event in events]
    return {"success": True, "data": data, "count": len(data)}


@router.post("", status_code=201)
def create_event(
    body: Dict[str, Any],
    auth: AuthContext = Depends(require_member),
    session: Session = Depends(get_session),
):
    data = _parse_new_event(body)
    event = event_service.create_event(session, data, auth.member.krid)
    return {
        "success": True,
        "message": "Event created successfully",
        "data": event_to_dict(session, event, auth.member.krid),
    }


@router.get("/{event_id}")
def get_event(
    event_id: str,
    auth: Optional[AuthContext] = Depends(optional_member),
    session: Session = Depends(get_session),
):
    event = event_service.get_event(session, event_id)
    krid = auth.member.krid if auth else None
    return {"success": True, "data": event_to_dict(session, event, krid)}


@router.put("/{event_id}")
def update_event(
    event_id: str,
    body: Dict[str, Any],
    auth: AuthContext = Depends(require_member),
    session: Session = Depends(get_session),
):
    updates = _parse_event_updates(session, event_id, body)
    event = event_service.update_event(session, event_id, updates, auth.member.krid)
    return {
        "success": True,
        "message": "Event updated successfully",
        "data": event_to_dict(session, event, auth.member.krid),
    }


@router.delete("/{event_id}")
def delete_event(
    event_id: str,
    auth: AuthContext = Depends(require_member),
    session: Session = Depends(get_session),
):
    event_service.delete_event(session, event_id, auth.member.krid)
    return {"success": True, "message": "Event deleted successfully"}


@router.post("/{event_id}/join", status_code=201)
def join_event(
    event_id: str,
    auth: AuthContext = Depends(require_member),
    session: Session = Depends(get_session),
):
    participation = event_service.join_event(session, event_id, auth.member.krid)
    message = WAITLIST_MESSAGE if participation.status == STATUS_WAITLIST else JOIN_MESSAGE
    return {
        "success": True,
        "message": message,
        "data": {
            "participation": participant_to_dict(participation),
            "status": participation.status,
        },
    }


@router.post("/{event_id}/leave")
def leave_event(
    event_id: str,
    auth: AuthContext = Depends(require_member),
    session: Session = Depends(get_session),
):
    promoted = event_service.leave_event(session, event_id, auth.member.krid)
    return {
        "success": True,
        "message": "Successfully left the event",
        "data": {
            "promoted": participant_to_dict(promoted) if promoted else None,
        },
    }


__all__ = ["router"]
