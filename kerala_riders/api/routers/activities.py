"""Manual activity submission and activity listing."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ...core import get_session, parse_datetime
from ...core.errors import BadRequest, NotFound
from ...services.accounts import find_user_by_email
from ...services.activities import (
    DEFAULT_PAGE_SIZE,
    ActivityFilters,
    activity_to_dict,
    create_activity,
    list_activities,
    parse_activity_payload,
)
from ..deps import AuthContext, require_member

router = APIRouter(prefix="/api/user/activity", tags=["activities"])


def _query_date(raw: Optional[str], name: str):
    if not raw:
        return None
    try:
        return parse_datetime(raw)
    except ValueError:
        raise BadRequest(f"Invalid {name} format. Use ISO 8601 format.") from None


@router.post("/add", status_code=201)
def add_activity(
    body: Dict[str, Any],
    auth: AuthContext = Depends(require_member),
    session: Session = Depends(get_session),
):
    payload = body.get("activity")
    if not isinstance(payload, dict):
        raise BadRequest("Activity data is required")

    data = parse_activity_payload(payload)
    activity = create_activity(session, auth.member.krid, data)
    return {
        "success": True,
        "message": "Activity added successfully",
        "data": activity_to_dict(activity),
    }


@router.get("/get-all")
def get_all_activities(
    email: Optional[str] = None,
    krid: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    sportType: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    auth: AuthContext = Depends(require_member),
    session: Session = Depends(get_session),
):
    target = krid
    if not target and email:
        member = find_user_by_email(session, email)
        if not member:
            raise NotFound("User not found")
        target = member.krid
    if not target:
        target = auth.member.krid

    filters = ActivityFilters(
        sport_type=sportType,
        start_date=_query_date(startDate, "startDate"),
        end_date=_query_date(endDate, "endDate"),
    )
    page = list_activities(session, target, filters, limit=limit, offset=offset)
    return {
        "success": True,
        "data": {
            "activities": [activity_to_dict(activity) for activity in page.activities],
            "pagination": page.pagination,
            "filters": {
                "email": email,
                "krid": krid,
                "sportType": sportType,
                "startDate": startDate,
                "endDate": endDate,
            },
        },
    }


__all__ = ["router"]
