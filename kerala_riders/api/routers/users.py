"""Member event listings."""

from __future__ import annotations

import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ...core import get_session
from ...core.errors import Forbidden
from ...services.events import event_to_dict, get_user_events
from ..deps import AuthContext, require_member

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/{krid}/events")
def user_events(
    krid: str,
    type: Optional[str] = None,
    limit: Optional[int] = None,
    includePrivate: bool = False,
    auth: AuthContext = Depends(require_member),
    session: Session = Depends(get_session),
):
    """Events a member created and events they are registered for."""

    if includePrivate and auth.member.krid != krid:
        raise Forbidden("Access denied. You can only view your own private event data.")

    created_rows, joined_rows = get_user_events(session, krid)
    viewer = auth.member.krid
    created = [event_to_dict(session, event, viewer) for event in created_rows]
    joined = [
        event_to_dict(session, event, viewer, participation=participation)
        for event, participation in joined_rows
    ]

    data: Dict[str, Any]
    if type in ("created", "joined"):
        events = created if type == "created" else joined
        data = {"events": events[:limit] if limit else events, "type": type}
    else:
        data = {
            "createdEvents": created,
            "joinedEvents": joined,
            "totalCreated": len(created),
            "totalJoined": len(joined),
            "totalAll": len(created) + len(joined),
        }
        if limit:
            half = math.ceil(limit / 2)
            data["createdEvents"] = created[:half]
            data["joinedEvents"] = joined[:half]

    return {"success": True, "data": data}


__all__ = ["router"]
