"""Activity storage and listing."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from ..core.errors import BadRequest, Conflict
from ..core.time import isoformat, parse_datetime
from ..models import Activity

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
# Strava ids are stored in a signed 64-bit column.
MAX_ACTIVITY_ID = 2**63 - 1


class DuplicateActivity(Conflict):
    def __init__(self):
        super().__init__("Activity with this ID already exists")


@dataclass
class StoreResult:
    stored: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class ActivityFilters:
    sport_type: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass
class ActivityPage:
    activities: List[Activity]
    total: int
    limit: int
    offset: int

    @property
    def pagination(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
            "hasMore": self.offset + self.limit < self.total,
            "totalPages": math.ceil(self.total / self.limit) if self.limit else 0,
            "currentPage": self.offset // self.limit + 1 if self.limit else 1,
        }


def _number(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise BadRequest(f"{label} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{label} must be a number") from None


def _date(value: Any, label: str) -> datetime:
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{label} must be a valid ISO 8601 date") from None


def parse_activity_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a camelCase activity body and map it onto column names."""

    raw_id = payload.get("id")
    name = payload.get("name")
    activity_type = payload.get("type")
    if raw_id in (None, "") or not name or not activity_type:
        raise BadRequest("Activity id, name and type are required")

    activity_id = str(raw_id).strip()
    if not (
        activity_id.isascii()
        and activity_id.isdecimal()
        and int(activity_id) <= MAX_ACTIVITY_ID
    ):
        raise BadRequest("Invalid activity ID format")

    distance = _number(payload.get("distance", 0), "distance")
    if distance < 0:
        raise BadRequest("distance must be a non-negative number")

    if payload.get("movingTime") is None:
        raise BadRequest("movingTime is required")
    moving_time = int(_number(payload["movingTime"], "movingTime"))
    if moving_time <= 0:
        raise BadRequest("movingTime must be a positive number")

    elapsed_raw = payload.get("elapsedTime")
    elapsed_time = (
        int(_number(elapsed_raw, "elapsedTime")) if elapsed_raw is not None else moving_time
    )
    elevation_raw = payload.get("totalElevation")
    total_elevation = (
        _number(elevation_raw, "totalElevation") if elevation_raw is not None else 0.0
    )

    if not payload.get("startDate"):
        raise BadRequest("startDate is required")
    start_date = _date(payload["startDate"], "startDate")
    start_date_local = (
        _date(payload["startDateLocal"], "startDateLocal")
        if payload.get("startDateLocal")
        else start_date
    )

    def optional_number(key: str) -> Optional[float]:
        value = payload.get(key)
        return _number(value, key) if value is not None else None

    workout_type = payload.get("workoutType")
    return {
        "id": int(activity_id),
        "name": str(name),
        "type": str(activity_type),
        "sport_type": str(payload.get("sportType") or activity_type),
        "distance": distance,
        "moving_time": moving_time,
        "elapsed_time": elapsed_time,
        "total_elevation": total_elevation,
        "start_date": start_date,
        "start_date_local": start_date_local,
        "timezone": payload.get("timezone"),
        "average_speed": optional_number("averageSpeed"),
        "max_speed": optional_number("maxSpeed"),
        "workout_type": int(workout_type) if workout_type is not None else None,
    }


def create_activity(session: Session, krid: str, data: Dict[str, Any]) -> Activity:
    """Insert one activity; an existing id raises ``DuplicateActivity``."""

    if session.get(Activity, data["id"]):
        raise DuplicateActivity()

    activity = Activity(**data, user_krid=krid)
    session.add(activity)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise DuplicateActivity() from exc
    session.refresh(activity)
    logger.info("Stored activity %s for %s", activity.id, krid)
    return activity


def store_activities(
    session: Session, krid: str, items: Iterable[Dict[str, Any]]
) -> StoreResult:
    """Insert activities one by one; duplicates are skipped, failures collected."""

    result = StoreResult()
    for data in items:
        try:
            create_activity(session, krid, data)
        except DuplicateActivity:
            logger.info("Activity %s already stored, skipping", data.get("id"))
            result.skipped += 1
        except Exception as exc:  # noqa: BLE001 - one bad record must not stop the batch
            session.rollback()
            logger.warning("Failed to store activity %s: %s", data.get("id"), exc)
            result.errors.append(f"Failed to store activity {data.get('id')}: {exc}")
        else:
            result.stored += 1
    return result


def list_activities(
    session: Session,
    krid: str,
    filters: Optional[ActivityFilters] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> ActivityPage:
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    conditions = [Activity.user_krid == krid]
    if filters:
        if filters.sport_type:
            conditions.append(Activity.sport_type == filters.sport_type)
        if filters.start_date:
            conditions.append(Activity.start_date >= filters.start_date)
        if filters.end_date:
            conditions.append(Activity.start_date <= filters.end_date)

    total = session.exec(select(func.count(Activity.id)).where(*conditions)).one()
    activities = session.exec(
        select(Activity)
        .where(*conditions)
        .order_by(Activity.start_date.desc())
        .offset(offset)
        .limit(limit)
    ).all()
    return ActivityPage(list(activities), total, limit, offset)


def activity_to_dict(activity: Activity) -> Dict[str, Any]:
    return {
        "id": str(activity.id),
        "userKRId": activity.user_krid,
        "name": activity.name,
        "type": activity.type,
        "sportType": activity.sport_type,
        "distance": activity.distance,
        "movingTime": activity.moving_time,
        "elapsedTime": activity.elapsed_time,
        "totalElevation": activity.total_elevation,
        "startDate": isoformat(activity.start_date),
        "startDateLocal": isoformat(activity.start_date_local),
        "timezone": activity.timezone,
        "averageSpeed": activity.average_speed,
        "maxSpeed": activity.max_speed,
        "workoutType": activity.workout_type,
        "createdAt": isoformat(activity.created_at),
    }


__all__ = [
    "ActivityFilters",
    "ActivityPage",
    "DEFAULT_PAGE_SIZE",
    "DuplicateActivity",
    "MAX_PAGE_SIZE",
    "StoreResult",
    "activity_to_dict",
    "create_activity",
    "list_activities",
    "parse_activity_payload",
    "store_activities",
]
