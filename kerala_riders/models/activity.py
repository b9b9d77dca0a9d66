"""Database model for synced Strava activities."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Column
from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class Activity(SQLModel, table=True):
    """One row per Strava activity; the Strava id is the primary key."""

    # Strava ids overflow 32-bit integers.
    id: int = ORMField(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    user_krid: str = ORMField(foreign_key="user.krid", index=True)
    name: str
    type: str
    sport_type: str = ORMField(index=True)
    distance: float = 0.0
    moving_time: int = 0
    elapsed_time: int = 0
    total_elevation: float = 0.0
    start_date: datetime = ORMField(index=True)
    start_date_local: datetime
    timezone: Optional[str] = None
    average_speed: Optional[float] = None
    max_speed: Optional[float] = None
    workout_type: Optional[int] = None
    created_at: datetime = ORMField(default_factory=utcnow)


__all__ = ["Activity"]
