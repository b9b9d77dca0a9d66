"""Database model exports."""

from .activity import Activity
from .event import STATUS_REGISTERED, STATUS_WAITLIST, Event, EventParticipant
from .user import User

__all__ = [
    "Activity",
    "Event",
    "EventParticipant",
    "STATUS_REGISTERED",
    "STATUS_WAITLIST",
    "User",
]
