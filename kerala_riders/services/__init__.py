"""Service layer utilities."""

from .identity import AuthSession, AuthUser, IdentityClient, IdentityError
from .strava import StravaError

__all__ = [
    "AuthSession",
    "AuthUser",
    "IdentityClient",
    "IdentityError",
    "StravaError",
]
