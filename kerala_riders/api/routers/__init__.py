"""Aggregate API routers."""

from fastapi import APIRouter

from .activities import router as activities_router
from .auth import router as auth_router
from .events import router as events_router
from .google import router as google_router
from .profile import router as profile_router
from .strava import router as strava_router
from .sync import router as sync_router
from .system import router as system_router
from .users import router as users_router

ALL_ROUTERS: tuple[APIRouter, ...] = (
    system_router,
    auth_router,
    google_router,
    strava_router,
    profile_router,
    events_router,
    users_router,
    activities_router,
    sync_router,
)

__all__ = ["ALL_ROUTERS"]
