import asyncio

import httpx
import pytest
from sqlmodel import select

from kerala_riders.models import Activity, User
from kerala_riders.services import sync
from kerala_riders.services.identity import AuthUser
from kerala_riders.services.strava import StravaError

CONNECTED = {
    "krid": "KR010",
    "full_name": "Rider",
    "strava_access_token": "a",
    "strava_refresh_token": "r",
    "strava_expires_at": 4_000_000_000,
}


def _raw(activity_id, **extra):
    raw = {
        "id": activity_id,
        "name": f"Ride {activity_id}",
        "type": "Ride",
        "sport_type": "Ride",
        "distance": 1000.0,
        "moving_time": 300,
        "elapsed_time": 320,
        "total_elevation_gain": 5,
        "start_date": "2024-05-01T06:00:00Z",
        "start_date_local": "2024-05-01T10:00:00Z",
    }
    raw.update(extra)
    return raw


@pytest.fixture
def rider():
    return AuthUser(id="auth-10", email="rider@example.com", user_metadata=dict(CONNECTED))


@pytest.fixture
def strava_stub(monkeypatch):
    state = {"activities": [], "error": None}

    async def fake_token(identity, access_token, user, now=None):
        return "strava-token"

    async def fake_fetch(access_token, now=None):
        if state["error"]:
            raise state["error"]
        return state["activities"]

    monkeypatch.setattr(sync, "get_valid_strava_token", fake_token)
    monkeypatch.setattr(sync, "fetch_todays_activities", fake_fetch)
    return state


def _run(session, user):
    return asyncio.run(sync.sync_todays_activities(session, None, "session-token", user))


def test_not_connected(session):
    user = AuthUser(id="auth-x", email="x@example.com", user_metadata={})
    result = _run(session, user)
    assert result.success is False
    assert result.message == sync.NOT_CONNECTED_MESSAGE


def test_nothing_to_sync_creates_profile(session, rider, strava_stub):
    result = _run(session, rider)

    assert result.success is True
    assert result.message == sync.NOTHING_TO_SYNC_MESSAGE
    assert result.user_created is True
    assert session.get(User, "KR010") is not None


def test_fetch_failure(session, rider, strava_stub):
    strava_stub["error"] = StravaError("No Strava credentials found")

    result = _run(session, rider)

    assert result.success is False
    assert result.message == sync.FETCH_FAILED_MESSAGE
    assert result.errors == ["No Strava credentials found"]


def test_http_failure_is_reported(session, rider, strava_stub):
    request = httpx.Request("GET", "https://www.strava.com/api/v3/athlete/activities")
    strava_stub["error"] = httpx.ConnectError("boom", request=request)

    result = _run(session, rider)

    assert result.success is False
    assert result.errors == ["boom"]


def test_batch_stores_skips_and_collects_errors(session, rider, strava_stub):
    strava_stub["activities"] = [_raw(1)]
    _run(session, rider)

    strava_stub["activities"] = [_raw(1), _raw(2), {"name": "no id"}, _raw(3)]
    result = _run(session, rider)

    assert result.success is True
    assert result.activities_fetched == 4
    assert result.activities_stored == 2
    assert result.activities_skipped == 1
    assert len(result.errors) == 1
    assert result.message == "Sync completed! 2 activities stored, 1 skipped"
    stored = session.exec(select(Activity.id).order_by(Activity.id)).all()
    assert stored == [1, 2, 3]

    details = result.to_dict()["details"]
    assert details["activitiesStored"] == 2
    assert details["userCreated"] is False


def test_sync_endpoint(client, identity, strava_stub):
    identity.add_user("token-rider", "auth-10", "rider@example.com", dict(CONNECTED))
    strava_stub["activities"] = [_raw(7)]

    response = client.post(
        "/api/sync-activities", headers={"Authorization": "Bearer token-rider"}
    )
    assert response.status_code == 200
    assert response.json()["details"]["activitiesStored"] == 1

    identity.add_user("token-plain", "auth-11", "plain@example.com", {"krid": "KR011"})
    failed = client.post(
        "/api/sync-activities", headers={"Authorization": "Bearer token-plain"}
    )
    assert failed.status_code == 400
    assert failed.json()["success"] is False
    assert failed.json()["error"] == sync.NOT_CONNECTED_MESSAGE

    assert client.get("/api/sync-activities").status_code == 200
