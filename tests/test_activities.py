from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_user
from kerala_riders.core.errors import BadRequest
from kerala_riders.services import activities as svc


def _payload(**overrides):
    payload = {
        "id": "1234567890123",
        "name": "Morning Ride",
        "type": "Ride",
        "distance": 25000,
        "movingTime": 3600,
        "startDate": "2024-05-01T05:30:00Z",
    }
    payload.update(overrides)
    return payload


def test_parse_activity_payload_applies_defaults():
    data = svc.parse_activity_payload(_payload())

    assert data["id"] == 1234567890123
    assert data["sport_type"] == "Ride"
    assert data["elapsed_time"] == 3600
    assert data["total_elevation"] == 0.0
    assert data["start_date_local"] == data["start_date"]
    assert data["start_date"] == datetime(2024, 5, 1, 5, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "overrides",
    [
        {"id": "12ab"},
        {"id": "\u00b2"},
        {"id": str(2**63)},
        {"id": "99999999999999999999"},
        {"name": ""},
        {"distance": -5},
        {"movingTime": 0},
        {"startDate": "yesterday"},
    ],
)
def test_parse_activity_payload_rejects_bad_input(overrides):
    with pytest.raises(BadRequest):
        svc.parse_activity_payload(_payload(**overrides))


def test_duplicate_activity_is_rejected(session):
    make_user(session, "KR001")
    data = svc.parse_activity_payload(_payload())
    svc.create_activity(session, "KR001", data)

    with pytest.raises(svc.DuplicateActivity) as excinfo:
        svc.create_activity(session, "KR001", dict(data, name="Again"))
    assert excinfo.value.status_code == 409


def test_store_activities_counts_skips_and_errors(session):
    make_user(session, "KR001")
    first = svc.parse_activity_payload(_payload(id="1"))
    second = svc.parse_activity_payload(_payload(id="2"))
    broken = dict(second, id=3, start_date="not-a-date")

    result = svc.store_activities(session, "KR001", [first, second, first, broken])

    assert result.stored == 2
    assert result.skipped == 1
    assert len(result.errors) == 1
    assert "3" in result.errors[0]


def test_list_activities_paginates_newest_first(session):
    make_user(session, "KR001")
    start = datetime(2024, 5, 1, tzinfo=timezone.utc)
    for offset in range(5):
        svc.create_activity(
            session,
            "KR001",
            svc.parse_activity_payload(
                _payload(
                    id=str(100 + offset),
                    type="Run" if offset % 2 else "Ride",
                    startDate=(start + timedelta(days=offset)).isoformat(),
                )
            ),
        )

    page = svc.list_activities(session, "KR001", limit=2, offset=2)
    assert [a.id for a in page.activities] == [102, 101]
    assert page.pagination == {
        "total": 5,
        "limit": 2,
        "offset": 2,
        "hasMore": True,
        "totalPages": 3,
        "currentPage": 2,
    }

    runs = svc.list_activities(session, "KR001", svc.ActivityFilters(sport_type="Run"))
    assert [a.id for a in runs.activities] == [103, 101]

    assert svc.list_activities(session, "KR001", limit=1000).limit == svc.MAX_PAGE_SIZE


def test_add_activity_endpoint(client, alice):
    response = client.post("/api/user/activity/add", json={"activity": _payload()}, headers=alice)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["id"] == "1234567890123"
    assert data["userKRId"] == "KR001"

    duplicate = client.post("/api/user/activity/add", json={"activity": _payload()}, headers=alice)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Activity with this ID already exists"

    missing = client.post("/api/user/activity/add", json={}, headers=alice)
    assert missing.status_code == 400

    too_large = client.post(
        "/api/user/activity/add",
        json={"activity": _payload(id="99999999999999999999")},
        headers=alice,
    )
    assert too_large.status_code == 400
    assert too_large.json()["error"] == "Invalid activity ID format"


def test_get_all_activities_endpoint(client, alice, bob):
    client.post("/api/user/activity/add", json={"activity": _payload(id="11")}, headers=alice)
    client.post("/api/user/activity/add", json={"activity": _payload(id="22")}, headers=bob)

    mine = client.get("/api/user/activity/get-all", headers=alice).json()["data"]
    assert [a["id"] for a in mine["activities"]] == ["11"]
    assert mine["pagination"]["total"] == 1
    assert mine["pagination"]["hasMore"] is False

    by_email = client.get(
        "/api/user/activity/get-all", params={"email": "bob@example.com"}, headers=alice
    ).json()["data"]
    assert [a["id"] for a in by_email["activities"]] == ["22"]
    assert by_email["filters"]["email"] == "bob@example.com"

    unknown = client.get(
        "/api/user/activity/get-all", params={"email": "ghost@example.com"}, headers=alice
    )
    assert unknown.status_code == 404
