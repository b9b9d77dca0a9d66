from datetime import timedelta

import pytest
from sqlmodel import select

from conftest import make_event, make_user
from kerala_riders.core import utcnow
from kerala_riders.models import STATUS_REGISTERED, STATUS_WAITLIST, EventParticipant
from kerala_riders.services import events as svc


@pytest.fixture
def members(session):
    return [make_user(session, f"KR00{i}") for i in range(1, 6)]


def test_join_registers_until_capacity_then_waitlists(session, members):
    event = make_event(session, "KR001", max_participants=2)

    first = svc.join_event(session, event.id, "KR002")
    second = svc.join_event(session, event.id, "KR003")
    third = svc.join_event(session, event.id, "KR004")

    assert first.status == STATUS_REGISTERED
    assert second.status == STATUS_REGISTERED
    assert third.status == STATUS_WAITLIST
    assert svc.registered_count(session, event.id) == 2


def test_unlimited_event_never_waitlists(session, members):
    event = make_event(session, "KR001")
    statuses = {svc.join_event(session, event.id, m.krid).status for m in members}
    assert statuses == {STATUS_REGISTERED}


def test_leave_promotes_earliest_waitlisted_member(session, members):
    event = make_event(session, "KR001", max_participants=1)
    svc.join_event(session, event.id, "KR002")
    svc.join_event(session, event.id, "KR003")
    svc.join_event(session, event.id, "KR004")

    promoted = svc.leave_event(session, event.id, "KR002")

    assert promoted is not None
    assert promoted.user_krid == "KR003"
    rows = {
        row.user_krid: row.status
        for row in session.exec(
            select(EventParticipant).where(EventParticipant.event_id == event.id)
        )
    }
    assert rows == {"KR003": STATUS_REGISTERED, "KR004": STATUS_WAITLIST}


def test_leave_from_waitlist_promotes_nobody(session, members):
    event = make_event(session, "KR001", max_participants=1)
    svc.join_event(session, event.id, "KR002")
    svc.join_event(session, event.id, "KR003")
    svc.join_event(session, event.id, "KR004")

    assert svc.leave_event(session, event.id, "KR003") is None
    assert svc.registered_count(session, event.id) == 1


def test_double_join_is_rejected(session, members):
    event = make_event(session, "KR001")
    svc.join_event(session, event.id, "KR002")

    with pytest.raises(svc.AlreadyParticipating) as excinfo:
        svc.join_event(session, event.id, "KR002")
    assert excinfo.value.status_code == 409


def test_join_unknown_event(session, members):
    with pytest.raises(svc.EventNotFound):
        svc.join_event(session, "missing", "KR002")


def test_join_after_deadline(session, members):
    event = make_event(
        session,
        "KR001",
        registration_deadline=utcnow() + timedelta(days=1),
    )
    with pytest.raises(svc.RegistrationClosed) as excinfo:
        svc.join_event(session, event.id, "KR002", now=utcnow() + timedelta(days=2))
    assert excinfo.value.detail == "Registration deadline has passed"


def test_leave_without_participation(session, members):
    event = make_event(session, "KR001")
    with pytest.raises(svc.NotParticipating) as excinfo:
        svc.leave_event(session, event.id, "KR002")
    assert excinfo.value.status_code == 400


def test_only_creator_can_update(session, members):
    event = make_event(session, "KR001")

    with pytest.raises(svc.NotEventCreator) as excinfo:
        svc.update_event(session, event.id, {"title": "Hijacked"}, "KR002")
    assert excinfo.value.status_code == 403

    updated = svc.update_event(session, event.id, {"title": "Night Ride", "bogus": 1}, "KR001")
    assert updated.title == "Night Ride"


def test_delete_is_soft_and_creator_only(session, members):
    event = make_event(session, "KR001")

    with pytest.raises(svc.EventNotFound) as excinfo:
        svc.delete_event(session, event.id, "KR002")
    assert excinfo.value.detail == "Event not found or you are not the creator"

    svc.delete_event(session, event.id, "KR001")
    session.refresh(event)
    assert event.is_active is False
    assert svc.list_events(session) == []
    with pytest.raises(svc.EventNotFound):
        svc.get_event(session, event.id)


def test_list_events_filters(session, members):
    soon = make_event(session, "KR001", location="Kochi", category="cycling")
    later = make_event(
        session,
        "KR001",
        location="Dubai Creek",
        category="running",
        date=utcnow() + timedelta(days=30),
    )

    assert [e.id for e in svc.list_events(session)] == [soon.id, later.id]
    assert [e.id for e in svc.list_events(session, svc.EventFilters(location="dubai"))] == [later.id]
    assert [e.id for e in svc.list_events(session, svc.EventFilters(category="cycling"))] == [soon.id]
    assert svc.list_events(
        session, svc.EventFilters(date_from=utcnow() + timedelta(days=10))
    ) == [later]


def test_event_to_dict_counts_registered_only(session, members):
    event = make_event(session, "KR001", max_participants=1)
    svc.join_event(session, event.id, "KR002")
    svc.join_event(session, event.id, "KR003")

    data = svc.event_to_dict(session, event, current_krid="KR003")

    assert data["participantCount"] == 1
    assert len(data["participants"]) == 2
    assert data["userParticipation"]["status"] == STATUS_WAITLIST
    assert data["creator"]["krid"] == "KR001"
    assert data["maxParticipants"] == 1
    assert data["date"].endswith("Z")


def test_user_events_created_and_registered(session, members):
    own = make_event(session, "KR002", title="Own")
    full = make_event(session, "KR001", title="Full", max_participants=1)
    svc.join_event(session, full.id, "KR003")
    svc.join_event(session, full.id, "KR002")
    open_event = make_event(session, "KR001", title="Open")
    svc.join_event(session, open_event.id, "KR002")

    created, joined = svc.get_user_events(session, "KR002")

    assert [e.id for e in created] == [own.id]
    assert [e.id for e, _ in joined] == [open_event.id]
