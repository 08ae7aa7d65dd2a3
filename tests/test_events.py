from datetime import date, timedelta

import pytest

from unilink import models
from unilink.timeutil import utcnow


def _future(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


@pytest.fixture
def organizer(make_user):
    return make_user("org", name="Olivia Organizer", role="alumni")


@pytest.fixture
def event_factory(client, organizer):
    def _create(**overrides):
        payload = {
            "title": "Alumni Meetup",
            "description": "Evening of networking",
            "eventDate": _future(30),
            "eventTime": "18:00",
            "location": "Main Hall",
        }
        payload.update(overrides)
        response = client.post("/api/events", json=payload, headers=organizer)
        assert response.status_code == 201, response.json()
        return response.json()

    return _create


def test_create_event_defaults(event_factory):
    event = event_factory(tags=["networking"])

    assert event["organizerId"] == "org"
    assert event["status"] == "upcoming"
    assert event["currentAttendees"] == 0
    assert event["isPublic"] is True
    assert event["tags"] == ["networking"]


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"title": "   "}, "INVALID_TITLE"),
        ({"organizerId": "someone"}, "ORGANIZER_ID_NOT_ALLOWED"),
        ({"maxAttendees": 0}, "INVALID_MAX_ATTENDEES"),
        ({"eventDate": "tomorrow"}, "INVALID_EVENT_DATE"),
    ],
)
def test_create_event_validation(client, organizer, overrides, code):
    payload = {
        "title": "Meetup",
        "description": "d",
        "eventDate": _future(5),
        "eventTime": "10:00",
        "location": "Hall",
    }
    payload.update(overrides)

    response = client.post("/api/events", json=payload, headers=organizer)

    assert response.status_code == 400
    assert response.json()["code"] == code


def test_missing_field(client, organizer):
    response = client.post("/api/events", json={"title": "Meetup"}, headers=organizer)

    assert response.status_code == 400
    assert response.json()["code"].startswith("MISSING_")


def test_deadline_must_precede_event_day(client, organizer):
    event_day = date.today() + timedelta(days=5)
    response = client.post(
        "/api/events",
        json={
            "title": "Meetup",
            "description": "d",
            "eventDate": event_day.isoformat(),
            "eventTime": "10:00",
            "location": "Hall",
            "registrationDeadline": f"{event_day.isoformat()}T08:00:00Z",
        },
        headers=organizer,
    )

    assert response.json()["code"] == "INVALID_REGISTRATION_DEADLINE_DATE"


def test_get_event_includes_registration_count(client, event_factory, make_user):
    event = event_factory()
    client.post(f"/api/events/{event['id']}/register", headers=make_user("ana"))

    body = client.get(f"/api/events/{event['id']}").json()

    assert body["registrationCount"] == 1
    assert body["currentAttendees"] == 1
    assert client.get("/api/events/999").json()["code"] == "EVENT_NOT_FOUND"


def test_list_filters(client, event_factory, db, organizer):
    event_factory(title="Future Gala")
    db.add(models.Event(
        title="Old Reunion",
        description="Past",
        event_date=date.today() - timedelta(days=10),
        event_time="09:00",
        location="Hall",
        organizer_id="org",
        status="completed",
    ))
    db.commit()

    assert [e["title"] for e in client.get("/api/events", params={"upcoming": "true"}).json()] == ["Future Gala"]
    assert [e["title"] for e in client.get("/api/events", params={"past": "true"}).json()] == ["Old Reunion"]
    assert [e["title"] for e in client.get("/api/events", params={"search": "gala"}).json()] == ["Future Gala"]
    assert [e["title"] for e in client.get("/api/events", params={"status": "completed"}).json()] == ["Old Reunion"]


def test_only_organizer_updates(client, event_factory, make_user, organizer):
    event = event_factory()
    other = make_user("ana")

    response = client.put(f"/api/events/{event['id']}", json={"title": "Mine now"}, headers=other)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_NOT_ORGANIZER"

    updated = client.put(f"/api/events/{event['id']}", json={"status": "ongoing", "maxAttendees": None},
                         headers=organizer).json()
    assert updated["status"] == "ongoing"
    assert updated["maxAttendees"] is None


def test_invalid_status_update(client, event_factory, organizer):
    event = event_factory()

    response = client.put(f"/api/events/{event['id']}", json={"status": "postponed"}, headers=organizer)

    assert response.json()["code"] == "INVALID_STATUS"


def test_registration_flow_and_notification(client, event_factory, make_user, organizer):
    event = event_factory(maxAttendees=1)
    ana = make_user("ana", name="Ana Alumna")
    ben = make_user("ben")

    registered = client.post(f"/api/events/{event['id']}/register", headers=ana)
    assert registered.status_code == 201
    assert registered.json()["attendanceStatus"] == "registered"

    assert client.post(f"/api/events/{event['id']}/register", headers=ana).json()["code"] == "ALREADY_REGISTERED"
    assert client.post(f"/api/events/{event['id']}/register", headers=ben).json()["code"] == "EVENT_FULL"

    [note] = client.get("/api/notifications", headers=organizer).json()
    assert note["type"] == "event"
    assert note["message"] == "Ana Alumna registered for Alumni Meetup"

    cancelled = client.delete(f"/api/events/{event['id']}/register", headers=ana)
    assert cancelled.json()["message"] == "Registration cancelled successfully"
    assert client.get(f"/api/events/{event['id']}").json()["currentAttendees"] == 0
    assert client.post(f"/api/events/{event['id']}/register", headers=ben).status_code == 201


def test_cannot_shrink_below_attendance(client, event_factory, make_user, organizer):
    event = event_factory(maxAttendees=5)
    client.post(f"/api/events/{event['id']}/register", headers=make_user("ana"))
    client.post(f"/api/events/{event['id']}/register", headers=make_user("ben"))

    response = client.put(f"/api/events/{event['id']}", json={"maxAttendees": 1}, headers=organizer)

    assert response.json()["code"] == "MAX_ATTENDEES_TOO_LOW"


def test_register_rejections(client, event_factory, make_user, db, organizer):
    ana = make_user("ana")
    closed = event_factory()
    client.put(f"/api/events/{closed['id']}", json={"status": "cancelled"}, headers=organizer)
    assert client.post(f"/api/events/{closed['id']}/register", headers=ana).json()["code"] == "INVALID_EVENT_STATUS"

    late = event_factory()
    row = db.get(models.Event, late["id"])
    row.registration_deadline = utcnow() - timedelta(hours=1)
    db.commit()
    assert client.post(f"/api/events/{late['id']}/register", headers=ana).json()["code"] == "DEADLINE_PASSED"

    assert client.delete(f"/api/events/{late['id']}/register", headers=ana).json()["code"] == "REGISTRATION_NOT_FOUND"


def test_attendance_tracking(client, event_factory, make_user, organizer):
    event = event_factory(maxAttendees=1)
    client.post(f"/api/events/{event['id']}/register", headers=make_user("ana", name="Ana"))

    [registrant] = client.get(f"/api/events/{event['id']}/registrations", headers=organizer).json()
    assert registrant["userName"] == "Ana"
    assert registrant["userEmail"] == "ana@example.com"

    url = f"/api/events/{event['id']}/registrations/{registrant['id']}"
    assert client.put(url, json={"attendanceStatus": "cancelled"}, headers=organizer).json()["attendanceStatus"] == "cancelled"
    assert client.get(f"/api/events/{event['id']}").json()["currentAttendees"] == 0

    client.post(f"/api/events/{event['id']}/register", headers=make_user("ben"))
    assert client.put(url, json={"attendanceStatus": "attended"}, headers=organizer).json()["code"] == "EVENT_FULL"

    filtered = client.get(
        f"/api/events/{event['id']}/registrations",
        params={"attendanceStatus": "cancelled"},
        headers=organizer,
    ).json()
    assert [r["userName"] for r in filtered] == ["Ana"]
    assert client.put(url, json={"attendanceStatus": "late"}, headers=organizer).json()["code"] == "INVALID_STATUS"


def test_registrations_are_organizer_only(client, event_factory, make_user):
    event = event_factory()

    response = client.get(f"/api/events/{event['id']}/registrations", headers=make_user("ana"))

    assert response.status_code == 403


def test_delete_event(client, event_factory, organizer, make_user):
    event = event_factory()
    client.post(f"/api/events/{event['id']}/register", headers=make_user("ana"))

    assert client.delete(f"/api/events/{event['id']}", headers=organizer).json() == {
        "message": "Event deleted successfully"
    }
    assert client.get(f"/api/events/{event['id']}").status_code == 404
