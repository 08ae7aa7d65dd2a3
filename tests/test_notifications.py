import pytest


@pytest.fixture
def users(make_user):
    return make_user("ana", role="alumni"), make_user("ben", role="student")


def _notify(client, headers, user_id, **overrides):
    payload = {"userId": user_id, "type": "event", "title": "Reminder", "message": "Meetup tomorrow"}
    payload.update(overrides)
    return client.post("/api/notifications", json=payload, headers=headers)


def test_create_and_list(client, users):
    ana, ben = users

    created = _notify(client, ana, "ben", metadata={"eventId": 3})
    assert created.status_code == 201
    assert created.json()["metadata"] == {"eventId": 3}
    assert created.json()["isRead"] is False

    assert [n["title"] for n in client.get("/api/notifications", headers=ben).json()] == ["Reminder"]
    assert client.get("/api/notifications", headers=ana).json() == []


def test_invalid_type(client, users):
    response = _notify(client, users[0], "ben", type="party")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_TYPE"


def test_unknown_recipient(client, users):
    response = _notify(client, users[0], "ghost")

    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


def test_read_state_and_counts(client, users):
    ana, ben = users
    first = _notify(client, ana, "ben").json()
    _notify(client, ana, "ben", type="message")

    assert client.get("/api/notifications/unread-count", headers=ben).json() == {"unreadCount": 2}

    marked = client.put(f"/api/notifications/{first['id']}", headers=ben).json()
    assert marked["isRead"] is True
    assert marked["readAt"] is not None
    assert client.get("/api/notifications", params={"isRead": "false"}, headers=ben).json()[0]["type"] == "message"

    unmarked = client.put(f"/api/notifications/{first['id']}", params={"action": "mark-unread"}, headers=ben).json()
    assert unmarked["isRead"] is False
    assert unmarked["readAt"] is None

    result = client.put("/api/notifications/read-all", headers=ben).json()
    assert result["updated"] == 2
    assert client.get("/api/notifications/unread-count", headers=ben).json() == {"unreadCount": 0}


def test_other_users_notifications_are_hidden(client, users):
    ana, ben = users
    note = _notify(client, ana, "ben").json()

    assert client.put(f"/api/notifications/{note['id']}", headers=ana).status_code == 404
    response = client.delete(f"/api/notifications/{note['id']}", headers=ana)
    assert response.json()["code"] == "NOTIFICATION_NOT_FOUND"

    assert client.delete(f"/api/notifications/{note['id']}", headers=ben).status_code == 200
    assert client.get("/api/notifications", headers=ben).json() == []
