import pytest


@pytest.fixture
def people(make_user):
    return (
        make_user("ana", name="Ana", role="student"),
        make_user("ben", name="Ben", role="alumni"),
        make_user("cy", name="Cy", role="alumni"),
    )


def _request(client, headers, recipient, **extra):
    payload = {"recipientId": recipient, "connectionType": "mentorship", **extra}
    return client.post("/api/connections", json=payload, headers=headers)


def test_request_notifies_recipient(client, people):
    ana, ben, _ = people

    response = _request(client, ana, "ben", message="  Would love your advice  ")

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["requesterId"] == "ana"
    assert body["message"] == "Would love your advice"
    assert body["respondedAt"] is None

    [note] = client.get("/api/notifications", headers=ben).json()
    assert note["title"] == "New Connection Request"
    assert note["message"] == "Ana wants to connect with you"


@pytest.mark.parametrize(
    "recipient,extra,code",
    [
        ("ana", {}, "SELF_CONNECTION_NOT_ALLOWED"),
        ("", {}, "MISSING_RECIPIENT_ID"),
        ("ben", {"connectionType": "friendship"}, "INVALID_CONNECTION_TYPE"),
    ],
)
def test_request_validation(client, people, recipient, extra, code):
    response = _request(client, people[0], recipient, **extra)

    assert response.status_code == 400
    assert response.json()["code"] == code


def test_request_rejections(client, people):
    ana, ben, _ = people

    assert _request(client, ana, "ghost").json()["code"] == "USER_NOT_FOUND"
    response = _request(client, ana, "ben", requesterId="cy")
    assert response.status_code == 403
    assert response.json()["code"] == "UNAUTHORIZED_REQUESTER"

    assert _request(client, ana, "ben", requesterId="ana").status_code == 201
    assert _request(client, ana, "ben").json()["code"] == "CONNECTION_ALREADY_EXISTS"
    assert _request(client, ben, "ana").json()["code"] == "CONNECTION_ALREADY_EXISTS"


def test_recipient_accepts(client, people):
    ana, ben, _ = people
    connection = _request(client, ana, "ben").json()

    response = client.put(f"/api/connections/{connection['id']}", json={"status": "accepted"}, headers=ana)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_NOT_RECIPIENT"

    accepted = client.put(f"/api/connections/{connection['id']}", json={"status": "accepted"}, headers=ben).json()
    assert accepted["status"] == "accepted"
    assert accepted["respondedAt"] is not None

    [note] = client.get("/api/notifications", headers=ana).json()
    assert note["title"] == "Connection Request Accepted"
    assert note["message"] == "Ben accepted your connection request"


def test_requester_edits_message(client, people):
    ana, ben, _ = people
    connection = _request(client, ana, "ben", message="Hi").json()

    response = client.put(f"/api/connections/{connection['id']}", json={"message": "Hello"}, headers=ben)
    assert response.json()["code"] == "FORBIDDEN_NOT_REQUESTER"

    edited = client.put(f"/api/connections/{connection['id']}", json={"message": None}, headers=ana).json()
    assert edited["message"] is None
    assert edited["status"] == "pending"


def test_invalid_status(client, people):
    ana, ben, _ = people
    connection = _request(client, ana, "ben").json()

    response = client.put(f"/api/connections/{connection['id']}", json={"status": "blocked"}, headers=ben)

    assert response.json()["code"] == "INVALID_STATUS"


def test_visibility_and_filters(client, people):
    ana, ben, cy = people
    first = _request(client, ana, "ben").json()
    second = _request(client, cy, "ana", connectionType="networking").json()
    client.put(f"/api/connections/{second['id']}", json={"status": "rejected"}, headers=ana)

    assert {c["id"] for c in client.get("/api/connections", headers=ana).json()} == {first["id"], second["id"]}
    assert [c["id"] for c in client.get("/api/connections", headers=ben).json()] == [first["id"]]
    assert [c["id"] for c in client.get("/api/connections", params={"userId": "cy"}, headers=ana).json()] == [
        second["id"]
    ]
    assert [c["id"] for c in client.get("/api/connections", params={"status": "rejected"}, headers=ana).json()] == [
        second["id"]
    ]
    assert [
        c["id"] for c in client.get("/api/connections", params={"connectionType": "mentorship"}, headers=ana).json()
    ] == [first["id"]]
    assert [c["id"] for c in client.get("/api/connections", params={"recipientId": "ana"}, headers=ana).json()] == [
        second["id"]
    ]

    assert client.get(f"/api/connections/{first['id']}", headers=cy).json()["code"] == "CONNECTION_NOT_FOUND"


def test_either_party_deletes(client, people):
    ana, ben, cy = people
    connection = _request(client, ana, "ben").json()

    assert client.delete(f"/api/connections/{connection['id']}", headers=cy).status_code == 404
    assert client.delete(f"/api/connections/{connection['id']}", headers=ben).json() == {
        "message": "Connection deleted successfully"
    }
    assert _request(client, ana, "ben").status_code == 201
