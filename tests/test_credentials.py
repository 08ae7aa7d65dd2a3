import pytest

from unilink import models


@pytest.fixture
def owner(make_user, university):
    return make_user("ana", role="alumni", university_id=university.id)


@pytest.fixture
def admin(make_user, university):
    return make_user("admin", role="university_admin", university_id=university.id)


def _payload(university_id, **overrides):
    payload = {
        "universityId": university_id,
        "credentialType": "degree",
        "title": "B.Tech Computer Science",
        "issueDate": "2020-06-30",
    }
    payload.update(overrides)
    return payload


def _create(client, headers, university_id, **overrides):
    response = client.post("/api/credentials", json=_payload(university_id, **overrides), headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()


def test_create_uses_university_as_issuer(client, owner, university):
    body = _create(client, owner, university.id, credentialType="Certificate", metadata={"cgpa": 8.7})

    assert body["userId"] == "ana"
    assert body["credentialType"] == "certificate"
    assert body["issuerName"] == "Test University"
    assert body["metadata"] == {"cgpa": 8.7}
    assert body["isVerified"] is False
    assert body["verifiedAt"] is None


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"userId": "ben"}, "USER_ID_NOT_ALLOWED"),
        ({"isVerified": True}, "VERIFICATION_NOT_ALLOWED"),
        ({"credentialType": "badge"}, "INVALID_CREDENTIAL_TYPE"),
        ({"title": "  "}, "INVALID_TITLE"),
        ({"issueDate": "someday"}, "INVALID_ISSUE_DATE"),
        ({"expiryDate": "2019-01-01"}, "INVALID_EXPIRY_DATE"),
        ({"metadata": ["not", "an", "object"]}, "INVALID_METADATA"),
    ],
)
def test_create_validation(client, owner, university, overrides, code):
    response = client.post("/api/credentials", json=_payload(university.id, **overrides), headers=owner)

    assert response.status_code == 400
    assert response.json()["code"] == code


def test_create_requires_title(client, owner, university):
    payload = _payload(university.id)
    del payload["title"]

    assert client.post("/api/credentials", json=payload, headers=owner).json()["code"] == "MISSING_TITLE"


def test_unknown_university(client, owner):
    response = client.post("/api/credentials", json=_payload(999), headers=owner)

    assert response.status_code == 404
    assert response.json()["code"] == "UNIVERSITY_NOT_FOUND"


def test_public_reads_and_filters(client, owner, make_user, university):
    degree = _create(client, owner, university.id)
    _create(client, make_user("ben"), university.id, credentialType="exam", title="GATE 2021")

    assert client.get(f"/api/credentials/{degree['id']}").json()["title"] == "B.Tech Computer Science"
    assert [c["id"] for c in client.get("/api/credentials", params={"userId": "ana"}).json()] == [degree["id"]]
    assert [c["title"] for c in client.get("/api/credentials", params={"credentialType": "exam"}).json()] == [
        "GATE 2021"
    ]
    assert len(client.get("/api/credentials", params={"search": "test univ"}).json()) == 2
    assert client.get("/api/credentials", params={"credentialType": "badge"}).json()["code"] == (
        "INVALID_CREDENTIAL_TYPE"
    )
    assert client.get("/api/credentials/999").json()["code"] == "CREDENTIAL_NOT_FOUND"


def test_only_owner_modifies(client, owner, make_user, university):
    created = _create(client, owner, university.id)
    intruder = make_user("eve", role="student")

    response = client.put(f"/api/credentials/{created['id']}", json={"title": "Forged"}, headers=intruder)
    assert response.status_code == 404
    assert response.json()["code"] == "CREDENTIAL_NOT_FOUND"
    assert client.delete(f"/api/credentials/{created['id']}", headers=intruder).status_code == 404

    updated = client.put(f"/api/credentials/{created['id']}", json={"description": "Honours"}, headers=owner).json()
    assert updated["description"] == "Honours"


def test_admin_verifies_and_notifies_owner(client, owner, admin, university, db):
    created = _create(client, owner, university.id)

    response = client.post(f"/api/credentials/{created['id']}/verify", headers=admin)

    assert response.status_code == 200
    body = response.json()
    assert body["isVerified"] is True
    assert body["verifiedById"] == "admin"
    assert body["verifiedAt"] is not None
    [notification] = db.query(models.Notification).filter_by(user_id="ana").all()
    assert notification.type == "credential"
    assert notification.metadata_ == {"credentialId": created["id"], "credentialTitle": "B.Tech Computer Science"}

    again = client.post(f"/api/credentials/{created['id']}/verify", headers=admin)
    assert again.json()["code"] == "ALREADY_VERIFIED"


def test_verification_is_scoped_to_the_issuing_university(client, owner, make_user, university, db):
    other = models.University(name="Other", domain="other.edu", country="India", tenant_id="other-edu")
    db.add(other)
    db.commit()
    outsider = make_user("outsider", role="university_admin", university_id=other.id)
    created = _create(client, owner, university.id)

    response = client.post(f"/api/credentials/{created['id']}/verify", headers=outsider)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_UNIVERSITY"

    response = client.post(f"/api/credentials/{created['id']}/verify", headers=owner)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_ROLE"
    assert client.get(f"/api/credentials/{created['id']}").json()["isVerified"] is False


def test_editing_withdraws_verification(client, owner, admin, university):
    created = _create(client, owner, university.id)
    client.post(f"/api/credentials/{created['id']}/verify", headers=admin)

    updated = client.put(f"/api/credentials/{created['id']}", json={"title": "M.Tech"}, headers=owner).json()

    assert updated["isVerified"] is False
    assert updated["verifiedById"] is None


def test_exam_result_links_to_own_credential(client, owner, make_user, university):
    credential = _create(client, owner, university.id, credentialType="exam", title="Finals")
    theirs = _create(client, make_user("ben"), university.id, credentialType="exam", title="Finals")
    result = {
        "universityId": university.id,
        "examName": "Finals",
        "subject": "Physics",
        "score": 40,
        "maxScore": 50,
        "examDate": "2024-05-10",
    }

    linked = client.post("/api/exam-results", json={**result, "credentialId": credential["id"]}, headers=owner)
    assert linked.status_code == 201
    assert linked.json()["credentialId"] == credential["id"]

    response = client.post("/api/exam-results", json={**result, "credentialId": theirs["id"]}, headers=owner)
    assert response.status_code == 404
    assert response.json()["code"] == "CREDENTIAL_NOT_FOUND"

    client.delete(f"/api/credentials/{credential['id']}", headers=owner)
    assert client.get(f"/api/exam-results/{linked.json()['id']}", headers=owner).json()["credentialId"] is None
