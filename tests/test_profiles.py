from unilink import models


def test_upsert_creates_then_updates(client, make_user, university):
    headers = make_user("ana")

    created = client.post(
        "/api/profiles",
        json={"role": "Alumni", "universityId": university.id, "skills": "python, sql ,", "graduationYear": 2019},
        headers=headers,
    )
    assert created.status_code == 201
    body = created.json()
    assert body["role"] == "alumni"
    assert body["skills"] == ["python", "sql"]
    assert body["verificationStatus"] == "pending"
    assert body["isVerified"] is False

    updated = client.post("/api/profiles", json={"role": "alumni", "company": "Infosys"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["id"] == body["id"]
    assert updated.json()["company"] == "Infosys"
    assert updated.json()["graduationYear"] == 2019


def test_upsert_validation(client, make_user):
    headers = make_user("ana")

    assert client.post("/api/profiles", json={}, headers=headers).json()["code"] == "MISSING_ROLE"
    assert client.post("/api/profiles", json={"role": "dean"}, headers=headers).json()["code"] == "INVALID_ROLE"
    response = client.post("/api/profiles", json={"role": "student", "skills": [1, 2]}, headers=headers)
    assert response.json()["code"] == "INVALID_SKILLS_FORMAT"
    response = client.post("/api/profiles", json={"role": "student", "verificationStatus": "approved"}, headers=headers)
    assert response.json()["code"] == "INVALID_VERIFICATION_STATUS"


def test_upsert_unknown_university(client, make_user):
    headers = make_user("ana")

    response = client.post("/api/profiles", json={"role": "student", "universityId": 42}, headers=headers)

    assert response.status_code == 404
    assert response.json()["code"] == "UNIVERSITY_NOT_FOUND"


def test_public_reads(client, make_user, university):
    make_user("ana", role="alumni", university_id=university.id, company="Wipro")
    make_user("ben", role="student", university_id=university.id)

    by_user = client.get("/api/profiles/by-user/ana").json()
    assert by_user["company"] == "Wipro"
    assert client.get(f"/api/profiles/{by_user['id']}").json()["userId"] == "ana"
    assert [p["userId"] for p in client.get("/api/profiles", params={"role": "STUDENT"}).json()] == ["ben"]
    assert [p["userId"] for p in client.get("/api/profiles", params={"search": "wipro"}).json()] == ["ana"]
    assert client.get("/api/profiles/by-user/nobody").json()["code"] == "PROFILE_NOT_FOUND"


def test_only_owner_may_modify(client, make_user):
    make_user("ana", role="alumni")
    intruder = make_user("eve", role="student")
    profile_id = client.get("/api/profiles/by-user/ana").json()["id"]

    response = client.put(f"/api/profiles/{profile_id}", json={"bio": "hacked"}, headers=intruder)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_NOT_OWNER"
    assert client.delete(f"/api/profiles/{profile_id}", headers=intruder).status_code == 403


def test_update_can_clear_fields(client, make_user):
    headers = make_user("ana", role="alumni", company="TCS", bio="Hello")
    profile_id = client.get("/api/profiles/by-user/ana").json()["id"]

    body = client.put(f"/api/profiles/{profile_id}", json={"company": None, "bio": "Hi"}, headers=headers).json()

    assert body["company"] is None
    assert body["bio"] == "Hi"
    assert body["role"] == "alumni"


def test_delete_own_profile(client, make_user):
    headers = make_user("ana", role="alumni")
    profile_id = client.get("/api/profiles/by-user/ana").json()["id"]

    assert client.delete(f"/api/profiles/{profile_id}", headers=headers).json() == {
        "message": "Profile deleted successfully"
    }
    assert client.get(f"/api/profiles/{profile_id}").status_code == 404


def test_cannot_self_assign_admin_role(client, make_user, university):
    headers = make_user("eve")

    response = client.post(
        "/api/profiles",
        json={"role": "university_admin", "universityId": university.id},
        headers=headers,
    )

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_ROLE"
    assert client.get("/api/profiles/by-user/eve").json()["code"] == "PROFILE_NOT_FOUND"


def test_cannot_escalate_existing_profile(client, make_user):
    headers = make_user("eve", role="student")
    profile_id = client.get("/api/profiles/by-user/eve").json()["id"]

    response = client.put(f"/api/profiles/{profile_id}", json={"role": "University_Admin"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_ROLE"

    response = client.post("/api/profiles", json={"role": "university_admin"}, headers=headers)
    assert response.json()["code"] == "FORBIDDEN_ROLE"
    assert client.get(f"/api/profiles/{profile_id}").json()["role"] == "student"


def test_cannot_self_verify(client, make_user):
    headers = make_user("eve", role="alumni")
    profile_id = client.get("/api/profiles/by-user/eve").json()["id"]

    response = client.put(
        f"/api/profiles/{profile_id}",
        json={"isVerified": True, "verificationStatus": "verified"},
        headers=headers,
    )

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_ROLE"
    assert client.get(f"/api/profiles/{profile_id}").json()["isVerified"] is False

    response = client.put(f"/api/profiles/{profile_id}", json={"isVerified": False}, headers=headers)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_ROLE"


def test_admin_keeps_role_but_cannot_switch_university(client, make_user, university, db):
    other = models.University(name="Other", domain="other.edu", country="India", tenant_id="other-edu")
    db.add(other)
    db.commit()
    headers = make_user("admin", role="university_admin", university_id=university.id)
    profile_id = client.get("/api/profiles/by-user/admin").json()["id"]

    response = client.put(f"/api/profiles/{profile_id}", json={"role": "university_admin", "bio": "Registrar"},
                          headers=headers)
    assert response.status_code == 200
    assert response.json()["bio"] == "Registrar"

    response = client.put(f"/api/profiles/{profile_id}", json={"universityId": other.id}, headers=headers)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_UNIVERSITY"
