from datetime import timedelta

import pytest

from unilink.timeutil import utcnow


@pytest.fixture
def funder(make_user):
    return make_user("fay", name="Fay Funder", role="alumni", company="Infosys")


def _deadline(days=30):
    return (utcnow() + timedelta(days=days)).isoformat()


def _payload(**overrides):
    payload = {
        "title": "Merit Award",
        "description": "For top performers",
        "amount": 50000,
        "eligibilityCriteria": "CGPA above 9",
        "applicationDeadline": _deadline(),
        "category": "merit",
        "academicYear": "2025-26",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def scholarship_factory(client, funder):
    def _create(**overrides):
        response = client.post("/api/scholarships", json=_payload(**overrides), headers=funder)
        assert response.status_code == 201, response.json()
        return response.json()

    return _create


def test_create_defaults(scholarship_factory):
    body = scholarship_factory(requirements="transcript, essay", recurringFrequency="yearly")

    assert body["fundedById"] == "fay"
    assert body["currency"] == "INR"
    assert body["status"] == "active"
    assert body["maxRecipients"] == 1
    assert body["currentRecipients"] == 0
    assert body["requirements"] == ["transcript", "essay"]
    assert body["isRecurring"] is False
    assert body["recurringFrequency"] is None


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"amount": 0}, "INVALID_AMOUNT"),
        ({"category": "chess"}, "INVALID_CATEGORY"),
        ({"status": "open"}, "INVALID_STATUS"),
        ({"applicationDeadline": "2001-01-01T00:00:00"}, "INVALID_DEADLINE"),
        ({"applicationDeadline": "soon"}, "INVALID_APPLICATION_DEADLINE"),
        ({"fundedById": "someone"}, "FUNDED_BY_ID_NOT_ALLOWED"),
        ({"eligibilityCriteria": " "}, "INVALID_ELIGIBILITY_CRITERIA"),
    ],
)
def test_create_validation(client, funder, overrides, code):
    response = client.post("/api/scholarships", json=_payload(**overrides), headers=funder)

    assert response.status_code == 400
    assert response.json()["code"] == code


def test_create_requires_auth_and_known_university(client, funder):
    assert client.post("/api/scholarships", json=_payload()).status_code == 401

    response = client.post("/api/scholarships", json=_payload(universityId=999), headers=funder)
    assert response.status_code == 404
    assert response.json()["code"] == "UNIVERSITY_NOT_FOUND"


def test_list_filters_and_sorting(client, scholarship_factory, university):
    small = scholarship_factory(title="Sports Grant", amount=10000, category="sports")
    large = scholarship_factory(title="Research Fellowship", amount=90000, category="research",
                                universityId=university.id)
    draft = scholarship_factory(title="Arts Draft", category="arts", status="draft")

    def ids(**params):
        return [s["id"] for s in client.get("/api/scholarships", params=params).json()]

    assert ids(sortBy="amount", sortOrder="asc") == [small["id"], large["id"]]
    assert ids(category="research") == [large["id"]]
    assert ids(universityId=university.id) == [large["id"]]
    assert ids(status="draft") == [draft["id"]]
    assert ids(search="fellowship") == [large["id"]]
    assert ids(fundedById="nobody") == []
    assert client.get(f"/api/scholarships/{draft['id']}").json()["title"] == "Arts Draft"
    assert client.get("/api/scholarships/999").json()["code"] == "SCHOLARSHIP_NOT_FOUND"


def test_only_funder_modifies(client, scholarship_factory, make_user):
    created = scholarship_factory()
    intruder = make_user("eve", role="student")

    response = client.put(f"/api/scholarships/{created['id']}", json={"amount": 1}, headers=intruder)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_NOT_FUNDER"
    assert client.delete(f"/api/scholarships/{created['id']}", headers=intruder).status_code == 403


def test_update(client, scholarship_factory, funder):
    created = scholarship_factory(isRecurring=True, recurringFrequency="semester", tags=["stem"])

    updated = client.put(
        f"/api/scholarships/{created['id']}",
        json={"amount": 75000, "status": "closed", "tags": None, "isRecurring": False},
        headers=funder,
    ).json()

    assert updated["amount"] == 75000
    assert updated["status"] == "closed"
    assert updated["tags"] is None
    assert updated["recurringFrequency"] is None

    response = client.put(f"/api/scholarships/{created['id']}", json={"applicationDeadline": "2001-01-01T00:00:00"},
                          headers=funder)
    assert response.json()["code"] == "INVALID_DEADLINE"


def test_delete(client, scholarship_factory, funder):
    created = scholarship_factory()

    assert client.delete(f"/api/scholarships/{created['id']}", headers=funder).json() == {
        "message": "Scholarship Merit Award deleted successfully"
    }
    assert client.get(f"/api/scholarships/{created['id']}").status_code == 404
