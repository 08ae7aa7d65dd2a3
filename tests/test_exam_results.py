import io
from datetime import date

import pandas as pd
import pytest

from unilink import models
from unilink.errors import ValidationFailed
from unilink.services.exam_results import calculate_grade, validate_row


@pytest.mark.parametrize(
    "score,max_score,grade",
    [(90, 100, "A"), (89, 100, "B"), (40, 50, "B"), (70, 100, "C"), (60, 100, "D"), (59, 100, "F")],
)
def test_calculate_grade(score, max_score, grade):
    assert calculate_grade(score, max_score) == grade


class TestValidateRow:
    ROW = {
        "user_id": "ana",
        "exam_name": "Finals",
        "subject": "Physics",
        "score": "45",
        "max_score": 50.0,
        "exam_date": "2024-05-10",
    }

    def test_valid_row(self):
        fields = validate_row(dict(self.ROW))

        assert fields["score"] == 45
        assert fields["max_score"] == 50
        assert fields["exam_date"] == date(2024, 5, 10)
        assert fields["grade"] == "A"

    def test_explicit_grade_is_kept(self):
        assert validate_row({**self.ROW, "grade": " b+ "})["grade"] == "B+"

    @pytest.mark.parametrize(
        "overrides,code",
        [
            ({"subject": None}, "MISSING_SUBJECT"),
            ({"user_id": " "}, "MISSING_USER_ID"),
            ({"score": "4.5"}, "INVALID_SCORE_TYPE"),
            ({"score": "abc"}, "INVALID_SCORE_TYPE"),
            ({"score": 60}, "INVALID_SCORE"),
            ({"max_score": 0}, "INVALID_SCORE"),
            ({"exam_date": "someday"}, "INVALID_EXAM_DATE"),
        ],
    )
    def test_invalid_rows(self, overrides, code):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_row({**self.ROW, **overrides})
        assert exc_info.value.code == code


@pytest.fixture
def student(make_user, university):
    return make_user("ana", role="student", university_id=university.id)


@pytest.fixture
def admin(make_user, university):
    return make_user("admin", role="university_admin", university_id=university.id)


def _result(university_id, **overrides):
    payload = {
        "universityId": university_id,
        "examName": "Midterm",
        "subject": "Mathematics",
        "score": 72,
        "maxScore": 80,
        "examDate": "2024-03-01",
    }
    payload.update(overrides)
    return payload


def test_create_computes_grade(client, student, university):
    response = client.post("/api/exam-results", json=_result(university.id), headers=student)

    assert response.status_code == 201
    body = response.json()
    assert body["userId"] == "ana"
    assert body["grade"] == "A"
    assert body["isVerified"] is False


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"userId": "ben"}, "USER_ID_NOT_ALLOWED"),
        ({"score": 90}, "INVALID_SCORE"),
        ({"examName": ""}, "INVALID_EXAM_NAME"),
        ({"examDate": "not-a-date"}, "INVALID_EXAM_DATE"),
    ],
)
def test_create_validation(client, student, university, overrides, code):
    response = client.post("/api/exam-results", json=_result(university.id, **overrides), headers=student)

    assert response.status_code == 400
    assert response.json()["code"] == code


def test_only_admin_verifies(client, student, admin, university):
    response = client.post("/api/exam-results", json=_result(university.id, isVerified=True), headers=student)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_ROLE"

    created = client.post("/api/exam-results", json=_result(university.id), headers=student).json()
    verified = client.put(f"/api/exam-results/{created['id']}", json={"isVerified": True}, headers=admin).json()
    assert verified["isVerified"] is True


def test_owner_cannot_unverify_or_preset_verification(client, student, admin, university):
    response = client.post("/api/exam-results", json=_result(university.id, isVerified=False), headers=student)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_ROLE"

    created = client.post("/api/exam-results", json=_result(university.id), headers=student).json()
    client.put(f"/api/exam-results/{created['id']}", json={"isVerified": True}, headers=admin)

    response = client.put(f"/api/exam-results/{created['id']}", json={"isVerified": False}, headers=student)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_ROLE"
    assert client.get(f"/api/exam-results/{created['id']}", headers=student).json()["isVerified"] is True


def test_admin_of_another_university_sees_nothing(client, student, make_user, university, db):
    other = models.University(name="Other", domain="other.edu", country="India", tenant_id="other-edu")
    db.add(other)
    db.commit()
    outsider = make_user("outsider", role="university_admin", university_id=other.id)
    created = client.post("/api/exam-results", json=_result(university.id), headers=student).json()

    response = client.put(f"/api/exam-results/{created['id']}", json={"isVerified": True}, headers=outsider)
    assert response.json()["code"] == "EXAM_RESULT_NOT_FOUND"
    assert client.get("/api/exam-results", params={"userId": "ana"}, headers=outsider).json() == []
    assert client.get(f"/api/exam-results/{created['id']}", headers=student).json()["isVerified"] is False

    response = client.post(
        "/api/exam-results/import",
        files={"file": ("results.csv", CSV.encode(), "text/csv")},
        data={"universityId": str(university.id)},
        headers=outsider,
    )
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_UNIVERSITY"


def test_results_are_private_to_owner(client, student, admin, make_user, university):
    created = client.post("/api/exam-results", json=_result(university.id), headers=student).json()
    ben = make_user("ben", role="student")

    assert client.get(f"/api/exam-results/{created['id']}", headers=ben).json()["code"] == "EXAM_RESULT_NOT_FOUND"
    assert client.get("/api/exam-results", params={"userId": "ana"}, headers=ben).json() == []
    assert [r["id"] for r in client.get("/api/exam-results", headers=student).json()] == [created["id"]]
    assert [r["id"] for r in client.get("/api/exam-results", params={"userId": "ana"}, headers=admin).json()] == [
        created["id"]
    ]


def test_update_recomputes_grade(client, student, university):
    created = client.post("/api/exam-results", json=_result(university.id), headers=student).json()

    updated = client.put(f"/api/exam-results/{created['id']}", json={"score": 40}, headers=student).json()
    assert updated["score"] == 40
    assert updated["grade"] == "F"

    response = client.put(f"/api/exam-results/{created['id']}", json={"maxScore": 30}, headers=student)
    assert response.json()["code"] == "INVALID_SCORE"


def test_delete(client, student, university):
    created = client.post("/api/exam-results", json=_result(university.id), headers=student).json()

    assert client.delete(f"/api/exam-results/{created['id']}", headers=student).json() == {
        "message": "Exam result deleted successfully"
    }
    assert client.get(f"/api/exam-results/{created['id']}", headers=student).status_code == 404


CSV = (
    "User ID,Exam Name,Subject,Score,Max Score,Exam Date,Grade\n"
    "ana,Finals,Physics,45,50,2024-05-10,\n"
    "ghost,Finals,Physics,30,50,2024-05-10,\n"
    "ana,Finals,Chemistry,70,50,2024-05-11,\n"
    "ana,Finals,Biology,33,50,2024-05-12,C\n"
)


def test_import_csv(client, admin, student, university):
    response = client.post(
        "/api/exam-results/import",
        files={"file": ("results.csv", CSV.encode(), "text/csv")},
        data={"universityId": str(university.id)},
        headers=admin,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["totalRows"] == 4
    assert body["imported"] == 2
    assert body["rejected"] == 2
    assert [(e["row"], e["code"]) for e in body["errors"]] == [(2, "USER_NOT_FOUND"), (3, "INVALID_SCORE")]
    assert {r["subject"]: r["grade"] for r in body["results"]} == {"Physics": "A", "Biology": "C"}

    mine = client.get("/api/exam-results", headers=student).json()
    assert len(mine) == 2


def test_import_excel(client, admin, student, university):
    buffer = io.BytesIO()
    pd.DataFrame(
        {
            "userId": ["ana"],
            "examName": ["Finals"],
            "subject": ["History"],
            "score": [80],
            "maxScore": [100],
            "examDate": [pd.Timestamp("2024-06-01")],
        }
    ).to_excel(buffer, index=False, engine="openpyxl")

    response = client.post(
        "/api/exam-results/import",
        files={"file": ("results.xlsx", buffer.getvalue(), "application/octet-stream")},
        data={"universityId": str(university.id)},
        headers=admin,
    )

    assert response.status_code == 201
    [result] = response.json()["results"]
    assert result["examDate"] == "2024-06-01"
    assert result["grade"] == "B"


def test_import_rejections(client, admin, student, university):
    def upload(filename, content, headers=admin):
        return client.post(
            "/api/exam-results/import",
            files={"file": (filename, content, "application/octet-stream")},
            data={"universityId": str(university.id)},
            headers=headers,
        )

    assert upload("results.pdf", b"%PDF").json()["code"] == "UNSUPPORTED_FILE_TYPE"
    assert upload("results.csv", b"user_id,score\n").json()["code"] == "PARSE_ERROR"
    assert upload("results.csv", CSV.encode(), headers=student).status_code == 403
    assert upload("results.xls", b"\xd0\xcf\x11\xe0").json()["code"] == "UNSUPPORTED_FILE_TYPE"


def test_import_keeps_leading_zero_user_ids(client, admin, make_user, university):
    make_user("0042", role="student", university_id=university.id)
    make_user("42", role="student", university_id=university.id)
    content = "user_id,exam_name,subject,score,max_score,exam_date\n0042,Finals,Physics,45,50,2024-05-10\n"

    response = client.post(
        "/api/exam-results/import",
        files={"file": ("results.csv", content.encode(), "text/csv")},
        data={"universityId": str(university.id)},
        headers=admin,
    )

    assert response.status_code == 201
    [result] = response.json()["results"]
    assert result["userId"] == "0042"
    assert result["score"] == 45
