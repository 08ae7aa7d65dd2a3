from datetime import datetime

import pytest

from unilink import models
from unilink.services.newsletter_content import compose_body, default_title, render_html


def test_default_title():
    assert default_title(datetime(2026, 3, 14)) == "Newsletter for March 2026"


def test_compose_body_embeds_prompt():
    body = compose_body("  Reunion on May 5th  ")

    assert body.startswith("Dear Alumni,")
    assert "\n\nReunion on May 5th\n\n" in body
    assert body.endswith("University Communications Team")


def test_render_html_escapes_and_splits_paragraphs():
    page = render_html("Hello <team>\n\nLine one\nLine two", title="News & Views")

    assert "<title>News &amp; Views</title>" in page
    assert "<p>Hello &lt;team&gt;</p>" in page
    assert "<p>Line one<br>\nLine two</p>" in page
    assert page.startswith("<!DOCTYPE html>")


@pytest.fixture
def admin(make_user, university):
    return make_user("admin", role="university_admin", university_id=university.id)


def _create(client, headers, university_id, **overrides):
    payload = {"universityId": university_id, "title": "Spring Update", "content": "News"}
    payload.update(overrides)
    return client.post("/api/newsletters", json=payload, headers=headers)


def test_create_requires_admin(client, university, make_user):
    response = _create(client, make_user("stu", role="student"), university.id)

    assert response.status_code == 403


def test_create_draft_and_read_publicly(client, admin, university):
    created = _create(client, admin, university.id)

    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "draft"
    assert body["createdBy"] == "admin"
    assert body["recipientCount"] == 0
    assert client.get(f"/api/newsletters/{body['id']}").json()["title"] == "Spring Update"
    assert [n["id"] for n in client.get("/api/newsletters", params={"status": "draft"}).json()] == [body["id"]]


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"createdBy": "someone"}, "CREATED_BY_NOT_ALLOWED"),
        ({"status": "sent"}, "INVALID_STATUS"),
        ({"title": " "}, "INVALID_TITLE"),
        ({"status": "scheduled"}, "MISSING_PUBLISH_DATE"),
    ],
)
def test_create_validation(client, admin, university, overrides, code):
    response = _create(client, admin, university.id, **overrides)

    assert response.status_code == 400
    assert response.json()["code"] == code


def test_unknown_university(client, admin):
    assert _create(client, admin, 999).json()["code"] == "UNIVERSITY_NOT_FOUND"


def test_publishing_counts_recipients(client, admin, university, make_user):
    make_user("ana", role="alumni", university_id=university.id)
    make_user("ben", role="student", university_id=university.id)
    draft = _create(client, admin, university.id).json()

    published = client.put(f"/api/newsletters/{draft['id']}", json={"status": "published"}, headers=admin).json()

    assert published["status"] == "published"
    assert published["recipientCount"] == 3
    assert published["publishDate"] is not None


def test_generate_draft(client, admin, university):
    response = client.post(
        "/api/newsletters/generate",
        json={"universityId": university.id, "aiPrompt": "Alumni meetup in Pune"},
        headers=admin,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    newsletter = body["newsletter"]
    assert newsletter["status"] == "draft"
    assert newsletter["title"].startswith("Newsletter for ")
    assert "Alumni meetup in Pune" in newsletter["content"]
    assert "<p>Alumni meetup in Pune</p>" in newsletter["htmlContent"]
    assert newsletter["aiPrompt"] == "Alumni meetup in Pune"


def test_generate_requires_prompt(client, admin, university):
    response = client.post("/api/newsletters/generate", json={"universityId": university.id, "aiPrompt": ""},
                           headers=admin)

    assert response.json()["code"] == "MISSING_AI_PROMPT"


def test_delete(client, admin, university):
    draft = _create(client, admin, university.id).json()

    assert client.delete(f"/api/newsletters/{draft['id']}", headers=admin).status_code == 200
    assert client.get(f"/api/newsletters/{draft['id']}").json()["code"] == "NEWSLETTER_NOT_FOUND"


def test_admins_only_write_for_their_own_university(client, admin, university, make_user, db):
    other = models.University(name="Other", domain="other.edu", country="India", tenant_id="other-edu")
    db.add(other)
    db.commit()
    outsider = make_user("outsider", role="university_admin", university_id=other.id)
    draft = _create(client, admin, university.id).json()

    response = _create(client, outsider, university.id)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_UNIVERSITY"

    response = client.post(
        "/api/newsletters/generate",
        json={"universityId": university.id, "aiPrompt": "Takeover"},
        headers=outsider,
    )
    assert response.json()["code"] == "FORBIDDEN_UNIVERSITY"

    response = client.put(f"/api/newsletters/{draft['id']}", json={"title": "Hijacked"}, headers=outsider)
    assert response.json()["code"] == "FORBIDDEN_UNIVERSITY"
    assert client.delete(f"/api/newsletters/{draft['id']}", headers=outsider).status_code == 403

    response = client.put(f"/api/newsletters/{draft['id']}", json={"universityId": other.id}, headers=admin)
    assert response.json()["code"] == "FORBIDDEN_UNIVERSITY"
    assert client.get(f"/api/newsletters/{draft['id']}").json()["title"] == "Spring Update"
