import pytest

from unilink import models


def _recommend(client, headers, type_, **params):
    return client.get("/api/recommendations", params={"type": type_, **params}, headers=headers)


def test_type_is_required(client, make_user):
    headers = make_user("ana", role="student")

    missing = client.get("/api/recommendations", headers=headers)
    assert missing.status_code == 400
    assert missing.json()["code"] == "MISSING_TYPE"
    assert _recommend(client, headers, "friends").json()["code"] == "INVALID_TYPE"


def test_requires_auth(client):
    assert client.get("/api/recommendations", params={"type": "jobs"}).status_code == 401


@pytest.fixture
def student(make_user, university):
    return make_user(
        "ana",
        role="student",
        university_id=university.id,
        major="Computer Science",
        location="Bengaluru",
        graduation_year=2024,
        skills=["python", "docker"],
    )


def test_job_recommendations(client, db, student, university, make_user):
    make_user("pat", role="alumni")
    db.add_all([
        models.JobPosting(
            title="Platform Engineer", description="d", company="Acme", location="Bengaluru",
            job_type="full-time", experience_level="entry", requirements="r", posted_by_id="pat",
            university_id=university.id, skills=["Python", "Docker", "Kubernetes", "Go"],
        ),
        models.JobPosting(
            title="Remote Writer", description="d", company="Ink", location="Delhi",
            job_type="contract", experience_level="mid", requirements="r", posted_by_id="pat",
            is_remote=True, skills=["Copywriting"],
        ),
        models.JobPosting(
            title="Closed Role", description="d", company="Acme", location="Bengaluru",
            job_type="full-time", experience_level="entry", requirements="r", posted_by_id="pat",
            status="closed", skills=["python"],
        ),
        models.JobPosting(
            title="Onsite Sales", description="d", company="Shop", location="Mumbai",
            job_type="part-time", experience_level="entry", requirements="r", posted_by_id="pat",
        ),
    ])
    db.commit()
    ids = {job.title: str(job.id) for job in db.query(models.JobPosting)}

    body = _recommend(client, student, "jobs").json()

    assert body["type"] == "jobs"
    assert body["userId"] == "ana"
    assert body["count"] == 2
    first, second = body["recommendations"]
    # 2 of 4 skills (20) + location (30) + university (20) + full-time (10)
    assert first == {
        "id": ids["Platform Engineer"],
        "score": 80,
        "reasons": ["2 matching skills", "Location matches", "Same university", "Full-time position"],
        "matchType": "job",
    }
    assert second["id"] == ids["Remote Writer"]
    assert second["score"] == 30
    assert second["reasons"] == ["Remote work available"]


def test_own_postings_are_not_recommended(client, db, student):
    db.add(models.JobPosting(
        title="My Startup", description="d", company="Mine", location="Bengaluru",
        job_type="full-time", experience_level="entry", requirements="r", posted_by_id="ana",
    ))
    db.commit()

    assert _recommend(client, student, "jobs").json()["recommendations"] == []


def test_mentor_recommendations(client, student, university, make_user):
    make_user("meera", role="alumni", university_id=university.id, major="Computer Science",
              company="Infosys", graduation_year=2016)
    make_user("raj", role="alumni", graduation_year=2010, company="TCS")
    make_user("sam", role="student", university_id=university.id, major="Computer Science")

    body = _recommend(client, student, "mentors").json()

    assert [(r["id"], r["score"]) for r in body["recommendations"]] == [("meera", 100)]
    assert body["recommendations"][0]["reasons"] == [
        "Same university alumni",
        "Same field of study",
        "Works at Infosys",
        "Recent graduate",
    ]


def test_connection_recommendations(client, student, university, make_user):
    make_user("ben", role="alumni", university_id=university.id, location="Bengaluru", graduation_year=2023)
    make_user("cy", role="student", university_id=university.id, graduation_year=2030)
    make_user("dee", role="alumni", location="Pune")
    make_user("eli")

    body = _recommend(client, student, "connections").json()

    assert [(r["id"], r["score"]) for r in body["recommendations"]] == [("ben", 75), ("cy", 30)]
    assert body["recommendations"][0]["reasons"] == ["Same university", "Same location", "Similar graduation year"]
    assert all(r["matchType"] == "connection" for r in body["recommendations"])


def test_limit_is_applied(client, student, university, make_user):
    for name in ("u1", "u2", "u3"):
        make_user(name, role="alumni", university_id=university.id)

    body = _recommend(client, student, "connections", limit=2).json()

    assert body["count"] == 2


def test_user_without_profile_gets_no_matches(client, make_user, university):
    headers = make_user("ghost")
    make_user("ben", role="alumni", university_id=university.id, location="Bengaluru")

    assert _recommend(client, headers, "connections").json()["recommendations"] == []
