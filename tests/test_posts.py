import pytest

from unilink.services.posts import extract_mentions


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Congrats @ben and @cy!", ["ben", "cy"]),
        ("@ben @ben again", ["ben"]),
        ("mail me at ana@example.com", []),
        (None, []),
    ],
)
def test_extract_mentions(text, expected):
    assert extract_mentions(text) == expected


@pytest.fixture
def ana(make_user):
    return make_user("ana", name="Ana")


def test_create_post_requires_content_or_media(client, ana):
    response = client.post("/api/posts", json={"content": "   "}, headers=ana)

    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_CONTENT"


def test_media_only_post(client, ana):
    response = client.post("/api/posts", json={"mediaDataUrl": "data:image/png;base64,AAA", "mediaType": "image"},
                           headers=ana)

    assert response.status_code == 201
    assert response.json()["mediaUrl"].startswith("data:image/png")
    assert response.json()["content"] is None


def test_invalid_media_type(client, ana):
    response = client.post("/api/posts", json={"content": "x", "mediaType": "gif"}, headers=ana)

    assert response.json()["code"] == "INVALID_MEDIA_TYPE"


def test_mentions_notify_known_users(client, ana, make_user):
    ben = make_user("ben")

    post = client.post("/api/posts", json={"content": "Welcome @ben, @ana and @ghost"}, headers=ana).json()

    [note] = client.get("/api/notifications", headers=ben).json()
    assert note["type"] == "mention"
    assert note["actionUrl"] == f"/dashboard/posts/{post['id']}"
    assert client.get("/api/notifications", headers=ana).json() == []


def test_feed_likes_and_comments(client, ana, make_user):
    ben = make_user("ben")
    first = client.post("/api/posts", json={"content": "First"}, headers=ana).json()
    second = client.post("/api/posts", json={"content": "Second"}, headers=ben).json()

    assert [p["id"] for p in client.get("/api/posts").json()] == [second["id"], first["id"]]
    assert [p["id"] for p in client.get("/api/posts", params={"userId": "ana"}).json()] == [first["id"]]

    liked = client.post(f"/api/posts/{first['id']}/likes", headers=ben).json()
    assert liked == {"postId": first["id"], "likesCount": 1, "liked": True}
    assert client.post(f"/api/posts/{first['id']}/likes", headers=ben).json()["likesCount"] == 1
    assert client.post(f"/api/posts/{first['id']}/likes", headers=ana).json()["likesCount"] == 2
    assert client.delete(f"/api/posts/{first['id']}/likes", headers=ben).json()["likesCount"] == 1

    comment = client.post(f"/api/posts/{first['id']}/comments", json={"text": "Nice"}, headers=ben)
    assert comment.status_code == 201
    client.post(f"/api/posts/{first['id']}/comments", json={"text": "Thanks"}, headers=ana)
    assert [c["text"] for c in client.get(f"/api/posts/{first['id']}/comments").json()] == ["Nice", "Thanks"]

    body = client.get(f"/api/posts/{first['id']}").json()
    assert body["likesCount"] == 1
    assert body["commentsCount"] == 2


def test_comment_validation_and_missing_post(client, ana):
    post = client.post("/api/posts", json={"content": "Hello"}, headers=ana).json()

    assert client.post(f"/api/posts/{post['id']}/comments", json={"text": ""}, headers=ana).json()["code"] == (
        "MISSING_TEXT"
    )
    assert client.post("/api/posts/999/likes", headers=ana).json()["code"] == "POST_NOT_FOUND"


def test_only_author_deletes(client, ana, make_user):
    post = client.post("/api/posts", json={"content": "Hello"}, headers=ana).json()

    response = client.delete(f"/api/posts/{post['id']}", headers=make_user("ben"))
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_NOT_AUTHOR"

    assert client.delete(f"/api/posts/{post['id']}", headers=ana).status_code == 200
    assert client.get(f"/api/posts/{post['id']}").status_code == 404
