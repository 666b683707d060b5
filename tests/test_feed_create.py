"""Tests for post creation."""

import io

from models import db_session
from models.Posts import Posts
from models.Users import Users


def count_posts():
    db = db_session.create_session()
    try:
        return db.query(Posts).count()
    finally:
        db.close()


class TestCreatePost:
    def test_creates_post_with_creator(self, client, alice, make_post, storage):
        response = make_post(alice, title="Hello feed", content="First content")
        assert response.status_code == 201

        body = response.json()
        assert body["message"] == "Post was created successfully!"
        assert body["creator"] == {"id": alice["id"], "name": "Alice"}
        post = body["post"]
        assert post["title"] == "Hello feed"
        assert post["content"] == "First content"
        assert post["creator"] == alice["id"]
        assert post["imageUrl"].startswith("images/")
        assert post["imageUrl"].endswith("-photo.png")
        assert storage.exists(post["imageUrl"])

    def test_get_returns_created_post(self, client, alice, make_post):
        post_id = make_post(alice, title="T title", content="C content").json()["post"]["id"]

        response = client.get(f"/posts/{post_id}")
        assert response.status_code == 200
        post = response.json()["post"]
        assert post["title"] == "T title"
        assert post["content"] == "C content"
        assert post["creator"] == alice["id"]

    def test_post_is_added_to_users_posts(self, client, alice, make_post):
        first = make_post(alice).json()["post"]["id"]
        second = make_post(alice).json()["post"]["id"]

        db = db_session.create_session()
        try:
            user = db.get(Users, alice["id"])
            assert [post.id for post in user.posts] == [first, second]
        finally:
            db.close()

    def test_publishes_create_event(self, client, alice, make_post, sink):
        post = make_post(alice).json()["post"]

        assert len(sink.events) == 1
        event, payload = sink.events[0]
        assert event == "posts"
        assert payload["action"] == "create"
        assert payload["post"]["id"] == post["id"]
        assert payload["post"]["title"] == post["title"]
        assert payload["post"]["creator"] == {"id": alice["id"], "name": "Alice"}

    def test_empty_title_fails_validation(self, client, alice, make_post, storage, sink):
        response = make_post(alice, title="")
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Validation failed, entered data is incorrect."
        assert [error["field"] for error in body["data"]] == ["title"]
        assert count_posts() == 0
        assert list(storage.root.iterdir()) == []
        assert sink.events == []

    def test_title_is_trimmed_before_length_check(self, client, alice, make_post):
        response = make_post(alice, title="   abc   ")
        assert response.status_code == 422

        response = make_post(alice, title="   Trimmed title   ")
        assert response.status_code == 201
        assert response.json()["post"]["title"] == "Trimmed title"

    def test_short_content_fails_validation(self, client, alice, make_post):
        response = make_post(alice, content="abc")
        assert response.status_code == 422
        assert [error["field"] for error in response.json()["data"]] == ["content"]

    def test_missing_image(self, client, alice, make_post):
        response = make_post(alice, files={})
        assert response.status_code == 422
        assert response.json()["message"] == "No image provided."
        assert count_posts() == 0

    def test_image_locator_is_not_an_upload(self, client, alice):
        response = client.post(
            "/posts",
            data={"title": "A first post", "content": "Some content", "image": "images/existing.png"},
            headers=alice["headers"],
        )
        assert response.status_code == 422
        assert response.json()["message"] == "No image provided."

    def test_rejects_non_image_upload(self, client, alice, make_post, storage):
        files = {"image": ("notes.txt", io.BytesIO(b"plain text"), "text/plain")}
        response = make_post(alice, files=files)
        assert response.status_code == 422
        assert count_posts() == 0
        assert list(storage.root.iterdir()) == []

    def test_requires_authentication(self, client, upload):
        response = client.post("/posts", data={"title": "A first post", "content": "Some content"}, files=upload())
        assert response.status_code == 401
        assert response.json()["message"] == "Not authenticated."
        assert count_posts() == 0
