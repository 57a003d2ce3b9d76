"""API tests for posts, likes, comments and views."""
import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.routers import posts as posts_router

pytestmark = pytest.mark.api


@pytest.fixture
def hana(make_user):
    return make_user("hana", "Hana Ito")


@pytest.fixture
def ivan(make_user):
    return make_user("ivan", "Ivan Petrov")


@pytest.fixture
def fake_media(monkeypatch):
    """Stand-in for MinIO: records uploads and deletes, signs keys predictably."""
    calls = {"uploaded": [], "deleted": []}

    def upload(image_base64, image_type):
        key = f"posts/post-test.{image_type}"
        calls["uploaded"].append((image_base64, image_type))
        return key

    monkeypatch.setattr(posts_router, "upload_image", upload)
    monkeypatch.setattr(
        posts_router, "get_presigned_url", lambda key: f"http://media/{key}" if key else None
    )
    monkeypatch.setattr(posts_router, "delete_media", calls["deleted"].append)
    return calls


def create_post(client, user, **body):
    body.setdefault("content", "A post")
    resp = client.post("/api/posts", json=body, headers=user["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()["post"]


class TestCreatePost:
    def test_text_post(self, client, hana) -> None:
        resp = client.post(
            "/api/posts",
            json={"content": "  first!  ", "genre": "Music"},
            headers=hana["headers"],
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Post created successfully"
        post = body["post"]
        assert post["content"] == "first!"
        assert post["genre"] == "Music"
        assert post["userId"] == hana["id"]
        assert post["username"] == "hana"
        assert post["imageUrl"] is None
        assert post["views"] == 0
        assert post["likeCount"] == 0
        assert post["comments"] == []

    def test_image_post_is_uploaded(self, client, hana, fake_media) -> None:
        post = create_post(client, hana, content=None, imageBase64="aGVsbG8=", imageType="png")
        assert fake_media["uploaded"] == [("aGVsbG8=", "png")]
        assert post["imageUrl"] == "http://media/posts/post-test.png"
        assert post["content"] is None

    def test_failed_insert_removes_uploaded_image(
        self, client, hana, fake_media, monkeypatch
    ) -> None:
        async def failing_flush(self, objects=None):
            raise OperationalError("INSERT", {}, Exception("connection lost"))

        monkeypatch.setattr(AsyncSession, "flush", failing_flush)

        resp = client.post(
            "/api/posts",
            json={"imageBase64": "aGVsbG8=", "imageType": "png"},
            headers=hana["headers"],
        )
        assert resp.status_code == 500
        assert resp.json()["error"] == "internal_error"
        assert fake_media["deleted"] == ["posts/post-test.png"]

    def test_image_requires_type(self, client, hana, fake_media) -> None:
        resp = client.post(
            "/api/posts", json={"imageBase64": "aGVsbG8="}, headers=hana["headers"]
        )
        assert resp.status_code == 400
        assert fake_media["uploaded"] == []

    def test_empty_post_is_rejected(self, client, hana) -> None:
        resp = client.post("/api/posts", json={"content": "   "}, headers=hana["headers"])
        assert resp.status_code == 400
        assert resp.json()["message"] == "Post must contain either text or an image"

    def test_unknown_genre_is_rejected(self, client, hana) -> None:
        resp = client.post(
            "/api/posts", json={"content": "x", "genre": "Knitting"}, headers=hana["headers"]
        )
        assert resp.status_code == 400

    def test_requires_authentication(self, client) -> None:
        assert client.post("/api/posts", json={"content": "x"}).status_code == 401


class TestListPosts:
    def test_filters_and_newest_first(self, client, hana, ivan) -> None:
        create_post(client, hana, content="one", genre="Sports")
        create_post(client, ivan, content="two", isPromotion=True, genre="Sports")
        create_post(client, hana, content="three", genre="Food")

        every = client.get("/api/posts").json()
        assert every["count"] == 3
        assert [p["content"] for p in every["posts"]] == ["three", "two", "one"]

        promos = client.get("/api/posts", params={"isPromotion": "true"}).json()
        assert [p["content"] for p in promos["posts"]] == ["two"]

        sports = client.get("/api/posts", params={"genre": "Sports"}).json()
        assert [p["content"] for p in sports["posts"]] == ["two", "one"]

    def test_my_posts(self, client, hana, ivan) -> None:
        create_post(client, hana, content="mine")
        create_post(client, ivan, content="theirs")

        resp = client.get("/api/posts/my-posts", headers=hana["headers"])
        assert [p["content"] for p in resp.json()["posts"]] == ["mine"]

    def test_get_post_is_enveloped(self, client, hana) -> None:
        post = create_post(client, hana, content="solo")

        resp = client.get(f"/api/posts/{post['postId']}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["post"]["content"] == "solo"
        assert body["post"]["createdAt"].endswith("+00:00")

    def test_get_unknown_post(self, client) -> None:
        resp = client.get("/api/posts/missing")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Post not found"


class TestLikes:
    def test_like_toggles(self, client, hana, ivan) -> None:
        post = create_post(client, hana)

        liked = client.post(f"/api/posts/{post['postId']}/like", headers=ivan["headers"]).json()
        assert liked["message"] == "Post liked"
        assert liked["post"]["likeCount"] == 1
        assert liked["post"]["likes"][0]["username"] == "ivan"

        unliked = client.post(f"/api/posts/{post['postId']}/like", headers=ivan["headers"]).json()
        assert unliked["message"] == "Post unliked"
        assert unliked["post"]["likeCount"] == 0


class TestComments:
    def test_add_and_delete_comment(self, client, hana, ivan) -> None:
        post = create_post(client, hana)

        resp = client.post(
            f"/api/posts/{post['postId']}/comment", json={"text": "nice"}, headers=ivan["headers"]
        )
        assert resp.status_code == 200
        (comment,) = resp.json()["post"]["comments"]
        assert comment["text"] == "nice"
        assert comment["username"] == "ivan"

        forbidden = client.delete(
            f"/api/posts/{post['postId']}/comment/{comment['commentId']}",
            headers=hana["headers"],
        )
        assert forbidden.status_code == 403

        resp = client.delete(
            f"/api/posts/{post['postId']}/comment/{comment['commentId']}",
            headers=ivan["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Comment deleted successfully"
        assert resp.json()["post"]["commentCount"] == 0

    def test_blank_comment_is_rejected(self, client, hana) -> None:
        post = create_post(client, hana)
        resp = client.post(
            f"/api/posts/{post['postId']}/comment", json={"text": "  "}, headers=hana["headers"]
        )
        assert resp.status_code == 400

    def test_delete_unknown_comment(self, client, hana) -> None:
        post = create_post(client, hana)
        resp = client.delete(
            f"/api/posts/{post['postId']}/comment/nope", headers=hana["headers"]
        )
        assert resp.status_code == 404


class TestViews:
    def test_view_counted_once_per_user(self, client, hana, ivan) -> None:
        post = create_post(client, hana)
        url = f"/api/posts/{post['postId']}/view"

        first = client.post(url, headers=ivan["headers"]).json()
        second = client.post(url, headers=ivan["headers"]).json()
        other = client.post(url, headers=hana["headers"]).json()

        assert (first["views"], first["message"]) == (1, "View tracked")
        assert (second["views"], second["message"]) == (1, "Already viewed")
        assert other["views"] == 2


class TestDeletePost:
    def test_owner_deletes_post_and_media(self, client, hana, ivan, fake_media) -> None:
        post = create_post(client, hana, imageBase64="aGVsbG8=", imageType="jpg")
        client.post(f"/api/posts/{post['postId']}/like", headers=ivan["headers"])
        client.post(
            f"/api/posts/{post['postId']}/comment", json={"text": "hi"}, headers=ivan["headers"]
        )
        client.post(f"/api/posts/{post['postId']}/view", headers=ivan["headers"])

        resp = client.delete(f"/api/posts/{post['postId']}", headers=hana["headers"])
        assert resp.status_code == 200
        assert resp.json()["message"] == "Post deleted successfully"
        assert fake_media["deleted"] == ["posts/post-test.jpg"]
        assert client.get(f"/api/posts/{post['postId']}").status_code == 404

    def test_only_owner_may_delete(self, client, hana, ivan) -> None:
        post = create_post(client, hana)
        resp = client.delete(f"/api/posts/{post['postId']}", headers=ivan["headers"])
        assert resp.status_code == 403
        assert resp.json()["message"] == "You are not authorized to delete this post"
