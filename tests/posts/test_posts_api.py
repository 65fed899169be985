"""HTTP tests for posts and timelines."""

import pytest


@pytest.fixture
def mars(register):
    return register("mars")


@pytest.fixture
def luna(register):
    return register("luna")


class TestCreatePost:
    """Publishing posts."""

    def test_defaults_to_own_feed(self, mars) -> None:
        """Without feeds the post goes to the author's timeline."""
        response = mars.post("/v1/posts", json={"post": {"body": "  Hello  "}})

        assert response.status_code == 200
        data = response.json()
        assert data["posts"]["body"] == "Hello"
        assert data["posts"]["postedTo"] == [mars.id]
        assert data["posts"]["createdBy"] == mars.id
        assert [u["username"] for u in data["users"]] == ["mars"]

    def test_empty_body_rejected(self, mars) -> None:
        """Whitespace-only posts are a validation error."""
        response = mars.post("/v1/posts", json={"post": {"body": " "}})
        assert response.status_code == 422

    def test_unknown_feed(self, mars) -> None:
        """Posting to a missing feed is 404."""
        response = mars.post(
            "/v1/posts", json={"post": {"body": "hi"}, "meta": {"feeds": ["nowhere"]}}
        )
        assert response.status_code == 404

    def test_other_users_feed(self, mars, luna) -> None:
        """Nobody can post into another user's feed."""
        response = mars.post(
            "/v1/posts", json={"post": {"body": "hi"}, "meta": {"feeds": ["luna"]}}
        )
        assert response.status_code == 403

    def test_non_member_group(self, mars, luna) -> None:
        """Posting to a group requires membership."""
        luna.post("/v1/groups", json={"group": {"username": "open-group"}})
        response = mars.post(
            "/v1/posts",
            json={"post": {"body": "hi"}, "meta": {"feeds": ["open-group"]}},
        )
        assert response.status_code == 403

        assert mars.post("/v1/users/open-group/subscribe").status_code == 200
        response = mars.post(
            "/v1/posts",
            json={"post": {"body": "hi"}, "meta": {"feeds": ["open-group", "mars"]}},
        )
        assert response.status_code == 200
        assert len(response.json()["posts"]["postedTo"]) == 2

    def test_requires_auth(self, client) -> None:
        """Anonymous posting is 401."""
        response = client.post("/v1/posts", json={"post": {"body": "hi"}})
        assert response.status_code == 401

    def test_invalid_token(self, client) -> None:
        """A malformed token is 401 even on public routes."""
        response = client.get(
            "/v2/timelines/anyone", headers={"Authorization": "Bearer garbage"}
        )
        assert response.status_code == 401


class TestDeletePost:
    """Removing posts."""

    def test_author_deletes(self, mars) -> None:
        """The author can delete; the post is gone afterwards."""
        post_id = mars.create_post("bye")
        assert mars.delete(f"/v1/posts/{post_id}").status_code == 200
        assert mars.get(f"/v2/posts/{post_id}").status_code == 404
        assert "posts" not in mars.get("/v2/timelines/mars").json()

    def test_others_cannot_delete(self, mars, luna) -> None:
        """Only the author can delete."""
        post_id = mars.create_post("mine")
        assert luna.delete(f"/v1/posts/{post_id}").status_code == 403


class TestTimelines:
    """Home and Posts timelines."""

    def test_home_includes_followed_users(self, mars, luna) -> None:
        """RiverOfNews merges own posts with followed users, newest first."""
        first = mars.create_post("first")
        second = luna.create_post("second")
        assert luna.post("/v1/users/mars/subscribe").status_code == 200

        data = luna.get("/v2/timelines/home").json()

        assert data["timelines"]["name"] == "RiverOfNews"
        assert data["timelines"]["posts"] == [second, first]
        assert {u["username"] for u in data["users"]} == {"mars", "luna"}

    def test_unfollow(self, mars, luna) -> None:
        """Unfollowing removes the user's posts from home."""
        mars.create_post("first")
        luna.post("/v1/users/mars/subscribe")
        assert luna.post("/v1/users/mars/unsubscribe").status_code == 200
        assert "posts" not in luna.get("/v2/timelines/home").json()

    def test_home_skips_banned_authors(self, mars, luna) -> None:
        """Posts by banned users are left out of home."""
        mars.create_post("first")
        luna.post("/v1/users/mars/subscribe")
        luna.post("/v1/users/mars/ban")

        assert "posts" not in luna.get("/v2/timelines/home").json()

        luna.post("/v1/users/mars/unban")
        assert len(luna.get("/v2/timelines/home").json()["posts"]) == 1

    def test_home_requires_auth(self, client) -> None:
        """Home has no anonymous version."""
        assert client.get("/v1/timelines/home").status_code == 401

    def test_user_timeline_anonymous(self, mars, client) -> None:
        """Anyone can read a user's Posts timeline."""
        mars.create_post("public")
        data = client.get("/v1/timelines/mars").json()
        assert data["timelines"]["name"] == "Posts"
        assert data["timelines"]["id"] == mars.id
        assert len(data["posts"]) == 1

    def test_unknown_timeline(self, client) -> None:
        """Missing accounts have no timeline."""
        assert client.get("/v1/timelines/nobody").status_code == 404

    def test_pagination(self, mars) -> None:
        """offset/limit slice the timeline newest first."""
        ids = [mars.create_post(f"post {i}") for i in range(5)]

        page = mars.get("/v2/timelines/mars", params={"offset": 1, "limit": 2}).json()

        assert page["timelines"]["posts"] == [ids[3], ids[2]]

    def test_private_group_post_hidden(self, mars, luna) -> None:
        """Posts only in a private group are hidden from outsiders."""
        luna.post(
            "/v1/groups", json={"group": {"username": "secret", "isPrivate": True}}
        )
        post_id = luna.create_post("psst", feeds=["secret"])

        assert mars.get(f"/v2/posts/{post_id}").status_code == 403
        assert luna.get(f"/v2/posts/{post_id}").status_code == 200

    def test_pagination_skips_banned_in_shared_feed(self, mars, luna, register) -> None:
        """Banned authors in a group feed don't push other posts off a page."""
        venus = register("venus")
        mars.post("/v1/groups", json={"group": {"username": "open-group"}})
        venus.post("/v1/users/open-group/subscribe")
        luna.post("/v1/users/open-group/subscribe")

        own = luna.create_post("own")
        from_mars = mars.create_post("from mars", feeds=["open-group"])
        venus.create_post("from venus", feeds=["open-group"])
        assert luna.post("/v1/users/venus/ban").status_code == 200

        full = luna.get("/v2/timelines/home").json()["timelines"]["posts"]
        assert full == [from_mars, own]

        pages = [
            luna.get("/v2/timelines/home", params={"offset": i, "limit": 1}).json()
            for i in range(2)
        ]
        assert [page["timelines"]["posts"] for page in pages] == [[from_mars], [own]]
