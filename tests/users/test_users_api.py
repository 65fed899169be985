"""HTTP tests for accounts, sessions, bans and follows."""

import pytest


@pytest.fixture
def mars(register):
    return register("mars")


@pytest.fixture
def luna(register):
    return register("luna")


class TestRegistration:
    """POST /v1/users and POST /v1/session."""

    def test_register_returns_token(self, client) -> None:
        """A new account comes back with an auth token."""
        response = client.post(
            "/v1/users",
            json={"username": "Mars", "password": "password", "screenName": "M"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["users"]["username"] == "mars"
        assert data["users"]["screenName"] == "M"
        assert data["users"]["type"] == "user"
        assert data["authToken"]

    def test_duplicate_username(self, client, mars) -> None:
        """Usernames are unique."""
        response = client.post(
            "/v1/users", json={"username": "mars", "password": "password"}
        )
        assert response.status_code == 403

    def test_short_password(self, client) -> None:
        """Passwords under the minimum length are rejected."""
        response = client.post("/v1/users", json={"username": "mars", "password": "abc"})
        assert response.status_code == 422

    @pytest.mark.parametrize("username", ["ab", "bad name", "-dash", "x" * 26])
    def test_invalid_username(self, client, username: str) -> None:
        """Usernames are short lowercase slugs."""
        response = client.post(
            "/v1/users", json={"username": username, "password": "password"}
        )
        assert response.status_code == 422

    def test_login(self, client, mars) -> None:
        """Valid credentials open a session usable for whoami."""
        response = client.post(
            "/v1/session", json={"username": "mars", "password": "password"}
        )
        assert response.status_code == 200
        token = response.json()["authToken"]

        me = client.get("/v1/users/whoami", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["users"]["id"] == mars.id

    @pytest.mark.parametrize(
        ("username", "password"), [("mars", "wrong-password"), ("nobody", "password")]
    )
    def test_login_rejected(self, client, mars, username: str, password: str) -> None:
        """Wrong password and unknown user look the same."""
        response = client.post(
            "/v1/session", json={"username": username, "password": password}
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid username or password"


class TestProfile:
    """whoami, profile reads and updates."""

    def test_whoami_requires_auth(self, client) -> None:
        assert client.get("/v1/users/whoami").status_code == 401

    def test_whoami_defaults(self, mars) -> None:
        """A fresh account has no bans, subscriptions or requests."""
        me = mars.get("/v1/users/whoami").json()["users"]

        assert me["username"] == "mars"
        assert me["banIds"] == []
        assert me["subscriptions"] == []
        assert me["pendingGroupRequests"] is False
        assert me["preferences"] == {"hideCommentsOfTypes": []}

    def test_update_profile(self, mars, client) -> None:
        """Screen name and description are editable."""
        response = mars.put(
            "/v1/users/me",
            json={"user": {"screenName": "Red Planet", "description": "fourth"}},
        )
        assert response.status_code == 200

        profile = client.get("/v1/users/mars").json()["users"]
        assert profile["screenName"] == "Red Planet"
        assert profile["description"] == "fourth"
        assert "banIds" not in profile

    def test_hide_preference(self, mars) -> None:
        """Known hide types are stored and echoed by whoami."""
        response = mars.put(
            "/v1/users/me",
            json={"user": {"preferences": {"hideCommentsOfTypes": [2]}}},
        )
        assert response.status_code == 200

        me = mars.get("/v1/users/whoami").json()["users"]
        assert me["preferences"]["hideCommentsOfTypes"] == [2]

    @pytest.mark.parametrize("code", [0, 1, 99])
    def test_unknown_hide_type(self, mars, code: int) -> None:
        """Only real hide reasons can be hidden."""
        response = mars.put(
            "/v1/users/me",
            json={"user": {"preferences": {"hideCommentsOfTypes": [code]}}},
        )
        assert response.status_code == 422

    def test_blank_screen_name(self, mars) -> None:
        response = mars.put("/v1/users/me", json={"user": {"screenName": "   "}})
        assert response.status_code == 422

    def test_unknown_profile(self, client) -> None:
        assert client.get("/v1/users/nobody").status_code == 404


class TestBans:
    """Banning and unbanning."""

    def test_ban_and_unban(self, mars, luna) -> None:
        """Bans show up in whoami until lifted."""
        assert mars.post("/v1/users/luna/ban").status_code == 200
        assert mars.get("/v1/users/whoami").json()["users"]["banIds"] == [luna.id]

        assert mars.post("/v1/users/luna/unban").status_code == 200
        assert mars.get("/v1/users/whoami").json()["users"]["banIds"] == []

    def test_ban_self(self, mars) -> None:
        assert mars.post("/v1/users/mars/ban").status_code == 422

    def test_ban_unknown(self, mars) -> None:
        assert mars.post("/v1/users/nobody/ban").status_code == 404

    def test_ban_requires_auth(self, client, luna) -> None:
        assert client.post("/v1/users/luna/ban").status_code == 401


class TestFollows:
    """Subscribing to users."""

    def test_follow_and_unfollow(self, mars, luna) -> None:
        """Subscriptions are listed in whoami."""
        assert luna.post("/v1/users/mars/subscribe").status_code == 200
        me = luna.get("/v1/users/whoami").json()["users"]
        assert me["subscriptions"] == [mars.id]

        assert luna.post("/v1/users/mars/unsubscribe").status_code == 200
        assert luna.get("/v1/users/whoami").json()["users"]["subscriptions"] == []

    def test_follow_self(self, mars) -> None:
        assert mars.post("/v1/users/mars/subscribe").status_code == 422

    def test_follow_twice(self, mars, luna) -> None:
        """A second subscribe is an invalid operation."""
        assert luna.post("/v1/users/mars/subscribe").status_code == 200
        assert luna.post("/v1/users/mars/subscribe").status_code == 422

    def test_unfollow_without_follow(self, mars, luna) -> None:
        assert luna.post("/v1/users/mars/unsubscribe").status_code == 422

    def test_follow_unknown(self, mars) -> None:
        assert mars.post("/v1/users/nobody/subscribe").status_code == 404
