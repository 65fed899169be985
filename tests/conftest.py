"""Shared fixtures.

The app is exercised without its lifespan, so no Cassandra or Redis is
needed: services are installed over the in-memory repositories instead.
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Any

import pytest
from fastapi.testclient import TestClient


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="pepyatka-logs-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("REDIS_ENABLED", "false")

from pepyatka.main import app, install_services  # noqa: E402

from .fakes import (  # noqa: E402
    InMemoryCommentRepository,
    InMemoryGroupRepository,
    InMemoryPostRepository,
    InMemoryUserRepository,
)


@dataclass
class Repositories:
    users: InMemoryUserRepository
    groups: InMemoryGroupRepository
    posts: InMemoryPostRepository
    comments: InMemoryCommentRepository


@pytest.fixture
def repos() -> Repositories:
    """Fresh in-memory storage."""
    return Repositories(
        users=InMemoryUserRepository(),
        groups=InMemoryGroupRepository(),
        posts=InMemoryPostRepository(),
        comments=InMemoryCommentRepository(),
    )


@pytest.fixture
def client(repos: Repositories) -> TestClient:
    """TestClient over services backed by `repos`."""
    install_services(
        app,
        users=repos.users,
        groups=repos.groups,
        posts=repos.posts,
        comments=repos.comments,
    )
    return TestClient(app)


class ApiUser:
    """A registered user and their token, with a small request helper."""

    def __init__(self, client: TestClient, username: str, data: dict[str, Any]):
        self.client = client
        self.username = username
        self.id = data["users"]["id"]
        self.token = data["authToken"]

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def get(self, url: str, **kwargs: Any):
        return self.client.get(url, headers=self.headers, **kwargs)

    def post(self, url: str, json: Any = None, **kwargs: Any):
        return self.client.post(url, json=json, headers=self.headers, **kwargs)

    def put(self, url: str, json: Any = None, **kwargs: Any):
        return self.client.put(url, json=json, headers=self.headers, **kwargs)

    def delete(self, url: str, **kwargs: Any):
        return self.client.delete(url, headers=self.headers, **kwargs)

    def create_post(self, body: str, feeds: list[str] | None = None) -> str:
        payload: dict[str, Any] = {"post": {"body": body}}
        if feeds is not None:
            payload["meta"] = {"feeds": feeds}
        response = self.post("/v1/posts", json=payload)
        assert response.status_code == 200, response.text
        return response.json()["posts"]["id"]

    def create_comment(self, post_id: str, body: str) -> str:
        response = self.post(
            "/v1/comments", json={"comment": {"body": body, "postId": post_id}}
        )
        assert response.status_code == 200, response.text
        return response.json()["comments"]["id"]


@pytest.fixture
def register(client: TestClient):
    """Factory registering users through the API."""

    def _register(username: str, password: str = "password") -> ApiUser:
        response = client.post(
            "/v1/users", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.text
        return ApiUser(client, username, response.json())

    return _register
