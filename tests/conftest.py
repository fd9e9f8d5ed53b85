"""Pytest configuration and shared fixtures."""
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
import pytest
from fastapi.testclient import TestClient

from geoguide.app import create_app
from geoguide.assistant import AssistantReply
from geoguide.config import Settings
from geoguide.models import Coordinate


@dataclass
class StubAssistant:
    """Stands in for Gemini: returns a fixed reply or raises."""

    reply: AssistantReply = field(default_factory=lambda: AssistantReply(text="Try the pier."))
    error: Exception | None = None
    calls: list[tuple[str, Coordinate | None]] = field(default_factory=list)

    async def generate(self, prompt: str, location: Coordinate | None = None) -> AssistantReply:
        self.calls.append((prompt, location))
        if self.error is not None:
            raise self.error
        return self.reply


@dataclass
class FakeGitHub:
    """Records every request sent to GitHub and answers from canned data."""

    token: str = "gho_test"
    user: dict = field(default_factory=lambda: {
        "login": "octocat",
        "name": "The Octocat",
        "avatar_url": "https://avatars.example/octocat.png",
    })
    repos: list = field(default_factory=lambda: [
        {"id": i, "name": f"repo-{i}", "html_url": f"https://github.com/octocat/repo-{i}",
         "description": None if i == 2 else f"Repository {i}"}
        for i in range(1, 4)
    ])
    fail_paths: set = field(default_factory=set)
    requests: list = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.fail_paths:
            return httpx.Response(502, json={"message": "upstream down"})
        if path == "/login/oauth/access_token":
            return httpx.Response(200, json={"access_token": self.token, "token_type": "bearer"})
        if path == "/user":
            return httpx.Response(200, json=self.user)
        if path == "/user/repos":
            return httpx.Response(200, json=self.repos)
        return httpx.Response(404, json={"message": "Not Found"})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def settings():
    return Settings(
        gemini_api_key="test-key",
        github_client_id="client-id",
        github_client_secret="client-secret",
        app_url="https://geoguide.example.run.app",
        session_secret="test-secret",
    )


@pytest.fixture
def assistant():
    return StubAssistant()


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def client(settings, assistant, github):
    app = create_app(settings, assistant=assistant, transport=httpx.MockTransport(github.handler))
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client


@pytest.fixture
def link_account(client) -> Callable[[], None]:
    """Run the OAuth handshake through the callback route."""

    def _link():
        url = client.get("/api/auth/github/url").json()["url"]
        state = httpx.URL(url).params["state"]
        response = client.get("/api/auth/github/callback", params={"code": "abc", "state": state})
        assert response.status_code == 200

    return _link


@pytest.fixture
def clock(monkeypatch):
    """Controllable wall clock shared by the session cookie, token store and registry."""
    now = [time.time()]
    monkeypatch.setattr(time, "time", lambda: now[0])
    return now
