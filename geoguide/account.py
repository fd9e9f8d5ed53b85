"""Linked-account refresh and the popup-to-opener OAuth message channel."""

from __future__ import annotations as _annotations

from typing import Any
from urllib.parse import urlsplit

import logfire

from geoguide.github import GitHubClient, GitHubError
from geoguide.models import LinkedAccountProfile, Repository
from geoguide.state import AppState

OAUTH_SUCCESS_MESSAGE = {"type": "OAUTH_AUTH_SUCCESS", "provider": "github"}
DEV_HOSTS = frozenset({"localhost", "127.0.0.1"})


class OriginAllowList:
    """Origins trusted to send the OAuth completion message."""

    def __init__(self, app_url: str, suffixes: tuple[str, ...] = ()):
        self._app_origin = _origin(app_url)
        self._suffixes = suffixes

    def allows(self, origin: str | None) -> bool:
        if not origin:
            return False
        parts = urlsplit(origin)
        host = (parts.hostname or "").lower()
        if not host or parts.scheme not in ("http", "https"):
            return False
        if _origin(origin) == self._app_origin:
            return True
        if host in DEV_HOSTS:
            return True
        return parts.scheme == "https" and any(
            host.endswith(suffix) for suffix in self._suffixes
        )


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}".lower()


def is_oauth_success(message: Any) -> bool:
    return (
        isinstance(message, dict)
        and message.get("type") == OAUTH_SUCCESS_MESSAGE["type"]
        and message.get("provider") == OAUTH_SUCCESS_MESSAGE["provider"]
    )


async def refresh_account(state: AppState, github: GitHubClient, token: str | None) -> bool:
    """Reload the profile, then the repositories, into `state`.

    Returns True when the profile was fetched. Failures are logged and leave
    whatever was cached before.
    """
    if token is None:
        state.unlink()
        return False
    try:
        profile = LinkedAccountProfile.from_github(await github.get_user(token))
    except GitHubError:
        logfire.warn("Failed to fetch GitHub user")
        return False
    state.account = profile
    try:
        repos = await github.list_repositories(token)
        state.repositories = tuple(Repository.from_github(r) for r in repos)
    except (GitHubError, KeyError, TypeError):
        logfire.warn("Failed to fetch GitHub repos")
    return True


class OAuthMessageChannel:
    """One-shot notification from the OAuth popup to the page that opened it."""

    def __init__(self, allow_list: OriginAllowList, github: GitHubClient):
        self._allow_list = allow_list
        self._github = github

    async def deliver(
        self, state: AppState, origin: str | None, message: Any, token: str | None
    ) -> bool:
        """Refresh the account if the message is trusted. Returns whether it was."""
        if not self._allow_list.allows(origin):
            logfire.warn("Ignored OAuth message from untrusted origin {origin}", origin=origin)
            return False
        if not is_oauth_success(message):
            return False
        await refresh_account(state, self._github, token)
        return True
