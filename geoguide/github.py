"""GitHub OAuth handshake and the two REST reads made on the user's behalf."""

from __future__ import annotations as _annotations

from typing import Any
from urllib.parse import urlencode

import httpx
import logfire

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
API_URL = "https://api.github.com"
SCOPES = "read:user repo"
MAX_REPOSITORIES = 5


class GitHubError(Exception):
    """The OAuth exchange or an API call to GitHub failed."""


class GitHubClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ):
        self._http = http
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri

    def authorize_url(self, state: str) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "scope": SCOPES,
            "state": state,
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        """Trade an authorization code for an access token."""
        try:
            response = await self._http.post(
                ACCESS_TOKEN_URL,
                json={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "code": code,
                },
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GitHubError(f"token exchange failed: {e}") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            # GitHub answers 200 with an error body for bad or reused codes
            raise GitHubError(f"token exchange failed: {data.get('error', 'no access_token')}")
        return token

    async def _get(self, path: str, token: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._http.get(
                f"{API_URL}{path}",
                params=params,
                headers={
                    "Authorization": f"token {token}",
                    "Accept": "application/vnd.github+json",
                },
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logfire.warn("GitHub request {path} failed: {error}", path=path, error=str(e))
            raise GitHubError(f"GET {path} failed: {e}") from e

    async def get_user(self, token: str) -> dict[str, Any]:
        return await self._get("/user", token)

    async def list_repositories(self, token: str) -> list[dict[str, Any]]:
        """Most recently updated repositories first, at most five."""
        repos = await self._get(
            "/user/repos", token, params={"sort": "updated", "per_page": MAX_REPOSITORIES}
        )
        return list(repos)[:MAX_REPOSITORIES]
