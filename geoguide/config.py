"""Runtime settings for the GeoGuide app, read from the environment / `.env`."""

from __future__ import annotations as _annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

SESSION_TTL_SECONDS = 24 * 60 * 60


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    github_client_id: str = ""
    github_client_secret: str = ""
    app_url: str = "http://localhost:3000"
    session_secret: str = "secret"
    secure_cookies: bool = True
    allowed_origin_suffixes: tuple[str, ...] = ()
    host: str = "0.0.0.0"
    port: int = 3000
    session_ttl: int = field(default=SESSION_TTL_SECONDS)

    @property
    def redirect_uri(self) -> str:
        return f"{self.app_url.rstrip('/')}/api/auth/github/callback"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables, loading `.env` first."""
        load_dotenv()
        client_secret = os.getenv("GITHUB_CLIENT_SECRET", "")
        suffixes = os.getenv("ALLOWED_ORIGIN_SUFFIXES", "")
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            github_client_id=os.getenv("GITHUB_CLIENT_ID", ""),
            github_client_secret=client_secret,
            app_url=os.getenv("APP_URL", "http://localhost:3000"),
            session_secret=os.getenv("SESSION_SECRET") or client_secret or "secret",
            secure_cookies=_env_flag("SECURE_COOKIES", True),
            allowed_origin_suffixes=tuple(
                s.strip() for s in suffixes.split(",") if s.strip()
            ),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
        )
