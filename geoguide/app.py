"""GeoGuide: a map-grounded chat app built with FastAPI.

Run with:
    uv run python -m geoguide.app
"""

from __future__ import annotations as _annotations

import json
import secrets
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Any

import fastapi
import httpx
import logfire
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel
from starlette.middleware.sessions import SessionMiddleware

from geoguide.account import OAuthMessageChannel, OriginAllowList, refresh_account
from geoguide.assistant import Assistant, GeminiMapsAssistant
from geoguide.config import Settings
from geoguide.github import GitHubClient, GitHubError
from geoguide.mapview import CLICK_ZOOM, MapView, MapViewport
from geoguide.models import Coordinate
from geoguide.orchestrator import ChatBusyError, ChatOrchestrator
from geoguide.session import (
    SESSION_ID_KEY,
    abandon_authorization,
    begin_authorization,
    link_status,
    load_token,
    pending_state,
    store_token,
)
from geoguide.state import AppState, SessionRegistry
from geoguide.utils import account_payload, to_ndjson

# Configure logging
logfire.configure(send_to_logfire="if-token-present")
logfire.instrument_httpx()

THIS_DIR = Path(__file__).parent

map_view = MapView()

CALLBACK_PAGE = """<html>
  <body>
    <script>
      if (window.opener) {{
        window.opener.postMessage({message}, {target_origin});
        window.close();
      }} else {{
        window.location.href = '/';
      }}
    </script>
    <p>GitHub connected successfully. This window should close automatically.</p>
  </body>
</html>
"""


class PointIn(BaseModel):
    latitude: float
    longitude: float


class OAuthMessageIn(BaseModel):
    origin: str | None = None
    message: Any = None


router = APIRouter()


async def get_settings(request: Request) -> Settings:
    """Dependency to get the app settings."""
    return request.state.settings


async def get_registry(request: Request) -> SessionRegistry:
    """Dependency to get the per-session state registry."""
    return request.state.registry


async def get_assistant(request: Request) -> Assistant:
    """Dependency to get the Gemini assistant."""
    return request.state.assistant


async def get_github(request: Request) -> GitHubClient:
    """Dependency to get the GitHub client."""
    return request.state.github


async def get_channel(request: Request) -> OAuthMessageChannel:
    """Dependency to get the OAuth message channel."""
    return request.state.channel


async def get_app_state(
    request: Request, registry: SessionRegistry = Depends(get_registry)
) -> AppState:
    """Dependency to get the AppState of the caller's browser session.

    Cached account data is dropped once the session no longer holds a token.
    """
    session_id = request.session.get(SESSION_ID_KEY)
    if not session_id:
        session_id = registry.new_id()
        request.session[SESSION_ID_KEY] = session_id
    state = registry.get(session_id)
    if load_token(request.session) is None:
        state.unlink()
    return state


def _coordinate(point: PointIn) -> Coordinate:
    try:
        return Coordinate(point.latitude, point.longitude)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.get("/")
async def index() -> FileResponse:
    """Serve the main chat interface."""
    return FileResponse((THIS_DIR / "chat_app.html"), media_type="text/html")


@router.get("/chat_app.js")
async def main_js() -> FileResponse:
    """Serve the page script."""
    return FileResponse((THIS_DIR / "chat_app.js"), media_type="text/javascript")


@router.get("/chat/")
async def get_chat(state: AppState = Depends(get_app_state)) -> Response:
    """Get all chat messages."""
    return Response(to_ndjson(state.transcript), media_type="text/plain")


@router.post("/chat/")
async def post_chat(
    prompt: Annotated[str, fastapi.Form()] = "",
    state: AppState = Depends(get_app_state),
    assistant: Assistant = Depends(get_assistant),
) -> Response:
    """Handle a new chat message, returning the user and model turns it produced."""
    start = len(state.transcript)
    try:
        turn = await ChatOrchestrator(state, assistant).submit(prompt)
    except ChatBusyError:
        return JSONResponse({"error": "A request is already in progress"}, status_code=409)
    if turn is None:
        return JSONResponse({"error": "Empty prompt"}, status_code=400)
    return Response(to_ndjson(state.transcript.snapshot()[start:]), media_type="text/plain")


@router.post("/location")
async def set_location(point: PointIn, state: AppState = Depends(get_app_state)) -> MapViewport:
    """Record the one-shot device location and center the map on it."""
    state.set_location(_coordinate(point))
    return map_view.render(state.view)


@router.get("/map/view")
async def get_view(state: AppState = Depends(get_app_state)) -> MapViewport:
    """Get the current map viewport."""
    return map_view.render(state.view)


@router.post("/map/click")
async def map_click(point: PointIn, state: AppState = Depends(get_app_state)) -> MapViewport:
    """Recenter on the clicked point at street-level zoom."""
    def recenter(latitude: float, longitude: float) -> None:
        state.view = state.view.recentered(Coordinate(latitude, longitude), CLICK_ZOOM)

    try:
        MapView(on_user_click=recenter).click(point.latitude, point.longitude)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return map_view.render(state.view)


@router.post("/map/zoom-in")
async def zoom_in(state: AppState = Depends(get_app_state)) -> MapViewport:
    """Zoom in one level, stopping at the maximum."""
    state.view = state.view.zoomed(1)
    return map_view.render(state.view)


@router.post("/map/zoom-out")
async def zoom_out(state: AppState = Depends(get_app_state)) -> MapViewport:
    """Zoom out one level, stopping at the minimum."""
    state.view = state.view.zoomed(-1)
    return map_view.render(state.view)


@router.post("/map/recenter")
async def recenter_on_device(state: AppState = Depends(get_app_state)) -> MapViewport:
    """Move the map back to the device location, if known."""
    if state.location is not None:
        state.view = state.view.recentered(state.location)
    return map_view.render(state.view)


@router.get("/account")
async def get_account(request: Request, state: AppState = Depends(get_app_state)) -> dict:
    """Get the link status and the cached GitHub account."""
    status = link_status(request.session)
    return {"status": status.value, **account_payload(state.account, state.repositories)}


@router.post("/account/refresh")
async def refresh(
    request: Request,
    state: AppState = Depends(get_app_state),
    github: GitHubClient = Depends(get_github),
) -> dict:
    """Reload the linked account, e.g. on page load."""
    await refresh_account(state, github, load_token(request.session))
    status = link_status(request.session)
    return {"status": status.value, **account_payload(state.account, state.repositories)}


@router.post("/account/notify")
async def notify(
    body: OAuthMessageIn,
    request: Request,
    state: AppState = Depends(get_app_state),
    channel: OAuthMessageChannel = Depends(get_channel),
) -> dict:
    """Forwarded cross-window message from the OAuth popup."""
    accepted = await channel.deliver(
        state, body.origin, body.message, load_token(request.session)
    )
    return {"accepted": accepted, **account_payload(state.account, state.repositories)}


@router.get("/api/auth/github/url")
async def github_auth_url(request: Request, github: GitHubClient = Depends(get_github)) -> dict:
    """Build the GitHub authorization URL for the popup."""
    state = secrets.token_urlsafe(16)
    begin_authorization(request.session, state)
    return {"url": github.authorize_url(state)}


@router.get("/api/auth/github/callback")
async def github_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    github: GitHubClient = Depends(get_github),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Exchange the authorization code and store the token in the session."""
    if not code:
        abandon_authorization(request.session)
        return PlainTextResponse("No code provided", status_code=400)
    expected = pending_state(request.session)
    if not expected or not secrets.compare_digest(state or "", expected):
        abandon_authorization(request.session)
        return PlainTextResponse("Invalid state", status_code=400)

    try:
        token = await github.exchange_code(code)
    except GitHubError:
        logfire.exception("GitHub OAuth error")
        abandon_authorization(request.session)
        return PlainTextResponse("Authentication failed", status_code=500)

    store_token(request.session, token)
    logfire.info("GitHub account linked")
    page = CALLBACK_PAGE.format(
        message=json.dumps({"type": "OAUTH_AUTH_SUCCESS", "provider": "github"}),
        target_origin=json.dumps(settings.app_url.rstrip("/") or "*"),
    )
    return HTMLResponse(page)


@router.get("/api/github/user")
async def github_user(request: Request, github: GitHubClient = Depends(get_github)) -> Any:
    """Proxy the linked user's GitHub profile."""
    token = load_token(request.session)
    if token is None:
        return JSONResponse({"error": "Not authenticated"}, status_code=401)
    try:
        return await github.get_user(token)
    except GitHubError:
        return JSONResponse({"error": "Failed to fetch GitHub user"}, status_code=500)


@router.get("/api/github/repos")
async def github_repos(request: Request, github: GitHubClient = Depends(get_github)) -> Any:
    """Proxy the linked user's most recently updated repositories."""
    token = load_token(request.session)
    if token is None:
        return JSONResponse({"error": "Not authenticated"}, status_code=401)
    try:
        return await github.list_repositories(token)
    except GitHubError:
        return JSONResponse({"error": "Failed to fetch repos"}, status_code=500)


def create_app(
    settings: Settings | None = None,
    *,
    assistant: Assistant | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> fastapi.FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(_app: fastapi.FastAPI):
        """Manage the shared HTTP client and the per-session state registry."""
        async with httpx.AsyncClient(transport=transport) as http:
            github = GitHubClient(
                http,
                client_id=settings.github_client_id,
                client_secret=settings.github_client_secret,
                redirect_uri=settings.redirect_uri,
            )
            allow_list = OriginAllowList(settings.app_url, settings.allowed_origin_suffixes)
            yield {
                "settings": settings,
                "registry": SessionRegistry(ttl=settings.session_ttl),
                "assistant": assistant
                or GeminiMapsAssistant(settings.gemini_api_key, settings.gemini_model),
                "github": github,
                "channel": OAuthMessageChannel(allow_list, github),
            }

    app = fastapi.FastAPI(lifespan=lifespan)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie="session",
        max_age=settings.session_ttl,
        same_site="none" if settings.secure_cookies else "lax",
        https_only=settings.secure_cookies,
    )
    logfire.instrument_fastapi(app)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(
        "geoguide.app:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        reload_dirs=[str(THIS_DIR)],
    )
