"""Helpers over the signed cookie session.

The cookie is written by Starlette's `SessionMiddleware` and is HttpOnly, so
page scripts never see the token stored here.
"""

from __future__ import annotations as _annotations

import time
from enum import Enum
from typing import Any, MutableMapping

from geoguide.config import SESSION_TTL_SECONDS

TOKEN_KEY = "github_token"
ISSUED_AT_KEY = "github_token_issued_at"
OAUTH_STATE_KEY = "oauth_state"
SESSION_ID_KEY = "sid"

Session = MutableMapping[str, Any]


class LinkStatus(str, Enum):
    UNLINKED = "unlinked"
    AUTHORIZING = "authorizing"
    LINKED = "linked"


def store_token(session: Session, token: str, now: float | None = None) -> None:
    session[TOKEN_KEY] = token
    session[ISSUED_AT_KEY] = time.time() if now is None else now
    session.pop(OAUTH_STATE_KEY, None)


def load_token(
    session: Session, now: float | None = None, ttl: float = SESSION_TTL_SECONDS
) -> str | None:
    """Return the stored token, or None if absent or older than `ttl`.

    The cookie is re-signed on every response, so the age is checked against
    the issue time rather than trusting the cookie expiry.
    """
    token = session.get(TOKEN_KEY)
    if not token:
        return None
    now = time.time() if now is None else now
    issued_at = session.get(ISSUED_AT_KEY)
    if not isinstance(issued_at, (int, float)) or now - issued_at > ttl:
        clear_token(session)
        return None
    return token


def clear_token(session: Session) -> None:
    session.pop(TOKEN_KEY, None)
    session.pop(ISSUED_AT_KEY, None)


def begin_authorization(session: Session, state: str) -> None:
    session[OAUTH_STATE_KEY] = state


def pending_state(session: Session) -> str | None:
    return session.get(OAUTH_STATE_KEY)


def abandon_authorization(session: Session) -> None:
    session.pop(OAUTH_STATE_KEY, None)


def link_status(session: Session, now: float | None = None) -> LinkStatus:
    if load_token(session, now) is not None:
        return LinkStatus.LINKED
    if pending_state(session):
        return LinkStatus.AUTHORIZING
    return LinkStatus.UNLINKED
