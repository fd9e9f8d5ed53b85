"""Per-session application state and the registry that holds it."""

from __future__ import annotations as _annotations

import secrets
import time
from collections.abc import Iterator
from dataclasses import dataclass, field

import logfire

from geoguide.mapview import ViewState
from geoguide.models import Coordinate, LinkedAccountProfile, Repository, Turn

GREETING = (
    "Hi! I'm GeoGuide. I can help you find restaurants, landmarks, or anything else "
    "nearby using real-time Google Maps data. I can also connect to your GitHub now! "
    "Where would you like to explore today?"
)


class Transcript:
    """Append-only, ordered list of chat turns."""

    def __init__(self, turns: tuple[Turn, ...] = ()):
        self._turns: list[Turn] = list(turns)

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)

    def snapshot(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.snapshot())

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]


def _new_transcript() -> Transcript:
    return Transcript((Turn.model(GREETING),))


@dataclass
class AppState:
    """Everything one browser session sees: chat, map and linked account."""

    transcript: Transcript = field(default_factory=_new_transcript)
    location: Coordinate | None = None
    view: ViewState = field(default_factory=ViewState)
    account: LinkedAccountProfile | None = None
    repositories: tuple[Repository, ...] = ()
    busy: bool = False

    def set_location(self, location: Coordinate) -> None:
        self.location = location
        self.view = self.view.recentered(location)

    def unlink(self) -> None:
        self.account = None
        self.repositories = ()


class SessionRegistry:
    """Maps opaque session ids to their `AppState`, dropping idle sessions."""

    def __init__(self, ttl: float):
        self._ttl = ttl
        self._entries: dict[str, tuple[AppState, float]] = {}

    @staticmethod
    def new_id() -> str:
        return secrets.token_urlsafe(16)

    def get(self, session_id: str, now: float | None = None) -> AppState:
        now = time.time() if now is None else now
        self.prune(now)
        entry = self._entries.get(session_id)
        state = entry[0] if entry else AppState()
        self._entries[session_id] = (state, now)
        return state

    def prune(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        expired = [sid for sid, (_, seen) in self._entries.items() if now - seen > self._ttl]
        for sid in expired:
            del self._entries[sid]
        if expired:
            logfire.info("Pruned {count} idle sessions", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
