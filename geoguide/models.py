"""Data models for the GeoGuide app."""

from __future__ import annotations as _annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from typing_extensions import NotRequired, TypedDict

Role = Literal["user", "model"]


class MapResult(TypedDict):
    """A map citation as sent to the browser."""

    uri: str
    title: str


class ChatMessage(TypedDict):
    """Format of messages sent to the browser."""

    role: Role
    timestamp: str
    content: str
    map_results: NotRequired[list[MapResult]]


@dataclass(frozen=True)
class MapCitation:
    """A place reference attached by the maps grounding tool."""

    uri: str
    title: str = "View on Google Maps"


@dataclass(frozen=True)
class Turn:
    """One entry of the chat transcript. Never modified after it is appended."""

    role: Role
    text: str
    citations: tuple[MapCitation, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @classmethod
    def user(cls, text: str) -> Turn:
        return cls(role="user", text=text)

    @classmethod
    def model(cls, text: str, citations: tuple[MapCitation, ...] = ()) -> Turn:
        return cls(role="model", text=text, citations=tuple(citations))


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValueError("coordinates must be finite numbers")
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    def as_pair(self) -> list[float]:
        return [self.latitude, self.longitude]


@dataclass(frozen=True)
class LinkedAccountProfile:
    """The GitHub identity linked to the current session."""

    handle: str
    display_name: str
    avatar_uri: str

    @classmethod
    def from_github(cls, data: dict[str, Any]) -> LinkedAccountProfile:
        handle = data.get("login") or ""
        return cls(
            handle=handle,
            display_name=data.get("name") or handle,
            avatar_uri=data.get("avatar_url") or "",
        )


@dataclass(frozen=True)
class Repository:
    name: str
    uri: str
    description: str | None = None

    @classmethod
    def from_github(cls, data: dict[str, Any]) -> Repository:
        return cls(
            name=data["name"],
            uri=data["html_url"],
            description=data.get("description") or None,
        )
