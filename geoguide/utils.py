"""Utility functions for the GeoGuide app."""

import json
from collections.abc import Iterable

from geoguide.models import ChatMessage, LinkedAccountProfile, Repository, Turn


def to_chat_message(turn: Turn) -> ChatMessage:
    """Convert a transcript Turn to a ChatMessage for the frontend."""
    message: ChatMessage = {
        "role": turn.role,
        "timestamp": turn.timestamp.isoformat(),
        "content": turn.text,
    }
    if turn.citations:
        message["map_results"] = [{"uri": c.uri, "title": c.title} for c in turn.citations]
    return message


def to_ndjson(turns: Iterable[Turn]) -> bytes:
    """Newline delimited JSON, one ChatMessage per line."""
    return b"\n".join(json.dumps(to_chat_message(t)).encode("utf-8") for t in turns)


def account_payload(
    account: LinkedAccountProfile | None, repositories: Iterable[Repository]
) -> dict:
    if account is None:
        return {"account": None, "repositories": []}
    return {
        "account": {
            "handle": account.handle,
            "display_name": account.display_name,
            "avatar_uri": account.avatar_uri,
        },
        "repositories": [
            {"name": r.name, "uri": r.uri, "description": r.description} for r in repositories
        ],
    }
