"""Chat loop: one user prompt in, one model turn out."""

from __future__ import annotations as _annotations

import logfire

from geoguide.assistant import Assistant
from geoguide.models import Coordinate, Turn
from geoguide.state import AppState
from geoguide.tools import LIST_GITHUB_REPOSITORIES, list_github_repositories

ERROR_TEXT = "I encountered an error while trying to find that information. Please try again."


class ChatBusyError(RuntimeError):
    """A chat request is already in flight for this session."""


class ChatOrchestrator:
    def __init__(self, state: AppState, assistant: Assistant):
        self.state = state
        self.assistant = assistant

    async def submit(self, text: str, location: Coordinate | None = None) -> Turn | None:
        """Send `text` to the model and append both turns to the transcript.

        Returns the appended model turn, or None when `text` is blank (nothing
        is appended or sent). Raises `ChatBusyError` if another request for
        this session has not finished yet.
        """
        prompt = (text or "").strip()
        if not prompt:
            return None
        if self.state.busy:
            raise ChatBusyError("a chat request is already in progress")

        self.state.transcript.append(Turn.user(prompt))
        self.state.busy = True
        try:
            reply = await self.assistant.generate(prompt, location or self.state.location)
        except Exception:
            logfire.exception("Error calling Gemini API")
            turn = Turn.model(ERROR_TEXT)
        else:
            if LIST_GITHUB_REPOSITORIES in reply.function_calls:
                # answered from the cached account, bypassing a second model call
                turn = Turn.model(
                    list_github_repositories(self.state.account, self.state.repositories)
                )
            else:
                turn = Turn.model(reply.text, reply.citations)
        finally:
            self.state.busy = False

        self.state.transcript.append(turn)
        return turn
