"""Google Gemini client configured for maps-grounded answers.

Uses the official Google GenAI SDK. One call per user prompt: the reply is
either prose with map citations or a request to run a local function.
"""

from __future__ import annotations as _annotations

from dataclasses import dataclass
from typing import Any, Protocol

import logfire
from google import genai
from google.genai import types

from geoguide.models import Coordinate, MapCitation
from geoguide.tools import build_tools

SYSTEM_INSTRUCTION = """
You are GeoGuide, a friendly assistant that helps people explore places.
Use Google Maps data to recommend restaurants, landmarks and other places,
and prefer places close to the user's location when it is known.
If the user asks about their GitHub repositories or projects, call the
list_github_repositories function instead of answering yourself.
"""


@dataclass(frozen=True)
class AssistantReply:
    text: str
    citations: tuple[MapCitation, ...] = ()
    function_calls: tuple[str, ...] = ()


class Assistant(Protocol):
    async def generate(self, prompt: str, location: Coordinate | None = None) -> AssistantReply: ...


def extract_citations(response: types.GenerateContentResponse) -> tuple[MapCitation, ...]:
    """Map citations from the first candidate's grounding chunks, in API order."""
    if not response.candidates:
        return ()
    metadata = response.candidates[0].grounding_metadata
    if metadata is None or not metadata.grounding_chunks:
        return ()
    citations = []
    for chunk in metadata.grounding_chunks:
        if chunk.maps is None:
            continue
        citations.append(
            MapCitation(uri=chunk.maps.uri or "", title=chunk.maps.title or "View on Google Maps")
        )
    return tuple(citations)


def _extract_text(response: types.GenerateContentResponse) -> str:
    if not response.candidates:
        return ""
    content = response.candidates[0].content
    if content is None or not content.parts:
        return ""
    return "".join(part.text for part in content.parts if part.text and not part.thought)


def to_reply(response: types.GenerateContentResponse) -> AssistantReply:
    calls = tuple(call.name for call in (response.function_calls or []) if call.name)
    return AssistantReply(
        text=_extract_text(response),
        citations=extract_citations(response),
        function_calls=calls,
    )


class GeminiMapsAssistant:
    """Gemini model with Google Maps grounding and the GitHub listing function.

    The SDK client is created on first use so the app can start without a key.
    """

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", **client_kwargs: Any):
        self._api_key = api_key
        self._model = model
        self._client_kwargs = client_kwargs
        self._client: genai.Client | None = None

    @property
    def model(self) -> str:
        return self._model

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key, **self._client_kwargs)
        return self._client

    def build_config(self, location: Coordinate | None = None) -> types.GenerateContentConfig:
        tool_config = None
        if location is not None:
            tool_config = types.ToolConfig(
                retrieval_config=types.RetrievalConfig(
                    lat_lng=types.LatLng(
                        latitude=location.latitude, longitude=location.longitude
                    )
                )
            )
        return types.GenerateContentConfig(
            system_instruction=SYSTEM_INSTRUCTION,
            tools=build_tools(),
            tool_config=tool_config,
        )

    async def generate(self, prompt: str, location: Coordinate | None = None) -> AssistantReply:
        with logfire.span("gemini generate_content", model=self._model, located=location is not None):
            response = await self.client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=self.build_config(location),
            )
        reply = to_reply(response)
        logfire.info(
            "Gemini replied with {citations} citations and calls {calls}",
            citations=len(reply.citations),
            calls=list(reply.function_calls),
        )
        return reply
