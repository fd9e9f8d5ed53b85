"""Unit tests for the chat orchestrator."""
import asyncio

import httpx
import pytest
from hypothesis import given
from hypothesis import strategies as st

from geoguide.assistant import AssistantReply
from geoguide.models import Coordinate, LinkedAccountProfile, MapCitation, Repository
from geoguide.orchestrator import ERROR_TEXT, ChatBusyError, ChatOrchestrator
from geoguide.state import AppState
from geoguide.tools import CONNECT_GITHUB_PROMPT, LIST_GITHUB_REPOSITORIES

from conftest import StubAssistant


def _repos(n):
    return tuple(
        Repository(name=f"repo-{i}", uri=f"https://github.com/me/repo-{i}", description=None)
        for i in range(n)
    )


class TestSubmit:
    """Tests for ChatOrchestrator.submit."""

    @pytest.mark.asyncio
    async def test_success_appends_user_and_model_turns(self):
        """A reply adds exactly two turns, text and citations passed through."""
        citations = (
            MapCitation("https://maps.example/b", "Bakery"),
            MapCitation("https://maps.example/a", "Cafe"),
            MapCitation("https://maps.example/b", "Bakery"),
        )
        stub = StubAssistant(reply=AssistantReply(text="Two spots nearby.", citations=citations))
        state = AppState()
        before = len(state.transcript)

        turn = await ChatOrchestrator(state, stub).submit("  coffee near me  ")

        assert len(state.transcript) == before + 2
        assert state.transcript[-2].role == "user"
        assert state.transcript[-2].text == "coffee near me"
        assert turn is state.transcript[-1]
        assert turn.role == "model"
        assert turn.text == "Two spots nearby."
        assert turn.citations == citations
        assert stub.calls == [("coffee near me", None)]
        assert state.busy is False

    @pytest.mark.asyncio
    async def test_failure_appends_fixed_error_and_clears_busy(self):
        """Transport errors become the fixed error turn."""
        stub = StubAssistant(error=httpx.ConnectError("boom"))
        state = AppState()
        before = len(state.transcript)

        turn = await ChatOrchestrator(state, stub).submit("museums")

        assert len(state.transcript) == before + 2
        assert turn.text == ERROR_TEXT
        assert turn.citations == ()
        assert state.busy is False

    @pytest.mark.asyncio
    async def test_busy_flag_set_while_waiting(self):
        """The busy flag is raised for the duration of the call."""
        state = AppState()
        seen = []

        class BusyRecorder:
            async def generate(self, prompt, location=None):
                seen.append(state.busy)
                return AssistantReply(text="ok")

        await ChatOrchestrator(state, BusyRecorder()).submit("hi")

        assert seen == [True]
        assert state.busy is False

    @pytest.mark.asyncio
    async def test_concurrent_submission_is_refused(self):
        """A second submit while one is in flight raises and adds nothing."""
        release = asyncio.Event()
        state = AppState()

        class Slow:
            async def generate(self, prompt, location=None):
                await release.wait()
                return AssistantReply(text="done")

        orchestrator = ChatOrchestrator(state, Slow())
        first = asyncio.create_task(orchestrator.submit("first"))
        await asyncio.sleep(0)
        length = len(state.transcript)

        with pytest.raises(ChatBusyError):
            await orchestrator.submit("second")
        assert len(state.transcript) == length

        release.set()
        await first
        assert state.busy is False

    @pytest.mark.asyncio
    async def test_location_hint_falls_back_to_state(self):
        """The device location held in state is sent when none is given."""
        stub = StubAssistant()
        state = AppState(location=Coordinate(48.85, 2.35))

        await ChatOrchestrator(state, stub).submit("bistro")
        await ChatOrchestrator(state, stub).submit("bar", Coordinate(1.0, 2.0))

        assert stub.calls[0][1] == Coordinate(48.85, 2.35)
        assert stub.calls[1][1] == Coordinate(1.0, 2.0)


class TestBlankInput:
    """Blank input never reaches the model."""

    @pytest.mark.asyncio
    @given(st.text(alphabet=" \t\n\r", max_size=10))
    async def test_blank_text_is_ignored(self, text):
        """Property test: whitespace-only input appends nothing and calls nothing."""
        stub = StubAssistant()
        state = AppState()
        before = len(state.transcript)

        result = await ChatOrchestrator(state, stub).submit(text)

        assert result is None
        assert len(state.transcript) == before
        assert stub.calls == []


class TestRepositoryToolCall:
    """Handling of the list_github_repositories function call."""

    @pytest.mark.asyncio
    async def test_unlinked_account_gets_connect_prompt(self):
        stub = StubAssistant(reply=AssistantReply(text="", function_calls=(LIST_GITHUB_REPOSITORIES,)))
        state = AppState(repositories=_repos(2))

        turn = await ChatOrchestrator(state, stub).submit("show my repos")

        assert turn.text == CONNECT_GITHUB_PROMPT
        assert len(stub.calls) == 1

    @pytest.mark.parametrize("count", [1, 3, 5])
    @pytest.mark.asyncio
    async def test_linked_account_gets_markdown_list(self, count):
        """One bullet per cached repository, name as link text and URI as target."""
        stub = StubAssistant(reply=AssistantReply(text="ignored", function_calls=(LIST_GITHUB_REPOSITORIES,)))
        repos = _repos(count)
        state = AppState(
            account=LinkedAccountProfile("me", "Me", "https://avatars.example/me.png"),
            repositories=repos,
        )

        turn = await ChatOrchestrator(state, stub).submit("list my github projects")

        bullets = [line for line in turn.text.splitlines() if line.startswith("- ")]
        assert len(bullets) == count
        for bullet, repo in zip(bullets, repos):
            assert f"[{repo.name}]({repo.uri})" in bullet
        assert len(stub.calls) == 1

    @pytest.mark.asyncio
    async def test_other_function_calls_fall_through_to_text(self):
        stub = StubAssistant(reply=AssistantReply(text="Plain answer", function_calls=("something_else",)))
        state = AppState()

        turn = await ChatOrchestrator(state, stub).submit("hello")

        assert turn.text == "Plain answer"
