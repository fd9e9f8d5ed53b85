"""Tools offered to the model and their local handlers."""

from __future__ import annotations as _annotations

from collections.abc import Sequence

from google.genai import types

from geoguide.models import LinkedAccountProfile, Repository

LIST_GITHUB_REPOSITORIES = "list_github_repositories"

CONNECT_GITHUB_PROMPT = (
    "You haven't connected your GitHub account yet. Please click the 'Connect GitHub' "
    "button below to see your repositories."
)
REPOSITORIES_HEADING = "Here are your most recent GitHub repositories:"

list_github_repositories_tool = types.FunctionDeclaration(
    name=LIST_GITHUB_REPOSITORIES,
    description=(
        "List the user's GitHub repositories. Use this when the user asks to see "
        "their repos or projects on GitHub."
    ),
)


def build_tools() -> list[types.Tool]:
    """Maps grounding, search grounding and the repository listing function."""
    return [
        types.Tool(google_maps=types.GoogleMaps()),
        types.Tool(google_search=types.GoogleSearch()),
        types.Tool(function_declarations=[list_github_repositories_tool]),
    ]


def format_repository_list(repositories: Sequence[Repository]) -> str:
    lines = [
        f"- [{repo.name}]({repo.uri}): {repo.description or 'No description'}"
        for repo in repositories
    ]
    return f"{REPOSITORIES_HEADING}\n\n" + "\n".join(lines)


def list_github_repositories(
    account: LinkedAccountProfile | None, repositories: Sequence[Repository]
) -> str:
    """Answer the repository listing call from the cached account data.

    The model is not consulted again for this turn.
    """
    if account is None:
        return CONNECT_GITHUB_PROMPT
    return format_repository_list(repositories)
