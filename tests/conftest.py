"""Shared test fixtures for the termoracle test suite.

Provides common fixtures used across unit tests: sample turns and
search results, PNG bytes, a scripted chat provider and mock search
backends.
"""

from __future__ import annotations

import io
from collections.abc import AsyncIterator, Sequence
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from termoracle.domain.models import (
    SearchResponse,
    SearchResult,
    StepFinish,
    TextDelta,
    ToolCallPart,
    ToolCallRequest,
    ToolResultPart,
    Turn,
)
from termoracle.llm.base import ChatProvider, LLMError
from termoracle.tools.definitions import ToolSpec


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Isolate a test from the developer's keys and .env file."""
    for name in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "VALYU_API_KEY"):
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(f"TERMORACLE_{name}", raising=False)
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# Scripted chat provider
# ---------------------------------------------------------------------------


class ScriptedProvider(ChatProvider):
    """Chat provider that replays pre-scripted steps.

    Each step is a list of events; a step given as an Exception instance
    is raised as LLMError instead. Histories passed to stream() are kept
    for assertions.
    """

    name = "scripted"

    def __init__(self, steps: Sequence[list | Exception] = (), descriptions: dict[str, str] | None = None) -> None:
        super().__init__(model="scripted-model")
        self._steps = list(steps)
        self.histories: list[list[Turn]] = []
        self.descriptions = descriptions or {}
        self.describe_calls: list[tuple[str, str]] = []

    async def stream(
        self,
        turns: Sequence[Turn],
        tools: Sequence[ToolSpec],
        system: str,
    ) -> AsyncIterator[TextDelta | ToolCallRequest | StepFinish]:
        self.histories.append(list(turns))
        step = self._steps.pop(0) if self._steps else [TextDelta(text="done")]
        if isinstance(step, Exception):
            raise LLMError(str(step), provider=self.name)
        for event in step:
            yield event
        yield StepFinish(reason="end_turn")

    async def describe_image(self, url: str, prompt: str) -> str:
        self.describe_calls.append((url, prompt))
        description = self.descriptions.get(url, f"A picture at {url}")
        if isinstance(description, Exception):
            raise LLMError(str(description), provider=self.name)
        return description


@pytest.fixture
def scripted_provider() -> ScriptedProvider:
    return ScriptedProvider()


# ---------------------------------------------------------------------------
# Turn Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def search_call() -> ToolCallPart:
    return ToolCallPart(
        tool_call_id="call_1",
        tool_name="web_search",
        args={"query": "james webb telescope", "max_results": 5},
    )


@pytest.fixture
def sample_turns(search_call: ToolCallPart) -> list[Turn]:
    """A user question, a search call, its result and the final answer."""
    return [
        Turn.user("What has JWST found?"),
        Turn.tool_call(search_call),
        Turn.tool_result(ToolResultPart(
            tool_call_id="call_1",
            tool_name="web_search",
            content=["SOURCE 1: JWST\nDeep field\n[JWST](https://example.org/jwst)"],
            data={"success": True},
        )),
        Turn.assistant("JWST found early galaxies [JWST](https://example.org/jwst)."),
    ]


# ---------------------------------------------------------------------------
# Search Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_results() -> list[SearchResult]:
    """Three results carrying two images, one of them an SVG."""
    return [
        SearchResult(
            title="Webb Deep Field",
            url="https://example.org/deep-field",
            content="The first deep field image " * 100,
            source="web",
            relevance_score=0.92,
            image_urls=["https://cdn.example.org/deep-field.png"],
        ),
        SearchResult(
            title="Webb Logo",
            url="https://example.org/logo",
            content="Mission branding",
            source="web",
            relevance_score=0.61,
            image_urls=["https://cdn.example.org/logo.SVG"],
        ),
        SearchResult(
            title="Webb Overview",
            url="https://example.org/overview",
            content="Launched in 2021",
            source="web",
            relevance_score=0.55,
        ),
    ]


@pytest.fixture
def mock_search_backend(sample_results: list[SearchResult]) -> AsyncMock:
    """A mock SearchBackend returning the sample results."""
    mock = AsyncMock()
    mock.search.return_value = SearchResponse(success=True, results=sample_results)
    return mock


# ---------------------------------------------------------------------------
# Image Fixtures
# ---------------------------------------------------------------------------


def make_png(width: int = 40, height: int = 20, color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A small solid-red PNG."""
    return make_png()


@pytest.fixture
def png_factory():
    """Build PNG bytes of a given size and colour."""
    return make_png


@pytest.fixture
def provider_factory():
    """The ScriptedProvider class, for tests that script their own steps."""
    return ScriptedProvider
