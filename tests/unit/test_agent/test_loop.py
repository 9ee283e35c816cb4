"""Tests for the AgentLoop orchestrator."""

from __future__ import annotations

from collections.abc import Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from termoracle.agent.loop import AgentLoop
from termoracle.agent.session import SessionState
from termoracle.conversation.log import ConversationLog
from termoracle.domain.models import (
    ImageAnalysis,
    Role,
    SearchResponse,
    TextDelta,
    ToolCallEvent,
    ToolCallRequest,
    ToolResultEvent,
    TurnComplete,
)
from termoracle.search.adapter import SearchToolAdapter

IMAGE_URL = "https://cdn.example.org/deep-field.png"


def _search(call_id: str, query: str = "james webb") -> ToolCallRequest:
    return ToolCallRequest(tool_call_id=call_id, tool_name="web_search", args={"query": query})


def _analyze(call_id: str, urls: Sequence[str]) -> ToolCallRequest:
    return ToolCallRequest(tool_call_id=call_id, tool_name="analyze_images", args={"image_urls": list(urls)})


def _fake_images() -> AsyncMock:
    images = AsyncMock()

    async def analyze(urls, query_context=None):
        return [
            ImageAnalysis(image_id=f"IMG{i}", url=u, filename=f"IMG{i}.png", description="A galaxy")
            for i, u in enumerate(urls, start=1)
        ]

    images.analyze.side_effect = analyze
    return images


def _loop(provider, backend, images=None, renderer=None, **kwargs) -> AgentLoop:
    session = SessionState(log=ConversationLog(), provider=provider)
    return AgentLoop(
        session=session,
        search=SearchToolAdapter(backend),
        images=images or _fake_images(),
        renderer=renderer or MagicMock(),
        system_prompt="test system prompt",
        **kwargs,
    )


async def _collect(loop: AgentLoop, text: str) -> list:
    return [event async for event in loop.run_turn(text)]


class TestAgentLoop:
    @pytest.mark.asyncio
    async def test_text_only_answer(self, provider_factory, mock_search_backend: AsyncMock) -> None:
        provider = provider_factory([[TextDelta(text="Hello "), TextDelta(text="there")]])
        loop = _loop(provider, mock_search_backend)

        events = await _collect(loop, "hi")

        assert [type(e) for e in events] == [TextDelta, TextDelta, TurnComplete]
        assert events[-1].text == "Hello there"
        assert events[-1].steps == 1
        assert not events[-1].budget_exhausted
        turns = loop.session.log.snapshot()
        assert [(t.role, t.content) for t in turns] == [
            (Role.USER, "hi"), (Role.ASSISTANT, "Hello there"),
        ]
        mock_search_backend.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tool_call_is_logged_before_its_result(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        provider = provider_factory([
            [_search("s1")],
            [_analyze("a1", [IMAGE_URL])],
            [TextDelta(text="Answer")],
        ])
        loop = _loop(provider, mock_search_backend)

        events = await _collect(loop, "what did webb see?")

        turns = loop.session.log.snapshot()
        assert [t.role for t in turns] == [
            Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT,
        ]
        assert turns[1].tool_calls[0].tool_call_id == "s1"
        assert turns[2].tool_results[0].tool_call_id == "s1"
        assert "IMAGE_URLS: " + IMAGE_URL in turns[2].tool_results[0].content
        assert turns[4].tool_results[0].data["analyzed_count"] == 1
        assert not any(isinstance(e, ToolCallEvent) and e.forced for e in events)

    @pytest.mark.asyncio
    async def test_model_sees_tool_results_in_next_step(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        provider = provider_factory([[_search("s1")], [_analyze("a1", [IMAGE_URL])], [TextDelta(text="ok")]])
        loop = _loop(provider, mock_search_backend)

        await _collect(loop, "webb")

        second_history = provider.histories[1]
        assert second_history[-1].tool_results[0].tool_call_id == "s1"
        assert len(provider.histories) == 3

    @pytest.mark.asyncio
    async def test_unanalysed_images_force_analysis(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        images = _fake_images()
        provider = provider_factory([
            [_search("s1")],
            [TextDelta(text="Premature answer")],
            [TextDelta(text="Answer with IMG1")],
        ])
        loop = _loop(provider, mock_search_backend, images=images)

        events = await _collect(loop, "webb")

        forced = [e for e in events if isinstance(e, ToolCallEvent) and e.forced]
        assert len(forced) == 1
        assert forced[0].call.args == {"image_urls": [IMAGE_URL]}
        assert forced[0].call.tool_call_id.startswith("auto_")
        images.analyze.assert_awaited_once_with([IMAGE_URL], query_context="james webb")

        texts = [e.text for e in events if isinstance(e, TextDelta)]
        assert texts == ["Answer with IMG1"]
        assert events[-1].text == "Answer with IMG1"

    @pytest.mark.asyncio
    async def test_failed_forced_analysis_is_not_repeated(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        images = AsyncMock()
        images.analyze.side_effect = OSError("image directory unavailable")
        provider = provider_factory([
            [_search("s1")],
            [TextDelta(text="Premature")],
            [TextDelta(text="Final")],
        ])
        loop = _loop(provider, mock_search_backend, images=images)

        events = await _collect(loop, "webb")

        forced = [e for e in events if isinstance(e, ToolCallEvent) and e.forced]
        assert len(forced) == 1
        analysis = next(
            e for e in events
            if isinstance(e, ToolResultEvent) and e.result.tool_name == "analyze_images"
        )
        assert analysis.result.is_error
        assert "image directory unavailable" in analysis.result.content[0]
        images.analyze.assert_awaited_once()
        assert events[-1].text == "Final"
        assert not events[-1].budget_exhausted
        assert len(provider.histories) == 3

    @pytest.mark.asyncio
    async def test_no_narrative_before_images_are_analysed(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        provider = provider_factory([
            [_search("s1")],
            [TextDelta(text="Let me look. "), _analyze("a1", [IMAGE_URL])],
            [TextDelta(text="Here it is.")],
        ])
        loop = _loop(provider, mock_search_backend)

        events = await _collect(loop, "webb")

        analysis_done = next(
            i for i, e in enumerate(events)
            if isinstance(e, ToolResultEvent) and e.result.tool_name == "analyze_images"
        )
        text_positions = [i for i, e in enumerate(events) if isinstance(e, TextDelta)]
        assert text_positions
        assert min(text_positions) > analysis_done
        assert events[-1].text == "Let me look. Here it is."

    @pytest.mark.asyncio
    async def test_grid_is_rendered_before_result_is_returned(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        renderer = MagicMock()
        provider = provider_factory([[_analyze("a1", [IMAGE_URL, IMAGE_URL])], [TextDelta(text="ok")]])
        loop = _loop(provider, mock_search_backend, renderer=renderer)

        async for event in loop.run_turn("show me"):
            if isinstance(event, ToolResultEvent):
                renderer.render.assert_called_once()
                (entries,) = renderer.render.call_args.args
                assert [e.url for e in entries] == [IMAGE_URL]

    @pytest.mark.asyncio
    async def test_enforcement_can_be_disabled(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        images = _fake_images()
        provider = provider_factory([[_search("s1")], [TextDelta(text="Straight answer")]])
        loop = _loop(provider, mock_search_backend, images=images, enforce_image_analysis=False)

        events = await _collect(loop, "webb")

        images.analyze.assert_not_awaited()
        assert events[-1].text == "Straight answer"

    @pytest.mark.asyncio
    async def test_step_budget_exhaustion_is_graceful(self, provider_factory) -> None:
        backend = AsyncMock()
        backend.search.return_value = SearchResponse(success=True, results=[])
        provider = provider_factory([
            [TextDelta(text="Searching. "), _search("s1")],
            [_search("s2")],
            [_search("s3")],
        ])
        loop = _loop(provider, backend, max_steps=3)

        events = await _collect(loop, "loop forever")

        complete = events[-1]
        assert isinstance(complete, TurnComplete)
        assert complete.budget_exhausted
        assert complete.steps == 3
        assert complete.text == "Searching."
        assert loop.session.log.snapshot()[-1].content == "Searching."
        assert backend.search.await_count == 3

    def test_step_budget_is_capped(self, provider_factory, mock_search_backend: AsyncMock) -> None:
        loop = _loop(provider_factory(), mock_search_backend, max_steps=50)
        assert loop._max_steps == 15

    @pytest.mark.asyncio
    async def test_model_failure_ends_turn_without_raising(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        provider = provider_factory([RuntimeError("503 from upstream")])
        loop = _loop(provider, mock_search_backend)

        events = await _collect(loop, "hi")

        assert len(events) == 1
        assert "503 from upstream" in events[0].error
        assert [t.role for t in loop.session.log.snapshot()] == [Role.USER]

    @pytest.mark.asyncio
    async def test_invalid_tool_call_becomes_error_result(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        provider = provider_factory([
            [ToolCallRequest(tool_call_id="x1", tool_name="fetch_page", args={})],
            [TextDelta(text="Sorry")],
        ])
        loop = _loop(provider, mock_search_backend)

        events = await _collect(loop, "hi")

        results = [e for e in events if isinstance(e, ToolResultEvent)]
        assert results[0].result.is_error
        assert "Unknown tool: fetch_page" in results[0].result.content[0]
        assert events[-1].text == "Sorry"

    @pytest.mark.asyncio
    async def test_search_failure_is_reported_to_the_model(self, provider_factory) -> None:
        backend = AsyncMock()
        backend.search.return_value = SearchResponse(success=False, error="quota exceeded")
        provider = provider_factory([[_search("s1")], [TextDelta(text="Search is down")]])
        loop = _loop(provider, backend)

        events = await _collect(loop, "webb")

        result = next(e for e in events if isinstance(e, ToolResultEvent)).result
        assert result.is_error
        assert result.data == {"success": False, "error": "quota exceeded", "results": []}
        assert events[-1].text == "Search is down"

    @pytest.mark.asyncio
    async def test_citations_are_collected_once(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        provider = provider_factory([
            [_search("s1"), _search("s2", "webb mirrors")],
            [_analyze("a1", [IMAGE_URL])],
            [TextDelta(text="ok")],
        ])
        loop = _loop(provider, mock_search_backend)

        events = await _collect(loop, "webb")

        assert [c.title for c in events[-1].citations] == [
            "Webb Deep Field", "Webb Logo", "Webb Overview",
        ]

    @pytest.mark.asyncio
    async def test_text_only_replay_of_earlier_turns(
        self, provider_factory, mock_search_backend: AsyncMock,
    ) -> None:
        provider = provider_factory([
            [_search("s1")],
            [_analyze("a1", [IMAGE_URL])],
            [TextDelta(text="First answer")],
            [TextDelta(text="Second answer")],
        ])
        loop = _loop(provider, mock_search_backend, replay_tool_turns=False)

        await _collect(loop, "first")
        await _collect(loop, "second")

        last_history = provider.histories[-1]
        assert [(t.role, t.content) for t in last_history] == [
            (Role.USER, "first"), (Role.ASSISTANT, "First answer"), (Role.USER, "second"),
        ]
