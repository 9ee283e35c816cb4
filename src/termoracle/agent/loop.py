"""The orchestration loop that drives one user turn.

Ties together the chat model, the search tool adapter, the image
pipeline and the grid renderer: stream -> dispatch tools -> stream ->
... until the model answers with text only or the step budget runs out.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import AsyncIterator

from termoracle.agent.prompt import build_system_prompt
from termoracle.agent.session import SessionState
from termoracle.display.grid import GridRenderer
from termoracle.domain.models import (
    Citation,
    StepFinish,
    TextDelta,
    ToolCallEvent,
    ToolCallPart,
    ToolCallRequest,
    ToolResultEvent,
    ToolResultPart,
    Turn,
    TurnComplete,
)
from termoracle.images.pipeline import ImagePipeline
from termoracle.llm.base import LLMError
from termoracle.search.adapter import SearchToolAdapter
from termoracle.tools.definitions import (
    ANALYZE_IMAGES_TOOL,
    SEARCH_TOOL,
    TOOL_SPECS,
    AnalyzeImagesToolCall,
    SearchToolCall,
    ToolArgumentError,
    parse_tool_call,
)

logger = logging.getLogger(__name__)

MAX_STEPS = 15


class AgentLoop:
    """Runs the reasoning/tool cycle for each user submission.

    Events are yielded in the order they happen, and every tool call and
    tool result is appended to the conversation log as soon as it is
    observed. While image URLs surfaced by this turn's searches are still
    unanalysed, narrative text is held back; if the model tries to answer
    anyway, the loop analyses the pending images itself first.
    """

    def __init__(
        self,
        session: SessionState,
        search: SearchToolAdapter,
        images: ImagePipeline,
        renderer: GridRenderer,
        max_steps: int = MAX_STEPS,
        enforce_image_analysis: bool = True,
        replay_tool_turns: bool = True,
        system_prompt: str | None = None,
    ) -> None:
        self._session = session
        self._search = search
        self._images = images
        self._renderer = renderer
        self._max_steps = min(max_steps, MAX_STEPS)
        self._enforce_image_analysis = enforce_image_analysis
        self._replay_tool_turns = replay_tool_turns
        self._system_prompt = system_prompt

    @property
    def session(self) -> SessionState:
        return self._session

    async def run_turn(
        self, user_input: str
    ) -> AsyncIterator[TextDelta | ToolCallEvent | ToolResultEvent | TurnComplete]:
        """Process one user message, yielding events until the turn completes."""
        log = self._session.log
        turn_start = len(log)
        log.append(Turn.user(user_input))
        system = self._system_prompt or build_system_prompt()

        narrative: list[str] = []
        held: list[str] = []
        citations: dict[str, Citation] = {}
        pending_images: dict[str, None] = {}
        steps = 0
        exhausted = True
        error: str | None = None

        while steps < self._max_steps:
            steps += 1
            calls: list[ToolCallPart] = []
            history = (
                log.snapshot(stop=turn_start, text_only=not self._replay_tool_turns)
                + log.snapshot(start=turn_start)
            )

            try:
                async for event in self._session.provider.stream(history, TOOL_SPECS, system):
                    if isinstance(event, TextDelta):
                        if self._enforce_image_analysis and pending_images:
                            held.append(event.text)
                            continue
                        if held:
                            yield self._release(held, narrative)
                        narrative.append(event.text)
                        yield event
                    elif isinstance(event, ToolCallRequest):
                        call = ToolCallPart(
                            tool_call_id=event.tool_call_id,
                            tool_name=event.tool_name,
                            args=event.args,
                        )
                        log.append(Turn.tool_call(call))
                        calls.append(call)
                        yield ToolCallEvent(call=call)
                    elif isinstance(event, StepFinish):
                        logger.debug("Step %d finished: %s", steps, event.reason)
            except LLMError as e:
                logger.error("Model call failed at step %d: %s", steps, e)
                error = str(e)
                for call in calls:
                    log.append(Turn.tool_result(_interrupted_result(call)))
                exhausted = False
                break

            if not calls and pending_images and self._enforce_image_analysis:
                if held:
                    logger.info(
                        "Discarding %d held text chunk(s): %d surfaced image(s) not analysed yet",
                        len(held), len(pending_images),
                    )
                    held.clear()
                call = ToolCallPart(
                    tool_call_id=f"auto_{uuid.uuid4().hex[:12]}",
                    tool_name=ANALYZE_IMAGES_TOOL,
                    args={"image_urls": list(pending_images)},
                )
                log.append(Turn.tool_call(call))
                calls.append(call)
                yield ToolCallEvent(call=call, forced=True)

            if not calls:
                exhausted = False
                break

            for call in calls:
                result, found_citations, surfaced, analyzed = await self._dispatch(call)
                log.append(Turn.tool_result(result))
                for citation in found_citations:
                    citations.setdefault(citation.url or citation.title, citation)
                for url in surfaced:
                    pending_images.setdefault(url, None)
                for url in analyzed:
                    pending_images.pop(url, None)
                yield ToolResultEvent(result=result, citations=found_citations)

        if exhausted:
            logger.warning("Step budget of %d exhausted, returning partial answer", self._max_steps)
        if held:
            yield self._release(held, narrative)

        text = "".join(narrative).strip()
        if text:
            log.append(Turn.assistant(text))
        yield TurnComplete(
            text=text,
            citations=list(citations.values()),
            steps=steps,
            budget_exhausted=exhausted,
            error=error,
        )

    @staticmethod
    def _release(held: list[str], narrative: list[str]) -> TextDelta:
        """Move held-back text into the narrative as a single delta."""
        text = "".join(held)
        held.clear()
        narrative.append(text)
        return TextDelta(text=text)

    async def _dispatch(
        self, call: ToolCallPart
    ) -> tuple[ToolResultPart, list[Citation], list[str], list[str]]:
        """Run one tool call.

        Returns the result part, citations found, image URLs surfaced by a
        search, and image URLs analysed. Failures become error results.
        """
        try:
            parsed = parse_tool_call(call.tool_name, call.args)
        except ToolArgumentError as e:
            logger.warning("Rejected tool call %s: %s", call.tool_call_id, e)
            return _error_result(call, str(e)), [], [], []

        try:
            if isinstance(parsed, SearchToolCall):
                return await self._run_search(call, parsed)
            if isinstance(parsed, AnalyzeImagesToolCall):
                return await self._run_image_analysis(call, parsed)
        except Exception as e:
            logger.exception("Tool %s failed", call.tool_name)
            # A failed analysis still settles its URLs, so they are not forced again.
            settled = parsed.args.image_urls if isinstance(parsed, AnalyzeImagesToolCall) else []
            return _error_result(call, f"{call.tool_name} failed: {e}"), [], [], list(settled)
        return _error_result(call, f"Unknown tool: {call.tool_name}"), [], [], []

    async def _run_search(
        self, call: ToolCallPart, parsed: SearchToolCall
    ) -> tuple[ToolResultPart, list[Citation], list[str], list[str]]:
        outcome = await self._search.run(parsed.args.query, parsed.args.max_results)
        result = ToolResultPart(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            content=outcome.to_blocks(),
            data=outcome.to_payload(),
            is_error=not outcome.success,
        )
        return result, outcome.citations, outcome.image_urls, []

    async def _run_image_analysis(
        self, call: ToolCallPart, parsed: AnalyzeImagesToolCall
    ) -> tuple[ToolResultPart, list[Citation], list[str], list[str]]:
        urls = list(dict.fromkeys(parsed.args.image_urls))
        query = self._session.log.last_search_query(SEARCH_TOOL)
        analyses = await self._images.analyze(urls, query_context=query)
        # The grid is on screen before the model sees the result.
        self._renderer.render(analyses)
        payload = {
            "success": True,
            "images": [a.to_payload() for a in analyses],
            "analyzed_count": len(analyses),
        }
        result = ToolResultPart(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            content=[json.dumps(payload)],
            data=payload,
        )
        return result, [], [], urls


def _error_result(call: ToolCallPart, message: str) -> ToolResultPart:
    return ToolResultPart(
        tool_call_id=call.tool_call_id,
        tool_name=call.tool_name,
        content=[message],
        data={"success": False, "error": message},
        is_error=True,
    )


def _interrupted_result(call: ToolCallPart) -> ToolResultPart:
    return _error_result(call, "Tool call not executed: the model response was interrupted")
