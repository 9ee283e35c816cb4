"""Anthropic Claude chat provider implementation.

Uses the Anthropic Python SDK's streaming helper. Tool calls are
reported once their ``tool_use`` content block is complete, with the
input already parsed.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from termoracle.domain.models import (
    Role,
    StepFinish,
    TextDelta,
    TextPart,
    ToolCallPart,
    ToolCallRequest,
    ToolResultPart,
    Turn,
)
from termoracle.llm.base import ChatProvider, LLMError
from termoracle.tools.definitions import ToolSpec

logger = logging.getLogger(__name__)


def to_anthropic_messages(turns: Sequence[Turn]) -> list[dict[str, Any]]:
    """Convert log turns into Messages API format.

    Tool results travel as ``user`` content blocks, and consecutive
    messages of the same role are merged so parallel tool calls and their
    results land in single messages.
    """
    messages: list[dict[str, Any]] = []
    for turn in turns:
        role = "assistant" if turn.role == Role.ASSISTANT else "user"
        blocks = [_to_block(p) for p in turn.parts]
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"].extend(blocks)
        else:
            messages.append({"role": role, "content": blocks})
    return messages


def _to_block(part: TextPart | ToolCallPart | ToolResultPart) -> dict[str, Any]:
    if isinstance(part, ToolCallPart):
        return {"type": "tool_use", "id": part.tool_call_id, "name": part.tool_name, "input": part.args}
    if isinstance(part, ToolResultPart):
        return {
            "type": "tool_result",
            "tool_use_id": part.tool_call_id,
            "content": [{"type": "text", "text": t} for t in part.content] or "",
            "is_error": part.is_error,
        }
    return {"type": "text", "text": part.text}


class AnthropicChatProvider(ChatProvider):
    """Chat provider using Anthropic's Messages API."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-latest",
        max_tokens: int = 4096,
        description_max_tokens: int = 1024,
    ) -> None:
        super().__init__(model=model, max_tokens=max_tokens, description_max_tokens=description_max_tokens)
        self._api_key = api_key
        self._client = None

    def _ensure_client(self) -> None:
        """Lazily initialize the Anthropic async client."""
        if self._client is not None:
            return
        from anthropic import AsyncAnthropic
        self._client = AsyncAnthropic(api_key=self._api_key)
        logger.info("Initialized Anthropic client (model=%s)", self._model)

    async def stream(
        self,
        turns: Sequence[Turn],
        tools: Sequence[ToolSpec],
        system: str,
    ) -> AsyncIterator[TextDelta | ToolCallRequest | StepFinish]:
        self._ensure_client()
        try:
            async with self._client.messages.stream(
                model=self._model,
                max_tokens=self._max_tokens,
                system=system,
                messages=to_anthropic_messages(turns),
                tools=[
                    {"name": t.name, "description": t.description, "input_schema": t.parameters}
                    for t in tools
                ],
            ) as stream:
                async for event in stream:
                    if event.type == "text":
                        yield TextDelta(text=event.text)
                    elif event.type == "content_block_stop" and event.content_block.type == "tool_use":
                        block = event.content_block
                        yield ToolCallRequest(
                            tool_call_id=block.id,
                            tool_name=block.name,
                            args=dict(block.input or {}),
                        )
                message = await stream.get_final_message()
        except Exception as e:
            raise LLMError(f"Anthropic API call failed: {e}", provider=self.name) from e
        yield StepFinish(reason=message.stop_reason or "")

    async def describe_image(self, url: str, prompt: str) -> str:
        self._ensure_client()
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._description_max_tokens,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image", "source": {"type": "url", "url": url}},
                    ],
                }],
            )
        except Exception as e:
            raise LLMError(f"Anthropic vision call failed: {e}", provider=self.name) from e
        return "".join(b.text for b in response.content if b.type == "text")
