"""OpenAI-compatible chat provider implementation.

Works with OpenAI and any OpenAI-compatible API by setting a custom
base_url. Streamed tool-call fragments are accumulated per index and
reported once the response finishes.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from termoracle.domain.models import (
    Role,
    StepFinish,
    TextDelta,
    ToolCallRequest,
    Turn,
)
from termoracle.llm.base import ChatProvider, LLMError
from termoracle.tools.definitions import ToolSpec

logger = logging.getLogger(__name__)


def to_openai_messages(turns: Sequence[Turn], system: str | None = None) -> list[dict[str, Any]]:
    """Convert log turns into Chat Completions format.

    Consecutive assistant tool calls are merged into a single message
    whose ``tool_calls`` the following ``tool`` messages answer.
    """
    messages: list[dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})
    for turn in turns:
        if turn.is_text:
            messages.append({"role": turn.role.value, "content": turn.content})
            continue
        if turn.role == Role.TOOL:
            for result in turn.tool_results:
                messages.append({
                    "role": "tool",
                    "tool_call_id": result.tool_call_id,
                    "content": "\n\n".join(result.content),
                })
            continue
        calls = [
            {
                "id": c.tool_call_id,
                "type": "function",
                "function": {"name": c.tool_name, "arguments": json.dumps(c.args)},
            }
            for c in turn.tool_calls
        ]
        text = "".join(p.text for p in turn.parts if p.type == "text")
        last = messages[-1] if messages else None
        if last is not None and last["role"] == "assistant" and last.get("tool_calls") and calls:
            last["tool_calls"].extend(calls)
            continue
        message: dict[str, Any] = {"role": turn.role.value, "content": text or None}
        if calls:
            message["tool_calls"] = calls
        messages.append(message)
    return messages


class OpenAIChatProvider(ChatProvider):
    """Chat provider using OpenAI's chat completions API."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        max_tokens: int = 4096,
        description_max_tokens: int = 1024,
    ) -> None:
        super().__init__(model=model, max_tokens=max_tokens, description_max_tokens=description_max_tokens)
        self._api_key = api_key
        self._base_url = base_url
        self._client = None

    def _ensure_client(self) -> None:
        """Lazily initialize the OpenAI async client."""
        if self._client is not None:
            return
        from openai import AsyncOpenAI
        kwargs = {"api_key": self._api_key}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        self._client = AsyncOpenAI(**kwargs)
        logger.info("Initialized OpenAI client (model=%s, base_url=%s)", self._model, self._base_url)

    async def stream(
        self,
        turns: Sequence[Turn],
        tools: Sequence[ToolSpec],
        system: str,
    ) -> AsyncIterator[TextDelta | ToolCallRequest | StepFinish]:
        self._ensure_client()
        pending: dict[int, dict[str, str]] = {}
        finish_reason = ""
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=to_openai_messages(turns, system),
                tools=[
                    {
                        "type": "function",
                        "function": {"name": t.name, "description": t.description, "parameters": t.parameters},
                    }
                    for t in tools
                ],
                stream=True,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if delta.content:
                    yield TextDelta(text=delta.content)
                for fragment in delta.tool_calls or []:
                    slot = pending.setdefault(fragment.index, {"id": "", "name": "", "arguments": ""})
                    if fragment.id:
                        slot["id"] = fragment.id
                    if fragment.function is not None:
                        slot["name"] += fragment.function.name or ""
                        slot["arguments"] += fragment.function.arguments or ""
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except Exception as e:
            raise LLMError(f"OpenAI API call failed: {e}", provider=self.name) from e

        for index in sorted(pending):
            slot = pending[index]
            yield ToolCallRequest(
                tool_call_id=slot["id"] or f"call_{index}",
                tool_name=slot["name"],
                args=self._parse_arguments(slot["name"], slot["arguments"]),
            )
        yield StepFinish(reason=finish_reason)

    @staticmethod
    def _parse_arguments(name: str, raw: str) -> dict[str, Any]:
        if not raw.strip():
            return {}
        try:
            args = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Unparseable arguments for %s: %s", name, raw[:200])
            return {}
        return args if isinstance(args, dict) else {}

    async def describe_image(self, url: str, prompt: str) -> str:
        self._ensure_client()
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=self._description_max_tokens,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": url}},
                    ],
                }],
            )
        except Exception as e:
            raise LLMError(f"OpenAI vision call failed: {e}", provider=self.name) from e
        return response.choices[0].message.content or ""
