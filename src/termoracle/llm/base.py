"""Abstract base class for chat model providers.

All provider implementations must conform to this interface, enabling
the orchestration loop to swap between Anthropic and OpenAI models
without changing the rest of the pipeline.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from termoracle.domain.models import StepFinish, TextDelta, ToolCallRequest, Turn
from termoracle.tools.definitions import ToolSpec

logger = logging.getLogger(__name__)


class ChatProvider(ABC):
    """Abstract interface for a streaming, tool-capable chat model.

    One call to :meth:`stream` is one model step: the provider yields text
    deltas as they arrive, one ToolCallRequest per completed tool call,
    and a final StepFinish. Executing tools and re-invoking the model is
    the caller's job.

    Example usage::

        provider = AnthropicChatProvider(api_key="sk-ant-...")
        async for event in provider.stream(turns, TOOL_SPECS, system=prompt):
            ...
        text = await provider.describe_image(url, "Describe this image.")
    """

    name: str = "base"

    def __init__(self, model: str, max_tokens: int = 4096, description_max_tokens: int = 1024) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._description_max_tokens = description_max_tokens

    @property
    def model(self) -> str:
        return self._model

    @abstractmethod
    def stream(
        self,
        turns: Sequence[Turn],
        tools: Sequence[ToolSpec],
        system: str,
    ) -> AsyncIterator[TextDelta | ToolCallRequest | StepFinish]:
        """Stream one model response for the given history.

        Raises:
            LLMError: If the request fails before or during streaming.
        """
        ...

    @abstractmethod
    async def describe_image(self, url: str, prompt: str) -> str:
        """Single-shot vision request: describe the image at ``url``.

        Raises:
            LLMError: If the request fails.
        """
        ...


class LLMError(Exception):
    """Raised when a model request fails."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider
