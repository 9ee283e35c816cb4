"""Chat model providers for termoracle.

Provides a provider-agnostic interface for streaming tool-capable chat
completions and single-shot image descriptions.

Public API:
    ChatProvider -- Abstract base class
    AnthropicChatProvider -- Claude API implementation
    OpenAIChatProvider -- OpenAI / compatible implementation
    create_provider -- Build the provider chosen at startup
"""

from __future__ import annotations

from termoracle.llm.base import ChatProvider, LLMError

__all__ = [
    "AnthropicChatProvider",
    "ChatProvider",
    "LLMError",
    "OpenAIChatProvider",
    "create_provider",
]


def create_provider(settings) -> ChatProvider:
    """Instantiate the provider selected from the configured credentials.

    Raises:
        ConfigurationError: If no usable model credential is configured.
    """
    from termoracle.config.settings import select_provider

    choice = select_provider(settings)
    llm = settings.llm
    if choice == "anthropic":
        from termoracle.llm.anthropic import AnthropicChatProvider
        return AnthropicChatProvider(
            api_key=settings.anthropic_api_key.get_secret_value(),
            model=llm.anthropic_model,
            max_tokens=llm.max_tokens,
            description_max_tokens=llm.description_max_tokens,
        )
    from termoracle.llm.openai import OpenAIChatProvider
    return OpenAIChatProvider(
        api_key=settings.openai_api_key.get_secret_value(),
        model=llm.openai_model,
        base_url=llm.openai_base_url,
        max_tokens=llm.max_tokens,
        description_max_tokens=llm.description_max_tokens,
    )


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "AnthropicChatProvider":
        from termoracle.llm.anthropic import AnthropicChatProvider
        return AnthropicChatProvider
    if name == "OpenAIChatProvider":
        from termoracle.llm.openai import OpenAIChatProvider
        return OpenAIChatProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
