"""Domain models for termoracle.

This package contains all core data structures, enumerations, and value
objects used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from termoracle.domain.models import (
    FALLBACK_DESCRIPTION,
    AgentEvent,
    Citation,
    ImageAnalysis,
    ImageTask,
    Role,
    SearchResponse,
    SearchResult,
    StepFinish,
    StreamEvent,
    TextDelta,
    TextPart,
    ToolCallEvent,
    ToolCallPart,
    ToolCallRequest,
    ToolResultEvent,
    ToolResultPart,
    Turn,
    TurnComplete,
)

__all__ = [
    "FALLBACK_DESCRIPTION",
    "AgentEvent",
    "Citation",
    "ImageAnalysis",
    "ImageTask",
    "Role",
    "SearchResponse",
    "SearchResult",
    "StepFinish",
    "StreamEvent",
    "TextDelta",
    "TextPart",
    "ToolCallEvent",
    "ToolCallPart",
    "ToolCallRequest",
    "ToolResultEvent",
    "ToolResultPart",
    "Turn",
    "TurnComplete",
]
