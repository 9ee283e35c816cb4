"""Core domain models for the termoracle system.

These models represent the data flowing through the system: conversation
turns and their typed parts, normalized search results, image analysis
work units, and the structured events produced by the model stream and
the orchestration loop.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

FALLBACK_DESCRIPTION = "Hmm, can't see anything here."


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Role(str, enum.Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


# ---------------------------------------------------------------------------
# Conversation Models (discriminated union of content parts)
# ---------------------------------------------------------------------------


class TextPart(BaseModel):
    """Plain text inside a structured turn."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolCallPart(BaseModel):
    """A model-issued request to invoke a tool."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str = Field(description="Provider-assigned call identifier")
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(BaseModel):
    """The outcome of a tool invocation, as fed back to the model."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    content: list[str] = Field(
        default_factory=list, description="Ordered text blocks shown to the model"
    )
    data: dict[str, Any] = Field(
        default_factory=dict, description="Structured result for display and replay"
    )
    is_error: bool = False


Part = Annotated[
    Union[TextPart, ToolCallPart, ToolResultPart],
    Field(discriminator="type"),
]


class Turn(BaseModel):
    """One immutable entry in the conversation log."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str | list[Part]

    @classmethod
    def user(cls, text: str) -> Turn:
        return cls(role=Role.USER, content=text)

    @classmethod
    def assistant(cls, text: str) -> Turn:
        return cls(role=Role.ASSISTANT, content=text)

    @classmethod
    def tool_call(cls, call: ToolCallPart) -> Turn:
        return cls(role=Role.ASSISTANT, content=[call])

    @classmethod
    def tool_result(cls, result: ToolResultPart) -> Turn:
        return cls(role=Role.TOOL, content=[result])

    @property
    def is_text(self) -> bool:
        return isinstance(self.content, str)

    @property
    def parts(self) -> list[TextPart | ToolCallPart | ToolResultPart]:
        if isinstance(self.content, str):
            return [TextPart(text=self.content)]
        return list(self.content)

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    @property
    def tool_results(self) -> list[ToolResultPart]:
        return [p for p in self.parts if isinstance(p, ToolResultPart)]


# ---------------------------------------------------------------------------
# Search Models
# ---------------------------------------------------------------------------


class SearchResult(BaseModel):
    """A single normalized search hit."""

    model_config = ConfigDict(frozen=True)

    title: str = "Untitled Source"
    url: str = ""
    content: str = ""
    source: str = ""
    relevance_score: float | None = None
    image_urls: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Raw outcome of a search backend call."""

    success: bool
    results: list[SearchResult] = Field(default_factory=list)
    error: str | None = None


class Citation(BaseModel):
    """A reference to a search source, rendered as ``[title](url)``."""

    model_config = ConfigDict(frozen=True)

    title: str
    url: str

    @property
    def marker(self) -> str:
        return f"[{self.title}]({self.url})" if self.url else f"[{self.title}]"


# ---------------------------------------------------------------------------
# Image Models
# ---------------------------------------------------------------------------


class ImageTask(BaseModel):
    """Mutable unit of work inside one image pipeline batch."""

    url: str
    image_id: str
    filename: str = Field(description="Identifier plus inferred extension")
    storage_path: Path | None = None
    description: str | None = None


class ImageAnalysis(BaseModel):
    """What survives of an image task once the batch completes."""

    model_config = ConfigDict(frozen=True)

    image_id: str
    url: str
    filename: str
    storage_path: Path | None = None
    description: str | None = Field(
        default=None, description="Model description, None when unavailable"
    )

    @property
    def described(self) -> bool:
        return bool(self.description)

    @property
    def display_description(self) -> str:
        return self.description or FALLBACK_DESCRIPTION

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.image_id,
            "url": self.url,
            "file_path": str(self.storage_path) if self.storage_path else None,
            "description": self.display_description,
            "described": self.described,
        }


# ---------------------------------------------------------------------------
# Stream and Loop Events
# ---------------------------------------------------------------------------


class TextDelta(BaseModel):
    """A chunk of assistant text."""

    model_config = ConfigDict(frozen=True)

    event_type: Literal["text-delta"] = "text-delta"
    text: str


class ToolCallRequest(BaseModel):
    """A completed tool call parsed from the model stream."""

    model_config = ConfigDict(frozen=True)

    event_type: Literal["tool-call-request"] = "tool-call-request"
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)


class StepFinish(BaseModel):
    """End of one model response."""

    model_config = ConfigDict(frozen=True)

    event_type: Literal["step-finish"] = "step-finish"
    reason: str = ""


StreamEvent = Annotated[
    Union[TextDelta, ToolCallRequest, StepFinish],
    Field(discriminator="event_type"),
]


class ToolCallEvent(BaseModel):
    """A tool call has been logged and is about to run."""

    model_config = ConfigDict(frozen=True)

    event_type: Literal["tool-call"] = "tool-call"
    call: ToolCallPart
    forced: bool = Field(default=False, description="Issued by the loop, not the model")


class ToolResultEvent(BaseModel):
    """A tool finished and its result has been logged."""

    model_config = ConfigDict(frozen=True)

    event_type: Literal["tool-result"] = "tool-result"
    result: ToolResultPart
    citations: list[Citation] = Field(default_factory=list)


class TurnComplete(BaseModel):
    """The orchestration loop finished a user turn."""

    model_config = ConfigDict(frozen=True)

    event_type: Literal["turn-complete"] = "turn-complete"
    text: str = ""
    citations: list[Citation] = Field(default_factory=list)
    steps: int = 0
    budget_exhausted: bool = False
    error: str | None = None


AgentEvent = Annotated[
    Union[TextDelta, ToolCallEvent, ToolResultEvent, TurnComplete],
    Field(discriminator="event_type"),
]
