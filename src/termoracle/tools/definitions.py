"""Tool definitions exposed to the model.

Each tool has a fixed argument model. Calls coming back from the model
are validated into a tagged union before dispatch, so the loop never
handles loosely-typed argument dictionaries.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

SEARCH_TOOL = "web_search"
ANALYZE_IMAGES_TOOL = "analyze_images"


class SearchArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str = Field(
        min_length=1,
        description="Specific, detailed search query focusing on the exact information needed",
    )
    max_results: int = Field(
        default=5, ge=1, le=20, description="Maximum number of results to return"
    )


class AnalyzeImagesArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image_urls: list[str] = Field(description="Array of image URLs to analyse")


class SearchToolCall(BaseModel):
    tool: Literal["web_search"] = SEARCH_TOOL
    args: SearchArgs


class AnalyzeImagesToolCall(BaseModel):
    tool: Literal["analyze_images"] = ANALYZE_IMAGES_TOOL
    args: AnalyzeImagesArgs


ToolCall = Annotated[
    Union[SearchToolCall, AnalyzeImagesToolCall],
    Field(discriminator="tool"),
]

_TOOL_CALL = TypeAdapter(ToolCall)


class ToolSpec(BaseModel):
    """Provider-neutral tool schema."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any]


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name=SEARCH_TOOL,
        description=(
            "Search Valyu's multimodal knowledge graph for information across any domain. "
            "Use this tool whenever external factual information is needed."
        ),
        parameters=SearchArgs.model_json_schema(),
    ),
    ToolSpec(
        name=ANALYZE_IMAGES_TOOL,
        description="Analyse images and provide detailed descriptions of their content.",
        parameters=AnalyzeImagesArgs.model_json_schema(),
    ),
)


class ToolArgumentError(Exception):
    """Raised when a tool call names an unknown tool or has invalid arguments."""

    def __init__(self, message: str, tool_name: str = "") -> None:
        super().__init__(message)
        self.tool_name = tool_name


def parse_tool_call(name: str, args: dict[str, Any]) -> SearchToolCall | AnalyzeImagesToolCall:
    """Validate a raw model tool call into its typed variant.

    Raises:
        ToolArgumentError: On unknown tool names or invalid arguments.
    """
    try:
        return _TOOL_CALL.validate_python({"tool": name, "args": args})
    except ValidationError as e:
        if any(err["type"].startswith("union_tag") for err in e.errors()):
            raise ToolArgumentError(f"Unknown tool: {name}", tool_name=name) from e
        raise ToolArgumentError(
            f"Invalid arguments for {name}: {e.error_count()} validation error(s)",
            tool_name=name,
        ) from e
