"""Tool schemas and call validation."""

from termoracle.tools.definitions import (
    ANALYZE_IMAGES_TOOL,
    SEARCH_TOOL,
    TOOL_SPECS,
    AnalyzeImagesToolCall,
    SearchToolCall,
    ToolArgumentError,
    ToolSpec,
    parse_tool_call,
)

__all__ = [
    "ANALYZE_IMAGES_TOOL",
    "SEARCH_TOOL",
    "TOOL_SPECS",
    "AnalyzeImagesToolCall",
    "SearchToolCall",
    "ToolArgumentError",
    "ToolSpec",
    "parse_tool_call",
]
