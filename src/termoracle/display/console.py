"""Console presentation helpers.

ANSI colour codes, OSC-8 hyperlinks, and the presenter that prints the
orchestration loop's events as they arrive.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import TextIO

from termoracle.domain.models import (
    Citation,
    TextDelta,
    ToolCallEvent,
    ToolResultEvent,
    TurnComplete,
)
from termoracle.tools.definitions import ANALYZE_IMAGES_TOOL, SEARCH_TOOL

BOLD = "\x1b[1m"
RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
BLUE = "\x1b[34m"
MAGENTA = "\x1b[35m"
CYAN = "\x1b[36m"
GREY = "\x1b[90m"
BRIGHT_RED = "\x1b[91m"
BRIGHT_GREEN = "\x1b[92m"
BRIGHT_YELLOW = "\x1b[93m"
RESET = "\x1b[0m"

RULE_WIDTH = 80


def colorize(text: str, *codes: str) -> str:
    return f"{''.join(codes)}{text}{RESET}"


def make_link(text: str, url: str) -> str:
    """Wrap ``text`` in an OSC-8 terminal hyperlink to ``url``."""
    return f"\x1b]8;;{url}\x07{text}\x1b]8;;\x07"


class ConsolePresenter:
    """Prints loop events to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def _print(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def banner(self) -> None:
        self._print(colorize("The Oracle - See the Full Picture", BOLD, BLUE))
        self._print(colorize("AI News & Research Assistant That Can See", GREY))
        self._print(colorize(
            "I search the web for real-time information and analyze images to give you complete context.",
            GREY,
        ))
        self._print(colorize(
            "Perfect for: breaking news, research analysis, visual content understanding, fact-checking",
            GREY,
        ))
        self._print(colorize(
            "For informational purposes only. Always verify critical information from primary sources.",
            BRIGHT_RED,
        ))
        self._print(colorize('Type "exit" or "quit" to end the conversation.', GREY))
        self._print()

    def prompt(self) -> str:
        return colorize("You: ", MAGENTA)

    def farewell(self) -> None:
        self._print(colorize("Thanks for using The Oracle - stay informed and see the full picture!", BLUE))

    def error(self, message: str) -> None:
        self._print(colorize(f"Error: {message}", RED))

    def rule(self) -> None:
        self._print(colorize("─" * RULE_WIDTH, GREY))

    def text_delta(self, event: TextDelta) -> None:
        self.stream.write(colorize(event.text, CYAN))
        self.stream.flush()

    def tool_call(self, event: ToolCallEvent) -> None:
        call = event.call
        if call.tool_name == SEARCH_TOOL:
            header = f'TOOL CALL: Searching for "{call.args.get("query", "")}"'
        elif call.tool_name == ANALYZE_IMAGES_TOOL:
            count = len(call.args.get("image_urls") or [])
            header = f"TOOL CALL: Analyzing {count} image(s)"
        else:
            header = f"TOOL CALL: {call.tool_name}"
        if event.forced:
            header += " (required before answering)"
        self._print()
        self._print(colorize(header, YELLOW))
        self._print()
        self.rule()

    def tool_result(self, event: ToolResultEvent) -> None:
        result = event.result
        self._print()
        self._print(colorize("TOOL RESULT" + (" (failed)" if result.is_error else ""), GREEN))
        if result.is_error:
            self._print(colorize("   " + " ".join(result.content), GREY))
        elif result.tool_name == SEARCH_TOOL and event.citations:
            self._print(colorize("Found sources:", GREEN))
            for idx, citation in enumerate(event.citations, start=1):
                self._print(colorize(f"   {idx}. {citation.title}", GREEN))
                self._print(colorize(f"      {citation.url}", GREY))
        elif result.tool_name == ANALYZE_IMAGES_TOOL:
            count = result.data.get("analyzed_count", 0)
            self._print(colorize(f"Completed analysis of {count} images", BRIGHT_GREEN))
        self.rule()

    def references(self, citations: Sequence[Citation]) -> None:
        if not citations:
            return
        self._print()
        self._print()
        self._print(colorize("REFERENCES:", BRIGHT_YELLOW))
        for idx, citation in enumerate(citations, start=1):
            self._print(colorize(f"{idx}. {make_link(citation.title, citation.url)}", BRIGHT_YELLOW))

    def turn_complete(self, event: TurnComplete) -> None:
        if event.error:
            self._print()
            self.error(event.error)
        elif event.budget_exhausted:
            self._print()
            self._print(colorize(f"(stopped after {event.steps} steps)", GREY))
        self.references(event.citations)
        self._print()
