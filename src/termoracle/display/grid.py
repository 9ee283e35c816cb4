"""Terminal grid renderer for analysed images.

Lays out image previews in up to three columns sized to the terminal,
each with a clickable label above and a short wrapped description below.
"""

from __future__ import annotations

import logging
import shutil
import sys
import textwrap
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import TextIO

from termoracle.display.console import make_link
from termoracle.domain.models import ImageAnalysis
from termoracle.utils.imaging import iter_terminal_rows

logger = logging.getLogger(__name__)

HEADER = "Preview of images (terminal rendering may appear pixelated)"
SEPARATOR = "═"
MARGIN = 10

Rasterizer = Callable[[Path, int], Iterable[str]]


def compute_layout(
    terminal_width: int,
    min_width: int = 30,
    max_width: int = 80,
    spacing: int = 2,
) -> tuple[int, int]:
    """Pick the column count (1-3) and per-image width for a terminal.

    Widths always fall within ``[min_width, max_width]``.
    """
    cols = 1
    width = min(max_width, max(min_width, terminal_width - MARGIN))
    for candidate in (2, 3):
        if terminal_width >= min_width * candidate + spacing * (candidate - 1) + MARGIN:
            cols = candidate
            width = min(max_width, (terminal_width - spacing * (candidate - 1) - MARGIN) // candidate)
    return cols, width


def wrap_description(text: str, width: int, max_lines: int = 3) -> list[str]:
    """Word-wrap to ``width``; overflow is cut at ``max_lines`` with an ellipsis."""
    lines = textwrap.wrap(" ".join(text.split()), width=width)
    if len(lines) <= max_lines:
        return lines
    lines = lines[:max_lines]
    lines[-1] = lines[-1][: width - 3].ljust(width - 3) + "..."
    return lines


class GridRenderer:
    """Prints analysed images as a preview grid."""

    def __init__(
        self,
        stream: TextIO | None = None,
        terminal_width: int | None = None,
        fallback_width: int = 120,
        min_width: int = 30,
        max_width: int = 80,
        spacing: int = 2,
        max_description_lines: int = 3,
        rasterizer: Rasterizer = iter_terminal_rows,
    ) -> None:
        self._stream = stream or sys.stdout
        self._terminal_width = terminal_width
        self._fallback_width = fallback_width
        self._min_width = min_width
        self._max_width = max_width
        self._spacing = spacing
        self._max_description_lines = max_description_lines
        self._rasterizer = rasterizer

    def _print(self, text: str = "") -> None:
        self._stream.write(text + "\n")

    def _width(self) -> int:
        if self._terminal_width is not None:
            return self._terminal_width
        return shutil.get_terminal_size(fallback=(self._fallback_width, 24)).columns

    def render(self, entries: Sequence[ImageAnalysis]) -> None:
        """Print the grid. Entries without a stored file keep a label-only cell."""
        if not entries:
            self._print("No images to display")
            return

        terminal_width = self._width()
        cols, width = compute_layout(terminal_width, self._min_width, self._max_width, self._spacing)
        gap = " " * self._spacing
        separator = SEPARATOR * min(terminal_width, 120)

        self._print(HEADER)
        self._print(separator)
        for start in range(0, len(entries), cols):
            self._render_row(entries[start:start + cols], width, gap)
        self._print(separator)
        self._stream.flush()

    def _render_row(self, row: Sequence[ImageAnalysis], width: int, gap: str) -> None:
        labels: list[str] = []
        previews: list[list[str]] = []
        for entry in row:
            rows, label = self._render_cell(entry, width)
            previews.append(rows)
            labels.append(label)
        self._print(gap.join(labels))

        blank = " " * width
        height = max(len(p) for p in previews)
        for line in range(height):
            self._print(gap.join(p[line] if line < len(p) else blank for p in previews))

        wrapped = [
            wrap_description(e.display_description, width, self._max_description_lines)
            for e in row
        ]
        for line in range(max(len(w) for w in wrapped)):
            self._print(gap.join((w[line] if line < len(w) else "").ljust(width) for w in wrapped))
        self._print()

    def _render_cell(self, entry: ImageAnalysis, width: int) -> tuple[list[str], str]:
        """Preview rows and padded label for one image."""
        plain = f"{entry.image_id} ({entry.filename})"
        padding = " " * max(0, width - len(plain))
        if entry.storage_path is None:
            return [], plain + padding
        try:
            rows = list(self._rasterizer(entry.storage_path, width))
        except Exception as e:
            logger.warning("Could not render %s: %s", entry.storage_path, e)
            return [], plain + padding
        link = make_link(plain, Path(entry.storage_path).resolve().as_uri())
        return rows, link + padding
