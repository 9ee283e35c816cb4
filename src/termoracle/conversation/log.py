"""Append-only conversation log with synchronous JSON persistence.

The in-memory turn list is authoritative for the running session. Every
append rewrites the whole log file so the file can be replayed at any
point; a failed write is logged and otherwise ignored.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from termoracle.domain.models import Role, Turn

logger = logging.getLogger(__name__)

_TURNS = TypeAdapter(list[Turn])


class PersistenceError(Exception):
    """Raised when a persisted log cannot be read back."""

    def __init__(self, message: str, path: Path | str = "") -> None:
        super().__init__(message)
        self.path = str(path)


class ConversationLog:
    """Ordered store of turns, owned by the orchestration loop."""

    def __init__(self, path: Path | str | None = None, reset: bool = True) -> None:
        self._path = Path(path) if path is not None else None
        self._turns: list[Turn] = []
        if reset:
            self._persist()

    @property
    def path(self) -> Path | None:
        return self._path

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)
        self._persist()

    def snapshot(
        self,
        start: int = 0,
        stop: int | None = None,
        text_only: bool = False,
    ) -> list[Turn]:
        """Return a copy of the turns in ``[start, stop)``.

        With ``text_only`` only user and assistant turns carrying plain
        text are kept, for providers that cannot replay tool traffic.
        """
        turns = self._turns[start:stop]
        if text_only:
            turns = [
                t for t in turns
                if t.role in (Role.USER, Role.ASSISTANT) and t.is_text
            ]
        return list(turns)

    def last_search_query(self, tool_name: str) -> str | None:
        """Most recent query the assistant sent to the search tool."""
        for turn in reversed(self._turns):
            if turn.role != Role.ASSISTANT or turn.is_text:
                continue
            for call in turn.tool_calls:
                query = call.args.get("query")
                if call.tool_name == tool_name and query:
                    return str(query)
        return None

    def _persist(self) -> None:
        if self._path is None:
            return
        try:
            write_turns(self._path, self._turns)
        except OSError as e:
            logger.error("Failed to persist conversation history to %s: %s", self._path, e)

    @classmethod
    def load(cls, path: Path | str) -> ConversationLog:
        """Rebuild a log from a persisted file without rewriting it.

        Raises:
            PersistenceError: If the file is missing or malformed.
        """
        path = Path(path)
        try:
            turns = _TURNS.validate_json(path.read_bytes())
        except OSError as e:
            raise PersistenceError(f"Cannot read {path}: {e}", path=path) from e
        except ValidationError as e:
            raise PersistenceError(f"Malformed conversation history: {e}", path=path) from e
        log = cls(path, reset=False)
        log._turns = turns
        return log


def write_turns(path: Path, turns: Sequence[Turn]) -> None:
    """Write the full turn list, replacing the file atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(_TURNS.dump_json(list(turns), indent=2))
    os.replace(tmp, path)
