"""Search capability and the search tool adapter.

Public API:
    SearchBackend -- Abstract base class
    SearchError -- Raised by backends on transport failure
    SearchToolAdapter -- Normalizes results for the model
    ValyuSearchBackend -- Valyu HTTP implementation
"""

from termoracle.search.adapter import SearchOutcome, SearchToolAdapter
from termoracle.search.base import SearchBackend, SearchError

__all__ = [
    "SearchBackend",
    "SearchError",
    "SearchOutcome",
    "SearchToolAdapter",
    "ValyuSearchBackend",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "ValyuSearchBackend":
        from termoracle.search.valyu import ValyuSearchBackend
        return ValyuSearchBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
