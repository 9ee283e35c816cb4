"""Abstract base class for search backends.

All search backends must conform to this interface, so the search tool
adapter can be pointed at any provider that returns ranked documents
with optional image references.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from termoracle.domain.models import SearchResponse

logger = logging.getLogger(__name__)


class SearchBackend(ABC):
    """Abstract interface for a text/image search provider.

    Example usage::

        async with ValyuSearchBackend(api_key="...") as backend:
            response = await backend.search("james webb telescope", max_results=5)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Prepare the backend for requests (create clients, sessions)."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release resources. Safe to call multiple times."""
        ...

    @abstractmethod
    async def search(
        self,
        query: str,
        max_results: int = 5,
        max_price: float | None = None,
        is_tool_call: bool = True,
    ) -> SearchResponse:
        """Run a search.

        Args:
            query: Free-text query.
            max_results: Upper bound on returned results.
            max_price: Cost ceiling for the call, if the provider bills per query.
            is_tool_call: Marks the request as issued by an agent tool call.

        Returns:
            A SearchResponse. Providers that report a failure in-band
            return ``success=False`` with an error message.

        Raises:
            SearchError: If the request could not be completed.
        """
        ...

    async def __aenter__(self) -> SearchBackend:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.disconnect()


class SearchError(Exception):
    """Raised when a search request fails."""

    def __init__(self, message: str, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend
