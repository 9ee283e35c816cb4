"""Valyu search backend.

Sends search requests to the Valyu DeepSearch HTTP API and normalizes
the JSON payload into SearchResult models.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from termoracle.domain.models import SearchResponse, SearchResult
from termoracle.search.base import SearchBackend, SearchError

logger = logging.getLogger(__name__)


class ValyuSearchBackend(SearchBackend):
    """Searches Valyu's multimodal index over HTTP."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.valyu.network/v1",
        search_type: str = "web",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._search_type = search_type
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the HTTP client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={"x-api-key": self._api_key},
            transport=self._transport,
        )
        logger.info("Initialized Valyu client (base_url=%s)", self._base_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def search(
        self,
        query: str,
        max_results: int = 5,
        max_price: float | None = None,
        is_tool_call: bool = True,
    ) -> SearchResponse:
        """POST the query to /deepsearch and parse the response."""
        await self.connect()
        payload: dict[str, Any] = {
            "query": query,
            "search_type": self._search_type,
            "max_num_results": max_results,
            "is_tool_call": is_tool_call,
        }
        if max_price is not None:
            payload["max_price"] = max_price

        try:
            resp = await self._client.post("/deepsearch", json=payload)
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SearchError(f"Search request failed: {e}", backend="valyu") from e
        if not isinstance(data, dict):
            raise SearchError("Unexpected search response payload", backend="valyu")

        if resp.is_error or not data.get("success", False):
            error = data.get("error") or f"HTTP {resp.status_code}"
            logger.warning("Valyu search failed for %r: %s", query, error)
            return SearchResponse(success=False, error=str(error))

        try:
            results = [self._parse_result(r) for r in data.get("results") or []]
        except (AttributeError, TypeError, ValueError) as e:
            raise SearchError(f"Malformed search results: {e}", backend="valyu") from e
        logger.debug("Valyu returned %d results for %r", len(results), query)
        return SearchResponse(success=True, results=results)

    @staticmethod
    def _parse_result(raw: dict[str, Any]) -> SearchResult:
        """Normalize one result, keeping every image reference it carries."""
        images = raw.get("image_url") or {}
        if isinstance(images, dict):
            image_urls = [str(u) for u in images.values() if u]
        elif isinstance(images, list):
            image_urls = [str(u) for u in images if u]
        else:
            image_urls = [str(images)]

        content = raw.get("content") or ""
        if not isinstance(content, str):
            content = str(content)

        score = raw.get("relevance_score")
        return SearchResult(
            title=raw.get("title") or "Untitled Source",
            url=raw.get("url") or "",
            content=content,
            source=raw.get("source") or "",
            relevance_score=float(score) if score is not None else None,
            image_urls=image_urls,
        )
