"""Search tool adapter.

Turns raw search results into what the model consumes: a handful of
citation-tagged text snippets and one flat, filtered list of image URLs
the model can hand to the image analysis tool verbatim.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from termoracle.domain.models import Citation, SearchResult
from termoracle.search.base import SearchBackend, SearchError

logger = logging.getLogger(__name__)

VECTOR_EXTENSIONS = frozenset({".svg", ".svgz"})
NO_RESULTS = "No relevant results."


class SearchOutcome(BaseModel):
    """Normalized search tool result."""

    success: bool
    texts: list[str] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)
    error: str | None = None

    def to_blocks(self) -> list[str]:
        """Text blocks for the model: snippets first, then the image URL list."""
        if not self.success:
            return [f"Search failed: {self.error or 'unknown error'}"]
        blocks = list(self.texts)
        if self.image_urls:
            blocks.append(f"IMAGE_URLS: {', '.join(self.image_urls)}")
        return blocks or [NO_RESULTS]

    def to_payload(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error or "Search failed", "results": []}
        return {
            "success": True,
            "texts": self.texts,
            "image_urls": self.image_urls,
            "citations": [c.model_dump() for c in self.citations],
        }


def is_vector_image(url: str) -> bool:
    """True when the URL path ends in a vector-image extension."""
    suffix = PurePosixPath(urlsplit(url).path).suffix
    return suffix.lower() in VECTOR_EXTENSIONS


def collect_image_urls(results: Iterable[SearchResult], limit: int = 15) -> list[str]:
    """Gather every image of every result, drop vector and malformed URLs,
    de-duplicate preserving order and cap the list at ``limit``."""
    seen: set[str] = set()
    urls: list[str] = []
    for result in results:
        for url in result.image_urls:
            parts = urlsplit(url)
            if parts.scheme not in ("http", "https") or not parts.netloc:
                continue
            if is_vector_image(url) or url in seen:
                continue
            seen.add(url)
            urls.append(url)
            if len(urls) >= limit:
                return urls
    return urls


def format_snippet(index: int, result: SearchResult, max_chars: int) -> str:
    citation = Citation(title=result.title, url=result.url)
    return f"SOURCE {index}: {result.title}\n{result.content[:max_chars]}\n{citation.marker}"


class SearchToolAdapter:
    """Runs searches on behalf of the model and never raises."""

    def __init__(
        self,
        backend: SearchBackend,
        max_price: float = 1000,
        snippet_chars: int = 1200,
        max_snippets: int = 5,
        max_images: int = 15,
    ) -> None:
        self._backend = backend
        self._max_price = max_price
        self._snippet_chars = snippet_chars
        self._max_snippets = max_snippets
        self._max_images = max_images

    async def run(self, query: str, max_results: int = 5) -> SearchOutcome:
        try:
            response = await self._backend.search(
                query,
                max_results=max_results,
                max_price=self._max_price,
                is_tool_call=True,
            )
        except SearchError as e:
            logger.error("Search for %r failed: %s", query, e)
            return SearchOutcome(success=False, error=str(e))

        if not response.success:
            return SearchOutcome(success=False, error=response.error or "Search failed")

        top = response.results[: self._max_snippets]
        outcome = SearchOutcome(
            success=True,
            texts=[
                format_snippet(i, r, self._snippet_chars)
                for i, r in enumerate(top, start=1)
            ],
            image_urls=collect_image_urls(response.results, self._max_images),
            citations=[Citation(title=r.title, url=r.url) for r in top],
        )
        logger.info(
            "Search %r: %d results, %d images",
            query, len(response.results), len(outcome.image_urls),
        )
        return outcome
