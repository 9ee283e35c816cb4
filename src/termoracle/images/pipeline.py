"""Concurrent image download and description pipeline.

For every URL in a batch two independent stages run concurrently: the
download stage stores the (possibly downscaled) bytes under a fresh
session-unique identifier, and the description stage asks the vision
model what the image shows. A failure in either stage only degrades
that one image; the batch always returns one analysis per input URL.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from pathlib import Path

import httpx

from termoracle.domain.models import ImageAnalysis, ImageTask
from termoracle.llm.base import ChatProvider
from termoracle.utils.imaging import compress_image, infer_extension

logger = logging.getLogger(__name__)

DESCRIBE_PROMPT = (
    "Analyse the following image and provide a detailed description of its content, "
    "including any text, charts, diagrams, or visual elements."
)

_ID_ECHO = re.compile(r"^IMG\d+\s*:*", re.IGNORECASE)


class ImageIdCounter:
    """Monotonic, never-reused image identifiers for the whole session."""

    def __init__(self, prefix: str = "IMG", start: int = 1) -> None:
        self._prefix = prefix
        self._next = start

    @property
    def issued(self) -> int:
        return self._next - 1

    def next_id(self) -> str:
        image_id = f"{self._prefix}{self._next}"
        self._next += 1
        return image_id


def build_description_prompt(query_context: str | None) -> str:
    if not query_context:
        return DESCRIBE_PROMPT
    return f'{DESCRIBE_PROMPT} This image was returned for the web search query: "{query_context}".'


def clean_description(text: str) -> str | None:
    """Strip an echoed ``IMGn:`` prefix; empty answers count as unavailable."""
    cleaned = _ID_ECHO.sub("", text.strip()).strip()
    return cleaned or None


class ImagePipeline:
    """Downloads, stores and describes a batch of images concurrently."""

    def __init__(
        self,
        describer: ChatProvider,
        counter: ImageIdCounter,
        image_dir: Path | str = "downloaded_images",
        download_timeout: float = 30.0,
        max_dimension: int = 1568,
        jpeg_quality: int = 85,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._describer = describer
        self._counter = counter
        self._image_dir = Path(image_dir)
        self._download_timeout = download_timeout
        self._max_dimension = max_dimension
        self._jpeg_quality = jpeg_quality
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=self._download_timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ImagePipeline:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.disconnect()

    async def analyze(self, urls: Sequence[str], query_context: str | None = None) -> list[ImageAnalysis]:
        """Process every URL and return one analysis per URL, in input order."""
        await self.connect()
        prompt = build_description_prompt(query_context)
        # Identifiers are assigned before any suspension point, in input order.
        tasks = [self._new_task(url) for url in urls]
        await asyncio.gather(*(self._process(task, prompt) for task in tasks))
        logger.info(
            "Analysed %d image(s): %d stored, %d described",
            len(tasks),
            sum(1 for t in tasks if t.storage_path is not None),
            sum(1 for t in tasks if t.description),
        )
        return [
            ImageAnalysis(
                image_id=t.image_id,
                url=t.url,
                filename=t.filename,
                storage_path=t.storage_path,
                description=t.description,
            )
            for t in tasks
        ]

    def _new_task(self, url: str) -> ImageTask:
        image_id = self._counter.next_id()
        return ImageTask(url=url, image_id=image_id, filename=f"{image_id}{infer_extension(url)}")

    async def _process(self, task: ImageTask, prompt: str) -> None:
        task.storage_path, task.description = await asyncio.gather(
            self._download(task),
            self._describe(task, prompt),
        )

    async def _download(self, task: ImageTask) -> Path | None:
        try:
            resp = await self._client.get(task.url)
            resp.raise_for_status()
            return await asyncio.to_thread(self._store, task.filename, resp.content)
        except (httpx.HTTPError, OSError) as e:
            logger.warning("Error saving %s from %s: %s", task.image_id, task.url, e)
        except Exception as e:
            logger.error("Unexpected error storing %s from %s: %s", task.image_id, task.url, e)
        return None

    def _store(self, filename: str, data: bytes) -> Path:
        data = compress_image(
            data,
            Path(filename).suffix,
            max_dimension=self._max_dimension,
            jpeg_quality=self._jpeg_quality,
        )
        self._image_dir.mkdir(parents=True, exist_ok=True)
        path = self._image_dir / filename
        path.write_bytes(data)
        return path

    async def _describe(self, task: ImageTask, prompt: str) -> str | None:
        try:
            text = await self._describer.describe_image(task.url, prompt)
        except Exception as e:
            logger.warning("Description failed for %s (%s): %s", task.image_id, task.url, e)
            return None
        return clean_description(text)
