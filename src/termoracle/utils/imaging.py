"""Image processing utilities for termoracle.

Shared decoding, downscaling, re-encoding and terminal rasterization
helpers used by the image pipeline and the grid renderer.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".jpg"

# Formats cv2.imencode can write back after a downscale.
_REENCODABLE = {".jpg", ".jpeg", ".png", ".webp"}

_UPPER_HALF = "▀"
_RESET = "\x1b[0m"


def numpy_to_pil(image: np.ndarray) -> Image.Image:
    """Convert a numpy image array (BGR) to a PIL Image (RGB)."""
    rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return Image.fromarray(rgb)


def pil_to_numpy(image: Image.Image) -> np.ndarray:
    """Convert a PIL Image (any mode) to a numpy array (BGR)."""
    rgb_array = np.array(image.convert("RGB"))
    return cv2.cvtColor(rgb_array, cv2.COLOR_RGB2BGR)


def infer_extension(url: str, default: str = DEFAULT_EXTENSION) -> str:
    """File extension from the URL path, or ``default`` when there is none."""
    try:
        suffix = PurePosixPath(urlsplit(url).path).suffix
    except ValueError:
        return default
    return suffix or default


def downscale(image: np.ndarray, max_dimension: int) -> np.ndarray:
    """Shrink an image so its largest side fits ``max_dimension``.

    Preserves aspect ratio. Images already small enough are returned as-is.
    """
    h, w = image.shape[:2]
    largest = max(h, w)
    if largest <= max_dimension:
        return image
    scale = max_dimension / largest
    new_w = max(1, int(w * scale))
    new_h = max(1, int(h * scale))
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def compress_image(data: bytes, extension: str, max_dimension: int = 1568, jpeg_quality: int = 85) -> bytes:
    """Downscale oversized images, re-encoding in the original format.

    Returns the input unchanged when the image is small enough, cannot be
    decoded, or is in a format that is not re-encoded (GIF, BMP, ...).
    """
    ext = extension.lower()
    if ext not in _REENCODABLE:
        return data
    try:
        with Image.open(io.BytesIO(data)) as img:
            if max(img.size) <= max_dimension:
                return data
            array = pil_to_numpy(img)
    except (OSError, ValueError) as e:
        logger.debug("Not compressing undecodable image: %s", e)
        return data

    resized = downscale(array, max_dimension)
    params: list[int] = []
    if ext in (".jpg", ".jpeg"):
        params = [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality]
    success, buffer = cv2.imencode(ext, resized, params)
    if not success:
        logger.debug("Re-encoding to %s failed, keeping original bytes", ext)
        return data
    return buffer.tobytes()


def iter_terminal_rows(source: Path | str | bytes, width: int) -> Iterator[str]:
    """Yield printable rows approximating the image at ``width`` columns.

    Each character cell shows two vertically stacked pixels using the
    upper-half block with 24-bit foreground/background colours, so every
    row is exactly ``width`` visible characters wide.

    Raises:
        OSError: If the image cannot be opened or decoded.
    """
    if isinstance(source, bytes):
        img = Image.open(io.BytesIO(source))
    else:
        img = Image.open(source)
    with img:
        array = pil_to_numpy(img)

    h, w = array.shape[:2]
    pixel_h = max(2, int(round(width * h / w)))
    pixel_h += pixel_h % 2
    resized = cv2.resize(array, (width, pixel_h), interpolation=cv2.INTER_AREA)
    rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

    for y in range(0, pixel_h, 2):
        top = rgb[y]
        bottom = rgb[y + 1]
        cells = [
            f"\x1b[38;2;{t[0]};{t[1]};{t[2]}m\x1b[48;2;{b[0]};{b[1]};{b[2]}m{_UPPER_HALF}"
            for t, b in zip(top, bottom)
        ]
        yield "".join(cells) + _RESET
