"""Image fetch-and-prepare tool with a shared LRU cache."""

from __future__ import annotations

import asyncio
import base64
import io
import math
import threading
from collections import OrderedDict
from typing import Any

import httpx
from loguru import logger
from PIL import Image, UnidentifiedImageError

from emul_agent.agent.tools.base import Tool, ToolResult
from emul_agent.agent.transcript import InlineDataPart
from emul_agent.errors import ToolError

DEFAULT_ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
DEFAULT_MAX_BYTES = 4 * 1024 * 1024
DEFAULT_MAX_PIXELS = 1024 * 1024
DEFAULT_CACHE_SIZE = 20

# Pillow format name -> (mime type, save format).
_FORMAT_FAMILIES = {
    "JPEG": ("image/jpeg", "JPEG"),
    "MPO": ("image/jpeg", "JPEG"),
    "PNG": ("image/png", "PNG"),
    "WEBP": ("image/webp", "WEBP"),
    "GIF": ("image/gif", "GIF"),
}
_FALLBACK_FORMAT = ("image/png", "PNG")

IMAGE_READY_MESSAGE = "Image fetched successfully. Please refer to the provided image data."


class ImageCache:
    """
    Bounded least-recently-used map: URL -> (mime type, base64 payload).

    Keys are exact URL strings. The lock covers single map operations only,
    so two concurrent misses for the same URL may both fetch.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_SIZE):
        if capacity < 1:
            raise ValueError("Image cache capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[str, tuple[str, str]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, url: str) -> tuple[str, str] | None:
        with self._lock:
            entry = self._entries.get(url)
            if entry is not None:
                self._entries.move_to_end(url)
            return entry

    def put(self, url: str, mime_type: str, data: str) -> None:
        with self._lock:
            self._entries[url] = (mime_type, data)
            self._entries.move_to_end(url)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _format_mb(size: int) -> str:
    return f"{size / (1024 * 1024):.2f} MB"


def downscale_image(payload: bytes, content_type: str, max_pixels: int) -> tuple[str, bytes]:
    """
    Shrink an image to at most ``max_pixels`` pixels, keeping its aspect ratio.

    Images already within the ceiling, and payloads Pillow cannot decode, are
    returned unchanged with the declared content type.
    """
    try:
        with Image.open(io.BytesIO(payload)) as image:
            image.load()
            width, height = image.size
            if width * height <= max_pixels:
                return content_type, payload

            scale = math.sqrt(max_pixels / float(width * height))
            new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
            mime_type, save_format = _FORMAT_FAMILIES.get(image.format or "", _FALLBACK_FORMAT)
            resized = image.resize(new_size, Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"Could not decode image for resizing, passing through: {e}")
        return content_type, payload

    if save_format == "JPEG" and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")
    buffer = io.BytesIO()
    resized.save(buffer, format=save_format)
    logger.info(f"Downscaled image from {width}x{height} to {new_size[0]}x{new_size[1]}")
    return mime_type, buffer.getvalue()


class FetchImageTool(Tool):
    """Download an image, bound its size, and hand it to the model as inline data."""

    def __init__(
        self,
        cache: ImageCache | None = None,
        *,
        max_bytes: int = DEFAULT_MAX_BYTES,
        max_pixels: int = DEFAULT_MAX_PIXELS,
        timeout: float = 15.0,
        allowed_mime_types: tuple[str, ...] | list[str] = DEFAULT_ALLOWED_MIME_TYPES,
    ):
        self.cache = cache if cache is not None else ImageCache()
        self.max_bytes = max_bytes
        self.max_pixels = max_pixels
        self.timeout = timeout
        self.allowed_mime_types = tuple(item.lower() for item in allowed_mime_types)

    @property
    def name(self) -> str:
        return "fetch_and_prepare_image"

    @property
    def description(self) -> str:
        return (
            "Downloads an image from a URL, encodes it, and prepares it for the AI to "
            "process. Checks a cache first."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "The full URL of the image file (e.g., ending in .jpg, .png, .webp).",
                }
            },
            "required": ["url"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        url = self.require_str(kwargs, "url", self.name)
        mime_type, data = await self.fetch(url)
        return ToolResult(
            content=IMAGE_READY_MESSAGE,
            inline_data=InlineDataPart(mime_type=mime_type, data=data),
        )

    async def fetch(self, url: str) -> tuple[str, str]:
        """Return (mime type, base64 data) for ``url``, from cache when possible."""
        cached = self.cache.get(url)
        if cached is not None:
            logger.info(f"Image cache hit: {url}")
            return cached

        logger.info(f"Image cache miss, fetching image: {url}")
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=self.timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ToolError(f"Failed to fetch image: {e}") from e

        content_type = (
            (response.headers.get("content-type") or "").split(";", 1)[0].strip().lower()
        )
        if content_type not in self.allowed_mime_types:
            raise ToolError(
                f"Unsupported image Content-Type: {content_type or 'unknown'}. "
                f"Supported types are: {', '.join(self.allowed_mime_types)}"
            )

        declared = response.headers.get("content-length")
        if declared and declared.strip().isdigit() and int(declared) > self.max_bytes:
            raise ToolError(
                f"Image size ({_format_mb(int(declared))}) exceeds the limit of "
                f"{_format_mb(self.max_bytes)}"
            )

        payload = response.content
        if len(payload) > self.max_bytes:
            raise ToolError(
                f"Image size ({_format_mb(len(payload))}) exceeds the limit of "
                f"{_format_mb(self.max_bytes)} (checked after download)"
            )

        mime_type, prepared = await asyncio.to_thread(
            downscale_image, payload, content_type, self.max_pixels
        )
        data = base64.b64encode(prepared).decode("ascii")
        self.cache.put(url, mime_type, data)
        logger.info(f"Image stored in cache: {url} ({mime_type})")
        return mime_type, data
