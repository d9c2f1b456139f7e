"""Web page reading: fetch HTML and extract the main readable text."""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import urlparse

import httpx
import trafilatura
from loguru import logger

from emul_agent.agent.tools.base import Tool, ToolResult
from emul_agent.errors import ToolError

USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36"
TRUNCATION_MARKER = "\n\n[... content truncated]"
DEFAULT_MAX_CHARS = 8000


def validate_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ToolError(f"Only http/https URLs are allowed, got '{parsed.scheme or 'none'}'")
    if not parsed.netloc:
        raise ToolError("URL is missing a domain")
    return url


def truncate_text(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def extract_main_text(html: str, url: str | None = None) -> str | None:
    """Main-content extraction (boilerplate, navigation and comments dropped)."""
    return trafilatura.extract(
        html,
        url=url,
        include_comments=False,
        include_tables=False,
    )


class ReadWebpageTool(Tool):
    """Fetch a web page and return its main text content."""

    def __init__(self, *, timeout: float = 20.0, max_chars: int = DEFAULT_MAX_CHARS):
        self.timeout = timeout
        self.max_chars = max(1, int(max_chars))

    @property
    def name(self) -> str:
        return "read_webpage"

    @property
    def description(self) -> str:
        return (
            "Fetches a web page and extracts its main readable text content "
            "(articles, posts, documentation)."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "The full http(s) URL of the web page to read.",
                }
            },
            "required": ["url"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        url = validate_url(self.require_str(kwargs, "url", self.name))
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=self.timeout) as client:
                response = await client.get(url, headers={"User-Agent": USER_AGENT})
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ToolError(f"Failed to fetch page: {e}") from e

        content_type = (response.headers.get("content-type") or "").lower()
        if "text/html" not in content_type:
            raise ToolError(
                f"Unsupported Content-Type: {content_type or 'unknown'}. Only HTML pages can be read."
            )

        text = await asyncio.to_thread(extract_main_text, response.text, str(response.url))
        if not text or not text.strip():
            raise ToolError("Could not extract readable content from the page.")

        logger.debug(f"Extracted {len(text)} chars from {url}")
        return ToolResult(content=truncate_text(text.strip(), self.max_chars))
