"""Torrent magnet resolution from Nyaa view pages."""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from emul_agent.agent.tools.base import Tool, ToolResult
from emul_agent.errors import ToolError

MAGNET_SELECTOR = 'a[href^="magnet:?"]'

MagnetHandler = Callable[[str], Awaitable[None]]


class MagnetLinkNotFoundError(ToolError):
    """The page has no anchor pointing at a magnet URI."""

    def __init__(self) -> None:
        super().__init__("Could not find the magnet link anchor tag in the HTML content")


def extract_magnet_url(html: str) -> str:
    """Return the first ``magnet:?`` link on a single-torrent view page."""
    soup = BeautifulSoup(html or "", "html.parser")
    anchor = soup.select_one(MAGNET_SELECTOR)
    if anchor is None:
        raise MagnetLinkNotFoundError()
    return str(anchor.get("href"))


async def fetch_and_extract_magnet_url(url: str, timeout: float = 20.0) -> str:
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise ToolError(f"Failed to fetch torrent page: {e}") from e
    return extract_magnet_url(response.text)


class DownloadTorrentTool(Tool):
    """Resolve a Nyaa page to its magnet link and pass it to a download handler."""

    def __init__(self, *, timeout: float = 20.0, magnet_handler: MagnetHandler | None = None):
        self.timeout = timeout
        self._magnet_handler = magnet_handler

    @property
    def name(self) -> str:
        return "download_torrent"

    @property
    def description(self) -> str:
        return (
            "Downloads a torrent file from a Nyaa.si URL. Extracts the magnet link and "
            "initiates the download."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "nyaa_url": {
                    "type": "string",
                    "description": "The full URL of the Nyaa.si torrent page (e.g., 'https://nyaa.si/view/123456').",
                }
            },
            "required": ["nyaa_url"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        url = self.require_str(kwargs, "nyaa_url", self.name)
        logger.info(f"Attempting to start torrent download: {url}")
        try:
            magnet = await fetch_and_extract_magnet_url(url, timeout=self.timeout)
        except ToolError as e:
            logger.error(f"Failed to get magnet link for {url}: {e}")
            raise ToolError(f"Failed to get magnet link for {url}: {e}") from e

        logger.info(f"Extracted magnet link: {magnet}")
        if self._magnet_handler is not None:
            await self._magnet_handler(magnet)
        return ToolResult(
            content=f"Okay, I found the magnet link for {url} and will start the download."
        )
