"""Tools the model can call during a conversation."""

from emul_agent.agent.tools.base import Tool, ToolResult
from emul_agent.agent.tools.dice import RollDiceTool
from emul_agent.agent.tools.image import FetchImageTool, ImageCache
from emul_agent.agent.tools.registry import ToolRegistry
from emul_agent.agent.tools.torrent import DownloadTorrentTool
from emul_agent.agent.tools.web import ReadWebpageTool

__all__ = [
    "DownloadTorrentTool",
    "FetchImageTool",
    "ImageCache",
    "ReadWebpageTool",
    "RollDiceTool",
    "Tool",
    "ToolRegistry",
    "ToolResult",
]
