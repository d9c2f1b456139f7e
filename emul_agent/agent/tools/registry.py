"""Closed registry mapping tool names to executors."""

from __future__ import annotations

from typing import Any

from loguru import logger

from emul_agent.agent.tools.base import Tool, ToolResult


class ToolRegistry:
    """Tool name -> handler, with a single unknown-function fallback."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_definitions(self) -> list[dict[str, Any]]:
        """Function declarations for every registered tool, in registration order."""
        return [tool.to_declaration() for tool in self._tools.values()]

    async def execute(self, name: str, args: dict[str, Any] | None) -> ToolResult:
        """Run one invocation. Never raises; failures come back as error results."""
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Unknown function called: {name}")
            return ToolResult.failure(f"Unknown function: {name}")

        params = args if isinstance(args, dict) else {}
        try:
            return await tool.execute(**params)
        except Exception as e:
            logger.warning(f"Tool '{name}' failed: {e}")
            return ToolResult.failure(str(e))

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
