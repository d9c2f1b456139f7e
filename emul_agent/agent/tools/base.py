"""Tool contract shared by every function the model can call."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from emul_agent.agent.transcript import InlineDataPart
from emul_agent.errors import ToolError


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool invocation: content or error, plus optional inline media."""

    content: str | None = None
    error: str | None = None
    inline_data: InlineDataPart | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_response(self) -> dict[str, Any]:
        """Payload placed into the function-response part for the model."""
        if self.error is not None:
            return {"error": self.error}
        return {"result": self.content or ""}

    @classmethod
    def failure(cls, message: str) -> ToolResult:
        return cls(error=message)


class Tool(ABC):
    """
    A named local capability advertised to the generation endpoint.

    ``parameters`` is a JSON-schema object used only when advertising the tool.
    Arguments are checked when each tool extracts them; bad input raises
    ``ToolError`` which the registry turns into an error result.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def description(self) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        raise NotImplementedError

    def to_declaration(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    @staticmethod
    def require_str(args: dict[str, Any], key: str, tool_name: str) -> str:
        value = args.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ToolError(f"Missing '{key}' argument for {tool_name}")
        return value.strip()
