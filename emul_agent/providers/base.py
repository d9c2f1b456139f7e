"""Generation provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from emul_agent.agent.transcript import Part, part_from_wire


@dataclass(frozen=True)
class ModelReply:
    """Parts of the first candidate of a successful generation call."""

    parts: tuple[Part, ...]
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_response(cls, payload: dict[str, Any]) -> ModelReply:
        candidates = payload.get("candidates") or []
        first = candidates[0] if candidates and isinstance(candidates[0], dict) else {}
        content = first.get("content") if isinstance(first.get("content"), dict) else {}
        raw_parts = content.get("parts") if isinstance(content.get("parts"), list) else []
        return cls(parts=tuple(part_from_wire(item) for item in raw_parts), raw=payload)


class GenerationProvider(ABC):
    """
    One remote generation request, no retries.

    Implementations raise ``TransportError`` for network/decoding failures,
    ``RemoteAPIError`` for error statuses or error objects, and
    ``MalformedResponseError`` for bodies without a candidate collection.
    """

    @abstractmethod
    async def generate(
        self,
        contents: list[dict[str, Any]],
        system_prompt: str,
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> dict[str, Any]:
        pass

    @abstractmethod
    def get_default_model(self) -> str:
        pass
