"""Conversation transcript value types and their Gemini wire encoding."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

ROLE_USER = "user"
ROLE_MODEL = "model"
ROLE_TOOL_RESULT = "tool_result"

# Function results travel back to the endpoint as user turns.
_WIRE_ROLES = {
    ROLE_USER: "user",
    ROLE_MODEL: "model",
    ROLE_TOOL_RESULT: "user",
}


@dataclass(frozen=True)
class TextPart:
    text: str
    # Wire form as received from the model, echoed back unchanged.
    raw: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    def to_wire(self) -> dict[str, Any]:
        if self.raw is not None:
            return dict(self.raw)
        return {"text": self.text}


@dataclass(frozen=True)
class FunctionCallPart:
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None
    raw: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    def to_wire(self) -> dict[str, Any]:
        if self.raw is not None:
            return dict(self.raw)
        call: dict[str, Any] = {"name": self.name, "args": dict(self.args)}
        if self.call_id is not None:
            call["id"] = self.call_id
        return {"functionCall": call}


@dataclass(frozen=True)
class FunctionResponsePart:
    name: str
    response: dict[str, Any]
    call_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "response": dict(self.response)}
        if self.call_id is not None:
            payload["id"] = self.call_id
        return {"functionResponse": payload}


@dataclass(frozen=True)
class InlineDataPart:
    mime_type: str
    data: str  # base64

    def to_wire(self) -> dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


@dataclass(frozen=True)
class OpaquePart:
    """A model part this client does not interpret, echoed back verbatim."""

    payload: dict[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return dict(self.payload)


Part = Union[TextPart, FunctionCallPart, FunctionResponsePart, InlineDataPart, OpaquePart]


def part_from_wire(raw: Any) -> Part:
    """Decode one part of a model reply."""
    if not isinstance(raw, dict):
        return OpaquePart(payload={"value": raw})
    if "functionCall" in raw:
        call = raw.get("functionCall") or {}
        if not isinstance(call, dict):
            call = {}
        args = call.get("args")
        call_id = call.get("id")
        return FunctionCallPart(
            name=str(call.get("name") or ""),
            args=dict(args) if isinstance(args, dict) else {},
            call_id=str(call_id) if call_id is not None else None,
            raw=dict(raw),
        )
    if isinstance(raw.get("text"), str):
        return TextPart(text=raw["text"], raw=dict(raw))
    return OpaquePart(payload=dict(raw))


@dataclass(frozen=True)
class Turn:
    role: str
    parts: tuple[Part, ...]

    def to_wire(self) -> dict[str, Any]:
        return {
            "role": _WIRE_ROLES.get(self.role, self.role),
            "parts": [part.to_wire() for part in self.parts],
        }

    @property
    def function_calls(self) -> list[FunctionCallPart]:
        return [part for part in self.parts if isinstance(part, FunctionCallPart)]

    @property
    def first_text(self) -> str | None:
        for part in self.parts:
            if isinstance(part, TextPart):
                return part.text
        return None


@dataclass(frozen=True)
class Transcript:
    """Append-only sequence of turns. ``append`` returns a new transcript."""

    turns: tuple[Turn, ...] = ()

    @classmethod
    def from_user_text(cls, text: str) -> Transcript:
        return cls(turns=(Turn(role=ROLE_USER, parts=(TextPart(text=text),)),))

    def append(self, role: str, parts: list[Part] | tuple[Part, ...]) -> Transcript:
        return Transcript(turns=self.turns + (Turn(role=role, parts=tuple(parts)),))

    def to_wire(self) -> list[dict[str, Any]]:
        return [turn.to_wire() for turn in self.turns]

    @property
    def last(self) -> Turn | None:
        return self.turns[-1] if self.turns else None

    def __len__(self) -> int:
        return len(self.turns)
