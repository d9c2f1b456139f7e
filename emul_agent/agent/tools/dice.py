"""Dice rolling in standard ``NdM[+/-K]`` notation."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any

from emul_agent.agent.tools.base import Tool, ToolResult
from emul_agent.errors import ToolError

MAX_DICE = 100
MAX_SIDES = 1000

_NOTATION = re.compile(r"^(\d+)d(\d+)(?:([+-])(\d+))?$")


@dataclass(frozen=True)
class DiceRoll:
    notation: str
    rolls: tuple[int, ...]
    modifier: int
    total: int

    def describe(self) -> str:
        rolled = ", ".join(str(value) for value in self.rolls)
        if self.modifier > 0:
            modifier = f" + {self.modifier}"
        elif self.modifier < 0:
            modifier = f" - {-self.modifier}"
        else:
            modifier = ""
        return f"Rolled {self.notation}: [{rolled}]{modifier} = {self.total}"


def parse_dice_notation(notation: str) -> tuple[int, int, int]:
    """Parse ``NdM[+/-K]`` into (count, sides, modifier), enforcing the dice limits."""
    raw = (notation or "").strip().lower().replace(" ", "")
    match = _NOTATION.match(raw)
    if not match:
        raise ToolError(f"Invalid dice notation format: {notation}")

    count = int(match.group(1))
    sides = int(match.group(2))
    modifier = int(match.group(4) or 0)
    if match.group(3) == "-":
        modifier = -modifier

    if count < 1 or count > MAX_DICE:
        raise ToolError(f"Number of dice must be between 1 and {MAX_DICE}.")
    if sides < 1 or sides > MAX_SIDES:
        raise ToolError(f"Number of sides must be between 1 and {MAX_SIDES}.")
    return count, sides, modifier


def roll_dice(notation: str, rng: random.Random | None = None) -> DiceRoll:
    count, sides, modifier = parse_dice_notation(notation)
    source = rng or random
    rolls = tuple(source.randint(1, sides) for _ in range(count))
    return DiceRoll(
        notation=notation.strip(),
        rolls=rolls,
        modifier=modifier,
        total=sum(rolls) + modifier,
    )


class RollDiceTool(Tool):
    """Roll dice for the model."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng

    @property
    def name(self) -> str:
        return "roll_dice"

    @property
    def description(self) -> str:
        return (
            "Rolls one or more dice with a specified number of sides. "
            "E.g., 3d6 means roll 3 six-sided dice."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "dice_notation": {
                    "type": "string",
                    "description": (
                        "The dice notation string (e.g., '1d20', '3d6', '2d10+5'). "
                        "It must be in the format [number]d[sides][+/-modifier]."
                    ),
                }
            },
            "required": ["dice_notation"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        notation = self.require_str(kwargs, "dice_notation", self.name)
        return ToolResult(content=roll_dice(notation, self._rng).describe())
