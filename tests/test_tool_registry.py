import asyncio
from typing import Any

from emul_agent.agent.tools import RollDiceTool, Tool, ToolRegistry, ToolResult
from emul_agent.errors import ToolError


class EchoTool(Tool):
    def __init__(self):
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "echo test tool"

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {"text": {"type": "string"}}}

    async def execute(self, **kwargs: Any) -> ToolResult:
        self.calls.append(kwargs)
        return ToolResult(content=kwargs.get("text", ""))


class BrokenTool(EchoTool):
    @property
    def name(self) -> str:
        return "broken"

    async def execute(self, **kwargs: Any) -> ToolResult:
        raise ToolError("disk on fire")


class CrashingTool(EchoTool):
    @property
    def name(self) -> str:
        return "crashing"

    async def execute(self, **kwargs: Any) -> ToolResult:
        raise KeyError("boom")


def test_unknown_function_becomes_error_result():
    registry = ToolRegistry()
    result = asyncio.run(registry.execute("launch_rockets", {"count": 3}))

    assert not result.ok
    assert result.to_response() == {"error": "Unknown function: launch_rockets"}


def test_tool_errors_are_absorbed():
    registry = ToolRegistry()
    registry.register(BrokenTool())
    registry.register(CrashingTool())

    broken = asyncio.run(registry.execute("broken", {}))
    crashing = asyncio.run(registry.execute("crashing", {}))

    assert broken.to_response() == {"error": "disk on fire"}
    assert crashing.error == "'boom'"


def test_invalid_arguments_become_error_result():
    registry = ToolRegistry()
    registry.register(RollDiceTool())

    result = asyncio.run(registry.execute("roll_dice", {"dice_notation": 42}))
    assert result.to_response() == {"error": "Missing 'dice_notation' argument for roll_dice"}


def test_execute_passes_arguments_and_tolerates_non_dict():
    registry = ToolRegistry()
    tool = EchoTool()
    registry.register(tool)

    ok = asyncio.run(registry.execute("echo", {"text": "hi"}))
    empty = asyncio.run(registry.execute("echo", None))

    assert ok.to_response() == {"result": "hi"}
    assert empty.to_response() == {"result": ""}
    assert tool.calls == [{"text": "hi"}, {}]


def test_definitions_follow_registration_order():
    registry = ToolRegistry()
    registry.register(EchoTool())
    registry.register(RollDiceTool())

    names = [item["name"] for item in registry.get_definitions()]
    assert names == ["echo", "roll_dice"]
    assert registry.tool_names == names
    assert "echo" in registry
    assert len(registry) == 2

    registry.unregister("echo")
    assert not registry.has("echo")
    assert registry.get("echo") is None
