"""Tests for capability registration, validation and invocation."""

from typing import ClassVar

import pytest

from netention.errors import ExecutionError, NotFoundError, ValidationError
from netention.runner.tool_registry import (
    Capability,
    CapabilityInput,
    ToolRegistry,
    ToolResult,
)


class EchoInput(CapabilityInput):
    text: str
    times: int = 1


class EchoTool(Capability):
    name: ClassVar[str] = "echo"
    description: ClassVar[str] = "Echo text back"
    input_model = EchoInput

    async def call(self, args: EchoInput) -> ToolResult:
        return ToolResult(content={"echo": args.text * args.times}, memory=f"echoed {args.text}")


class BrokenTool(Capability):
    name: ClassVar[str] = "broken"

    async def call(self, args) -> ToolResult:
        raise RuntimeError("kaput")


class GarbageTool(Capability):
    name: ClassVar[str] = "garbage"

    async def call(self, args):
        return {"status": "exploded"}


@pytest.fixture
def registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(EchoTool())
    registry.register(BrokenTool())
    registry.register(GarbageTool())
    return registry


class TestLookup:
    def test_names_and_has(self, registry: ToolRegistry):
        assert registry.names() == ["echo", "broken", "garbage"]
        assert registry.has("echo")
        assert not registry.has("missing")

    def test_get_missing(self, registry: ToolRegistry):
        with pytest.raises(NotFoundError, match="Capability missing not found"):
            registry.get("missing")

    def test_unregister(self, registry: ToolRegistry):
        assert registry.unregister("echo")
        assert not registry.unregister("echo")
        assert not registry.has("echo")

    def test_definitions_carry_schema(self, registry: ToolRegistry):
        echo = next(tool for tool in registry.get_tools() if tool.name == "echo")
        assert echo.description == "Echo text back"
        assert "text" in echo.parameters["properties"]


class TestValidation:
    def test_valid_input(self, registry: ToolRegistry):
        args = registry.validate("echo", {"text": "hi", "times": 2})
        assert args.text == "hi"
        assert args.times == 2

    def test_missing_required_field(self, registry: ToolRegistry):
        with pytest.raises(ValidationError) as exc_info:
            registry.validate("echo", {})
        assert exc_info.value.errors[0]["loc"] == ("text",)

    def test_no_coercion(self, registry: ToolRegistry):
        with pytest.raises(ValidationError):
            registry.validate("echo", {"text": "hi", "times": "2"})

    def test_unknown_field(self, registry: ToolRegistry):
        with pytest.raises(ValidationError, match="Invalid input for echo"):
            registry.validate("echo", {"text": "hi", "volume": 11})


class TestInvoke:
    @pytest.mark.asyncio
    async def test_returns_result(self, registry: ToolRegistry):
        result = await registry.invoke("echo", {"text": "ab", "times": 2})

        assert result.status == "done"
        assert result.content == {"echo": "abab"}
        assert result.memory == "echoed ab"

    @pytest.mark.asyncio
    async def test_unknown_capability(self, registry: ToolRegistry):
        with pytest.raises(NotFoundError):
            await registry.invoke("missing", {})

    @pytest.mark.asyncio
    async def test_wraps_capability_errors(self, registry: ToolRegistry):
        with pytest.raises(ExecutionError, match="broken: kaput") as exc_info:
            await registry.invoke("broken")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_invalid_result(self, registry: ToolRegistry):
        with pytest.raises(ExecutionError, match="invalid result"):
            await registry.invoke("garbage")


class TestRegisterFunction:
    @pytest.mark.asyncio
    async def test_sync_function(self):
        registry = ToolRegistry()

        def add(a: int, b: int = 1) -> dict:
            """Add two numbers."""
            return {"content": {"sum": a + b}}

        capability = registry.register_function(add)
        assert capability.description == "Add two numbers."

        result = await registry.invoke("add", {"a": 2, "b": 3})
        assert result.content == {"sum": 5}

        with pytest.raises(ValidationError):
            await registry.invoke("add", {})

    @pytest.mark.asyncio
    async def test_async_function_with_name(self):
        registry = ToolRegistry()

        async def slow(text: str):
            return ToolResult(status="running", memory=text)

        registry.register_function(slow, name="wait")
        result = await registry.invoke("wait", {"text": "still going"})

        assert result.status == "running"
        assert result.memory == "still going"

    @pytest.mark.asyncio
    async def test_none_result_means_done(self):
        registry = ToolRegistry()
        registry.register_function(lambda: None, name="noop")

        result = await registry.invoke("noop")
        assert result.status == "done"
        assert result.content == {}
