"""Tests for the tool registry, dispatch table and base Tool class."""

from __future__ import annotations

import json
import logging
from typing import Any

import pytest

from llmsfree.errors import UnknownToolError
from llmsfree.tools.base import FunctionTool, Tool, ToolParameter
from llmsfree.tools.registry import DispatchTable, ToolRegistry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class EchoTool(Tool):
    """Simple mock tool for testing."""

    name = "echo"
    description = "Echoes the input message."
    parameters = [
        ToolParameter(name="message", type="string", description="Message to echo"),
        ToolParameter(name="times", type="integer", description="Repeat count",
                      required=False, default=1),
    ]

    async def execute(self, **kwargs: Any) -> str:
        return kwargs.get("message", "") * kwargs.get("times", 1)


class WeatherTool(Tool):
    """Tool returning structured data."""

    name = "weather"
    description = "Current weather for a city."
    parameters = [
        ToolParameter(name="city", type="string", description="City name",
                      enum=["Tokyo", "Osaka"]),
    ]

    async def execute(self, **kwargs: Any) -> dict:
        return {"city": kwargs["city"], "celsius": 21}


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry([EchoTool(), WeatherTool()])


# ---------------------------------------------------------------------------
# Tool
# ---------------------------------------------------------------------------

class TestTool:
    def test_openai_schema(self):
        schema = EchoTool().to_openai_schema()

        assert schema["type"] == "function"
        assert schema["function"]["name"] == "echo"
        params = schema["function"]["parameters"]
        assert params["required"] == ["message"]
        assert params["properties"]["times"]["default"] == 1

    def test_enum_in_schema(self):
        props = WeatherTool().input_schema()["properties"]
        assert props["city"]["enum"] == ["Tokyo", "Osaka"]

    async def test_call_parses_arguments(self):
        assert await EchoTool().call('{"message": "ab", "times": 2}') == "abab"

    async def test_call_with_empty_arguments(self):
        assert await EchoTool().call("") == ""

    async def test_non_text_result_is_json(self):
        result = await WeatherTool().call('{"city": "Tokyo"}')
        assert json.loads(result) == {"city": "Tokyo", "celsius": 21}

    async def test_arguments_must_be_object(self):
        with pytest.raises(ValueError, match="JSON object"):
            await EchoTool().call("[1, 2]")

    async def test_malformed_arguments(self):
        with pytest.raises(json.JSONDecodeError):
            await EchoTool().call("{oops")


class TestFunctionTool:
    async def test_sync_function(self):
        def add(a: int, b: int) -> int:
            """Add two numbers."""
            return a + b

        tool = FunctionTool(add)

        assert tool.name == "add"
        assert tool.description == "Add two numbers."
        assert await tool.call('{"a": 1, "b": 2}') == "3"

    async def test_async_function(self):
        async def greet(name: str) -> str:
            return f"Hello, {name}"

        tool = FunctionTool(greet, description="Greets")
        assert await tool.call('{"name": "Ada"}') == "Hello, Ada"

    def test_schema_override(self):
        schema = {"type": "object", "properties": {}, "required": []}
        tool = FunctionTool(lambda: "x", name="noop", schema=schema)
        assert tool.input_schema() is schema


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestToolRegistry:
    def test_register_and_get(self, registry):
        assert registry.get("echo").name == "echo"
        assert registry.get("missing") is None
        assert registry.tool_names() == ["echo", "weather"]
        assert len(registry.list_tools()) == 2

    def test_duplicate_replaces_with_warning(self, registry, caplog):
        replacement = FunctionTool(lambda: "new", name="echo")

        with caplog.at_level(logging.WARNING):
            registry.register(replacement)

        assert registry.get("echo") is replacement
        assert "registered twice" in caplog.text

    def test_all_schemas(self, registry):
        names = [s["function"]["name"] for s in registry.get_openai_schemas()]
        assert names == ["echo", "weather"]

    def test_subset_schemas(self, registry):
        schemas = registry.get_openai_schemas({"weather"})
        assert [s["function"]["name"] for s in schemas] == ["weather"]

    def test_unknown_subset_name(self, registry):
        with pytest.raises(UnknownToolError):
            registry.get_openai_schemas({"echo", "nope"})


class TestDispatchTable:
    async def test_handlers_call_tools(self, registry):
        table = registry.dispatch_table()

        assert set(table) == {"echo", "weather"}
        assert await table["echo"]('{"message": "hi"}') == "hi"

    def test_resolve_unknown(self, registry):
        table = registry.dispatch_table({"echo"})

        with pytest.raises(UnknownToolError, match="weather"):
            table.resolve("weather")

    def test_resolve_none(self):
        with pytest.raises(UnknownToolError):
            DispatchTable().resolve(None)

    def test_is_read_only(self, registry):
        table = registry.dispatch_table()
        with pytest.raises(TypeError):
            table["new"] = lambda arguments: ""

    def test_snapshot_ignores_later_registration(self, registry):
        table = registry.dispatch_table()
        registry.register(FunctionTool(lambda: "x", name="late"))

        assert "late" not in table
