"""Tool registry and the read-only dispatch table built from it."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any, Callable, Union

from llmsfree.errors import UnknownToolError
from llmsfree.tools.base import Tool

_logger = logging.getLogger(__name__)

# (arguments_text) -> result_text, or an awaitable of it
Handler = Callable[[str], Union[str, Awaitable[str]]]


class DispatchTable(Mapping[str, Handler]):
    """Immutable tool-name -> handler mapping.

    Built once per conversation context and only read afterwards, so it
    can be shared across concurrent exchanges.
    """

    def __init__(self, handlers: Mapping[str, Handler] | None = None) -> None:
        self._handlers = MappingProxyType(dict(handlers or {}))

    def __getitem__(self, name: str) -> Handler:
        return self._handlers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"DispatchTable({sorted(self._handlers)})"

    def resolve(self, name: str | None) -> Handler:
        """Look up a handler; unknown names are fatal."""
        if name is None or name not in self._handlers:
            raise UnknownToolError(name)
        return self._handlers[name]


class ToolRegistry:
    """Registry of available tools."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool instance."""
        if tool.name in self._tools:
            _logger.warning("Tool %s registered twice; replacing", tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        """Return all registered tools."""
        return list(self._tools.values())

    def tool_names(self) -> list[str]:
        """Return list of registered tool names."""
        return list(self._tools.keys())

    def _select(self, names: Iterable[str] | None) -> list[Tool]:
        if names is None:
            return self.list_tools()
        selected = []
        for name in sorted(names):
            tool = self._tools.get(name)
            if tool is None:
                raise UnknownToolError(name)
            selected.append(tool)
        return selected

    def get_openai_schemas(
        self, names: Iterable[str] | None = None,
    ) -> list[dict[str, Any]]:
        """OpenAI function-calling schemas for all (or the named) tools."""
        return [t.to_openai_schema() for t in self._select(names)]

    def dispatch_table(self, names: Iterable[str] | None = None) -> DispatchTable:
        """Snapshot the registry into a read-only dispatch table."""
        return DispatchTable({t.name: t.call for t in self._select(names)})
