"""Tool definitions exposed to the model."""

from __future__ import annotations

import inspect
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # string, integer, number, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None


class Tool(ABC):
    """Base class for all tools.

    Subclasses set ``name``, ``description``, ``parameters`` as class
    attributes and implement ``execute()``.  The orchestrator never calls
    ``execute()`` directly: it calls :meth:`call` with the raw arguments
    text the model produced.
    """

    name: str
    description: str
    parameters: list[ToolParameter]

    @abstractmethod
    async def execute(self, **kwargs: Any) -> Any:
        """Execute the tool asynchronously."""

    async def call(self, arguments: str) -> str:
        """Run the tool on a serialized JSON arguments object."""
        kwargs = json.loads(arguments) if arguments and arguments.strip() else {}
        if not isinstance(kwargs, dict):
            raise ValueError(
                f"Arguments for '{self.name}' must be a JSON object, got {type(kwargs).__name__}"
            )
        result = await self.execute(**kwargs)
        return result if isinstance(result, str) else json.dumps(result)

    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the arguments object."""
        properties: dict[str, Any] = {}
        required: list[str] = []
        for p in self.parameters:
            prop: dict[str, Any] = {
                "type": p.type,
                "description": p.description,
            }
            if p.enum:
                prop["enum"] = p.enum
            if p.default is not None:
                prop["default"] = p.default
            properties[p.name] = prop
            if p.required:
                required.append(p.name)
        return {
            "type": "object",
            "properties": properties,
            "required": required,
        }

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema(),
            },
        }


class FunctionTool(Tool):
    """Wraps a plain (sync or async) callable as a tool.

    ``schema`` is a ready-made JSON schema for the arguments object; when
    given it takes precedence over ``parameters``.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
        parameters: list[ToolParameter] | None = None,
        schema: dict[str, Any] | None = None,
    ) -> None:
        self.func = func
        self.name = name or func.__name__
        self.description = description or inspect.getdoc(func) or ""
        self.parameters = parameters or []
        self._schema = schema

    async def execute(self, **kwargs: Any) -> Any:
        result = self.func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def input_schema(self) -> dict[str, Any]:
        if self._schema is not None:
            return self._schema
        return super().input_schema()
