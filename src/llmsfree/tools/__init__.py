"""Tools and the dispatch table used by the tool-call loop."""

from llmsfree.tools.base import FunctionTool, Tool, ToolParameter
from llmsfree.tools.registry import DispatchTable, Handler, ToolRegistry

__all__ = [
    "DispatchTable",
    "FunctionTool",
    "Handler",
    "Tool",
    "ToolParameter",
    "ToolRegistry",
]
