"""llmsfree: async client for the free-api chat-completions gateways."""

from llmsfree.config import ChatOptions, LLMsFreeConfig, load_config
from llmsfree.core import LLMsFreeChatClient, ToolCallOrchestrator, create_chat_client
from llmsfree.errors import (
    LLMsFreeError,
    StreamDecodeError,
    ToolExecutionError,
    ToolLoopLimitError,
    UnknownToolError,
)
from llmsfree.llm import LLMsFreeApi, RetryPolicy
from llmsfree.tools import FunctionTool, Tool, ToolParameter, ToolRegistry
from llmsfree.types import ChatModel, ChatResponse, Message, Prompt, Role

__version__ = "0.1.0"

__all__ = [
    "ChatModel",
    "ChatOptions",
    "ChatResponse",
    "FunctionTool",
    "LLMsFreeApi",
    "LLMsFreeChatClient",
    "LLMsFreeConfig",
    "LLMsFreeError",
    "Message",
    "Prompt",
    "RetryPolicy",
    "Role",
    "StreamDecodeError",
    "Tool",
    "ToolCallOrchestrator",
    "ToolExecutionError",
    "ToolLoopLimitError",
    "ToolParameter",
    "ToolRegistry",
    "UnknownToolError",
    "create_chat_client",
    "load_config",
]
