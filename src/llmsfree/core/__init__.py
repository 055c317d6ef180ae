"""Conversation components for llmsfree."""

from llmsfree.core.chat_client import LLMsFreeChatClient, create_chat_client
from llmsfree.core.orchestrator import ToolCallOrchestrator

__all__ = [
    "LLMsFreeChatClient",
    "ToolCallOrchestrator",
    "create_chat_client",
]
