"""Exchange observability events."""

from llmsfree.events.bus import EventBus

__all__ = ["EventBus"]
