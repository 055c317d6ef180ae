"""Configuration for llmsfree.

Config discovery (first match wins):
  1. explicit path passed to ``load_config``
  2. ``./llmsfree.yaml``
  3. ``~/.config/llmsfree/config.yaml``
  4. Built-in defaults

``LLMSFREE_API_KEY`` and ``LLMSFREE_BASE_URL`` override the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from llmsfree.types import ChatModel

_logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"


# ---------------------------------------------------------------------------
# Config data structures
# ---------------------------------------------------------------------------

@dataclass
class ConnectionSpec:
    """Where the chat-completions endpoint lives and how to reach it."""

    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    timeout: float = 120.0


@dataclass
class ChatOptions:
    """Request options.  ``None`` means "not set" and never overrides.

    ``functions`` names registered tools to advertise to the model.
    """

    model: str | None = None
    use_search: bool | None = None
    tools: list[dict[str, Any]] | None = None
    tool_choice: str | dict[str, Any] | None = None
    functions: set[str] | None = None

    def merge(self, override: ChatOptions | None) -> ChatOptions:
        """Return new options where non-``None`` values of *override* win.

        ``functions`` from both sides are unioned.
        """
        if override is None:
            return ChatOptions(**{f.name: getattr(self, f.name) for f in fields(self)})
        merged: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(override, f.name)
            merged[f.name] = value if value is not None else getattr(self, f.name)
        if self.functions or override.functions:
            merged["functions"] = set(self.functions or ()) | set(override.functions or ())
        return ChatOptions(**merged)


@dataclass
class RetrySpec:
    """Whole-exchange retry settings (exponential backoff)."""

    max_attempts: int = 3
    backoff_base: float = 1.0
    max_backoff: float = 30.0


@dataclass
class LLMsFreeConfig:
    """Top-level config."""

    connection: ConnectionSpec = field(default_factory=ConnectionSpec)
    options: ChatOptions = field(
        default_factory=lambda: ChatOptions(model=ChatModel.KIMI.value)
    )
    retry: RetrySpec = field(default_factory=RetrySpec)

    # Tool-call loop
    max_tool_rounds: int | None = 10
    parallel_tool_calls: bool = True


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./llmsfree.yaml"),
    Path.home() / ".config" / "llmsfree" / "config.yaml",
]


def _parse_connection(raw: dict[str, Any] | None) -> ConnectionSpec:
    raw = raw or {}
    return ConnectionSpec(
        base_url=raw.get("base_url", DEFAULT_BASE_URL),
        api_key=raw.get("api_key", ""),
        timeout=float(raw.get("timeout", 120.0)),
    )


def _parse_options(raw: dict[str, Any] | None) -> ChatOptions:
    if not raw:
        return ChatOptions(model=ChatModel.KIMI.value)
    functions = raw.get("functions")
    return ChatOptions(
        model=raw.get("model", ChatModel.KIMI.value),
        use_search=raw.get("use_search"),
        tool_choice=raw.get("tool_choice"),
        functions=set(functions) if functions else None,
    )


def _parse_retry(raw: dict[str, Any] | None) -> RetrySpec:
    if not raw:
        return RetrySpec()
    base = {
        k: v for k, v in raw.items()
        if v is not None and k in RetrySpec.__dataclass_fields__
    }
    return RetrySpec(**base)


def _apply_env(config: LLMsFreeConfig) -> LLMsFreeConfig:
    api_key = os.getenv("LLMSFREE_API_KEY")
    if api_key:
        config.connection.api_key = api_key
    base_url = os.getenv("LLMSFREE_BASE_URL")
    if base_url:
        config.connection.base_url = base_url
    return config


def load_config(path: str | Path | None = None) -> LLMsFreeConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Returns
    -------
    LLMsFreeConfig
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s — using defaults", path)
            return _apply_env(LLMsFreeConfig())
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found — using defaults")
        return _apply_env(LLMsFreeConfig())

    _logger.info("Loading config from %s", config_path)
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return _apply_env(LLMsFreeConfig(
        connection=_parse_connection(raw.get("connection")),
        options=_parse_options(raw.get("options")),
        retry=_parse_retry(raw.get("retry")),
        max_tool_rounds=raw.get("max_tool_rounds", 10),
        parallel_tool_calls=raw.get("parallel_tool_calls", True),
    ))
