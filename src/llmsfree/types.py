"""Shared data types for llmsfree.

Wire-level records mirror the JSON bodies of the chat-completions
endpoint.  All of them are frozen; "updates" produce new values via
``dataclasses.replace``.
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field, replace
from typing import Any

from llmsfree.errors import StreamDecodeError

# Content is plain text, None, or a list of multi-modal content parts.
Content = Any


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Role(enum.Enum):
    """Author of a message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(enum.Enum):
    """Why the model stopped generating tokens."""

    STOP = "stop"
    LENGTH = "length"
    SENSITIVE = "sensitive"  # blocked by content moderation
    TOOL_CALLS = "tool_calls"
    NETWORK_ERROR = "network_error"


class ChatModel(enum.Enum):
    """Well-known model codes served by the free-api gateways."""

    KIMI = "kimi"
    STEP_CHAT = "StepChat"
    QWEN = "qwen"
    GLM_4 = "glm-4"
    METASO = "metaso"
    EMOHAA = "emohaa"


def _enum_or_none(enum_cls: type[enum.Enum], raw: Any) -> Any:
    if raw is None:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        raise StreamDecodeError(
            f"Unknown {enum_cls.__name__} value: {raw!r}"
        ) from None


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise StreamDecodeError(f"{what} is not a JSON object: {data!r}")
    return data


def _array(data: Any, what: str) -> list[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise StreamDecodeError(f"{what} is not a JSON array: {data!r}")
    return data


# ---------------------------------------------------------------------------
# Messages and tool calls
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FunctionCall:
    """Function half of a tool call.

    ``arguments`` is an opaque serialized payload; when streamed it arrives
    in fragments that are concatenated in arrival order.
    """

    name: str | None = None
    arguments: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({"name": self.name, "arguments": self.arguments})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FunctionCall:
        data = _object(data, "Tool call function")
        return cls(name=data.get("name"), arguments=data.get("arguments"))


@dataclass(frozen=True)
class ToolCall:
    """A model-issued request to invoke a named function."""

    id: str | None = None
    type: str | None = "function"
    function: FunctionCall = field(default_factory=FunctionCall)
    index: int | None = None  # present on streaming deltas only

    @property
    def name(self) -> str | None:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments or ""

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "index": self.index,
            "id": self.id,
            "type": self.type,
            "function": self.function.to_dict(),
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        data = _object(data, "Tool call")
        return cls(
            id=data.get("id"),
            type=data.get("type"),
            function=FunctionCall.from_dict(data.get("function") or {}),
            index=data.get("index"),
        )


@dataclass(frozen=True)
class Message:
    """One conversation turn, or a partial turn when used as a delta."""

    content: Content = None
    role: Role | None = None
    name: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "content": self.content,
            "role": self.role.value if self.role else None,
            "name": self.name,
        }
        if self.tool_calls is not None:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        return _drop_none(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Message:
        if data is None:
            return cls()
        data = _object(data, "Message")
        raw_calls = data.get("tool_calls")
        return cls(
            content=data.get("content"),
            role=_enum_or_none(Role, data.get("role")),
            name=data.get("name"),
            tool_calls=(
                tuple(
                    ToolCall.from_dict(tc) for tc in _array(raw_calls, "tool_calls")
                )
                if raw_calls is not None else None
            ),
        )


def system_message(content: str) -> Message:
    return Message(content=content, role=Role.SYSTEM)


def user_message(content: str) -> Message:
    return Message(content=content, role=Role.USER)


def image_message(role: Role, image_url: str, text: str) -> Message:
    """Build a multi-modal message carrying text and an image URL."""
    return Message(
        role=role,
        content=[
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": {"url": image_url}},
        ],
    )


def document_message(role: Role, file_url: str, text: str) -> Message:
    """Build a multi-modal message carrying text and a document URL."""
    return Message(
        role=role,
        content=[
            {"type": "text", "text": text},
            {"type": "file", "file_url": {"url": file_url}},
        ],
    )


# ---------------------------------------------------------------------------
# Completions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Usage:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Usage | None:
        if not data:
            return None
        data = _object(data, "Usage")
        return cls(
            prompt_tokens=data.get("prompt_tokens"),
            completion_tokens=data.get("completion_tokens"),
            total_tokens=data.get("total_tokens"),
        )


@dataclass(frozen=True)
class ChunkChoice:
    """One choice of a streaming chunk; ``delta`` is a partial message."""

    index: int = 0
    delta: Message = field(default_factory=Message)
    finish_reason: FinishReason | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "delta": self.delta.to_dict(),
            "finish_reason": self.finish_reason.value if self.finish_reason else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChunkChoice:
        data = _object(data, "Choice")
        return cls(
            index=data.get("index") or 0,
            delta=Message.from_dict(data.get("delta")),
            finish_reason=_enum_or_none(FinishReason, data.get("finish_reason")),
        )


@dataclass(frozen=True)
class ChatCompletionChunk:
    """A streamed fragment of a completion.  Chunks of one completion share ``id``."""

    id: str | None = None
    object: str | None = "chat.completion.chunk"
    created: int | None = None
    model: str | None = None
    request_id: str | None = None
    choices: tuple[ChunkChoice, ...] = ()
    usage: Usage | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "object": self.object,
            "created": self.created,
            "model": self.model,
            "request_id": self.request_id,
            "choices": [c.to_dict() for c in self.choices],
            "usage": self.usage.to_dict() if self.usage else None,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatCompletionChunk:
        data = _object(data, "Chunk")
        return cls(
            id=data.get("id"),
            object=data.get("object"),
            created=data.get("created"),
            model=data.get("model"),
            request_id=data.get("request_id"),
            choices=tuple(
                ChunkChoice.from_dict(c) for c in _array(data.get("choices"), "choices")
            ),
            usage=Usage.from_dict(data.get("usage")),
        )


@dataclass(frozen=True)
class Choice:
    """One fully resolved choice of a completion."""

    index: int = 0
    message: Message = field(default_factory=Message)
    finish_reason: FinishReason | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Choice:
        data = _object(data, "Choice")
        return cls(
            index=data.get("index") or 0,
            message=Message.from_dict(data.get("message")),
            finish_reason=_enum_or_none(FinishReason, data.get("finish_reason")),
        )


@dataclass(frozen=True)
class ChatCompletion:
    """A complete (non-streaming or aggregated) model turn."""

    id: str | None = None
    object: str | None = "chat.completion"
    created: int | None = None
    model: str | None = None
    choices: tuple[Choice, ...] = ()
    usage: Usage | None = None
    request_id: str | None = None

    @property
    def tool_call_message(self) -> Message | None:
        """The first choice's message when it requests tool calls."""
        if not self.choices:
            return None
        message = self.choices[0].message
        return message if message.has_tool_calls else None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatCompletion:
        data = _object(data, "Completion")
        return cls(
            id=data.get("id"),
            object=data.get("object"),
            created=data.get("created"),
            model=data.get("model"),
            choices=tuple(Choice.from_dict(c) for c in _array(data.get("choices"), "choices")),
            usage=Usage.from_dict(data.get("usage")),
            request_id=data.get("request_id"),
        )

    @classmethod
    def from_chunk(cls, chunk: ChatCompletionChunk) -> ChatCompletion:
        """Treat a logical increment as a completed turn."""
        return cls(
            id=chunk.id,
            object="chat.completion",
            created=chunk.created,
            model=chunk.model,
            choices=tuple(
                Choice(index=c.index, message=c.delta, finish_reason=c.finish_reason)
                for c in chunk.choices
            ),
            usage=chunk.usage,
            request_id=chunk.request_id,
        )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChatCompletionRequest:
    """Body of ``POST /v1/chat/completions``."""

    model: str | None
    messages: tuple[Message, ...]
    stream: bool = False
    use_search: bool | None = False
    tools: tuple[dict[str, Any], ...] | None = None
    tool_choice: str | dict[str, Any] | None = None

    def with_messages(
        self, messages: list[Message] | tuple[Message, ...], stream: bool,
    ) -> ChatCompletionRequest:
        """Clone with a new history and stream flag; other fields are kept."""
        return replace(self, messages=tuple(messages), stream=stream)

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "stream": self.stream,
            "use_search": self.use_search,
            "tools": list(self.tools) if self.tools is not None else None,
            "tool_choice": self.tool_choice,
        })


def tool_choice_function(name: str) -> dict[str, Any]:
    """A ``tool_choice`` value forcing the model to call *name*."""
    return {"type": "function", "function": {"name": name}}


# ---------------------------------------------------------------------------
# Caller-facing shapes
# ---------------------------------------------------------------------------

@dataclass
class Prompt:
    """Messages for one user turn plus optional per-call options."""

    messages: list[Message]
    options: Any = None  # llmsfree.config.ChatOptions

    @classmethod
    def of(cls, prompt: Prompt | str) -> Prompt:
        if isinstance(prompt, Prompt):
            return prompt
        return cls(messages=[user_message(prompt)])


@dataclass
class Generation:
    """One completion choice as delivered to the caller."""

    content: Content
    metadata: dict[str, Any] = field(default_factory=dict)
    finish_reason: str | None = None


@dataclass
class ChatResponse:
    """Generations for one blocking call or one streamed increment."""

    generations: list[Generation] = field(default_factory=list)

    @property
    def result(self) -> Generation | None:
        return self.generations[0] if self.generations else None


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Events emitted while an exchange is running."""

    EXCHANGE_STARTED = "exchange.started"
    EXCHANGE_FINISHED = "exchange.finished"

    LLM_REQUEST = "llm.request"
    LLM_RESPONSE = "llm.response"

    TOOL_EXECUTING = "tool.executing"
    TOOL_EXECUTED = "tool.executed"
    TOOL_ERROR = "tool.error"


@dataclass
class ExchangeEvent:
    """One step of an exchange, tagged with the exchange it belongs to."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    exchange_id: str | None = None
    timestamp: float = field(default_factory=time.time)
