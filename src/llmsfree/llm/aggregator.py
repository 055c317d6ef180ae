"""Chunk aggregation for streamed tool calls.

OpenAI-compatible providers spread one tool call across many chunks:
the first fragment carries the ``id`` and ``function.name``, later ones
carry pieces of ``function.arguments``.  The aggregator passes ordinary
chunks straight through and folds every chunk of a tool-call *window*
(from the first tool-call fragment up to ``finish_reason=tool_calls``)
into a single merged chunk.

The fold is a pure step function over an explicit :class:`WindowState`,
so it can be driven by :func:`aggregate` over a network stream or by
:func:`aggregate_all` over a list in tests.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from dataclasses import dataclass, replace

from llmsfree.types import (
    ChatCompletionChunk,
    ChunkChoice,
    FinishReason,
    FunctionCall,
    Message,
    ToolCall,
)

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def is_tool_call_chunk(chunk: ChatCompletionChunk) -> bool:
    """True when any choice's delta carries a tool-call fragment."""
    return any(choice.delta.tool_calls for choice in chunk.choices)


def is_tool_call_finish(chunk: ChatCompletionChunk) -> bool:
    return any(
        choice.finish_reason is FinishReason.TOOL_CALLS for choice in chunk.choices
    )


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def _concat(first: str | None, second: str | None) -> str | None:
    if first is None:
        return second
    if second is None:
        return first
    return first + second


def _merge_content(first, second):
    if first is None:
        return second
    if second is None:
        return first
    if isinstance(first, str) and isinstance(second, str):
        return first + second
    # Multi-modal parts: keep the latest non-empty value.
    return second


def _merge_tool_call(existing: ToolCall, fragment: ToolCall) -> ToolCall:
    return ToolCall(
        id=existing.id if existing.id is not None else fragment.id,
        type=existing.type if existing.type is not None else fragment.type,
        function=FunctionCall(
            name=(
                existing.function.name
                if existing.function.name is not None
                else fragment.function.name
            ),
            arguments=_concat(existing.function.arguments, fragment.function.arguments),
        ),
        index=existing.index if existing.index is not None else fragment.index,
    )


def _find_slot(calls: list[ToolCall], fragment: ToolCall) -> int | None:
    """Position of the call *fragment* continues, or None for a new call."""
    if fragment.index is not None:
        for pos, call in enumerate(calls):
            if call.index == fragment.index:
                return pos
        return None
    if fragment.id is not None:
        for pos, call in enumerate(calls):
            if call.id == fragment.id:
                return pos
        return None
    # Neither index nor id: continues the most recent call.
    return len(calls) - 1 if calls else None


def merge_tool_calls(
    previous: tuple[ToolCall, ...] | None,
    current: tuple[ToolCall, ...] | None,
) -> tuple[ToolCall, ...] | None:
    if previous is None:
        previous_list: list[ToolCall] = []
    else:
        previous_list = list(previous)
    if not current:
        return tuple(previous_list) if previous is not None else current
    for fragment in current:
        slot = _find_slot(previous_list, fragment)
        if slot is None:
            previous_list.append(fragment)
        else:
            previous_list[slot] = _merge_tool_call(previous_list[slot], fragment)
    return tuple(previous_list)


def merge_messages(previous: Message, current: Message) -> Message:
    """Fold *current* delta into *previous*.

    Text concatenates; ``role`` and ``name`` keep the first non-null value.
    """
    return Message(
        content=_merge_content(previous.content, current.content),
        role=previous.role if previous.role is not None else current.role,
        name=previous.name if previous.name is not None else current.name,
        tool_calls=merge_tool_calls(previous.tool_calls, current.tool_calls),
    )


def _merge_choices(
    previous: tuple[ChunkChoice, ...],
    current: tuple[ChunkChoice, ...],
) -> tuple[ChunkChoice, ...]:
    merged = {choice.index: choice for choice in previous}
    order = [choice.index for choice in previous]
    for choice in current:
        before = merged.get(choice.index)
        if before is None:
            merged[choice.index] = choice
            order.append(choice.index)
            continue
        merged[choice.index] = ChunkChoice(
            index=choice.index,
            delta=merge_messages(before.delta, choice.delta),
            finish_reason=(
                choice.finish_reason
                if choice.finish_reason is not None
                else before.finish_reason
            ),
        )
    return tuple(merged[i] for i in order)


def merge_chunks(
    previous: ChatCompletionChunk | None,
    current: ChatCompletionChunk,
) -> ChatCompletionChunk:
    """Fold *current* into the window accumulator *previous*."""
    if previous is None:
        return current
    return ChatCompletionChunk(
        id=previous.id if previous.id is not None else current.id,
        object=previous.object if previous.object is not None else current.object,
        created=previous.created if previous.created is not None else current.created,
        model=previous.model if previous.model is not None else current.model,
        request_id=(
            previous.request_id
            if previous.request_id is not None
            else current.request_id
        ),
        choices=_merge_choices(previous.choices, current.choices),
        usage=current.usage if current.usage is not None else previous.usage,
    )


# ---------------------------------------------------------------------------
# Windowing fold
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WindowState:
    """Accumulator for the currently open tool-call window, if any."""

    accumulator: ChatCompletionChunk | None = None
    open: bool = False


CLOSED = WindowState()


def step(
    state: WindowState, chunk: ChatCompletionChunk,
) -> tuple[WindowState, ChatCompletionChunk | None]:
    """Advance the fold by one raw chunk.

    Returns the new state and the increment to emit, if any.
    """
    if not state.open and not is_tool_call_chunk(chunk):
        return state, chunk

    accumulator = merge_chunks(state.accumulator, chunk)
    if is_tool_call_finish(chunk):
        return CLOSED, accumulator
    return replace(state, accumulator=accumulator, open=True), None


def flush(state: WindowState) -> ChatCompletionChunk | None:
    """Emit a window left open when the stream ended."""
    if not state.open or state.accumulator is None:
        return None
    _logger.warning(
        "Stream ended inside a tool-call window (id=%s); flushing partial window",
        state.accumulator.id,
    )
    return state.accumulator


def aggregate_all(chunks: Iterable[ChatCompletionChunk]) -> list[ChatCompletionChunk]:
    """Run the fold over a finite sequence and collect the increments."""
    increments: list[ChatCompletionChunk] = []
    state = CLOSED
    for chunk in chunks:
        state, increment = step(state, chunk)
        if increment is not None:
            increments.append(increment)
    tail = flush(state)
    if tail is not None:
        increments.append(tail)
    return increments


async def aggregate(
    chunks: AsyncIterable[ChatCompletionChunk],
) -> AsyncIterator[ChatCompletionChunk]:
    """Yield logical increments from a raw chunk stream, in arrival order."""
    state = CLOSED
    async for chunk in chunks:
        state, increment = step(state, chunk)
        if increment is not None:
            yield increment
    tail = flush(state)
    if tail is not None:
        yield tail
