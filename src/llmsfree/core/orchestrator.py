"""Tool-call orchestrator: the resubmission loop.

    completion → tool calls? → execute → append TOOL messages → resubmit → ...

The loop ends when the model answers without requesting a tool.  The
conversation history is local to one ``run()`` call; the dispatch table
is only read.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from llmsfree.errors import ToolExecutionError, ToolLoopLimitError
from llmsfree.events.bus import EventBus
from llmsfree.tools.registry import DispatchTable, Handler
from llmsfree.types import (
    ChatCompletion,
    ChatCompletionRequest,
    EventType,
    ExchangeEvent,
    Message,
    Role,
    ToolCall,
)

_logger = logging.getLogger(__name__)

# Submits a blocking request; ``None`` means the server returned no body.
SubmitFn = Callable[[ChatCompletionRequest], Awaitable["ChatCompletion | None"]]


def _history_message(message: Message) -> Message:
    """The assistant turn as it is sent back: role set, stream indexes dropped."""
    return replace(
        message,
        role=message.role or Role.ASSISTANT,
        tool_calls=tuple(replace(tc, index=None) for tc in message.tool_calls or ()),
    )


class ToolCallOrchestrator:
    """Executes requested tool calls and resubmits until a final answer.

    Parameters
    ----------
    submit:
        Sends a blocking request, e.g. ``LLMsFreeApi.chat_completion``.
    dispatch:
        Tool name -> handler table.
    max_rounds:
        Maximum number of resubmissions per exchange (``None`` = unbounded).
    parallel_tool_calls:
        Run the calls of one batch concurrently.  Results are appended in
        call order either way.
    event_bus:
        Receives ``llm.*`` and ``tool.*`` events (optional).
    """

    def __init__(
        self,
        submit: SubmitFn,
        dispatch: DispatchTable,
        max_rounds: int | None = 10,
        parallel_tool_calls: bool = True,
        event_bus: EventBus | None = None,
    ) -> None:
        self._submit = submit
        self._dispatch = dispatch
        self._max_rounds = max_rounds
        self._parallel = parallel_tool_calls
        self._event_bus = event_bus

    async def run(
        self,
        request: ChatCompletionRequest,
        completion: ChatCompletion | None,
        exchange_id: str | None = None,
    ) -> ChatCompletion | None:
        """Drive the loop from a completed model turn to the final answer.

        *request* is the request that produced *completion*.  A completion
        without tool calls is returned unchanged.  Events are tagged with
        *exchange_id*.
        """
        rounds = 0
        while completion is not None:
            message = completion.tool_call_message
            if message is None:
                return completion
            if self._max_rounds is not None and rounds >= self._max_rounds:
                raise ToolLoopLimitError(self._max_rounds)

            request = await self.next_request(request, message, exchange_id)
            rounds += 1

            await self._emit(exchange_id, EventType.LLM_REQUEST, {
                "round": rounds,
                "messages": len(request.messages),
            })
            completion = await self._submit(request)
            await self._emit(exchange_id, EventType.LLM_RESPONSE, {
                "round": rounds,
                "id": completion.id if completion else None,
                "has_tool_calls": bool(completion and completion.tool_call_message),
            })
        return completion

    async def next_request(
        self,
        request: ChatCompletionRequest,
        message: Message,
        exchange_id: str | None = None,
    ) -> ChatCompletionRequest:
        """Execute *message*'s tool calls and build the resubmission.

        History becomes the prior messages, the assistant's tool-call
        message, then one TOOL message per call in call order.
        """
        results = await self.execute_tool_calls(message.tool_calls or (), exchange_id)
        history = [*request.messages, _history_message(message), *results]
        return request.with_messages(history, stream=False)

    async def execute_tool_calls(
        self, tool_calls: tuple[ToolCall, ...], exchange_id: str | None = None,
    ) -> list[Message]:
        """Run one batch of tool calls and return the TOOL messages.

        Every handler is resolved before any of them runs, so an unknown
        tool name fails the batch with nothing executed.
        """
        resolved = [(tc, self._dispatch.resolve(tc.name)) for tc in tool_calls]

        if self._parallel and len(resolved) > 1:
            outcomes = await asyncio.gather(
                *(self._invoke(tc, handler, exchange_id) for tc, handler in resolved),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
            results: list[str] = list(outcomes)
        else:
            results = [
                await self._invoke(tc, handler, exchange_id) for tc, handler in resolved
            ]

        return [
            Message(content=result, role=Role.TOOL, name=tc.name)
            for (tc, _), result in zip(resolved, results)
        ]

    async def _invoke(
        self, tool_call: ToolCall, handler: Handler, exchange_id: str | None,
    ) -> str:
        name = tool_call.name or ""
        _logger.info("Calling tool %s (id=%s)", name, tool_call.id)
        await self._emit(exchange_id, EventType.TOOL_EXECUTING, {
            "tool": name,
            "id": tool_call.id,
            "arguments": tool_call.arguments,
        })
        try:
            result = handler(tool_call.arguments)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            _logger.error("Tool %s raised: %s", name, e)
            await self._emit(exchange_id, EventType.TOOL_ERROR, {"tool": name, "error": str(e)})
            raise ToolExecutionError(name, e) from e

        result = "" if result is None else str(result)
        await self._emit(exchange_id, EventType.TOOL_EXECUTED, {
            "tool": name,
            "output_length": len(result),
        })
        return result

    async def _emit(
        self, exchange_id: str | None, event_type: EventType, data: dict[str, Any],
    ) -> None:
        if self._event_bus:
            await self._event_bus.emit(
                ExchangeEvent(type=event_type, data=data, exchange_id=exchange_id)
            )
