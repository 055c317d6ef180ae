"""Conversation facade: blocking and streaming chat with tool support.

    prompt → request → LLMsFreeApi → (increments) → ToolCallOrchestrator → ChatResponse

Each ``call()`` / ``stream()`` is an independent exchange with its own
history and aggregation state; only the dispatch table is shared.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from types import TracebackType
from typing import Any

import httpx

from llmsfree.config import ChatOptions, LLMsFreeConfig
from llmsfree.core.orchestrator import ToolCallOrchestrator
from llmsfree.events.bus import EventBus
from llmsfree.llm.client import LLMsFreeApi
from llmsfree.llm.retry import RetryPolicy
from llmsfree.tools.registry import ToolRegistry
from llmsfree.types import (
    ChatCompletion,
    ChatCompletionRequest,
    ChatModel,
    ChatResponse,
    Choice,
    EventType,
    ExchangeEvent,
    Generation,
    Prompt,
)

_logger = logging.getLogger(__name__)


class LLMsFreeChatClient:
    """Chat client for the free-api chat-completions gateways.

    Parameters
    ----------
    api:
        The HTTP transport.
    options:
        Default request options; per-prompt options override them.
    registry:
        Tools the model may call.  Its dispatch table is built once here.
    retry:
        Whole-exchange retry policy.
    max_tool_rounds:
        Resubmission cap for the tool-call loop (``None`` = unbounded).
    parallel_tool_calls:
        Run the tool calls of one batch concurrently.
    event_bus:
        Receives exchange events (optional).  Every ``call()`` and
        ``stream()`` gets its own exchange id, so the bus can tell
        concurrent exchanges apart.
    """

    def __init__(
        self,
        api: LLMsFreeApi,
        options: ChatOptions | None = None,
        registry: ToolRegistry | None = None,
        retry: RetryPolicy | None = None,
        max_tool_rounds: int | None = 10,
        parallel_tool_calls: bool = True,
        event_bus: EventBus | None = None,
    ) -> None:
        self._api = api
        self._options = options or ChatOptions(model=ChatModel.KIMI.value)
        self._registry = registry or ToolRegistry()
        self._retry = retry or RetryPolicy()
        self._event_bus = event_bus
        self._orchestrator = ToolCallOrchestrator(
            api.chat_completion,
            self._registry.dispatch_table(),
            max_rounds=max_tool_rounds,
            parallel_tool_calls=parallel_tool_calls,
            event_bus=event_bus,
        )

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(self, prompt: Prompt, stream: bool) -> ChatCompletionRequest:
        """Merge default and prompt options into a request body."""
        options = self._options.merge(prompt.options)

        tools = options.tools
        if options.functions:
            tools = self._registry.get_openai_schemas(options.functions)

        return ChatCompletionRequest(
            model=options.model,
            messages=tuple(prompt.messages),
            stream=stream,
            use_search=options.use_search if options.use_search is not None else False,
            tools=tuple(tools) if tools else None,
            tool_choice=options.tool_choice,
        )

    # ------------------------------------------------------------------
    # Blocking chat
    # ------------------------------------------------------------------

    async def call(self, prompt: Prompt | str) -> ChatResponse:
        """Run one exchange to its final answer."""
        prompt = Prompt.of(prompt)
        request = self.create_request(prompt, stream=False)
        exchange_id = uuid.uuid4().hex
        await self._emit(exchange_id, EventType.EXCHANGE_STARTED, {
            "stream": False,
            "model": request.model,
        })

        completion = await self._retry.execute(
            lambda: self._call_once(request, exchange_id)
        )
        if completion is None:
            _logger.warning("No chat completion returned for prompt: %s", prompt.messages)
            response = ChatResponse()
        else:
            response = ChatResponse(generations=[
                _generation(completion.id, choice, choice.message.role.value
                            if choice.message.role else None)
                for choice in completion.choices
            ])

        await self._emit(exchange_id, EventType.EXCHANGE_FINISHED, {
            "responses": 1,
            "generations": len(response.generations),
        })
        return response

    async def _call_once(
        self, request: ChatCompletionRequest, exchange_id: str,
    ) -> ChatCompletion | None:
        completion = await self._api.chat_completion(request)
        return await self._orchestrator.run(request, completion, exchange_id)

    # ------------------------------------------------------------------
    # Streaming chat
    # ------------------------------------------------------------------

    async def stream(self, prompt: Prompt | str) -> AsyncIterator[ChatResponse]:
        """Stream one exchange, one ``ChatResponse`` per logical increment.

        Closing the iterator (``aclose()`` or ``contextlib.aclosing``)
        closes the underlying HTTP response.
        """
        prompt = Prompt.of(prompt)
        request = self.create_request(prompt, stream=True)
        exchange_id = uuid.uuid4().hex
        await self._emit(exchange_id, EventType.EXCHANGE_STARTED, {
            "stream": True,
            "model": request.model,
        })

        # Only the first chunk of a completion carries the role; later
        # chunks with the same id share it.
        roles: dict[str | None, str] = {}
        responses = generations_seen = 0

        async with aclosing(
            self._retry.stream(lambda: self._stream_once(request, exchange_id))
        ) as completions:
            async for completion in completions:
                generations = []
                for choice in completion.choices:
                    if choice.message.role is not None:
                        roles.setdefault(completion.id, choice.message.role.value)
                    generations.append(
                        _generation(completion.id, choice, roles.get(completion.id))
                    )
                responses += 1
                generations_seen += len(generations)
                yield ChatResponse(generations=generations)

        await self._emit(exchange_id, EventType.EXCHANGE_FINISHED, {
            "responses": responses,
            "generations": generations_seen,
        })

    async def _stream_once(
        self, request: ChatCompletionRequest, exchange_id: str,
    ) -> AsyncIterator[ChatCompletion]:
        async with aclosing(self._api.chat_completion_stream(request)) as increments:
            async for increment in increments:
                completion = await self._orchestrator.run(
                    request, ChatCompletion.from_chunk(increment), exchange_id,
                )
                if completion is None:
                    _logger.warning(
                        "No chat completion returned after tool calls for %s",
                        increment.id,
                    )
                    continue
                yield completion

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _emit(
        self, exchange_id: str, event_type: EventType, data: dict[str, Any],
    ) -> None:
        if self._event_bus:
            await self._event_bus.emit(
                ExchangeEvent(type=event_type, data=data, exchange_id=exchange_id)
            )

    async def close(self) -> None:
        await self._api.close()

    async def __aenter__(self) -> LLMsFreeChatClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def _generation(completion_id: str | None, choice: Choice, role: str | None) -> Generation:
    finish = choice.finish_reason.value if choice.finish_reason else None
    return Generation(
        content=choice.message.content,
        metadata={
            "id": completion_id,
            "role": role,
            "finish_reason": finish or "",
        },
        finish_reason=finish,
    )


def create_chat_client(
    config: LLMsFreeConfig,
    registry: ToolRegistry | None = None,
    event_bus: EventBus | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LLMsFreeChatClient:
    """Wire transport, retry policy and facade from configuration."""
    if not config.connection.api_key:
        raise ValueError("LLMs Free API key must be set")
    if not config.connection.base_url:
        raise ValueError("LLMs Free API base URL must be set")

    return LLMsFreeChatClient(
        LLMsFreeApi.from_spec(config.connection, transport=transport),
        options=config.options,
        registry=registry,
        retry=RetryPolicy.from_spec(config.retry),
        max_tool_rounds=config.max_tool_rounds,
        parallel_tool_calls=config.parallel_tool_calls,
        event_bus=event_bus,
    )
