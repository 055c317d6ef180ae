"""Async HTTP client for the chat-completions endpoint.

Uses ``httpx.AsyncClient`` and exposes ``chat_completion()`` (blocking)
and ``chat_completion_stream()`` (server-sent events, aggregated into
logical increments).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from types import TracebackType

import httpx

from llmsfree.config import DEFAULT_BASE_URL, ConnectionSpec
from llmsfree.errors import StreamDecodeError
from llmsfree.types import ChatCompletion, ChatCompletionChunk, ChatCompletionRequest

from .aggregator import aggregate
from .sse import adecode_chunks

_logger = logging.getLogger(__name__)

_COMPLETIONS_PATH = "/v1/chat/completions"


class LLMsFreeApi:
    """Low-level client for an OpenAI-style ``/v1/chat/completions`` API.

    Parameters
    ----------
    base_url:
        Server root, e.g. ``http://localhost:8000``.
    api_key:
        Sent as a bearer token.
    timeout:
        Overall request timeout in seconds.
    transport:
        Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str = "",
        timeout: float = 120,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=30),
            transport=transport,
        )

    @classmethod
    def from_spec(
        cls,
        spec: ConnectionSpec,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> LLMsFreeApi:
        return cls(
            base_url=spec.base_url,
            api_key=spec.api_key,
            timeout=spec.timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Non-streaming chat
    # ------------------------------------------------------------------

    async def chat_completion(
        self, request: ChatCompletionRequest,
    ) -> ChatCompletion | None:
        """Send a blocking request.  Returns ``None`` for an empty body."""
        if request.stream:
            raise ValueError("Request must set the stream property to false.")

        _logger.debug(
            "POST %s model=%s messages=%d",
            _COMPLETIONS_PATH, request.model, len(request.messages),
        )
        resp = await self._client.post(_COMPLETIONS_PATH, json=request.to_dict())
        resp.raise_for_status()

        if not resp.content.strip():
            return None
        try:
            data = resp.json()
        except ValueError as e:
            raise StreamDecodeError("Invalid JSON in completion response") from e
        if not data:
            return None
        return ChatCompletion.from_dict(data)

    # ------------------------------------------------------------------
    # Streaming chat
    # ------------------------------------------------------------------

    async def chat_completion_stream(
        self, request: ChatCompletionRequest,
    ) -> AsyncIterator[ChatCompletionChunk]:
        """Stream a request, yielding logical increments.

        Pass-through chunks are yielded as they arrive; the chunks of a
        tool-call window are yielded as one merged chunk once it closes.
        Closing this generator closes the HTTP response.
        """
        if not request.stream:
            raise ValueError("Request must set the stream property to true.")

        _logger.debug(
            "POST %s (stream) model=%s messages=%d",
            _COMPLETIONS_PATH, request.model, len(request.messages),
        )
        async with self._client.stream(
            "POST", _COMPLETIONS_PATH, json=request.to_dict(),
        ) as resp:
            if resp.is_error:
                await resp.aread()
            resp.raise_for_status()

            async for increment in aggregate(adecode_chunks(resp.aiter_lines())):
                yield increment

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> LLMsFreeApi:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
