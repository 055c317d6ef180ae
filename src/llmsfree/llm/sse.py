"""Frame decoder for server-sent-event chat-completion streams.

Turns the response body's lines into :class:`ChatCompletionChunk`
objects, one per event, and stops at the ``[DONE]`` sentinel.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

from llmsfree.errors import StreamDecodeError
from llmsfree.types import ChatCompletionChunk

_logger = logging.getLogger(__name__)

SSE_DONE = "[DONE]"


class SSEDecoder:
    """Line-oriented event assembler.

    ``feed()`` returns the data of an event when a blank line completes it.
    Only ``data:`` fields are kept; ``event:``, ``id:``, ``retry:`` and
    comment lines are ignored.
    """

    def __init__(self) -> None:
        self._data: list[str] = []

    def feed(self, line: str) -> str | None:
        line = line.rstrip("\r\n")
        if not line:
            return self.flush()
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        if name != "data":
            return None
        if value.startswith(" "):
            value = value[1:]
        self._data.append(value)
        return None

    def flush(self) -> str | None:
        """Dispatch whatever has been buffered (end of event or of input)."""
        if not self._data:
            return None
        data = "\n".join(self._data)
        self._data = []
        return data


def parse_chunk(data: str) -> ChatCompletionChunk:
    """Decode one event's data into a chunk."""
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise StreamDecodeError(f"Malformed stream event: {data[:200]!r}") from e
    return ChatCompletionChunk.from_dict(payload)


async def aiter_event_data(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Yield event payloads until the sentinel or end of input."""
    decoder = SSEDecoder()
    async for line in lines:
        data = decoder.feed(line)
        if data is None:
            continue
        if data.strip() == SSE_DONE:
            return
        yield data
    data = decoder.flush()
    if data is not None and data.strip() != SSE_DONE:
        yield data


async def adecode_chunks(lines: AsyncIterable[str]) -> AsyncIterator[ChatCompletionChunk]:
    """Decode an async line stream into raw chunks, one per event."""
    async for data in aiter_event_data(lines):
        chunk = parse_chunk(data)
        _logger.debug("Decoded chunk id=%s choices=%d", chunk.id, len(chunk.choices))
        yield chunk
