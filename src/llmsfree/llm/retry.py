"""Whole-exchange retry with exponential backoff.

The retry unit is one exchange attempt: a blocking call including its
tool-call loop, or a streaming call up to the point where the first
increment reaches the caller.  Output already delivered is never replayed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

import httpx

from llmsfree.config import RetrySpec

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def is_retryable(error: BaseException) -> bool:
    """Timeouts, connection failures and 429/5xx responses are retryable."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in _RETRYABLE_STATUS
    return isinstance(error, (httpx.TimeoutException, httpx.TransportError))


class RetryPolicy:
    """Retries an exchange attempt on transient transport failures.

    Parameters
    ----------
    max_attempts:
        Total attempts including the first one.
    backoff_base:
        Seconds to wait before the first retry; doubles each time.
    max_backoff:
        Upper bound for a single wait.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        max_backoff: float = 30.0,
    ) -> None:
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.max_backoff = max_backoff

    @classmethod
    def from_spec(cls, spec: RetrySpec) -> RetryPolicy:
        return cls(
            max_attempts=spec.max_attempts,
            backoff_base=spec.backoff_base,
            max_backoff=spec.max_backoff,
        )

    def backoff(self, attempt: int) -> float:
        """Delay before retrying after failed *attempt* (0-based)."""
        return min(self.backoff_base * (2 ** attempt), self.max_backoff)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run *operation*, retrying transient failures."""
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except Exception as e:
                if not is_retryable(e) or attempt == self.max_attempts - 1:
                    raise
                await self._wait(attempt, e)
        raise AssertionError("unreachable")

    async def stream(
        self, factory: Callable[[], AsyncIterator[T]],
    ) -> AsyncIterator[T]:
        """Iterate ``factory()``, retrying only before the first item."""
        for attempt in range(self.max_attempts):
            delivered = False
            iterator = factory()
            try:
                async for item in iterator:
                    delivered = True
                    yield item
                return
            except Exception as e:
                if delivered or not is_retryable(e) or attempt == self.max_attempts - 1:
                    raise
                await self._wait(attempt, e)
            finally:
                aclose = getattr(iterator, "aclose", None)
                if aclose is not None:
                    await aclose()

    async def _wait(self, attempt: int, error: BaseException) -> None:
        delay = self.backoff(attempt)
        _logger.warning(
            "LLM exchange failed (attempt %d/%d): %s; retrying in %.1fs",
            attempt + 1, self.max_attempts, error, delay,
        )
        await asyncio.sleep(delay)
