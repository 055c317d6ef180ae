"""Exchange event bus: per-exchange recording plus async fan-out."""

from __future__ import annotations

import asyncio
import heapq
import inspect
import itertools
import logging
from collections import OrderedDict, defaultdict
from typing import Any, Callable

from llmsfree.types import EventType, ExchangeEvent

_logger = logging.getLogger(__name__)

_WILDCARD = "*"

Handler = Callable[[ExchangeEvent], Any]


class EventBus:
    """Records the events of each exchange and fans them out to handlers.

    Events are grouped by ``ExchangeEvent.exchange_id`` so concurrent
    exchanges on one client can be told apart: ``events(exchange_id)``
    returns one exchange in emission order, ``history`` all of them.
    Only the *max_exchanges* most recently started exchanges are kept.

    Handlers subscribe to one event type or ``"*"``, may be sync or async,
    and run concurrently per event.  A failing handler is logged and never
    reaches the exchange.
    """

    def __init__(self, max_exchanges: int = 50) -> None:
        self._handlers: defaultdict[str, list[Handler]] = defaultdict(list)
        self._exchanges: OrderedDict[str | None, list[tuple[int, ExchangeEvent]]] = OrderedDict()
        self._max_exchanges = max_exchanges
        self._seq = itertools.count()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, event_type: EventType | str, handler: Handler) -> None:
        self._handlers[_key(event_type)].append(handler)

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> None:
        handlers = self._handlers.get(_key(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    async def emit(self, event: ExchangeEvent) -> None:
        self._record(event)

        handlers = [
            *self._handlers.get(_key(event.type), ()),
            *self._handlers.get(_WILDCARD, ()),
        ]
        if handlers:
            await asyncio.gather(*(_deliver(handler, event) for handler in handlers))

    def _record(self, event: ExchangeEvent) -> None:
        events = self._exchanges.get(event.exchange_id)
        if events is None:
            events = self._exchanges[event.exchange_id] = []
            while len(self._exchanges) > self._max_exchanges:
                forgotten, _ = self._exchanges.popitem(last=False)
                _logger.debug("Dropping recorded events of exchange %s", forgotten)
        events.append((next(self._seq), event))

    # ------------------------------------------------------------------
    # Recorded events
    # ------------------------------------------------------------------

    @property
    def exchanges(self) -> list[str | None]:
        """Ids of the recorded exchanges, oldest first."""
        return list(self._exchanges)

    def events(self, exchange_id: str | None) -> list[ExchangeEvent]:
        """Events of one exchange in emission order (empty if unknown)."""
        return [event for _, event in self._exchanges.get(exchange_id, ())]

    @property
    def history(self) -> list[ExchangeEvent]:
        """Every recorded event, interleaved in emission order."""
        merged = heapq.merge(*self._exchanges.values(), key=lambda item: item[0])
        return [event for _, event in merged]

    def forget(self, exchange_id: str | None) -> None:
        self._exchanges.pop(exchange_id, None)

    def clear(self) -> None:
        """Drop recorded events; subscriptions stay."""
        self._exchanges.clear()


def _key(event_type: EventType | str) -> str:
    if isinstance(event_type, EventType):
        return event_type.value
    return str(event_type)


async def _deliver(handler: Handler, event: ExchangeEvent) -> None:
    try:
        result = handler(event)
        if inspect.isawaitable(result):
            await result
    except Exception:
        _logger.exception(
            "Event handler %s raised for %s (exchange %s)",
            getattr(handler, "__name__", handler),
            event.type.value,
            event.exchange_id,
        )
