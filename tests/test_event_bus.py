"""Tests for the exchange EventBus."""

from __future__ import annotations

import logging

import pytest

from llmsfree.events.bus import EventBus
from llmsfree.types import EventType, ExchangeEvent


@pytest.fixture
def bus():
    return EventBus()


class TestSubscribeAndEmit:
    async def test_async_handler(self, bus: EventBus):
        received = []

        async def handler(event: ExchangeEvent):
            received.append(event)

        bus.subscribe(EventType.LLM_REQUEST, handler)
        ev = ExchangeEvent(type=EventType.LLM_REQUEST, data={"round": 1})
        await bus.emit(ev)

        assert len(received) == 1
        assert received[0] is ev

    async def test_sync_handler(self, bus: EventBus):
        received = []

        def handler(event: ExchangeEvent):
            received.append(event)

        bus.subscribe(EventType.TOOL_EXECUTED, handler)
        await bus.emit(ExchangeEvent(type=EventType.TOOL_EXECUTED))

        assert len(received) == 1

    async def test_no_cross_delivery(self, bus: EventBus):
        received = []

        async def handler(event: ExchangeEvent):
            received.append(event)

        bus.subscribe(EventType.TOOL_EXECUTING, handler)
        await bus.emit(ExchangeEvent(type=EventType.TOOL_ERROR))

        assert len(received) == 0

    async def test_string_event_type(self, bus: EventBus):
        received = []
        bus.subscribe("llm.response", received.append)
        await bus.emit(ExchangeEvent(type=EventType.LLM_RESPONSE))

        assert len(received) == 1


class TestWildcard:
    async def test_wildcard_receives_all(self, bus: EventBus):
        received = []

        async def handler(event: ExchangeEvent):
            received.append(event.type)

        bus.subscribe("*", handler)
        await bus.emit(ExchangeEvent(type=EventType.LLM_REQUEST))
        await bus.emit(ExchangeEvent(type=EventType.TOOL_EXECUTED))

        assert received == [EventType.LLM_REQUEST, EventType.TOOL_EXECUTED]


class TestUnsubscribe:
    async def test_unsubscribe(self, bus: EventBus):
        received = []

        def handler(event: ExchangeEvent):
            received.append(event)

        bus.subscribe(EventType.LLM_REQUEST, handler)
        bus.unsubscribe(EventType.LLM_REQUEST, handler)
        await bus.emit(ExchangeEvent(type=EventType.LLM_REQUEST))

        assert received == []

    def test_unsubscribe_unknown_is_noop(self, bus: EventBus):
        bus.unsubscribe(EventType.LLM_REQUEST, lambda e: None)


class TestErrorIsolation:
    async def test_failing_handler_does_not_propagate(self, bus: EventBus, caplog):
        received = []

        def broken(event: ExchangeEvent):
            raise RuntimeError("handler bug")

        bus.subscribe(EventType.TOOL_ERROR, broken)
        bus.subscribe(EventType.TOOL_ERROR, received.append)

        with caplog.at_level(logging.ERROR):
            await bus.emit(ExchangeEvent(type=EventType.TOOL_ERROR))

        assert len(received) == 1
        assert "handler bug" in caplog.text


class TestErrorIsolationByExchange:
    async def test_error_log_names_exchange(self, bus: EventBus, caplog):
        def broken(event: ExchangeEvent):
            raise RuntimeError("handler bug")

        bus.subscribe("*", broken)
        with caplog.at_level(logging.ERROR):
            await bus.emit(ExchangeEvent(type=EventType.LLM_REQUEST, exchange_id="ex-9"))

        assert "ex-9" in caplog.text
        assert len(bus.events("ex-9")) == 1


# ---------------------------------------------------------------------------
# Recorded events
# ---------------------------------------------------------------------------

def _ev(exchange_id: str | None, n: int) -> ExchangeEvent:
    return ExchangeEvent(type=EventType.LLM_REQUEST, data={"n": n}, exchange_id=exchange_id)


class TestExchangeRecording:
    async def test_events_grouped_by_exchange(self, bus: EventBus):
        for event in (_ev("a", 1), _ev("b", 2), _ev("a", 3), _ev("b", 4)):
            await bus.emit(event)

        assert bus.exchanges == ["a", "b"]
        assert [e.data["n"] for e in bus.events("a")] == [1, 3]
        assert [e.data["n"] for e in bus.events("b")] == [2, 4]

    async def test_history_keeps_emission_order(self, bus: EventBus):
        for event in (_ev("a", 1), _ev("b", 2), _ev("a", 3), _ev(None, 4)):
            await bus.emit(event)

        assert [e.data["n"] for e in bus.history] == [1, 2, 3, 4]

    def test_unknown_exchange_has_no_events(self, bus: EventBus):
        assert bus.events("missing") == []

    async def test_oldest_exchange_is_dropped(self):
        bus = EventBus(max_exchanges=2)
        for n, exchange_id in enumerate(["a", "b", "a", "c"]):
            await bus.emit(_ev(exchange_id, n))

        assert bus.exchanges == ["b", "c"]
        assert [e.data["n"] for e in bus.history] == [1, 3]

    async def test_forget(self, bus: EventBus):
        await bus.emit(_ev("a", 1))
        await bus.emit(_ev("b", 2))
        bus.forget("a")
        bus.forget("never-seen")

        assert bus.exchanges == ["b"]

    async def test_clear_keeps_subscriptions(self, bus: EventBus):
        received = []
        bus.subscribe("*", received.append)
        await bus.emit(_ev("a", 1))
        bus.clear()

        assert bus.history == []
        await bus.emit(_ev("a", 2))
        assert len(received) == 2
