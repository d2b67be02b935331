"""
Unit tests for fire-and-forget event delivery.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock, patch

import pytest
from aiokafka.errors import KafkaError

from petshop_order_service.app.events.base import BaseEvent, EventPublisher
from petshop_order_service.app.events.base.kafka_client import KafkaEventPublisher
from petshop_order_service.app.events.dispatcher import NotificationDispatcher

PRODUCER_PATH = "petshop_order_service.app.events.base.kafka_client.AIOKafkaProducer"


def make_event(event_type: str = "order.confirmed") -> BaseEvent:
    return BaseEvent(event_type=event_type, data={"order_id": 1})


class TestNotificationDispatcher:
    @pytest.fixture
    def publisher(self):
        return AsyncMock(spec=EventPublisher)

    async def test_emit_delivers_in_background(self, publisher):
        dispatcher = NotificationDispatcher(publisher)
        event = make_event()

        dispatcher.emit(event, topic="order.events")
        assert dispatcher.pending_count == 1

        await dispatcher.drain()

        publisher.publish.assert_awaited_once_with(event, topic="order.events")
        assert dispatcher.pending_count == 0
        assert dispatcher.failures == []

    async def test_emit_does_not_wait_for_slow_transport(self, publisher):
        release = asyncio.Event()

        async def slow_publish(event, topic=None):
            await release.wait()

        publisher.publish.side_effect = slow_publish
        dispatcher = NotificationDispatcher(publisher)

        dispatcher.emit(make_event())
        await asyncio.sleep(0)
        assert dispatcher.pending_count == 1

        release.set()
        await dispatcher.drain()
        assert dispatcher.pending_count == 0

    async def test_delivery_failure_is_logged_not_raised(self, publisher, caplog):
        publisher.publish.side_effect = RuntimeError("broker unreachable")
        dispatcher = NotificationDispatcher(publisher)
        event = make_event("stock.restore")

        with caplog.at_level(logging.WARNING):
            dispatcher.emit(event)
            await dispatcher.drain()

        assert len(dispatcher.failures) == 1
        failure = dispatcher.failures[0]
        assert failure.event_type == "stock.restore"
        assert failure.event_id == event.event_id
        assert "broker unreachable" in failure.reason
        assert any("Failed to deliver" in r.getMessage() for r in caplog.records)

    async def test_failures_are_bounded(self, publisher):
        publisher.publish.side_effect = RuntimeError("down")
        dispatcher = NotificationDispatcher(publisher, max_failures_kept=3)

        for _ in range(5):
            dispatcher.emit(make_event())
        await dispatcher.drain()

        assert len(dispatcher.failures) == 3

    async def test_without_publisher_events_are_dropped(self):
        dispatcher = NotificationDispatcher(None)
        dispatcher.emit(make_event())

        assert dispatcher.pending_count == 0
        await dispatcher.drain()

    async def test_one_failure_does_not_block_others(self, publisher):
        publisher.publish.side_effect = [RuntimeError("first fails"), None]
        dispatcher = NotificationDispatcher(publisher)

        dispatcher.emit(make_event("order.confirmed"))
        dispatcher.emit(make_event("inventory.low_stock"))
        await dispatcher.drain()

        assert publisher.publish.await_count == 2
        assert len(dispatcher.failures) == 1


class TestDispatcherOverKafka:
    @pytest.fixture
    def producer(self):
        producer = Mock()
        producer.start = AsyncMock()
        producer.stop = AsyncMock()
        producer.send_and_wait = AsyncMock(side_effect=KafkaError("broker down"))
        return producer

    async def test_send_failure_is_recorded(self, producer):
        publisher = KafkaEventPublisher(
            "localhost:9092",
            "test-producer",
            max_retries=1,
            enable_graceful_degradation=False,
        )
        with patch(PRODUCER_PATH, return_value=producer):
            await publisher.start(timeout=1.0)
        dispatcher = NotificationDispatcher(publisher)

        dispatcher.emit(make_event("stock.restore"))
        await dispatcher.drain()

        producer.send_and_wait.assert_awaited_once()
        assert len(dispatcher.failures) == 1
        assert dispatcher.failures[0].event_type == "stock.restore"

    async def test_unreachable_broker_is_recorded(self):
        publisher = KafkaEventPublisher(
            "localhost:9092", "test-producer", enable_graceful_degradation=False
        )
        dispatcher = NotificationDispatcher(publisher)

        dispatcher.emit(make_event())
        await dispatcher.drain()

        assert len(dispatcher.failures) == 1
        assert "not connected" in dispatcher.failures[0].reason
