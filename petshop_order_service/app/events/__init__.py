"""
Events module for the Order Service.

Producers:
    - OrderEventProducer: builds order and stock event envelopes

Delivery:
    - NotificationDispatcher: fire-and-forget delivery through an EventPublisher
    - KafkaEventPublisher: aiokafka transport with graceful degradation

Event Types Supported:
    order.confirmed, order.status_changed, stock.restore, inventory.low_stock
"""

from .base import BaseEvent, EventPublisher
from .dispatcher import NotificationDispatcher
from .producers import OrderEventProducer

__all__ = [
    "BaseEvent",
    "EventPublisher",
    "NotificationDispatcher",
    "OrderEventProducer",
]
