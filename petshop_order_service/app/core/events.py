"""
Order Service Event Management
Initializes and manages Kafka event publishing for the order service.
"""

from typing import Optional

from ..events.base.kafka_client import KafkaEventPublisher
from ..events.dispatcher import NotificationDispatcher
from ..utils.logging import setup_order_logging as setup_logging
from .settings import get_settings

logger = setup_logging("order_service_events")

# Global instances
_kafka_publisher: Optional[KafkaEventPublisher] = None
_dispatcher: Optional[NotificationDispatcher] = None


async def init_events() -> None:
    """Initialize event publishing infrastructure"""
    global _kafka_publisher, _dispatcher

    settings = get_settings()

    _kafka_publisher = KafkaEventPublisher(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        client_id=f"{settings.SERVICE_NAME}-producer",
        max_retries=10,
        retry_delay=2.0,
        # Publish errors propagate to the dispatcher, which records them;
        # only a deliberately disabled Kafka falls back to logging events
        enable_graceful_degradation=not settings.KAFKA_ENABLED,
        topic_mapping={
            "order.confirmed": settings.KAFKA_TOPIC_ORDER_EVENTS,
            "order.status_changed": settings.KAFKA_TOPIC_ORDER_EVENTS,
            "stock.restore": settings.KAFKA_TOPIC_STOCK_EVENTS,
            "inventory.low_stock": settings.KAFKA_TOPIC_INVENTORY_EVENTS,
        },
    )
    _dispatcher = NotificationDispatcher(_kafka_publisher)

    if not settings.KAFKA_ENABLED:
        logger.info("Kafka disabled, events will be logged instead of published")
        return

    await _kafka_publisher.start(timeout=30.0)
    if _kafka_publisher.is_connected:
        logger.info("Event publishing infrastructure initialized successfully")
    else:
        logger.info("Service will continue without event publishing (degraded mode)")


async def close_events() -> None:
    """Close event publishing infrastructure"""
    global _kafka_publisher, _dispatcher

    try:
        if _dispatcher:
            await _dispatcher.drain()
        if _kafka_publisher:
            await _kafka_publisher.stop()
            logger.info("Event publishing infrastructure closed")
    finally:
        _kafka_publisher = None
        _dispatcher = None


def get_dispatcher() -> Optional[NotificationDispatcher]:
    """Get the notification dispatcher instance"""
    return _dispatcher


async def health_check_events() -> bool:
    """Check if event publishing is healthy"""
    if _kafka_publisher:
        return await _kafka_publisher.health_check()
    return False
