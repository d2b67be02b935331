import asyncio
import json
from typing import Dict, Optional

from aiokafka import AIOKafkaProducer  # type: ignore
from aiokafka.errors import KafkaConnectionError, KafkaError  # type: ignore

from ...utils.logging import setup_order_logging as setup_logging
from . import BaseEvent, EventPublisher

logger = setup_logging("order_service_kafka")

DEFAULT_TOPICS: Dict[str, str] = {
    "order.confirmed": "order.events",
    "order.status_changed": "order.events",
    "stock.restore": "stock.events",
    "inventory.low_stock": "inventory.events",
}


class KafkaEventPublisher(EventPublisher):
    """
    Order Service Kafka publisher with connection retry logic
    """

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str,
        max_retries: int = 10,
        retry_delay: float = 2.0,
        enable_graceful_degradation: bool = True,
        topic_mapping: Optional[Dict[str, str]] = None,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.enable_graceful_degradation = enable_graceful_degradation
        self.topic_mapping = dict(DEFAULT_TOPICS)
        if topic_mapping:
            self.topic_mapping.update(topic_mapping)
        self.producer: Optional[AIOKafkaProducer] = None
        self.is_connected = False
        self._connection_lock = asyncio.Lock()

    async def start(self, timeout: float = 30.0) -> None:
        """Start Kafka producer with retry logic"""
        async with self._connection_lock:
            if self.producer and self.is_connected:
                return

            self.producer = AIOKafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                client_id=self.client_id,
                value_serializer=lambda x: json.dumps(x, default=str).encode("utf-8"),  # type: ignore
                key_serializer=lambda x: x.encode("utf-8") if x else None,  # type: ignore
                retry_backoff_ms=1000,
                request_timeout_ms=30000,
                acks="all",
            )

            # Retry connection with exponential backoff
            for attempt in range(self.max_retries):
                try:
                    logger.info(
                        "Attempting Kafka connection",
                        extra={
                            "attempt": attempt + 1,
                            "max_retries": self.max_retries,
                            "operation": "kafka_connect",
                        },
                    )
                    await asyncio.wait_for(self.producer.start(), timeout=timeout)  # type: ignore

                    self.is_connected = True
                    logger.info("Successfully connected to Kafka")
                    return

                except (KafkaConnectionError, asyncio.TimeoutError) as e:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"Kafka connection attempt {attempt + 1} failed: {e}. "
                        f"Retrying in {delay} seconds..."
                    )

                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            f"Failed to connect to Kafka after {self.max_retries} attempts. "
                            "Running in degraded mode (events will be logged but not published)"
                        )
                        self.is_connected = False
                        return

    async def stop(self) -> None:
        """Stop Kafka producer"""
        async with self._connection_lock:
            if self.producer:
                try:
                    await self.producer.stop()  # type: ignore
                    logger.info("Kafka producer stopped")
                except KafkaError as e:
                    logger.warning(
                        "Error stopping Kafka producer",
                        extra={"error": str(e), "operation": "stop_producer"},
                    )
                finally:
                    self.producer = None
                    self.is_connected = False

    async def publish(self, event: BaseEvent, topic: Optional[str] = None) -> None:
        """Publish event with fallback handling"""
        if not self.is_connected or not self.producer:
            if self.enable_graceful_degradation:
                logger.warning(
                    f"Kafka not available, logging event instead: {event.event_type}",
                    extra={
                        "event_id": event.event_id,
                        "event_type": event.event_type,
                        "event_data": event.model_dump(mode="json"),
                    },
                )
                return
            raise KafkaConnectionError("Kafka producer not connected")

        if not topic:
            topic = self.topic_for(event.event_type)

        # Keep all events of one order on one partition, in order
        partition_key = str(event.data.get("order_id") or event.correlation_id or "")

        try:
            await self.producer.send_and_wait(  # type: ignore
                topic=topic,
                value=event.model_dump(mode="json"),
                key=partition_key or None,
            )
            logger.info(
                "Published event to Kafka topic",
                extra={
                    "event_type": event.event_type,
                    "topic": topic,
                    "event_id": event.event_id,
                    "correlation_id": event.correlation_id,
                    "operation": "publish_event",
                },
            )

        except KafkaError as e:
            if self.enable_graceful_degradation:
                logger.error(
                    f"Failed to publish event {event.event_type}, logging instead: {e}",
                    extra={
                        "event_id": event.event_id,
                        "event_type": event.event_type,
                        "event_data": event.model_dump(mode="json"),
                    },
                )
            else:
                raise

    def topic_for(self, event_type: str) -> str:
        """Map event type to Kafka topic"""
        return self.topic_mapping.get(event_type, "order.events")

    async def health_check(self) -> bool:
        """Check if Kafka connection is healthy"""
        if not self.producer or not self.is_connected:
            return False
        try:
            await self.producer.client.fetch_all_metadata()  # type: ignore
            return True
        except KafkaError as e:
            logger.warning(
                "Kafka health check failed",
                extra={"error": str(e), "operation": "health_check"},
            )
            return False
