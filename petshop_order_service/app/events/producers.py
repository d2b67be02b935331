from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple

from ..models.order import Order
from ..models.product import Product
from .base import BaseEvent
from .schemas import (
    INVENTORY_LOW_STOCK,
    ORDER_CONFIRMED,
    ORDER_STATUS_CHANGED,
    STOCK_RESTORE,
    LowStockAlertEventData,
    OrderConfirmedEventData,
    OrderStatusChangedEventData,
    StockItemData,
    StockRestoreEventData,
)


def _stock_items(lines: Iterable[Tuple[int, int]]) -> list:
    return [
        StockItemData(product_id=product_id, quantity=quantity)
        for product_id, quantity in lines
    ]


class OrderEventProducer:
    """
    Builds fully-formed event envelopes for order and stock transitions.

    The producer only shapes payloads; delivery belongs to the
    NotificationDispatcher so a transport outage never reaches the
    transactional path.
    """

    def __init__(
        self,
        source_service: str = "order-service",
        correlation_id: Optional[str] = None,
    ):
        self.source_service = source_service
        self.correlation_id = correlation_id

    def _envelope(self, event_type: str, data: dict) -> BaseEvent:
        return BaseEvent(
            event_type=event_type,
            source_service=self.source_service,
            correlation_id=self.correlation_id,
            data=data,
        )

    def order_confirmed(self, order: Order) -> BaseEvent:
        event_data = OrderConfirmedEventData(
            order_id=order.id,
            customer_id=order.customer_id,
            total_amount=order.total_amount,
            status=order.status,
            items=_stock_items(order.stock_lines()),
            confirmed_at=datetime.now(timezone.utc),
        )
        return self._envelope(ORDER_CONFIRMED, event_data.to_dict())

    def order_status_changed(self, order: Order, old_status: str) -> BaseEvent:
        event_data = OrderStatusChangedEventData(
            order_id=order.id,
            customer_id=order.customer_id,
            old_status=old_status,
            new_status=order.status,
            changed_at=datetime.now(timezone.utc),
        )
        return self._envelope(ORDER_STATUS_CHANGED, event_data.to_dict())

    def stock_restore(
        self, order: Order, lines: Iterable[Tuple[int, int]], reason: str
    ) -> BaseEvent:
        event_data = StockRestoreEventData(
            order_id=order.id,
            customer_id=order.customer_id,
            items=_stock_items(lines),
            reason=reason,
            restored_at=datetime.now(timezone.utc),
        )
        return self._envelope(STOCK_RESTORE, event_data.to_dict())

    def low_stock_alert(self, product: Product, threshold: int) -> BaseEvent:
        event_data = LowStockAlertEventData(
            product_id=product.id,
            product_name=product.name,
            stock_quantity=product.stock_quantity,
            threshold=threshold,
            alerted_at=datetime.now(timezone.utc),
        )
        return self._envelope(INVENTORY_LOW_STOCK, event_data.to_dict())
