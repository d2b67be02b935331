"""
Order service event schemas for order, stock and inventory events.
Provides payload structures carried in the ``data`` field of BaseEvent.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from pydantic import BaseModel

# Event type constants
ORDER_CONFIRMED = "order.confirmed"
ORDER_STATUS_CHANGED = "order.status_changed"
STOCK_RESTORE = "stock.restore"
INVENTORY_LOW_STOCK = "inventory.low_stock"


class EventData(BaseModel):
    """Base event data structure"""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for BaseEvent compatibility"""
        return self.model_dump(mode="json")


class StockItemData(EventData):
    """A (product, quantity) pair moved in or out of stock"""

    product_id: int
    quantity: int


class OrderConfirmedEventData(EventData):
    """Data for order confirmation events"""

    order_id: int
    customer_id: int
    total_amount: Decimal
    status: str
    items: List[StockItemData]
    confirmed_at: datetime


class OrderStatusChangedEventData(EventData):
    """Data for order status change events"""

    order_id: int
    customer_id: int
    old_status: str
    new_status: str
    changed_at: datetime


class StockRestoreEventData(EventData):
    """Data for stock restoration after a cancelled order"""

    order_id: int
    customer_id: int
    items: List[StockItemData]
    reason: str
    restored_at: datetime


class LowStockAlertEventData(EventData):
    """Data for low stock alerts"""

    product_id: int
    product_name: str
    stock_quantity: int
    threshold: int
    alerted_at: datetime
