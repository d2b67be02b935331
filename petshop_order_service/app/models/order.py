"""
Order aggregate.

The order owns its status and its line items and decides which mutations are
legal in which status. It never touches product stock: reservations and
restorations are performed by the stock ledger, driven by the order service.
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.exceptions import InvalidTransitionError, NotFoundError
from .base import OrderServiceBaseModel, utcnow

if TYPE_CHECKING:
    from .product import Product


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Forward-only fulfilment path driven by set_status
NEXT_STATUS: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.CONFIRMED: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}

# Statuses in which the order holds reserved stock
STOCK_HOLDING_STATUSES = frozenset(
    [OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED]
)

TERMINAL_STATUSES = frozenset([OrderStatus.DELIVERED, OrderStatus.CANCELLED])

DELETABLE_STATUSES = frozenset([OrderStatus.PENDING, OrderStatus.CANCELLED])


class Order(OrderServiceBaseModel):
    __tablename__ = "orders"

    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=OrderStatus.PENDING.value, nullable=False, index=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def total_amount(self) -> Decimal:
        """Always recomputed from the current items, never stored"""
        return sum((item.subtotal for item in self.items), Decimal("0"))

    def stock_lines(self) -> List[Tuple[int, int]]:
        """(product_id, quantity) for every line item, in insertion order"""
        return [(item.product_id, item.quantity) for item in self.items]

    def _touch(self) -> None:
        # Item-only changes must still bump the version column
        self.updated_at = utcnow()

    def ensure_pending(self, transition: str) -> None:
        if self.status != OrderStatus.PENDING:
            raise InvalidTransitionError(
                transition, self.status, "order is no longer pending"
            )

    def add_item(self, product: "Product", quantity: int) -> "OrderItem":
        self.ensure_pending("add item")
        if quantity <= 0:
            raise ValueError("Item quantity must be greater than 0")

        item = OrderItem(
            product_id=product.id,
            quantity=quantity,
            unit_price=product.price,
        )
        self.items.append(item)
        self._touch()
        return item

    def find_item(self, item_id: int) -> Optional["OrderItem"]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def remove_item(self, item_id: int) -> "OrderItem":
        self.ensure_pending("remove item")
        item = self.find_item(item_id)
        if item is None:
            raise NotFoundError("order item", item_id)

        self.items.remove(item)
        self._touch()
        return item

    def ensure_can_confirm(self) -> None:
        self.ensure_pending("confirm")
        if not self.items:
            raise InvalidTransitionError("confirm", self.status, "no items")

    def confirm(self) -> None:
        self.ensure_can_confirm()
        self.status = OrderStatus.CONFIRMED.value
        self._touch()

    def advance_to(self, target: OrderStatus) -> OrderStatus:
        """Move one step along the fulfilment path, returning the previous status"""
        current = OrderStatus(self.status)
        expected = NEXT_STATUS.get(current)
        if expected is None or expected != target:
            if expected is None:
                reason = f"no status change is allowed from '{current.value}'"
            else:
                reason = f"next allowed status is '{expected.value}'"
            raise InvalidTransitionError(
                f"set status to '{target.value}'",
                current.value,
                reason,
                extra={
                    "requested_status": target.value,
                    "allowed_next_status": expected.value if expected else None,
                },
            )

        self.status = target.value
        self._touch()
        return current

    def cancel(self) -> bool:
        """Cancel the order; returns True when reserved stock must be released"""
        current = OrderStatus(self.status)
        if current == OrderStatus.DELIVERED:
            raise InvalidTransitionError(
                "cancel", current.value, "order was already delivered"
            )
        if current == OrderStatus.CANCELLED:
            raise InvalidTransitionError(
                "cancel", current.value, "order is already cancelled"
            )

        self.status = OrderStatus.CANCELLED.value
        self._touch()
        return current in STOCK_HOLDING_STATUSES

    def ensure_deletable(self) -> None:
        if OrderStatus(self.status) not in DELETABLE_STATUSES:
            raise InvalidTransitionError(
                "delete",
                self.status,
                "only pending or cancelled orders can be deleted",
            )


class OrderItem(OrderServiceBaseModel):
    __tablename__ = "order_items"

    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Price snapshot taken when the item was added
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    @property
    def subtotal(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity
