"""
Order lifecycle service.

Coordinates the order aggregate, the stock ledger and the notification
dispatcher. Every mutating operation runs inside the order's critical
section, commits its transaction and only then hands its event to the
dispatcher.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.exceptions import (
    ConcurrentModificationError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
)
from ..core.locks import order_locks
from ..core.settings import OrderSettings, get_settings
from ..events.base import BaseEvent
from ..events.dispatcher import NotificationDispatcher
from ..events.producers import OrderEventProducer
from ..models.order import Order, OrderStatus
from ..models.product import Product
from ..repository import CustomerRepository, OrderRepository, ProductRepository
from ..utils.logging import setup_order_logging as setup_logging
from .stock_ledger import StockLedger

logger = setup_logging("order_service", log_level="INFO")


def parse_status(value: str) -> OrderStatus:
    """Parse a status name, raising ValueError for unknown values"""
    try:
        return OrderStatus(value.strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValueError(f"Unknown order status '{value}'. Allowed: {allowed}")


def as_utc_naive(moment: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC; aware values are converted first"""
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class OrderService:
    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[OrderSettings] = None,
        correlation_id: Optional[str] = None,
    ):
        settings = settings or get_settings()
        self.session = session
        self.dispatcher = dispatcher
        self.order_repository = OrderRepository(session)
        self.product_repository = ProductRepository(session)
        self.customer_repository = CustomerRepository(session)
        self.ledger = StockLedger(self.product_repository)
        self.producer = OrderEventProducer(
            source_service=settings.SERVICE_NAME, correlation_id=correlation_id
        )
        self.low_stock_threshold = settings.LOW_STOCK_THRESHOLD

    @asynccontextmanager
    async def _order_transaction(self, order_id: int) -> AsyncIterator[None]:
        """Serialize writers of one order and roll back on any failure"""
        async with order_locks.hold(order_id):
            try:
                yield
            except StaleDataError:
                await self.session.rollback()
                logger.warning(
                    "Concurrent order modification detected",
                    extra={"order_id": str(order_id)},
                )
                raise ConcurrentModificationError(order_id)
            except Exception:
                await self.session.rollback()
                raise

    async def _load_order(self, order_id: int) -> Order:
        order = await self.order_repository.get_order_by_id(order_id, fresh=True)
        if order is None:
            raise NotFoundError("order", order_id)
        return order

    def _emit(self, event: BaseEvent) -> None:
        if self.dispatcher is None:
            logger.debug(
                "No dispatcher configured, event not delivered",
                extra={"event_type": event.event_type, "event_id": event.event_id},
            )
            return
        self.dispatcher.emit(event)

    # =====================================================
    # LIFECYCLE OPERATIONS
    # =====================================================

    async def create_order(self, customer_id: int) -> Order:
        """Create an empty pending order for an existing customer"""
        try:
            customer = await self.customer_repository.get_customer_by_id(customer_id)
            if customer is None:
                raise NotFoundError("customer", customer_id)

            order = Order(
                customer_id=customer_id, status=OrderStatus.PENDING.value, items=[]
            )
            await self.order_repository.add_order(order)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order created successfully.",
            extra={"order_id": str(order.id), "customer_id": str(customer_id)},
        )
        return order

    async def add_item(self, order_id: int, product_id: int, quantity: int) -> Order:
        """Append a line item to a pending order; stock is checked, not reserved"""
        if quantity <= 0:
            raise ValueError("Item quantity must be greater than 0")

        async with self._order_transaction(order_id):
            order = await self._load_order(order_id)
            order.ensure_pending("add item")

            product = await self.product_repository.get_product_by_id(
                product_id, fresh=True
            )
            if product is None:
                raise NotFoundError("product", product_id)
            if not product.is_active:
                raise InvalidTransitionError(
                    "add item", order.status, f"product {product_id} is not active"
                )
            if not await self.ledger.has_stock(product_id, quantity):
                raise InsufficientStockError(
                    product_id, quantity, product.stock_quantity
                )

            order.add_item(product, quantity)
            await self.session.commit()

        logger.info(
            "Item added to order",
            extra={
                "order_id": str(order_id),
                "product_id": str(product_id),
                "quantity": quantity,
                "total_amount": str(order.total_amount),
            },
        )
        return order

    async def remove_item(self, order_id: int, item_id: int) -> Order:
        async with self._order_transaction(order_id):
            order = await self._load_order(order_id)
            order.remove_item(item_id)
            await self.session.commit()

        logger.info(
            "Item removed from order",
            extra={"order_id": str(order_id), "item_id": str(item_id)},
        )
        return order

    async def confirm_order(self, order_id: int) -> Order:
        """
        Reserve stock for every item and move the order to confirmed.

        All products are verified before any stock is decremented; if one is
        short nothing is reserved and the order stays pending. Product locks
        are held until the transaction is committed.
        """
        async with self._order_transaction(order_id):
            order = await self._load_order(order_id)
            order.ensure_can_confirm()

            async with self.ledger.reserving(order.stock_lines()) as reserved:
                order.confirm()
                await self.session.commit()

        logger.info(
            "Order confirmed",
            extra={
                "order_id": str(order_id),
                "customer_id": str(order.customer_id),
                "total_amount": str(order.total_amount),
                "status": order.status,
            },
        )
        self._emit(self.producer.order_confirmed(order))
        await self._alert_low_stock(reserved)
        return order

    async def _alert_low_stock(self, product_ids: Iterable[int]) -> None:
        for product_id in product_ids:
            product = await self.product_repository.get_product_by_id(
                product_id, fresh=True
            )
            if product is None or product.stock_quantity >= self.low_stock_threshold:
                continue

            logger.warning(
                "Product stock below threshold",
                extra={
                    "product_id": str(product.id),
                    "stock_quantity": product.stock_quantity,
                    "threshold": self.low_stock_threshold,
                },
            )
            self._emit(self.producer.low_stock_alert(product, self.low_stock_threshold))

    async def set_status(self, order_id: int, target: str) -> Order:
        """Advance a confirmed order one step along its fulfilment path"""
        target_status = parse_status(target)

        async with self._order_transaction(order_id):
            order = await self._load_order(order_id)
            previous = order.advance_to(target_status)
            await self.session.commit()

        logger.info(
            "Order status updated successfully.",
            extra={
                "order_id": str(order_id),
                "old_status": previous.value,
                "new_status": order.status,
            },
        )
        self._emit(self.producer.order_status_changed(order, previous.value))
        return order

    async def cancel_order(self, order_id: int, reason: str = "customer_request") -> Order:
        """Cancel an order, restoring its stock when it was holding any"""
        async with self._order_transaction(order_id):
            order = await self._load_order(order_id)
            previous = order.status
            lines = order.stock_lines()
            must_release = order.cancel()

            if must_release:
                async with self.ledger.releasing(lines):
                    await self.session.commit()
            else:
                await self.session.commit()

        logger.info(
            "Order cancelled",
            extra={
                "order_id": str(order_id),
                "old_status": previous,
                "stock_released": must_release,
                "reason": reason,
            },
        )
        if must_release:
            self._emit(self.producer.stock_restore(order, lines, reason))
        return order

    async def delete_order(self, order_id: int) -> None:
        """Delete a pending or cancelled order together with its items"""
        async with self._order_transaction(order_id):
            order = await self._load_order(order_id)
            order.ensure_deletable()
            await self.order_repository.delete_order(order)
            await self.session.commit()

        logger.info("Order deleted", extra={"order_id": str(order_id)})

    # =====================================================
    # READ OPERATIONS
    # =====================================================

    async def get_order(self, order_id: int) -> Order:
        return await self._load_order(order_id)

    async def list_orders(
        self,
        customer_id: Optional[int] = None,
        status: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Order], int]:
        """List orders newest first, filtered by customer, status or creation window"""
        status_filter = parse_status(status) if status else None
        created_from = as_utc_naive(created_from)
        created_to = as_utc_naive(created_to)
        if created_from and created_to and created_from > created_to:
            raise ValueError("created_from must not be later than created_to")

        orders, total_count = await self.order_repository.list_orders(
            customer_id=customer_id,
            status_filter=status_filter,
            created_from=created_from,
            created_to=created_to,
            skip=skip,
            limit=limit,
        )
        logger.info(
            "Orders listed successfully.",
            extra={
                "customer_id": str(customer_id) if customer_id is not None else None,
                "status": status_filter.value if status_filter else None,
                "total_count": total_count,
                "returned_count": len(orders),
            },
        )
        return orders, total_count

    async def count_by_status(self, status: str) -> int:
        return await self.order_repository.count_by_status(parse_status(status))

    async def order_statistics(self) -> Dict[str, int]:
        """Order count for every status plus the overall ``total``"""
        grouped = await self.order_repository.count_grouped_by_status()
        statistics = {status.value: grouped.get(status.value, 0) for status in OrderStatus}
        statistics["total"] = sum(statistics.values())
        return statistics

    async def low_stock_products(self, threshold: Optional[int] = None) -> List[Product]:
        """Active products whose stock is below ``threshold`` (configured default)"""
        if threshold is None:
            threshold = self.low_stock_threshold
        if threshold < 0:
            raise ValueError("Low stock threshold must not be negative")
        return await self.product_repository.get_low_stock_products(threshold)
