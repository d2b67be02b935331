"""
Product stock ledger.

Owns available-quantity bookkeeping. Every reserve/release for a product runs
inside that product's critical section and as a guarded UPDATE, so concurrent
confirmations against the same product are linearized and stock never goes
below zero. Multi-product reservations verify every quantity before the first
decrement is issued.
"""

from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, Optional, Tuple

from ..core.exceptions import InsufficientStockError, NotFoundError
from ..core.locks import KeyedLockRegistry, product_locks
from ..repository.product_repository import ProductRepository
from ..utils.logging import setup_order_logging as setup_logging

logger = setup_logging("order_service_stock_ledger")

StockLine = Tuple[int, int]


def aggregate_lines(lines: Iterable[StockLine]) -> Dict[int, int]:
    """Sum quantities per product, keeping first-seen product order"""
    totals: Dict[int, int] = OrderedDict()
    for product_id, quantity in lines:
        if quantity <= 0:
            raise ValueError(f"Stock quantity must be positive, got {quantity}")
        totals[product_id] = totals.get(product_id, 0) + quantity
    return totals


class StockLedger:
    """Reserve/release primitives over product stock"""

    def __init__(
        self,
        product_repository: ProductRepository,
        locks: Optional[KeyedLockRegistry] = None,
    ):
        self.product_repository = product_repository
        self.locks = locks if locks is not None else product_locks

    async def available(self, product_id: int) -> int:
        product = await self.product_repository.get_product_by_id(
            product_id, fresh=True
        )
        if product is None:
            raise NotFoundError("product", product_id)
        return product.stock_quantity

    async def has_stock(self, product_id: int, quantity: int) -> bool:
        return await self.available(product_id) >= quantity

    @asynccontextmanager
    async def reserving(self, lines: Iterable[StockLine]) -> AsyncIterator[Dict[int, int]]:
        """
        Reserve stock for every line, all-or-nothing.

        The product locks stay held for the body of the ``async with`` so the
        caller can commit its transaction before another writer sees the rows.
        If the body raises, the caller must roll back the session.
        """
        totals = aggregate_lines(lines)
        async with self.locks.hold_many(totals):
            products = await self.product_repository.get_products_for_update(totals)

            # Verify every product first; nothing is decremented on failure
            for product_id, quantity in totals.items():
                product = products.get(product_id)
                if product is None:
                    raise NotFoundError("product", product_id)
                if product.stock_quantity < quantity:
                    raise InsufficientStockError(
                        product_id, quantity, product.stock_quantity
                    )

            for product_id, quantity in totals.items():
                reserved = await self.product_repository.decrement_stock(
                    product_id, quantity
                )
                if not reserved:
                    # Another process won the row between check and update
                    current = await self.available(product_id)
                    raise InsufficientStockError(product_id, quantity, current)

            logger.info(
                "Stock reserved",
                extra={"reservations": {str(k): v for k, v in totals.items()}},
            )
            yield totals

    @asynccontextmanager
    async def releasing(self, lines: Iterable[StockLine]) -> AsyncIterator[Dict[int, int]]:
        """Restore stock for every line; the inverse of ``reserving``"""
        totals = aggregate_lines(lines)
        async with self.locks.hold_many(totals):
            for product_id, quantity in totals.items():
                released = await self.product_repository.increment_stock(
                    product_id, quantity
                )
                if not released:
                    raise NotFoundError("product", product_id)

            logger.info(
                "Stock released",
                extra={"releases": {str(k): v for k, v in totals.items()}},
            )
            yield totals

    async def reserve_all(self, lines: Iterable[StockLine]) -> Dict[int, int]:
        async with self.reserving(lines) as totals:
            return totals

    async def release_all(self, lines: Iterable[StockLine]) -> Dict[int, int]:
        async with self.releasing(lines) as totals:
            return totals

    async def reserve(self, product_id: int, quantity: int) -> None:
        await self.reserve_all([(product_id, quantity)])

    async def release(self, product_id: int, quantity: int) -> None:
        await self.release_all([(product_id, quantity)])
