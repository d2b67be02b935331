from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.order import Order, OrderStatus


class OrderRepository:
    """Loads and stages orders; the calling service owns the transaction"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_order(self, order: Order) -> Order:
        """Stage a new order and assign its ID"""
        self.session.add(order)
        await self.session.flush()
        return order

    async def get_order_by_id(
        self, order_id: int, fresh: bool = False
    ) -> Optional[Order]:
        """Get order by ID with items; ``fresh`` bypasses the identity map"""
        query = select(Order).where(Order.id == order_id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalars().first()

    async def list_orders(
        self,
        customer_id: Optional[int] = None,
        status_filter: Optional[OrderStatus] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Order], int]:
        """List orders newest first with optional filters, plus the total count

        The creation window is inclusive at both ends.
        """
        conditions = []
        if customer_id is not None:
            conditions.append(Order.customer_id == customer_id)
        if status_filter is not None:
            conditions.append(Order.status == status_filter.value)
        if created_from is not None:
            conditions.append(Order.created_at >= created_from)
        if created_to is not None:
            conditions.append(Order.created_at <= created_to)

        count_query = select(func.count(Order.id)).where(*conditions)
        total_count = (await self.session.execute(count_query)).scalar() or 0

        query = (
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total_count

    async def count_by_status(self, status: OrderStatus) -> int:
        query = select(func.count(Order.id)).where(Order.status == status.value)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def delete_order(self, order: Order) -> None:
        """Stage deletion of an order together with its items"""
        await self.session.delete(order)
        await self.session.flush()

    async def count_grouped_by_status(self) -> Dict[str, int]:
        """Order counts keyed by status name; statuses without orders are absent"""
        query = select(Order.status, func.count(Order.id)).group_by(Order.status)
        result = await self.session.execute(query)
        return {status: count for status, count in result.all()}
