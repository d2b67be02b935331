"""Product repository for stock reads and guarded stock updates"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.product import Product


class ProductRepository:
    """Repository for product stock operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_product_by_id(
        self, product_id: int, fresh: bool = False
    ) -> Optional[Product]:
        """Get product by ID; ``fresh`` re-reads the row over any cached state"""
        query = select(Product).where(Product.id == product_id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_products_for_update(
        self, product_ids: Iterable[int]
    ) -> Dict[int, Product]:
        """Read current stock rows, taking row locks where the database has them"""
        query = (
            select(Product)
            .where(Product.id.in_(list(product_ids)))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return {product.id: product for product in result.scalars().all()}

    async def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """Decrement stock only if it stays non-negative; False when it would not"""
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def increment_stock(self, product_id: int, quantity: int) -> bool:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def get_low_stock_products(self, threshold: int) -> List[Product]:
        """Active products whose stock is below the threshold, lowest first"""
        query = (
            select(Product)
            .where(Product.is_active.is_(True), Product.stock_quantity < threshold)
            .order_by(Product.stock_quantity.asc(), Product.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
