from typing import Optional

from fastapi import APIRouter, Query, status

from ...schemas.order import LowStockProductResponse, LowStockResponse
from ...services.order_service import OrderService
from ..deps import AdminUserDep, OrderServiceDep

router = APIRouter(prefix="/inventory")


@router.get("/low-stock", status_code=status.HTTP_200_OK)
async def list_low_stock_products(
    threshold: Optional[int] = Query(
        None, ge=0, description="Defaults to the configured LOW_STOCK_THRESHOLD"
    ),
    _admin_id: int = AdminUserDep,
    order_service: OrderService = OrderServiceDep,
) -> LowStockResponse:
    """Active products whose stock is below the threshold"""
    products = await order_service.low_stock_products(threshold)
    return LowStockResponse(
        threshold=threshold if threshold is not None else order_service.low_stock_threshold,
        products=[LowStockProductResponse.model_validate(p) for p in products],
    )
