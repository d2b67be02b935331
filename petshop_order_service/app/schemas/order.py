from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    status: str
    version: int
    total_amount: Decimal
    items: List[OrderItemResponse]
    created_at: datetime
    updated_at: datetime


# API Schemas for FastAPI endpoints


class CreateOrderRequest(BaseModel):
    """Create order request; admins may create orders for any customer"""

    customer_id: Optional[int] = Field(
        None, description="Defaults to the calling user's customer id"
    )


class AddItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(..., description="Number of units, must be greater than 0")


class UpdateStatusRequest(BaseModel):
    status: str = Field(..., description="Next fulfilment status")


class CancelOrderRequest(BaseModel):
    reason: str = Field("customer_request", max_length=200)


class OrderListResponse(BaseModel):
    """Order list response"""

    orders: List[OrderResponse]
    total: int
    skip: int
    limit: int


class StatusCountResponse(BaseModel):
    status: str
    count: int


class OrderStatisticsResponse(BaseModel):
    """Order counts per status for the admin dashboard"""

    by_status: Dict[str, int]
    total: int


class LowStockProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: Decimal
    stock_quantity: int


class LowStockResponse(BaseModel):
    threshold: int
    products: List[LowStockProductResponse]
