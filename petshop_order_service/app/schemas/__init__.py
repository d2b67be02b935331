"""
Order schemas package
"""

from .order import (
    AddItemRequest,
    CancelOrderRequest,
    CreateOrderRequest,
    LowStockProductResponse,
    LowStockResponse,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatisticsResponse,
    StatusCountResponse,
    UpdateStatusRequest,
)

__all__ = [
    "AddItemRequest",
    "CancelOrderRequest",
    "CreateOrderRequest",
    "LowStockProductResponse",
    "LowStockResponse",
    "OrderItemResponse",
    "OrderListResponse",
    "OrderResponse",
    "OrderStatisticsResponse",
    "StatusCountResponse",
    "UpdateStatusRequest",
]
