from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from ...models.order import Order
from ...schemas.order import (
    AddItemRequest,
    CancelOrderRequest,
    CreateOrderRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatisticsResponse,
    StatusCountResponse,
    UpdateStatusRequest,
)
from ...services.order_service import OrderService
from ..deps import (
    AdminUserDep,
    CurrentUserIdDep,
    CurrentUserRoleDep,
    OrderServiceDep,
    is_admin,
)

router = APIRouter(prefix="/orders")


async def get_owned_order(
    order_service: OrderService,
    order_id: int,
    user_id: int,
    user_role: Optional[str],
    action: str,
) -> Order:
    """Load an order, allowing non-admin callers only their own"""
    order = await order_service.get_order(order_id)
    if not is_admin(user_role) and order.customer_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You can only {action} your own orders",
        )
    return order


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: Optional[CreateOrderRequest] = None,
    user_id: int = CurrentUserIdDep,
    user_role: Optional[str] = CurrentUserRoleDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderResponse:
    """Create an empty pending order"""
    customer_id = user_id
    if order_data and order_data.customer_id is not None:
        if order_data.customer_id != user_id and not is_admin(user_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only create orders for yourself",
            )
        customer_id = order_data.customer_id

    order = await order_service.create_order(customer_id)
    return OrderResponse.model_validate(order)


@router.get("", status_code=status.HTTP_200_OK)
async def list_orders(
    customer_id: Optional[int] = Query(None, description="Admin only: filter by customer"),
    order_status: Optional[str] = Query(None, alias="status"),
    created_from: Optional[datetime] = Query(
        None, description="Only orders created at or after this moment"
    ),
    created_to: Optional[datetime] = Query(
        None, description="Only orders created at or before this moment"
    ),
    skip: int = Query(0, ge=0, description="Number of orders to skip"),
    limit: int = Query(50, ge=1, le=100, description="Number of orders to return"),
    user_id: int = CurrentUserIdDep,
    user_role: Optional[str] = CurrentUserRoleDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderListResponse:
    """List orders newest first; customers only see their own"""
    if not is_admin(user_role):
        customer_id = user_id

    orders, total = await order_service.list_orders(
        customer_id=customer_id,
        status=order_status,
        created_from=created_from,
        created_to=created_to,
        skip=skip,
        limit=limit,
    )
    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/status/{order_status}/count", status_code=status.HTTP_200_OK)
async def count_orders_by_status(
    order_status: str,
    _admin_id: int = AdminUserDep,
    order_service: OrderService = OrderServiceDep,
) -> StatusCountResponse:
    count = await order_service.count_by_status(order_status)
    return StatusCountResponse(status=order_status.lower(), count=count)


@router.get("/statistics", status_code=status.HTTP_200_OK)
async def order_statistics(
    _admin_id: int = AdminUserDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderStatisticsResponse:
    """Order counts for every status plus the overall total (admin only)"""
    statistics = await order_service.order_statistics()
    total = statistics.pop("total")
    return OrderStatisticsResponse(by_status=statistics, total=total)


@router.get("/{order_id}", status_code=status.HTTP_200_OK)
async def get_order(
    order_id: int,
    user_id: int = CurrentUserIdDep,
    user_role: Optional[str] = CurrentUserRoleDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderResponse:
    """Get order details by ID"""
    order = await get_owned_order(order_service, order_id, user_id, user_role, "view")
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/items", status_code=status.HTTP_201_CREATED)
async def add_order_item(
    order_id: int,
    item: AddItemRequest,
    user_id: int = CurrentUserIdDep,
    user_role: Optional[str] = CurrentUserRoleDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderResponse:
    await get_owned_order(order_service, order_id, user_id, user_role, "modify")
    order = await order_service.add_item(order_id, item.product_id, item.quantity)
    return OrderResponse.model_validate(order)


@router.delete("/{order_id}/items/{item_id}", status_code=status.HTTP_200_OK)
async def remove_order_item(
    order_id: int,
    item_id: int,
    user_id: int = CurrentUserIdDep,
    user_role: Optional[str] = CurrentUserRoleDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderResponse:
    await get_owned_order(order_service, order_id, user_id, user_role, "modify")
    order = await order_service.remove_item(order_id, item_id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/confirm", status_code=status.HTTP_200_OK)
async def confirm_order(
    order_id: int,
    user_id: int = CurrentUserIdDep,
    user_role: Optional[str] = CurrentUserRoleDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderResponse:
    """Reserve stock for every item and confirm the order"""
    await get_owned_order(order_service, order_id, user_id, user_role, "confirm")
    order = await order_service.confirm_order(order_id)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}/status", status_code=status.HTTP_200_OK)
async def update_order_status(
    order_id: int,
    status_data: UpdateStatusRequest,
    _admin_id: int = AdminUserDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderResponse:
    """Advance fulfilment status (admin only)"""
    order = await order_service.set_status(order_id, status_data.status)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cancel", status_code=status.HTTP_200_OK)
async def cancel_order(
    order_id: int,
    cancel_data: Optional[CancelOrderRequest] = None,
    user_id: int = CurrentUserIdDep,
    user_role: Optional[str] = CurrentUserRoleDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderResponse:
    """Cancel an order, restoring stock if it had been reserved"""
    await get_owned_order(order_service, order_id, user_id, user_role, "cancel")
    reason = cancel_data.reason if cancel_data else "customer_request"
    order = await order_service.cancel_order(order_id, reason=reason)
    return OrderResponse.model_validate(order)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: int,
    user_id: int = CurrentUserIdDep,
    user_role: Optional[str] = CurrentUserRoleDep,
    order_service: OrderService = OrderServiceDep,
) -> Response:
    await get_owned_order(order_service, order_id, user_id, user_role, "delete")
    await order_service.delete_order(order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
