"""
Domain exceptions for the Order Service.

Every business-rule violation carries the data a caller needs to render an
actionable message (current status, requested vs. available stock, ...).
The HTTP mapping lives in ``middleware.error.error_handler``.
"""

from typing import Any, Dict, Optional


class OrderServiceError(Exception):
    """Base class for all order/stock domain errors"""

    code = "order_service_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFoundError(OrderServiceError):
    """Order, product, customer or order item does not exist"""

    code = "not_found"

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource.capitalize()} not found with ID: {resource_id}",
            details={"resource": resource, "id": resource_id},
        )
        self.resource = resource
        self.resource_id = resource_id


class InvalidTransitionError(OrderServiceError):
    """A state machine guard rejected the attempted transition"""

    code = "invalid_transition"

    def __init__(
        self,
        transition: str,
        current_status: str,
        reason: str,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"Cannot {transition} order in status '{current_status}': {reason}",
            details={
                "transition": transition,
                "current_status": current_status,
                "reason": reason,
                **(extra or {}),
            },
        )
        self.transition = transition
        self.current_status = current_status
        self.reason = reason


class InsufficientStockError(OrderServiceError):
    """Reserving the requested quantity would drive stock below zero"""

    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ConcurrentModificationError(OrderServiceError):
    """Another writer updated the order first; the caller should retry"""

    code = "concurrent_modification"

    def __init__(self, order_id: int):
        super().__init__(
            f"Order {order_id} was modified concurrently, retry the operation",
            details={"order_id": order_id},
        )
        self.order_id = order_id


class NotificationDeliveryFailed(OrderServiceError):
    """
    Event delivery failed after the transition was committed.

    Never propagated to callers: the dispatcher logs it as a warning.
    """

    code = "notification_delivery_failed"

    def __init__(self, event_type: str, event_id: str, reason: str):
        super().__init__(
            f"Failed to deliver {event_type} event {event_id}: {reason}",
            details={"event_type": event_type, "event_id": event_id, "reason": reason},
        )
        self.event_type = event_type
        self.event_id = event_id
        self.reason = reason
