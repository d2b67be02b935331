"""
Identity middleware for Order Service.
"""

from .identity_middleware import (
    OrderServiceIdentityMiddleware,
    setup_order_identity_middleware,
)

__all__ = ["OrderServiceIdentityMiddleware", "setup_order_identity_middleware"]
