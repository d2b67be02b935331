"""
FastAPI dependency injection for Order Service

Provides database sessions, the notification dispatcher, the order service and
the caller identity forwarded by the API gateway.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db_session
from ..core.events import get_dispatcher
from ..events.dispatcher import NotificationDispatcher
from ..services.order_service import OrderService

ADMIN_ROLE = "admin"

# =====================================================
# DATABASE DEPENDENCIES
# =====================================================


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide async database session"""
    async for session in get_db_session():
        yield session


# =====================================================
# EVENT DEPENDENCIES
# =====================================================


def get_notification_dispatcher() -> Optional[NotificationDispatcher]:
    return get_dispatcher()


# =====================================================
# AUTHENTICATION & REQUEST CONTEXT DEPENDENCIES
# =====================================================


def get_correlation_id(request: Request) -> Optional[str]:
    """Extract correlation ID from request state or headers"""
    return getattr(request.state, "correlation_id", None) or request.headers.get(
        "X-Correlation-ID"
    )


def get_current_user_id(request: Request) -> int:
    """Get the forwarded user ID; the caller's customer id"""
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    return int(user_id)


def get_current_user_role(request: Request) -> Optional[str]:
    return getattr(request.state, "user_role", None)


def is_admin(user_role: Optional[str]) -> bool:
    return user_role == ADMIN_ROLE


def require_admin(
    user_id: int = Depends(get_current_user_id),
    user_role: Optional[str] = Depends(get_current_user_role),
) -> int:
    if not is_admin(user_role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required"
        )
    return user_id


# =====================================================
# SERVICE DEPENDENCIES
# =====================================================


def get_order_service(
    session: AsyncSession = Depends(get_async_session),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_notification_dispatcher),
    correlation_id: Optional[str] = Depends(get_correlation_id),
) -> OrderService:
    """Provide OrderService instance with database and event delivery"""
    return OrderService(session, dispatcher, correlation_id=correlation_id)


# =====================================================
# COMMON DEPENDENCY ALIASES
# =====================================================

CorrelationIdDep = Depends(get_correlation_id)
DatabaseDep = Depends(get_async_session)

CurrentUserIdDep = Depends(get_current_user_id)
CurrentUserRoleDep = Depends(get_current_user_role)
AdminUserDep = Depends(require_admin)

OrderServiceDep = Depends(get_order_service)
