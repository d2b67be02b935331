"""
Identity middleware for Order Service.

The API gateway validates credentials and forwards the caller's identity in
``X-User-ID`` / ``X-User-Role`` headers. This middleware only copies that
identity and the correlation ID onto ``request.state``; endpoints that need an
authenticated caller enforce it through ``api.deps``.
"""

import uuid
from typing import Any, Awaitable, Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ...utils.logging import setup_order_logging

logger = setup_order_logging("order_service_identity")

USER_ID_HEADER = "X-User-ID"
USER_ROLE_HEADER = "X-User-Role"
CORRELATION_ID_HEADER = "X-Correlation-ID"


class OrderServiceIdentityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: Any, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/health", "/docs", "/openapi.json"]

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = (
            request.headers.get(CORRELATION_ID_HEADER)
            or request.headers.get("x-request-id")
            or str(uuid.uuid4())
        )
        request.state.correlation_id = correlation_id

        if not self._should_skip(request.url.path):
            user_id = self._parse_user_id(request.headers.get(USER_ID_HEADER))
            user_role = (request.headers.get(USER_ROLE_HEADER) or "customer").lower()
            request.state.user_id = user_id
            request.state.user_role = user_role if user_id is not None else None

            if user_id is None:
                logger.debug(
                    "Request without forwarded identity",
                    extra={
                        "correlation_id": correlation_id,
                        "path": request.url.path,
                        "method": request.method,
                    },
                )

        response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response

    def _should_skip(self, path: str) -> bool:
        return any(path.startswith(excluded) for excluded in self.exclude_paths)

    @staticmethod
    def _parse_user_id(raw: Optional[str]) -> Optional[int]:
        if raw is None or not raw.strip().isdigit():
            return None
        return int(raw.strip())


def setup_order_identity_middleware(app: FastAPI) -> None:
    """Convenience function to install identity propagation"""
    app.add_middleware(OrderServiceIdentityMiddleware)
    logger.info(
        "Order Service identity middleware configured",
        extra={"service": "order_service", "event_type": "identity_middleware_setup"},
    )
