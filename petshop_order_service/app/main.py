import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.health import router as health_router
from .api.v1.inventory import router as inventory_router
from .api.v1.orders import router as orders_router
from .core.database import get_database_manager
from .core.events import close_events, init_events
from .core.settings import get_settings
from .middleware.auth import setup_order_identity_middleware
from .middleware.error import setup_order_error_handling
from .utils.logging import setup_order_logging as setup_logging

settings = get_settings()

environment = settings.ENVIRONMENT.lower()
enable_file_logging = environment in ["production", "staging"]

logger = setup_logging(
    "order_service",
    log_level=settings.LOG_LEVEL,
    enable_file_logging=enable_file_logging,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    startup_start = time.time()
    database_manager = get_database_manager()

    try:
        logger.info(
            "Starting order service initialization",
            extra={
                "environment": environment,
                "debug_mode": settings.DEBUG,
                "file_logging_enabled": enable_file_logging,
                "service_version": settings.APP_VERSION,
            },
        )

        db_start = time.time()
        await database_manager.create_tables()
        db_duration = int((time.time() - db_start) * 1000)
        logger.info(
            "Database initialization completed", extra={"duration_ms": db_duration}
        )

        event_start = time.time()
        await init_events()
        event_duration = int((time.time() - event_start) * 1000)
        logger.info("Event publisher started", extra={"duration_ms": event_duration})

        logger.info(
            "Order service started successfully",
            extra={
                "total_startup_duration_ms": int((time.time() - startup_start) * 1000),
                "database_init_ms": db_duration,
                "event_publisher_init_ms": event_duration,
            },
        )

    except Exception as e:
        logger.error(
            "Failed to start order service",
            exc_info=True,
            extra={
                "startup_duration_ms": int((time.time() - startup_start) * 1000),
                "error_type": type(e).__name__,
            },
        )
        raise

    yield

    shutdown_start = time.time()
    try:
        logger.info("Starting order service shutdown")
        await close_events()
        await database_manager.close()
        logger.info(
            "Order service shutdown completed",
            extra={"shutdown_duration_ms": int((time.time() - shutdown_start) * 1000)},
        )

    except Exception as e:
        logger.error(
            "Error during order service shutdown",
            exc_info=True,
            extra={
                "shutdown_duration_ms": int((time.time() - shutdown_start) * 1000),
                "error_type": type(e).__name__,
            },
        )
        raise


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # 1. CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )

    # 2. Identity forwarded by the gateway
    setup_order_identity_middleware(app)

    # 3. Error handling
    setup_order_error_handling(app)

    routers_info: List[Dict[str, Any]] = []

    app.include_router(health_router, tags=["Health"])
    routers_info.append({"router": "health", "prefix": "", "tags": ["Health"]})

    app.include_router(orders_router, prefix="/api/v1", tags=["Order Management"])
    routers_info.append(
        {"router": "orders", "prefix": "/api/v1", "tags": ["Order Management"]}
    )

    app.include_router(inventory_router, prefix="/api/v1", tags=["Inventory"])
    routers_info.append({"router": "inventory", "prefix": "/api/v1", "tags": ["Inventory"]})

    logger.info(
        "API routes configured",
        extra={"total_routers": len(routers_info), "routers": routers_info},
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(  # type: ignore
        "petshop_order_service.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
    )
