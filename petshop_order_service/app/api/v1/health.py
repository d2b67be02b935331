import time
from typing import Any, Dict

from fastapi import APIRouter

from ...core.events import get_dispatcher, health_check_events
from ...core.settings import get_settings

router = APIRouter()

_started_at = time.time()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Liveness plus event transport state; a Kafka outage only degrades the service"""
    settings = get_settings()
    kafka_healthy = await health_check_events()
    dispatcher = get_dispatcher()

    return {
        "service": settings.SERVICE_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy" if kafka_healthy or not settings.KAFKA_ENABLED else "degraded",
        "checks": {
            "events": {
                "kafka_enabled": settings.KAFKA_ENABLED,
                "kafka_connected": kafka_healthy,
                "pending_deliveries": dispatcher.pending_count if dispatcher else 0,
                "failed_deliveries": len(dispatcher.failures) if dispatcher else 0,
            },
        },
        "uptime_seconds": round(time.time() - _started_at, 2),
        "timestamp": time.time(),
    }
