"""
Health check endpoints
"""

import asyncio
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from burnthread.dependencies.state import get_coordinator
from burnthread.services.coordinator import ThreadCoordinator
from burnthread.services.telemetry import get_counters_snapshot

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic liveness probe - returns healthy if the service is running"""
    return {"status": "healthy"}


@router.get("/health/store")
async def store_health_check(coordinator: ThreadCoordinator = Depends(get_coordinator)):
    """Which store backend is serving requests, and whether it is the fallback"""
    store = coordinator.store
    return {
        "status": "healthy",
        "store": store.backend_name,
        "degraded": bool(getattr(store, "degraded", False)),
        "connections": coordinator.manager.get_stats(),
        "counters": get_counters_snapshot(),
    }


@router.get("/health/ready")
async def readiness_check(coordinator: ThreadCoordinator = Depends(get_coordinator)):
    """
    Kubernetes-style readiness probe.
    Returns 200 if the store answers, 503 otherwise.
    """
    checks = {}
    all_healthy = True

    try:
        await asyncio.wait_for(coordinator.store.ping(), timeout=5.0)
        checks["store"] = "healthy"
    except asyncio.TimeoutError:
        checks["store"] = "timeout"
        all_healthy = False
    except Exception:
        checks["store"] = "unavailable"
        all_healthy = False

    response_data = {
        "status": "healthy" if all_healthy else "unhealthy",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

    if all_healthy:
        return response_data
    else:
        return JSONResponse(status_code=503, content=response_data)
