from fastapi import APIRouter, Depends

from api.src.dependencies import get_orchestrator
from controller.src.services.orchestrator import Orchestrator

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "launchpad-api"}

@router.get("/health/db")
async def db_health_check(orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        await orchestrator.store.ping()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {"status": "unhealthy", "database": str(e)}

@router.get("/health/redis")
async def redis_health_check(orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        await orchestrator.broadcaster.ping()
        return {"status": "healthy", "redis": "connected"}
    except Exception as e:
        return {"status": "unhealthy", "redis": str(e)}

@router.get("/health/all")
async def full_health_check(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Combined health check for all services."""
    health = {
        "api": "healthy",
        "database": "unknown",
        "redis": "unknown",
    }

    # Check database
    try:
        await orchestrator.store.ping()
        health["database"] = "healthy"
    except Exception as e:
        health["database"] = f"unhealthy: {e}"

    # Check Redis
    try:
        await orchestrator.broadcaster.ping()
        health["redis"] = "healthy"
    except Exception as e:
        health["redis"] = f"unhealthy: {e}"

    overall = "healthy" if all(v == "healthy" for v in health.values()) else "degraded"

    return {"status": overall, "services": health}
