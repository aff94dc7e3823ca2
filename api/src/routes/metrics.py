from fastapi import APIRouter, Depends, Query

from api.src.dependencies import get_orchestrator
from controller.src.models.metrics import DashboardMetrics
from controller.src.services.orchestrator import Orchestrator

router = APIRouter(prefix="/metrics", tags=["metrics"])

@router.get("/dashboard", response_model=DashboardMetrics)
async def get_dashboard_metrics(
    days: int = Query(7, ge=1, le=90),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """Deployment counts, pipeline success rate and recent activity."""
    return await orchestrator.dashboard_metrics(days=days)
