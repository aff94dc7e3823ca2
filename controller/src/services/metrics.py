"""
Dashboard metrics built from store aggregates.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from controller.src.models.metrics import ActivityDay, DashboardMetrics, MetricsSummary
from controller.src.models.pipeline import DeploymentStatus, PipelineStatus

def success_rate(pipeline_counts: Dict[str, int]) -> int:
    total = sum(pipeline_counts.values())
    if not total:
        return 0
    return round(pipeline_counts.get(PipelineStatus.COMPLETED.value, 0) * 100 / total)

def daily_activity(activity: List[Tuple[datetime, str]]) -> List[ActivityDay]:
    """Group (created_at, status) pairs per calendar day, oldest first."""
    days: Dict[str, ActivityDay] = {}

    for created_at, status in activity:
        date = created_at.strftime("%Y-%m-%d")
        day = days.setdefault(date, ActivityDay(date=date))
        day.deployments += 1
        if status == PipelineStatus.COMPLETED.value:
            day.successful += 1
        elif status == PipelineStatus.FAILED.value:
            day.failed += 1

    return [days[date] for date in sorted(days)]

async def dashboard_metrics(store, days: int = 7, now: Optional[datetime] = None) -> DashboardMetrics:
    now = now or datetime.utcnow()
    by_status = await store.count_deployments_by("status")
    pipeline_counts = await store.count_pipelines_by_status()

    summary = MetricsSummary(
        total_deployments=sum(by_status.values()),
        active_deployments=by_status.get(DeploymentStatus.RUNNING.value, 0),
        completed_deployments=by_status.get(DeploymentStatus.COMPLETED.value, 0),
        failed_deployments=by_status.get(DeploymentStatus.FAILED.value, 0),
        success_rate=success_rate(pipeline_counts),
    )

    return DashboardMetrics(
        summary=summary,
        environment_counts=await store.count_deployments_by("environment"),
        recent_activity=daily_activity(await store.pipeline_activity(now - timedelta(days=days))),
        recent_pipelines=await store.list_recent_pipelines(limit=5),
    )
