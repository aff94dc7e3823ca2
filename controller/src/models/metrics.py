from pydantic import BaseModel
from typing import Dict, List

from controller.src.models.pipeline import Pipeline

class MetricsSummary(BaseModel):
    total_deployments: int = 0
    active_deployments: int = 0
    completed_deployments: int = 0
    failed_deployments: int = 0
    success_rate: int = 0  # % of pipelines that completed

class ActivityDay(BaseModel):
    date: str
    deployments: int = 0
    successful: int = 0
    failed: int = 0

class DashboardMetrics(BaseModel):
    summary: MetricsSummary
    environment_counts: Dict[str, int] = {}
    recent_activity: List[ActivityDay] = []
    recent_pipelines: List[Pipeline] = []
