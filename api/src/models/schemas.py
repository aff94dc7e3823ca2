from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from controller.src.models.pipeline import (
    DeploymentConfig,
    DeploymentType,
    PipelineStatus,
    StepStatus,
    StepType,
)

class DeploymentCreate(BaseModel):
    name: str
    description: Optional[str] = None
    repository_url: str
    branch: str = "main"
    target_project: str
    target_cluster: str
    target_namespace: str
    environment: str = "dev"
    deployment_type: DeploymentType
    config: DeploymentConfig = DeploymentConfig()
    created_by: Optional[str] = None

class DeploymentUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    repository_url: Optional[str] = None
    branch: Optional[str] = None
    target_project: Optional[str] = None
    target_cluster: Optional[str] = None
    target_namespace: Optional[str] = None
    environment: Optional[str] = None
    deployment_type: Optional[DeploymentType] = None
    config: Optional[DeploymentConfig] = None

class TriggerRequest(BaseModel):
    triggered_by: str = "api"

class TriggerResponse(BaseModel):
    pipeline_id: str
    message: str = "Deployment triggered successfully"

class CancelRequest(BaseModel):
    cancelled_by: str = "api"

class StepLogs(BaseModel):
    name: str
    type: StepType
    status: StepStatus
    logs: List[str] = []
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

class PipelineLogsResponse(BaseModel):
    pipeline_id: str
    status: PipelineStatus
    steps: List[StepLogs] = []
