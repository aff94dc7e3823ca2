from api.src.models.schemas import (
    DeploymentCreate,
    DeploymentUpdate,
    TriggerRequest,
    TriggerResponse,
    CancelRequest,
    StepLogs,
    PipelineLogsResponse,
)

__all__ = [
    "DeploymentCreate",
    "DeploymentUpdate",
    "TriggerRequest",
    "TriggerResponse",
    "CancelRequest",
    "StepLogs",
    "PipelineLogsResponse",
]
