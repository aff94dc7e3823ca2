from fastapi import APIRouter, Depends
from typing import Optional

from api.src.dependencies import get_orchestrator
from api.src.models.schemas import CancelRequest, PipelineLogsResponse, StepLogs
from controller.src.models.pipeline import Pipeline
from controller.src.services.orchestrator import Orchestrator

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

@router.get("/{pipeline_id}", response_model=Pipeline)
async def get_pipeline(pipeline_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Get a specific pipeline with all of its steps."""
    return await orchestrator.get(pipeline_id)

@router.get("/{pipeline_id}/logs", response_model=PipelineLogsResponse)
async def get_pipeline_logs(pipeline_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Get logs for all steps in a pipeline."""
    pipeline = await orchestrator.get(pipeline_id)

    return PipelineLogsResponse(
        pipeline_id=pipeline.id,
        status=pipeline.status,
        steps=[
            StepLogs(
                name=step.name,
                type=step.type,
                status=step.status,
                logs=step.logs,
                started_at=step.started_at,
                finished_at=step.finished_at,
            )
            for step in pipeline.steps
        ],
    )

@router.post("/{pipeline_id}/cancel", response_model=Pipeline)
async def cancel_pipeline(
    pipeline_id: str,
    request: Optional[CancelRequest] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    actor = request.cancelled_by if request else CancelRequest().cancelled_by
    return await orchestrator.cancel(pipeline_id, actor)
