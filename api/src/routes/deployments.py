from fastapi import APIRouter, Depends
from typing import List, Optional

from api.src.dependencies import get_orchestrator
from api.src.models.schemas import DeploymentCreate, DeploymentUpdate, TriggerRequest, TriggerResponse
from controller.src.models.pipeline import Deployment, Pipeline
from controller.src.services.orchestrator import Orchestrator

router = APIRouter(prefix="/deployments", tags=["deployments"])

@router.get("", response_model=List[Deployment])
async def list_deployments(
    limit: int = 20,
    offset: int = 0,
    status: Optional[str] = None,
    environment: Optional[str] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """List deployments, newest first."""
    return await orchestrator.list_deployments(
        status=status, environment=environment, limit=limit, offset=offset
    )

@router.post("", response_model=Deployment, status_code=201)
async def create_deployment(
    request: DeploymentCreate,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    deployment = Deployment(**request.model_dump())
    return await orchestrator.create_deployment(deployment)

@router.get("/{deployment_id}", response_model=Deployment)
async def get_deployment(deployment_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return await orchestrator.get_deployment(deployment_id)

@router.put("/{deployment_id}", response_model=Deployment)
async def update_deployment(
    deployment_id: str,
    request: DeploymentUpdate,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """Change a deployment's definition. Refused while a pipeline is running."""
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    return await orchestrator.update_deployment(deployment_id, changes)

@router.delete("/{deployment_id}")
async def delete_deployment(deployment_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Delete a deployment and its pipeline history."""
    await orchestrator.delete_deployment(deployment_id)
    return {"status": "deleted", "deployment_id": deployment_id}

@router.post("/{deployment_id}/trigger", response_model=TriggerResponse, status_code=202)
async def trigger_deployment(
    deployment_id: str,
    request: Optional[TriggerRequest] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """Start a new pipeline. Returns before the pipeline finishes."""
    pipeline_id = await orchestrator.trigger(
        deployment_id, request.triggered_by if request else TriggerRequest().triggered_by
    )
    return TriggerResponse(pipeline_id=pipeline_id)

@router.get("/{deployment_id}/pipelines", response_model=List[Pipeline])
async def list_deployment_pipelines(
    deployment_id: str,
    limit: int = 10,
    offset: int = 0,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """Pipeline history of a deployment, most recent first."""
    await orchestrator.get_deployment(deployment_id)
    return await orchestrator.list_for_deployment(deployment_id, limit=limit, offset=offset)
