"""
Orchestrator facade - public entry points for triggering, inspecting and
cancelling deployment pipelines.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from controller.src.errors import Conflict, InvalidState, NotFound
from controller.src.models.metrics import DashboardMetrics
from controller.src.models.pipeline import (
    Deployment,
    DeploymentStatus,
    Pipeline,
)
from controller.src.services.broadcaster import RedisBroadcaster
from controller.src.services.builder import build_pipeline_steps
from controller.src.services.executor import StepExecutor
from controller.src.services.metrics import dashboard_metrics
from controller.src.services.runner import PipelineRunner
from controller.src.services.store import PipelineStore

logger = logging.getLogger(__name__)

class Orchestrator:
    def __init__(
        self,
        store,
        broadcaster,
        executor: Optional[StepExecutor] = None,
        workspace_root: Optional[str] = None,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.runner = PipelineRunner(store, executor or StepExecutor(), broadcaster, workspace_root)
        self._deployment_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _deployment_lock(self, deployment_id: str):
        """Serialize check-then-act per deployment; the lock is dropped once unused."""
        lock = self._deployment_locks.setdefault(deployment_id, asyncio.Lock())
        self._lock_users[deployment_id] = self._lock_users.get(deployment_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[deployment_id] -= 1
            if not self._lock_users[deployment_id]:
                del self._lock_users[deployment_id]
                del self._deployment_locks[deployment_id]

    async def _require_deployment(self, deployment_id: str) -> Deployment:
        deployment = await self.store.load_deployment(deployment_id)
        if deployment is None:
            raise NotFound("Deployment", deployment_id)
        return deployment

    async def trigger(self, deployment_id: str, actor: str) -> str:
        """
        Build and start a pipeline for the deployment.
        Returns the pipeline id as soon as the pipeline is persisted;
        execution continues in the background.
        """
        # Check-then-act must not interleave with another trigger
        async with self._deployment_lock(deployment_id):
            deployment = await self._require_deployment(deployment_id)

            if deployment.status == DeploymentStatus.RUNNING:
                raise Conflict(f"Deployment {deployment_id} is already running")

            pipeline = Pipeline(
                deployment_id=deployment.id,
                steps=build_pipeline_steps(deployment),
                triggered_by=actor,
            )
            await self.store.save_pipeline(pipeline)
            await self.runner.start(pipeline, deployment)

        self.runner.launch(pipeline)
        logger.info(f"Deployment {deployment.name} triggered by {actor}: pipeline {pipeline.id}")
        return pipeline.id

    async def get(self, pipeline_id: str) -> Pipeline:
        pipeline = await self.store.load_pipeline(pipeline_id)
        if pipeline is None:
            raise NotFound("Pipeline", pipeline_id)
        return pipeline

    async def list_for_deployment(
        self,
        deployment_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Pipeline]:
        """Pipelines of a deployment, most recent first."""
        return await self.store.list_pipelines(deployment_id, limit=limit, offset=offset)

    async def cancel(self, pipeline_id: str, actor: str) -> Pipeline:
        pipeline = await self.get(pipeline_id)
        if pipeline.is_terminal:
            raise InvalidState(f"Cannot cancel pipeline that is already {pipeline.status.value}")
        return await self.runner.cancel(pipeline, actor)

    async def wait(self, pipeline_id: str) -> Pipeline:
        """Wait for a pipeline started by this process and return its final state."""
        await self.runner.join(pipeline_id)
        return await self.get(pipeline_id)

    # Deployment administration

    async def create_deployment(self, deployment: Deployment) -> Deployment:
        deployment.status = DeploymentStatus.PENDING
        await self.store.save_deployment(deployment)
        logger.info(f"Deployment created: {deployment.name} by {deployment.created_by}")
        return deployment

    async def get_deployment(self, deployment_id: str) -> Deployment:
        return await self._require_deployment(deployment_id)

    async def list_deployments(self, **filters) -> List[Deployment]:
        return await self.store.list_deployments(**filters)

    async def delete_deployment(self, deployment_id: str):
        """Delete a deployment together with its pipeline history."""
        async with self._deployment_lock(deployment_id):
            deployment = await self._require_deployment(deployment_id)
            if deployment.status == DeploymentStatus.RUNNING:
                raise Conflict(f"Deployment {deployment_id} has a running pipeline")
            await self.store.delete_deployment(deployment_id)
        logger.info(f"Deployment deleted: {deployment_id}")

    async def update_deployment(self, deployment_id: str, changes: Dict[str, Any]) -> Deployment:
        """Apply field changes to a deployment that is not running."""
        async with self._deployment_lock(deployment_id):
            deployment = await self._require_deployment(deployment_id)
            if deployment.status == DeploymentStatus.RUNNING:
                raise Conflict(f"Deployment {deployment_id} has a running pipeline")

            updated = Deployment.model_validate({
                **deployment.model_dump(),
                **changes,
                "id": deployment.id,
                "status": deployment.status,
                "created_at": deployment.created_at,
                "updated_at": datetime.utcnow(),
            })
            await self.store.save_deployment(updated)

        logger.info(f"Deployment updated: {updated.name} ({', '.join(sorted(changes))})")
        return updated

    async def dashboard_metrics(self, days: int = 7) -> DashboardMetrics:
        return await dashboard_metrics(self.store, days=days)

    async def shutdown(self):
        await self.runner.shutdown()
        await self.store.close()
        await self.broadcaster.close()

def create_orchestrator(settings) -> Orchestrator:
    """Wire an orchestrator to the configured database and Redis."""
    store = PipelineStore(settings.database_url)
    broadcaster = RedisBroadcaster(settings.redis_url, settings.event_channel_prefix)
    return Orchestrator(store, broadcaster, workspace_root=settings.workspace_dir)
