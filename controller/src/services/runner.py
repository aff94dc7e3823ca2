"""
Pipeline runner - drives a pipeline's steps and keeps pipeline, deployment
and subscribers in sync with every transition.
"""

import asyncio
import logging
import os
import shutil
from datetime import datetime
from typing import Any, Dict, Optional, Set

from controller.src.config import get_settings
from controller.src.errors import ConsistencyFault, InvalidState, StepExecutionFailure
from controller.src.models.pipeline import (
    Deployment,
    DeploymentStatus,
    Pipeline,
    PipelineStatus,
    PipelineStep,
    StepStatus,
)
from controller.src.services.broadcaster import (
    PIPELINE_CANCELLED,
    PIPELINE_COMPLETED,
    PIPELINE_FAILED,
    PIPELINE_STARTED,
    STEP_UPDATED,
)
from controller.src.services.executor import StepExecutor
from controller.src.services.resolver import (
    Eligibility,
    resolve_eligibility,
    transitive_dependents,
    unfinished_dependencies,
)

logger = logging.getLogger(__name__)

TERMINAL_EVENTS = {
    PipelineStatus.COMPLETED: PIPELINE_COMPLETED,
    PipelineStatus.FAILED: PIPELINE_FAILED,
    PipelineStatus.CANCELLED: PIPELINE_CANCELLED,
}

def pipeline_summary(pipeline: Pipeline) -> Dict:
    return {
        "pipeline_id": pipeline.id,
        "status": pipeline.status.value,
        "triggered_by": pipeline.triggered_by,
        "started_at": pipeline.started_at.isoformat() if pipeline.started_at else None,
        "finished_at": pipeline.finished_at.isoformat() if pipeline.finished_at else None,
    }

class PipelineRunner:
    """
    Executes pipelines as background tasks.

    Every transition mutates the pipeline and persists it under a
    per-pipeline lock, then broadcasts it before the next step is looked
    at. Terminal pipeline states are never overwritten.
    """

    def __init__(self, store, executor: StepExecutor, broadcaster, workspace_root: Optional[str] = None):
        self.store = store
        self.executor = executor
        self.broadcaster = broadcaster
        self.workspace_root = workspace_root or get_settings().workspace_dir
        self._locks: Dict[str, asyncio.Lock] = {}
        self._active: Dict[str, Pipeline] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def _lock(self, pipeline_id: str) -> asyncio.Lock:
        return self._locks.setdefault(pipeline_id, asyncio.Lock())

    def is_active(self, pipeline_id: str) -> bool:
        return pipeline_id in self._tasks

    def workspace(self, pipeline_id: str) -> str:
        """Checkout directory owned by a single pipeline."""
        return os.path.join(self.workspace_root, pipeline_id)

    def step_context(self, pipeline: Pipeline) -> Dict[str, Any]:
        failed = any(step.status == StepStatus.FAILED for step in pipeline.steps)
        return {
            "pipeline_id": pipeline.id,
            "workspace": self.workspace(pipeline.id),
            "pipeline_status": "failed" if failed else "succeeded",
        }

    async def remove_workspace(self, pipeline_id: str):
        path = self.workspace(pipeline_id)
        if not os.path.exists(path):
            return
        try:
            await asyncio.to_thread(shutil.rmtree, path)
            logger.info(f"Removed workspace {path}")
        except OSError as e:
            logger.warning(f"Could not remove workspace {path}: {e}")

    async def _emit(self, deployment_id: str, event_kind: str, payload: Dict):
        try:
            await self.broadcaster.emit(deployment_id, event_kind, payload)
        except Exception:
            # Subscribers catch up from the stored pipeline
            logger.exception(f"Failed to broadcast {event_kind} for deployment {deployment_id}")

    async def _emit_step(self, pipeline: Pipeline, step: PipelineStep):
        await self._emit(pipeline.deployment_id, STEP_UPDATED, {
            "pipeline_id": pipeline.id,
            "step": step.model_dump(mode="json"),
        })

    async def _writable(self, pipeline: Pipeline) -> bool:
        """
        False once the pipeline is terminal, either in memory or in the
        store (e.g. cancelled by another process). Call under the lock.
        """
        if pipeline.is_terminal:
            return False

        stored = await self.store.load_pipeline(pipeline.id)
        if stored is not None and stored.is_terminal:
            logger.warning(
                f"Pipeline {pipeline.id} became {stored.status.value} outside this runner"
            )
            pipeline.status = stored.status
            pipeline.finished_at = stored.finished_at
            pipeline.steps = stored.steps
            return False

        return True

    async def start(self, pipeline: Pipeline, deployment: Deployment):
        """Move a pending pipeline and its deployment to running."""
        async with self._lock(pipeline.id):
            now = datetime.utcnow()
            pipeline.status = PipelineStatus.RUNNING
            pipeline.started_at = now
            self._active[pipeline.id] = pipeline
            await self.store.save_pipeline(pipeline)

            deployment.status = DeploymentStatus.RUNNING
            deployment.updated_at = now
            await self.store.save_deployment(deployment)

            await self._emit(pipeline.deployment_id, PIPELINE_STARTED, pipeline_summary(pipeline))

        logger.info(
            f"Started pipeline {pipeline.id} for deployment {deployment.id} "
            f"with {len(pipeline.steps)} steps"
        )

    def launch(self, pipeline: Pipeline) -> asyncio.Task:
        """Run the pipeline in the background."""
        task = asyncio.create_task(self.run(pipeline), name=f"pipeline-{pipeline.id}")
        self._active[pipeline.id] = pipeline
        self._tasks[pipeline.id] = task
        task.add_done_callback(lambda _: self._forget(pipeline.id))
        return task

    def _forget(self, pipeline_id: str):
        self._tasks.pop(pipeline_id, None)
        self._active.pop(pipeline_id, None)
        self._locks.pop(pipeline_id, None)

    async def join(self, pipeline_id: str):
        """Wait for a launched pipeline to stop."""
        task = self._tasks.get(pipeline_id)
        if task is not None:
            await task

    async def shutdown(self):
        """Wait for every running pipeline to stop."""
        tasks = list(self._tasks.values())
        if tasks:
            logger.info(f"Waiting for {len(tasks)} running pipelines")
            await asyncio.gather(*tasks, return_exceptions=True)

    async def run(self, pipeline: Pipeline):
        try:
            await self._run_steps(pipeline)
        except Exception as e:
            logger.exception(f"Pipeline {pipeline.id} execution error: {e}")
            await self._abort(pipeline, str(e) or type(e).__name__)
        finally:
            # In-flight steps have returned by now, even after a cancel
            await self.remove_workspace(pipeline.id)

    async def _run_steps(self, pipeline: Pipeline):
        logger.info(f"Starting pipeline execution: {pipeline.id}")
        failed_step: Optional[PipelineStep] = None
        failed_dependents: Set[str] = set()

        for step in pipeline.steps:
            if pipeline.is_terminal:
                logger.info(f"Pipeline {pipeline.id} is {pipeline.status.value}, stopping")
                return

            if step.status != StepStatus.PENDING:
                continue

            if failed_step is not None:
                # No executor runs after a failure
                if step.id in failed_dependents:
                    reason = f"Skipped: depends on failed step '{failed_step.name}'"
                else:
                    reason = f"Skipped: pipeline failed at step '{failed_step.name}'"
                if not await self._skip(pipeline, step, reason):
                    return
                continue

            eligibility = resolve_eligibility(step, pipeline.steps)

            if eligibility == Eligibility.BLOCKED:
                fault = ConsistencyFault(
                    pipeline.id, step.id, unfinished_dependencies(step, pipeline.steps)
                )
                logger.error(f"{fault}; skipping step")
                if not await self._skip(pipeline, step, "Skipped: dependencies did not finish"):
                    return
                continue

            if eligibility == Eligibility.SKIP:
                if not await self._skip(pipeline, step, "Skipped: a dependency did not complete"):
                    return
                continue

            succeeded = await self._execute(pipeline, step)
            if succeeded is None:
                return
            if not succeeded:
                failed_step = step
                failed_dependents = transitive_dependents(step.id, pipeline.steps)

        await self._finish(pipeline)

    async def _skip(self, pipeline: Pipeline, step: PipelineStep, reason: str) -> bool:
        async with self._lock(pipeline.id):
            if not await self._writable(pipeline):
                return False
            step.status = StepStatus.SKIPPED
            step.logs.append(reason)
            await self.store.save_pipeline(pipeline)
            await self._emit_step(pipeline, step)

        logger.info(f"Step {step.name} of pipeline {pipeline.id} skipped")
        return True

    async def _execute(self, pipeline: Pipeline, step: PipelineStep) -> Optional[bool]:
        """
        Run one step. Returns True/False for success/failure, or None if the
        pipeline turned terminal and the step result was discarded.
        """
        async with self._lock(pipeline.id):
            if not await self._writable(pipeline):
                return None
            step.status = StepStatus.RUNNING
            step.started_at = datetime.utcnow()
            await self.store.save_pipeline(pipeline)
            await self._emit_step(pipeline, step)

        logger.info(f"Executing step {step.name} ({step.type.value}) of pipeline {pipeline.id}")

        try:
            outcome = await self.executor.execute(step, self.step_context(pipeline))
            logs, succeeded = outcome.logs, outcome.ok
        except StepExecutionFailure as e:
            logs, succeeded = e.logs + [f"Step failed: {e}"], False

        async with self._lock(pipeline.id):
            if not await self._writable(pipeline):
                logger.info(
                    f"Discarding result of step {step.name}: pipeline {pipeline.id} "
                    f"is {pipeline.status.value}"
                )
                return None
            step.logs.extend(logs)
            step.status = StepStatus.COMPLETED if succeeded else StepStatus.FAILED
            step.finished_at = datetime.utcnow()
            await self.store.save_pipeline(pipeline)
            await self._emit_step(pipeline, step)

        if succeeded:
            logger.info(f"Step {step.name} of pipeline {pipeline.id} completed")
        else:
            logger.error(f"Step {step.name} of pipeline {pipeline.id} failed")
        return succeeded

    async def _finish(
        self,
        pipeline: Pipeline,
        status: Optional[PipelineStatus] = None,
        interrupted: Optional[str] = None,
    ):
        """Set the terminal status and mirror it on the deployment."""
        async with self._lock(pipeline.id):
            if not await self._writable(pipeline):
                return

            if status is None:
                failed = any(step.status == StepStatus.FAILED for step in pipeline.steps)
                status = PipelineStatus.FAILED if failed else PipelineStatus.COMPLETED

            now = datetime.utcnow()
            for step in pipeline.steps:
                if step.status == StepStatus.RUNNING:
                    step.status = StepStatus.FAILED
                    step.finished_at = now
                    step.logs.append(f"Step interrupted: {interrupted}")

            pipeline.status = status
            pipeline.finished_at = now
            await self.store.save_pipeline(pipeline)

            deployment = await self.store.load_deployment(pipeline.deployment_id)
            if deployment is None:
                logger.warning(f"Deployment {pipeline.deployment_id} no longer exists")
            else:
                if status == PipelineStatus.COMPLETED:
                    deployment.status = DeploymentStatus.COMPLETED
                    deployment.last_deployed_at = now
                else:
                    deployment.status = DeploymentStatus.FAILED
                deployment.updated_at = now
                await self.store.save_deployment(deployment)

            await self._emit(pipeline.deployment_id, TERMINAL_EVENTS[status], pipeline_summary(pipeline))

        logger.info(f"Pipeline {pipeline.id} finished with status: {status.value}")

    async def _abort(self, pipeline: Pipeline, error: str):
        try:
            await self._finish(pipeline, PipelineStatus.FAILED, interrupted=error)
        except Exception:
            logger.exception(f"Failed to mark pipeline {pipeline.id} as failed")

    async def cancel(self, pipeline: Pipeline, actor: str) -> Pipeline:
        """
        Cancel a pending or running pipeline. An in-flight step is not
        interrupted; its result is discarded when it returns.
        """
        target = self._active.get(pipeline.id, pipeline)
        cancelled_steps = []

        async with self._lock(target.id):
            if not await self._writable(target):
                raise InvalidState(f"Pipeline {target.id} is already {target.status.value}")

            now = datetime.utcnow()
            target.status = PipelineStatus.CANCELLED
            target.finished_at = now

            for step in target.steps:
                if step.status == StepStatus.RUNNING:
                    step.status = StepStatus.CANCELLED
                    step.finished_at = now
                    step.logs.append(f"Step cancelled by {actor}")
                    cancelled_steps.append(step)
                elif step.status == StepStatus.PENDING:
                    step.status = StepStatus.CANCELLED
                    cancelled_steps.append(step)

            await self.store.save_pipeline(target)

            deployment = await self.store.load_deployment(target.deployment_id)
            if deployment is not None and deployment.status == DeploymentStatus.RUNNING:
                deployment.status = DeploymentStatus.CANCELLED
                deployment.updated_at = now
                await self.store.save_deployment(deployment)

            for step in cancelled_steps:
                await self._emit_step(target, step)
            await self._emit(target.deployment_id, PIPELINE_CANCELLED, pipeline_summary(target))

        if not self.is_active(target.id):
            self._locks.pop(target.id, None)

        logger.info(f"Pipeline {target.id} cancelled by {actor}")
        return target
