"""
Persist deployments and pipelines in the database.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select, delete, func, text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from controller.src.models.db import Base, DeploymentRecord, PipelineRecord
from controller.src.models.pipeline import Deployment, Pipeline, PipelineStep

logger = logging.getLogger(__name__)

def async_database_url(database_url: str) -> str:
    """Convert postgresql:// to postgresql+asyncpg://"""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url

def _deployment_to_record(deployment: Deployment) -> DeploymentRecord:
    return DeploymentRecord(
        id=deployment.id,
        name=deployment.name,
        description=deployment.description,
        repository_url=deployment.repository_url,
        branch=deployment.branch,
        target_project=deployment.target_project,
        target_cluster=deployment.target_cluster,
        target_namespace=deployment.target_namespace,
        environment=deployment.environment,
        deployment_type=deployment.deployment_type.value,
        config=deployment.config.model_dump(mode="json", exclude_none=True),
        status=deployment.status.value,
        created_by=deployment.created_by,
        last_deployed_at=deployment.last_deployed_at,
        created_at=deployment.created_at,
        updated_at=deployment.updated_at,
    )

def _record_to_deployment(record: DeploymentRecord) -> Deployment:
    return Deployment(
        id=record.id,
        name=record.name,
        description=record.description,
        repository_url=record.repository_url,
        branch=record.branch,
        target_project=record.target_project,
        target_cluster=record.target_cluster,
        target_namespace=record.target_namespace,
        environment=record.environment,
        deployment_type=record.deployment_type,
        config=record.config or {},
        status=record.status,
        created_by=record.created_by,
        last_deployed_at=record.last_deployed_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )

def _pipeline_to_record(pipeline: Pipeline) -> PipelineRecord:
    return PipelineRecord(
        id=pipeline.id,
        deployment_id=pipeline.deployment_id,
        status=pipeline.status.value,
        triggered_by=pipeline.triggered_by,
        steps=[step.model_dump(mode="json") for step in pipeline.steps],
        started_at=pipeline.started_at,
        finished_at=pipeline.finished_at,
        created_at=pipeline.created_at,
    )

def _record_to_pipeline(record: PipelineRecord) -> Pipeline:
    return Pipeline(
        id=record.id,
        deployment_id=record.deployment_id,
        status=record.status,
        triggered_by=record.triggered_by,
        steps=[PipelineStep.model_validate(step) for step in record.steps or []],
        started_at=record.started_at,
        finished_at=record.finished_at,
        created_at=record.created_at,
    )

class PipelineStore:
    """
    Storage collaborator for the orchestrator.
    Every call runs in its own transaction.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = create_async_engine(async_database_url(database_url), echo=echo)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init_schema(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        await self.engine.dispose()

    async def ping(self):
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def load_deployment(self, deployment_id: str) -> Optional[Deployment]:
        async with self.session_factory() as session:
            record = await session.get(DeploymentRecord, deployment_id)
            return _record_to_deployment(record) if record else None

    async def save_deployment(self, deployment: Deployment):
        async with self.session_factory() as session:
            await session.merge(_deployment_to_record(deployment))
            await session.commit()
        logger.debug(f"Saved deployment {deployment.id} ({deployment.status.value})")

    async def list_deployments(
        self,
        status: Optional[str] = None,
        environment: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Deployment]:
        query = select(DeploymentRecord).order_by(DeploymentRecord.created_at.desc())

        if status:
            query = query.where(DeploymentRecord.status == status)
        if environment:
            query = query.where(DeploymentRecord.environment == environment)

        query = query.limit(limit).offset(offset)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [_record_to_deployment(r) for r in result.scalars().all()]

    async def delete_deployment(self, deployment_id: str) -> bool:
        """Delete a deployment and all of its pipelines."""
        async with self.session_factory() as session:
            record = await session.get(DeploymentRecord, deployment_id)
            if record is None:
                return False

            await session.execute(
                delete(PipelineRecord).where(PipelineRecord.deployment_id == deployment_id)
            )
            await session.delete(record)
            await session.commit()

        logger.info(f"Deleted deployment {deployment_id} and its pipelines")
        return True

    async def save_pipeline(self, pipeline: Pipeline):
        async with self.session_factory() as session:
            await session.merge(_pipeline_to_record(pipeline))
            await session.commit()
        logger.debug(f"Saved pipeline {pipeline.id} ({pipeline.status.value})")

    async def load_pipeline(self, pipeline_id: str) -> Optional[Pipeline]:
        async with self.session_factory() as session:
            record = await session.get(PipelineRecord, pipeline_id)
            return _record_to_pipeline(record) if record else None

    async def list_pipelines(
        self,
        deployment_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Pipeline]:
        """List pipelines for a deployment, most recent first."""
        query = (
            select(PipelineRecord)
            .where(PipelineRecord.deployment_id == deployment_id)
            .order_by(PipelineRecord.created_at.desc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [_record_to_pipeline(r) for r in result.scalars().all()]

    async def list_recent_pipelines(self, limit: int = 5) -> List[Pipeline]:
        """Most recent pipelines across all deployments."""
        query = select(PipelineRecord).order_by(PipelineRecord.created_at.desc()).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [_record_to_pipeline(r) for r in result.scalars().all()]

    # Aggregates for the dashboard

    async def count_deployments_by(self, field: str) -> Dict[str, int]:
        """Deployment counts grouped by 'status' or 'environment'."""
        if field not in ("status", "environment"):
            raise ValueError(f"Cannot group deployments by {field}")

        column = getattr(DeploymentRecord, field)
        query = select(column, func.count(DeploymentRecord.id)).group_by(column)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return {key: count for key, count in result.all()}

    async def count_pipelines_by_status(self) -> Dict[str, int]:
        query = select(PipelineRecord.status, func.count(PipelineRecord.id)).group_by(PipelineRecord.status)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return {status: count for status, count in result.all()}

    async def pipeline_activity(self, since: datetime) -> List[Tuple[datetime, str]]:
        """(created_at, status) of every pipeline created since the given time."""
        query = (
            select(PipelineRecord.created_at, PipelineRecord.status)
            .where(PipelineRecord.created_at >= since)
            .order_by(PipelineRecord.created_at)
        )

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [(created_at, status) for created_at, status in result.all()]
