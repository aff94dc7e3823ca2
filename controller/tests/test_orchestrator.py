"""Tests for the orchestrator entry points."""

import asyncio
from datetime import datetime, timedelta

import pytest

from controller.src.errors import Conflict, InvalidState, NotFound, PipelineBuildError
from controller.src.models.pipeline import (
    DeploymentStatus,
    Pipeline,
    PipelineStatus,
    StepStatus,
    StepType,
)
from controller.src.services.builder import build_pipeline_steps
from controller.tests.fakes import make_deployment


@pytest.mark.asyncio
async def test_trigger_unknown_deployment(orchestrator):
    with pytest.raises(NotFound, match="Deployment missing not found"):
        await orchestrator.trigger("missing", "alice")

@pytest.mark.asyncio
async def test_trigger_running_deployment_conflicts(orchestrator, store):
    deployment = store.add_deployment(make_deployment(status=DeploymentStatus.RUNNING))

    with pytest.raises(Conflict):
        await orchestrator.trigger(deployment.id, "alice")
    assert store.pipelines == {}

@pytest.mark.asyncio
async def test_trigger_malformed_deployment(orchestrator, store):
    deployment = store.add_deployment(make_deployment(repository_url=""))

    with pytest.raises(PipelineBuildError):
        await orchestrator.trigger(deployment.id, "alice")
    assert store.pipelines == {}
    assert (await store.load_deployment(deployment.id)).status == DeploymentStatus.PENDING

@pytest.mark.asyncio
async def test_trigger_returns_while_pipeline_runs(orchestrator, store, tools):
    started, release = tools.block(StepType.CLONE)
    deployment = await orchestrator.create_deployment(make_deployment())

    pipeline_id = await orchestrator.trigger(deployment.id, "alice")

    pipeline = await orchestrator.get(pipeline_id)
    assert pipeline.status == PipelineStatus.RUNNING
    assert pipeline.triggered_by == "alice"
    assert pipeline.started_at is not None
    assert (await orchestrator.get_deployment(deployment.id)).status == DeploymentStatus.RUNNING

    with pytest.raises(Conflict):
        await orchestrator.trigger(deployment.id, "bob")

    await asyncio.wait_for(started.wait(), timeout=5)
    release.set()
    assert (await orchestrator.wait(pipeline_id)).status == PipelineStatus.COMPLETED

@pytest.mark.asyncio
async def test_concurrent_triggers_start_one_pipeline(orchestrator, store):
    deployment = await orchestrator.create_deployment(make_deployment())

    results = await asyncio.gather(
        orchestrator.trigger(deployment.id, "alice"),
        orchestrator.trigger(deployment.id, "bob"),
        return_exceptions=True,
    )

    pipeline_ids = [r for r in results if isinstance(r, str)]
    conflicts = [r for r in results if isinstance(r, Conflict)]
    assert len(pipeline_ids) == 1
    assert len(conflicts) == 1
    assert list(store.pipelines) == pipeline_ids

    await orchestrator.wait(pipeline_ids[0])
    assert orchestrator._deployment_locks == {}

@pytest.mark.asyncio
async def test_retrigger_after_completion(orchestrator):
    deployment = await orchestrator.create_deployment(make_deployment())

    first = await orchestrator.trigger(deployment.id, "alice")
    await orchestrator.wait(first)
    second = await orchestrator.trigger(deployment.id, "bob")
    await orchestrator.wait(second)

    pipelines = await orchestrator.list_for_deployment(deployment.id)
    assert [p.id for p in pipelines] == [second, first]
    assert [p.id for p in await orchestrator.list_for_deployment(deployment.id, limit=1)] == [second]
    assert [p.id for p in await orchestrator.list_for_deployment(deployment.id, offset=1)] == [first]

@pytest.mark.asyncio
async def test_list_for_unknown_deployment_is_empty(orchestrator):
    assert await orchestrator.list_for_deployment("missing") == []

@pytest.mark.asyncio
async def test_get_unknown_pipeline(orchestrator):
    with pytest.raises(NotFound, match="Pipeline"):
        await orchestrator.get("missing")

@pytest.mark.asyncio
async def test_cancel_unknown_pipeline(orchestrator):
    with pytest.raises(NotFound):
        await orchestrator.cancel("missing", "alice")

@pytest.mark.asyncio
async def test_cancel_finished_pipeline(orchestrator, broadcaster):
    deployment = await orchestrator.create_deployment(make_deployment())
    pipeline_id = await orchestrator.trigger(deployment.id, "alice")
    await orchestrator.wait(pipeline_id)
    events_before = len(broadcaster.events)

    with pytest.raises(InvalidState, match="completed"):
        await orchestrator.cancel(pipeline_id, "bob")

    assert (await orchestrator.get(pipeline_id)).status == PipelineStatus.COMPLETED
    assert len(broadcaster.events) == events_before

@pytest.mark.asyncio
async def test_cancel_pending_pipeline(orchestrator, store, broadcaster):
    deployment = store.add_deployment(make_deployment())
    pipeline = store.add_pipeline(Pipeline(
        deployment_id=deployment.id,
        steps=build_pipeline_steps(deployment),
        triggered_by="alice",
    ))

    cancelled = await orchestrator.cancel(pipeline.id, "bob")

    assert cancelled.status == PipelineStatus.CANCELLED
    assert cancelled.finished_at is not None
    for step in cancelled.steps:
        assert step.status == StepStatus.CANCELLED
        assert step.started_at is None
        assert step.finished_at is None

    stored = await orchestrator.get(pipeline.id)
    assert stored.status == PipelineStatus.CANCELLED
    # Deployment was never running, so it keeps its status
    assert (await store.load_deployment(deployment.id)).status == DeploymentStatus.PENDING
    assert broadcaster.kinds() == ["step-updated", "step-updated", "pipeline-cancelled"]

@pytest.mark.asyncio
async def test_create_deployment_starts_pending(orchestrator):
    deployment = make_deployment(status=DeploymentStatus.FAILED)

    created = await orchestrator.create_deployment(deployment)

    assert created.status == DeploymentStatus.PENDING
    assert (await orchestrator.get_deployment(created.id)).name == "web-frontend"

@pytest.mark.asyncio
async def test_list_deployments_filters(orchestrator):
    await orchestrator.create_deployment(make_deployment(environment="dev"))
    await orchestrator.create_deployment(make_deployment(environment="prod"))

    prod = await orchestrator.list_deployments(environment="prod")
    assert [d.environment for d in prod] == ["prod"]
    assert len(await orchestrator.list_deployments()) == 2

@pytest.mark.asyncio
async def test_delete_deployment_removes_history(orchestrator, store):
    deployment = await orchestrator.create_deployment(make_deployment())
    await orchestrator.wait(await orchestrator.trigger(deployment.id, "alice"))

    await orchestrator.delete_deployment(deployment.id)

    with pytest.raises(NotFound):
        await orchestrator.get_deployment(deployment.id)
    assert store.pipelines == {}

@pytest.mark.asyncio
async def test_delete_running_deployment_conflicts(orchestrator, store):
    deployment = store.add_deployment(make_deployment(status=DeploymentStatus.RUNNING))

    with pytest.raises(Conflict):
        await orchestrator.delete_deployment(deployment.id)
    assert deployment.id in store.deployments

@pytest.mark.asyncio
async def test_shutdown_waits_for_running_pipelines(orchestrator, store, tools):
    started, release = tools.block(StepType.PACKAGE_DEPLOY)
    deployment = await orchestrator.create_deployment(make_deployment())
    pipeline_id = await orchestrator.trigger(deployment.id, "alice")
    await asyncio.wait_for(started.wait(), timeout=5)

    shutdown = asyncio.create_task(orchestrator.shutdown())
    await asyncio.sleep(0)
    assert not shutdown.done()

    release.set()
    await asyncio.wait_for(shutdown, timeout=5)
    assert store.pipelines[pipeline_id].status == PipelineStatus.COMPLETED

@pytest.mark.asyncio
async def test_deployment_locks_are_dropped_when_unused(orchestrator):
    deployments = [await orchestrator.create_deployment(make_deployment()) for _ in range(3)]

    for deployment in deployments:
        await orchestrator.wait(await orchestrator.trigger(deployment.id, "alice"))
    with pytest.raises(NotFound):
        await orchestrator.trigger("missing", "alice")
    await orchestrator.delete_deployment(deployments[0].id)

    assert orchestrator._deployment_locks == {}
    assert orchestrator._lock_users == {}

@pytest.mark.asyncio
async def test_update_deployment_changes_fields(orchestrator):
    deployment = await orchestrator.create_deployment(make_deployment())

    updated = await orchestrator.update_deployment(deployment.id, {
        "branch": "release",
        "environment": "prod",
        "config": {"helm": {"chart_path": "charts/api", "release": "api"}},
    })

    assert updated.id == deployment.id
    assert updated.branch == "release"
    assert updated.config.helm.chart_path == "charts/api"
    assert updated.config.helm.values == {}
    assert updated.status == DeploymentStatus.PENDING
    assert updated.created_at == deployment.created_at
    assert updated.updated_at >= deployment.updated_at
    stored = await orchestrator.get_deployment(deployment.id)
    assert stored.environment == "prod"
    assert stored.name == "web-frontend"

@pytest.mark.asyncio
async def test_update_cannot_change_status_or_id(orchestrator):
    deployment = await orchestrator.create_deployment(make_deployment())

    updated = await orchestrator.update_deployment(deployment.id, {"status": "completed", "id": "other"})

    assert updated.id == deployment.id
    assert updated.status == DeploymentStatus.PENDING

@pytest.mark.asyncio
async def test_update_running_deployment_conflicts(orchestrator, store):
    deployment = store.add_deployment(make_deployment(status=DeploymentStatus.RUNNING))

    with pytest.raises(Conflict):
        await orchestrator.update_deployment(deployment.id, {"branch": "hotfix"})
    assert store.deployments[deployment.id].branch == "main"

@pytest.mark.asyncio
async def test_update_unknown_deployment(orchestrator):
    with pytest.raises(NotFound):
        await orchestrator.update_deployment("missing", {"branch": "hotfix"})

@pytest.mark.asyncio
async def test_updated_definition_is_used_by_next_pipeline(orchestrator, tools):
    deployment = await orchestrator.create_deployment(make_deployment())
    await orchestrator.update_deployment(deployment.id, {"branch": "release"})

    await orchestrator.wait(await orchestrator.trigger(deployment.id, "alice"))

    assert tools.configs[StepType.CLONE]["branch"] == "release"

@pytest.mark.asyncio
async def test_dashboard_metrics(orchestrator, store, tools):
    tools.fail(StepType.PACKAGE_DEPLOY)
    broken = await orchestrator.create_deployment(make_deployment(environment="prod"))
    await orchestrator.wait(await orchestrator.trigger(broken.id, "alice"))

    tools.failures.clear()
    healthy = await orchestrator.create_deployment(make_deployment(environment="dev"))
    first = await orchestrator.trigger(healthy.id, "alice")
    await orchestrator.wait(first)
    second = await orchestrator.trigger(healthy.id, "alice")
    await orchestrator.wait(second)

    idle = store.add_deployment(make_deployment(environment="dev"))
    store.add_pipeline(Pipeline(
        deployment_id=idle.id,
        status=PipelineStatus.COMPLETED,
        triggered_by="alice",
        created_at=datetime.utcnow() - timedelta(days=30),
    ))

    metrics = await orchestrator.dashboard_metrics()

    assert metrics.summary.total_deployments == 3
    assert metrics.summary.active_deployments == 0
    assert metrics.summary.completed_deployments == 1
    assert metrics.summary.failed_deployments == 1
    assert metrics.summary.success_rate == 75
    assert metrics.environment_counts == {"prod": 1, "dev": 2}

    today = datetime.utcnow().strftime("%Y-%m-%d")
    assert [day.model_dump() for day in metrics.recent_activity] == [
        {"date": today, "deployments": 3, "successful": 2, "failed": 1},
    ]
    assert [p.id for p in metrics.recent_pipelines][:2] == [second, first]

@pytest.mark.asyncio
async def test_dashboard_metrics_without_data(orchestrator):
    metrics = await orchestrator.dashboard_metrics()

    assert metrics.summary.total_deployments == 0
    assert metrics.summary.success_rate == 0
    assert metrics.environment_counts == {}
    assert metrics.recent_activity == []
    assert metrics.recent_pipelines == []
