"""Tests for pipeline step building."""

import pytest

from controller.src.errors import PipelineBuildError
from controller.src.models.pipeline import HelmConfig, StepStatus, StepType
from controller.src.services.builder import build_pipeline_steps
from controller.tests.fakes import make_deployment


def test_helm_only_deployment():
    deployment = make_deployment()
    steps = build_pipeline_steps(deployment)

    assert [s.type for s in steps] == [StepType.CLONE, StepType.PACKAGE_DEPLOY]
    clone, helm = steps
    assert clone.dependencies == []
    assert helm.dependencies == [clone.id]
    assert clone.config == {
        "repository": "https://github.com/acme/web.git",
        "branch": "main",
    }

def test_terraform_and_helm_deployment():
    steps = build_pipeline_steps(make_deployment(terraform=True))

    assert [s.type for s in steps] == [
        StepType.CLONE,
        StepType.INFRA_PLAN,
        StepType.INFRA_APPLY,
        StepType.PACKAGE_DEPLOY,
    ]
    clone, plan, apply, helm = steps
    assert plan.dependencies == [clone.id]
    assert apply.dependencies == [plan.id]
    assert helm.dependencies == [apply.id]
    assert plan.config["workspace_dir"] == "infra"
    assert apply.config["variables"] == {"region": "us-central1"}

def test_terraform_only_deployment():
    steps = build_pipeline_steps(make_deployment(terraform=True, helm=False))

    assert [s.type for s in steps] == [StepType.CLONE, StepType.INFRA_PLAN, StepType.INFRA_APPLY]

def test_clone_only_deployment():
    steps = build_pipeline_steps(make_deployment(helm=False))

    assert [s.type for s in steps] == [StepType.CLONE]

def test_ansible_runs_after_package_deploy():
    steps = build_pipeline_steps(make_deployment(ansible=True))

    assert [s.type for s in steps] == [
        StepType.CLONE,
        StepType.PACKAGE_DEPLOY,
        StepType.CONFIGURATION_RUN,
    ]
    assert steps[2].dependencies == [steps[1].id]
    assert steps[2].config["playbook_path"] == "ops/site.yml"

def test_ansible_without_helm_depends_on_clone():
    steps = build_pipeline_steps(make_deployment(helm=False, ansible=True))

    assert [s.type for s in steps] == [StepType.CLONE, StepType.CONFIGURATION_RUN]
    assert steps[1].dependencies == [steps[0].id]

def test_notify_is_last_step():
    deployment = make_deployment(terraform=True, ansible=True, notify=True)
    steps = build_pipeline_steps(deployment)

    notify = steps[-1]
    assert notify.type == StepType.NOTIFY
    assert notify.dependencies == [steps[-2].id]
    assert notify.config["deployment_id"] == deployment.id
    assert notify.config["deployment_name"] == "web-frontend"
    assert notify.config["webhook_urls"] == ["https://hooks.example.com/deploys"]

def test_helm_step_carries_deployment_targets():
    steps = build_pipeline_steps(make_deployment())
    config = steps[1].config

    assert config["chart_path"] == "charts/web"
    assert config["release"] == "web"
    assert config["values"] == {"replicas": 2}
    assert config["namespace"] == "web"
    assert config["target_cluster"] == "dev-cluster"
    assert config["target_project"] == "acme-dev"

def test_helm_namespace_overrides_target_namespace():
    deployment = make_deployment()
    deployment.config.helm = HelmConfig(chart_path="charts/web", release="web", namespace="web-canary")

    steps = build_pipeline_steps(deployment)
    assert steps[1].config["namespace"] == "web-canary"
    assert steps[1].config["target_namespace"] == "web"

def test_built_steps_are_pending():
    for step in build_pipeline_steps(make_deployment(terraform=True, notify=True)):
        assert step.status == StepStatus.PENDING
        assert step.started_at is None
        assert step.finished_at is None
        assert step.logs == []

def test_building_twice_gives_same_shape_with_fresh_ids():
    deployment = make_deployment(terraform=True, ansible=True)
    first = build_pipeline_steps(deployment)
    second = build_pipeline_steps(deployment)

    assert [(s.name, s.type, s.config) for s in first] == [(s.name, s.type, s.config) for s in second]
    assert {s.id for s in first}.isdisjoint({s.id for s in second})

def test_dependencies_only_point_backwards():
    steps = build_pipeline_steps(make_deployment(terraform=True, ansible=True, notify=True))
    seen = set()
    for step in steps:
        assert set(step.dependencies) <= seen
        seen.add(step.id)

def test_missing_repository_url():
    with pytest.raises(PipelineBuildError, match="no repository URL"):
        build_pipeline_steps(make_deployment(repository_url=""))

def test_missing_branch():
    with pytest.raises(PipelineBuildError, match="no branch"):
        build_pipeline_steps(make_deployment(branch=""))

def test_helm_without_any_namespace():
    with pytest.raises(PipelineBuildError, match="namespace"):
        build_pipeline_steps(make_deployment(target_namespace=""))
