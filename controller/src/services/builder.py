"""
Translate a deployment into an ordered list of pipeline steps.
"""

from typing import List, Dict, Any

from controller.src.errors import PipelineBuildError
from controller.src.models.pipeline import Deployment, PipelineStep, StepType

def _section(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", exclude_none=True)

def _step(name: str, step_type: StepType, config: Dict[str, Any], after: List[PipelineStep]) -> PipelineStep:
    return PipelineStep(
        name=name,
        type=step_type,
        config=config,
        dependencies=[step.id for step in after],
    )

def validate_deployment(deployment: Deployment):
    """Reject deployments the builder cannot produce a pipeline for."""
    if not deployment.repository_url:
        raise PipelineBuildError(f"Deployment {deployment.id} has no repository URL")

    if not deployment.branch:
        raise PipelineBuildError(f"Deployment {deployment.id} has no branch")

    helm = deployment.config.helm
    if helm and not (helm.namespace or deployment.target_namespace):
        raise PipelineBuildError(f"Deployment {deployment.id} has no target namespace for helm")

def build_pipeline_steps(deployment: Deployment) -> List[PipelineStep]:
    """
    Build pipeline steps from the sections present in the deployment config.

    clone -> [infra-plan -> infra-apply] -> [package-deploy]
          -> [configuration-run] -> [notify]

    Dependencies only ever point at steps already appended, so the
    dependency graph is acyclic by construction.
    """
    validate_deployment(deployment)
    config = deployment.config
    steps: List[PipelineStep] = []

    clone = _step(
        "Clone Repository",
        StepType.CLONE,
        {"repository": deployment.repository_url, "branch": deployment.branch},
        after=[],
    )
    steps.append(clone)

    # Infrastructure
    last_infra = None
    if config.terraform:
        plan = _step("Terraform Plan", StepType.INFRA_PLAN, _section(config.terraform), after=[clone])
        steps.append(plan)
        last_infra = _step("Terraform Apply", StepType.INFRA_APPLY, _section(config.terraform), after=[plan])
        steps.append(last_infra)

    # Application package
    if config.helm:
        helm_config = _section(config.helm)
        helm_config.update({
            "namespace": config.helm.namespace or deployment.target_namespace,
            "target_project": deployment.target_project,
            "target_cluster": deployment.target_cluster,
            "target_namespace": deployment.target_namespace,
        })
        steps.append(_step(
            "Helm Deploy",
            StepType.PACKAGE_DEPLOY,
            helm_config,
            after=[last_infra or clone],
        ))

    # Post-deployment configuration
    if config.ansible:
        steps.append(_step(
            "Ansible Configuration",
            StepType.CONFIGURATION_RUN,
            _section(config.ansible),
            after=[steps[-1]],
        ))

    if config.notify:
        notify_config = _section(config.notify)
        notify_config.update({
            "deployment_id": deployment.id,
            "deployment_name": deployment.name,
            "environment": deployment.environment,
        })
        steps.append(_step("Send Notifications", StepType.NOTIFY, notify_config, after=[steps[-1]]))

    return steps
