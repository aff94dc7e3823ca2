from controller.src.models.pipeline import (
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    DeploymentType,
    TerraformConfig,
    HelmConfig,
    AnsibleConfig,
    NotifyConfig,
    Pipeline,
    PipelineStatus,
    PipelineStep,
    StepStatus,
    StepType,
)

__all__ = [
    "Deployment",
    "DeploymentConfig",
    "DeploymentStatus",
    "DeploymentType",
    "TerraformConfig",
    "HelmConfig",
    "AnsibleConfig",
    "NotifyConfig",
    "Pipeline",
    "PipelineStatus",
    "PipelineStep",
    "StepStatus",
    "StepType",
]
