"""
Deployment and pipeline domain models.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum
import uuid


def new_id() -> str:
    return str(uuid.uuid4())


class DeploymentStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PipelineStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class StepType(str, Enum):
    CLONE = "clone"
    INFRA_PLAN = "infra-plan"
    INFRA_APPLY = "infra-apply"
    PACKAGE_DEPLOY = "package-deploy"
    CONFIGURATION_RUN = "configuration-run"
    NOTIFY = "notify"


class DeploymentType(str, Enum):
    TERRAFORM = "terraform"
    HELM = "helm"
    ANSIBLE = "ansible"
    HYBRID = "hybrid"


TERMINAL_PIPELINE_STATUSES = {
    PipelineStatus.COMPLETED,
    PipelineStatus.FAILED,
    PipelineStatus.CANCELLED,
}


class TerraformBackend(BaseModel):
    type: str = "gcs"
    bucket: Optional[str] = None
    prefix: Optional[str] = None


class TerraformConfig(BaseModel):
    workspace_dir: str
    variables: Dict[str, Any] = {}
    backend: Optional[TerraformBackend] = None


class HelmConfig(BaseModel):
    chart_path: str
    release: str
    values: Dict[str, Any] = {}
    namespace: Optional[str] = None
    timeout: int = 300


class AnsibleConfig(BaseModel):
    playbook_path: str
    inventory: Optional[str] = None
    variables: Dict[str, Any] = {}
    vault_password_file: Optional[str] = None


class NotifyConfig(BaseModel):
    webhook_urls: List[str]
    timeout: Optional[float] = None


class DeploymentConfig(BaseModel):
    terraform: Optional[TerraformConfig] = None
    helm: Optional[HelmConfig] = None
    ansible: Optional[AnsibleConfig] = None
    notify: Optional[NotifyConfig] = None


class Deployment(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    repository_url: str
    branch: str = "main"
    target_project: str
    target_cluster: str
    target_namespace: str
    environment: str = "dev"
    deployment_type: DeploymentType
    config: DeploymentConfig = Field(default_factory=DeploymentConfig)
    status: DeploymentStatus = DeploymentStatus.PENDING
    created_by: Optional[str] = None
    last_deployed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class PipelineStep(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    type: StepType
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    logs: List[str] = []
    dependencies: List[str] = []
    config: Dict[str, Any] = {}


class Pipeline(BaseModel):
    id: str = Field(default_factory=new_id)
    deployment_id: str
    status: PipelineStatus = PipelineStatus.PENDING
    steps: List[PipelineStep] = []
    triggered_by: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PIPELINE_STATUSES
