from typing import Awaitable, Callable, Dict, Any, List

from controller.src.models.pipeline import StepType
from controller.src.tools import ansible, git, helm, notifier, terraform
from controller.src.tools.shell import ToolError, run_command

ToolHandler = Callable[[Dict[str, Any]], Awaitable[List[str]]]

def default_toolbox() -> Dict[StepType, ToolHandler]:
    """Map every step type to the tool adapter that runs it."""
    return {
        StepType.CLONE: git.clone,
        StepType.INFRA_PLAN: terraform.plan,
        StepType.INFRA_APPLY: terraform.apply,
        StepType.PACKAGE_DEPLOY: helm.deploy,
        StepType.CONFIGURATION_RUN: ansible.run_playbook,
        StepType.NOTIFY: notifier.notify,
    }

__all__ = [
    "ToolError",
    "ToolHandler",
    "default_toolbox",
    "run_command",
]
