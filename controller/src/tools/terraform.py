"""
Terraform plan/apply against a step's workspace.
"""

import json
import os
from typing import List, Dict, Any

from controller.src.config import get_settings
from controller.src.tools.shell import checkout_path, run_command, ToolError

TF_ENV = {"TF_IN_AUTOMATION": "true", "TF_INPUT": "0"}

def working_dir(config: Dict[str, Any]) -> str:
    workspace = config.get("workspace_dir")
    if not workspace:
        raise ToolError("Terraform step has no workspace_dir")
    return checkout_path(config, workspace)

def render_tfvars(variables: Dict[str, Any]) -> str:
    return "\n".join(f"{key} = {json.dumps(value)}" for key, value in variables.items()) + "\n"

def backend_args(config: Dict[str, Any]) -> List[str]:
    backend = config.get("backend") or {}
    args = []
    if backend.get("bucket"):
        args.append(f"-backend-config=bucket={backend['bucket']}")
    if backend.get("prefix"):
        args.append(f"-backend-config=prefix={backend['prefix']}")
    return args

async def plan(config: Dict[str, Any]) -> List[str]:
    """terraform init + plan, saving the plan to tfplan for the apply step."""
    terraform = get_settings().terraform_bin
    cwd = working_dir(config)
    logs = ["Initializing Terraform..."]

    try:
        logs.extend(await run_command(
            [terraform, "init", "-no-color", *backend_args(config)], cwd=cwd, env=TF_ENV
        ))

        variables = config.get("variables") or {}
        if variables:
            with open(os.path.join(cwd, "terraform.tfvars"), "w") as f:
                f.write(render_tfvars(variables))
            logs.append("Created terraform.tfvars file")

        logs.append("Running terraform plan...")
        logs.extend(await run_command(
            [terraform, "plan", "-no-color", "-out=tfplan"], cwd=cwd, env=TF_ENV
        ))
    except (ToolError, OSError) as e:
        raise ToolError(f"Terraform plan failed: {e}", logs + getattr(e, "logs", [])) from e

    logs.append("Terraform plan completed successfully")
    return logs

async def apply(config: Dict[str, Any]) -> List[str]:
    """terraform apply of the saved tfplan."""
    terraform = get_settings().terraform_bin
    cwd = working_dir(config)
    logs = ["Running terraform apply..."]

    try:
        logs.extend(await run_command(
            [terraform, "apply", "-no-color", "-auto-approve", "tfplan"], cwd=cwd, env=TF_ENV
        ))
    except ToolError as e:
        raise ToolError(f"Terraform apply failed: {e}", logs + e.logs) from e

    logs.append("Terraform apply completed successfully")
    return logs
