"""
Helm install/upgrade into the deployment's target cluster/namespace.
"""

import asyncio
import logging
import os
from typing import List, Dict, Any

import yaml

from controller.src.config import get_settings
from controller.src.k8s import ensure_namespace
from controller.src.tools.shell import checkout_path, run_command, ToolError

logger = logging.getLogger(__name__)

VALUES_FILE = "custom-values.yaml"

def build_helm_command(config: Dict[str, Any], namespace: str, values_file: bool) -> List[str]:
    command = [
        get_settings().helm_bin, "upgrade", "--install",
        config["release"], ".",
        "--namespace", namespace,
    ]
    if values_file:
        command += ["-f", VALUES_FILE]
    if config.get("timeout"):
        command += ["--timeout", f"{int(config['timeout'])}s"]
    return command

async def prepare_namespace(namespace: str) -> List[str]:
    try:
        created = await asyncio.to_thread(ensure_namespace, namespace)
    except Exception as e:
        # helm reports a clearer error if the namespace is really unusable
        logger.warning(f"Could not ensure namespace {namespace}: {e}")
        return [f"Namespace {namespace} could not be verified: {e}"]
    if created:
        return [f"Created namespace: {namespace}"]
    return [f"Namespace {namespace} already exists"]

async def deploy(config: Dict[str, Any]) -> List[str]:
    """Install or upgrade config['release'] from config['chart_path']."""
    settings = get_settings()
    if not config.get("chart_path") or not config.get("release"):
        raise ToolError("Helm step requires chart_path and release")

    namespace = config.get("namespace") or config.get("target_namespace")
    if not namespace:
        raise ToolError("Helm step has no target namespace")

    logs = [f"Deploying release {config['release']} to cluster "
            f"{config.get('target_cluster', 'current context')}, namespace {namespace}"]

    if settings.k8s_manage_namespaces:
        logs.extend(await prepare_namespace(namespace))

    cwd = checkout_path(config, config["chart_path"])
    values = config.get("values") or {}
    timeout = config.get("timeout") or 300

    try:
        if values:
            with open(os.path.join(cwd, VALUES_FILE), "w") as f:
                yaml.safe_dump(values, f, default_flow_style=False, sort_keys=False)
            logs.append("Created custom values file")

        command = build_helm_command(config, namespace, values_file=bool(values))
        logs.append("Running helm deployment...")
        # Give helm a little longer than its own --timeout to report
        logs.extend(await run_command(command, cwd=cwd, timeout=timeout + 30))

        logs.append("Deployment Status:")
        logs.extend(await run_command(
            [settings.helm_bin, "status", config["release"], "-n", namespace], timeout=60
        ))
    except (ToolError, OSError) as e:
        raise ToolError(f"Helm deployment failed: {e}", logs + getattr(e, "logs", [])) from e

    logs.append("Helm deployment completed successfully")
    return logs
