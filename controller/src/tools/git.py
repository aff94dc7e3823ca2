"""
Clone the deployment's source repository into the pipeline workspace.
"""

import os
import shutil
from typing import List, Dict, Any

from controller.src.config import get_settings
from controller.src.tools.shell import checkout_path, run_command, ToolError

def repository_name(repo_url: str) -> str:
    """Extract repo name from a clone URL (https://host/org/app.git -> app)."""
    name = repo_url.rstrip("/").split("/")[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or "repo"

async def clone(config: Dict[str, Any]) -> List[str]:
    """Fresh single-branch clone of config['repository'] at config['branch']."""
    settings = get_settings()
    repo_url = config.get("repository")
    branch = config.get("branch") or "main"
    if not repo_url:
        raise ToolError("Clone step has no repository URL")

    local_path = checkout_path(config)

    # Always start from an empty checkout
    if os.path.exists(local_path):
        shutil.rmtree(local_path)
    os.makedirs(os.path.dirname(local_path), exist_ok=True)

    logs = [f"Cloning {repository_name(repo_url)} from {repo_url} (branch: {branch}) into {local_path}"]
    try:
        logs.extend(await run_command(
            [settings.git_bin, "clone", "--depth", "1", "--branch", branch,
             "--single-branch", repo_url, local_path],
            timeout=300,
        ))
    except ToolError as e:
        raise ToolError(f"Failed to clone repository: {e}", logs + e.logs) from e

    logs.append(f"Repository cloned to {local_path}")
    return logs
