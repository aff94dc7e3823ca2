"""
Run external tool binaries and capture their output as log lines.
"""

import asyncio
import logging
import os
import shlex
from typing import Any, List, Optional, Dict

logger = logging.getLogger(__name__)

class ToolError(Exception):
    """Raised when an external tool fails. Carries the output captured so far."""

    def __init__(self, message: str, logs: Optional[List[str]] = None):
        super().__init__(message)
        self.logs = list(logs or [])

def split_output(data: bytes) -> List[str]:
    text = data.decode("utf-8", errors="replace")
    return [line for line in text.splitlines() if line.strip()]

async def run_command(
    args: List[str],
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> List[str]:
    """
    Run a command and return its stdout/stderr as log lines.
    Raises ToolError on a non-zero exit, a missing binary or a timeout.
    """
    command = shlex.join(args)
    logs = [f"$ {command}"]

    process_env = None
    if env:
        process_env = {**os.environ, **env}

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            env=process_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ToolError(f"Command not found: {args[0]}", logs) from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise ToolError(f"Command timed out after {timeout}s: {command}", logs) from e

    logs.extend(split_output(stdout))
    logs.extend(f"STDERR: {line}" for line in split_output(stderr))

    if process.returncode != 0:
        logger.error(f"Command failed with exit code {process.returncode}: {command}")
        raise ToolError(f"Command exited with code {process.returncode}: {command}", logs)

    return logs

def checkout_path(config: Dict[str, Any], *parts: str) -> str:
    """Path inside the pipeline's checkout. Refuses paths that escape it."""
    workspace = config.get("workspace")
    if not workspace:
        raise ToolError("Step has no pipeline workspace")

    root = os.path.abspath(workspace)
    path = os.path.abspath(os.path.join(root, *parts))
    if path != root and not path.startswith(root + os.sep):
        raise ToolError(f"Path {os.path.join(*parts)} is outside the pipeline workspace")
    return path
