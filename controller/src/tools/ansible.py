"""
Run an Ansible playbook for post-deployment configuration.
"""

import json
import os
from typing import List, Dict, Any

from controller.src.config import get_settings
from controller.src.tools.shell import checkout_path, run_command, ToolError

ANSIBLE_ENV = {
    "ANSIBLE_HOST_KEY_CHECKING": "False",
    "ANSIBLE_STDOUT_CALLBACK": "yaml",
}

def is_inline_inventory(inventory: str) -> bool:
    """Inline INI content rather than a path to an inventory file."""
    return "\n" in inventory or "[" in inventory

async def run_playbook(config: Dict[str, Any]) -> List[str]:
    playbook_path = config.get("playbook_path")
    if not playbook_path:
        raise ToolError("Ansible step has no playbook_path")

    settings = get_settings()
    cwd = checkout_path(config, os.path.dirname(playbook_path))
    command = [settings.ansible_playbook_bin, os.path.basename(playbook_path)]
    logs = []

    try:
        inventory = config.get("inventory")
        if inventory:
            if is_inline_inventory(inventory):
                with open(os.path.join(cwd, "inventory.ini"), "w") as f:
                    f.write(inventory)
                command += ["-i", "inventory.ini"]
                logs.append("Created temporary inventory file")
            else:
                command += ["-i", inventory]

        variables = config.get("variables") or {}
        if variables:
            with open(os.path.join(cwd, "extra_vars.json"), "w") as f:
                json.dump(variables, f, indent=2)
            command += ["--extra-vars", "@extra_vars.json"]
            logs.append("Created extra variables file")

        if config.get("vault_password_file"):
            command += ["--vault-password-file", config["vault_password_file"]]

        command.append("-v")
        logs.append("Running Ansible playbook...")
        logs.extend(await run_command(command, cwd=cwd, env=ANSIBLE_ENV))
    except (ToolError, OSError) as e:
        raise ToolError(
            f"Ansible playbook execution failed: {e}", logs + getattr(e, "logs", [])
        ) from e

    logs.append("Ansible playbook execution completed successfully")
    return logs
