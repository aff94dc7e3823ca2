"""
Post deployment status notifications to webhooks.
"""

import logging
from datetime import datetime
from typing import List, Dict, Any

import httpx

from controller.src.config import get_settings
from controller.src.tools.shell import ToolError

logger = logging.getLogger(__name__)

def build_payload(config: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "deployment_id": config.get("deployment_id"),
        "deployment": config.get("deployment_name"),
        "environment": config.get("environment"),
        "pipeline_id": config.get("pipeline_id"),
        "status": config.get("pipeline_status", "unknown"),
        "sent_at": datetime.utcnow().isoformat(),
    }

async def notify(config: Dict[str, Any]) -> List[str]:
    """POST to each webhook. Raises ToolError if any of them failed."""
    urls = config.get("webhook_urls") or []
    timeout = config.get("timeout") or get_settings().notify_timeout
    payload = build_payload(config)
    logs = []
    failures = []

    async with httpx.AsyncClient(timeout=timeout) as client:
        for url in urls:
            try:
                response = await client.post(url, json=payload)
                response.raise_for_status()
                logs.append(f"Notified {url} ({response.status_code})")
            except httpx.HTTPError as e:
                logger.warning(f"Notification to {url} failed: {e}")
                failures.append(url)
                logs.append(f"Notification to {url} failed: {e}")

    if failures:
        raise ToolError(f"{len(failures)} of {len(urls)} notifications failed", logs)
    return logs
