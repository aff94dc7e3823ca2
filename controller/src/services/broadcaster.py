"""
Real-time event fan-out over Redis pub/sub.

Each deployment has its own room (a Redis channel). Subscribers such as the
API WebSocket endpoint relay the room's messages to connected clients.
"""

import json
import logging
from datetime import datetime
from typing import AsyncIterator, Dict, Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

PIPELINE_STARTED = "pipeline-started"
STEP_UPDATED = "step-updated"
PIPELINE_COMPLETED = "pipeline-completed"
PIPELINE_FAILED = "pipeline-failed"
PIPELINE_CANCELLED = "pipeline-cancelled"

def room_channel(prefix: str, deployment_id: str) -> str:
    return f"{prefix}:{deployment_id}"

def encode_event(deployment_id: str, event_kind: str, payload: Dict[str, Any]) -> str:
    return json.dumps(
        {
            "deployment_id": deployment_id,
            "event": event_kind,
            "payload": payload,
            "emitted_at": datetime.utcnow().isoformat(),
        },
        default=str,
    )

class RedisBroadcaster:
    """Publish pipeline events to per-deployment Redis channels."""

    def __init__(self, redis_url: str, channel_prefix: str):
        self.channel_prefix = channel_prefix
        self.client = redis.from_url(redis_url, decode_responses=True)

    async def emit(self, deployment_id: str, event_kind: str, payload: Dict[str, Any]):
        channel = room_channel(self.channel_prefix, deployment_id)
        receivers = await self.client.publish(
            channel, encode_event(deployment_id, event_kind, payload)
        )
        logger.debug(f"Emitted {event_kind} to {channel} ({receivers} subscribers)")

    async def listen(self, deployment_id: str) -> AsyncIterator[str]:
        """Yield encoded events published to a deployment's room."""
        channel = room_channel(self.channel_prefix, deployment_id)
        pubsub = self.client.pubsub()
        await pubsub.subscribe(channel)
        logger.info(f"Subscribed to {channel}")

        try:
            async for message in pubsub.listen():
                if message["type"] == "message":
                    yield message["data"]
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
            logger.info(f"Unsubscribed from {channel}")

    async def ping(self):
        await self.client.ping()

    async def close(self):
        await self.client.aclose()
