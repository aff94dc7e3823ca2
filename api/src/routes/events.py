"""
WebSocket endpoint relaying a deployment's pipeline events.
"""

import asyncio
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])

async def relay_events(websocket: WebSocket, broadcaster, deployment_id: str):
    async for event in broadcaster.listen(deployment_id):
        await websocket.send_text(event)

async def wait_for_disconnect(websocket: WebSocket):
    # Client messages are ignored; receiving detects the disconnect
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass

@router.websocket("/ws/deployments/{deployment_id}")
async def deployment_events(websocket: WebSocket, deployment_id: str):
    """Join a deployment's room and receive every pipeline update for it."""
    await websocket.accept()
    logger.info(f"Client joined deployment room: {deployment_id}")

    broadcaster = websocket.app.state.orchestrator.broadcaster
    relay = asyncio.create_task(relay_events(websocket, broadcaster, deployment_id))
    receiver = asyncio.create_task(wait_for_disconnect(websocket))

    try:
        done, _ = await asyncio.wait({relay, receiver}, return_when=asyncio.FIRST_COMPLETED)

        if receiver in done:
            logger.info(f"Client left deployment room: {deployment_id}")
        elif relay.exception() is not None:
            logger.error(f"Event relay for deployment {deployment_id} failed: {relay.exception()}")
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        else:
            await websocket.close()
    finally:
        relay.cancel()
        receiver.cancel()
