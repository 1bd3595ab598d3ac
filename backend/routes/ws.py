"""
WebSocket endpoint for live runtime interaction.

Accepts connections at /ws/runtime. Client frames are UI events emitted
onto the runtime channel; every derive and every navigation is pushed back.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from backend.models.runtime import WSClientMessage
from backend.services.session import RuntimeSession
from runtime.core import DerivedState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


def _state_message(state: DerivedState) -> dict[str, Any]:
    return {"type": "state", "state": state.to_dict()}


async def _pump(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Forward queued server messages to the client in order."""
    while True:
        message = await queue.get()
        await websocket.send_text(json.dumps(message))


@router.websocket("/ws/runtime")
async def runtime_websocket(websocket: WebSocket) -> None:
    """
    Protocol:
      Client → Server:  {"type": "action" | "navigate" | "input-change" | "state-mutate" | "interaction",
                         "detail": ...}
      Server → Client:  {"type": "state", "state": {...}}
                        {"type": "navigate", "to": "..."}

    The current state is sent once on connect.
    """
    await websocket.accept()
    session: RuntimeSession = websocket.app.state.session
    logger.info("ws: runtime connection accepted")

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # Observers may fire from any thread that dispatches
    def push(message: dict[str, Any]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, message)

    unsubscribe_state = session.runtime.subscribe(lambda state: push(_state_message(state)))
    unsubscribe_nav = session.navigations.subscribe(lambda to: push({"type": "navigate", "to": to}))

    await websocket.send_text(json.dumps(_state_message(session.runtime.state)))
    sender = asyncio.create_task(_pump(websocket, queue))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = WSClientMessage.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError):
                logger.warning("ws: malformed message from client: %r", raw[:200])
                continue

            # Dispatch persists to disk; keep it off the event loop
            await asyncio.to_thread(session.emit, msg.type, msg.detail)
    except WebSocketDisconnect:
        logger.info("ws: runtime connection closed")
    finally:
        unsubscribe_state()
        unsubscribe_nav()
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("ws: sender stopped with error", exc_info=True)
