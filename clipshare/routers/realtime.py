# clipshare/routers/realtime.py
# WebSocket channel: join/leave code rooms, announce presence, receive events.
#
# Frames are JSON objects {"event": <name>, "data": <payload>} in both
# directions. join-room / leave-room accept either the bare code or {"code"}.

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from clipshare.constants import (
    CMD_IDENTIFY,
    CMD_JOIN_ROOM,
    CMD_LEAVE_ROOM,
    EVENT_ERROR,
    EVENT_ROOM_JOINED,
    EVENT_ROOM_LEFT,
)
from clipshare.errors import AppError
from clipshare.realtime.hub import RoomHub, make_event

logger = logging.getLogger(__name__)

router = APIRouter()


def _code_from(data: Any) -> Optional[str]:
    if isinstance(data, str):
        return data or None
    if isinstance(data, dict):
        code = data.get("code")
        return code if isinstance(code, str) and code else None
    return None


async def _send_error(websocket: WebSocket, code: str, message: str) -> None:
    await websocket.send_json(make_event(EVENT_ERROR, {"code": code, "message": message}))


async def _handle_frame(hub: RoomHub, websocket: WebSocket, frame: Any) -> None:
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        await _send_error(websocket, "VALIDATION_ERROR", "Frames must be {event, data} objects")
        return

    event, data = frame["event"], frame.get("data")

    if event == CMD_JOIN_ROOM:
        code = _code_from(data)
        if code is None:
            await _send_error(websocket, "VALIDATION_ERROR", "join-room needs a code")
            return
        hub.join(websocket, code)
        logger.debug(f"User joined room: {code}")
        await websocket.send_json(make_event(EVENT_ROOM_JOINED, {"code": code}))

    elif event == CMD_LEAVE_ROOM:
        code = _code_from(data)
        if code is None:
            await _send_error(websocket, "VALIDATION_ERROR", "leave-room needs a code")
            return
        hub.leave(websocket, code)
        logger.debug(f"User left room: {code}")
        await websocket.send_json(make_event(EVENT_ROOM_LEFT, {"code": code}))

    elif event == CMD_IDENTIFY:
        data = data if isinstance(data, dict) else {}
        client_id = data.get("clientId") or data.get("userId")
        code = _code_from(data)
        if not client_id or code is None:
            # Nothing to record without both halves
            return
        await hub.announce(code, str(client_id))

    else:
        await _send_error(websocket, "VALIDATION_ERROR", f"Unknown event: {event}")


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket):
    hub: RoomHub = websocket.app.state.context.hub
    await websocket.accept()
    logger.debug("User connected")
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
            text = message.get("text")
            if text is None:
                await _send_error(websocket, "VALIDATION_ERROR", "Frames must be JSON text")
                continue
            try:
                frame = json.loads(text)
            except ValueError:
                await _send_error(websocket, "VALIDATION_ERROR", "Invalid JSON frame")
                continue
            try:
                await _handle_frame(hub, websocket, frame)
            except AppError as e:
                await _send_error(websocket, e.error_code, e.message)
    except WebSocketDisconnect:
        logger.debug("User disconnected")
    finally:
        hub.disconnect(websocket)
