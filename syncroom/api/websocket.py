# syncroom/api/websocket.py

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.websockets import WebSocketState

from syncroom.core.errors import EventParseError
from syncroom.core.state import AppState
from syncroom.models.events import (
    ChatSendEvent,
    Event,
    JoinRoomEvent,
    LeaveRoomEvent,
    PlaybackUpdateEvent,
    parse_event,
)
from syncroom.models.models import PlaybackUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_frame(message: dict) -> Event:
    """Parse one received ASGI message; only text frames carry events."""
    text = message.get("text")
    if text is None:
        raise EventParseError("binary frames are not supported")
    return parse_event(text)


async def dispatch_event(app_state: AppState, websocket: WebSocket, event: Event) -> None:
    """Route one parsed event to the connection manager."""
    manager = app_state.connection_manager

    if isinstance(event, JoinRoomEvent):
        await manager.join_room(websocket, event.data)

    elif isinstance(event, LeaveRoomEvent):
        manager.leave_room(websocket, event.data)

    elif isinstance(event, ChatSendEvent):
        await manager.send_chat(event.data)
        app_state.message_counter += 1

    elif isinstance(event, PlaybackUpdateEvent):
        update = PlaybackUpdate(
            current_time=event.data.current_time,
            is_playing=event.data.is_playing,
        )
        await manager.update_playback(event.data.room, update)


# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for room synchronization and chat.

    Protocol:
    =========
    Every frame is {"event": "<name>", "data": <payload>}.

    Client -> Server Events:
    ------------------------
    Join Room:
        {"event": "join_room", "data": "uuid-123"}
        Response: {"event": "room:joined", "data": {"room": "uuid-123", "members": 2}}

    Leave Room:
        {"event": "leave_room", "data": "uuid-123"}

    Send Chat Message:
        {
            "event": "chat:send",
            "data": {"room": "uuid-123", "author": "alice", "text": "hi", "time": 1700000000000}
        }
        Broadcast: {"event": "chat:message", "data": {...message, "trackUrl", "imageUrl"}}

    Update Playback:
        {"event": "playback:update", "data": {"room": "uuid-123", "currentTime": 12.5, "isPlaying": true}}
        Broadcast: {"event": "playback:state", "data": {"room": "uuid-123", "state": {...}}}

    Lifecycle:
    ==========
    1. Client connects and gets a connection id
    2. Client sends "join_room" for the rooms it follows
    3. Client receives the events of those rooms only
    4. On disconnect it leaves every room; a room left empty loses its chat history

    Error Handling:
        Malformed frames (binary data, invalid JSON, unknown events, missing
        fields) are logged and dropped; the connection stays open. There is
        no error reply, these events are fire-and-forget. Any other failure
        closes the socket with 1011.
    """
    app_state: AppState = websocket.app.state.syncroom
    manager = app_state.connection_manager
    connection_id = await manager.connect(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            try:
                event = parse_frame(message)
            except EventParseError as e:
                logger.warning("Dropped frame from %s: %s", connection_id, e)
                continue

            logger.debug("Websocket input from %s: %s", connection_id, event.event)
            await dispatch_event(app_state, websocket, event)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception("WebSocket error on %s: %s", connection_id, e)
        if (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        ):
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        manager.disconnect(websocket)
