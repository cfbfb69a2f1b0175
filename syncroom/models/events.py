# syncroom/models/events.py
"""
WebSocket event envelopes.

Every frame exchanged on ``/ws`` is a JSON object ``{"event": ..., "data": ...}``.
Inbound frames are turned into one of the typed events below by
``parse_event``; anything else raises ``EventParseError``.
"""
from __future__ import annotations

import json
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from syncroom.core.errors import EventParseError
from syncroom.models.models import ChatMessage, PlaybackState, PlaybackUpdate, WireModel

# Server -> client event names
CHAT_MESSAGE = "chat:message"
PLAYBACK_STATE = "playback:state"
ROOM_JOINED = "room:joined"


class JoinRoomEvent(BaseModel):
    event: Literal["join_room"]
    data: str = Field(..., min_length=1)


class LeaveRoomEvent(BaseModel):
    event: Literal["leave_room"]
    data: str = Field(..., min_length=1)


class ChatSendEvent(BaseModel):
    event: Literal["chat:send"]
    data: ChatMessage


class PlaybackUpdatePayload(PlaybackUpdate):
    room: str = Field(..., min_length=1)


class PlaybackUpdateEvent(BaseModel):
    event: Literal["playback:update"]
    data: PlaybackUpdatePayload


Event = Annotated[
    Union[JoinRoomEvent, LeaveRoomEvent, ChatSendEvent, PlaybackUpdateEvent],
    Field(discriminator="event"),
]

_event_adapter: TypeAdapter[Event] = TypeAdapter(Event)


class RoomJoined(WireModel):
    room: str
    members: int


class PlaybackBroadcast(WireModel):
    room: str
    state: PlaybackState


def parse_event(raw: str) -> Event:
    """
    Parse one inbound WebSocket frame.

    Args:
        raw: Text frame as received from the client

    Returns:
        The typed event

    Raises:
        EventParseError: Invalid JSON, unknown event name or a payload
            missing required fields
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise EventParseError(f"Invalid JSON: {e.msg}", raw=raw) from e

    if not isinstance(payload, dict):
        raise EventParseError("Frame must be a JSON object", raw=raw)

    try:
        return _event_adapter.validate_python(payload)
    except ValidationError as e:
        raise EventParseError(
            f"Malformed '{payload.get('event')}' event: {e.error_count()} error(s)",
            raw=raw,
        ) from e


def envelope(event: str, data: Optional[dict]) -> dict:
    """Build an outbound frame."""
    return {"event": event, "data": data}
