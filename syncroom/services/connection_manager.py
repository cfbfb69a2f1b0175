# syncroom/services/connection_manager.py

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Dict, Optional, Set

from fastapi import WebSocket
import logging

from syncroom.core.errors import TransientPersistenceFault
from syncroom.models.events import (
    CHAT_MESSAGE,
    PLAYBACK_STATE,
    ROOM_JOINED,
    PlaybackBroadcast,
    RoomJoined,
    envelope,
)
from syncroom.models.models import ChatMessage, PlaybackState, PlaybackUpdate
from syncroom.services.chat_store import ChatStore
from syncroom.services.link_extractor import extract_links
from syncroom.services.room_manager import RoomManager

logger = logging.getLogger(__name__)

# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    """
    Maps WebSocket connections to room memberships and relays room events.

    Every room id a connection joins is a broadcast group. Groups are
    created on first join (the room doesn't have to exist in the
    RoomManager) and dropped from memory once empty. When a group empties,
    the room's chat history is cleared; the Room record itself stays.

    Data Structures:
        rooms: Maps room_id -> Set of WebSocket connections in that room
               Example: {"uuid-123": {websocket1, websocket2}}

        connection_rooms: Maps WebSocket -> Set of room_ids it has joined
                         Example: {websocket1: {"uuid-123"}}

        connection_ids: Maps WebSocket -> connection id (for logging)

        send_locks: Maps room_id -> asyncio.Lock held while a broadcast to
                    that room is being written

    The membership sets, not Room.participants, decide whether a room is
    empty. All mutations are synchronous, so on a single event loop they
    never interleave. Sends are the only suspension point; the per-room
    lock keeps concurrent broadcasts from overtaking one another.

    If someone joins in the same tick before a disconnect runs its
    emptiness check, history is not cleared that time.
    """

    def __init__(self, room_manager: RoomManager, chat_store: ChatStore) -> None:
        # Map: room_id -> Set[WebSocket connections]
        self.rooms: Dict[str, Set[WebSocket]] = {}

        # Map: WebSocket -> Set[room_ids it has joined]
        self.connection_rooms: Dict[WebSocket, Set[str]] = {}

        # Map: WebSocket -> connection id
        self.connection_ids: Dict[WebSocket, str] = {}

        # Map: room_id -> lock serializing broadcasts to that room
        self.send_locks: Dict[str, asyncio.Lock] = {}

        self.room_manager = room_manager
        self.chat_store = chat_store

    async def connect(self, websocket: WebSocket) -> str:
        """
        Accept a new WebSocket connection.

        Returns:
            The id assigned to this connection

        Note:
            The connection is not in any room yet. It must send "join_room"
            for each room it wants to follow.
        """
        await websocket.accept()

        connection_id = uuid.uuid4().hex
        self.connection_rooms[websocket] = set()
        self.connection_ids[websocket] = connection_id

        logger.info("✓ Connection %s opened. Total: %d", connection_id, len(self.connection_rooms))
        return connection_id

    def disconnect(self, websocket: WebSocket) -> None:
        """
        Forget a connection and clean up every room it was in.

        For each of those rooms the membership is checked AFTER removing
        this connection; an empty room loses its chat history.
        """
        if websocket not in self.connection_rooms:
            return

        connection_id = self.connection_ids.get(websocket, "unknown")
        joined = self.connection_rooms.pop(websocket)
        self.connection_ids.pop(websocket, None)

        for room_id in joined:
            self._detach(websocket, room_id)

        logger.info("✗ Connection %s closed. Total: %d", connection_id, len(self.connection_rooms))

    async def join_room(self, websocket: WebSocket, room_id: str) -> None:
        """
        Attach a connection to a room's broadcast group.

        Joining twice is a no-op apart from the confirmation sent back.
        """
        if websocket not in self.connection_rooms:
            return  # Connection already closed

        members = self.rooms.setdefault(room_id, set())
        if websocket not in members:
            members.add(websocket)
            self.connection_rooms[websocket].add(room_id)
            self.room_manager.add_participant(room_id)

        member_count = len(members)
        logger.info(
            "→ %s joined %s (%s members)",
            self.connection_ids.get(websocket, "unknown"), room_id, member_count,
        )

        await websocket.send_json(
            envelope(ROOM_JOINED, RoomJoined(room=room_id, members=member_count).to_wire())
        )

    def leave_room(self, websocket: WebSocket, room_id: str) -> None:
        """Detach a connection from one room, with the same cleanup as a disconnect."""
        if websocket not in self.connection_rooms:
            return  # Connection already closed

        if room_id in self.connection_rooms[websocket]:
            self.connection_rooms[websocket].discard(room_id)
            self._detach(websocket, room_id)

    def _detach(self, websocket: WebSocket, room_id: str) -> None:
        members = self.rooms.get(room_id)
        if members is not None:
            members.discard(websocket)
        self.room_manager.remove_participant(room_id)

        if self.room_size(room_id) == 0:
            self.rooms.pop(room_id, None)
            lock = self.send_locks.get(room_id)
            if lock is not None and not lock.locked():
                del self.send_locks[room_id]
            self.chat_store.clear_room(room_id)

    def room_size(self, room_id: str) -> int:
        """Current number of connections in a room's broadcast group."""
        return len(self.rooms.get(room_id, ()))

    async def send_chat(self, message: ChatMessage) -> ChatMessage:
        """
        Store a chat message, then broadcast it to its room (sender included).

        Links found in the text fill ``track_url`` / ``image_url``. A failure
        to store the message is logged and the broadcast still happens.

        Returns:
            The message as it was broadcast
        """
        links = extract_links(message.text)
        message = message.model_copy(
            update={
                "time": message.time if message.time is not None else int(time.time() * 1000),
                "track_url": links.track_url or message.track_url,
                "image_url": links.image_url or message.image_url,
            }
        )

        try:
            self.chat_store.append_message(message)
        except TransientPersistenceFault as e:
            logger.warning("Chat message not stored in room %s: %s", message.room, e)
        except Exception:
            logger.exception("Unexpected error storing chat message in room %s", message.room)

        await self.broadcast_to_room(message.room, CHAT_MESSAGE, message.to_wire())
        return message

    async def update_playback(self, room_id: str, update: PlaybackUpdate) -> Optional[PlaybackState]:
        """
        Merge a playback change into the room and broadcast the new state.

        Returns:
            The new state, or None if the room is unknown (nothing is sent)
        """
        new_state = self.room_manager.update_playback_state(room_id, update)
        if new_state is None:
            logger.warning("Playback update for unknown room %s dropped", room_id)
            return None

        await self.broadcast_to_room(
            room_id, PLAYBACK_STATE, PlaybackBroadcast(room=room_id, state=new_state).to_wire()
        )
        return new_state

    async def broadcast_to_room(self, room_id: str, event: str, data: dict) -> None:
        """
        Send an event to every connection in a room.

        Broadcasts to the same room run one at a time, in the order they
        were started, so every member sees events in arrival order even when
        one of them is slow to write. Within a broadcast the members are
        sent to concurrently. A connection whose send fails is treated as
        disconnected and cleaned up.
        """
        if room_id not in self.rooms:
            logger.info("[routing] Skipped %s: room=%s has 0 members", event, room_id)
            return

        frame = envelope(event, data)
        lock = self.send_locks.setdefault(room_id, asyncio.Lock())

        async with lock:
            connections = list(self.rooms.get(room_id, ()))  # Copy to avoid modification during iteration
            logger.debug("📨 %s to room %s: %d clients", event, room_id, len(connections))

            results = await asyncio.gather(
                *(connection.send_json(frame) for connection in connections),
                return_exceptions=True,
            )

        for connection, result in zip(connections, results):
            if isinstance(result, Exception):
                logger.error("Send error: %s", result)
                self.disconnect(connection)

    def get_rooms_info(self) -> Dict[str, dict]:
        """
        Get information about all rooms that currently have members.

        Reported by the /health endpoint as "active_rooms".
        """
        result: Dict[str, dict] = {}
        for room_id, connections in self.rooms.items():
            room = self.room_manager.get_room(room_id)
            result[room_id] = {
                "type": room.kind if room else None,
                "member_count": len(connections),
            }
        return result
