# syncroom/services/room_manager.py
from __future__ import annotations

import re
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Pattern

from syncroom.core.errors import InvalidReference
from syncroom.core.logging import get_logger
from syncroom.models.models import (
    AudioRoomRequest,
    PlaybackState,
    PlaybackUpdate,
    Room,
    RoomRequest,
    VideoRoomRequest,
)

logger = get_logger(__name__)

# Tried in order, first match wins
VIDEO_ID_PATTERNS: List[Pattern[str]] = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&\n?#]+)"),
    re.compile(r"youtube\.com/watch\?.*v=([^&\n?#]+)"),
]

PlaybackMerge = Callable[[PlaybackState, PlaybackUpdate, int], PlaybackState]


def extract_video_id(url: str) -> Optional[str]:
    """
    Extract the video id from a watch, short-link or embed URL.

    Returns:
        The id, or None when no known URL shape matches
    """
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match and match.group(1):
            return match.group(1)
    return None


def last_writer_wins(current: PlaybackState, update: PlaybackUpdate, now_ms: int) -> PlaybackState:
    """
    Apply the fields present in ``update`` on top of ``current``.

    No version check: whatever arrives last wins, even if it is stale.
    """
    changes = update.model_dump(exclude_none=True)
    return current.model_copy(update={**changes, "timestamp": now_ms})


def _now_ms() -> int:
    return int(time.time() * 1000)


# ============================================================================
# ROOM DIRECTORY
# ============================================================================
class RoomManager:
    """
    Owns every Room and its PlaybackState, in memory only.

    Rooms live until the process ends or a caller explicitly deletes them.
    Emptying a room of connections does NOT delete it; only its chat history
    goes away (see ConnectionManager).

    Attributes:
        rooms: Maps room_id -> Room
        states: Maps room_id -> PlaybackState (always the same keys as rooms)

    Usage:
        room_manager = RoomManager()
        room = room_manager.create_room(VideoRoomRequest(url="https://youtu.be/abc"))
        room_manager.update_playback_state(room.id, PlaybackUpdate(is_playing=True))
    """

    def __init__(
        self,
        merge: PlaybackMerge = last_writer_wins,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.rooms: Dict[str, Room] = {}
        self.states: Dict[str, PlaybackState] = {}
        self._merge = merge
        self._clock = clock

    def create_room(self, request: RoomRequest) -> Room:
        """
        Create a room together with its initial playback state.

        Args:
            request: An already narrowed VideoRoomRequest or AudioRoomRequest

        Returns:
            Room: The newly created room

        Raises:
            InvalidReference: The video URL matches none of the known shapes
        """
        fields: dict = {}
        if isinstance(request, VideoRoomRequest):
            video_id = extract_video_id(request.url)
            if not video_id:
                raise InvalidReference(f"Invalid YouTube URL: {request.url}")
            fields = {"kind": "youtube", "youtube_url": request.url, "youtube_video_id": video_id}
        elif isinstance(request, AudioRoomRequest):
            fields = {"kind": "soundcloud", "soundcloud_url": request.url}
        else:
            raise TypeError(f"Unsupported room request: {type(request).__name__}")

        room = Room(
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            **fields,
        )
        self.rooms[room.id] = room
        self.states[room.id] = PlaybackState(current_time=0.0, is_playing=False, timestamp=self._clock())

        logger.info("✓ Created %s room %s", room.kind, room.id)
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def get_playback_state(self, room_id: str) -> Optional[PlaybackState]:
        return self.states.get(room_id)

    def list_rooms(self) -> List[Room]:
        return list(self.rooms.values())

    def update_playback_state(self, room_id: str, update: PlaybackUpdate) -> Optional[PlaybackState]:
        """
        Merge a partial update into the room's playback state.

        The merged time/playing fields are mirrored onto the Room record.

        Returns:
            The new full state, or None if the room is unknown
        """
        current = self.states.get(room_id)
        if current is None:
            return None

        new_state = self._merge(current, update, self._clock())
        self.states[room_id] = new_state

        room = self.rooms.get(room_id)
        if room:
            room.current_time = new_state.current_time
            room.is_playing = new_state.is_playing

        return new_state

    def set_now_playing(
        self,
        room_id: str,
        reference: str,
        title: Optional[str] = None,
        artist: Optional[str] = None,
        artwork_url: Optional[str] = None,
    ) -> Optional[Room]:
        """
        Swap the item playing in a room. Playback time and state are untouched.

        For a soundcloud room ``reference`` is the stream locator; for a
        youtube room it is a video URL.

        Raises:
            InvalidReference: A youtube room was given an unparseable URL
        """
        room = self.rooms.get(room_id)
        if not room:
            return None

        if room.kind == "youtube":
            video_id = extract_video_id(reference)
            if not video_id:
                raise InvalidReference(f"Invalid YouTube URL: {reference}")
            room.youtube_url = reference
            room.youtube_video_id = video_id
        else:
            room.soundcloud_url = reference

        room.title = title
        room.artist = artist
        room.artwork_url = artwork_url

        logger.info("♪ Now playing in %s: %s", room_id, title or reference)
        return room

    def add_participant(self, room_id: str) -> None:
        room = self.rooms.get(room_id)
        if room:
            room.participants += 1

    def remove_participant(self, room_id: str) -> None:
        room = self.rooms.get(room_id)
        if room:
            room.participants = max(0, room.participants - 1)

    def delete_room(self, room_id: str) -> bool:
        """
        Delete a room and its playback state.

        Returns:
            True if room was deleted, False if room didn't exist
        """
        self.states.pop(room_id, None)
        if room_id in self.rooms:
            del self.rooms[room_id]
            logger.info("✓ Deleted room: %s", room_id)
            return True
        return False
