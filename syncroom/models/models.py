# syncroom/models/models.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from syncroom.core.errors import MissingReference

RoomKind = Literal["youtube", "soundcloud"]


class WireModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# ROOMS
# ============================================================================

class Room(WireModel):
    id: str
    kind: RoomKind = Field(alias="type")
    youtube_url: Optional[str] = None
    youtube_video_id: Optional[str] = None
    soundcloud_url: Optional[str] = None
    title: Optional[str] = None
    artist: Optional[str] = None
    artwork_url: Optional[str] = None
    created_at: datetime
    current_time: float = 0.0
    is_playing: bool = False
    participants: int = 0


class PlaybackState(WireModel):
    current_time: float = Field(0.0, ge=0)
    is_playing: bool = False
    timestamp: int  # server time in ms, used by clients to extrapolate drift


class PlaybackUpdate(WireModel):
    """Partial playback state. Fields left as None are not touched."""

    current_time: Optional[float] = Field(None, ge=0)
    is_playing: Optional[bool] = None


class VideoRoomRequest(BaseModel):
    kind: Literal["youtube"] = "youtube"
    url: str


class AudioRoomRequest(BaseModel):
    kind: Literal["soundcloud"] = "soundcloud"
    url: Optional[str] = None


RoomRequest = Union[VideoRoomRequest, AudioRoomRequest]


class CreateRoomRequest(WireModel):
    """Loose body of POST /rooms, narrowed with ``to_variant()``."""

    youtube_url: Optional[str] = None
    soundcloud_url: Optional[str] = None
    kind: Optional[RoomKind] = Field(None, alias="type")

    def to_variant(self) -> RoomRequest:
        """
        Pick the room kind this request describes.

        A video URL wins over any audio field. Blank strings count as absent.

        Raises:
            MissingReference: Nothing usable was supplied
        """
        youtube_url = (self.youtube_url or "").strip()
        soundcloud_url = (self.soundcloud_url or "").strip()

        if youtube_url:
            return VideoRoomRequest(url=youtube_url)
        if soundcloud_url or self.kind == "soundcloud":
            return AudioRoomRequest(url=soundcloud_url or None)
        raise MissingReference("youtubeUrl or soundcloudUrl or type is required")


class NowPlayingRequest(WireModel):
    url: str = Field(..., min_length=1)
    title: Optional[str] = None
    artist: Optional[str] = None
    artwork_url: Optional[str] = None


# ============================================================================
# CHAT
# ============================================================================

class ChatMessage(WireModel):
    room: str = Field(..., min_length=1)
    author: str = "Guest"
    text: str
    time: Optional[int] = None
    track_url: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("text must not be empty")
        return value


# ============================================================================
# MEDIA RESOLVER
# ============================================================================

class TrackItem(WireModel):
    id: int
    kind: Literal["track"] = "track"
    title: Optional[str] = None
    username: Optional[str] = None
    artwork_url: Optional[str] = None
    permalink_url: Optional[str] = None
    duration_ms: Optional[int] = None
    stream_url: Optional[str] = None


class PlaylistItem(WireModel):
    id: int
    title: Optional[str] = None
    username: Optional[str] = None
    artwork_url: Optional[str] = None
    permalink_url: Optional[str] = None
    track_count: int = 0
    kind: Literal["playlist"] = "playlist"


class SearchResponse(WireModel):
    items: List[Annotated[Union[TrackItem, PlaylistItem], Field(discriminator="kind")]]
    kind: Literal["tracks", "playlists"]


class PlaylistTracksResponse(WireModel):
    items: List[TrackItem]
