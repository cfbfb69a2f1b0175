# syncroom/api/routes/rooms.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from syncroom.api.deps import get_app_state
from syncroom.core.errors import RoomReferenceError
from syncroom.core.state import AppState
from syncroom.models.models import (
    CreateRoomRequest,
    NowPlayingRequest,
    PlaybackState,
    PlaybackUpdate,
    Room,
)

router = APIRouter(prefix="/rooms", tags=["Rooms"])

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@router.post("", response_model=Room, status_code=status.HTTP_201_CREATED)
async def create_room(request: CreateRoomRequest, app_state: AppState = Depends(get_app_state)):
    """
    Create a room for a YouTube video or a SoundCloud stream.

    Body (any of):
        youtubeUrl: watch, youtu.be or embed URL
        soundcloudUrl: track URL
        type: "soundcloud" to create an audio room with nothing queued yet

    Raises:
        HTTPException: 400 if no usable reference was given or the video
            URL can't be parsed
    """
    try:
        return app_state.room_manager.create_room(request.to_variant())
    except RoomReferenceError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=List[Room])
async def list_rooms(app_state: AppState = Depends(get_app_state)):
    return app_state.room_manager.list_rooms()


@router.get("/{room_id}", response_model=Room)
async def get_room(room_id: str, app_state: AppState = Depends(get_app_state)):
    room = app_state.room_manager.get_room(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


@router.delete("/{room_id}")
async def delete_room(room_id: str, app_state: AppState = Depends(get_app_state)):
    """
    Delete a room and its playback state.

    Connections still joined to the room id stay in its broadcast group;
    only the Room record goes away.
    """
    if not app_state.room_manager.delete_room(room_id):
        raise HTTPException(status_code=404, detail="Room not found")
    return {"status": "deleted", "room_id": room_id}


@router.get("/{room_id}/state", response_model=PlaybackState)
async def get_room_state(room_id: str, app_state: AppState = Depends(get_app_state)):
    state = app_state.room_manager.get_playback_state(room_id)
    if not state:
        raise HTTPException(status_code=404, detail="Room not found")
    return state


@router.patch("/{room_id}/state", response_model=PlaybackState)
async def update_room_state(
    room_id: str,
    update: PlaybackUpdate,
    app_state: AppState = Depends(get_app_state),
):
    """
    Merge a partial playback update and push the new state to the room.

    Only the fields present in the body change. Last write wins.
    """
    state = await app_state.connection_manager.update_playback(room_id, update)
    if not state:
        raise HTTPException(status_code=404, detail="Room not found")
    return state


@router.put("/{room_id}/now-playing", response_model=Room)
async def set_now_playing(
    room_id: str,
    request: NowPlayingRequest,
    app_state: AppState = Depends(get_app_state),
):
    try:
        room = app_state.room_manager.set_now_playing(
            room_id,
            request.url,
            title=request.title,
            artist=request.artist,
            artwork_url=request.artwork_url,
        )
    except RoomReferenceError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room
