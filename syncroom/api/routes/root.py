# syncroom/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its features.
    """
    return {
        "message": "SyncRoom - shared playback rooms with chat",
        "version": "0.1.0",
        "features": ["youtube_rooms", "soundcloud_rooms", "playback_sync", "room_chat"],
        "endpoints": {
            "websocket": "/ws",
            "rooms": "/rooms",
            "chat": "/chat/{room_id}",
            "soundcloud": "/soundcloud/search",
            "health": "/health",
        },
    }
