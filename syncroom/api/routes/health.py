# syncroom/api/routes/health.py

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from syncroom.api.deps import get_app_state
from syncroom.core.state import AppState

router = APIRouter()

@router.get("/health")
async def health(app_state: AppState = Depends(get_app_state)):
    """
    Health check endpoint.

    Returns current system status, connection counts and room counts.

    Returns:
        dict: Status, connection count, room count, rooms with members,
            per-room member counts, rooms holding chat history, chat
            messages relayed, uptime
    """
    uptime_seconds = (datetime.now(timezone.utc) - app_state.app_start_time).total_seconds()
    return {
        "status": "healthy",
        "connections": len(app_state.connection_manager.connection_rooms),
        "rooms": len(app_state.room_manager.rooms),
        "active_rooms_with_members": len(app_state.connection_manager.rooms),
        "active_rooms": app_state.connection_manager.get_rooms_info(),
        "rooms_with_chat_history": app_state.chat_store.room_count(),
        "total_messages": app_state.message_counter,
        "uptime_seconds": round(uptime_seconds, 1),
    }
