# syncroom/api/routes/chat.py

from typing import List

from fastapi import APIRouter, Depends

from syncroom.api.deps import get_app_state
from syncroom.core.state import AppState
from syncroom.models.models import ChatMessage

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.get("/{room_id}", response_model=List[ChatMessage])
async def get_chat_history(room_id: str, app_state: AppState = Depends(get_app_state)):
    """
    Chat history of a room, oldest first.

    Always 200: a room nobody is in (or that never existed) has an empty history.
    """
    return app_state.chat_store.get_messages(room_id)
