# syncroom/services/chat_store.py
from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List

from syncroom.core.logging import get_logger
from syncroom.models.models import ChatMessage

logger = get_logger(__name__)

MAX_MESSAGES_PER_ROOM = 500


# ============================================================================
# CHAT HISTORY STORE
# ============================================================================
class ChatStore:
    """
    Per-room chat history, kept only while someone is in the room.

    Each room log is a sliding window: once it holds ``max_messages``
    entries, every append drops the oldest one. The whole log is removed
    with ``clear_room`` when the room's last connection goes away.

    Attributes:
        logs: Maps room_id -> messages in arrival order
    """

    def __init__(self, max_messages: int = MAX_MESSAGES_PER_ROOM) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.max_messages = max_messages
        self.logs: Dict[str, Deque[ChatMessage]] = {}

    def append_message(self, message: ChatMessage) -> None:
        log = self.logs.get(message.room)
        if log is None:
            log = self.logs[message.room] = deque(maxlen=self.max_messages)
        log.append(message)
        logger.debug("Saved chat message in %s (%d kept)", message.room, len(log))

    def get_messages(self, room_id: str) -> List[ChatMessage]:
        """Return the room's history, oldest first. Empty when there is none."""
        return list(self.logs.get(room_id, ()))

    def clear_room(self, room_id: str) -> None:
        """Drop a room's whole history. Clearing an unknown room is a no-op."""
        if self.logs.pop(room_id, None) is not None:
            logger.info("🧹 Cleared chat history for room %s", room_id)

    def room_count(self) -> int:
        return len(self.logs)
