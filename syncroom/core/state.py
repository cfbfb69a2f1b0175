# syncroom/core/state.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from syncroom.core.config import settings
from syncroom.services.chat_store import ChatStore
from syncroom.services.connection_manager import ConnectionManager
from syncroom.services.room_manager import RoomManager
from syncroom.services.soundcloud_client import SoundCloudClient


class AppState:
    """
    Everything one running app owns.

    Built once per FastAPI app (see ``syncroom.main.create_app``) instead of
    living in module globals, so every test can start from empty stores.
    """

    def __init__(
        self,
        room_manager: Optional[RoomManager] = None,
        chat_store: Optional[ChatStore] = None,
        soundcloud: Optional[SoundCloudClient] = None,
    ) -> None:
        self.room_manager = room_manager or RoomManager()
        self.chat_store = chat_store or ChatStore(max_messages=settings.CHAT_HISTORY_LIMIT)
        self.connection_manager = ConnectionManager(
            room_manager=self.room_manager, chat_store=self.chat_store
        )
        self.soundcloud = soundcloud or SoundCloudClient(
            client_id=settings.SOUNDCLOUD_CLIENT_ID, base_url=settings.SOUNDCLOUD_API_URL
        )

        # Metrics
        self.message_counter: int = 0
        self.app_start_time: datetime = datetime.now(timezone.utc)
