"""
tests.test_connection_manager
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Connection gateway: broadcast groups, chat relay and the history cleanup
that follows a room emptying. WebSockets are AsyncMock fakes.
"""
from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import sent_events
from syncroom.core.errors import TransientPersistenceFault
from syncroom.models.models import AudioRoomRequest, ChatMessage, PlaybackUpdate
from syncroom.services.chat_store import ChatStore
from syncroom.services.connection_manager import ConnectionManager
from syncroom.services.room_manager import RoomManager


def chat(room: str, text: str = "hello", author: str = "alice") -> ChatMessage:
    return ChatMessage(room=room, author=author, text=text, time=1)


class TestMembership:

    @pytest.mark.asyncio
    async def test_connect_accepts_and_registers(self, manager, make_ws) -> None:
        ws = make_ws()
        connection_id = await manager.connect(ws)

        ws.accept.assert_awaited_once()
        assert manager.connection_ids[ws] == connection_id
        assert manager.connection_rooms[ws] == set()

    @pytest.mark.asyncio
    async def test_join_sends_confirmation(self, manager, make_ws) -> None:
        a, b = make_ws(), make_ws()
        await manager.connect(a)
        await manager.connect(b)

        await manager.join_room(a, "r1")
        await manager.join_room(b, "r1")

        assert sent_events(a, "room:joined") == [{"room": "r1", "members": 1}]
        assert sent_events(b, "room:joined") == [{"room": "r1", "members": 2}]
        assert manager.room_size("r1") == 2

    @pytest.mark.asyncio
    async def test_join_is_idempotent(self, manager, room_manager, make_ws) -> None:
        room = room_manager.create_room(AudioRoomRequest())
        ws = make_ws()
        await manager.connect(ws)

        await manager.join_room(ws, room.id)
        await manager.join_room(ws, room.id)

        assert manager.room_size(room.id) == 1
        assert room.participants == 1

    @pytest.mark.asyncio
    async def test_join_unknown_room_is_accepted(self, manager, room_manager, make_ws) -> None:
        ws = make_ws()
        await manager.connect(ws)

        await manager.join_room(ws, "no-such-room")

        assert manager.room_size("no-such-room") == 1
        assert room_manager.get_room("no-such-room") is None

    @pytest.mark.asyncio
    async def test_join_after_disconnect_is_ignored(self, manager, make_ws) -> None:
        ws = make_ws()
        await manager.connect(ws)
        manager.disconnect(ws)

        await manager.join_room(ws, "r1")

        assert manager.room_size("r1") == 0
        ws.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_can_join_several_rooms(self, manager, make_ws) -> None:
        ws = make_ws()
        await manager.connect(ws)

        await manager.join_room(ws, "r1")
        await manager.join_room(ws, "r2")

        assert manager.connection_rooms[ws] == {"r1", "r2"}

    @pytest.mark.asyncio
    async def test_participant_counter_follows_members(self, manager, room_manager, make_ws) -> None:
        room = room_manager.create_room(AudioRoomRequest())
        a, b = make_ws(), make_ws()
        await manager.connect(a)
        await manager.connect(b)
        await manager.join_room(a, room.id)
        await manager.join_room(b, room.id)
        assert room.participants == 2

        manager.disconnect(a)
        assert room.participants == 1

        manager.leave_room(b, room.id)
        assert room.participants == 0


class TestChatRelay:

    @pytest.mark.asyncio
    async def test_message_stored_and_broadcast_to_room(self, manager, chat_store, make_ws) -> None:
        a, b, outsider = make_ws(), make_ws(), make_ws()
        for ws in (a, b, outsider):
            await manager.connect(ws)
        await manager.join_room(a, "r1")
        await manager.join_room(b, "r1")
        await manager.join_room(outsider, "r2")

        await manager.send_chat(chat("r1", "hi all"))

        assert [m.text for m in chat_store.get_messages("r1")] == ["hi all"]
        for ws in (a, b):
            received = sent_events(ws, "chat:message")
            assert len(received) == 1
            assert received[0]["text"] == "hi all"
            assert received[0]["author"] == "alice"
        assert sent_events(outsider, "chat:message") == []

    @pytest.mark.asyncio
    async def test_links_attached_before_broadcast(self, manager, chat_store, make_ws) -> None:
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, "r1")

        await manager.send_chat(chat("r1", "https://soundcloud.com/x/y https://example.com/pic.png"))

        received = sent_events(ws, "chat:message")[0]
        assert received["trackUrl"] == "https://soundcloud.com/x/y"
        assert received["imageUrl"] == "https://example.com/pic.png"
        stored = chat_store.get_messages("r1")[0]
        assert stored.track_url == "https://soundcloud.com/x/y"

    @pytest.mark.asyncio
    async def test_missing_time_is_stamped(self, manager, chat_store) -> None:
        sent = await manager.send_chat(ChatMessage(room="r1", text="no time"))
        assert sent.time is not None and sent.time > 0

    @pytest.mark.asyncio
    async def test_broadcast_order_matches_arrival(self, manager, make_ws) -> None:
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, "r1")

        for n in range(5):
            await manager.send_chat(chat("r1", f"m{n}"))

        assert [m["text"] for m in sent_events(ws, "chat:message")] == ["m0", "m1", "m2", "m3", "m4"]

    @pytest.mark.asyncio
    async def test_slow_member_does_not_reorder_concurrent_messages(self, manager, chat_store, make_ws) -> None:
        slow, fast = make_ws(), make_ws()
        for ws in (slow, fast):
            await manager.connect(ws)
            await manager.join_room(ws, "r1")

        release = asyncio.Event()
        writes = 0

        async def stalled_first_write(frame):
            nonlocal writes
            writes += 1
            if writes == 1:
                await release.wait()

        slow.send_json.side_effect = stalled_first_write

        first = asyncio.create_task(manager.send_chat(chat("r1", "m1")))
        second = asyncio.create_task(manager.send_chat(chat("r1", "m2")))
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        # the other member is not held up by the stalled one
        assert [m["text"] for m in sent_events(fast, "chat:message")] == ["m1"]

        release.set()
        await asyncio.gather(first, second)

        history = [m.text for m in chat_store.get_messages("r1")]
        assert history == ["m1", "m2"]
        for ws in (slow, fast):
            assert [m["text"] for m in sent_events(ws, "chat:message")] == history

    @pytest.mark.asyncio
    async def test_persistence_fault_does_not_block_broadcast(self, room_manager, make_ws) -> None:
        store = MagicMock(spec=ChatStore)
        store.append_message.side_effect = TransientPersistenceFault("disk on fire")
        manager = ConnectionManager(room_manager=room_manager, chat_store=store)
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, "r1")

        await manager.send_chat(chat("r1"))

        assert len(sent_events(ws, "chat:message")) == 1

    @pytest.mark.asyncio
    async def test_unexpected_store_error_does_not_block_broadcast(self, room_manager, make_ws) -> None:
        store = MagicMock(spec=ChatStore)
        store.append_message.side_effect = RuntimeError("boom")
        manager = ConnectionManager(room_manager=room_manager, chat_store=store)
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, "r1")

        await manager.send_chat(chat("r1"))

        assert len(sent_events(ws, "chat:message")) == 1

    @pytest.mark.asyncio
    async def test_chat_to_empty_room_is_still_stored(self, manager, chat_store) -> None:
        await manager.send_chat(chat("lonely"))
        assert len(chat_store.get_messages("lonely")) == 1


class TestCleanup:

    @pytest.mark.asyncio
    async def test_last_disconnect_clears_history(self, manager, chat_store, make_ws) -> None:
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, "r1")
        await manager.send_chat(chat("r1"))

        manager.disconnect(ws)

        assert chat_store.get_messages("r1") == []
        assert "r1" not in manager.rooms

    @pytest.mark.asyncio
    async def test_history_kept_while_someone_remains(self, manager, chat_store, make_ws) -> None:
        a, b = make_ws(), make_ws()
        await manager.connect(a)
        await manager.connect(b)
        await manager.join_room(a, "r1")
        await manager.join_room(b, "r1")
        await manager.send_chat(chat("r1"))

        manager.disconnect(a)

        assert len(chat_store.get_messages("r1")) == 1

    @pytest.mark.asyncio
    async def test_room_record_survives_emptying(self, manager, room_manager, chat_store, make_ws) -> None:
        room = room_manager.create_room(AudioRoomRequest())
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, room.id)
        await manager.send_chat(chat(room.id))

        manager.disconnect(ws)

        assert room_manager.get_room(room.id) is room
        assert room_manager.get_playback_state(room.id) is not None
        assert chat_store.get_messages(room.id) == []

    @pytest.mark.asyncio
    async def test_new_room_starts_with_empty_history(self, manager, room_manager, chat_store, make_ws) -> None:
        room = room_manager.create_room(AudioRoomRequest())
        assert chat_store.get_messages(room.id) == []

        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, room.id)
        assert chat_store.get_messages(room.id) == []

    @pytest.mark.asyncio
    async def test_disconnect_cleans_every_joined_room(self, manager, chat_store, make_ws) -> None:
        a, b = make_ws(), make_ws()
        await manager.connect(a)
        await manager.connect(b)
        await manager.join_room(a, "r1")
        await manager.join_room(a, "r2")
        await manager.join_room(b, "r2")
        await manager.send_chat(chat("r1"))
        await manager.send_chat(chat("r2"))

        manager.disconnect(a)

        assert chat_store.get_messages("r1") == []
        assert len(chat_store.get_messages("r2")) == 1

    @pytest.mark.asyncio
    async def test_leave_room_clears_when_empty(self, manager, chat_store, make_ws) -> None:
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, "r1")
        await manager.join_room(ws, "r2")
        await manager.send_chat(chat("r1"))
        await manager.send_chat(chat("r2"))

        manager.leave_room(ws, "r1")

        assert chat_store.get_messages("r1") == []
        assert len(chat_store.get_messages("r2")) == 1
        assert manager.connection_rooms[ws] == {"r2"}

    @pytest.mark.asyncio
    async def test_leave_room_not_joined_is_noop(self, manager, chat_store, make_ws) -> None:
        a, b = make_ws(), make_ws()
        await manager.connect(a)
        await manager.connect(b)
        await manager.join_room(a, "r1")
        await manager.send_chat(chat("r1"))

        manager.leave_room(b, "r1")

        assert manager.room_size("r1") == 1
        assert len(chat_store.get_messages("r1")) == 1

    @pytest.mark.asyncio
    async def test_rooms_info_lists_occupied_rooms(self, manager, room_manager, make_ws) -> None:
        room = room_manager.create_room(AudioRoomRequest())
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, room.id)
        await manager.join_room(ws, "adhoc")

        info = manager.get_rooms_info()

        assert info[room.id] == {"type": "soundcloud", "member_count": 1}
        assert info["adhoc"] == {"type": None, "member_count": 1}

    @pytest.mark.asyncio
    async def test_disconnect_twice_is_noop(self, manager, make_ws) -> None:
        ws = make_ws()
        await manager.connect(ws)
        manager.disconnect(ws)
        manager.disconnect(ws)
        assert ws not in manager.connection_rooms

    @pytest.mark.asyncio
    async def test_rejoin_before_cleanup_keeps_history(self, manager, chat_store, make_ws) -> None:
        a, b = make_ws(), make_ws()
        await manager.connect(a)
        await manager.connect(b)
        await manager.join_room(a, "r1")
        await manager.send_chat(chat("r1"))

        # b lands in the room before a's disconnect is handled
        await manager.join_room(b, "r1")
        manager.disconnect(a)

        assert len(chat_store.get_messages("r1")) == 1

    @pytest.mark.asyncio
    async def test_failed_send_disconnects_connection(self, manager, chat_store, make_ws) -> None:
        good, broken = make_ws(), make_ws()
        await manager.connect(good)
        await manager.connect(broken)
        await manager.join_room(good, "r1")
        await manager.join_room(broken, "r1")
        broken.send_json.side_effect = RuntimeError("socket gone")

        await manager.send_chat(chat("r1"))

        assert broken not in manager.connection_rooms
        assert manager.room_size("r1") == 1
        assert len(sent_events(good, "chat:message")) == 1


class TestPlaybackRelay:

    @pytest.mark.asyncio
    async def test_update_broadcasts_new_state(self, manager, room_manager, make_ws) -> None:
        room = room_manager.create_room(AudioRoomRequest())
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, room.id)

        await manager.update_playback(room.id, PlaybackUpdate(current_time=10))
        state = await manager.update_playback(room.id, PlaybackUpdate(is_playing=True))

        assert state.current_time == 10
        assert state.is_playing is True
        last = sent_events(ws, "playback:state")[-1]
        assert last["room"] == room.id
        assert last["state"]["currentTime"] == 10
        assert last["state"]["isPlaying"] is True

    @pytest.mark.asyncio
    async def test_update_unknown_room_sends_nothing(self, manager, make_ws) -> None:
        ws = make_ws()
        await manager.connect(ws)
        await manager.join_room(ws, "ghost")

        assert await manager.update_playback("ghost", PlaybackUpdate(is_playing=True)) is None
        assert sent_events(ws, "playback:state") == []


@pytest.mark.asyncio
async def test_two_members_full_session(make_ws) -> None:
    """A and B share r1, A talks, both leave: the history is gone."""
    chat_store = ChatStore()
    manager = ConnectionManager(room_manager=RoomManager(), chat_store=chat_store)
    a, b = make_ws(), make_ws()
    await manager.connect(a)
    await manager.connect(b)
    await manager.join_room(a, "r1")
    await manager.join_room(b, "r1")

    await manager.send_chat(chat("r1", "hello from A", author="A"))

    received = sent_events(b, "chat:message")
    assert len(received) == 1
    assert received[0]["text"] == "hello from A"
    assert received[0]["author"] == "A"
    assert received[0]["room"] == "r1"

    manager.disconnect(a)
    assert len(chat_store.get_messages("r1")) == 1
    manager.disconnect(b)
    assert chat_store.get_messages("r1") == []
