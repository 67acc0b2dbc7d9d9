"""
Test suite for Room and RoomManager.

Covers:
- Room creation and unique codes
- Case-insensitive room lookup
- Join, rejoin and the stale-socket guard on disconnect
- Garbage collection of rooms nobody is connected to
- Message broadcast, send_to and per-player state fan-out

Run with: pytest test_room.py -v
"""

import random

import pytest

from catalog import CardCatalog
from config import GameSettings
from errors import GameAlreadyStarted, RoomNotFound
from room import JoinResult, Room, RoomManager


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)

    def messages_of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == msg_type]


class BrokenWebSocket(MockWebSocket):
    """WebSocket whose peer has already gone away."""

    async def send_json(self, data: dict):
        raise RuntimeError("connection closed")


def make_catalog() -> CardCatalog:
    return CardCatalog.from_texts(
        [f"Red {i}" for i in range(40)],
        [f"Green {i}" for i in range(8)],
    )


def make_room_manager(**kwargs) -> RoomManager:
    kwargs.setdefault("catalog", make_catalog())
    kwargs.setdefault("rng", random.Random(5))
    return RoomManager(**kwargs)


# =============================================================================
# RoomManager tests
# =============================================================================

class TestRoomManagerCreate:

    def test_create_room_returns_room_and_host(self):
        rm = make_room_manager()
        ws = MockWebSocket()
        room, result = rm.create_room("Alice", ws)

        assert room.code in rm.rooms
        assert len(room.code) == 6
        assert result.is_host is True
        assert result.rejoined is False
        assert room.game.host_player_id == result.player_id
        assert room.get_connection(result.player_id) is ws

    def test_code_uses_alphabet(self):
        rm = make_room_manager()
        alphabet = set(rm.settings.room_code_alphabet)
        for _ in range(20):
            room, _ = rm.create_room("Alice")
            assert set(room.code) <= alphabet

    def test_create_multiple_rooms_unique_codes(self):
        rm = make_room_manager()
        codes = {rm.create_room("Alice")[0].code for _ in range(50)}
        assert len(codes) == 50
        assert rm.room_count() == 50

    def test_code_collision_retried(self):
        settings = GameSettings(room_code_alphabet="AB", room_code_length=1)
        rm = make_room_manager(settings=settings)
        first, _ = rm.create_room("Alice")
        second, _ = rm.create_room("Bob")
        assert {first.code, second.code} == {"A", "B"}

    def test_code_space_exhausted(self):
        settings = GameSettings(room_code_alphabet="A", room_code_length=1)
        rm = make_room_manager(settings=settings)
        rm.create_room("Alice")
        with pytest.raises(RuntimeError):
            rm.create_room("Bob")

    def test_game_shares_catalog_and_settings(self):
        catalog = make_catalog()
        settings = GameSettings(win_score=3)
        rm = make_room_manager(catalog=catalog, settings=settings)
        room, _ = rm.create_room("Alice")
        assert room.game.catalog is catalog
        assert room.game.settings is settings
        assert room.game.room_code == room.code

    def test_injected_storage_is_used(self):
        storage = {}
        rm = make_room_manager(storage=storage)
        room, _ = rm.create_room("Alice")
        assert storage[room.code] is room

    def test_remove_room(self):
        rm = make_room_manager()
        room, _ = rm.create_room("Alice")
        rm.remove_room(room.code)
        assert room.code not in rm.rooms

    def test_remove_nonexistent_room(self):
        rm = make_room_manager()
        rm.remove_room("ZZZZZZ")  # Should not raise


class TestRoomManagerLookup:

    def test_get_room_case_insensitive(self):
        rm = make_room_manager()
        room, _ = rm.create_room("Alice")

        assert rm.get_room(room.code.lower()) is room
        assert rm.get_room(f"  {room.code} ") is room

    def test_get_room_not_found(self):
        rm = make_room_manager()
        assert rm.get_room("ZZZZZZ") is None
        assert rm.get_room(None) is None

    def test_find_room_raises(self):
        rm = make_room_manager()
        with pytest.raises(RoomNotFound):
            rm.find_room("ZZZZZZ")

    def test_join_room(self):
        rm = make_room_manager()
        room, _ = rm.create_room("Alice", MockWebSocket())
        joined, result = rm.join_room(room.code.lower(), "Bob", MockWebSocket())

        assert joined is room
        assert result.is_host is False
        assert len(room.game.players) == 2

    def test_join_unknown_room(self):
        rm = make_room_manager()
        with pytest.raises(RoomNotFound):
            rm.join_room("ZZZZZZ", "Bob", MockWebSocket())


class TestGarbageCollect:

    def test_keeps_room_with_connected_player(self):
        rm = make_room_manager()
        room, _ = rm.create_room("Alice", MockWebSocket())
        assert rm.garbage_collect(room.code) is False
        assert room.code in rm.rooms

    def test_removes_room_when_everyone_left(self):
        rm = make_room_manager()
        ws = MockWebSocket()
        room, result = rm.create_room("Alice", ws)
        room.disconnect(result.player_id, ws)

        assert rm.garbage_collect(room.code) is True
        assert rm.get_room(room.code) is None

    def test_unknown_code(self):
        rm = make_room_manager()
        assert rm.garbage_collect("ZZZZZZ") is False


# =============================================================================
# Room seat management
# =============================================================================

class TestRoomJoin:

    def make_room(self) -> Room:
        return make_room_manager().create_room("Alice", MockWebSocket())[0]

    def test_new_player_gets_seat(self):
        room = self.make_room()
        ws = MockWebSocket()
        result = room.join("Bob", ws)

        assert room.game.get_player(result.player_id).name == "Bob"
        assert room.get_connection(result.player_id) is ws

    def test_rejoin_keeps_seat(self):
        room = self.make_room()
        old_ws = MockWebSocket()
        first = room.join("Bob", old_ws)
        room.disconnect(first.player_id, old_ws)

        new_ws = MockWebSocket()
        again = room.join("Robert", new_ws, player_id=first.player_id)

        assert again.player_id == first.player_id
        assert again.rejoined is True
        assert len(room.game.players) == 2
        player = room.game.get_player(first.player_id)
        assert player.connected is True
        assert player.name == "Robert"
        assert room.get_connection(first.player_id) is new_ws

    def test_unknown_player_id_gets_new_seat(self):
        room = self.make_room()
        result = room.join("Bob", MockWebSocket(), player_id="not-a-seat")
        assert result.player_id != "not-a-seat"
        assert result.rejoined is False

    def test_new_player_rejected_after_start(self):
        room = self.make_room()
        room.join("Bob", MockWebSocket())
        room.game.start(room.game.host_player_id)

        with pytest.raises(GameAlreadyStarted):
            room.join("Carol", MockWebSocket())

    def test_rejoin_allowed_after_start(self):
        room = self.make_room()
        ws = MockWebSocket()
        bob = room.join("Bob", ws)
        room.game.start(room.game.host_player_id)
        hand = list(room.game.hand(bob.player_id))
        room.disconnect(bob.player_id, ws)

        result = room.join("", MockWebSocket(), player_id=bob.player_id)
        assert result.rejoined is True
        assert room.game.hand(bob.player_id) == hand
        assert room.game.get_player(bob.player_id).name == "Bob"

    def test_join_result_message(self):
        result = JoinResult(player_id="abc", is_host=True)
        assert result.to_message("ROOM42") == {
            "type": "joined",
            "room_code": "ROOM42",
            "player_id": "abc",
            "is_host": True,
            "rejoined": False,
        }


class TestRoomDisconnect:

    def test_disconnect_marks_player(self):
        ws = MockWebSocket()
        room, result = make_room_manager().create_room("Alice", ws)
        assert room.disconnect(result.player_id, ws) is True
        assert room.game.get_player(result.player_id).connected is False
        assert room.get_connection(result.player_id) is None
        assert room.has_connected_players() is False

    def test_stale_socket_ignored(self):
        room, _ = make_room_manager().create_room("Alice", MockWebSocket())
        old_ws = MockWebSocket()
        bob = room.join("Bob", old_ws)
        new_ws = MockWebSocket()
        room.join("Bob", new_ws, player_id=bob.player_id)

        assert room.disconnect(bob.player_id, old_ws) is False
        assert room.game.get_player(bob.player_id).connected is True
        assert room.get_connection(bob.player_id) is new_ws

    def test_disconnect_unknown_player(self):
        room, _ = make_room_manager().create_room("Alice", MockWebSocket())
        assert room.disconnect("nobody", None) is False


# =============================================================================
# Broadcast
# =============================================================================

class TestBroadcast:

    @pytest.mark.asyncio
    async def test_broadcast_to_all(self):
        ws1 = MockWebSocket()
        room, _ = make_room_manager().create_room("Alice", ws1)
        ws2 = MockWebSocket()
        room.join("Bob", ws2)

        await room.broadcast({"type": "test"})

        assert ws1.messages == [{"type": "test"}]
        assert ws2.messages == [{"type": "test"}]

    @pytest.mark.asyncio
    async def test_broadcast_excludes(self):
        ws1 = MockWebSocket()
        room, alice = make_room_manager().create_room("Alice", ws1)
        ws2 = MockWebSocket()
        room.join("Bob", ws2)

        await room.broadcast({"type": "test"}, exclude=alice.player_id)

        assert ws1.messages == []
        assert len(ws2.messages) == 1

    @pytest.mark.asyncio
    async def test_send_to_failure_does_not_raise(self):
        room, alice = make_room_manager().create_room("Alice", BrokenWebSocket())
        ws2 = MockWebSocket()
        room.join("Bob", ws2)

        await room.broadcast({"type": "test"})

        assert ws2.messages == [{"type": "test"}]

    @pytest.mark.asyncio
    async def test_send_to_unbound_player(self):
        room, _ = make_room_manager().create_room("Alice")
        await room.send_to("nobody", {"type": "test"})  # Should not raise

    @pytest.mark.asyncio
    async def test_broadcast_state(self):
        ws1 = MockWebSocket()
        room, alice = make_room_manager().create_room("Alice", ws1)
        ws2 = MockWebSocket()
        bob = room.join("Bob", ws2)
        room.game.start(alice.player_id)

        await room.broadcast_state()

        for ws, seat in ((ws1, alice), (ws2, bob)):
            assert [m["type"] for m in ws.messages] == ["room_update", "player_state"]
            assert ws.messages[0]["room"]["room_code"] == room.code
            state = ws.messages[1]["state"]
            assert state["player_id"] == seat.player_id
            assert [c["id"] for c in state["hand"]] == [c.id for c in room.game.hand(seat.player_id)]

    @pytest.mark.asyncio
    async def test_broadcast_state_skips_disconnected(self):
        ws1 = MockWebSocket()
        room, alice = make_room_manager().create_room("Alice", ws1)
        ws2 = MockWebSocket()
        bob = room.join("Bob", ws2)
        room.disconnect(bob.player_id, ws2)

        await room.broadcast_state()

        assert len(ws1.messages) == 2
        assert ws2.messages == []
