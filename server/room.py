"""
Room management for multiplayer Pears games.

This module handles room creation, connection binding, reconnects and
WebSocket fan-out for multiplayer game sessions.

A Room contains:
    - A unique room code for joining (e.g., "K7QX2M")
    - A Game instance with the actual game state (seats, hands, phase)
    - The live connection bound to each seat, if any
    - A lock that serializes every mutation and the snapshots it produces

Rooms live only as long as at least one of their players is connected.
"""

import asyncio
import logging
import random
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import WebSocket

from catalog import CardCatalog
from config import GameSettings
from errors import RoomNotFound
from game import Game
from snapshot import player_state, public_snapshot

logger = logging.getLogger(__name__)


@dataclass
class JoinResult:
    """Outcome of a create/join/rejoin, echoed to the joining connection."""

    player_id: str
    is_host: bool
    rejoined: bool = False

    def to_message(self, room_code: str) -> dict:
        return {
            "type": "joined",
            "room_code": room_code,
            "player_id": self.player_id,
            "is_host": self.is_host,
            "rejoined": self.rejoined,
        }


@dataclass
class Room:
    """
    A game room that hosts one multiplayer Pears game.

    Attributes:
        code: Room code for joining.
        game: The Game instance containing actual game state.
        connections: Player ID -> WebSocket currently bound to that seat.
        game_lock: asyncio.Lock for serializing game mutations and their snapshots.
    """

    code: str
    game: Game = field(default_factory=Game)
    connections: dict[str, WebSocket] = field(default_factory=dict)
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        self.game.room_code = self.code

    def join(
        self,
        name: str,
        websocket: Optional[WebSocket],
        player_id: Optional[str] = None,
    ) -> JoinResult:
        """
        Bind a connection to a seat in this room.

        A known player_id reattaches to its seat in any phase; otherwise a
        new seat is created, which only works in the lobby.

        Args:
            name: Display name from the client.
            websocket: The connection to bind.
            player_id: Reconnect token from an earlier join, if any.

        Returns:
            JoinResult describing the seat.

        Raises:
            GameAlreadyStarted: New player outside the lobby.
        """
        if player_id:
            player = self.game.reconnect(player_id, name)
            if player:
                self._bind(player.id, websocket)
                return JoinResult(
                    player_id=player.id,
                    is_host=self.game.is_host(player.id),
                    rejoined=True,
                )

        player = self.game.add_player(name)
        self._bind(player.id, websocket)
        return JoinResult(player_id=player.id, is_host=self.game.is_host(player.id))

    def _bind(self, player_id: str, websocket: Optional[WebSocket]) -> None:
        if websocket is not None:
            self.connections[player_id] = websocket

    def disconnect(self, player_id: str, websocket: Optional[WebSocket]) -> bool:
        """
        Release a connection's seat.

        Only the connection currently bound to the seat can release it; a
        superseded socket (the player rejoined from a new tab) is ignored.

        Returns:
            True if a seat was marked disconnected.
        """
        if websocket is not None and self.connections.get(player_id) is not websocket:
            return False
        self.connections.pop(player_id, None)
        return self.game.mark_disconnected(player_id) is not None

    def get_connection(self, player_id: str) -> Optional[WebSocket]:
        return self.connections.get(player_id)

    def has_connected_players(self) -> bool:
        return any(p.connected for p in self.game.players)

    async def send_to(self, player_id: str, message: dict) -> None:
        """
        Send a message to a specific player.

        Args:
            player_id: ID of the recipient player.
            message: JSON-serializable message dict.
        """
        websocket = self.connections.get(player_id)
        if not websocket:
            return
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.debug(
                f"Send to player failed: {e}",
                extra={"room_code": self.code, "player_id": player_id},
            )

    async def broadcast(self, message: dict, exclude: Optional[str] = None) -> None:
        """
        Send a message to every connected player in the room.

        Args:
            message: JSON-serializable message dict.
            exclude: Optional player ID to skip.
        """
        for player_id in list(self.connections):
            if player_id != exclude:
                await self.send_to(player_id, message)

    async def broadcast_state(self) -> None:
        """
        Send the public snapshot to the room and each player's private state.

        Call with game_lock held so two mutations' snapshots never interleave.
        """
        await self.broadcast({
            "type": "room_update",
            "room": public_snapshot(self.code, self.game),
        })
        for player_id in list(self.connections):
            state = player_state(self.code, self.game, player_id)
            if state is not None:
                await self.send_to(player_id, {"type": "player_state", "state": state})


class RoomManager:
    """
    Registry of all live game rooms.

    Provides room creation with unique codes, lookup, and garbage collection
    of rooms nobody is connected to. Storage is injected so the plain dict
    can be swapped for another mapping without touching command logic.
    """

    def __init__(
        self,
        catalog: Optional[CardCatalog] = None,
        settings: Optional[GameSettings] = None,
        storage: Optional[MutableMapping[str, Room]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Initialize an empty room manager.

        Args:
            catalog: Card pools for every room's decks.
            settings: Rule settings handed to every new game.
            storage: Mapping of code -> Room (defaults to a new dict).
            rng: Random source for room codes and shuffles.
        """
        self.catalog = catalog if catalog is not None else CardCatalog()
        self.settings = settings if settings is not None else GameSettings()
        self.rooms: MutableMapping[str, Room] = storage if storage is not None else {}
        self.rng = rng or random.Random()

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a room code not used by any live room."""
        alphabet = self.settings.room_code_alphabet
        length = self.settings.room_code_length
        for _ in range(max_attempts):
            code = "".join(self.rng.choices(alphabet, k=length))
            if code not in self.rooms:
                return code
        raise RuntimeError("Could not generate unique room code")

    def create_room(self, host_name: str, websocket: Optional[WebSocket] = None) -> tuple[Room, JoinResult]:
        """
        Create a new room with a unique code and seat its host.

        Args:
            host_name: Display name of the creating player.
            websocket: The creator's connection.

        Returns:
            The new Room and the host's JoinResult.
        """
        code = self._generate_code()
        game = Game(
            catalog=self.catalog,
            settings=self.settings,
            rng=random.Random(self.rng.getrandbits(64)),
        )
        room = Room(code=code, game=game)
        result = room.join(host_name, websocket)
        self.rooms[code] = room
        logger.info("Room created", extra={"room_code": code, "player_id": result.player_id})
        return room, result

    @staticmethod
    def normalize_code(code: Any) -> str:
        return str(code if code is not None else "").strip().upper()

    def get_room(self, code: Any) -> Optional[Room]:
        """
        Get a room by its code (case-insensitive).

        Returns:
            The Room if found, None otherwise.
        """
        return self.rooms.get(self.normalize_code(code))

    def find_room(self, code: Any) -> Room:
        """Like get_room, but raises RoomNotFound."""
        room = self.get_room(code)
        if room is None:
            raise RoomNotFound()
        return room

    def join_room(
        self,
        code: Any,
        name: str,
        websocket: Optional[WebSocket],
        player_id: Optional[str] = None,
    ) -> tuple[Room, JoinResult]:
        """
        Join (or rejoin) the room with the given code.

        Raises:
            RoomNotFound: No live room has that code.
            GameAlreadyStarted: New player outside the lobby.
        """
        room = self.find_room(code)
        return room, room.join(name, websocket, player_id)

    def remove_room(self, code: str) -> None:
        """Delete a room."""
        if code in self.rooms:
            del self.rooms[code]

    def garbage_collect(self, code: str) -> bool:
        """
        Remove the room if none of its players is connected.

        Returns:
            True if the room was removed.
        """
        room = self.rooms.get(code)
        if room is None or room.has_connected_players():
            return False
        self.remove_room(code)
        logger.info("Room closed, no connected players", extra={"room_code": code})
        return True

    def room_count(self) -> int:
        return len(self.rooms)
