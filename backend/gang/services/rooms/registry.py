import logging
import random
import string
import threading
from typing import Dict, Iterable, List, Optional

from gang.game import GameRoom, RoomNotFound, ValidationError

logger = logging.getLogger(__name__)

ROOM_CODE_LENGTH = 6
ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_ROOM_CODE_ATTEMPTS = 20


def normalize_room_id(raw) -> str:
    """Upper-case and validate a client-supplied room code."""
    if not isinstance(raw, str):
        raise ValidationError("room_id is required")
    room_id = raw.strip().upper()
    if len(room_id) != ROOM_CODE_LENGTH or any(ch not in ROOM_CODE_ALPHABET for ch in room_id):
        raise ValidationError(f"Invalid room code: {raw!r}")
    return room_id


class RoomRegistry:
    """In-memory index of live rooms, keyed by room id.

    One instance is built by the app factory and handed to every component
    that needs room lookup.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, GameRoom] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def generate_room_id(self) -> str:
        for _ in range(MAX_ROOM_CODE_ATTEMPTS):
            code = ''.join(random.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))
            if code not in self._rooms:
                return code
        raise RuntimeError("Failed to generate unique room code")

    def add(self, room: GameRoom) -> GameRoom:
        with self._lock:
            if room.room_id in self._rooms:
                raise ValueError(f"Room {room.room_id} already registered")
            self._rooms[room.room_id] = room
        return room

    def get(self, room_id: str) -> GameRoom:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound("Room not found")
        return room

    def find(self, room_id: Optional[str]) -> Optional[GameRoom]:
        if room_id is None:
            return None
        return self._rooms.get(room_id)

    def remove(self, room_id: str) -> Optional[GameRoom]:
        with self._lock:
            return self._rooms.pop(room_id, None)

    def rooms(self) -> List[GameRoom]:
        with self._lock:
            return list(self._rooms.values())

    def room_of_player(self, player_id: str) -> Optional[GameRoom]:
        for room in self.rooms():
            if room.has_player(player_id):
                return room
        return None

    def lobby(self) -> List[dict]:
        rooms = sorted(self.rooms(), key=lambda r: r.created_at, reverse=True)
        return [room.lobby_info() for room in rooms]

    def restore(self, rooms: Iterable[GameRoom]) -> int:
        """Register rooms recovered from storage; connections start unbound."""
        restored = 0
        with self._lock:
            for room in rooms:
                if room.room_id in self._rooms:
                    continue
                for seat in room.seats:
                    seat.connection_id = None
                    seat.connected = False
                room.spectators.clear()
                self._rooms[room.room_id] = room
                restored += 1
        if restored:
            logger.info("[restore] recovered %d room(s)", restored)
        return restored

