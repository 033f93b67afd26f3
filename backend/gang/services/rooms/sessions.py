"""Player and spectator sessions.

Identities (player ids, spectator ids) are stable; the Socket.IO sid they are
bound to is not. This module owns the sid -> identity bindings and every
operation that creates, moves or ends one: create/join/rejoin, spectating,
leaving and returning to the lobby.
"""

import logging
import re
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

from gang.game import (
    GameMode,
    GameRoom,
    NotFoundError,
    RoomNotFound,
    StateError,
    ValidationError,
)
from gang.game.views import player_state, spectator_state
from .broadcast import Broadcaster, Push, deletion_pushes, state_pushes
from .persistence import forget, persist
from .registry import RoomRegistry, normalize_room_id

logger = logging.getLogger(__name__)

T = TypeVar('T')

PLAYER = 'player'
SPECTATOR = 'spectator'

_TAG_RE = re.compile(r'<[^>]+>')
_CONTROL_RE = re.compile(r'[\x00-\x1f\x7f]')


@dataclass(frozen=True)
class Binding:
    room_id: str
    member_id: str
    role: str


def _new_id() -> str:
    return uuid.uuid4().hex


class SessionManager:
    def __init__(self, registry: RoomRegistry, broadcaster: Broadcaster, config) -> None:
        self.registry = registry
        self.broadcaster = broadcaster
        self.config = config
        self._bindings: Dict[str, Binding] = {}
        self._lock = threading.Lock()

    # Bindings --------------------------------------------------------

    def binding(self, sid: str) -> Optional[Binding]:
        return self._bindings.get(sid)

    def _bind(self, sid: str, binding: Binding) -> None:
        with self._lock:
            stale = [other for other, b in self._bindings.items()
                     if other != sid and b == binding]
            for other in stale:
                del self._bindings[other]
            self._bindings[sid] = binding

    def _unbind(self, sid: str) -> Optional[Binding]:
        with self._lock:
            return self._bindings.pop(sid, None)

    def _unbind_room(self, room_id: str) -> None:
        with self._lock:
            for sid in [s for s, b in self._bindings.items() if b.room_id == room_id]:
                del self._bindings[sid]

    def require_player(self, sid: str) -> Tuple[GameRoom, str]:
        binding = self.binding(sid)
        if binding is None or binding.role != PLAYER:
            raise StateError("Not in a game")
        return self.registry.get(binding.room_id), binding.member_id

    def _require(self, sid: str, role: str) -> Tuple[Binding, Optional[GameRoom]]:
        binding = self.binding(sid)
        if binding is None or binding.role != role:
            raise StateError("Not in a game" if role == PLAYER else "Not spectating")
        return binding, self.registry.find(binding.room_id)

    # Mutation helpers ------------------------------------------------

    def check_live(self, room: GameRoom) -> None:
        """Reject work on a room another request already deleted."""
        if self.registry.find(room.room_id) is not room:
            raise RoomNotFound("Room not found")

    def apply(self, room: GameRoom, action: Callable[[], T]) -> T:
        """Run ``action`` under the room lock, persist, then push new state."""
        with room.lock:
            self.check_live(room)
            result = action()
            persist(room)
            pushes = state_pushes(room)
        self.broadcaster.deliver(pushes)
        return result

    def publish_lobby(self) -> None:
        self.broadcaster.room_list(self.registry.lobby())

    def _delete_room(self, room: GameRoom, reason: str) -> List[Push]:
        """Caller holds ``room.lock``; returns the notices to deliver."""
        pushes = deletion_pushes(room, reason)
        self.registry.remove(room.room_id)
        self._unbind_room(room.room_id)
        forget(room.room_id)
        logger.info("[room-deleted] room=%s reason=%s", room.room_id, reason)
        return pushes

    # Input cleaning --------------------------------------------------

    def _clean_name(self, raw, default: str) -> str:
        if raw is None:
            return default
        if not isinstance(raw, str):
            raise ValidationError("Name must be a string")
        name = _CONTROL_RE.sub('', _TAG_RE.sub('', raw)).strip()
        if not name:
            return default
        limit = int(self.config.get('MAX_NAME_LENGTH', 20))
        if len(name) > limit:
            raise ValidationError(f"Name must be 1-{limit} characters")
        return name

    @staticmethod
    def _int_field(data: dict, key: str, default: int) -> int:
        value = data.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{key} must be an integer") from None

    def _release(self, sid: str) -> None:
        """Detach a sid from whatever it was bound to before a new binding.

        Moving to another room gives up the old seat, as ``leave_game`` does.
        """
        binding = self.binding(sid)
        if binding is None:
            return
        if binding.role != PLAYER:
            self.disconnect(sid)
            return
        try:
            self.leave_game(sid)
        except RoomNotFound:
            pass

    # Operations ------------------------------------------------------

    def create_room(self, sid: str, data: dict) -> dict:
        name = self._clean_name(data.get('player_name'), 'Player')
        max_players = self._int_field(data, 'max_players', int(self.config.get('DEFAULT_MAX_PLAYERS', 6)))
        min_players = self._int_field(data, 'min_players', int(self.config.get('DEFAULT_MIN_PLAYERS', 2)))
        seat_limit = int(self.config.get('SEAT_LIMIT', 6))
        if max_players > seat_limit:
            raise ValidationError(f"At most {seat_limit} players per room")
        try:
            game_mode = GameMode(data.get('game_mode') or GameMode.SINGLE.value)
        except ValueError:
            raise ValidationError(f"Unknown game mode: {data.get('game_mode')!r}") from None
        series_length = self._int_field(data, 'series_length', int(self.config.get('SERIES_LENGTH', 5)))

        room = GameRoom(
            self.registry.generate_room_id(),
            max_players=max_players,
            min_players=min_players,
            game_mode=game_mode,
            series_length=series_length,
        )
        player_id = _new_id()
        self._release(sid)
        room.add_player(player_id, name, sid)
        self.registry.add(room)
        self._bind(sid, Binding(room.room_id, player_id, PLAYER))

        with room.lock:
            persist(room)
            state = player_state(room, player_id).to_dict()
        logger.info("[room-created] room=%s player=%s mode=%s", room.room_id, player_id, game_mode.value)
        self.publish_lobby()
        return {'room_id': room.room_id, 'player_id': player_id, 'game_state': state}

    def join_room(self, sid: str, data: dict) -> dict:
        room = self.registry.get(normalize_room_id(data.get('room_id')))
        name = self._clean_name(data.get('player_name'), 'Player')
        current = self.binding(sid)
        if current and current.role == PLAYER and current.room_id == room.room_id:
            raise StateError("Already seated in this room")

        player_id = _new_id()
        with room.lock:
            self.check_live(room)
            room.add_player(player_id, name, sid)
            persist(room)
            state = player_state(room, player_id).to_dict()
            pushes = state_pushes(room)
        self._release(sid)
        self._bind(sid, Binding(room.room_id, player_id, PLAYER))
        self.broadcaster.deliver(pushes)
        logger.info("[player-joined] room=%s player=%s", room.room_id, player_id)
        self.publish_lobby()
        return {'room_id': room.room_id, 'player_id': player_id, 'game_state': state}

    def join_as_spectator(self, sid: str, data: dict) -> dict:
        room = self.registry.get(normalize_room_id(data.get('room_id')))
        name = self._clean_name(data.get('spectator_name'), 'Spectator')
        spectator_id = data.get('spectator_id')
        if not isinstance(spectator_id, str) or not spectator_id or len(spectator_id) > 32:
            spectator_id = _new_id()

        self._release(sid)
        with room.lock:
            self.check_live(room)
            held = room.spectators.get(spectator_id)
            if held is not None and held.connection_id is not None:
                # Someone is still watching under that id
                spectator_id = _new_id()
            room.add_spectator(spectator_id, name, sid)
            persist(room)
            state = spectator_state(room, spectator_id).to_dict()
            pushes = state_pushes(room)
        self._bind(sid, Binding(room.room_id, spectator_id, SPECTATOR))
        self.broadcaster.deliver(pushes)
        logger.info("[spectator-joined] room=%s spectator=%s", room.room_id, spectator_id)
        self.publish_lobby()
        return {'room_id': room.room_id, 'spectator_id': spectator_id, 'game_state': state}

    def rejoin_game(self, sid: str, data: dict) -> dict:
        room_id = normalize_room_id(data.get('room_id'))
        player_id = data.get('player_id')
        if not isinstance(player_id, str) or not player_id:
            raise ValidationError("player_id is required")
        room = self.registry.find(room_id)
        if room is None:
            raise NotFoundError("Game no longer exists")

        current = self.binding(sid)
        if current and not (current.role == PLAYER and current.member_id == player_id):
            self._release(sid)
        with room.lock:
            self.check_live(room)
            if not room.has_player(player_id):
                raise NotFoundError("Seat no longer exists")
            room.reconnect_player(player_id, sid)
            persist(room)
            state = player_state(room, player_id).to_dict()
            pushes = state_pushes(room)
        self._bind(sid, Binding(room.room_id, player_id, PLAYER))
        self.broadcaster.deliver(pushes)
        logger.info("[player-rejoined] room=%s player=%s version=%d",
                    room.room_id, player_id, state['state_version'])
        return {'room_id': room.room_id, 'player_id': player_id, 'game_state': state}

    def leave_game(self, sid: str) -> dict:
        binding, room = self._require(sid, PLAYER)
        self._unbind(sid)
        if room is None:
            return {}
        with room.lock:
            self.check_live(room)
            if room.remove_player(binding.member_id):
                reason = ('No players remaining' if room.player_count == 0
                          else 'Not enough players to continue')
                pushes = self._delete_room(room, reason)
            else:
                persist(room)
                pushes = state_pushes(room)
        self.broadcaster.deliver(pushes)
        logger.info("[player-left] room=%s player=%s", room.room_id, binding.member_id)
        self.publish_lobby()
        return {}

    def leave_spectator(self, sid: str) -> dict:
        binding, room = self._require(sid, SPECTATOR)
        self._unbind(sid)
        if room is None:
            return {}
        self.apply(room, lambda: room.remove_spectator(binding.member_id))
        self.publish_lobby()
        return {}

    def return_to_lobby(self, sid: str) -> dict:
        binding, room = self._require(sid, PLAYER)
        if room is None:
            self._unbind(sid)
            raise RoomNotFound("Room not found")
        self.apply(room, lambda: room.set_player_at_table(binding.member_id, False))
        return {}

    def disconnect(self, sid: str) -> None:
        """Transport dropped: seats are kept for a rejoin, spectators leave."""
        binding = self._unbind(sid)
        if binding is None:
            return
        room = self.registry.find(binding.room_id)
        if room is None:
            return

        def detach():
            if binding.role == PLAYER:
                if room.has_player(binding.member_id) and room.get_seat(binding.member_id).connection_id == sid:
                    room.mark_disconnected(binding.member_id)
            else:
                spectator = room.spectators.get(binding.member_id)
                if spectator is not None and spectator.connection_id == sid:
                    room.remove_spectator(binding.member_id)

        try:
            self.apply(room, detach)
        except RoomNotFound:
            return
        logger.info("[disconnect] room=%s %s=%s", room.room_id, binding.role, binding.member_id)
        if binding.role == SPECTATOR:
            self.publish_lobby()

    def get_game_state(self, sid: str) -> dict:
        binding = self.binding(sid)
        if binding is None:
            raise StateError("Not in a game")
        room = self.registry.get(binding.room_id)
        with room.lock:
            if binding.role == PLAYER:
                state = player_state(room, binding.member_id)
            else:
                state = spectator_state(room, binding.member_id)
            return {'game_state': state.to_dict()}

    def get_room_list(self, sid: str, data: dict) -> dict:
        active = None
        binding = self.binding(sid)
        if binding is not None and binding.room_id in self.registry:
            active = binding.room_id
        elif isinstance(data.get('player_id'), str):
            room = self.registry.room_of_player(data['player_id'])
            active = room.room_id if room else None
        return {'rooms': self.registry.lobby(), 'my_active_room_id': active}

    def discard_rooms(self, room_ids, reason: str) -> List[str]:
        """Drop rooms picked by the storage sweep and notify their viewers.

        Each room leaves the registry while its lock is held, so an action
        either finishes first or fails ``check_live`` afterwards.
        """
        removed: List[str] = []
        pushes: List[Push] = []
        for room_id in room_ids:
            room = self.registry.find(room_id)
            if room is None:
                continue
            with room.lock:
                if self.registry.find(room_id) is not room:
                    continue
                pushes.extend(deletion_pushes(room, reason))
                self.registry.remove(room_id)
                self._unbind_room(room_id)
            removed.append(room_id)
            logger.info("[room-deleted] room=%s reason=%s", room_id, reason)
        self.broadcaster.deliver(pushes)
        if removed:
            self.publish_lobby()
        return removed
