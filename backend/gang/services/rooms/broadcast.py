import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from gang.game import GameRoom
from gang.game.views import player_state, spectator_state

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'


@dataclass
class Push:
    event: str
    payload: dict
    to: Optional[str] = None


def state_pushes(room: GameRoom) -> List[Push]:
    """One privatized ``state_update`` per connected viewer.

    Must be called while holding ``room.lock`` so every payload reflects the
    same ``state_version``.
    """
    pushes = []
    for seat in room.seats:
        if seat.connection_id:
            pushes.append(Push('state_update', player_state(room, seat.id).to_dict(), seat.connection_id))
    for spectator in room.spectators.values():
        if spectator.connection_id:
            pushes.append(Push('state_update', spectator_state(room, spectator.id).to_dict(),
                               spectator.connection_id))
    return pushes


def deletion_pushes(room: GameRoom, reason: str) -> List[Push]:
    payload = {'room_id': room.room_id, 'reason': reason}
    sids = [seat.connection_id for seat in room.seats]
    sids += [s.connection_id for s in room.spectators.values()]
    return [Push('room_deleted', dict(payload), sid) for sid in sids if sid]


class Broadcaster:
    """Sends server-initiated pushes over Socket.IO."""

    def __init__(self, socketio, namespace: str = NAMESPACE) -> None:
        self.socketio = socketio
        self.namespace = namespace

    def deliver(self, pushes: Iterable[Push]) -> None:
        for push in pushes:
            self.emit(push.event, push.payload, to=push.to)

    def emit(self, event: str, payload: dict, to: Optional[str] = None) -> None:
        try:
            self.socketio.emit(event, payload, to=to, namespace=self.namespace)
        except Exception:
            # A stale sid resynchronizes on its next rejoin
            logger.debug("[emit-dropped] event=%s to=%s", event, to, exc_info=True)

    def room_list(self, lobby: List[dict]) -> None:
        self.emit('room_list_update', {'rooms': lobby})
