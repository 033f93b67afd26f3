from dataclasses import dataclass

from .broadcast import Broadcaster
from .gameplay import GamePlay
from .registry import RoomRegistry
from .sessions import SessionManager


@dataclass
class GangServices:
    """Everything socket handlers and routes need, built once per app."""

    registry: RoomRegistry
    broadcaster: Broadcaster
    sessions: SessionManager
    gameplay: GamePlay

    @classmethod
    def build(cls, socketio, config) -> 'GangServices':
        registry = RoomRegistry()
        broadcaster = Broadcaster(socketio)
        sessions = SessionManager(registry, broadcaster, config)
        return cls(registry, broadcaster, sessions, GamePlay(sessions))


__all__ = ["GangServices", "GamePlay", "RoomRegistry", "SessionManager", "Broadcaster"]
