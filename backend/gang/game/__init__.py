"""Game domain: cards, hand ranking, the room state machine and its views.

Nothing in this package touches sockets or the database, so it is shared by
socket handlers, persistence and tests alike.
"""

from .errors import (
    CannotAdvance,
    CapacityError,
    GameError,
    InvalidTurn,
    NoTokenHeld,
    NotFoundError,
    PersistenceError,
    RoomNotFound,
    StateError,
    TokenUnavailable,
    ValidationError,
)
from .room import BETTING_PHASES, GameMode, GameRoom, Phase, PlayerSeat, RoundResult, Spectator
from .views import PlayerState, PublicState, SpectatorState, StateTracker

__all__ = [
    "BETTING_PHASES",
    "CannotAdvance",
    "CapacityError",
    "GameError",
    "GameMode",
    "GameRoom",
    "InvalidTurn",
    "NoTokenHeld",
    "NotFoundError",
    "PersistenceError",
    "Phase",
    "PlayerSeat",
    "PlayerState",
    "PublicState",
    "RoomNotFound",
    "RoundResult",
    "Spectator",
    "SpectatorState",
    "StateError",
    "StateTracker",
    "TokenUnavailable",
    "ValidationError",
]
