"""Outbound state shapes.

Three views leave the server: the public table, a player's private view (adds
their own pocket cards) and the spectator view (adds everybody's pocket
cards). Each one carries the room's ``state_version`` so consumers can drop
pushes that arrive out of order.
"""
from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from .room import GameRoom


@dataclass
class PublicState:
    room_id: str
    phase: str
    state_version: int
    player_count: int
    max_players: int
    min_players: int
    players: List[Dict[str, object]]
    spectators: List[Dict[str, object]]
    community_cards: List[str]
    token_pool: List[int]
    token_assignments: Dict[str, int]
    current_turn: Optional[str]
    betting_round_history: List[dict]
    action_log: List[dict]
    all_players_have_tokens: bool
    host_id: Optional[str]
    dealer_id: Optional[str]
    game_mode: str
    series_length: int
    series_wins: int
    series_losses: int
    series_complete: bool
    last_game_result: Optional[dict]
    view: str = 'public'

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PlayerState(PublicState):
    my_player_id: str = ''
    my_pocket_cards: List[str] = field(default_factory=list)
    is_spectator: bool = False
    view: str = 'player'


@dataclass
class SpectatorState(PublicState):
    my_spectator_id: Optional[str] = None
    all_pocket_cards: Dict[str, List[str]] = field(default_factory=dict)
    is_spectator: bool = True
    view: str = 'spectator'


def _public_fields(room: GameRoom) -> dict:
    return {
        'room_id': room.room_id,
        'phase': room.phase.value,
        'state_version': room.state_version,
        'player_count': room.player_count,
        'max_players': room.max_players,
        'min_players': room.min_players,
        'players': [
            {
                'id': seat.id,
                'name': seat.name,
                'ready': seat.ready,
                'at_table': seat.at_table,
                'connected': seat.connected,
            }
            for seat in room.seats
        ],
        'spectators': [{'id': s.id, 'name': s.name} for s in room.spectators.values()],
        'community_cards': list(room.community_cards),
        'token_pool': list(room.token_pool),
        'token_assignments': dict(room.token_assignments),
        'current_turn': room.current_turn,
        'betting_round_history': copy.deepcopy(room.betting_round_history),
        'action_log': copy.deepcopy(room.action_log),
        'all_players_have_tokens': room.all_players_have_tokens(),
        'host_id': room.host_id,
        'dealer_id': room.dealer_id,
        'game_mode': room.game_mode.value,
        'series_length': room.series_length,
        'series_wins': room.series_wins,
        'series_losses': room.series_losses,
        'series_complete': room.series_complete,
        'last_game_result': copy.deepcopy(room.last_game_result),
    }


def public_state(room: GameRoom) -> PublicState:
    return PublicState(**_public_fields(room))


def player_state(room: GameRoom, player_id: str) -> PlayerState:
    seat = room.get_seat(player_id)
    return PlayerState(
        **_public_fields(room),
        my_player_id=seat.id,
        my_pocket_cards=list(seat.pocket_cards),
    )


def spectator_state(room: GameRoom, spectator_id: Optional[str] = None) -> SpectatorState:
    if spectator_id is not None:
        room.get_spectator(spectator_id)
    return SpectatorState(
        **_public_fields(room),
        my_spectator_id=spectator_id,
        all_pocket_cards={seat.id: list(seat.pocket_cards) for seat in room.seats},
    )


class StateTracker:
    """Keeps the newest snapshot seen by one viewer.

    ``apply`` rejects any snapshot whose ``state_version`` is not newer than
    the last one accepted, e.g. a broadcast queued before a rejoin response.
    """

    def __init__(self) -> None:
        self.version = 0
        self.state: Optional[dict] = None

    def apply(self, state: dict) -> bool:
        version = state.get('state_version')
        if version is None or version <= self.version:
            return False
        self.version = version
        self.state = state
        return True

    def reset(self) -> None:
        self.version = 0
        self.state = None
