from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from . import ranking
from .cards import build_deck, deal
from .errors import (
    CannotAdvance,
    CapacityError,
    InvalidTurn,
    NoTokenHeld,
    NotFoundError,
    StateError,
    TokenUnavailable,
    ValidationError,
)

# GameRoom keeps all per-room state in memory. No sockets or database access
# live here; callers serialize access through ``room.lock`` and persist after
# every mutation.

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    WAITING = 'waiting'
    INITIAL_DEAL = 'initial_deal'
    BETTING_1 = 'betting_1'
    BETTING_2 = 'betting_2'
    BETTING_3 = 'betting_3'
    BETTING_4 = 'betting_4'
    REVEAL = 'reveal'
    COMPLETE = 'complete'


BETTING_PHASES = (Phase.BETTING_1, Phase.BETTING_2, Phase.BETTING_3, Phase.BETTING_4)

# betting round -> (community cards dealt when it closes, next betting round)
_NEXT_STREET = {
    Phase.BETTING_1: (3, Phase.BETTING_2),
    Phase.BETTING_2: (1, Phase.BETTING_3),
    Phase.BETTING_3: (1, Phase.BETTING_4),
}


class GameMode(str, Enum):
    SINGLE = 'single'
    BEST_OF = 'best_of'


@dataclass
class PlayerSeat:
    id: str
    name: str
    connection_id: Optional[str] = None
    pocket_cards: List[str] = field(default_factory=list)
    ready: bool = False
    at_table: bool = True
    connected: bool = True


@dataclass
class Spectator:
    id: str
    name: str
    connection_id: Optional[str] = None


@dataclass
class RoundResult:
    ranked_hands: List[ranking.RankedHand]
    validation: ranking.Validation
    game_mode: GameMode
    series_length: int
    series_wins: int
    series_losses: int
    series_complete: bool

    @property
    def success(self) -> bool:
        return self.validation.success

    def to_dict(self) -> dict:
        return {
            'ranked_hands': [h.to_dict() for h in self.ranked_hands],
            'validation': self.validation.to_dict(),
            'success': self.success,
            'game_mode': self.game_mode.value,
            'series_length': self.series_length,
            'series_wins': self.series_wins,
            'series_losses': self.series_losses,
            'series_complete': self.series_complete,
        }


RankHands = Callable[[Sequence[dict], Sequence[str]], List[ranking.RankedHand]]


class GameRoom:
    """State machine and token economy for a single room."""

    def __init__(
        self,
        room_id: str,
        max_players: int = 6,
        min_players: int = 2,
        game_mode: GameMode = GameMode.SINGLE,
        series_length: int = 5,
        created_at: Optional[float] = None,
        deck_factory: Callable[[], List[str]] = build_deck,
        rank_hands: RankHands = ranking.rank_hands,
    ) -> None:
        if min_players < 2 or max_players < min_players:
            raise ValidationError(f"Invalid player limits: min={min_players} max={max_players}")
        game_mode = GameMode(game_mode)
        if game_mode == GameMode.BEST_OF and (series_length < 1 or series_length % 2 == 0):
            raise ValidationError("Series length must be a positive odd number")

        self.room_id = room_id
        self.max_players = max_players
        self.min_players = min_players
        self.game_mode = game_mode
        self.series_length = series_length
        self.phase = Phase.WAITING
        self.seats: List[PlayerSeat] = []
        self.spectators: Dict[str, Spectator] = {}
        self.deck: List[str] = []
        self.community_cards: List[str] = []
        self.token_pool: List[int] = []
        self.token_assignments: Dict[str, int] = {}
        self.current_turn: Optional[str] = None
        self.betting_round_history: List[dict] = []
        self.action_log: List[dict] = []
        self.host_id: Optional[str] = None
        self.dealer_index = 0
        self.series_wins = 0
        self.series_losses = 0
        self.last_game_result: Optional[dict] = None
        self.created_at = created_at or time.time()
        self.updated_at = self.created_at
        self.last_action: Optional[float] = None
        self.state_version = 0
        self.lock = threading.RLock()
        self._deck_factory = deck_factory
        self._rank_hands = rank_hands

    # Lookups ---------------------------------------------------------

    @property
    def player_count(self) -> int:
        return len(self.seats)

    @property
    def seat_ids(self) -> List[str]:
        return [seat.id for seat in self.seats]

    def has_player(self, player_id: str) -> bool:
        return any(seat.id == player_id for seat in self.seats)

    def get_seat(self, player_id: str) -> PlayerSeat:
        for seat in self.seats:
            if seat.id == player_id:
                return seat
        raise NotFoundError("Player not found")

    def get_spectator(self, spectator_id: str) -> Spectator:
        spectator = self.spectators.get(spectator_id)
        if spectator is None:
            raise NotFoundError("Spectator not found")
        return spectator

    @property
    def dealer_id(self) -> Optional[str]:
        if not self.seats:
            return None
        return self.seats[self.dealer_index % len(self.seats)].id

    @property
    def is_started(self) -> bool:
        return self.phase != Phase.WAITING

    @property
    def series_target(self) -> int:
        return self.series_length // 2 + 1

    @property
    def series_complete(self) -> bool:
        return self.game_mode == GameMode.BEST_OF and (
            self.series_wins >= self.series_target or self.series_losses >= self.series_target
        )

    def _touch(self, action: bool = False) -> None:
        now = time.time()
        self.state_version += 1
        self.updated_at = now
        if action:
            self.last_action = now

    # Seat management -------------------------------------------------

    def add_player(self, player_id: str, name: str, connection_id: Optional[str] = None) -> PlayerSeat:
        if len(self.seats) >= self.max_players:
            raise CapacityError("Room is full")
        if self.phase != Phase.WAITING:
            raise StateError("Game already in progress")
        if self.has_player(player_id):
            raise StateError("Player already seated")

        seat = PlayerSeat(id=player_id, name=name, connection_id=connection_id)
        self.seats.append(seat)
        if self.host_id is None:
            self.host_id = player_id
        self._touch()
        return seat

    def remove_player(self, player_id: str) -> bool:
        """Vacate a seat. Returns True when the room should be deleted."""
        seat = self.get_seat(player_id)
        index = self.seats.index(seat)
        was_turn = self.current_turn == player_id
        self.seats.pop(index)
        self.token_assignments.pop(player_id, None)

        if self.host_id == player_id:
            self.host_id = self.seats[0].id if self.seats else None
        if index < self.dealer_index:
            self.dealer_index -= 1
        if self.seats:
            self.dealer_index %= len(self.seats)

        if not self.seats or (len(self.seats) <= 1 and self.phase != Phase.WAITING):
            logger.info("[auto-delete] room=%s remaining=%d phase=%s",
                        self.room_id, len(self.seats), self.phase.value)
            self._touch()
            return True

        if self.phase in BETTING_PHASES:
            # The token range shrinks with the table, so the round starts over.
            self.start_betting_round(self.phase)
        elif self.phase in (Phase.REVEAL, Phase.COMPLETE):
            self.token_pool = list(range(1, len(self.seats) + 1))
            self.token_assignments = {}
            if was_turn:
                self.current_turn = self.seats[index % len(self.seats)].id
        self._touch()
        return False

    def reconnect_player(self, player_id: str, connection_id: Optional[str]) -> PlayerSeat:
        seat = self.get_seat(player_id)
        seat.connection_id = connection_id
        seat.connected = True
        seat.at_table = True
        self._touch()
        return seat

    def mark_disconnected(self, player_id: str) -> PlayerSeat:
        seat = self.get_seat(player_id)
        seat.connection_id = None
        seat.connected = False
        self._touch()
        return seat

    def set_player_at_table(self, player_id: str, at_table: bool) -> PlayerSeat:
        seat = self.get_seat(player_id)
        seat.at_table = at_table
        self._touch()
        return seat

    def add_spectator(self, spectator_id: str, name: str, connection_id: Optional[str] = None) -> Spectator:
        spectator = Spectator(id=spectator_id, name=name, connection_id=connection_id)
        self.spectators[spectator_id] = spectator
        self._touch()
        return spectator

    def remove_spectator(self, spectator_id: str) -> Optional[Spectator]:
        spectator = self.spectators.pop(spectator_id, None)
        if spectator is not None:
            self._touch()
        return spectator

    # Round lifecycle -------------------------------------------------

    def can_start(self) -> bool:
        return (self.min_players <= len(self.seats) <= self.max_players
                and self.phase == Phase.WAITING)

    def start_game(self) -> None:
        if self.phase != Phase.WAITING:
            raise StateError("Game already started")
        if not self.can_start():
            raise CapacityError(f"Need {self.min_players}-{self.max_players} players to start")
        self._deal_new_round()

    def restart_game(self) -> None:
        if len(self.seats) < self.min_players:
            raise CapacityError("Not enough players to restart")
        self.series_wins = 0
        self.series_losses = 0
        self._deal_new_round()

    def next_round(self) -> None:
        if self.game_mode != GameMode.BEST_OF:
            raise StateError("Next round is only available in series mode")
        if self.phase != Phase.COMPLETE:
            raise StateError("The current round is not complete")
        if self.series_complete:
            raise StateError("Series is already complete")
        if len(self.seats) < self.min_players:
            raise CapacityError("Not enough players for next round")
        self.dealer_index = (self.dealer_index + 1) % len(self.seats)
        self._deal_new_round()

    def _deal_new_round(self) -> None:
        self.phase = Phase.INITIAL_DEAL
        self.deck = self._deck_factory()
        self.community_cards = []
        self.token_assignments = {}
        self.betting_round_history = []
        self.action_log = []
        self.last_game_result = None
        for seat in self.seats:
            seat.pocket_cards = deal(self.deck, 2)
            seat.ready = False
        self.start_betting_round(Phase.BETTING_1)
        self._touch(action=True)

    def start_betting_round(self, phase: Phase) -> None:
        self.phase = phase
        self.token_pool = list(range(1, len(self.seats) + 1))
        self.token_assignments = {}
        for seat in self.seats:
            seat.ready = False
        self.current_turn = self.seats[0].id if self.seats else None

    # Token economy ---------------------------------------------------

    def _require_betting(self) -> None:
        if self.phase not in BETTING_PHASES:
            raise StateError("No betting round in progress")

    def _holder_of(self, token_number: int) -> Optional[str]:
        for player_id, token in self.token_assignments.items():
            if token == token_number:
                return player_id
        return None

    def claim_token(self, player_id: str, token_number: int) -> dict:
        self._require_betting()
        if self.current_turn != player_id:
            raise InvalidTurn("Not your turn")
        if isinstance(token_number, bool) or not isinstance(token_number, int):
            raise ValidationError("Token number must be an integer")

        held = self.token_assignments.get(player_id)
        owner = self._holder_of(token_number)
        in_pool = token_number in self.token_pool
        if not in_pool and owner is None:
            raise TokenUnavailable("Token not available")

        if held is not None:
            del self.token_assignments[player_id]
            self.token_pool.append(held)

        from_pool = owner is None or owner == player_id
        from_player: Optional[PlayerSeat] = None
        if from_pool:
            self.token_pool.remove(token_number)
        else:
            from_player = self.get_seat(owner)
            del self.token_assignments[owner]
        self.token_pool.sort()
        self.token_assignments[player_id] = token_number

        self.action_log.append({
            'player_id': player_id,
            'player_name': self.get_seat(player_id).name,
            'token_number': token_number,
            'phase': self.phase.value,
            'from_pool': from_pool,
            'from_player_id': from_player.id if from_player else None,
            'from_player_name': from_player.name if from_player else None,
            'timestamp': time.time(),
        })

        for seat in self.seats:
            seat.ready = False
        self._advance_turn()
        self._touch(action=True)

        return {
            'token_assignments': dict(self.token_assignments),
            'token_pool': list(self.token_pool),
            'current_turn': self.current_turn,
        }

    def pass_turn(self, player_id: str) -> dict:
        self._require_betting()
        if self.current_turn != player_id:
            raise InvalidTurn("Not your turn")
        if player_id not in self.token_assignments:
            raise NoTokenHeld("Cannot pass without a token")
        self._advance_turn()
        self._touch(action=True)
        return {'current_turn': self.current_turn}

    def _advance_turn(self) -> None:
        ids = self.seat_ids
        index = ids.index(self.current_turn)
        self.current_turn = ids[(index + 1) % len(ids)]

    def set_player_ready(self, player_id: str) -> bool:
        """Toggle readiness; returns the new flag."""
        self._require_betting()
        seat = self.get_seat(player_id)
        if player_id not in self.token_assignments:
            raise NoTokenHeld("Must claim a token before being ready")
        seat.ready = not seat.ready
        self._touch(action=True)
        return seat.ready

    def all_players_ready(self) -> bool:
        return bool(self.seats) and all(seat.ready for seat in self.seats)

    def all_players_have_tokens(self) -> bool:
        return bool(self.seats) and all(seat.id in self.token_assignments for seat in self.seats)

    def advance_phase(self) -> Optional[RoundResult]:
        if self.phase not in BETTING_PHASES:
            raise CannotAdvance(f"Cannot advance from phase: {self.phase.value}")
        if not self.all_players_have_tokens():
            raise CannotAdvance("Every player must hold a token")

        self.betting_round_history.append({
            'phase': self.phase.value,
            'token_assignments': dict(self.token_assignments),
        })

        if self.phase == Phase.BETTING_4:
            self.phase = Phase.REVEAL
            self._touch()
            return self.evaluate_hands()

        count, next_phase = _NEXT_STREET[self.phase]
        self.community_cards.extend(deal(self.deck, count))
        self.start_betting_round(next_phase)
        self._touch()
        return None

    def evaluate_hands(self) -> RoundResult:
        if self.phase != Phase.REVEAL:
            raise CannotAdvance("Hands are evaluated at reveal only")

        players = [
            {'player_id': seat.id, 'player_name': seat.name, 'pocket_cards': seat.pocket_cards}
            for seat in self.seats
        ]
        ranked = self._rank_hands(players, self.community_cards)
        validation = ranking.validate_token_assignments(ranked, self.token_assignments)

        if self.game_mode == GameMode.BEST_OF:
            if validation.success:
                self.series_wins += 1
            else:
                self.series_losses += 1

        self.phase = Phase.COMPLETE
        for seat in self.seats:
            seat.ready = False

        result = RoundResult(
            ranked_hands=ranked,
            validation=validation,
            game_mode=self.game_mode,
            series_length=self.series_length,
            series_wins=self.series_wins,
            series_losses=self.series_losses,
            series_complete=self.series_complete,
        )
        self.last_game_result = result.to_dict()
        self._touch()
        logger.info("[round-complete] room=%s success=%s wins=%d losses=%d",
                    self.room_id, result.success, self.series_wins, self.series_losses)
        return result

    # Lobby -----------------------------------------------------------

    def lobby_info(self) -> dict:
        return {
            'room_id': self.room_id,
            'player_count': len(self.seats),
            'max_players': self.max_players,
            'players': [seat.name for seat in self.seats],
            'spectators': [s.name for s in self.spectators.values()],
            'is_joinable': self.phase == Phase.WAITING and len(self.seats) < self.max_players,
            'is_started': self.is_started,
            'game_mode': self.game_mode.value,
        }
