"""Hand ranking backed by the ``treys`` evaluator.

The room only needs two things from here: an ordering of all seats from
weakest to strongest hand, and a check of the claimed tokens against that
ordering.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence

from treys import Card as TreysCard
from treys import Evaluator

from .cards import validate_labels

_evaluator = Evaluator()


@dataclass
class RankedHand:
    player_id: str
    player_name: str
    pocket_cards: List[str]
    score: int
    hand: str
    rank: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Validation:
    success: bool
    errors: List[Dict[str, object]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def evaluate_hand(pocket_cards: Sequence[str], community_cards: Sequence[str]) -> tuple[int, str]:
    """Return ``(score, description)``; treys scores are lower-is-stronger."""
    hand = [TreysCard.new(label) for label in validate_labels(pocket_cards)]
    board = [TreysCard.new(label) for label in validate_labels(community_cards)]
    score = _evaluator.evaluate(hand, board)
    return score, _evaluator.class_to_string(_evaluator.get_rank_class(score))


def rank_hands(players: Sequence[dict], community_cards: Sequence[str]) -> List[RankedHand]:
    """Order players weakest -> strongest and assign 1-based ranks.

    ``players`` is a sequence of ``{player_id, player_name, pocket_cards}`` in
    seat order. Identical hands share the lowest rank of their group; within a
    group the seat order is kept, so the result is deterministic.
    """
    evaluated = []
    for player in players:
        score, description = evaluate_hand(player['pocket_cards'], community_cards)
        evaluated.append(RankedHand(
            player_id=player['player_id'],
            player_name=player['player_name'],
            pocket_cards=list(player['pocket_cards']),
            score=score,
            hand=description,
        ))

    # sorted() is stable, so ties keep seat order
    evaluated = sorted(evaluated, key=lambda h: h.score, reverse=True)

    previous: Optional[RankedHand] = None
    for idx, ranked in enumerate(evaluated, start=1):
        if previous is not None and ranked.score == previous.score:
            ranked.rank = previous.rank
        else:
            ranked.rank = idx
        previous = ranked
    return evaluated


def validate_token_assignments(ranked_hands: Sequence[RankedHand],
                               token_assignments: Dict[str, int]) -> Validation:
    """Compare each seat's token with its true rank.

    A tied seat is correct anywhere inside its group's rank range; every other
    seat must hold exactly its rank.
    """
    group_sizes: Dict[int, int] = {}
    for ranked in ranked_hands:
        group_sizes[ranked.rank] = group_sizes.get(ranked.rank, 0) + 1

    errors: List[Dict[str, object]] = []
    for ranked in ranked_hands:
        assigned = token_assignments.get(ranked.player_id)
        low = ranked.rank
        high = ranked.rank + group_sizes[ranked.rank] - 1
        if assigned is not None and low <= assigned <= high:
            continue
        error: Dict[str, object] = {
            'player_id': ranked.player_id,
            'player_name': ranked.player_name,
            'actual_rank': ranked.rank,
            'assigned_token': assigned,
            'hand': ranked.hand,
        }
        if high > low:
            error['valid_range'] = f"{low}-{high}"
        errors.append(error)

    return Validation(success=not errors, errors=errors)
