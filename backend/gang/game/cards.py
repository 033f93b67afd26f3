from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

RANKS = "23456789TJQKA"
SUITS = "hdcs"


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{self.rank}{self.suit}"


def build_deck(seed: Optional[int] = None) -> List[str]:
    """Return a freshly shuffled 52-card deck as card labels ("Ah", "Tc", ...)."""
    rng = random.Random(seed)
    deck = [Card(rank, suit).label for suit in SUITS for rank in RANKS]
    rng.shuffle(deck)
    return deck


def deal(deck: List[str], count: int) -> List[str]:
    if len(deck) < count:
        raise ValueError(f"Not enough cards left in deck (requested {count}, have {len(deck)})")
    cards = deck[:count]
    del deck[:count]
    return cards


def parse_label(label: str) -> Card:
    if not isinstance(label, str) or len(label) != 2:
        raise ValueError(f"Invalid card label: {label}")
    return Card(label[0], label[1])


def validate_labels(labels: Sequence[str]) -> List[str]:
    return [parse_label(label).label for label in labels]
