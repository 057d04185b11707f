# baloot_arena/evaluator.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .cards import Card, Rank, Suit


@dataclass(frozen=True)
class HandWeights:
    """
    Weighting constants for hand strength scores.

    Hokum scores grow with suit length and with holding the suit's Jack, Nine
    and Ace; the Jack must weigh more than the Nine, the Nine more than one
    card of length, and one card of length more than the Ace. Sun scores are a
    weighted count of Aces, Tens and Kings with Aces weighted highest.
    """

    hokum_per_card: int = 12
    hokum_jack: int = 25
    hokum_nine: int = 18
    hokum_ace: int = 8
    sun_ace: int = 15
    sun_ten: int = 8
    sun_king: int = 4
    sun_long_suit_bonus: int = 10
    sun_long_suit_length: int = 4

    def __post_init__(self) -> None:
        if not (
            self.hokum_jack > self.hokum_nine > self.hokum_per_card > self.hokum_ace > 0
        ):
            raise ValueError(
                "Hokum weights must satisfy jack > nine > per_card > ace > 0"
            )
        if not self.sun_ace > self.sun_ten > self.sun_king > 0:
            raise ValueError("Sun weights must satisfy ace > ten > king > 0")
        if self.sun_long_suit_bonus < 0:
            raise ValueError("sun_long_suit_bonus must be non-negative")


DEFAULT_WEIGHTS = HandWeights()


@dataclass(frozen=True)
class HandEvaluation:
    hokum: int
    sun: int


def suit_counts(cards: Iterable[Card]) -> Dict[Suit, int]:
    counts = {suit: 0 for suit in Suit}
    for card in cards:
        counts[card.suit] += 1
    return counts


def hokum_score(
    hand: Sequence[Card],
    suit: Suit,
    weights: HandWeights = DEFAULT_WEIGHTS,
) -> int:
    """Strength of `hand` if `suit` were trump."""
    ranks = {card.rank for card in hand if card.suit == suit}
    score = len(ranks) * weights.hokum_per_card
    if Rank.JACK in ranks:
        score += weights.hokum_jack
    if Rank.NINE in ranks:
        score += weights.hokum_nine
    if Rank.ACE in ranks:
        score += weights.hokum_ace
    return score


def sun_score(hand: Sequence[Card], weights: HandWeights = DEFAULT_WEIGHTS) -> int:
    """Strength of `hand` for a no-trump (Sun) contract."""
    score = 0
    for card in hand:
        if card.rank == Rank.ACE:
            score += weights.sun_ace
        elif card.rank == Rank.TEN:
            score += weights.sun_ten
        elif card.rank == Rank.KING:
            score += weights.sun_king
    if hand and max(suit_counts(hand).values()) >= weights.sun_long_suit_length:
        score += weights.sun_long_suit_bonus
    return score


def best_alternative_suit(
    hand: Sequence[Card],
    excluded_suit: Optional[Suit],
    weights: HandWeights = DEFAULT_WEIGHTS,
) -> Tuple[Optional[Suit], int]:
    """
    Best Hokum suit other than `excluded_suit` (the bidding card's suit).

    Suits are scanned in enum order and only a strictly higher score replaces
    the current best, so the first suit wins a tie. Returns (None, 0) when no
    suit scores above zero.
    """
    best_suit: Optional[Suit] = None
    best = 0
    for suit in Suit:
        if suit == excluded_suit:
            continue
        score = hokum_score(hand, suit, weights)
        if score > best:
            best = score
            best_suit = suit
    return best_suit, best


def evaluate_hand(
    hand: Sequence[Card],
    candidate_suit: Suit,
    weights: HandWeights = DEFAULT_WEIGHTS,
) -> HandEvaluation:
    return HandEvaluation(
        hokum=hokum_score(hand, candidate_suit, weights),
        sun=sun_score(hand, weights),
    )
