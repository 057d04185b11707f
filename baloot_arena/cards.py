# baloot_arena/cards.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence
import enum
import random

from .tables import (
    NORMAL_POINTS,
    NORMAL_RANKING,
    RANK_LABELS,
    SEQUENCE_VALUES,
    TRUMP_POINTS,
    TRUMP_RANKING,
)

_SUIT_SYMBOLS = {
    "clubs": "♣",
    "diamonds": "♦",
    "hearts": "♥",
    "spades": "♠",
}


class Suit(enum.Enum):
    CLUBS = "clubs"
    DIAMONDS = "diamonds"
    HEARTS = "hearts"
    SPADES = "spades"

    @property
    def symbol(self) -> str:
        return _SUIT_SYMBOLS[self.value]

    @classmethod
    def parse(cls, raw: Any) -> "Suit":
        """Accept a Suit, its value ('hearts') or its name ('HEARTS')."""
        if isinstance(raw, Suit):
            return raw
        text = str(raw).strip()
        try:
            return cls(text.lower())
        except ValueError:
            return cls[text.upper()]


class Rank(enum.Enum):
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"


class GameType(enum.Enum):
    HOKUM = "hokum"
    SUN = "sun"


if tuple(r.value for r in Rank) != RANK_LABELS:
    raise RuntimeError("Rank enum out of sync with rank tables")


@dataclass(frozen=True)
class Card:
    """
    A Baloot card.

    Identity is the string id "<rank>-<suit>" (e.g. "A-spades"); equality and
    hashing use nothing else. Ranking and points depend on the game type and
    on whether the card is trump, which the caller decides.
    """
    rank: Rank
    suit: Suit
    id: str = field(init=False, compare=True, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.rank, Rank) or not isinstance(self.suit, Suit):
            raise ValueError("Card needs a Rank and a Suit")
        object.__setattr__(self, "id", f"{self.rank.value}-{self.suit.value}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Card):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"{self.rank.value}{self.suit.symbol}"

    @classmethod
    def of(cls, rank: str, suit: str) -> "Card":
        return cls(Rank(rank), Suit.parse(suit))

    @classmethod
    def from_id(cls, card_id: str) -> "Card":
        rank, sep, suit = card_id.partition("-")
        if not sep:
            raise ValueError(f"Malformed card id {card_id!r}")
        return cls.of(rank, suit)

    def point_value(self, game_type: GameType, is_trump: bool) -> int:
        if _uses_trump_table(game_type, is_trump):
            return TRUMP_POINTS[self.rank.value]
        return NORMAL_POINTS[self.rank.value]

    def ranking_power(self, game_type: GameType, is_trump: bool) -> int:
        if _uses_trump_table(game_type, is_trump):
            return TRUMP_RANKING[self.rank.value]
        return NORMAL_RANKING[self.rank.value]

    def sequence_value(self) -> int:
        return SEQUENCE_VALUES[self.rank.value]


def _uses_trump_table(game_type: GameType, is_trump: bool) -> bool:
    # Sun has no trump suit, so the flag is meaningless there.
    return game_type == GameType.HOKUM and is_trump


def card_to_dict(card: Card) -> Dict[str, Any]:
    """Convert a Card to a JSON-serializable dict."""
    return {"id": card.id, "rank": card.rank.value, "suit": card.suit.value}


def dict_to_card(data: Dict[str, Any]) -> Card:
    """Convert a dict (or a bare id string) back into a Card."""
    if isinstance(data, str):
        return Card.from_id(data)
    if "rank" in data and "suit" in data:
        return Card.of(str(data["rank"]), data["suit"])
    return Card.from_id(data["id"])


class MalformedHandError(ValueError):
    """Raised when a hand has the wrong size or repeats a card."""


def validate_hand(
    cards: Iterable[Card],
    allowed_sizes: Optional[Sequence[int]] = None,
) -> List[Card]:
    """
    Return the hand as a new list after checking it.

    Raises MalformedHandError for duplicate card ids or, when `allowed_sizes`
    is given, a card count outside it.
    """
    hand = list(cards)
    for card in hand:
        if not isinstance(card, Card):
            raise MalformedHandError(f"Not a card: {card!r}")
    if allowed_sizes is not None and len(hand) not in allowed_sizes:
        raise MalformedHandError(
            f"Hand has {len(hand)} cards; expected one of {list(allowed_sizes)}"
        )
    ids = [card.id for card in hand]
    duplicates = sorted({cid for cid in ids if ids.count(cid) > 1})
    if duplicates:
        raise MalformedHandError(f"Hand repeats cards: {', '.join(duplicates)}")
    return hand


class Deck:
    """
    The 32-card Baloot deck: ranks 7..A in four suits.
    """

    def __init__(self) -> None:
        self.cards: List[Card] = [Card(rank, suit) for suit in Suit for rank in Rank]
        if len(set(self.cards)) != 32:
            raise RuntimeError("Deck must contain exactly 32 distinct cards")

    def shuffle(self, rng: Optional[random.Random] = None) -> None:
        """Shuffle the deck in place. Uses provided RNG if given."""
        if rng is None:
            random.shuffle(self.cards)
        else:
            rng.shuffle(self.cards)

    def draw(self, count: int) -> List[Card]:
        """Remove and return the top `count` cards."""
        if count > len(self.cards):
            raise ValueError("Not enough cards left in deck")
        drawn = self.cards[:count]
        del self.cards[:count]
        return drawn

    def __len__(self) -> int:
        return len(self.cards)
