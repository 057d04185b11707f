# baloot_arena/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
import enum

from .cards import Card, GameType, Suit
from .projects import Project
from .rules import Play, TrumpContext


class ProtocolViolation(ValueError):
    """An agent returned a decision outside the contract (illegal bid or card)."""


class BidType(enum.Enum):
    PASS = "pass"
    HOKUM = "hokum"
    SUN = "sun"
    HOKUM2 = "hokum2"
    ASHKAL = "ashkal"

    @classmethod
    def parse(cls, raw: Any) -> "BidType":
        """Map a bid type name to the enum; anything unknown is a pass."""
        if isinstance(raw, BidType):
            return raw
        text = str(raw or "").strip().lower()
        if text == "hokum_second":
            return cls.HOKUM2
        try:
            return cls(text)
        except ValueError:
            return cls.PASS


@dataclass(frozen=True)
class Bid:
    bid_type: BidType
    suit_choice: Optional[Suit] = None

    @classmethod
    def pass_(cls) -> "Bid":
        return cls(BidType.PASS)

    def validate(self, bidding_card: Card, valid_bids: Sequence[BidType]) -> None:
        """Raise ProtocolViolation unless this bid is legal for the turn."""
        if self.bid_type not in valid_bids:
            raise ProtocolViolation(
                f"Bid {self.bid_type.value!r} not in valid bids "
                f"{[b.value for b in valid_bids]}"
            )
        if self.bid_type == BidType.HOKUM2:
            if self.suit_choice is None:
                raise ProtocolViolation("hokum2 requires a suit_choice")
            if self.suit_choice == bidding_card.suit:
                raise ProtocolViolation(
                    "hokum2 suit_choice must differ from the bidding card suit "
                    f"({bidding_card.suit.value})"
                )
        elif self.suit_choice is not None:
            raise ProtocolViolation(
                f"suit_choice is only allowed with hokum2, got {self.bid_type.value}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bid_type": self.bid_type.value,
            "suit_choice": self.suit_choice.value if self.suit_choice else None,
        }


@dataclass(frozen=True)
class PlacedBid:
    player_index: int
    bid: Bid


@dataclass(frozen=True)
class BiddingState:
    bidding_card: Card
    bidding_round: int
    bids: Tuple[PlacedBid, ...]
    valid_bids: Tuple[BidType, ...]
    dealer_index: int = 0


@dataclass(frozen=True)
class TrickState:
    current_trick: Tuple[Play, ...]
    game_type: GameType
    trump_suit: Optional[Suit]
    trick_number: int
    leader_index: int = 0

    @property
    def context(self) -> TrumpContext:
        return TrumpContext(self.game_type, self.trump_suit)

    @property
    def led_suit(self) -> Optional[Suit]:
        if not self.current_trick:
            return None
        return self.current_trick[0].card.suit


@dataclass(frozen=True)
class DoubleState:
    """
    Input to a doubling decision.

    `level` is the current double level (0 none, 1 doubled, 2 redoubled, ...);
    `hands` maps every seat to a copy of its cards (full-information variant).
    """
    level: int
    contract_team: int
    contract_bid: Bid
    player_index: int
    hands: Dict[int, Tuple[Card, ...]]
    context: TrumpContext


@dataclass
class Trick:
    plays: List[Play] = field(default_factory=list)
    winner_index: Optional[int] = None
    points: int = 0

    @property
    def cards(self) -> List[Card]:
        return [play.card for play in self.plays]


@dataclass
class RoundState:
    dealer_index: int
    hands: Dict[int, List[Card]]
    bidding_card: Card
    bids: List[PlacedBid] = field(default_factory=list)
    accepted_bid: Optional[Bid] = None
    buyer_index: Optional[int] = None
    context: Optional[TrumpContext] = None
    double_level: int = 0
    tricks: List[Trick] = field(default_factory=list)
    team_points: Dict[int, int] = field(default_factory=lambda: {0: 0, 1: 0})
    projects: Dict[int, List[Project]] = field(default_factory=dict)
    penalties: Dict[int, int] = field(default_factory=lambda: {0: 0, 1: 0})
    violations: Dict[int, int] = field(default_factory=lambda: {i: 0 for i in range(4)})

    @property
    def buyer_team(self) -> Optional[int]:
        if self.buyer_index is None:
            return None
        return self.buyer_index % 2

    @property
    def is_complete(self) -> bool:
        return len(self.tricks) == 8 and all(
            t.winner_index is not None for t in self.tricks
        )
