# baloot_arena/agents/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple, runtime_checkable

from ..cards import Card, GameType, Rank, Suit, validate_hand
from ..projects import Project
from ..rules import TrumpContext
from ..state import Bid, BiddingState, DoubleState, TrickState

MAX_DECLARED_PROJECTS = 2
# First deal, then the full hand once a contract is bought.
DEALT_HAND_SIZES = (5, 8)


@runtime_checkable
class BalootAgent(Protocol):
    """
    Interface that all Baloot players must implement.

    The host calls exactly one decision method at a time and awaits it; the
    notification hooks (`on_*`) return nothing and only update tracking.
    """

    player_index: int
    team_index: int
    name: str

    def on_round_start(self, dealer_index: int) -> None:
        """Reset per-round tracking. Calling it twice equals calling it once."""
        raise NotImplementedError

    def on_receive_hand(self, hand: Sequence[Card]) -> None:
        """
        Replace the hand snapshot (5 cards before bidding, 8 after).

        Raises MalformedHandError for any other size or a repeated card.
        """
        raise NotImplementedError

    async def decide_bid(self, state: BiddingState) -> Bid:
        """Return a bid whose type is in `state.valid_bids`."""
        raise NotImplementedError

    async def decide_double(self, state: DoubleState) -> bool:
        """Return True to raise the double level."""
        raise NotImplementedError

    async def decide_card(self, state: TrickState, legal_cards: Sequence[Card]) -> Card:
        """Return one element of `legal_cards`."""
        raise NotImplementedError

    async def declare_projects(self, projects: Sequence[Project]) -> List[Project]:
        """Pick at most two of the detected projects."""
        raise NotImplementedError

    def on_card_played(self, player_index: int, card: Card) -> None:
        raise NotImplementedError

    def on_trick_won(self, winner_index: int, trick_cards: Sequence[Card]) -> None:
        raise NotImplementedError


def _full_suit_counts() -> Dict[Suit, int]:
    return {suit: 8 for suit in Suit}


@dataclass
class AgentTracking:
    """Per-round state owned by one agent; never shared across seats or rounds."""

    hand: List[Card] = field(default_factory=list)
    played: List[Tuple[int, str]] = field(default_factory=list)
    seen_ids: Set[str] = field(default_factory=set)
    suit_counts: Dict[Suit, int] = field(default_factory=_full_suit_counts)
    tricks_won: Dict[int, int] = field(default_factory=dict)
    dealer_index: Optional[int] = None

    def reset(self, dealer_index: Optional[int] = None) -> None:
        self.hand = []
        self.played = []
        self.seen_ids = set()
        self.suit_counts = _full_suit_counts()
        self.tricks_won = {}
        self.dealer_index = dealer_index

    def see(self, card: Card) -> None:
        """Count a card as no longer unknown, once per round."""
        if card.id in self.seen_ids:
            return
        self.seen_ids.add(card.id)
        self.suit_counts[card.suit] -= 1


def pick_card(
    cards: Sequence[Card],
    key: Callable[[Card], int],
    *,
    highest: bool,
) -> Card:
    """
    Return the card with the highest (or lowest) key.

    Only a strictly better key replaces the current pick, so the first card
    encountered wins a tie.
    """
    if not cards:
        raise ValueError("pick_card needs at least one card")
    best = cards[0]
    best_key = key(best)
    for card in cards[1:]:
        value = key(card)
        if (value > best_key) if highest else (value < best_key):
            best = card
            best_key = value
    return best


class TrackingAgent:
    """
    Base class carrying the bookkeeping every strategy needs.

    Subclasses implement `decide_bid` and `decide_card`; everything else has a
    usable default.
    """

    name = "TrackingAgent"

    def __init__(self, player_index: int, team_index: Optional[int] = None) -> None:
        if not 0 <= player_index <= 3:
            raise ValueError("player_index must be between 0 and 3")
        if team_index is None:
            team_index = player_index % 2
        if team_index not in (0, 1):
            raise ValueError("team_index must be 0 or 1")
        self.player_index = player_index
        self.team_index = team_index
        self.tracking = AgentTracking()

    @property
    def partner_index(self) -> int:
        return (self.player_index + 2) % 4

    @property
    def hand(self) -> List[Card]:
        return self.tracking.hand

    # ------------------------------------------------------------------
    # Contract: notifications
    # ------------------------------------------------------------------

    def on_round_start(self, dealer_index: int) -> None:
        self.tracking.reset(dealer_index)

    def on_receive_hand(self, hand: Sequence[Card]) -> None:
        self.tracking.hand = validate_hand(hand, DEALT_HAND_SIZES)
        for card in self.tracking.hand:
            self.tracking.see(card)

    def on_card_played(self, player_index: int, card: Card) -> None:
        self.tracking.played.append((player_index, card.id))
        self.tracking.see(card)
        if player_index == self.player_index:
            self.tracking.hand = [c for c in self.tracking.hand if c != card]

    def on_trick_won(self, winner_index: int, trick_cards: Sequence[Card]) -> None:
        won = self.tracking.tricks_won
        won[winner_index] = won.get(winner_index, 0) + 1

    # ------------------------------------------------------------------
    # Contract: decisions with defaults
    # ------------------------------------------------------------------

    async def decide_bid(self, state: BiddingState) -> Bid:
        raise NotImplementedError

    async def decide_card(self, state: TrickState, legal_cards: Sequence[Card]) -> Card:
        raise NotImplementedError

    async def decide_double(self, state: DoubleState) -> bool:
        return False

    async def declare_projects(self, projects: Sequence[Project]) -> List[Project]:
        ranked = sorted(projects, key=lambda p: p.points, reverse=True)
        return ranked[:MAX_DECLARED_PROJECTS]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def highest_card(
        self, cards: Sequence[Card], game_type: GameType, is_trump: bool
    ) -> Card:
        return pick_card(
            cards, lambda c: c.ranking_power(game_type, is_trump), highest=True
        )

    def lowest_card(
        self, cards: Sequence[Card], game_type: GameType, is_trump: bool
    ) -> Card:
        return pick_card(
            cards, lambda c: c.ranking_power(game_type, is_trump), highest=False
        )

    def lowest_point_card(self, cards: Sequence[Card], ctx: TrumpContext) -> Card:
        return pick_card(cards, ctx.points, highest=False)

    def count_suit(self, suit: Suit) -> int:
        return sum(1 for c in self.tracking.hand if c.suit == suit)

    def has_card(self, suit: Suit, rank: Rank) -> bool:
        return any(c.suit == suit and c.rank == rank for c in self.tracking.hand)
