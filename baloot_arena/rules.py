# baloot_arena/rules.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .cards import Card, GameType, Suit

NUM_PLAYERS = 4
TRICKS_PER_ROUND = 8


class MalformedTrickError(ValueError):
    """Raised when a trick is empty, oversized or repeats a card or seat."""


@dataclass(frozen=True)
class TrumpContext:
    """Game type plus trump suit; trump_suit is None exactly when playing Sun."""

    game_type: GameType
    trump_suit: Optional[Suit] = None

    def __post_init__(self) -> None:
        if self.game_type == GameType.HOKUM and self.trump_suit is None:
            raise ValueError("Hokum requires a trump suit")
        if self.game_type == GameType.SUN and self.trump_suit is not None:
            raise ValueError("Sun has no trump suit")

    @classmethod
    def sun(cls) -> "TrumpContext":
        return cls(GameType.SUN, None)

    @classmethod
    def hokum(cls, trump_suit: Suit) -> "TrumpContext":
        return cls(GameType.HOKUM, trump_suit)

    def is_trump(self, card: Card) -> bool:
        return self.game_type == GameType.HOKUM and card.suit == self.trump_suit

    def is_trump_suit(self, suit: Suit) -> bool:
        return self.game_type == GameType.HOKUM and suit == self.trump_suit

    def power(self, card: Card) -> int:
        return card.ranking_power(self.game_type, self.is_trump(card))

    def points(self, card: Card) -> int:
        return card.point_value(self.game_type, self.is_trump(card))


@dataclass(frozen=True)
class Play:
    player_index: int
    card: Card


def partner_of(player_index: int) -> int:
    return (player_index + 2) % NUM_PLAYERS


def team_of(player_index: int) -> int:
    return player_index % 2


def next_seat(player_index: int) -> int:
    return (player_index + 1) % NUM_PLAYERS


def beats(challenger: Card, holder: Card, led_suit: Suit, ctx: TrumpContext) -> bool:
    """
    Return True if `challenger` takes the trick from the card currently holding it.

    Precedence:
    1. Trump beats non-trump (and never loses to it).
    2. Two trumps compare on the trump table.
    3. A card of the led suit beats an off-suit card.
    4. Two cards of the same suit compare on the normal table.
    5. Two different off-suits never beat each other.
    """
    challenger_trump = ctx.is_trump(challenger)
    holder_trump = ctx.is_trump(holder)

    if challenger_trump != holder_trump:
        return challenger_trump
    if challenger_trump:
        return ctx.power(challenger) > ctx.power(holder)

    challenger_led = challenger.suit == led_suit
    holder_led = holder.suit == led_suit
    if challenger_led != holder_led:
        return challenger_led

    if challenger.suit == holder.suit:
        return ctx.power(challenger) > ctx.power(holder)
    return False


def _check_trick(plays: Sequence[Play]) -> None:
    if not plays:
        raise MalformedTrickError("Cannot determine winner of an empty trick")
    if len(plays) > NUM_PLAYERS:
        raise MalformedTrickError(
            f"Trick has {len(plays)} plays; at most {NUM_PLAYERS} allowed"
        )
    card_ids = [play.card.id for play in plays]
    if len(set(card_ids)) != len(card_ids):
        raise MalformedTrickError(f"Trick repeats a card: {card_ids}")
    seats = [play.player_index for play in plays]
    if len(set(seats)) != len(seats):
        raise MalformedTrickError(f"Trick repeats a player: {seats}")


def current_winner(plays: Sequence[Play], ctx: TrumpContext) -> Play:
    """
    Determine the play currently holding a trick.

    Works for partial tricks (running winner) and complete ones (final
    winner). The first play sets the led suit and seeds the winner; each later
    play replaces it only if it strictly beats it.
    """
    _check_trick(plays)
    led_suit = plays[0].card.suit
    winner = plays[0]
    for play in plays[1:]:
        if beats(play.card, winner.card, led_suit, ctx):
            winner = play
    return winner


def trick_points(cards: Iterable[Card], ctx: TrumpContext) -> int:
    """Sum of the card point values under the given context."""
    return sum(ctx.points(card) for card in cards)


def legal_cards(
    hand: Sequence[Card],
    plays: Sequence[Play],
    ctx: TrumpContext,
    player_index: int,
) -> List[Card]:
    """
    Return the cards from `hand` that may legally be played next.

    Rules implemented:
    - Leading a trick: any card.
    - Holding the led suit: must follow it; if the led suit is trump, must
      over-trump when able.
    - Void in the led suit under Hokum: must trump (over-trumping when able)
      unless the partner is currently winning the trick.
    - Otherwise any card.
    """
    if not plays:
        return list(hand)

    led_suit = plays[0].card.suit
    winner = current_winner(plays, ctx)

    follow = [card for card in hand if card.suit == led_suit]
    if follow:
        if ctx.is_trump_suit(led_suit):
            higher = [c for c in follow if beats(c, winner.card, led_suit, ctx)]
            return higher or follow
        return follow

    if ctx.game_type == GameType.HOKUM and winner.player_index != partner_of(player_index):
        trumps = [card for card in hand if ctx.is_trump(card)]
        if trumps:
            higher = [c for c in trumps if beats(c, winner.card, led_suit, ctx)]
            return higher or trumps

    return list(hand)
