# baloot_arena/agents/heuristic_agents.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from ..cards import Card, GameType, Rank, Suit
from ..config import GreedyConfig, StrategyConfig
from ..evaluator import (
    best_alternative_suit,
    evaluate_hand,
    hokum_score,
    sun_score,
)
from ..rules import TrumpContext, beats, current_winner
from ..state import Bid, BiddingState, BidType, DoubleState, TrickState
from .base import TrackingAgent

_SUN_HIGH_RANKS = (Rank.ACE, Rank.TEN, Rank.KING)


def _first_valid(state: BiddingState, *candidates: Bid) -> Bid:
    """Return the first candidate whose type is legal, else a legal pass."""
    for bid in candidates:
        if bid.bid_type in state.valid_bids:
            return bid
    if BidType.PASS in state.valid_bids or not state.valid_bids:
        return Bid.pass_()
    bid_type = state.valid_bids[0]
    if bid_type == BidType.HOKUM2:
        other = next(s for s in Suit if s != state.bidding_card.suit)
        return Bid(bid_type, other)
    return Bid(bid_type)


class _HeuristicAgent(TrackingAgent):
    """Card-play helpers shared by the rule-based strategies."""

    def _cheapest(self, cards: Sequence[Card], ctx: TrumpContext) -> Card:
        # Spend side-suit cards before trumps; compare within one table only.
        side = [c for c in cards if not ctx.is_trump(c)]
        if side:
            return self.lowest_card(side, ctx.game_type, False)
        return self.lowest_card(cards, ctx.game_type, True)

    def _winning_cards(
        self, state: TrickState, legal_cards: Sequence[Card]
    ) -> List[Card]:
        ctx = state.context
        winner = current_winner(state.current_trick, ctx)
        led_suit = state.current_trick[0].card.suit
        return [c for c in legal_cards if beats(c, winner.card, led_suit, ctx)]

    def _partner_winning(self, state: TrickState) -> bool:
        winner = current_winner(state.current_trick, state.context)
        return winner.player_index == self.partner_index


class GreedyAgent(_HeuristicAgent):
    """
    Simple heuristic player.

    - Bids Hokum with 3+ cards of the bidding suit holding its J or 9.
    - Bids Sun with 5+ high cards (A, 10, K).
    - Round two: Hokum in the best other suit if it scores well enough.
    - Leads its highest side-suit card; wins as cheaply as possible; ducks
      when the partner already holds the trick.
    """

    name = "GreedyAgent"

    def __init__(
        self,
        player_index: int,
        team_index: Optional[int] = None,
        config: Optional[GreedyConfig] = None,
    ) -> None:
        super().__init__(player_index, team_index)
        self.config = config or GreedyConfig()

    async def decide_bid(self, state: BiddingState) -> Bid:
        hand = self.hand
        bidding_suit = state.bidding_card.suit

        if state.bidding_round == 1:
            suited = {c.rank for c in hand if c.suit == bidding_suit}
            candidates: List[Bid] = []
            if len(suited) >= self.config.min_trump_count and (
                Rank.JACK in suited or Rank.NINE in suited
            ):
                candidates.append(Bid(BidType.HOKUM))
            high_cards = sum(1 for c in hand if c.rank in _SUN_HIGH_RANKS)
            if high_cards >= self.config.min_sun_high_cards:
                candidates.append(Bid(BidType.SUN))
            return _first_valid(state, *candidates)

        suit, score = best_alternative_suit(hand, bidding_suit, self.config.weights)
        if suit is not None and score >= self.config.hokum2_threshold:
            return _first_valid(state, Bid(BidType.HOKUM2, suit))
        return _first_valid(state)

    async def decide_card(self, state: TrickState, legal_cards: Sequence[Card]) -> Card:
        ctx = state.context
        cards = list(legal_cards)

        if not state.current_trick:
            side = [c for c in cards if not ctx.is_trump(c)]
            if side:
                return self.highest_card(side, ctx.game_type, False)
            return self.highest_card(cards, ctx.game_type, True)

        if self._partner_winning(state):
            return self._cheapest(cards, ctx)

        winning = self._winning_cards(state, cards)
        if winning:
            return self._cheapest(winning, ctx)
        return self._cheapest(cards, ctx)


class StrategicAgent(_HeuristicAgent):
    """
    Card-tracking player driven by weighted hand scores.

    Tracks unseen cards per suit, leads where it has control, pulls trumps
    late in the round when few remain outside its hand, takes any trick it
    can win with its cheapest winning card and otherwise dumps its
    lowest-point card.
    """

    name = "StrategicAgent"

    def __init__(
        self,
        player_index: int,
        team_index: Optional[int] = None,
        config: Optional[StrategyConfig] = None,
    ) -> None:
        super().__init__(player_index, team_index)
        self.config = config or StrategyConfig()

    # ------------------------------------------------------------------
    # Bidding and doubling
    # ------------------------------------------------------------------

    async def decide_bid(self, state: BiddingState) -> Bid:
        cfg = self.config
        bidding_suit = state.bidding_card.suit
        scores = evaluate_hand(self.hand, bidding_suit, cfg.weights)

        if state.bidding_round == 1:
            candidates: List[Bid] = []
            if scores.hokum > cfg.hokum_threshold:
                candidates.append(Bid(BidType.HOKUM))
            if scores.sun > cfg.sun_threshold:
                candidates.append(Bid(BidType.SUN))
            return _first_valid(state, *candidates)

        candidates = []
        suit, score = best_alternative_suit(self.hand, bidding_suit, cfg.weights)
        if suit is not None and score > cfg.hokum2_threshold:
            candidates.append(Bid(BidType.HOKUM2, suit))
        if scores.sun > cfg.sun_second_round_threshold:
            candidates.append(Bid(BidType.SUN))
        return _first_valid(state, *candidates)

    def _strength(self, cards: Sequence[Card], ctx: TrumpContext) -> int:
        if ctx.game_type == GameType.HOKUM and ctx.trump_suit is not None:
            return hokum_score(cards, ctx.trump_suit, self.config.weights)
        return sun_score(cards, self.config.weights)

    async def decide_double(self, state: DoubleState) -> bool:
        ours = (self.player_index, self.partner_index)
        mine = sum(
            self._strength(cards, state.context)
            for seat, cards in state.hands.items()
            if seat in ours
        )
        theirs = sum(
            self._strength(cards, state.context)
            for seat, cards in state.hands.items()
            if seat not in ours
        )
        return mine - theirs >= self.config.double_margin

    # ------------------------------------------------------------------
    # Card play
    # ------------------------------------------------------------------

    async def decide_card(self, state: TrickState, legal_cards: Sequence[Card]) -> Card:
        ctx = state.context
        cards = list(legal_cards)

        if not state.current_trick:
            return self._decide_lead(cards, ctx, state.trick_number)

        if self._partner_winning(state):
            return self._cheapest(cards, ctx)

        winning = self._winning_cards(state, cards)
        if winning:
            return self._cheapest(winning, ctx)
        return self.lowest_point_card(cards, ctx)

    def _decide_lead(
        self, cards: List[Card], ctx: TrumpContext, trick_number: int
    ) -> Card:
        trump = ctx.trump_suit
        counts = self.tracking.suit_counts

        if trump is not None and trick_number >= self.config.late_game_trick:
            trumps = [c for c in cards if c.suit == trump]
            if trumps and counts[trump] <= self.config.trump_extraction_remaining:
                return self.highest_card(trumps, ctx.game_type, True)

        groups: Dict[Suit, List[Card]] = {}
        for card in cards:
            if ctx.is_trump(card):
                continue
            groups.setdefault(card.suit, []).append(card)

        best_lead: Optional[Card] = None
        best_score: Optional[int] = None
        for suit, suited in groups.items():
            high = self.highest_card(suited, ctx.game_type, False)
            score = high.ranking_power(ctx.game_type, False) * 10
            score -= counts[suit] * 5
            if high.rank == Rank.ACE:
                score += 20
            if best_score is None or score > best_score:
                best_score = score
                best_lead = high

        if best_lead is not None:
            return best_lead
        return self.highest_card(cards, ctx.game_type, True)
