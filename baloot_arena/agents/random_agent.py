# baloot_arena/agents/random_agent.py
from __future__ import annotations

import random
from typing import Optional, Sequence

from ..cards import Card, Suit
from ..state import Bid, BiddingState, BidType, DoubleState, TrickState
from .base import TrackingAgent


class RandomBalootAgent(TrackingAgent):
    """
    A baseline agent that only ever makes legal moves:

    - decide_bid: uniformly among the valid bid types; hokum2 picks a random
      suit other than the bidding card's.
    - decide_card: uniformly among legal cards.
    - decide_double: never doubles.
    """

    name = "RandomAgent"

    def __init__(
        self,
        player_index: int,
        team_index: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(player_index, team_index)
        self.rng = rng or random.Random()

    async def decide_bid(self, state: BiddingState) -> Bid:
        if not state.valid_bids:
            return Bid.pass_()
        bid_type = self.rng.choice(list(state.valid_bids))
        if bid_type == BidType.HOKUM2:
            suits = [s for s in Suit if s != state.bidding_card.suit]
            return Bid(bid_type, self.rng.choice(suits))
        return Bid(bid_type)

    async def decide_card(self, state: TrickState, legal_cards: Sequence[Card]) -> Card:
        return self.rng.choice(list(legal_cards))

    async def decide_double(self, state: DoubleState) -> bool:
        return False
