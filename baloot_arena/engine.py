# baloot_arena/engine.py
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .agents.base import MAX_DECLARED_PROJECTS, BalootAgent
from .agents.llm_agents import LLMCallFailed
from .cards import Card, Deck, validate_hand
from .config import EngineConfig
from .decision_log import DecisionLogger
from .projects import Project, detect_projects
from .rules import (
    NUM_PLAYERS,
    TRICKS_PER_ROUND,
    Play,
    TrumpContext,
    current_winner,
    legal_cards,
    next_seat,
    partner_of,
    team_of,
    trick_points,
)
from .state import (
    Bid,
    BiddingState,
    BidType,
    DoubleState,
    PlacedBid,
    ProtocolViolation,
    RoundState,
    Trick,
    TrickState,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FIRST_DEAL = 5
MAX_CONSECUTIVE_REDEALS = 50
# Slack on top of an agent's own retry budget.
DECISION_BUDGET_MARGIN = 1.0


class GameEngine:
    """
    Reference host for four Baloot agents.

    Deals, runs both bidding rounds, doubling, project declaration and the
    eight tricks of a round. Agents are called one at a time and awaited
    under a timeout; a timeout, an exception or a decision outside the
    contract is logged and replaced by a safe default (pass, the lowest legal
    card, no double, no projects) so the round always completes.
    """

    def __init__(
        self,
        agents: Sequence[BalootAgent],
        config: Optional[EngineConfig] = None,
        rng_seed: Optional[int] = None,
        game_label: Optional[str] = None,
        decision_logger: Optional[DecisionLogger] = None,
    ) -> None:
        if len(agents) != NUM_PLAYERS:
            raise ValueError("Baloot needs exactly 4 agents")
        for seat, agent in enumerate(agents):
            if agent.player_index != seat:
                raise ValueError(
                    f"Agent in seat {seat} reports player_index {agent.player_index}"
                )
            if agent.team_index != team_of(seat):
                raise ValueError(
                    f"Agent in seat {seat} reports team {agent.team_index}; "
                    f"expected {team_of(seat)}"
                )
        self.agents: List[BalootAgent] = list(agents)
        self.config = config or EngineConfig()
        self.rng = random.Random(rng_seed)
        self.game_label = game_label
        self.decision_logger = decision_logger
        self.rounds: List[RoundState] = []

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def play_rounds(self, num_rounds: int, first_dealer: int = 0) -> List[RoundState]:
        """Play `num_rounds` completed rounds, rotating the dealer each deal."""
        dealer = first_dealer
        completed: List[RoundState] = []
        redeals = 0
        while len(completed) < num_rounds:
            round_state = await self.play_round(dealer)
            dealer = next_seat(dealer)
            if round_state is None:
                redeals += 1
                if redeals >= MAX_CONSECUTIVE_REDEALS:
                    raise RuntimeError(
                        f"{redeals} consecutive deals passed out; aborting"
                    )
                continue
            redeals = 0
            completed.append(round_state)
            logger.info(
                "Finished round %d/%d%s: team points %s",
                len(completed),
                num_rounds,
                f" for {self.game_label}" if self.game_label else "",
                round_state.team_points,
            )
        return completed

    async def play_round(self, dealer_index: int) -> Optional[RoundState]:
        """
        Play one round. Returns None when every bidding turn passes; the
        caller is expected to redeal.
        """
        deck = Deck()
        deck.shuffle(self.rng)

        hands = {seat: deck.draw(FIRST_DEAL) for seat in range(NUM_PLAYERS)}
        bidding_card = deck.draw(1)[0]
        round_state = RoundState(
            dealer_index=dealer_index,
            hands=hands,
            bidding_card=bidding_card,
        )

        for seat, agent in enumerate(self.agents):
            agent.on_round_start(dealer_index)
            agent.on_receive_hand(list(hands[seat]))

        contract = await self._bidding_phase(round_state)
        if contract is None:
            logger.info("All players passed on %s; redeal", bidding_card)
            return None

        self._apply_contract(round_state, *contract)
        self._deal_remaining(round_state, deck)

        await self._doubling_phase(round_state)
        await self._projects_phase(round_state)
        await self._trick_phase(round_state)

        self.rounds.append(round_state)
        return round_state

    # -------------------------------------------------------------------------
    # Protocol enforcement
    # -------------------------------------------------------------------------

    def decision_timeout_for(self, seat: int) -> float:
        """
        Host deadline for one decision from `seat`.

        Agents that retry on their own (LLM seats) publish
        `decision_budget_seconds` and get at least that long, plus a margin.
        """
        budget = getattr(self.agents[seat], "decision_budget_seconds", None)
        if budget is None:
            return self.config.decision_timeout
        return max(self.config.decision_timeout, budget + DECISION_BUDGET_MARGIN)

    def _record_violation(
        self,
        round_state: RoundState,
        seat: int,
        purpose: str,
        error: str,
        fallback: Any,
    ) -> None:
        round_state.violations[seat] += 1
        agent = self.agents[seat]
        logger.warning(
            "Seat %d (%s) %s: %s; substituting %s",
            seat,
            agent.name,
            purpose,
            error,
            fallback,
        )
        if self.decision_logger:
            self.decision_logger.log_failure(
                agent_label=agent.name,
                purpose=purpose,
                error=error,
                game_id=self.game_label,
                seat=seat,
                fallback=str(fallback),
            )

    async def _decide(
        self,
        round_state: RoundState,
        seat: int,
        purpose: str,
        call: Callable[[], Awaitable[T]],
        check: Callable[[Any], T],
        fallback: T,
    ) -> T:
        """
        Await one agent decision and vet it.

        `check` returns the accepted value or raises ProtocolViolation.
        LLMCallFailed propagates so a run can halt on provider outages.
        """
        timeout = self.decision_timeout_for(seat)
        try:
            result = await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError:
            self._record_violation(
                round_state,
                seat,
                purpose,
                f"timed out after {timeout}s",
                fallback,
            )
            return fallback
        except LLMCallFailed:
            raise
        except Exception as exc:  # noqa: BLE001
            self._record_violation(
                round_state, seat, purpose, f"raised {exc!r}", fallback
            )
            return fallback

        try:
            return check(result)
        except ProtocolViolation as exc:
            self._record_violation(round_state, seat, purpose, str(exc), fallback)
            return fallback

    # -------------------------------------------------------------------------
    # Bidding
    # -------------------------------------------------------------------------

    @staticmethod
    def valid_bids(
        bidding_round: int, position: int, standing: Optional[Bid]
    ) -> Tuple[BidType, ...]:
        """
        Bid types on offer for the bidder at `position` (0 = left of dealer).

        Once a Hokum stands, later bidders may only pass or overcall with Sun.
        Ashkal is open to the third and fourth bidders in the first round.
        """
        if standing is not None:
            return (BidType.PASS, BidType.SUN)
        if bidding_round == 1:
            valid = [BidType.PASS, BidType.HOKUM, BidType.SUN]
            if position >= 2:
                valid.append(BidType.ASHKAL)
            return tuple(valid)
        return (BidType.PASS, BidType.HOKUM2, BidType.SUN)

    async def _bidding_phase(
        self, round_state: RoundState
    ) -> Optional[Tuple[Bid, int]]:
        dealer = round_state.dealer_index
        order = [(dealer + offset) % NUM_PLAYERS for offset in range(1, NUM_PLAYERS + 1)]

        for bidding_round in (1, 2):
            standing: Optional[Tuple[Bid, int]] = None
            for position, seat in enumerate(order):
                valid = self.valid_bids(
                    bidding_round, position, standing[0] if standing else None
                )
                state = BiddingState(
                    bidding_card=round_state.bidding_card,
                    bidding_round=bidding_round,
                    bids=tuple(round_state.bids),
                    valid_bids=valid,
                    dealer_index=dealer,
                )
                bid = await self._ask_bid(round_state, seat, state)
                round_state.bids.append(PlacedBid(seat, bid))
                logger.debug("Seat %d bids %s (round %d)", seat, bid.to_dict(), bidding_round)

                if bid.bid_type in (BidType.SUN, BidType.ASHKAL):
                    return bid, seat
                if bid.bid_type in (BidType.HOKUM, BidType.HOKUM2):
                    standing = (bid, seat)
            if standing is not None:
                return standing
        return None

    async def _ask_bid(
        self, round_state: RoundState, seat: int, state: BiddingState
    ) -> Bid:
        def check(result: Any) -> Bid:
            if not isinstance(result, Bid):
                raise ProtocolViolation(f"expected a Bid, got {type(result).__name__}")
            result.validate(state.bidding_card, state.valid_bids)
            return result

        return await self._decide(
            round_state,
            seat,
            "decide_bid",
            lambda: self.agents[seat].decide_bid(state),
            check,
            Bid.pass_(),
        )

    def _apply_contract(self, round_state: RoundState, bid: Bid, bidder: int) -> None:
        round_state.accepted_bid = bid
        card = round_state.bidding_card

        if bid.bid_type == BidType.ASHKAL:
            buyer = partner_of(bidder)
            round_state.context = TrumpContext.sun()
            penalty = self.config.ashkal_penalty_for(card)
            round_state.penalties[team_of(buyer)] += penalty
        elif bid.bid_type == BidType.SUN:
            buyer = bidder
            round_state.context = TrumpContext.sun()
        elif bid.bid_type == BidType.HOKUM2:
            buyer = bidder
            assert bid.suit_choice is not None
            round_state.context = TrumpContext.hokum(bid.suit_choice)
        else:
            buyer = bidder
            round_state.context = TrumpContext.hokum(card.suit)

        round_state.buyer_index = buyer
        logger.info(
            "Seat %d buys %s%s",
            buyer,
            round_state.context.game_type.value,
            f" in {round_state.context.trump_suit.value}"
            if round_state.context.trump_suit
            else "",
        )

    def _deal_remaining(self, round_state: RoundState, deck: Deck) -> None:
        buyer = round_state.buyer_index
        for seat in range(NUM_PLAYERS):
            hand = round_state.hands[seat]
            if seat == buyer:
                hand.append(round_state.bidding_card)
                hand.extend(deck.draw(2))
            else:
                hand.extend(deck.draw(3))
            validate_hand(hand, (TRICKS_PER_ROUND,))
            self.agents[seat].on_receive_hand(list(hand))
        if len(deck):
            raise RuntimeError(f"{len(deck)} cards left undealt")

    # -------------------------------------------------------------------------
    # Doubling and projects
    # -------------------------------------------------------------------------

    async def _doubling_phase(self, round_state: RoundState) -> None:
        assert round_state.buyer_index is not None and round_state.context is not None
        assert round_state.accepted_bid is not None
        contract_team = team_of(round_state.buyer_index)
        first_opponent = next_seat(round_state.buyer_index)
        teams = {
            1 - contract_team: [first_opponent, partner_of(first_opponent)],
            contract_team: [round_state.buyer_index, partner_of(round_state.buyer_index)],
        }

        while round_state.double_level < self.config.max_double_level:
            # Opponents double, the contract team redoubles, and so on.
            asking_team = 1 - contract_team if round_state.double_level % 2 == 0 else contract_team
            raised = False
            for seat in teams[asking_team]:
                state = DoubleState(
                    level=round_state.double_level,
                    contract_team=contract_team,
                    contract_bid=round_state.accepted_bid,
                    player_index=seat,
                    hands={s: tuple(h) for s, h in round_state.hands.items()},
                    context=round_state.context,
                )
                wants = await self._decide(
                    round_state,
                    seat,
                    "decide_double",
                    lambda seat=seat, state=state: self.agents[seat].decide_double(state),
                    _check_bool,
                    False,
                )
                if wants:
                    raised = True
                    break
            if not raised:
                break
            round_state.double_level += 1
            logger.info("Double level raised to %d", round_state.double_level)

    async def _projects_phase(self, round_state: RoundState) -> None:
        assert round_state.context is not None
        for seat in range(NUM_PLAYERS):
            detected = detect_projects(round_state.hands[seat], round_state.context)

            def check(result: Any, detected: List[Project] = detected) -> List[Project]:
                if not isinstance(result, (list, tuple)):
                    raise ProtocolViolation("declare_projects must return a list")
                chosen = list(result)
                if len(chosen) > MAX_DECLARED_PROJECTS:
                    raise ProtocolViolation(
                        f"declared {len(chosen)} projects; at most {MAX_DECLARED_PROJECTS}"
                    )
                for project in chosen:
                    if project not in detected:
                        raise ProtocolViolation(f"undetected project {project!r}")
                return chosen

            offered = list(detected)
            chosen = await self._decide(
                round_state,
                seat,
                "declare_projects",
                lambda seat=seat, offered=offered: self.agents[seat].declare_projects(offered),
                check,
                [],
            )
            if chosen:
                round_state.projects[seat] = chosen

    # -------------------------------------------------------------------------
    # Trick play
    # -------------------------------------------------------------------------

    async def _trick_phase(self, round_state: RoundState) -> None:
        ctx = round_state.context
        assert ctx is not None
        leader = next_seat(round_state.dealer_index)

        for trick_number in range(1, TRICKS_PER_ROUND + 1):
            trick = Trick()
            seat = leader
            for _turn in range(NUM_PLAYERS):
                hand = round_state.hands[seat]
                legal = legal_cards(hand, trick.plays, ctx, seat)
                state = TrickState(
                    current_trick=tuple(trick.plays),
                    game_type=ctx.game_type,
                    trump_suit=ctx.trump_suit,
                    trick_number=trick_number,
                    leader_index=leader,
                )
                card = await self._ask_card(round_state, seat, state, legal)
                hand.remove(card)
                trick.plays.append(Play(seat, card))
                for agent in self.agents:
                    agent.on_card_played(seat, card)
                seat = next_seat(seat)

            winner = current_winner(trick.plays, ctx)
            trick.winner_index = winner.player_index
            trick.points = trick_points(trick.cards, ctx)
            if trick_number == TRICKS_PER_ROUND:
                trick.points += self.config.last_trick_bonus
            round_state.tricks.append(trick)
            round_state.team_points[team_of(winner.player_index)] += trick.points

            for agent in self.agents:
                agent.on_trick_won(winner.player_index, list(trick.cards))
            leader = winner.player_index

    async def _ask_card(
        self,
        round_state: RoundState,
        seat: int,
        state: TrickState,
        legal: List[Card],
    ) -> Card:
        ctx = state.context

        def check(result: Any) -> Card:
            if not isinstance(result, Card):
                raise ProtocolViolation(f"expected a Card, got {type(result).__name__}")
            for card in legal:
                if card == result:
                    return card
            raise ProtocolViolation(
                f"card {result.id} not in legal cards {[c.id for c in legal]}"
            )

        return await self._decide(
            round_state,
            seat,
            "decide_card",
            lambda: self.agents[seat].decide_card(state, list(legal)),
            check,
            lowest_legal_card(legal, ctx),
        )


def lowest_legal_card(legal: Sequence[Card], ctx: TrumpContext) -> Card:
    """Host fallback: the weakest legal card, side suits before trumps."""
    return min(legal, key=lambda c: (ctx.is_trump(c), ctx.power(c)))


def _check_bool(result: Any) -> bool:
    if not isinstance(result, bool):
        raise ProtocolViolation(f"expected a bool, got {type(result).__name__}")
    return result


def team_totals(rounds: Sequence[RoundState]) -> Dict[int, int]:
    """Sum trick points per team over completed rounds."""
    totals = {0: 0, 1: 0}
    for round_state in rounds:
        for team, points in round_state.team_points.items():
            totals[team] += points
    return totals


__all__ = ["GameEngine", "lowest_legal_card", "team_totals"]
