# tests/test_engine.py
import asyncio
import random
from pathlib import Path

import pytest

from baloot_arena.agents import (
    GreedyAgent,
    LLMBalootAgent,
    LLMCallFailed,
    RandomBalootAgent,
    StrategicAgent,
)
from baloot_arena.cards import Card, Deck, GameType, Suit
from baloot_arena.config import EngineConfig
from baloot_arena.decision_log import DecisionLogger
from baloot_arena.engine import GameEngine, lowest_legal_card, team_totals
from baloot_arena.projects import detect_projects
from baloot_arena.rules import TrumpContext
from baloot_arena.state import Bid, BidType


class ScriptedAgent(GreedyAgent):
    """Greedy card play with a fixed bid per bidding round."""

    def __init__(self, player_index, bids=None, double=False):
        super().__init__(player_index)
        self.bids = dict(bids or {})
        self.double = double
        self.hands_received = []

    def on_receive_hand(self, hand):
        super().on_receive_hand(hand)
        self.hands_received.append(list(hand))

    async def decide_bid(self, state):
        bid_type = self.bids.get(state.bidding_round, BidType.PASS)
        if bid_type == BidType.HOKUM2:
            suit = next(s for s in Suit if s != state.bidding_card.suit)
            return Bid(bid_type, suit)
        return Bid(bid_type)

    async def decide_double(self, state):
        return self.double


class SlowCardAgent(ScriptedAgent):
    async def decide_card(self, state, legal_cards):
        await asyncio.sleep(1.0)
        return legal_cards[0]


class IllegalCardAgent(ScriptedAgent):
    async def decide_card(self, state, legal_cards):
        legal_ids = {c.id for c in legal_cards}
        return next(c for c in Deck().cards if c.id not in legal_ids)


class BrokenBidAgent(ScriptedAgent):
    async def decide_bid(self, state):
        raise RuntimeError("boom")


class FailingLLMAgent(ScriptedAgent):
    async def decide_bid(self, state):
        raise LLMCallFailed(
            label="openai:test", purpose="decide_bid", attempts=5, error=RuntimeError("down")
        )


class ProjectCountingAgent(ScriptedAgent):
    def __init__(self, player_index, bids=None, double=False):
        super().__init__(player_index, bids=bids, double=double)
        self.offers = []

    async def declare_projects(self, projects):
        self.offers.append(list(projects))
        return await super().declare_projects(projects)


class DownRouter:
    """Stands in for LLMRouter while the provider is unreachable."""

    def __init__(self):
        self.calls = 0

    def complete(self, model_spec, *, prompt, system_prompt=None):
        self.calls += 1
        raise ConnectionError("provider unreachable")


def _scripted(bids_by_seat=None, doubles=None, cls_by_seat=None):
    bids_by_seat = bids_by_seat or {}
    doubles = doubles or {}
    cls_by_seat = cls_by_seat or {}
    return [
        cls_by_seat.get(seat, ScriptedAgent)(
            seat, bids=bids_by_seat.get(seat), double=doubles.get(seat, False)
        )
        for seat in range(4)
    ]


def _expected_total(ctx: TrumpContext, bonus: int = 10) -> int:
    if ctx.game_type == GameType.HOKUM:
        return 62 + 3 * 30 + bonus
    return 4 * 30 + bonus


def test_engine_requires_four_seated_agents():
    with pytest.raises(ValueError):
        GameEngine([GreedyAgent(i) for i in range(3)])
    agents = [GreedyAgent(i) for i in range(4)]
    agents[1], agents[2] = agents[2], agents[1]
    with pytest.raises(ValueError):
        GameEngine(agents)


def test_valid_bids_per_turn():
    assert GameEngine.valid_bids(1, 0, None) == (BidType.PASS, BidType.HOKUM, BidType.SUN)
    assert BidType.ASHKAL not in GameEngine.valid_bids(1, 1, None)
    assert BidType.ASHKAL in GameEngine.valid_bids(1, 2, None)
    assert BidType.ASHKAL in GameEngine.valid_bids(1, 3, None)
    assert GameEngine.valid_bids(1, 3, Bid(BidType.HOKUM)) == (BidType.PASS, BidType.SUN)
    assert GameEngine.valid_bids(2, 0, None) == (BidType.PASS, BidType.HOKUM2, BidType.SUN)


def test_full_rounds_with_builtin_agents():
    agents = [
        StrategicAgent(0),
        GreedyAgent(1),
        RandomBalootAgent(2, rng=random.Random(2)),
        StrategicAgent(3),
    ]
    engine = GameEngine(agents, rng_seed=4, game_label="test")
    rounds = asyncio.run(engine.play_rounds(6))

    assert len(rounds) == 6
    assert engine.rounds == rounds
    for round_state in rounds:
        assert round_state.is_complete
        assert all(len(t.plays) == 4 for t in round_state.tricks)
        assert all(not hand for hand in round_state.hands.values())
        assert sum(round_state.team_points.values()) == _expected_total(round_state.context)
        assert round_state.violations == {0: 0, 1: 0, 2: 0, 3: 0}
        played = [c.id for t in round_state.tricks for c in t.cards]
        assert len(set(played)) == 32
    totals = team_totals(rounds)
    assert sum(totals.values()) == sum(
        _expected_total(r.context) for r in rounds
    )


def test_all_pass_returns_none():
    engine = GameEngine(_scripted(), rng_seed=1)
    assert asyncio.run(engine.play_round(0)) is None
    assert engine.rounds == []


def test_hokum_bid_stands_when_others_pass():
    agents = _scripted({1: {1: BidType.HOKUM}})
    round_state = asyncio.run(GameEngine(agents, rng_seed=2).play_round(0))
    assert round_state.buyer_index == 1
    assert round_state.context == TrumpContext.hokum(round_state.bidding_card.suit)
    assert len(round_state.bids) == 4
    assert round_state.bidding_card in agents[1].hands_received[-1]
    assert len(agents[1].hands_received[-1]) == 8


def test_sun_overcalls_hokum_and_ends_bidding():
    agents = _scripted({1: {1: BidType.HOKUM}, 2: {1: BidType.SUN}})
    round_state = asyncio.run(GameEngine(agents, rng_seed=2).play_round(0))
    assert round_state.buyer_index == 2
    assert round_state.context == TrumpContext.sun()
    assert [p.player_index for p in round_state.bids] == [1, 2]


def test_second_hokum_bid_is_rejected():
    agents = _scripted({1: {1: BidType.HOKUM}, 2: {1: BidType.HOKUM}})
    round_state = asyncio.run(GameEngine(agents, rng_seed=2).play_round(0))
    assert round_state.buyer_index == 1
    assert round_state.violations[2] == 1
    assert round_state.bids[1].bid == Bid.pass_()


def test_hokum2_in_second_round():
    agents = _scripted({2: {2: BidType.HOKUM2}})
    round_state = asyncio.run(GameEngine(agents, rng_seed=3).play_round(0))
    assert round_state.buyer_index == 2
    assert round_state.context.game_type == GameType.HOKUM
    assert round_state.context.trump_suit != round_state.bidding_card.suit
    assert round_state.accepted_bid.bid_type == BidType.HOKUM2


def test_ashkal_hands_sun_to_partner_and_records_penalty():
    # Dealer 0: seats bid in order 1, 2, 3, 0, so seat 3 is the third bidder.
    agents = _scripted({3: {1: BidType.ASHKAL}})
    round_state = asyncio.run(GameEngine(agents, rng_seed=5).play_round(0))
    assert round_state.buyer_index == 1
    assert round_state.context == TrumpContext.sun()
    assert round_state.bidding_card in agents[1].hands_received[-1]
    expected = round_state.bidding_card.point_value(GameType.SUN, False)
    assert round_state.penalties == {0: 0, 1: expected}


def test_ashkal_penalty_is_configurable():
    agents = _scripted({3: {1: BidType.ASHKAL}})
    penalties = {rank: 7 for rank in ("7", "8", "9", "10", "J", "Q", "K", "A")}
    config = EngineConfig(ashkal_penalty=penalties)
    round_state = asyncio.run(GameEngine(agents, config=config, rng_seed=5).play_round(0))
    assert round_state.penalties[1] == 7


def test_ashkal_from_first_bidder_is_a_violation():
    agents = _scripted({1: {1: BidType.ASHKAL}, 2: {1: BidType.SUN}})
    round_state = asyncio.run(GameEngine(agents, rng_seed=5).play_round(0))
    assert round_state.violations[1] == 1
    assert round_state.buyer_index == 2


def test_doubling_alternates_up_to_max_level():
    agents = _scripted(
        {1: {1: BidType.HOKUM}},
        doubles={0: True, 1: True, 2: True, 3: True},
    )
    round_state = asyncio.run(GameEngine(agents, rng_seed=6).play_round(0))
    assert round_state.double_level == 4


def test_doubling_stops_when_contract_team_declines():
    agents = _scripted({1: {1: BidType.HOKUM}}, doubles={0: True, 2: True})
    round_state = asyncio.run(GameEngine(agents, rng_seed=6).play_round(0))
    assert round_state.double_level == 1


def test_doubling_disabled_by_config():
    agents = _scripted({1: {1: BidType.HOKUM}}, doubles={0: True, 2: True})
    config = EngineConfig(max_double_level=0)
    round_state = asyncio.run(GameEngine(agents, config=config, rng_seed=6).play_round(0))
    assert round_state.double_level == 0


def test_slow_agent_gets_lowest_legal_card(tmp_path: Path):
    agents = _scripted({1: {1: BidType.SUN}}, cls_by_seat={0: SlowCardAgent})
    log = DecisionLogger(tmp_path / "failures.log", only_failures=True)
    config = EngineConfig(decision_timeout=0.05)
    engine = GameEngine(agents, config=config, rng_seed=7, game_label="slow", decision_logger=log)
    round_state = asyncio.run(engine.play_round(0))
    assert round_state.is_complete
    assert round_state.violations[0] == 8
    assert sum(round_state.violations.values()) == 8
    assert sum(round_state.team_points.values()) == _expected_total(TrumpContext.sun())
    entries = log.entries
    assert len(entries) == 8
    assert "timed out" in entries[0]
    assert "Game: slow" in entries[0]


def test_illegal_card_is_replaced():
    agents = _scripted({1: {1: BidType.HOKUM}}, cls_by_seat={2: IllegalCardAgent})
    round_state = asyncio.run(GameEngine(agents, rng_seed=8).play_round(0))
    assert round_state.is_complete
    assert round_state.violations[2] == 8
    assert sum(round_state.team_points.values()) == _expected_total(round_state.context)


def test_agent_exception_becomes_pass():
    agents = _scripted({2: {1: BidType.SUN}}, cls_by_seat={1: BrokenBidAgent})
    round_state = asyncio.run(GameEngine(agents, rng_seed=9).play_round(0))
    assert round_state.violations[1] == 1
    assert round_state.bids[0].bid == Bid.pass_()
    assert round_state.buyer_index == 2


def test_llm_call_failure_propagates():
    agents = _scripted(cls_by_seat={1: FailingLLMAgent})
    with pytest.raises(LLMCallFailed):
        asyncio.run(GameEngine(agents, rng_seed=1).play_round(0))


def test_provider_outage_halts_the_round_despite_a_short_host_timeout():
    router = DownRouter()
    agents = _scripted()
    agents[1] = LLMBalootAgent(
        1,
        "openai:gpt-4o-mini",
        router=router,
        max_api_retries=3,
        retry_delay_seconds=0.05,
        request_timeout_seconds=1.0,
    )
    engine = GameEngine(agents, config=EngineConfig(decision_timeout=0.05), rng_seed=1)
    assert engine.decision_timeout_for(0) == 0.05
    assert engine.decision_timeout_for(1) > agents[1].decision_budget_seconds

    with pytest.raises(LLMCallFailed) as excinfo:
        asyncio.run(engine.play_round(0))
    assert excinfo.value.purpose == "decide_bid"
    assert router.calls == 3


def test_llm_seats_get_their_full_retry_budget():
    agents = [GreedyAgent(0), LLMBalootAgent(1, "openai:gpt-4o-mini", router=DownRouter())]
    agents += [GreedyAgent(2), GreedyAgent(3)]
    engine = GameEngine(agents)
    assert engine.decision_timeout_for(0) == EngineConfig().decision_timeout
    # Five 60s attempts with 2s between them.
    assert engine.decision_timeout_for(1) == 5 * 60.0 + 4 * 2.0 + 1.0


def test_every_seat_is_asked_for_projects_each_round():
    agents = _scripted(
        {1: {1: BidType.HOKUM}}, cls_by_seat={s: ProjectCountingAgent for s in range(4)}
    )
    engine = GameEngine(agents, rng_seed=2)
    round_state = asyncio.run(engine.play_round(0))
    assert round_state.is_complete
    for agent in agents:
        assert len(agent.offers) == 1
        assert agent.offers[0] == detect_projects(agent.hands_received[-1], round_state.context)
    assert sum(round_state.violations.values()) == 0


def test_lowest_legal_card_prefers_side_suits():
    ctx = TrumpContext.hokum(Suit.HEARTS)
    cards = [Card.from_id("7-hearts"), Card.from_id("A-clubs"), Card.from_id("8-spades")]
    assert lowest_legal_card(cards, ctx).id == "8-spades"
