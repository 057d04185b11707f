# tests/test_llm_agent.py
import asyncio
import time

import pytest

from baloot_arena.agents import LLMBalootAgent, LLMCallFailed
from baloot_arena.agents.llm_agents import parse_model_response
from baloot_arena.cards import Card, GameType, Suit
from baloot_arena.decision_log import DecisionLogger
from baloot_arena.llm_clients import ModelSpec
from baloot_arena.rules import Play, TrumpContext
from baloot_arena.state import Bid, BiddingState, BidType, DoubleState, TrickState


class FakeRouter:
    """Returns canned outputs in order; an Exception instance is raised instead."""

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.prompts = []

    def complete(self, model_spec, *, prompt, system_prompt=None):
        self.prompts.append(prompt)
        out = self.outputs.pop(0)
        if isinstance(out, Exception):
            raise out
        return out


def C(card_id: str) -> Card:
    return Card.from_id(card_id)


FIRST_HAND = [C("7-clubs"), C("8-clubs"), C("9-hearts"), C("K-hearts"), C("Q-spades")]


def _agent(router, tmp_path=None, seat=0):
    logger = DecisionLogger(tmp_path / "decisions.log") if tmp_path else None
    agent = LLMBalootAgent(
        seat,
        "openai:gpt-4o-mini",
        router=router,
        decision_logger=logger,
        game_id="g1",
        max_api_retries=2,
        retry_delay_seconds=0.0,
    )
    agent.on_round_start(3)
    return agent


def _trick_state():
    return TrickState(
        current_trick=(Play(3, C("K-clubs")),),
        game_type=GameType.SUN,
        trump_suit=None,
        trick_number=1,
    )


def test_parse_model_response_with_marker():
    parsed = parse_model_response('I hold the ace.\nFINAL_JSON: {"card": "A-clubs"}')
    assert parsed.data == {"card": "A-clubs"}
    assert parsed.rationale == "I hold the ace."


def test_parse_model_response_without_marker_and_trailing_text():
    parsed = parse_model_response('{"double": false} thanks')
    assert parsed.data == {"double": False}
    assert parsed.rationale == ""


def test_parse_model_response_rejects_non_objects():
    with pytest.raises(ValueError):
        parse_model_response("no json here")
    with pytest.raises(ValueError):
        parse_model_response("FINAL_JSON: {broken")


def test_model_spec_parsing():
    spec = ModelSpec.parse("Gemini:gemini-2.0-flash")
    assert spec.provider == "gemini"
    assert spec.litellm_name == "gemini/gemini-2.0-flash"
    assert ModelSpec.parse("grok:grok-3").litellm_name == "xai/grok-3"
    with pytest.raises(ValueError):
        ModelSpec.parse("gpt-4o")
    with pytest.raises(ValueError):
        ModelSpec.parse("mistral:large")


def test_llm_agent_plays_the_chosen_legal_card(tmp_path):
    router = FakeRouter('Take it.\nFINAL_JSON: {"card": "A-clubs"}')
    agent = _agent(router, tmp_path)
    hand = [C("A-clubs"), C("7-clubs"), C("9-hearts"), C("K-hearts"), C("Q-spades")]
    agent.on_receive_hand(hand)
    card = asyncio.run(agent.decide_card(_trick_state(), hand[:2]))
    assert card.id == "A-clubs"
    assert agent.name == "openai:gpt-4o-mini"
    assert '"legal_cards"' in router.prompts[0]
    assert "Rationale:" in agent.decision_logger.entries[0]


def test_llm_agent_falls_back_on_illegal_card(tmp_path):
    router = FakeRouter('FINAL_JSON: {"card": "9-hearts"}')
    agent = _agent(router, tmp_path)
    hand = [C("A-clubs"), C("7-clubs"), C("9-hearts"), C("K-hearts"), C("Q-spades")]
    agent.on_receive_hand(hand)
    card = asyncio.run(agent.decide_card(_trick_state(), hand[:2]))
    assert card.id in {"A-clubs", "7-clubs"}
    assert any("not in legal cards" in e for e in agent.decision_logger.entries)


def test_llm_agent_falls_back_on_unparsable_output(tmp_path):
    router = FakeRouter("I would rather not say.")
    agent = _agent(router, tmp_path)
    hand = [C("A-clubs"), C("7-clubs"), C("9-hearts"), C("K-hearts"), C("Q-spades")]
    agent.on_receive_hand(hand)
    card = asyncio.run(agent.decide_card(_trick_state(), hand[:2]))
    assert card in hand[:2]
    assert "unparsable output" in agent.decision_logger.entries[-1]


def test_llm_agent_bid_is_validated():
    state = BiddingState(
        bidding_card=C("10-spades"),
        bidding_round=2,
        bids=(),
        valid_bids=(BidType.PASS, BidType.HOKUM2, BidType.SUN),
    )
    agent = _agent(FakeRouter('FINAL_JSON: {"bid_type": "hokum2", "suit_choice": "hearts"}'))
    agent.on_receive_hand(FIRST_HAND)
    assert asyncio.run(agent.decide_bid(state)) == Bid(BidType.HOKUM2, Suit.HEARTS)

    agent = _agent(FakeRouter('FINAL_JSON: {"bid_type": "hokum2", "suit_choice": "spades"}'))
    agent.on_receive_hand(FIRST_HAND)
    bid = asyncio.run(agent.decide_bid(state))
    bid.validate(state.bidding_card, state.valid_bids)

    # Unknown bid types are treated as a pass.
    agent = _agent(FakeRouter('FINAL_JSON: {"bid_type": "kaboot"}'))
    agent.on_receive_hand(FIRST_HAND)
    assert asyncio.run(agent.decide_bid(state)) == Bid.pass_()


def test_llm_agent_double_requires_boolean():
    state = DoubleState(
        level=0,
        contract_team=1,
        contract_bid=Bid(BidType.SUN),
        player_index=0,
        hands={0: (C("A-clubs"),), 1: (), 2: (), 3: ()},
        context=TrumpContext.sun(),
    )
    agent = _agent(FakeRouter('FINAL_JSON: {"double": true}'))
    assert asyncio.run(agent.decide_double(state)) is True
    agent = _agent(FakeRouter('FINAL_JSON: {"double": "yes"}'))
    assert asyncio.run(agent.decide_double(state)) is False


def test_llm_agent_retries_then_raises():
    router = FakeRouter(RuntimeError("rate limited"), RuntimeError("rate limited"))
    agent = _agent(router)
    hand = [C("A-clubs"), C("7-clubs"), C("9-hearts"), C("K-hearts"), C("Q-spades")]
    agent.on_receive_hand(hand)
    with pytest.raises(LLMCallFailed) as excinfo:
        asyncio.run(agent.decide_card(_trick_state(), hand[:2]))
    assert excinfo.value.attempts == 2
    assert excinfo.value.purpose == "decide_card"


def test_llm_agent_recovers_after_a_transient_error():
    router = FakeRouter(RuntimeError("timeout"), 'FINAL_JSON: {"card": "A-clubs"}')
    agent = _agent(router)
    hand = [C("A-clubs"), C("7-clubs"), C("9-hearts"), C("K-hearts"), C("Q-spades")]
    agent.on_receive_hand(hand)
    assert asyncio.run(agent.decide_card(_trick_state(), hand[:2])).id == "A-clubs"


class HangingRouter:
    def __init__(self):
        self.calls = 0

    def complete(self, model_spec, *, prompt, system_prompt=None):
        self.calls += 1
        time.sleep(0.3)
        return 'FINAL_JSON: {"card": "A-clubs"}'


def test_llm_agent_gives_up_on_requests_that_hang():
    router = HangingRouter()
    agent = LLMBalootAgent(
        0,
        "openai:gpt-4o-mini",
        router=router,
        max_api_retries=2,
        retry_delay_seconds=0.0,
        request_timeout_seconds=0.05,
    )
    agent.on_round_start(3)
    hand = [C("A-clubs"), C("7-clubs"), C("9-hearts"), C("K-hearts"), C("Q-spades")]
    agent.on_receive_hand(hand)
    with pytest.raises(LLMCallFailed) as excinfo:
        asyncio.run(agent.decide_card(_trick_state(), hand[:2]))
    assert excinfo.value.attempts == 2
    assert router.calls == 2
    assert agent.decision_budget_seconds == pytest.approx(0.1)
