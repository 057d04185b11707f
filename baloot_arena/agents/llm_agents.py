# baloot_arena/agents/llm_agents.py
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Union

from ..cards import Card, Suit, card_to_dict
from ..decision_log import DecisionLogger
from ..llm_clients import LLMRouter, ModelSpec
from ..state import (
    Bid,
    BiddingState,
    BidType,
    DoubleState,
    TrickState,
)
from .heuristic_agents import GreedyAgent

ESSENTIAL_RULES = """
Essentials:
- 32-card deck: suits clubs/diamonds/hearts/spades, ranks 7 8 9 10 J Q K A. Cards are named '<rank>-<suit>', e.g. 'A-spades'.
- Four players in two teams; seats 0 and 2 are partners, as are seats 1 and 3.
- Contracts: 'hokum' makes the face-up bidding card's suit trump; 'hokum2' (second bidding round only) makes another suit of your choice trump; 'sun' means no trump; 'ashkal' asks your partner to play Sun; 'pass' declines.
- Trump ranking (Hokum): J > 9 > A > 10 > K > Q > 8 > 7. All other suits, and every suit in Sun: A > 10 > K > Q > J > 9 > 8 > 7.
- Points: trump J=20, 9=14, A=11, 10=10, K=4, Q=3; non-trump A=11, 10=10, K=4, Q=3, J=2; 7 and 8 are worth nothing.
- Trick winner: the highest trump if any trump was played, otherwise the highest card of the suit led. Cards of other suits never win.
- The environment has already filtered your legal cards; you must choose one of them.
""".strip()

logger = logging.getLogger(__name__)


@dataclass
class ParsedModelResponse:
    data: Dict[str, Any]
    rationale: str


class LLMCallFailed(RuntimeError):
    """Raised when an LLM call exhausts all retry attempts."""

    def __init__(self, *, label: str, purpose: str, attempts: int, error: Exception):
        super().__init__(
            f"LLM {label} failed for {purpose} after {attempts} attempts: {error}"
        )
        self.label = label
        self.purpose = purpose
        self.attempts = attempts
        self.error = error


def parse_model_response(text: str) -> ParsedModelResponse:
    """
    Extract the rationale and the JSON object following `FINAL_JSON:`.

    Without the delimiter the first JSON object in the text is used.
    """
    cleaned = text.strip()
    match = re.search(r"FINAL_JSON\s*:?", cleaned, flags=re.IGNORECASE)
    if match:
        rationale = cleaned[: match.start()].strip()
        candidate = cleaned[match.end():].strip()
    else:
        rationale = ""
        candidate = cleaned

    start = candidate.find("{")
    if start == -1:
        raise ValueError("No JSON object found in model output")
    try:
        obj, _end = json.JSONDecoder().raw_decode(candidate[start:])
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to decode JSON: {exc}") from exc
    if not isinstance(obj, dict):
        raise ValueError(f"Expected a JSON object, got {type(obj).__name__}")
    return ParsedModelResponse(data=obj, rationale=rationale)


class LLMBalootAgent(GreedyAgent):
    """
    Baloot agent that asks a chat model for each decision.

    Output that cannot be parsed or breaks the contract (a bid type not on
    offer, a card not in the legal set) is logged and replaced by the greedy
    heuristic's choice, so the agent itself never returns an illegal move.
    API errors and requests that run past `request_timeout_seconds` are
    retried; after the last attempt LLMCallFailed is raised to halt the run.
    `decision_budget_seconds` tells the host how long that can take.
    """

    def __init__(
        self,
        player_index: int,
        model: Union[str, ModelSpec],
        *,
        team_index: Optional[int] = None,
        router: Optional[LLMRouter] = None,
        decision_logger: Optional[DecisionLogger] = None,
        game_id: Optional[str] = None,
        max_api_retries: int = 5,
        retry_delay_seconds: float = 2.0,
        request_timeout_seconds: float = 60.0,
    ) -> None:
        super().__init__(player_index, team_index)
        self.model_spec = model if isinstance(model, ModelSpec) else ModelSpec.parse(model)
        self.router = router or LLMRouter()
        self.decision_logger = decision_logger
        self.game_id = game_id
        self._max_api_retries = max_api_retries
        self._retry_delay_seconds = retry_delay_seconds
        self._request_timeout_seconds = request_timeout_seconds

    @property
    def name(self) -> str:  # type: ignore[override]
        return self.model_spec.label

    @property
    def decision_budget_seconds(self) -> float:
        """Longest one decision can take before LLMCallFailed is raised."""
        return (
            self._max_api_retries * self._request_timeout_seconds
            + (self._max_api_retries - 1) * self._retry_delay_seconds
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build_prompt(self, observation: Dict[str, Any], instruction: str) -> str:
        obs_json = json.dumps(observation, default=str, sort_keys=True, indent=2)
        return "\n\n".join(
            [
                "You are playing the trick-taking card game Baloot. "
                "You must respect the game rules at all times.",
                ESSENTIAL_RULES,
                instruction,
                "Here is a JSON description of the current state from your perspective:",
                obs_json,
                "If you include reasoning, place it before `FINAL_JSON:`. "
                "End with `FINAL_JSON:` followed by ONLY the JSON object.",
            ]
        )

    def _base_observation(self) -> Dict[str, Any]:
        return {
            "seat": self.player_index,
            "team": self.team_index,
            "partner_seat": self.partner_index,
            "hand": [card.id for card in self.hand],
            "cards_seen": sorted(self.tracking.seen_ids),
        }

    def _log_failure(self, purpose: str, error: str, raw_output: Optional[str]) -> None:
        logger.warning("LLM %s %s: %s; using fallback", self.name, purpose, error)
        if self.decision_logger:
            self.decision_logger.log_failure(
                agent_label=self.name,
                purpose=purpose,
                error=error,
                game_id=self.game_id,
                seat=self.player_index,
                raw_output=raw_output,
                fallback="greedy heuristic",
            )

    async def _ask(
        self, purpose: str, system_prompt: str, prompt: str
    ) -> Optional[Dict[str, Any]]:
        """
        Query the model and return the parsed JSON object.

        Returns None for unparsable output; raises LLMCallFailed once the API
        retries are exhausted.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self._max_api_retries + 1):
            try:
                raw_output = await asyncio.wait_for(
                    asyncio.to_thread(
                        self.router.complete,
                        self.model_spec,
                        prompt=prompt,
                        system_prompt=system_prompt,
                    ),
                    timeout=self._request_timeout_seconds,
                )
            except asyncio.TimeoutError:
                last_error = TimeoutError(
                    f"no response within {self._request_timeout_seconds}s"
                )
                logger.warning(
                    "LLM %s timed out for %s (attempt %d/%d)",
                    self.name,
                    purpose,
                    attempt,
                    self._max_api_retries,
                )
                if attempt < self._max_api_retries:
                    await asyncio.sleep(self._retry_delay_seconds)
                continue
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "LLM %s failed for %s (attempt %d/%d): %s",
                    self.name,
                    purpose,
                    attempt,
                    self._max_api_retries,
                    exc,
                )
                if attempt < self._max_api_retries:
                    await asyncio.sleep(self._retry_delay_seconds)
                continue

            logger.debug("LLM %s (%s) raw output: %s", self.name, purpose, raw_output)
            try:
                parsed = parse_model_response(raw_output)
            except ValueError as exc:
                self._log_failure(purpose, f"unparsable output: {exc}", raw_output)
                return None

            if self.decision_logger:
                self.decision_logger.log_interaction(
                    agent_label=self.name,
                    purpose=purpose,
                    prompt=prompt,
                    raw_output=raw_output,
                    parsed_json=parsed.data,
                    game_id=self.game_id,
                    seat=self.player_index,
                    rationale_text=parsed.rationale,
                )
            return parsed.data

        assert last_error is not None
        raise LLMCallFailed(
            label=self.name,
            purpose=purpose,
            attempts=self._max_api_retries,
            error=last_error,
        )

    # ------------------------------------------------------------------
    # BalootAgent interface
    # ------------------------------------------------------------------

    async def decide_bid(self, state: BiddingState) -> Bid:
        observation = self._base_observation()
        observation.update(
            {
                "phase": "bidding",
                "bidding_card": state.bidding_card.id,
                "bidding_round": state.bidding_round,
                "dealer_seat": state.dealer_index,
                "bids_so_far": [
                    {"seat": placed.player_index, **placed.bid.to_dict()}
                    for placed in state.bids
                ],
                "valid_bids": [b.value for b in state.valid_bids],
            }
        )
        instruction = (
            "Choose your bid. `bid_type` must be one of "
            f"{[b.value for b in state.valid_bids]}. For 'hokum2' also give "
            "`suit_choice`, which must differ from the bidding card's suit "
            f"({state.bidding_card.suit.value}).\n"
            'End with FINAL_JSON: {"bid_type": <string>, "suit_choice": <string or null>}'
        )
        result = await self._ask(
            "decide_bid",
            "You are a strong Baloot player deciding a bid. Always output valid JSON.",
            self._build_prompt(observation, instruction),
        )
        if result is None:
            return await super().decide_bid(state)

        try:
            suit_raw = result.get("suit_choice")
            bid = Bid(
                BidType.parse(result.get("bid_type")),
                Suit.parse(suit_raw) if suit_raw else None,
            )
            bid.validate(state.bidding_card, state.valid_bids)
        except (KeyError, ValueError) as exc:
            # ProtocolViolation is a ValueError as well.
            self._log_failure("decide_bid", f"invalid bid {result!r}: {exc}", None)
            return await super().decide_bid(state)
        return bid

    async def decide_double(self, state: DoubleState) -> bool:
        observation = self._base_observation()
        observation.update(
            {
                "phase": "doubling",
                "double_level": state.level,
                "contract_team": state.contract_team,
                "contract": state.contract_bid.to_dict(),
                "trump_suit": state.context.trump_suit.value
                if state.context.trump_suit
                else None,
                "all_hands": {
                    str(seat): [c.id for c in cards] for seat, cards in state.hands.items()
                },
            }
        )
        instruction = (
            "Decide whether to raise the double level for this round.\n"
            'End with FINAL_JSON: {"double": <true or false>}'
        )
        result = await self._ask(
            "decide_double",
            "You are a careful Baloot player judging a double. Always output valid JSON.",
            self._build_prompt(observation, instruction),
        )
        if result is None or not isinstance(result.get("double"), bool):
            if result is not None:
                self._log_failure("decide_double", f"non-boolean double {result!r}", None)
            return await super().decide_double(state)
        return result["double"]

    async def decide_card(self, state: TrickState, legal_cards: Sequence[Card]) -> Card:
        legal = list(legal_cards)
        observation = self._base_observation()
        observation.update(
            {
                "phase": "play",
                "game_type": state.game_type.value,
                "trump_suit": state.trump_suit.value if state.trump_suit else None,
                "trick_number": state.trick_number,
                "current_trick": [
                    {"seat": play.player_index, "card": card_to_dict(play.card)}
                    for play in state.current_trick
                ],
                "legal_cards": [card.id for card in legal],
            }
        )
        instruction = (
            "Pick exactly one card id from `legal_cards`.\n"
            'End with FINAL_JSON: {"card": <card id string>}'
        )
        result = await self._ask(
            "decide_card",
            "You are choosing which card to play for this Baloot trick. "
            "Always output valid JSON.",
            self._build_prompt(observation, instruction),
        )
        if result is None:
            return await super().decide_card(state, legal)

        chosen = str(result.get("card", "")).strip()
        by_id = {card.id: card for card in legal}
        if chosen not in by_id:
            self._log_failure(
                "decide_card",
                f"card {chosen!r} not in legal cards {sorted(by_id)}",
                None,
            )
            return await super().decide_card(state, legal)
        return by_id[chosen]
