# baloot_arena/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import load_dotenv

from .cards import Card, GameType
from .evaluator import HandWeights

# Load environment variables (API keys, engine overrides) from a .env file.
load_dotenv()

DEFAULT_DECISION_TIMEOUT = 5.0
DEFAULT_MAX_DOUBLE_LEVEL = 4
DEFAULT_LAST_TRICK_BONUS = 10


@dataclass(frozen=True)
class EngineConfig:
    """
    Host-side policy knobs.

    `ashkal_penalty` maps a rank label ("A", "10", ...) to the penalty charged
    to the buying team for surrendering the bidding card under Ashkal. Ranks
    missing from the mapping fall back to the card's Sun point value.
    """

    decision_timeout: float = DEFAULT_DECISION_TIMEOUT
    max_double_level: int = DEFAULT_MAX_DOUBLE_LEVEL
    last_trick_bonus: int = DEFAULT_LAST_TRICK_BONUS
    ashkal_penalty: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.decision_timeout <= 0:
            raise ValueError("decision_timeout must be positive")
        if self.max_double_level < 0:
            raise ValueError("max_double_level must be non-negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> "EngineConfig":
        values: Dict[str, Any] = {
            "decision_timeout": float(
                os.getenv("BALOOT_DECISION_TIMEOUT", DEFAULT_DECISION_TIMEOUT)
            ),
            "max_double_level": int(
                os.getenv("BALOOT_MAX_DOUBLE_LEVEL", DEFAULT_MAX_DOUBLE_LEVEL)
            ),
            "last_trick_bonus": int(
                os.getenv("BALOOT_LAST_TRICK_BONUS", DEFAULT_LAST_TRICK_BONUS)
            ),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def ashkal_penalty_for(self, card: Card) -> int:
        if card.rank.value in self.ashkal_penalty:
            return int(self.ashkal_penalty[card.rank.value])
        return card.point_value(GameType.SUN, False)


@dataclass(frozen=True)
class GreedyConfig:
    min_trump_count: int = 3
    min_sun_high_cards: int = 5
    hokum2_threshold: int = 40
    weights: HandWeights = HandWeights(
        hokum_per_card=10, hokum_jack=30, hokum_nine=20, hokum_ace=8
    )


@dataclass(frozen=True)
class StrategyConfig:
    """Thresholds for StrategicAgent; scores come from the hand evaluator."""

    hokum_threshold: int = 65
    sun_threshold: int = 75
    hokum2_threshold: int = 55
    sun_second_round_threshold: int = 55
    double_margin: int = 30
    late_game_trick: int = 6
    trump_extraction_remaining: int = 3
    weights: HandWeights = HandWeights()


def strategy_config_from_dict(data: Mapping[str, Any]) -> StrategyConfig:
    """Build a StrategyConfig from plain data, rejecting unknown keys."""
    known = {f.name for f in fields(StrategyConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown strategy config keys: {unknown}")

    values = dict(data)
    weights = values.pop("weights", None)
    if weights is not None:
        weight_keys = {f.name for f in fields(HandWeights)}
        bad = sorted(set(weights) - weight_keys)
        if bad:
            raise ValueError(f"Unknown weight keys: {bad}")
        values["weights"] = HandWeights(**{k: int(v) for k, v in weights.items()})
    return StrategyConfig(**values)


def load_strategy_config(path: Optional[Union[str, Path]]) -> StrategyConfig:
    """Read a JSON strategy config; no path means defaults."""
    if path is None:
        return StrategyConfig()
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Strategy config in {path} must be a JSON object")
    return strategy_config_from_dict(data)
