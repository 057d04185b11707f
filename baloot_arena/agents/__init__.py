# baloot_arena/agents/__init__.py
from .base import BalootAgent, TrackingAgent
from .random_agent import RandomBalootAgent
from .heuristic_agents import GreedyAgent, StrategicAgent
from .llm_agents import LLMCallFailed, LLMBalootAgent

__all__ = [
    "BalootAgent",
    "TrackingAgent",
    "RandomBalootAgent",
    "GreedyAgent",
    "StrategicAgent",
    "LLMBalootAgent",
    "LLMCallFailed",
]
