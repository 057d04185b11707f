# baloot_arena/cli.py
from __future__ import annotations

import argparse
import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

from .agents import (
    BalootAgent,
    GreedyAgent,
    LLMBalootAgent,
    LLMCallFailed,
    RandomBalootAgent,
    StrategicAgent,
)
from .config import EngineConfig, StrategyConfig, load_strategy_config
from .cost_tracker import get_cost_tracker
from .decision_log import DecisionLogger
from .engine import GameEngine, team_totals
from .game_log import build_round_rows, write_rows_csv
from .llm_clients import LLMRouter
from .paths import ensure_results_dir, resolve_results_path
from .rules import NUM_PLAYERS

BUILTIN_AGENTS = ("random", "greedy", "strategic")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Run Baloot rounds between four agents and log per-round team "
            "points to a CSV file."
        )
    )

    parser.add_argument(
        "--agents",
        nargs=4,
        default=["strategic", "greedy", "strategic", "greedy"],
        help=(
            "Four agents in seat order, each 'random', 'greedy', 'strategic' "
            "or an LLM of the form '<provider>:<model_name>', e.g. "
            "openai:gpt-4o-mini. Seats 0/2 and 1/3 are partners."
        ),
    )
    parser.add_argument(
        "--rounds",
        type=int,
        default=10,
        help="Number of completed rounds to play (default: 10).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Random seed for dealing and for random agents.",
    )
    parser.add_argument(
        "--csv",
        type=str,
        default="baloot_rounds.csv",
        help="Path to the output CSV file (default: baloot_rounds.csv).",
    )
    parser.add_argument(
        "--strategy-config",
        type=str,
        default=None,
        help="Optional JSON file overriding StrategicAgent thresholds and weights.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=(
            "Seconds an agent may take per decision "
            "(default: BALOOT_DECISION_TIMEOUT or 5.0). LLM seats always get "
            "at least their full retry budget."
        ),
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ...). Default: INFO.",
    )
    parser.add_argument(
        "--verbose-log",
        type=str,
        default=None,
        help="Optional path for a detailed decision log file.",
    )
    parser.add_argument(
        "--failure-log",
        type=str,
        default=None,
        help="Optional path to capture only protocol violations and failed LLM calls.",
    )
    parser.add_argument(
        "--temperature",
        type=float,
        default=0.0,
        help="Sampling temperature for all LLM agents (default: 0.0).",
    )
    parser.add_argument(
        "--max-output-tokens",
        type=int,
        default=256,
        help="Max output tokens requested from each LLM call (default: 256).",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=60.0,
        help="Seconds before a single LLM request is abandoned and retried (default: 60).",
    )

    return parser.parse_args(argv)


def build_agent(
    kind: str,
    seat: int,
    *,
    seed: int,
    strategy_config: StrategyConfig,
    router: Optional[LLMRouter] = None,
    decision_logger: Optional[DecisionLogger] = None,
    game_id: Optional[str] = None,
    request_timeout: float = 60.0,
) -> BalootAgent:
    """Create the agent for one seat from its command-line name."""
    name = kind.strip().lower()
    if name == "random":
        return RandomBalootAgent(seat, rng=random.Random(seed * 1000 + seat))
    if name == "greedy":
        return GreedyAgent(seat)
    if name == "strategic":
        return StrategicAgent(seat, config=strategy_config)
    if ":" not in kind:
        raise ValueError(
            f"Unknown agent '{kind}'. Expected one of {', '.join(BUILTIN_AGENTS)} "
            "or '<provider>:<model_name>'."
        )
    return LLMBalootAgent(
        seat,
        kind,
        router=router,
        decision_logger=decision_logger,
        game_id=game_id,
        request_timeout_seconds=request_timeout,
    )


async def async_main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    ensure_results_dir()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    csv_path = resolve_results_path(args.csv)
    verbose_path = (
        resolve_results_path(args.verbose_log) if args.verbose_log else None
    )
    failure_path = (
        resolve_results_path(args.failure_log) if args.failure_log else None
    )

    if args.rounds < 1:
        raise SystemExit("--rounds must be at least 1")

    strategy_config = load_strategy_config(args.strategy_config)
    engine_config = EngineConfig.from_env(decision_timeout=args.timeout)
    uses_llm = any(":" in kind for kind in args.agents)

    logging.info("Agents: %s", ", ".join(args.agents))
    logging.info("Rounds to play: %d", args.rounds)
    logging.info("Output CSV: %s", csv_path)
    if verbose_path:
        logging.info("Verbose log: %s", verbose_path)
    if failure_path:
        logging.info("Failure log: %s", failure_path)

    verbose_logger = DecisionLogger(verbose_path) if verbose_path else None
    failure_logger = (
        DecisionLogger(failure_path, only_failures=True) if failure_path else None
    )
    # Engine violations go to the failure log when one is requested.
    decision_logger = failure_logger or verbose_logger

    router = None
    cost_tracker = None
    if uses_llm:
        cost_tracker = get_cost_tracker()
        cost_tracker.start_run()
        router = LLMRouter(
            temperature=args.temperature,
            max_output_tokens=args.max_output_tokens,
            cost_tracker=cost_tracker,
        )

    game_id = f"seed-{args.seed}"
    agents = [
        build_agent(
            kind,
            seat,
            seed=args.seed,
            strategy_config=strategy_config,
            router=router,
            decision_logger=verbose_logger or failure_logger,
            game_id=game_id,
            request_timeout=args.request_timeout,
        )
        for seat, kind in enumerate(args.agents)
    ]
    if len(agents) != NUM_PLAYERS:
        raise SystemExit(f"Baloot needs {NUM_PLAYERS} agents; got {len(agents)}")

    engine = GameEngine(
        agents,
        config=engine_config,
        rng_seed=args.seed,
        game_label=game_id,
        decision_logger=decision_logger,
    )

    early_stop = False
    try:
        await engine.play_rounds(args.rounds)
    except LLMCallFailed as exc:
        logging.error("Halting %s after repeated LLM failures: %s", game_id, exc)
        early_stop = True

    player_names = [agent.name for agent in agents]
    rows: List[Dict[str, Any]] = build_round_rows(
        engine.rounds, player_names, game_id=game_id
    )
    write_rows_csv(rows, csv_path)

    totals = team_totals(engine.rounds)
    if early_stop:
        logging.info(
            "Paused run after %d/%d rounds; wrote %d rows to %s",
            len(engine.rounds),
            args.rounds,
            len(rows),
            csv_path,
        )
    else:
        logging.info(
            "Finished %d rounds; wrote %d rows to %s",
            len(engine.rounds),
            len(rows),
            csv_path,
        )
    logging.info(
        "Team totals: team 0 (%s) %d, team 1 (%s) %d",
        " & ".join(player_names[0::2]),
        totals[0],
        " & ".join(player_names[1::2]),
        totals[1],
    )

    if verbose_logger:
        verbose_logger.flush()
    if failure_logger:
        failure_logger.flush()
    if cost_tracker:
        cost_tracker.persist()
        cost_tracker.log_run_summary()


def main(argv: Optional[List[str]] = None) -> None:
    asyncio.run(async_main(argv))


if __name__ == "__main__":
    main()

'''
python3 -m baloot_arena.cli \
  --agents strategic greedy strategic random \
  --rounds 200 \
  --csv baloot_strategic_vs_greedy.csv \
  --seed 1
'''

'''
python3 -m baloot_arena.cli \
  --agents openai:gpt-4o-mini strategic anthropic:claude-3-5-haiku-latest strategic \
  --rounds 20 \
  --timeout 60 \
  --verbose-log baloot_llm_verbose.log \
  --failure-log baloot_llm_failures.log \
  --max-output-tokens 512
'''
