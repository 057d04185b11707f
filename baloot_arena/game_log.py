# baloot_arena/game_log.py
from __future__ import annotations

import csv
from typing import Any, Dict, List, Optional, Sequence

from .rules import NUM_PLAYERS, team_of
from .state import RoundState

FIELDNAMES = [
    "game_id",
    "round_index",
    "dealer_index",
    "player_index",
    "player_name",
    "team",
    "bidding_card",
    "contract",
    "trump_suit",
    "buyer_index",
    "double_level",
    "tricks_won",
    "team_points",
    "project_points",
    "penalty",
    "violations",
    "team_total",
]


def _compute_tricks_won(round_state: RoundState) -> Dict[int, int]:
    """Count tricks won per seat from the round's trick history."""
    counts = {seat: 0 for seat in range(NUM_PLAYERS)}
    for trick in round_state.tricks:
        if trick.winner_index is None:
            raise ValueError("Trick without winner in RoundState")
        if trick.winner_index not in counts:
            raise ValueError(f"Unknown winner_index {trick.winner_index}")
        counts[trick.winner_index] += 1
    return counts


def project_points_by_team(round_state: RoundState) -> Dict[int, int]:
    totals = {0: 0, 1: 0}
    for seat, projects in round_state.projects.items():
        totals[team_of(seat)] += sum(p.points for p in projects)
    return totals


def build_round_rows(
    rounds: Sequence[RoundState],
    player_names: Sequence[str],
    game_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Build one row per (round, seat) for CSV export.

    Rows carry keys in FIELDNAMES. Incomplete rounds (a run halted mid-round)
    are skipped. `team_total` is the team's running trick-point total.
    """
    running = {0: 0, 1: 0}
    rows: List[Dict[str, Any]] = []

    for round_index, round_state in enumerate(rounds):
        if not round_state.is_complete or round_state.accepted_bid is None:
            continue
        tricks_won = _compute_tricks_won(round_state)
        project_points = project_points_by_team(round_state)
        for team, points in round_state.team_points.items():
            running[team] += points

        ctx = round_state.context
        for seat in range(NUM_PLAYERS):
            team = team_of(seat)
            rows.append(
                {
                    "game_id": game_id,
                    "round_index": round_index,
                    "dealer_index": round_state.dealer_index,
                    "player_index": seat,
                    "player_name": player_names[seat],
                    "team": team,
                    "bidding_card": round_state.bidding_card.id,
                    "contract": round_state.accepted_bid.bid_type.value,
                    "trump_suit": (
                        ctx.trump_suit.value
                        if ctx is not None and ctx.trump_suit is not None
                        else None
                    ),
                    "buyer_index": round_state.buyer_index,
                    "double_level": round_state.double_level,
                    "tricks_won": tricks_won[seat],
                    "team_points": round_state.team_points[team],
                    "project_points": project_points[team],
                    "penalty": round_state.penalties[team],
                    "violations": round_state.violations[seat],
                    "team_total": running[team],
                }
            )
    return rows


def write_rows_csv(rows: Sequence[Dict[str, Any]], path) -> None:
    """
    Write rows to a CSV file with FIELDNAMES as header.

    `path` can be a string or any path-like object accepted by `open`.
    """
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
        writer.writeheader()
        for row in rows:
            writer.writerow({field: row.get(field) for field in FIELDNAMES})
