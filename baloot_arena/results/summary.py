# baloot_arena/results/summary.py
from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402

CI95_Z = 1.96


def load_rounds(source: Union[str, Path, pd.DataFrame]) -> pd.DataFrame:
    if isinstance(source, pd.DataFrame):
        return source.copy()
    return pd.read_csv(source)


def summarize_rounds(source: Union[str, Path, pd.DataFrame]) -> pd.DataFrame:
    """
    Per-agent statistics of the trick points its team took each round.

    Columns: player_name, mean, std, count, se, ci95, violations. The 95%
    confidence interval is mean ± 1.96 * (std / sqrt(n)).
    """
    df = load_rounds(source)
    stats = (
        df.groupby("player_name")["team_points"]
        .agg(["mean", "std", "count"])
        .reset_index()
    )
    stats["std"] = stats["std"].fillna(0.0)
    stats["se"] = stats["std"] / np.sqrt(stats["count"])
    stats["ci95"] = CI95_Z * stats["se"]

    violations = df.groupby("player_name")["violations"].sum().reset_index()
    stats = stats.merge(violations, on="player_name", how="left")
    return stats.sort_values("mean", ascending=False).reset_index(drop=True)


def plot_team_points(
    source: Union[str, Path, pd.DataFrame],
    out_path: Union[str, Path],
) -> Path:
    """Plot each team's running point total across rounds and save it."""
    df = load_rounds(source)
    # One row per (round, team) is enough; seats of a team share the values.
    per_team = (
        df.drop_duplicates(subset=["game_id", "round_index", "team"])
        .sort_values("round_index")
    )

    fig, ax = plt.subplots(figsize=(10, 6))
    for team, sub in per_team.groupby("team"):
        members = sorted(df[df["team"] == team]["player_name"].unique())
        ax.plot(
            sub["round_index"],
            sub["team_total"],
            marker="o",
            label=f"Team {team}: {' & '.join(members)}",
        )

    ax.set_xlabel("Round index")
    ax.set_ylabel("Running trick points")
    ax.set_title("Team trick points across rounds")
    ax.grid(True, linestyle=":", alpha=0.5)
    ax.legend()
    fig.tight_layout()

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=150)
    plt.close(fig)
    return out


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Summarize a Baloot rounds CSV.")
    parser.add_argument("csv", help="CSV written by baloot_arena.cli")
    parser.add_argument(
        "--plot",
        default=None,
        help="Optional PNG path for the running team points chart.",
    )
    args = parser.parse_args(argv)

    df = load_rounds(args.csv)
    print(summarize_rounds(df).to_string(index=False))
    if args.plot:
        print(f"Saved plot to {plot_team_points(df, args.plot)}")


if __name__ == "__main__":
    main()
