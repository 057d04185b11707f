# baloot_arena/paths.py
from __future__ import annotations

import os
from pathlib import Path

# All generated output (CSV, decision logs, cost totals) lands here unless
# BALOOT_RESULTS_DIR points somewhere else.
RESULTS_DIR = Path(
    os.getenv("BALOOT_RESULTS_DIR")
    or Path(__file__).resolve().parent / "results" / "output"
)


def ensure_results_dir() -> Path:
    """Create the results directory if it does not exist and return it."""
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    return RESULTS_DIR


def resolve_results_path(path_like: str | Path) -> Path:
    """
    Resolve a user-specified path into the results directory.

    Absolute paths are returned unchanged; relative ones are anchored inside
    RESULTS_DIR.
    """
    path = Path(path_like)
    if path.is_absolute():
        return path
    ensure_results_dir()
    return RESULTS_DIR / path
