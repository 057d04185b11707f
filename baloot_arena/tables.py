# baloot_arena/tables.py
from __future__ import annotations

from typing import Dict, Iterable, Mapping

# Ranks of one suit, lowest sequence value first. Tables below are keyed by
# these labels so this module has no dependency on the card model.
RANK_LABELS = ("7", "8", "9", "10", "J", "Q", "K", "A")

# Hokum trump suit: J > 9 > A > 10 > K > Q > 8 > 7
TRUMP_RANKING: Dict[str, int] = {
    "7": 0,
    "8": 1,
    "Q": 2,
    "K": 3,
    "10": 4,
    "A": 5,
    "9": 6,
    "J": 7,
}

# Hokum side suits and every suit under Sun: A > 10 > K > Q > J > 9 > 8 > 7
NORMAL_RANKING: Dict[str, int] = {
    "7": 0,
    "8": 1,
    "9": 2,
    "J": 3,
    "Q": 4,
    "K": 5,
    "10": 6,
    "A": 7,
}

TRUMP_POINTS: Dict[str, int] = {
    "7": 0,
    "8": 0,
    "9": 14,
    "10": 10,
    "J": 20,
    "Q": 3,
    "K": 4,
    "A": 11,
}

NORMAL_POINTS: Dict[str, int] = {
    "7": 0,
    "8": 0,
    "9": 0,
    "10": 10,
    "J": 2,
    "Q": 3,
    "K": 4,
    "A": 11,
}

TRUMP_SUIT_POINTS = 62
NORMAL_SUIT_POINTS = 30

# Rank re-encoded 7..14 for run ("project") detection.
SEQUENCE_VALUES: Dict[str, int] = {
    label: 7 + offset for offset, label in enumerate(RANK_LABELS)
}


class TableIntegrityError(RuntimeError):
    """Raised when a ranking or point table is not well formed."""


def _check_ranking(name: str, table: Mapping[str, int]) -> None:
    if set(table) != set(RANK_LABELS):
        missing = sorted(set(RANK_LABELS) - set(table))
        extra = sorted(set(table) - set(RANK_LABELS))
        raise TableIntegrityError(
            f"{name}: ranks missing={missing} unexpected={extra}"
        )

    seen: Dict[int, str] = {}
    for label in RANK_LABELS:
        power = table[label]
        if not 0 <= power < len(RANK_LABELS):
            raise TableIntegrityError(
                f"{name}: rank {label} has power {power} outside 0..7"
            )
        if power in seen:
            raise TableIntegrityError(
                f"{name}: ranks {seen[power]} and {label} share power {power}"
            )
        seen[power] = label


def _check_points(name: str, table: Mapping[str, int], expected_total: int) -> None:
    if set(table) != set(RANK_LABELS):
        raise TableIntegrityError(f"{name}: must define exactly the 8 ranks")
    negative = [label for label in RANK_LABELS if table[label] < 0]
    if negative:
        raise TableIntegrityError(f"{name}: negative points for ranks {negative}")
    total = sum(table.values())
    if total != expected_total:
        raise TableIntegrityError(
            f"{name}: points sum to {total}, expected {expected_total}"
        )


def _check_sequence(values: Mapping[str, int]) -> None:
    ordered: Iterable[int] = (values[label] for label in RANK_LABELS)
    if list(ordered) != list(range(7, 15)):
        raise TableIntegrityError("SEQUENCE_VALUES: must map 7..A onto 7..14")


def validate_tables(
    *,
    trump_ranking: Mapping[str, int] = TRUMP_RANKING,
    normal_ranking: Mapping[str, int] = NORMAL_RANKING,
    trump_points: Mapping[str, int] = TRUMP_POINTS,
    normal_points: Mapping[str, int] = NORMAL_POINTS,
) -> None:
    """
    Fail fast if any table is malformed.

    Each ranking table must be a bijection from the 8 ranks onto 0..7 and each
    point table must sum to the fixed per-suit total. The keyword arguments
    exist so alternative tables can be checked before use.
    """
    _check_ranking("TRUMP_RANKING", trump_ranking)
    _check_ranking("NORMAL_RANKING", normal_ranking)
    _check_points("TRUMP_POINTS", trump_points, TRUMP_SUIT_POINTS)
    _check_points("NORMAL_POINTS", normal_points, NORMAL_SUIT_POINTS)
    _check_sequence(SEQUENCE_VALUES)


validate_tables()
