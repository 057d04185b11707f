# baloot_arena/projects.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple
import enum

from .cards import Card, GameType, Rank, Suit, card_to_dict
from .rules import TrumpContext


class ProjectType(enum.Enum):
    SIRA = "sira"                      # three in a row
    FIFTY = "fifty"                    # four in a row
    HUNDRED = "hundred"                # five or more in a row
    FOUR_OF_A_KIND = "four_of_a_kind"  # four 10s, Js, Qs, Ks (or Aces in Hokum)
    FOUR_HUNDRED = "four_hundred"      # four Aces in Sun
    BALOOT = "baloot"                  # K and Q of trump in Hokum


PROJECT_POINTS: Dict[ProjectType, int] = {
    ProjectType.SIRA: 20,
    ProjectType.FIFTY: 50,
    ProjectType.HUNDRED: 100,
    ProjectType.FOUR_OF_A_KIND: 100,
    ProjectType.FOUR_HUNDRED: 400,
    ProjectType.BALOOT: 20,
}

_FOUR_OF_A_KIND_RANKS = (Rank.TEN, Rank.JACK, Rank.QUEEN, Rank.KING, Rank.ACE)


@dataclass(frozen=True)
class Project:
    type: ProjectType
    cards: Tuple[Card, ...]
    points: int

    @classmethod
    def of(cls, project_type: ProjectType, cards: Sequence[Card]) -> "Project":
        return cls(project_type, tuple(cards), PROJECT_POINTS[project_type])


def project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        "type": project.type.value,
        "cards": [card_to_dict(c) for c in project.cards],
        "points": project.points,
    }


def _runs(cards: Sequence[Card]) -> List[List[Card]]:
    """Maximal runs of consecutive sequence values within one suit."""
    ordered = sorted(cards, key=lambda c: c.sequence_value())
    runs: List[List[Card]] = []
    current: List[Card] = []
    for card in ordered:
        if current and card.sequence_value() == current[-1].sequence_value() + 1:
            current.append(card)
        else:
            if current:
                runs.append(current)
            current = [card]
    if current:
        runs.append(current)
    return runs


def _run_type(length: int) -> ProjectType:
    if length >= 5:
        return ProjectType.HUNDRED
    if length == 4:
        return ProjectType.FIFTY
    return ProjectType.SIRA


def detect_projects(hand: Sequence[Card], ctx: TrumpContext) -> List[Project]:
    """
    Find every project in a static hand, highest points first.

    Overlapping patterns (a card in both a run and a four-of-a-kind) are all
    reported; choosing which to declare is up to the player.
    """
    found: List[Project] = []

    for suit in Suit:
        suited = [card for card in hand if card.suit == suit]
        for run in _runs(suited):
            if len(run) >= 3:
                found.append(Project.of(_run_type(len(run)), run))

    for rank in _FOUR_OF_A_KIND_RANKS:
        same = [card for card in hand if card.rank == rank]
        if len(same) == 4:
            if rank == Rank.ACE and ctx.game_type == GameType.SUN:
                found.append(Project.of(ProjectType.FOUR_HUNDRED, same))
            else:
                found.append(Project.of(ProjectType.FOUR_OF_A_KIND, same))

    if ctx.game_type == GameType.HOKUM:
        pair = [
            card
            for card in hand
            if ctx.is_trump(card) and card.rank in (Rank.KING, Rank.QUEEN)
        ]
        if len(pair) == 2:
            found.append(Project.of(ProjectType.BALOOT, pair))

    # sorted() is stable, so equal-point projects keep detection order.
    return sorted(found, key=lambda p: p.points, reverse=True)
