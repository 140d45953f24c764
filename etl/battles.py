"""Comparative utilities over a ranked leaderboard: close battles and rank trends."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .aggregate import UserScore
from .utils import round2

DEFAULT_GAP_THRESHOLD = 1.5
MAX_CLOSE_BATTLES = 3


@dataclass(frozen=True)
class RankedUser:
    rank: int
    login: str
    points: float
    species_count: int = 0


@dataclass(frozen=True)
class CloseBattle:
    a: RankedUser
    b: RankedUser
    gap: float


@dataclass(frozen=True)
class Trend:
    rank: int
    pts: float


def rank_users(
    scores: Iterable[UserScore],
    first_seen: Optional[Mapping[str, datetime]] = None,
) -> List[RankedUser]:
    """Rank by points desc, then species desc, then earliest observation.

    *first_seen* maps login to that user's earliest observation time; users
    missing from it sort after those present.
    """
    first_seen = first_seen or {}
    ordered = sorted(
        scores,
        key=lambda s: (-s.points, -s.species_count, first_seen.get(s.login, datetime.max)),
    )
    return [
        RankedUser(rank=idx, login=s.login, points=s.points, species_count=s.species_count)
        for idx, s in enumerate(ordered, start=1)
    ]


def find_close_battles(
    ranked: Sequence[RankedUser],
    gap_threshold: float = DEFAULT_GAP_THRESHOLD,
) -> List[CloseBattle]:
    """Pick up to three near-ties: the title race, the podium race, the tightest other pair.

    Only adjacent pairs whose point gap is within *gap_threshold* qualify.
    Returned in ``[top, podium, rest]`` order with non-qualifying slots dropped.
    """
    battles = []
    for a, b in zip(ranked, ranked[1:]):
        gap = round2(abs(a.points - b.points))
        if gap <= gap_threshold:
            battles.append(CloseBattle(a, b, gap))

    top = next((x for x in battles if x.a.rank == 1), None)
    podium = next((x for x in battles if x.a.rank == 2), None)
    others = [x for x in battles if x is not top and x is not podium]
    rest = min(others, key=lambda x: x.gap) if others else None

    return [x for x in (top, podium, rest) if x is not None][:MAX_CLOSE_BATTLES]


def compute_trends(
    current: Sequence[RankedUser],
    prior: Sequence[RankedUser],
) -> Dict[str, Trend]:
    """Rank and points movement of every current user against a prior snapshot.

    Positive ``rank`` means the user climbed. Users absent from *prior* get a
    zero trend.
    """
    before = {r.login: r for r in prior}
    trends: Dict[str, Trend] = {}
    for row in current:
        old = before.get(row.login)
        if old is None:
            trends[row.login] = Trend(rank=0, pts=0.0)
        else:
            trends[row.login] = Trend(rank=old.rank - row.rank, pts=round2(row.points - old.points))
    return trends


__all__ = [
    "CloseBattle",
    "DEFAULT_GAP_THRESHOLD",
    "RankedUser",
    "Trend",
    "compute_trends",
    "find_close_battles",
    "rank_users",
]
