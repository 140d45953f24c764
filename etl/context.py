"""Scoring context: lookup tables built in one pass over an observation set.

The context is rebuilt for every scoring run and never mutated afterwards.
It is a pure function of ``(observations, reference_time)``; the reference
time anchors the trailing 24-hour activity window used for rubber-banding.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from .observations import Observation, chronological, wall_clock

logger = logging.getLogger(__name__)

TRAILING_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class ScoringContext:
    by_taxon: Dict[int, List[Observation]] = field(default_factory=dict)
    trip_first_by_taxon: Dict[int, int] = field(default_factory=dict)
    day_first_by_taxon: Dict[str, int] = field(default_factory=dict)
    rarity_by_taxon: Dict[int, int] = field(default_factory=dict)
    user_day_counts: Dict[str, int] = field(default_factory=dict)
    user_trailing_percentile: Dict[str, float] = field(default_factory=dict)
    reference_time: Optional[datetime] = None


def taxon_day_key(taxon_id: int, day: str) -> str:
    return f"{taxon_id}|{day}"


def user_day_key(login: str, day: str) -> str:
    return f"{login}|{day}"


def rarity_tier(count: int) -> int:
    """Map a taxon's observation count to rarity 0–3 (fewer is rarer)."""
    if count <= 1:
        return 3
    if count <= 3:
        return 2
    if count <= 10:
        return 1
    return 0


def trailing_percentiles(observations: Iterable[Observation], reference_time: datetime) -> Dict[str, float]:
    """Percentile rank of each user's activity in the 24h before *reference_time*.

    Users are sorted ascending by count (stable, first-seen order on ties) and
    given ``index / (N - 1)``; a lone active user gets 0. Inactive users are
    absent.
    """
    ref = wall_clock(reference_time)
    start = ref - TRAILING_WINDOW
    counts: Counter = Counter()
    for obs in observations:
        if start <= obs.observed_at <= ref:
            counts[obs.user_login] += 1

    ranked = sorted(counts.items(), key=lambda kv: kv[1])
    total = len(ranked)
    return {
        login: (idx / (total - 1) if total > 1 else 0.0)
        for idx, (login, _) in enumerate(ranked)
    }


def build_context(observations: Iterable[Observation], reference_time: datetime) -> ScoringContext:
    """Build the :class:`ScoringContext` for *observations* as of *reference_time*."""
    ordered = chronological(observations)

    by_taxon: Dict[int, List[Observation]] = {}
    trip_first: Dict[int, int] = {}
    day_first: Dict[str, int] = {}
    user_day_counts: Dict[str, int] = {}

    for obs in ordered:
        if obs.taxon_id is not None:
            by_taxon.setdefault(obs.taxon_id, []).append(obs)
            trip_first.setdefault(obs.taxon_id, obs.id)
            day_first.setdefault(taxon_day_key(obs.taxon_id, obs.observed_on), obs.id)
        key = user_day_key(obs.user_login, obs.observed_on)
        user_day_counts[key] = user_day_counts.get(key, 0) + 1

    rarity = {taxon_id: rarity_tier(len(items)) for taxon_id, items in by_taxon.items()}
    percentiles = trailing_percentiles(ordered, reference_time)

    logger.debug(
        "Context built: %d observations, %d taxa, %d user-days, %d recently active users",
        len(ordered), len(by_taxon), len(user_day_counts), len(percentiles),
    )

    return ScoringContext(
        by_taxon=by_taxon,
        trip_first_by_taxon=trip_first,
        day_first_by_taxon=day_first,
        rarity_by_taxon=rarity,
        user_day_counts=user_day_counts,
        user_trailing_percentile=percentiles,
        reference_time=wall_clock(reference_time),
    )


__all__ = [
    "ScoringContext",
    "build_context",
    "rarity_tier",
    "trailing_percentiles",
    "taxon_day_key",
    "user_day_key",
]
