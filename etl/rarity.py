"""Rarity ranking against a local baseline.

Blends how often the group saw a taxon with how often it is recorded around
the trip area. Inverse counts, so fewer sightings means a higher score::

    score = group_weight / (our_count + 1) + local_weight / (local_count + 1)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

from .observations import Observation

GROUP_WEIGHT = 0.7
LOCAL_WEIGHT = 0.3


@dataclass(frozen=True)
class RarityRow:
    taxon_id: int
    name: str
    our_count: int
    local_count: int
    score: float


@dataclass(frozen=True)
class RarityReport:
    rare: List[RarityRow]
    common: List[RarityRow]


def compute_rarity(
    observations: Iterable[Observation],
    local_counts: Mapping[int, int],
    group_weight: float = GROUP_WEIGHT,
    local_weight: float = LOCAL_WEIGHT,
) -> RarityReport:
    """Score every named taxon and split the ranking into rare and common halves."""
    ours: Dict[int, List] = {}
    for obs in observations:
        if obs.taxon_id is None or not obs.taxon_name:
            continue
        entry = ours.setdefault(obs.taxon_id, [0, obs.taxon_name])
        entry[0] += 1
        entry[1] = obs.taxon_name

    rows = []
    for taxon_id, (count, name) in ours.items():
        local = local_counts.get(taxon_id, 0)
        score = group_weight / (count + 1) + local_weight / (local + 1)
        rows.append(RarityRow(taxon_id, name, count, local, score))

    rows.sort(key=lambda r: r.score, reverse=True)
    midpoint = len(rows) // 2
    return RarityReport(rare=rows[:midpoint], common=rows[midpoint:])


__all__ = ["RarityReport", "RarityRow", "compute_rarity"]
