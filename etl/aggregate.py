"""Aggregation: fold scored observations into per-user, per-day and per-group totals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .context import ScoringContext
from .observations import Observation
from .scoring import score_observation
from .utils import round2

logger = logging.getLogger(__name__)


@dataclass
class UserScore:
    login: str
    obs_count: int = 0
    species_count: int = 0
    needs_id_count: int = 0
    research_count: int = 0
    casual_count: int = 0
    points: float = 0.0


@dataclass
class DayScore:
    date: str
    obs_count: int = 0
    species_count: int = 0
    participants: Set[str] = field(default_factory=set)
    points: float = 0.0


@dataclass
class AggregatedScores:
    by_user: Dict[str, UserScore]
    by_day: Dict[str, DayScore]
    by_taxon_group: Dict[str, List[UserScore]]


def _iconic_contains(*needles: str) -> Callable[[str], bool]:
    return lambda iconic: any(n in iconic for n in needles)


# Ordered (bucket, predicate) pairs; first match wins.
TAXON_GROUPS: Tuple[Tuple[str, Callable[[str], bool]], ...] = (
    ("mammals", _iconic_contains("mammal")),
    ("reptiles", _iconic_contains("reptil")),
    ("birds", _iconic_contains("aves", "bird")),
    ("amphibians", _iconic_contains("amphib")),
    ("spiders", _iconic_contains("arach")),
    ("insects", _iconic_contains("insect")),
)


def classify_taxon_group(obs: Observation) -> Optional[str]:
    """Bucket name for *obs* by its iconic taxon, or None when nothing matches."""
    iconic = (obs.iconic_taxon or "").lower()
    for bucket, matches in TAXON_GROUPS:
        if matches(iconic):
            return bucket
    return None


class _UserFold:
    """Running UserScore accumulation with distinct-species tracking."""

    def __init__(self) -> None:
        self.scores: Dict[str, UserScore] = {}
        self._species: Dict[str, Set[int]] = {}

    def add(self, obs: Observation, points: float) -> None:
        score = self.scores.get(obs.user_login)
        if score is None:
            score = self.scores[obs.user_login] = UserScore(login=obs.user_login)
            self._species[obs.user_login] = set()

        score.obs_count += 1
        score.points = round2(score.points + points)
        if obs.quality_grade == "needs_id":
            score.needs_id_count += 1
        elif obs.quality_grade == "research":
            score.research_count += 1
        elif obs.quality_grade == "casual":
            score.casual_count += 1

        if obs.taxon_id is not None:
            species = self._species[obs.user_login]
            species.add(obs.taxon_id)
            score.species_count = len(species)

    def ranked(self) -> List[UserScore]:
        return sorted(self.scores.values(), key=lambda s: s.points, reverse=True)


def aggregate_scores(observations: Iterable[Observation], ctx: ScoringContext) -> AggregatedScores:
    """Score every observation once and fold it into the three aggregates.

    Running point totals add the already-rounded per-observation score and are
    re-rounded after each addition. Taxon-group lists are sorted by points
    descending; equal points keep first-seen order.
    """
    users = _UserFold()
    groups = {bucket: _UserFold() for bucket, _ in TAXON_GROUPS}
    by_day: Dict[str, DayScore] = {}
    day_species: Dict[str, Set[int]] = {}

    count = 0
    for obs in observations:
        points = score_observation(obs, ctx)
        count += 1

        users.add(obs, points)

        day = by_day.get(obs.observed_on)
        if day is None:
            day = by_day[obs.observed_on] = DayScore(date=obs.observed_on)
            day_species[obs.observed_on] = set()
        day.obs_count += 1
        day.points = round2(day.points + points)
        day.participants.add(obs.user_login)
        if obs.taxon_id is not None:
            day_species[obs.observed_on].add(obs.taxon_id)
            day.species_count = len(day_species[obs.observed_on])

        bucket = classify_taxon_group(obs)
        if bucket is not None:
            groups[bucket].add(obs, points)

    logger.debug("Aggregated %d observations into %d users and %d days", count, len(users.scores), len(by_day))

    return AggregatedScores(
        by_user=users.scores,
        by_day=by_day,
        by_taxon_group={bucket: fold.ranked() for bucket, fold in groups.items()},
    )


__all__ = [
    "AggregatedScores",
    "DayScore",
    "TAXON_GROUPS",
    "UserScore",
    "aggregate_scores",
    "classify_taxon_group",
]
