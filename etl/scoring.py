"""Scoring module: computes the point value of a single observation.

Formula
=======
::

    points = (1 + novelty_trip + novelty_day + rarity + research_bonus)
             * first_n_factor * fatigue * rubber_band

rounded to 2 decimals (half away from zero).

Terms
-----
* **first_n_factor** Diminishing returns by chronological position within the
  taxon: 1.00, 0.75, 0.55, 0.40, 0.30, 0.20, then 0.15.
* **novelty_trip** 3 for the trip-first record of a taxon, 2 for the next
  early record, else 1.
* **novelty_day** 1.5 for the day-first record, 0.75 if early, else 0.3.
* **rarity** Tier 0–3 from the taxon's count in the observation set.
* **research_bonus** 1 research, 0.5 needs_id, 0 casual.
* **fatigue** From the user's total observations that day: up to 20 keep full
  value, up to 50 get 0.6, beyond that 0.3.
* **rubber_band** Boost for users trailing in the last 24h: bottom 30% get
  +20%, next 30% get +10%.

Unidentified observations (no ``taxon_id``) fall back to the conservative
defaults: factor 1, novelty 1 and 0.3, rarity 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple

from .context import ScoringContext, taxon_day_key, user_day_key
from .observations import Observation
from .utils import round2, to_decimal

FIRST_N_WEIGHTS = (1.00, 0.75, 0.55, 0.40, 0.30, 0.20)
FIRST_N_TAIL = 0.15
EARLY_FACTOR = 0.75

RESEARCH_BONUS = {"research": 1.0, "needs_id": 0.5, "casual": 0.0}


class ScoringContractError(LookupError):
    """Observation scored against a context that was not built from it."""


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-term breakdown of one observation's points."""

    novelty_trip: float
    novelty_day: float
    rarity: float
    research_bonus: float
    first_n_factor: float
    fatigue: float
    rubber_band: float
    points: float

    @property
    def base_sum(self) -> float:
        return 1 + self.novelty_trip + self.novelty_day + self.rarity + self.research_bonus


def taxon_index(obs: Observation, ctx: ScoringContext) -> int:
    """Zero-based chronological position of *obs* within its taxon."""
    bucket = ctx.by_taxon.get(obs.taxon_id, [])
    for idx, other in enumerate(bucket):
        if other.id == obs.id:
            return idx
    raise ScoringContractError(
        f"observation {obs.id} (taxon {obs.taxon_id}) is not part of the scoring context"
    )


def first_n_factor(obs: Observation, ctx: ScoringContext) -> float:
    if obs.taxon_id is None:
        return 1.0
    idx = taxon_index(obs, ctx)
    return FIRST_N_WEIGHTS[idx] if idx < len(FIRST_N_WEIGHTS) else FIRST_N_TAIL


def novelty_trip(obs: Observation, ctx: ScoringContext, factor: float) -> float:
    if obs.taxon_id is None:
        return 1.0
    if ctx.trip_first_by_taxon.get(obs.taxon_id) == obs.id:
        return 3.0
    return 2.0 if factor >= EARLY_FACTOR else 1.0


def novelty_day(obs: Observation, ctx: ScoringContext, factor: float) -> float:
    if obs.taxon_id is None:
        return 0.3
    if ctx.day_first_by_taxon.get(taxon_day_key(obs.taxon_id, obs.observed_on)) == obs.id:
        return 1.5
    return 0.75 if factor >= EARLY_FACTOR else 0.3


def rarity_bonus(obs: Observation, ctx: ScoringContext) -> float:
    if obs.taxon_id is None:
        return 0.0
    return float(min(max(ctx.rarity_by_taxon.get(obs.taxon_id, 0), 0), 3))


def fatigue_factor(day_count: int) -> float:
    if day_count <= 20:
        return 1.0
    if day_count <= 50:
        return 0.6
    return 0.3


def rubber_band_factor(percentile: float) -> float:
    if percentile < 0.30:
        return 1.20
    if percentile < 0.60:
        return 1.10
    return 1.00


def score_breakdown(obs: Observation, ctx: ScoringContext) -> ScoreBreakdown:
    """Compute every term of the formula for *obs*.

    Raises :class:`ScoringContractError` when *obs* carries a taxon but is
    missing from that taxon's bucket in *ctx*.
    """
    factor = first_n_factor(obs, ctx)
    trip = novelty_trip(obs, ctx, factor)
    day = novelty_day(obs, ctx, factor)
    rarity = rarity_bonus(obs, ctx)
    research = RESEARCH_BONUS.get(obs.quality_grade, 0.0)
    fatigue = fatigue_factor(ctx.user_day_counts.get(user_day_key(obs.user_login, obs.observed_on), 0))
    band = rubber_band_factor(ctx.user_trailing_percentile.get(obs.user_login, 1.0))

    base = 1 + to_decimal(trip) + to_decimal(day) + to_decimal(rarity) + to_decimal(research)
    raw = base * to_decimal(factor) * to_decimal(fatigue) * to_decimal(band)

    return ScoreBreakdown(
        novelty_trip=trip,
        novelty_day=day,
        rarity=rarity,
        research_bonus=research,
        first_n_factor=factor,
        fatigue=fatigue,
        rubber_band=band,
        points=round2(max(raw, Decimal(0))),
    )


def score_observation(obs: Observation, ctx: ScoringContext) -> float:
    """Points for *obs*, rounded to 2 decimals."""
    return score_breakdown(obs, ctx).points


def explain_score(obs: Observation, ctx: ScoringContext) -> Tuple[float, str]:
    """Return the points for *obs* and a reason string listing the contributors."""
    b = score_breakdown(obs, ctx)

    reason_parts = [
        f"base 1 + trip {b.novelty_trip:g} + day {b.novelty_day:g}",
        f"rarity +{b.rarity:g}" if b.rarity else None,
        f"{obs.quality_grade} +{b.research_bonus:g}" if b.research_bonus else None,
        f"×{b.first_n_factor:.2f} (first-N)" if b.first_n_factor != 1.0 else None,
        f"×{b.fatigue:g} fatigue" if b.fatigue != 1.0 else None,
        f"×{b.rubber_band:.2f} catch-up" if b.rubber_band != 1.0 else None,
    ]

    reason = "\n  • " + "\n  • ".join(p for p in reason_parts if p)

    return b.points, reason


__all__ = [
    "ScoreBreakdown",
    "ScoringContractError",
    "explain_score",
    "first_n_factor",
    "fatigue_factor",
    "rubber_band_factor",
    "score_breakdown",
    "score_observation",
]
