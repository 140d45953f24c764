"""Trophy registry: named, ranked derivations over an observation set.

Every trophy is recomputed on demand from ``(observations, context, date)``;
nothing is persisted. Daily trophies look at a single ``observed_on`` day,
trip trophies at the whole set. Results are sorted by value descending with
the earliest qualifying time breaking ties, and a trophy nobody qualifies for
returns an empty list.

Divergent definitions
---------------------
The product shipped two incompatible registries, so a few trophies exist in
more than one flavour and are kept apart here:

* **Night Owl** ``night-owl`` counts from the fallback sunset (17:30) to
  midnight, ``daily-night-owl``/``trip-night-owl`` use a fixed 20:00–05:00
  window.
* **Steady Eddie** ``steady-eddie`` counts distinct clock hours in a day,
  ``steady-eddie-blocks`` counts activity blocks split by 45 minute gaps and
  ``steady-eddie-streak`` is the longest run of consecutive trip days.

Time-of-day trophies only consider observations that carry a
``time_observed_at``; a bare ``observed_on`` says nothing about the hour.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .context import ScoringContext
from .observations import Observation

SAMPLE_SIZE = 3
FALLBACK_SUNSET = time(17, 30)
BLOCK_GAP = timedelta(minutes=45)


@dataclass(frozen=True)
class TrophyResult:
    login: str
    value: float
    evidence: str
    observations: Tuple[Observation, ...] = ()


Compute = Callable[[List[Observation], ScoringContext, int], List[TrophyResult]]


@dataclass(frozen=True)
class TrophySpec:
    slug: str
    title: str
    subtitle: str
    scope: str  # "daily" | "trip"
    compute: Compute = field(repr=False)
    min_threshold: int = 1

    def evaluate(
        self,
        observations: Iterable[Observation],
        ctx: ScoringContext,
        date: Optional[str] = None,
    ) -> List[TrophyResult]:
        obs = list(observations)
        if self.scope == "daily" and date:
            obs = [o for o in obs if o.observed_on == date]
        return self.compute(obs, ctx, self.min_threshold)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ranked(rows: Iterable[Tuple[TrophyResult, Optional[datetime]]]) -> List[TrophyResult]:
    """Sort by value desc, then tiebreak time asc (missing times last)."""
    ordered = sorted(rows, key=lambda r: (-r[0].value, r[1] or datetime.max))
    return [result for result, _ in ordered]


def _by_user(observations: Iterable[Observation]) -> Dict[str, List[Observation]]:
    grouped: Dict[str, List[Observation]] = {}
    for obs in observations:
        grouped.setdefault(obs.user_login, []).append(obs)
    return grouped


def _timed(obs: Observation) -> bool:
    return obs.time_observed_at is not None


def _clock(obs: Observation) -> time:
    return obs.observed_at.time()


def shannon_diversity(observations: Sequence[Observation]) -> float:
    """Shannon index H' over taxon counts; unidentified obs still count in the total."""
    total = len(observations)
    if total == 0:
        return 0.0
    counts = Counter(o.taxon_id for o in observations if o.taxon_id is not None)
    h = 0.0
    for count in counts.values():
        p = count / total
        h -= p * math.log(p)
    return h


def longest_day_streak(days: Iterable[str]) -> int:
    ordered = sorted({date.fromisoformat(d) for d in days})
    if not ordered:
        return 0
    best = current = 1
    for prev, curr in zip(ordered, ordered[1:]):
        if (curr - prev).days == 1:
            current += 1
            best = max(best, current)
        else:
            current = 1
    return best


def time_blocks(moments: Iterable[datetime], gap: timedelta = BLOCK_GAP) -> int:
    ordered = sorted(moments)
    if not ordered:
        return 0
    return 1 + sum(1 for prev, curr in zip(ordered, ordered[1:]) if curr - prev >= gap)


# ---------------------------------------------------------------------------
# Trophy computations
# ---------------------------------------------------------------------------


def _variety(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    rows = []
    for login, items in _by_user(sorted(obs, key=lambda o: o.observed_at)).items():
        species = set()
        last_new: Optional[datetime] = None
        for o in items:
            if o.taxon_id is not None and o.taxon_id not in species:
                species.add(o.taxon_id)
                last_new = o.observed_at
        if len(species) < threshold:
            continue
        rows.append((TrophyResult(login, len(species), f"{len(species)} unique species"), last_new))
    return _ranked(rows)


def _rarest(obs: List[Observation], ctx: ScoringContext) -> Dict[str, Tuple[int, Observation]]:
    """Per user, the highest-rarity observation; earliest wins on equal rarity."""
    best: Dict[str, Tuple[int, Observation]] = {}
    for o in obs:
        if o.taxon_id is None:
            continue
        rarity = ctx.rarity_by_taxon.get(o.taxon_id, 0)
        current = best.get(o.user_login)
        if (
            current is None
            or rarity > current[0]
            or (rarity == current[0] and o.observed_at < current[1].observed_at)
        ):
            best[o.user_login] = (rarity, o)
    return best


def _rare_find_max(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    rows = [
        (TrophyResult(login, rarity, f"Rarity score: {rarity:.1f}", (sample,)), sample.observed_at)
        for login, (rarity, sample) in _rarest(obs, ctx).items()
        if rarity >= threshold
    ]
    return _ranked(rows)


def _rare_find_sum(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    totals: Dict[str, int] = {}
    for o in obs:
        if o.taxon_id is None:
            continue
        totals[o.user_login] = totals.get(o.user_login, 0) + ctx.rarity_by_taxon.get(o.taxon_id, 0)

    rarest = _rarest(obs, ctx)
    rows = []
    for login, total in totals.items():
        if total < threshold:
            continue
        sample = rarest[login][1]
        rows.append((TrophyResult(login, total, f"{total:.1f} rarity points", (sample,)), sample.observed_at))
    return _ranked(rows)


def _window_count(
    in_window: Callable[[time], bool],
    noun: str,
    with_earliest: bool = False,
) -> Compute:
    def compute(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
        hits = [o for o in sorted(obs, key=lambda o: o.observed_at) if _timed(o) and in_window(_clock(o))]
        rows = []
        for login, items in _by_user(hits).items():
            if len(items) < threshold:
                continue
            earliest = items[0].observed_at
            evidence = f"{len(items)} {noun} observations"
            if with_earliest:
                evidence += f", earliest: {earliest:%H:%M}"
            rows.append((TrophyResult(login, len(items), evidence, tuple(items[:SAMPLE_SIZE])), earliest))
        return _ranked(rows)

    return compute


def _early_morning(t: time) -> bool:
    return time(4) <= t < time(7)


def _after_sunset(sunset: time) -> Callable[[time], bool]:
    # The midnight hour still belongs to the evening that preceded it.
    return lambda t: t >= sunset or t.hour == 0


def _night(t: time) -> bool:
    return t.hour >= 20 or t.hour < 5


def _trailblazer(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    by_id = {o.id: o for o in obs}
    firsts: Dict[str, List[Observation]] = {}
    for obs_id in ctx.trip_first_by_taxon.values():
        found = by_id.get(obs_id)
        if found is not None:
            firsts.setdefault(found.user_login, []).append(found)

    rows = []
    for login, items in firsts.items():
        if len(items) < threshold:
            continue
        items.sort(key=lambda o: o.observed_at)
        rows.append((
            TrophyResult(login, len(items), f"First to observe {len(items)} species", tuple(items[:SAMPLE_SIZE])),
            items[0].observed_at,
        ))
    return _ranked(rows)


def _distinct_hours(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    rows = []
    for login, items in _by_user(o for o in obs if _timed(o)).items():
        hours = {o.observed_at.hour for o in items}
        if len(hours) < threshold:
            continue
        rows.append((
            TrophyResult(login, len(hours), f"{len(hours)} distinct hours"),
            min(o.observed_at for o in items),
        ))
    return _ranked(rows)


def _blocks(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    rows = []
    for login, items in _by_user(o for o in obs if _timed(o)).items():
        blocks = time_blocks(o.observed_at for o in items)
        if blocks < threshold:
            continue
        rows.append((
            TrophyResult(login, blocks, f"{blocks} distinct time blocks"),
            min(o.observed_at for o in items),
        ))
    return _ranked(rows)


def _streak(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    rows = []
    for login, items in _by_user(obs).items():
        streak = longest_day_streak(o.observed_on for o in items)
        if streak < threshold:
            continue
        rows.append((
            TrophyResult(login, streak, f"{streak} consecutive days"),
            min(o.observed_at for o in items),
        ))
    return _ranked(rows)


def _biodiversity(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    rows = []
    for login, items in _by_user(obs).items():
        if len(items) < threshold:
            continue
        h = shannon_diversity(items)
        rows.append((TrophyResult(login, h, f"H' = {h:.3f}"), min(o.observed_at for o in items)))
    return _ranked(rows)


def _research(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    graded = sorted((o for o in obs if o.quality_grade == "research"), key=lambda o: o.observed_at)
    rows = []
    for login, items in _by_user(graded).items():
        if len(items) < threshold:
            continue
        rows.append((
            TrophyResult(login, len(items), f"{len(items)} research-grade observations", tuple(items[:SAMPLE_SIZE])),
            items[0].observed_at,
        ))
    return _ranked(rows)


def _iconic_count(keywords: Sequence[str], noun: str) -> Compute:
    def compute(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
        hits = sorted(
            (o for o in obs if any(k in (o.iconic_taxon or "").lower() for k in keywords)),
            key=lambda o: o.observed_at,
        )
        rows = []
        for login, items in _by_user(hits).items():
            if len(items) < threshold:
                continue
            rows.append((
                TrophyResult(login, len(items), f"{len(items)} {noun} observations", tuple(items[:SAMPLE_SIZE])),
                items[0].observed_at,
            ))
        return _ranked(rows)

    return compute


ARTHROPOD_KEYWORDS = ("insect", "arach")


def _macro_master(obs: List[Observation], ctx: ScoringContext, threshold: int) -> List[TrophyResult]:
    rows = []
    for login, items in _by_user(obs).items():
        if len(items) < threshold:
            continue
        arthropods = [o for o in items if any(k in (o.iconic_taxon or "").lower() for k in ARTHROPOD_KEYWORDS)]
        pct = len(arthropods) / len(items) * 100
        rows.append((
            TrophyResult(login, pct, f"{len(arthropods)}/{len(items)} observations ({pct:.1f}%)"),
            min((o.observed_at for o in arthropods), default=None),
        ))
    return _ranked(rows)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

# (slug stem, title, keywords, noun)
TAXON_TROPHIES = (
    ("bird-watcher", "Bird Watcher", ("aves", "bird"), "bird"),
    ("mammal-tracker", "Mammal Tracker", ("mammal",), "mammal"),
    ("reptile-hunter", "Reptile Hunter", ("reptil",), "reptile"),
    ("amphibian-ace", "Amphibian Ace", ("amphib",), "amphibian"),
    ("spider-spotter", "Spider Spotter", ("arach",), "arachnid"),
    ("bug-hunter", "Bug Hunter", ("insect",), "insect"),
)


def build_registry(fallback_sunset: time = FALLBACK_SUNSET) -> List[TrophySpec]:
    """Return every trophy; *fallback_sunset* opens the evening Night Owl window."""
    registry = [
        TrophySpec("variety-hero", "Variety Hero", "Most unique species (trip)", "trip", _variety),
        TrophySpec("daily-variety-hero", "Daily Variety Hero", "Most unique species in a day", "daily", _variety, 2),
        TrophySpec("daily-rare-find", "Daily Rare Find", "Single rarest observation of the day", "daily", _rare_find_max),
        TrophySpec("trip-rare-find", "Trip Rare Find", "Highest total rarity score (trip)", "trip", _rare_find_sum),
        TrophySpec("rarest-observation", "Rarest Observation", "Single rarest observation (trip)", "trip", _rare_find_max),
        TrophySpec(
            "early-bird", "Early Bird", "Most 4–7am observations", "daily",
            _window_count(_early_morning, "early", with_earliest=True), 2,
        ),
        TrophySpec(
            "night-owl", "Night Owl", f"Most evening observations ({fallback_sunset:%H:%M}–midnight)", "daily",
            _window_count(_after_sunset(fallback_sunset), "evening"), 2,
        ),
        TrophySpec("daily-night-owl", "Daily Night Owl", "Most nighttime observations (20:00–05:00)", "daily",
                   _window_count(_night, "nighttime")),
        TrophySpec("trip-night-owl", "Trip Night Owl", "Most nighttime observations (trip)", "trip",
                   _window_count(_night, "nighttime")),
        TrophySpec("trailblazer", "Trailblazer", "First to observe species during the trip", "trip", _trailblazer),
        TrophySpec("steady-eddie", "Steady Eddie", "Most distinct clock hours in a day", "daily", _distinct_hours),
        TrophySpec("steady-eddie-blocks", "Steady Eddie (blocks)", "Most time blocks split by 45m gaps", "daily", _blocks),
        TrophySpec("steady-eddie-streak", "Steady Eddie (streak)", "Longest consecutive day streak", "trip", _streak),
        TrophySpec("biodiversity-champion", "Biodiversity Champion", "Highest Shannon diversity (min 6 obs)", "trip",
                   _biodiversity, 6),
        TrophySpec("daily-peer-reviewed-pro", "Daily Peer-Reviewed Pro", "Most research-grade observations today",
                   "daily", _research, 3),
        TrophySpec("peer-reviewed-pro", "Peer-Reviewed Pro", "Most research-grade observations (trip)", "trip",
                   _research, 10),
        TrophySpec("macro-master", "Macro Master", "Highest arthropod share (min 5 obs)", "trip", _macro_master, 5),
    ]
    for stem, title, keywords, noun in TAXON_TROPHIES:
        compute = _iconic_count(keywords, noun)
        registry.append(TrophySpec(f"daily-{stem}", f"Daily {title}", f"Most {noun} observations today", "daily", compute, 2))
        registry.append(TrophySpec(stem, title, f"Most {noun} observations (trip)", "trip", compute, 6))
    return registry


TROPHIES: List[TrophySpec] = build_registry()


def get_trophy(slug: str, registry: Sequence[TrophySpec] = TROPHIES) -> TrophySpec:
    for spec in registry:
        if spec.slug == slug:
            return spec
    raise KeyError(f"unknown trophy: {slug}")


def trip_trophies(registry: Sequence[TrophySpec] = TROPHIES) -> List[TrophySpec]:
    return [t for t in registry if t.scope == "trip"]


def daily_trophies(registry: Sequence[TrophySpec] = TROPHIES) -> List[TrophySpec]:
    return [t for t in registry if t.scope == "daily"]


def evaluate_trophy(
    slug: str,
    observations: Iterable[Observation],
    ctx: ScoringContext,
    date: Optional[str] = None,
    registry: Sequence[TrophySpec] = TROPHIES,
) -> List[TrophyResult]:
    return get_trophy(slug, registry).evaluate(observations, ctx, date)


def daily_winners(
    observations: Iterable[Observation],
    ctx: ScoringContext,
    date: str,
    registry: Sequence[TrophySpec] = TROPHIES,
) -> Dict[str, Optional[TrophyResult]]:
    """Top result of every daily trophy for *date* (None when nobody qualifies)."""
    obs = list(observations)
    winners: Dict[str, Optional[TrophyResult]] = {}
    for spec in daily_trophies(registry):
        results = spec.evaluate(obs, ctx, date)
        winners[spec.slug] = results[0] if results else None
    return winners


__all__ = [
    "TROPHIES",
    "TrophyResult",
    "TrophySpec",
    "build_registry",
    "daily_trophies",
    "daily_winners",
    "evaluate_trophy",
    "get_trophy",
    "longest_day_streak",
    "shannon_diversity",
    "time_blocks",
    "trip_trophies",
]
