"""Report module: writes the Markdown leaderboard report and daily digest."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .aggregate import AggregatedScores
from .battles import CloseBattle, RankedUser, Trend
from .context import ScoringContext
from .observations import Observation
from .rarity import RarityReport
from .trophies import TrophyResult, TrophySpec, get_trophy


@dataclass
class DailyDigest:
    date: str
    top_changes: List[str] = field(default_factory=list)
    new_species: int = 0
    rarest: Optional[Observation] = None
    trophy_winners: List[str] = field(default_factory=list)


def _delta(value: float) -> str:
    return f"+{value:g}" if value > 0 else f"{value:g}"


def _arrow(rank_delta: int) -> str:
    if rank_delta > 0:
        return f"▲ {rank_delta}"
    if rank_delta < 0:
        return f"▼ {abs(rank_delta)}"
    return "–"


def build_digest(
    day: str,
    observations: Iterable[Observation],
    ctx: ScoringContext,
    trends: Mapping[str, Trend],
    winners: Mapping[str, Optional[TrophyResult]],
    registry: Sequence[TrophySpec],
) -> DailyDigest:
    """Summarise *day*: biggest climbers, trip-firsts recorded, rarest find, winners."""
    by_id = {o.id: o for o in observations}
    new_species = sum(
        1 for obs_id in ctx.trip_first_by_taxon.values()
        if obs_id in by_id and by_id[obs_id].observed_on == day
    )

    climbers = sorted(((t.rank, login) for login, t in trends.items() if t.rank > 0), reverse=True)[:3]
    rare = winners.get("daily-rare-find")

    return DailyDigest(
        date=day,
        top_changes=[f"{login} {_arrow(delta)}" for delta, login in climbers],
        new_species=new_species,
        rarest=rare.observations[0] if rare and rare.observations else None,
        trophy_winners=[
            f"{get_trophy(slug, registry).title}: {result.login}"
            for slug, result in winners.items() if result is not None
        ],
    )


def write_markdown_report(
    leaderboard: List[RankedUser],
    aggregated: AggregatedScores,
    trends: Mapping[str, Trend],
    battles: List[CloseBattle],
    trip_results: Dict[str, List[TrophyResult]],
    digest: Optional[DailyDigest] = None,
    rarity: Optional[RarityReport] = None,
    registry: Sequence[TrophySpec] = (),
    title: str = "EcoQuest Live",
    output_path: Union[str, Path] = "report.md",
) -> None:
    """Write a Markdown report summarising the scored trip.

    Parameters
    ----------
    leaderboard : List[RankedUser]
        Users in rank order.
    aggregated : AggregatedScores
        Per-user, per-day and per-taxon-group totals.
    trends : Mapping[str, Trend]
        Movement against the previous snapshot, keyed by login.
    battles : List[CloseBattle]
        Near-ties worth announcing.
    trip_results : Dict[str, List[TrophyResult]]
        Ranked results per trip trophy slug.
    digest : DailyDigest, optional
        Summary of the featured day.
    rarity : RarityReport, optional
        Baseline rare/common split.
    output_path : Union[str, Path], optional
        Destination file path, by default "report.md".
    """
    lines: List[str] = [f"# {title}", "\n"]

    total = len(leaderboard)
    obs_total = sum(u.obs_count for u in aggregated.by_user.values())
    lines.append(f"> {total} participants, {obs_total} observations across {len(aggregated.by_day)} days.")
    lines.append("\n## Leaderboard\n")
    lines.append("| # | User | Points | Species | Obs | RG | Trend |")
    lines.append("|---|------|--------|---------|-----|----|-------|")
    for row in leaderboard:
        user = aggregated.by_user[row.login]
        trend = trends.get(row.login)
        trend_cell = f"{_arrow(trend.rank)} ({_delta(trend.pts)} pts)" if trend and (trend.rank or trend.pts) else "–"
        lines.append(
            f"| {row.rank} | {row.login} | {row.points:.2f} | {user.species_count} | "
            f"{user.obs_count} | {user.research_count} | {trend_cell} |"
        )

    if battles:
        lines.append("\n## Close battles\n")
        for b in battles:
            lines.append(f"- #{b.a.rank} {b.a.login} vs #{b.b.rank} {b.b.login} — {b.gap:.2f} pts apart")

    lines.append("\n## Taxon groups\n")
    for group, scores in aggregated.by_taxon_group.items():
        if not scores:
            continue
        leaders = ", ".join(f"{s.login} ({s.points:.2f})" for s in scores[:3])
        lines.append(f"- **{group.capitalize()}**: {leaders}")

    lines.append("\n## Days\n")
    for day in sorted(aggregated.by_day):
        d = aggregated.by_day[day]
        lines.append(
            f"- {day}: {d.obs_count} obs, {d.species_count} species, "
            f"{len(d.participants)} participants, {d.points:.2f} pts"
        )

    lines.append("\n## Trip trophies\n")
    for slug, results in trip_results.items():
        name = get_trophy(slug, registry).title if registry else slug
        if not results:
            lines.append(f"### {name}\n_No qualifier yet._")
            continue
        lines.append(f"### {name}")
        for idx, res in enumerate(results[:3], start=1):
            lines.append(f"{idx}. {res.login} — {res.evidence}")

    if rarity is not None and (rarity.rare or rarity.common):
        lines.append("\n## Rarity\n")
        lines.append("Rare: " + ", ".join(f"{r.name} ({r.score:.2f})" for r in rarity.rare[:10]))
        lines.append("\nCommon: " + ", ".join(f"{r.name} ({r.score:.2f})" for r in rarity.common[:10]))

    if digest is not None:
        lines.append(f"\n## Daily digest — {digest.date}\n")
        lines.append(f"- Top changes: {', '.join(digest.top_changes) or 'None'}")
        lines.append(f"- New species: {digest.new_species}")
        if digest.rarest is not None:
            r = digest.rarest
            lines.append(f"- Rarest observation: {r.taxon_name or 'Unknown'} by {r.user_login}")
        lines.append(f"- Trophy winners: {', '.join(digest.trophy_winners) or 'None yet'}")

    Path(output_path).write_text("\n".join(lines), encoding="utf-8")

__all__ = ["DailyDigest", "build_digest", "write_markdown_report"]
