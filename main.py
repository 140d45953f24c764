"""Main orchestrator script.

This script can be scheduled (e.g., cron or CI) or run ad-hoc to perform the
full pipeline: ingest observations for the active trip, build the scoring
context, aggregate points, evaluate trophies, compare against the previous
leaderboard snapshot, and generate a report.
"""

import os, logging
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from ingest import cache, inat
from ingest.trip import TripConfig, get_trip
from etl import aggregate, battles, context, rarity, report, trophies
from etl.observations import Observation, wall_clock
from dotenv import load_dotenv

# Load environment variables from .env if present (safe-no-op if file missing)
load_dotenv()

# ---------------------------------------------------------------------------
# Logging setup (controlled by EQ_LOGLEVEL, default INFO)
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=os.getenv("EQ_LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger(__name__)

TRIP_PROFILE = os.getenv("EQ_TRIP_PROFILE", "TEST")
CLOSE_GAP = float(os.getenv("EQ_CLOSE_GAP", str(battles.DEFAULT_GAP_THRESHOLD)))
REPORT_PATH = Path(os.getenv("EQ_REPORT_PATH", "report.md"))
# Optional EQ_DATE="YYYY-MM-DD" to feature a specific day in the digest
FEATURED_DATE = os.getenv("EQ_DATE") or None


def load_observations(trip: TripConfig) -> List[Observation]:
    """Fetch, convert and trip-filter observations."""
    raw = inat.fetch_observations(
        trip.start,
        trip.end,
        logins=trip.member_logins or None,
        place_id=trip.place_id,
    )
    observations = trip.filter_observations(inat.to_observations(raw, trip.timezone))
    logger.info("Kept %d of %d fetched observations for %s", len(observations), len(raw), trip.title)
    return observations


def prior_leaderboard(day: str) -> List[battles.RankedUser]:
    """Most recent stored leaderboard before *day* ([] if none)."""
    found = cache.latest_before("leaderboard", day)
    if found is None:
        return []
    snapshot_day, rows = found
    logger.info("Comparing against leaderboard snapshot from %s", snapshot_day)
    return [battles.RankedUser(rank=r["rank"], login=r["login"], points=r["points"]) for r in rows]


def orchestrate(reference_time: Optional[datetime] = None) -> None:
    """Run the full scoring pipeline for the active trip."""
    trip = get_trip(TRIP_PROFILE)
    # "Now" on the trip's wall clock, matching the converted observation times
    reference_time = reference_time or wall_clock(datetime.now(ZoneInfo(trip.timezone)))
    today_iso = reference_time.date().isoformat()

    logger.info("Starting ingestion phase for %s", trip.title)
    observations = load_observations(trip)

    logger.info("Building scoring context (reference time %s)", reference_time.isoformat(timespec="minutes"))
    ctx = context.build_context(observations, reference_time)

    aggregated = aggregate.aggregate_scores(observations, ctx)

    first_seen: Dict[str, datetime] = {}
    for obs in observations:
        if obs.user_login not in first_seen or obs.observed_at < first_seen[obs.user_login]:
            first_seen[obs.user_login] = obs.observed_at

    leaderboard = battles.rank_users(aggregated.by_user.values(), first_seen)
    logger.info("Scored %d participants", len(leaderboard))

    trends = battles.compute_trends(leaderboard, prior_leaderboard(today_iso))
    close = battles.find_close_battles(leaderboard, CLOSE_GAP)

    registry = trophies.build_registry(trip.fallback_sunset)
    trip_results = {
        spec.slug: spec.evaluate(observations, ctx)
        for spec in trophies.trip_trophies(registry)
    }

    featured = FEATURED_DATE or (max(aggregated.by_day) if aggregated.by_day else None)
    digest = None
    if featured:
        winners = trophies.daily_winners(observations, ctx, featured, registry)
        digest = report.build_digest(featured, observations, ctx, trends, winners, registry)

    baseline = None
    if trip.place_id:
        local_counts = inat.fetch_local_counts(trip.place_id, ctx.by_taxon.keys())
        baseline = rarity.compute_rarity(observations, local_counts)

    logger.info("Writing report → %s", REPORT_PATH)
    report.write_markdown_report(
        leaderboard,
        aggregated,
        trends,
        close,
        trip_results,
        digest=digest,
        rarity=baseline,
        registry=registry,
        title=trip.title,
        output_path=REPORT_PATH,
    )

    # Persist today's ranking for tomorrow's trend comparison
    try:
        cache.set_cached(
            "leaderboard",
            [{"rank": r.rank, "login": r.login, "points": r.points} for r in leaderboard],
            day=today_iso,
        )
    except OSError as exc:
        logger.warning("Could not save leaderboard snapshot: %s", exc)

    logger.info("Pipeline complete → %s", REPORT_PATH)

if __name__ == "__main__":
    orchestrate()
