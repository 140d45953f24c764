"""Observation record shared by every stage of the pipeline.

Timestamps are trip-local wall-clock values. ``ingest.inat.to_observation``
converts offset-aware iNaturalist timestamps into the trip timezone before
they reach this module, so the core compares naive datetimes only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional


@dataclass(frozen=True)
class Observation:
    """One sighting. Immutable; ``id`` is unique within a scoring run."""

    id: int
    observed_on: str  # YYYY-MM-DD, trip-local
    quality_grade: str
    user_login: str
    lat: float = 0.0
    lng: float = 0.0
    time_observed_at: Optional[datetime] = None
    taxon_id: Optional[int] = None
    taxon_name: Optional[str] = None
    taxon_rank: Optional[str] = None
    iconic_taxon: Optional[str] = None
    uri: Optional[str] = None

    @property
    def observed_at(self) -> datetime:
        """Effective time: ``time_observed_at`` or midnight of ``observed_on``."""
        if self.time_observed_at is not None:
            return wall_clock(self.time_observed_at)
        return datetime.combine(date.fromisoformat(self.observed_on), time())


def wall_clock(moment: datetime) -> datetime:
    """Drop tzinfo, keeping the local wall-clock reading."""
    return moment.replace(tzinfo=None) if moment.tzinfo is not None else moment


def chronological(observations) -> list:
    """Observations sorted by effective time; ties keep input order."""
    return sorted(observations, key=lambda o: o.observed_at)


__all__ = ["Observation", "wall_clock", "chronological"]
