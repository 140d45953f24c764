"""Trip profiles: date window, cohort and area for one competition.

The scoring core assumes its input is already narrowed to the trip. These
filters do that narrowing on the data-access side.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from typing import Iterable, List, Optional, Tuple

from etl.observations import Observation

BBox = Tuple[float, float, float, float]  # min_lat, min_lng, max_lat, max_lng


@dataclass(frozen=True)
class TripLocation:
    slug: str
    name: str
    bbox: BBox


@dataclass(frozen=True)
class TripConfig:
    id: str
    title: str
    timezone: str
    day_ranges: List[Tuple[str, str]]
    member_logins: List[str] = field(default_factory=list)
    place_id: Optional[int] = None
    bbox: Optional[BBox] = None
    fallback_sunset: time = time(17, 30)
    locations: List[TripLocation] = field(default_factory=list)

    @property
    def start(self) -> str:
        return min(start for start, _ in self.day_ranges)

    @property
    def end(self) -> str:
        return max(end for _, end in self.day_ranges)

    def day_in_range(self, day: str) -> bool:
        day = day.split("T")[0]
        return any(start <= day <= end for start, end in self.day_ranges)

    def user_allowed(self, login: str) -> bool:
        # An empty cohort admits everyone.
        return not self.member_logins or login in self.member_logins

    def in_place(self, lat: float, lng: float) -> bool:
        return self.bbox is None or _inside(self.bbox, lat, lng)

    def location_for(self, lat: float, lng: float) -> Optional[str]:
        for loc in self.locations:
            if _inside(loc.bbox, lat, lng):
                return loc.slug
        return None

    def filter_observations(self, observations: Iterable[Observation]) -> List[Observation]:
        return [
            o for o in observations
            if self.day_in_range(o.observed_on) and self.user_allowed(o.user_login) and self.in_place(o.lat, o.lng)
        ]


def _inside(bbox: BBox, lat: float, lng: float) -> bool:
    min_lat, min_lng, max_lat, max_lng = bbox
    return min_lat <= lat <= max_lat and min_lng <= lng <= max_lng


TRIPS = {
    "TEST": TripConfig(
        id="TEST",
        title="Test Trip",
        timezone="America/Chicago",
        day_ranges=[("2025-01-11", "2025-01-15")],
        member_logins=["alice", "bob", "charlie"],
    ),
    "CR_TRIP_2025": TripConfig(
        id="CR_TRIP_2025",
        title="Costa Rica BioBlitz 2025",
        timezone="America/Costa_Rica",
        day_ranges=[("2025-11-08", "2025-11-15")],
        place_id=6792,
        bbox=(8.0, -86.0, 11.5, -82.5),
        locations=[
            TripLocation("monteverde", "Monteverde Cloud Forest", (10.25, -84.85, 10.35, -84.75)),
            TripLocation("arenal", "Arenal Volcano Area", (10.40, -84.75, 10.50, -84.65)),
        ],
    ),
}


def get_trip(profile: str) -> TripConfig:
    try:
        return TRIPS[profile]
    except KeyError:
        raise ValueError(f"Unknown trip profile {profile!r}; expected one of {sorted(TRIPS)}") from None


__all__ = ["TRIPS", "TripConfig", "TripLocation", "get_trip"]
