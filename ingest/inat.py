"""
Module for pulling observations from the iNaturalist public API and
converting them into :class:`etl.observations.Observation` records.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Union
import requests
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from tqdm import tqdm

from etl.observations import Observation
from . import cache

logger = logging.getLogger(__name__)

# Base URL for the iNaturalist v1 API
INAT_API_URL = "https://api.inaturalist.org/v1"

HEADERS = {"Accept": "application/json", "User-Agent": "EcoQuestLive/0.1 (bioblitz scoring)"}

# Docs: https://api.inaturalist.org/v1/docs/#!/Observations/get_observations

def fetch_observations(
    start: str,
    end: str,
    logins: Optional[List[str]] = None,
    quality: Optional[List[str]] = None,
    project_id: Optional[str] = None,
    place_id: Optional[int] = None,
    per_page: int = 200,
    max_pages: int = 50,
) -> List[Dict]:
    """Fetch raw observations recorded between *start* and *end* (inclusive).

    Parameters
    ----------
    start, end : str
        ISO dates bounding ``observed_on``.
    logins : List[str], optional
        Restrict to these user logins.
    quality : List[str], optional
        Restrict to these quality grades.
    project_id, place_id : optional
        iNaturalist project / place filters.
    per_page : int, optional
        Page size, by default 200 (the API maximum).
    max_pages : int, optional
        Hard stop on pagination, by default 50.

    Returns
    -------
    List[Dict]
        Raw observation dicts as returned by the API.
    """
    filters = [
        ",".join(sorted(logins or [])),
        ",".join(sorted(quality or [])),
        str(project_id or ""),
        str(place_id or ""),
    ]
    cache_key = ":".join(["inat", start, end, *filters])
    logger.info("Fetching iNaturalist observations %s → %s", start, end)
    cached = cache.get_cached(cache_key)
    if cached is not None:
        logger.info("Using cached iNaturalist data (%d entries)", len(cached))
        return cached

    params: Dict[str, Union[str, int]] = {
        "d1": start,
        "d2": end,
        "per_page": per_page,
        "order_by": "observed_on",
        "order": "asc",
    }
    if logins:
        params["user_login"] = ",".join(logins)
    if quality:
        params["quality_grade"] = ",".join(quality)
    if project_id:
        params["project_id"] = project_id
    if place_id:
        params["place_id"] = place_id

    endpoint = f"{INAT_API_URL}/observations"
    results: List[Dict] = []

    try:
        for page in tqdm(range(1, max_pages + 1), desc="iNat pages", unit="page"):
            logger.debug("Requesting %s page %d", endpoint, page)
            resp = requests.get(endpoint, params={**params, "page": page}, headers=HEADERS, timeout=15)
            logger.debug("iNaturalist response status %s", resp.status_code)
            resp.raise_for_status()
            data = resp.json()
            batch = data.get("results", [])
            results.extend(batch)
            if len(batch) < per_page or len(results) >= data.get("total_results", 0):
                break
        else:
            logger.warning("Stopped at max_pages=%d; %d observations may be incomplete", max_pages, len(results))

        cache.set_cached(cache_key, results)
        logger.info("Fetched %d iNaturalist observations", len(results))
        return results
    except Exception:  # noqa: BLE001
        # Network failure or API error – return empty list to keep pipeline idempotent.
        logger.exception("iNaturalist fetch failed")
        return []


def fetch_local_counts(place_id: int, taxon_ids: Iterable[int], chunk: int = 200) -> Dict[int, int]:
    """Baseline observation counts per taxon for *place_id* (all time, all users)."""
    ids = sorted(set(taxon_ids))
    counts: Dict[int, int] = {}
    endpoint = f"{INAT_API_URL}/observations/species_counts"

    try:
        for offset in range(0, len(ids), chunk):
            batch = ids[offset:offset + chunk]
            resp = requests.get(
                endpoint,
                params={"place_id": place_id, "taxon_id": ",".join(map(str, batch)), "per_page": 500},
                headers=HEADERS,
                timeout=15,
            )
            resp.raise_for_status()
            for row in resp.json().get("results", []):
                taxon = row.get("taxon") or {}
                if taxon.get("id") is not None:
                    counts[taxon["id"]] = row.get("count", 0)
    except Exception:  # noqa: BLE001
        logger.exception("iNaturalist species_counts fetch failed")
        return {}

    logger.info("Fetched local baseline counts for %d taxa", len(counts))
    return counts


def _parse_location(raw: Dict) -> tuple[float, float]:
    loc = raw.get("location")
    if isinstance(loc, str) and "," in loc:
        lat, lng = loc.split(",", 1)
        return float(lat), float(lng)
    if isinstance(loc, (list, tuple)) and len(loc) == 2:
        return float(loc[0]), float(loc[1])
    return 0.0, 0.0


def _parse_time(value: Optional[str], tz: Optional[ZoneInfo]) -> Optional[datetime]:
    if not value:
        return None
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if tz is not None and moment.tzinfo is not None:
        moment = moment.astimezone(tz)
    return moment.replace(tzinfo=None)


def to_observation(raw: Dict, tz: Optional[Union[str, ZoneInfo]] = None) -> Optional[Observation]:
    """Convert one raw iNaturalist dict; returns None for unusable records.

    Offset-aware timestamps are moved into *tz* (the trip timezone) and then
    kept as naive trip-local wall-clock values.
    """
    if isinstance(tz, str):
        tz = ZoneInfo(tz)

    user = raw.get("user") or {}
    if raw.get("id") is None or not user.get("login") or not raw.get("observed_on"):
        logger.warning("Skipping malformed observation %r", raw.get("id"))
        return None

    taxon = raw.get("taxon") or {}
    lat, lng = _parse_location(raw)

    return Observation(
        id=int(raw["id"]),
        observed_on=str(raw["observed_on"])[:10],
        quality_grade=raw.get("quality_grade") or "casual",
        user_login=user["login"],
        lat=lat,
        lng=lng,
        time_observed_at=_parse_time(raw.get("time_observed_at"), tz),
        taxon_id=taxon.get("id"),
        taxon_name=taxon.get("name"),
        taxon_rank=taxon.get("rank"),
        iconic_taxon=taxon.get("iconic_taxon_name"),
        uri=raw.get("uri"),
    )


def to_observations(raws: Iterable[Dict], tz: Optional[Union[str, ZoneInfo]] = None) -> List[Observation]:
    converted = (to_observation(r, tz) for r in raws)
    return [o for o in converted if o is not None]


__all__ = ["fetch_local_counts", "fetch_observations", "to_observation", "to_observations"]
