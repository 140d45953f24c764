"""Simple JSON cache for raw ingestion outputs and leaderboard snapshots.

Store fetched data per source once per day so repeated runs on the same day
reuse the cached payload and make the pipeline idempotent. The orchestrator
also files each day's ranked leaderboard here under ``"leaderboard"`` so the
next run can compute rank trends against it.
"""

from __future__ import annotations

import json
import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


CATALOG_PATH = Path(__file__).parent / "catalog.json"


# Set EQ_SKIP_CACHE=1 to ignore cached files (useful for debugging or force-refresh)
SKIP_CACHE = os.getenv("EQ_SKIP_CACHE", "0").lower() in {"1", "true", "yes"}


def _load_catalog() -> Dict[str, Any]:
    """Return the full JSON catalog ({} if missing or corrupted)."""

    if CATALOG_PATH.exists():
        try:
            return json.loads(CATALOG_PATH.read_text())
        except json.JSONDecodeError:
            pass
    return {}


def _save_catalog(catalog: Dict[str, Any]) -> None:
    """Write *catalog* back to disk (pretty-printed for readability)."""

    CATALOG_PATH.write_text(json.dumps(catalog, ensure_ascii=False, indent=2))


def get_cached(source: str, day: Optional[str] = None) -> Optional[List[Dict]]:
    """Return cached data for *source* on *day* (today by default), or *None*."""

    if SKIP_CACHE:
        return None

    day = day or date.today().isoformat()
    catalog = _load_catalog()
    return catalog.get(day, {}).get(source)


def set_cached(source: str, data: List[Dict], day: Optional[str] = None) -> None:
    """Store *data* for *source* under *day* (today by default) in ``catalog.json``.

    The catalog structure becomes:

    {
        "YYYY-MM-DD": {
            "inat": [...],
            "leaderboard": [...],
            ...
        },
        "YYYY-MM-DD": { ... }
    }
    """

    if SKIP_CACHE:
        return

    day = day or date.today().isoformat()
    catalog = _load_catalog()

    catalog.setdefault(day, {})[source] = data

    _save_catalog(catalog)


def latest_before(source: str, day: str) -> Optional[Tuple[str, List[Dict]]]:
    """Most recent ``(day, data)`` for *source* strictly before *day*."""

    if SKIP_CACHE:
        return None

    catalog = _load_catalog()
    for key in sorted(catalog, reverse=True):
        if key < day and source in catalog[key]:
            return key, catalog[key][source]
    return None


__all__ = [
    "get_cached",
    "latest_before",
    "set_cached",
]
