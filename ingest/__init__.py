from .inat import fetch_observations as fetch_inat
from .inat import fetch_local_counts
from .trip import get_trip

__all__ = [
    "fetch_inat",
    "fetch_local_counts",
    "get_trip",
]
