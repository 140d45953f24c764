from datetime import datetime
from itertools import count

import pytest

from etl.observations import Observation


@pytest.fixture
def make_obs():
    """Factory for observations; ids auto-increment, ``at`` is "YYYY-MM-DD HH:MM"."""
    ids = count(1)

    def _make(user="alice", at="2025-01-11 08:00", taxon=None, quality="research", iconic=None, name=None, **kw):
        moment = datetime.fromisoformat(at) if at and " " in at else None
        day = at.split(" ")[0] if at else kw.pop("observed_on")
        return Observation(
            id=kw.pop("id", next(ids)),
            observed_on=day,
            quality_grade=quality,
            user_login=user,
            time_observed_at=moment,
            taxon_id=taxon,
            taxon_name=name or (f"Taxon {taxon}" if taxon is not None else None),
            iconic_taxon=iconic,
            **kw,
        )

    return _make
