from datetime import datetime

import pytest

from etl.aggregate import aggregate_scores, classify_taxon_group
from etl.context import build_context
from etl.scoring import score_observation
from etl.utils import round2

REF = datetime(2025, 2, 1)


@pytest.fixture
def trip(make_obs):
    return [
        make_obs(user="alice", at="2025-01-11 07:00", taxon=1, iconic="Aves"),
        make_obs(user="alice", at="2025-01-11 08:00", taxon=1, iconic="Aves", quality="needs_id"),
        make_obs(user="alice", at="2025-01-12 09:00", taxon=2, iconic="Insecta", quality="casual"),
        make_obs(user="alice", at="2025-01-12 10:00", taxon=None),
        make_obs(user="bob", at="2025-01-11 09:00", taxon=1, iconic="Aves"),
        make_obs(user="bob", at="2025-01-12 11:00", taxon=3, iconic="Mammalia"),
        make_obs(user="bob", at="2025-01-12 12:00", taxon=4, iconic="Plantae"),
    ]


def test_user_points_are_sum_of_rounded_scores(trip):
    ctx = build_context(trip, REF)
    agg = aggregate_scores(trip, ctx)

    for login in ("alice", "bob"):
        expected = sum(score_observation(o, ctx) for o in trip if o.user_login == login)
        assert agg.by_user[login].points == pytest.approx(round2(expected))


def test_species_and_grade_counts(trip):
    agg = aggregate_scores(trip, build_context(trip, REF))
    alice = agg.by_user["alice"]

    assert alice.obs_count == 4
    assert alice.species_count == 2
    assert (alice.research_count, alice.needs_id_count, alice.casual_count) == (2, 1, 1)
    assert agg.by_user["bob"].species_count == 3


def test_day_scores(trip):
    ctx = build_context(trip, REF)
    agg = aggregate_scores(trip, ctx)
    day = agg.by_day["2025-01-12"]

    assert day.obs_count == 4
    assert day.species_count == 3
    assert day.participants == {"alice", "bob"}
    expected = sum(score_observation(o, ctx) for o in trip if o.observed_on == "2025-01-12")
    assert day.points == pytest.approx(round2(expected))


def test_taxon_groups_are_independent_and_sorted(trip):
    ctx = build_context(trip, REF)
    agg = aggregate_scores(trip, ctx)
    birds = agg.by_taxon_group["birds"]

    assert {s.login for s in birds} == {"alice", "bob"}
    assert birds[0].points >= birds[1].points
    assert sum(s.obs_count for s in birds) == 3
    assert [s.login for s in agg.by_taxon_group["mammals"]] == ["bob"]
    assert [s.login for s in agg.by_taxon_group["insects"]] == ["alice"]
    assert agg.by_taxon_group["reptiles"] == []
    # Plantae and unidentified land in no group
    assert sum(s.obs_count for g in agg.by_taxon_group.values() for s in g) == 5
    assert agg.by_taxon_group["mammals"][0].points < agg.by_user["bob"].points


@pytest.mark.parametrize(
    "iconic, bucket",
    [
        ("Mammalia", "mammals"),
        ("Reptilia", "reptiles"),
        ("Aves", "birds"),
        ("Amphibia", "amphibians"),
        ("Arachnida", "spiders"),
        ("INSECTA", "insects"),
        ("Plantae", None),
        (None, None),
    ],
)
def test_classify_taxon_group(make_obs, iconic, bucket):
    assert classify_taxon_group(make_obs(iconic=iconic)) == bucket


def test_empty_input():
    agg = aggregate_scores([], build_context([], REF))
    assert agg.by_user == {}
    assert agg.by_day == {}
    assert set(agg.by_taxon_group) == {"mammals", "reptiles", "birds", "amphibians", "spiders", "insects"}
    assert all(v == [] for v in agg.by_taxon_group.values())


def test_repeated_runs_match(trip):
    first = aggregate_scores(trip, build_context(trip, REF))
    second = aggregate_scores(trip, build_context(trip, REF))
    assert {k: v.points for k, v in first.by_user.items()} == {k: v.points for k, v in second.by_user.items()}


def test_round2_half_boundaries():
    assert round2(0.125) == 0.13
    assert round2(1.215) == 1.22
    assert round2(2.675) == 2.68
    assert round2(3.8249999999999997) == 3.83
    assert round2(4.3125) == 4.31
    assert round2(0.1 + 0.2) == 0.3
