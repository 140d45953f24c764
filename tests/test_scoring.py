from datetime import datetime

import pytest

from etl import scoring
from etl.context import build_context

REF = datetime(2025, 2, 1, 12, 0)  # well after every test observation


def test_two_observer_scenario(make_obs):
    a = make_obs(user="a", at="2025-01-01 08:00", taxon=5, quality="research")
    b = make_obs(user="b", at="2025-01-01 09:00", taxon=5, quality="casual")
    ctx = build_context([b, a], REF)

    assert ctx.rarity_by_taxon[5] == 2
    assert scoring.score_observation(a, ctx) == 8.5

    bd = scoring.score_breakdown(b, ctx)
    assert bd.first_n_factor == 0.75
    assert bd.novelty_trip == 2.0
    assert bd.novelty_day == 0.75
    assert bd.research_bonus == 0.0
    assert bd.points == 4.31


def test_first_n_factor_table(make_obs):
    obs = [make_obs(user=f"u{i}", at=f"2025-01-11 0{i}:00", taxon=7) for i in range(8)]
    ctx = build_context(obs, REF)

    factors = [scoring.first_n_factor(o, ctx) for o in obs]
    assert factors == [1.00, 0.75, 0.55, 0.40, 0.30, 0.20, 0.15, 0.15]
    assert all(x >= y for x, y in zip(factors, factors[1:]))


def test_third_and_later_get_low_novelty(make_obs):
    obs = [make_obs(user=f"u{i}", at=f"2025-01-11 0{i}:00", taxon=7) for i in range(3)]
    ctx = build_context(obs, REF)

    third = scoring.score_breakdown(obs[2], ctx)
    assert third.novelty_trip == 1.0
    assert third.novelty_day == 0.3


def test_day_first_resets_each_day(make_obs):
    first = make_obs(user="a", at="2025-01-11 08:00", taxon=3)
    second = make_obs(user="b", at="2025-01-11 09:00", taxon=3)
    third = make_obs(user="c", at="2025-01-12 07:00", taxon=3)
    ctx = build_context([first, second, third], REF)

    bd = scoring.score_breakdown(third, ctx)
    assert bd.novelty_day == 1.5
    assert bd.novelty_trip == 1.0
    assert bd.first_n_factor == 0.55


def test_unidentified_observation_uses_defaults(make_obs):
    obs = make_obs(taxon=None, quality="casual")
    ctx = build_context([obs], REF)

    bd = scoring.score_breakdown(obs, ctx)
    assert (bd.novelty_trip, bd.novelty_day, bd.rarity, bd.first_n_factor) == (1.0, 0.3, 0.0, 1.0)
    assert bd.points == 2.3


def test_needs_id_bonus(make_obs):
    obs = make_obs(taxon=None, quality="needs_id")
    ctx = build_context([obs], REF)
    assert scoring.score_breakdown(obs, ctx).research_bonus == 0.5


@pytest.mark.parametrize("count, expected", [(1, 1.0), (20, 1.0), (21, 0.6), (50, 0.6), (51, 0.3)])
def test_fatigue_boundaries(count, expected):
    assert scoring.fatigue_factor(count) == expected


@pytest.mark.parametrize("count, expected", [(20, 1.0), (21, 0.6), (50, 0.6), (51, 0.3)])
def test_fatigue_applies_to_whole_user_day(make_obs, count, expected):
    obs = [make_obs(user="busy", at=f"2025-01-11 {6 + i // 60:02d}:{i % 60:02d}") for i in range(count)]
    ctx = build_context(obs, REF)

    assert {scoring.score_breakdown(o, ctx).fatigue for o in obs} == {expected}


@pytest.mark.parametrize(
    "percentile, expected",
    [(0.0, 1.2), (0.29, 1.2), (0.30, 1.1), (0.59, 1.1), (0.60, 1.0), (1.0, 1.0)],
)
def test_rubber_band_tiers(percentile, expected):
    assert scoring.rubber_band_factor(percentile) == expected


def test_rubber_band_boosts_trailing_user(make_obs):
    ref = datetime(2025, 1, 11, 20, 0)
    leader = [make_obs(user="lead", at=f"2025-01-11 1{i}:00") for i in range(3)]
    trailer = make_obs(user="trail", at="2025-01-11 15:00")
    ctx = build_context(leader + [trailer], ref)

    assert scoring.score_breakdown(trailer, ctx).rubber_band == 1.2
    assert scoring.score_breakdown(leader[0], ctx).rubber_band == 1.0
    # unidentified research obs: (1 + 1 + 0.3 + 0 + 1) * 1.2
    assert scoring.score_observation(trailer, ctx) == pytest.approx(3.96)


def test_observation_outside_context_is_contract_error(make_obs):
    known = make_obs(taxon=5)
    stranger = make_obs(taxon=5)
    ctx = build_context([known], REF)

    with pytest.raises(scoring.ScoringContractError):
        scoring.score_observation(stranger, ctx)


def test_scores_are_deterministic(make_obs):
    obs = [make_obs(user=u, at=f"2025-01-1{d} 0{h}:00", taxon=t)
           for u, d, h, t in [("a", 1, 5, 1), ("b", 1, 6, 1), ("a", 2, 7, 2), ("c", 2, 8, None)]]
    first = [scoring.score_observation(o, build_context(obs, REF)) for o in obs]
    second = [scoring.score_observation(o, build_context(list(reversed(obs)), REF)) for o in obs]
    assert first == second


def test_explain_score_returns_float_and_reason(make_obs):
    obs = make_obs(taxon=9)
    points, reason = scoring.explain_score(obs, build_context([obs], REF))
    assert isinstance(points, float)
    assert isinstance(reason, str)
    assert "rarity +3" in reason


def test_exact_half_cent_rounds_up(make_obs):
    # 12 sightings of taxon 9 → rarity 0; the trailer's second sighting is worth
    # (1 + 2 + 0.75 + 0 + 0.5) × 0.75 × 1 × 1.2 = 3.825 exactly.
    first = make_obs(user="busy", at="2025-01-11 08:00", taxon=9)
    trailer = make_obs(user="trailer", at="2025-01-11 08:10", taxon=9, quality="needs_id")
    rest = [make_obs(user="busy", at=f"2025-01-11 1{i}:00", taxon=9) for i in range(10)]
    ctx = build_context([first, trailer] + rest, datetime(2025, 1, 11, 23, 0))

    bd = scoring.score_breakdown(trailer, ctx)
    assert (bd.rarity, bd.first_n_factor, bd.novelty_day, bd.rubber_band) == (0.0, 0.75, 0.75, 1.2)
    assert bd.points == 3.83
