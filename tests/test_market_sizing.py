from __future__ import annotations

from dataclasses import replace

import pytest

from campaign_sim.market_sizing import (
    DEFAULT_BASE_POPULATION,
    MARKET_SIZE_FLOOR,
    NEUTRAL_AFFLUENCE_FACTOR,
    affluence_factor,
    attach_sizes,
    base_population,
    estimate_size,
    interest_factor,
    population_table,
    total_market_size,
    with_estimated_size,
)
from campaign_sim.models import Demographic


def _demo(**kw) -> Demographic:
    base = dict(id="d", age="25-34", gender="Female", interests=(), category="Persevering Families")
    base.update(kw)
    return Demographic(**base)


def test_exact_baseline_without_adjustments():
    assert estimate_size(_demo()) == 17_500_000


def test_interest_and_affluence_factors_apply(young_male):
    # 15M * (1 - 3*0.08) * 0.7
    assert abs(estimate_size(young_male) - 7_980_000) <= 1


def test_floor_applies_to_tiny_segments():
    d = _demo(age="65+", gender="other", category="Power Elite", interests=tuple("abcdefghijkl"))
    assert estimate_size(d) == MARKET_SIZE_FLOOR


@pytest.mark.parametrize("n", range(0, 16))
def test_more_interests_never_grow_the_market(n):
    fewer = _demo(interests=tuple(f"i{k}" for k in range(n)), category="Middle America")
    more = replace(fewer, interests=fewer.interests + ("extra",))
    assert estimate_size(more) <= estimate_size(fewer)
    assert estimate_size(more) >= MARKET_SIZE_FLOOR


def test_interest_factor_is_floored():
    assert interest_factor(0) == 1.0
    assert interest_factor(20) == pytest.approx(0.1)


def test_unknown_age_and_gender_fall_back_to_default():
    assert base_population("90-99", "male") == DEFAULT_BASE_POPULATION
    assert base_population("25-34", "robot") == DEFAULT_BASE_POPULATION


def test_gender_lookup_is_case_insensitive():
    assert base_population("35-44", "Non-Binary") == 600_000


def test_unknown_category_is_neutral():
    assert affluence_factor("Martian Nomads") == NEUTRAL_AFFLUENCE_FACTOR
    d = _demo(age="unknown", category="Martian Nomads")
    assert abs(estimate_size(d) - 7_000_000) <= 1


def test_estimate_is_deterministic(young_male):
    assert estimate_size(young_male) == estimate_size(young_male)


def test_tables_are_read_only():
    with pytest.raises(TypeError):
        population_table()["18-24"] = {}


def test_attached_size_is_never_recomputed(young_male):
    pinned = young_male.with_size(1_234_567)
    assert with_estimated_size(pinned) is pinned
    sized = attach_sizes([young_male, pinned])
    assert sized[0].estimated_size == estimate_size(young_male)
    assert sized[1].estimated_size == 1_234_567
    # input instance is unchanged
    assert young_male.estimated_size is None


def test_total_market_size_prefers_cached_sizes(young_male):
    a = young_male.with_size(600_000)
    b = _demo(id="e")
    assert total_market_size([a, b]) == 600_000 + 17_500_000


@pytest.mark.parametrize("size", [5, 0, -1_000, MARKET_SIZE_FLOOR - 1])
def test_attached_size_below_floor_is_rejected(young_male, size):
    with pytest.raises(ValueError):
        young_male.with_size(size)
    with pytest.raises(ValueError):
        Demographic.from_dict({"id": "d", "age": "18-24", "gender": "Male", "estimated_size": size})


def test_attached_size_at_floor_is_accepted(young_male):
    assert young_male.with_size(MARKET_SIZE_FLOOR).estimated_size == MARKET_SIZE_FLOOR
