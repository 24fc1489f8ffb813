from __future__ import annotations

import math

import pytest

from campaign_sim.models import ConversionCounts
from campaign_sim.significance import (
    MIN_SAMPLE_SIZE,
    SignificanceTier,
    compare,
    erfc_approx,
    p_value,
    statistical_power,
    tier_for,
    z_score,
)


def C(conversions, trials) -> ConversionCounts:
    return ConversionCounts(conversions, trials)


def test_five_vs_three_percent_on_a_thousand_each():
    r = compare(C(50, 1000), C(30, 1000))
    assert r.rate_a == pytest.approx(0.05)
    assert r.rate_b == pytest.approx(0.03)
    assert r.z_score == pytest.approx(2.282, abs=1e-3)
    assert r.p_value == pytest.approx(0.0226, abs=5e-4)
    assert r.tier is SignificanceTier.SIGNIFICANT
    assert r.winning_side == "A"
    assert r.is_significant


def test_confidence_interval_uses_unpooled_error():
    r = compare(C(50, 1000), C(30, 1000))
    margin = 1.96 * math.sqrt(0.05 * 0.95 / 1000 + 0.03 * 0.97 / 1000)
    assert r.ci_lower == pytest.approx(0.02 - margin)
    assert r.ci_upper == pytest.approx(0.02 + margin)
    assert r.ci_lower > 0


@pytest.mark.parametrize("a,b", [
    (C(50, 1000), C(30, 1000)),
    (C(7, 40), C(19, 60)),
    (C(0, 100), C(3, 100)),
    (C(1, 5), C(1, 5)),
])
def test_comparison_is_symmetric(a, b):
    ab, ba = compare(a, b), compare(b, a)
    assert abs(ab.z_score) == abs(ba.z_score)
    assert ab.z_score == -ba.z_score
    assert ab.p_value == ba.p_value
    assert ab.tier is ba.tier
    assert ab.relative_improvement == pytest.approx(ba.relative_improvement)
    if ab.winning_side != "tie":
        assert {ab.winning_side, ba.winning_side} == {"A", "B"}


def test_small_samples_are_gated():
    r = compare(C(1, 5), C(1, 5))
    assert r.tier is SignificanceTier.INSUFFICIENT_SAMPLE
    assert not r.has_minimum_sample
    assert r.significance_text == "Insufficient Sample Size"


def test_gate_applies_even_with_a_tiny_p_value():
    r = compare(C(0, MIN_SAMPLE_SIZE - 1), C(MIN_SAMPLE_SIZE - 1, MIN_SAMPLE_SIZE - 1))
    assert r.p_value < 0.01
    assert r.tier is SignificanceTier.INSUFFICIENT_SAMPLE


def test_zero_variance_gives_neutral_statistics():
    r = compare(C(0, 100), C(0, 100))
    assert r.z_score == 0.0
    assert r.p_value == pytest.approx(1.0, abs=1e-6)
    assert r.tier is SignificanceTier.NOT_SIGNIFICANT
    assert r.winning_side == "tie"
    assert r.relative_improvement == 0.0

    r = compare(C(100, 100), C(100, 100))
    assert r.z_score == 0.0
    assert not math.isnan(r.ci_lower)


def test_zero_trials_do_not_divide_by_zero():
    r = compare(C(0, 0), C(5, 10))
    assert r.z_score == 0.0
    assert r.tier is SignificanceTier.INSUFFICIENT_SAMPLE
    assert not any(math.isnan(x) for x in (r.p_value, r.ci_lower, r.ci_upper))


def test_raw_winner_is_independent_of_significance():
    r = compare(C(12, 100), C(10, 100))
    assert r.winning_side == "A"
    assert r.tier is SignificanceTier.NOT_SIGNIFICANT
    assert not r.is_significant


def test_relative_improvement_and_absolute_difference():
    r = compare(C(30, 1000), C(50, 1000))
    assert r.relative_improvement == pytest.approx(200 / 3)
    assert r.absolute_difference == pytest.approx(0.02)
    assert r.winning_side == "B"


@pytest.mark.parametrize("p,expected", [
    (0.001, SignificanceTier.HIGHLY_SIGNIFICANT),
    (0.0099, SignificanceTier.HIGHLY_SIGNIFICANT),
    (0.01, SignificanceTier.SIGNIFICANT),
    (0.049, SignificanceTier.SIGNIFICANT),
    (0.05, SignificanceTier.MARGINAL),
    (0.099, SignificanceTier.MARGINAL),
    (0.10, SignificanceTier.NOT_SIGNIFICANT),
    (0.9, SignificanceTier.NOT_SIGNIFICANT),
])
def test_tier_thresholds(p, expected):
    assert tier_for(p, has_minimum_sample=True) is expected
    assert tier_for(p, has_minimum_sample=False) is SignificanceTier.INSUFFICIENT_SAMPLE


@pytest.mark.parametrize("x", [0.0, 0.3, 1.0, 1.6137, 2.5, 4.0])
def test_erfc_approximation_is_close_to_exact(x):
    assert erfc_approx(x) == pytest.approx(math.erfc(x), abs=2e-7)


def test_p_value_is_clamped_and_two_tailed():
    assert 0.0 <= p_value(0.0) <= 1.0
    assert p_value(40.0) == pytest.approx(0.0, abs=1e-12)
    assert p_value(1.96) == pytest.approx(0.05, abs=1e-3)
    assert p_value(-1.96) == p_value(1.96)


def test_z_score_sign_follows_rate_difference():
    assert z_score(50, 1000, 30, 1000) > 0
    assert z_score(30, 1000, 50, 1000) < 0


def test_statistical_power_grows_with_sample_size():
    small = statistical_power(100, 0.05, 0.02)
    large = statistical_power(10_000, 0.05, 0.02)
    assert 0.0 <= small <= large <= 1.0
    assert large == 1.0
    assert statistical_power(0, 0.05, 0.02) == 0.0
