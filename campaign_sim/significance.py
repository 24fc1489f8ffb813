"""
Two-proportion significance testing for comparing campaign conversion rates.

The p-value uses the Abramowitz & Stegun 7.1.26 rational approximation of
erfc rather than an exact normal CDF; results agree with an exact
implementation to roughly four decimal places.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from campaign_sim.models import ConversionCounts

MIN_SAMPLE_SIZE = 30
Z_CRITICAL_95 = 1.96

HIGHLY_SIGNIFICANT_P = 0.01
SIGNIFICANT_P = 0.05
MARGINAL_P = 0.10

# Abramowitz & Stegun 7.1.26
_AS_P = 0.3275911
_AS_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)


class SignificanceTier(str, Enum):
    INSUFFICIENT_SAMPLE = "insufficient sample"
    HIGHLY_SIGNIFICANT = "highly significant"
    SIGNIFICANT = "significant"
    MARGINAL = "marginal"
    NOT_SIGNIFICANT = "not significant"


TIER_TEXT = {
    SignificanceTier.INSUFFICIENT_SAMPLE: "Insufficient Sample Size",
    SignificanceTier.HIGHLY_SIGNIFICANT: "Highly Significant (99% confidence)",
    SignificanceTier.SIGNIFICANT: "Statistically Significant (95% confidence)",
    SignificanceTier.MARGINAL: "Marginally Significant (90% confidence)",
    SignificanceTier.NOT_SIGNIFICANT: "Not Statistically Significant",
}


@dataclass(frozen=True)
class SignificanceResult:
    side_a: ConversionCounts
    side_b: ConversionCounts
    z_score: float
    p_value: float
    ci_lower: float
    ci_upper: float
    tier: SignificanceTier
    winning_side: str
    relative_improvement: float
    absolute_difference: float
    has_minimum_sample: bool

    @property
    def rate_a(self) -> float:
        return self.side_a.rate

    @property
    def rate_b(self) -> float:
        return self.side_b.rate

    @property
    def confidence_interval(self) -> Tuple[float, float]:
        return self.ci_lower, self.ci_upper

    @property
    def significance_text(self) -> str:
        return TIER_TEXT[self.tier]

    @property
    def is_significant(self) -> bool:
        return self.tier in (SignificanceTier.HIGHLY_SIGNIFICANT, SignificanceTier.SIGNIFICANT)


def erfc_approx(x: float) -> float:
    """Complementary error function for x >= 0 (max abs error ~1.5e-7)."""
    x = abs(x)
    t = 1.0 / (1.0 + _AS_P * x)
    a1, a2, a3, a4, a5 = _AS_A
    poly = ((((a5 * t + a4) * t + a3) * t + a2) * t + a1) * t
    return poly * math.exp(-x * x)


def z_score(conversions_a: int, trials_a: int, conversions_b: int, trials_b: int) -> float:
    if trials_a <= 0 or trials_b <= 0:
        return 0.0
    p1 = conversions_a / trials_a
    p2 = conversions_b / trials_b
    pooled = (conversions_a + conversions_b) / (trials_a + trials_b)
    se = math.sqrt(pooled * (1 - pooled) * (1 / trials_a + 1 / trials_b))
    if se == 0:
        return 0.0
    return (p1 - p2) / se


def p_value(z: float) -> float:
    """Two-tailed p-value for a standard normal z."""
    return max(0.0, min(1.0, erfc_approx(abs(z) / math.sqrt(2))))


def tier_for(p: float, has_minimum_sample: bool) -> SignificanceTier:
    if not has_minimum_sample:
        return SignificanceTier.INSUFFICIENT_SAMPLE
    if p < HIGHLY_SIGNIFICANT_P:
        return SignificanceTier.HIGHLY_SIGNIFICANT
    if p < SIGNIFICANT_P:
        return SignificanceTier.SIGNIFICANT
    if p < MARGINAL_P:
        return SignificanceTier.MARGINAL
    return SignificanceTier.NOT_SIGNIFICANT


def _variance_term(side: ConversionCounts) -> float:
    if side.trials <= 0:
        return 0.0
    p = side.rate
    return p * (1 - p) / side.trials


def compare(side_a: ConversionCounts, side_b: ConversionCounts) -> SignificanceResult:
    """Compare two conversion outcomes with a two-proportion z-test.

    The winning side is whichever raw rate is higher ("tie" when equal) and
    is reported independently of the significance tier.
    """
    rate_a, rate_b = side_a.rate, side_b.rate

    z = z_score(side_a.conversions, side_a.trials, side_b.conversions, side_b.trials)
    p = p_value(z)

    has_minimum_sample = side_a.trials >= MIN_SAMPLE_SIZE and side_b.trials >= MIN_SAMPLE_SIZE

    diff = rate_a - rate_b
    margin = Z_CRITICAL_95 * math.sqrt(_variance_term(side_a) + _variance_term(side_b))

    low, high = min(rate_a, rate_b), max(rate_a, rate_b)
    relative = (high - low) / low * 100 if low > 0 else 0.0

    if rate_a > rate_b:
        winner = "A"
    elif rate_b > rate_a:
        winner = "B"
    else:
        winner = "tie"

    return SignificanceResult(
        side_a=side_a,
        side_b=side_b,
        z_score=z,
        p_value=p,
        ci_lower=diff - margin,
        ci_upper=diff + margin,
        tier=tier_for(p, has_minimum_sample),
        winning_side=winner,
        relative_improvement=relative,
        absolute_difference=abs(diff),
        has_minimum_sample=has_minimum_sample,
    )


def statistical_power(sample_size: int, baseline_rate: float, effect_size: float) -> float:
    """Rough power estimate at alpha=0.05 for detecting ``effect_size`` over ``baseline_rate``."""
    if sample_size <= 0:
        return 0.0
    detected = baseline_rate + effect_size
    pooled = (baseline_rate + detected) / 2
    se = math.sqrt(2 * pooled * (1 - pooled) / sample_size)
    if se == 0:
        return 0.0
    z_beta = effect_size / se - Z_CRITICAL_95
    return max(0.0, min(1.0, 0.5 + z_beta * 0.2))
