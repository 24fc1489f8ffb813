from __future__ import annotations

import math

from campaign_sim.significance import SignificanceResult


def _missing(x) -> bool:
    return x is None or (isinstance(x, float) and math.isnan(x))


def fmt_pct(x: float) -> str:
    if _missing(x):
        return "—"
    return f"{x*100:.2f}%"


def fmt_money(x: float) -> str:
    if _missing(x):
        return "—"
    return f"{x:,.2f}"


def fmt_market_size(size: float) -> str:
    if size >= 1_000_000_000:
        return f"{size / 1_000_000_000:.1f}B people"
    if size >= 1_000_000:
        return f"{size / 1_000_000:.1f}M people"
    if size >= 1000:
        return f"{round(size / 1000)}K people"
    return f"{round(size)} people"


def fmt_p_value(p: float) -> str:
    if p < 0.001:
        return "<0.001"
    return f"{p:.3f}"


def decision_label(result: SignificanceResult) -> str:
    if not result.has_minimum_sample:
        return "INSUFFICIENT EVIDENCE"
    if not result.is_significant:
        return "KEEP TESTING"
    return f"SHIP VARIANT {result.winning_side}"
