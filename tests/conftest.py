from __future__ import annotations

import threading
from pathlib import Path
from typing import List

import pytest

from campaign_sim.errors import OracleError
from campaign_sim.models import BudgetAllocation, Demographic, OracleResponse, Outcome, ProductVariant, Strategy

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class FixedOracle:
    """Answers every trial with the same outcome and records chunk sizes."""

    def __init__(self, outcome: Outcome = Outcome.FOLLOW_AND_BUY) -> None:
        self.outcome = outcome
        self.calls: List[int] = []
        self._lock = threading.Lock()

    def respond(self, demographic, variant, count):
        with self._lock:
            self.calls.append(count)
        return [OracleResponse(choice=self.outcome, text="ok") for _ in range(count)]


class FlakyOracle(FixedOracle):
    """Fails on the listed (1-based) call numbers."""

    def __init__(self, fail_on, outcome: Outcome = Outcome.FOLLOW_AND_BUY) -> None:
        super().__init__(outcome)
        self.fail_on = set(fail_on)

    def respond(self, demographic, variant, count):
        with self._lock:
            self.calls.append(count)
            call_no = len(self.calls)
        if call_no in self.fail_on:
            raise OracleError("connection refused")
        return [OracleResponse(choice=self.outcome) for _ in range(count)]


@pytest.fixture
def young_male() -> Demographic:
    return Demographic(
        id="demo-1",
        age="18-24",
        gender="Male",
        interests=("Technology", "Gaming", "Sports"),
        category="Rising Prosperity",
        description="Young tech-savvy adults",
    )


@pytest.fixture
def retiree() -> Demographic:
    return Demographic(
        id="demo-5",
        age="55-64",
        gender="Male",
        interests=("Investments",),
        category="Affluent Achievers",
        description="Higher income individuals",
    )


@pytest.fixture
def variant() -> ProductVariant:
    return ProductVariant(id="A", description="Anime caps", tagline="Live the life", sales_price=40.0, unit_cost=10.0)


@pytest.fixture
def google_strategy() -> Strategy:
    return Strategy(
        allocations=(BudgetAllocation("google_ads", 2000.0, ("all",)),),
        total_budget=2000.0,
    )


@pytest.fixture
def fixed_oracle() -> FixedOracle:
    return FixedOracle()
