"""
Demographic market sizing.

Turns an audience descriptor (age band, gender, interests, affluence
category) into an estimated count of addressable persons.
"""
from __future__ import annotations

import math
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, List, Mapping

import yaml

from campaign_sim.models import MARKET_SIZE_FLOOR, Demographic

DATA_DIR = Path(__file__).resolve().parent / "data"

DEFAULT_BASE_POPULATION = 10_000_000
NEUTRAL_AFFLUENCE_FACTOR = 0.7

INTEREST_NARROWING = 0.08
MIN_INTEREST_FACTOR = 0.1

# baseline tables are stored in thousands of persons
_TABLE_UNIT = 1000


def _read_yaml(name: str) -> dict:
    path = DATA_DIR / name
    if not path.exists():
        raise FileNotFoundError(f"Missing data table: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@lru_cache(maxsize=None)
def population_table() -> Mapping[str, Mapping[str, int]]:
    raw = _read_yaml("demographic_sizes.yaml")
    return MappingProxyType({
        str(age): MappingProxyType({str(g).lower(): int(v) * _TABLE_UNIT for g, v in genders.items()})
        for age, genders in raw.items()
    })


@lru_cache(maxsize=None)
def affluence_table() -> Mapping[str, float]:
    raw = _read_yaml("affluence_factors.yaml")
    return MappingProxyType({str(k): float(v) for k, v in raw.items()})


def base_population(age: str, gender: str) -> int:
    by_gender = population_table().get(age)
    if not by_gender:
        return DEFAULT_BASE_POPULATION
    return by_gender.get(gender.strip().lower(), DEFAULT_BASE_POPULATION)


def interest_factor(interest_count: int) -> float:
    return max(MIN_INTEREST_FACTOR, 1 - INTEREST_NARROWING * interest_count)


def affluence_factor(category: str) -> float:
    return affluence_table().get(category, NEUTRAL_AFFLUENCE_FACTOR)


def estimate_size(demographic: Demographic) -> int:
    base = base_population(demographic.age, demographic.gender)
    size = math.floor(base * interest_factor(len(demographic.interests)) * affluence_factor(demographic.category))
    return max(MARKET_SIZE_FLOOR, size)


def market_size(demographic: Demographic) -> int:
    """Cached size when one is attached, otherwise a fresh estimate."""
    if demographic.estimated_size is not None:
        return demographic.estimated_size
    return estimate_size(demographic)


def with_estimated_size(demographic: Demographic) -> Demographic:
    # an attached size is never recomputed
    if demographic.estimated_size is not None:
        return demographic
    return demographic.with_size(estimate_size(demographic))


def attach_sizes(demographics: Iterable[Demographic]) -> List[Demographic]:
    return [with_estimated_size(d) for d in demographics]


def total_market_size(demographics: Iterable[Demographic]) -> int:
    return sum(market_size(d) for d in demographics)
