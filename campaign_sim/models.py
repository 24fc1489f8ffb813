from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Tuple

from campaign_sim.errors import TallyInvariantError

WILDCARD = "all"

# smallest population any demographic is sized at
MARKET_SIZE_FLOOR = 500_000


class CostModel(str, Enum):
    PER_CLICK = "cpc"
    PER_MILLE = "cpm"
    FLAT = "flat"
    PERCENTAGE = "percentage"


class Outcome(str, Enum):
    IGNORE = "ignore"
    FOLLOW_LINK = "followLink"
    FOLLOW_AND_BUY = "followAndBuy"
    FOLLOW_AND_SAVE = "followAndSave"


@dataclass(frozen=True)
class Demographic:
    id: str
    age: str
    gender: str
    interests: Tuple[str, ...] = ()
    category: str = ""
    description: str = ""
    estimated_size: Optional[int] = None

    def __post_init__(self) -> None:
        if self.estimated_size is not None and self.estimated_size < MARKET_SIZE_FLOOR:
            raise ValueError(
                f"estimated_size for demographic {self.id!r} must be at least {MARKET_SIZE_FLOOR}, "
                f"got {self.estimated_size}"
            )

    @staticmethod
    def from_dict(d: Mapping) -> "Demographic":
        size = d.get("estimated_size", d.get("estimatedSize"))
        return Demographic(
            id=str(d["id"]),
            age=str(d["age"]),
            gender=str(d["gender"]),
            interests=tuple(d.get("interests") or ()),
            category=str(d.get("category", d.get("mosaicCategory", "")) or ""),
            description=str(d.get("description", "") or ""),
            estimated_size=int(size) if size is not None else None,
        )

    def with_size(self, size: int) -> "Demographic":
        return replace(self, estimated_size=int(size))


@dataclass(frozen=True)
class Channel:
    id: str
    name: str
    cost_model: CostModel
    base_cost: float
    max_reach: float
    targeting_precision: float
    conversion_boost: float
    engagement_boost: float
    demographics: Tuple[str, ...]
    scaling_efficiency: float
    minimum_spend: float = 100.0
    description: str = ""

    @staticmethod
    def from_dict(d: Mapping) -> "Channel":
        return Channel(
            id=str(d["id"]),
            name=str(d.get("name", d["id"])),
            cost_model=CostModel(d["cost_model"]),
            base_cost=float(d["base_cost"]),
            max_reach=float(d["max_reach"]),
            targeting_precision=float(d.get("targeting_precision", 0.0)),
            conversion_boost=float(d.get("conversion_boost", 1.0)),
            engagement_boost=float(d.get("engagement_boost", 1.0)),
            demographics=tuple(d.get("demographics") or (WILDCARD,)),
            scaling_efficiency=float(d["scaling_efficiency"]),
            minimum_spend=float(d.get("minimum_spend") or 100.0),
            description=str(d.get("description", "")),
        )

    def is_effective_for(self, demographic: Demographic) -> bool:
        return WILDCARD in self.demographics or demographic.age in self.demographics


@dataclass(frozen=True)
class BudgetAllocation:
    channel_id: str
    spend: float
    target_demographics: Tuple[str, ...] = (WILDCARD,)

    def __post_init__(self) -> None:
        if self.spend < 0:
            raise ValueError(f"Allocation spend must be non-negative, got {self.spend}")

    @staticmethod
    def from_dict(d: Mapping) -> "BudgetAllocation":
        return BudgetAllocation(
            channel_id=str(d["channel_id"]),
            spend=float(d.get("spend", 0.0)),
            target_demographics=tuple(d.get("target_demographics") or (WILDCARD,)),
        )

    def targets(self, demographic: Demographic) -> bool:
        return WILDCARD in self.target_demographics or demographic.id in self.target_demographics


@dataclass(frozen=True)
class Strategy:
    allocations: Tuple[BudgetAllocation, ...] = ()
    total_budget: float = 0.0
    duration: int = 30

    @staticmethod
    def from_dict(d: Mapping) -> "Strategy":
        allocations = tuple(BudgetAllocation.from_dict(a) for a in d.get("allocations") or ())
        budget = d.get("total_budget", d.get("budget"))
        if budget is None:
            budget = sum(a.spend for a in allocations)
        return Strategy(allocations=allocations, total_budget=float(budget), duration=int(d.get("duration", 30)))

    def allocations_for(self, demographic: Demographic) -> Tuple[BudgetAllocation, ...]:
        return tuple(a for a in self.allocations if a.targets(demographic))

    def targeted_ids(self, demographics: Iterable[Demographic] = ()) -> frozenset:
        """Demographic ids the strategy spends on; the wildcard expands to ``demographics``."""
        ids = set()
        wildcard = False
        for a in self.allocations:
            for t in a.target_demographics:
                if t == WILDCARD:
                    wildcard = True
                else:
                    ids.add(t)
        if wildcard:
            ids.update(d.id for d in demographics)
        return frozenset(ids)


@dataclass(frozen=True)
class ProductVariant:
    id: str
    description: str
    tagline: str
    sales_price: float
    unit_cost: float

    @staticmethod
    def from_dict(d: Mapping) -> "ProductVariant":
        return ProductVariant(
            id=str(d["id"]),
            description=str(d["description"]),
            tagline=str(d["tagline"]),
            sales_price=float(d["sales_price"]),
            unit_cost=float(d["unit_cost"]),
        )


@dataclass(frozen=True)
class OracleResponse:
    choice: Outcome
    text: str = ""


@dataclass(frozen=True)
class OutcomeTally:
    """Final outcome counts for one (demographic, variant) pair.

    Built once from the folded sub-batch counts; construction fails with
    ``TallyInvariantError`` unless the four counters add up to ``trials``.
    """

    demographic_id: str
    variant_id: str
    trials: int
    ignore: int = 0
    follow_link: int = 0
    follow_and_buy: int = 0
    follow_and_save: int = 0

    def __post_init__(self) -> None:
        counts = (self.ignore, self.follow_link, self.follow_and_buy, self.follow_and_save)
        if any(c < 0 for c in counts):
            raise TallyInvariantError(f"Negative outcome count in {counts}")
        if sum(counts) != self.trials:
            raise TallyInvariantError(
                f"Outcome counts {counts} sum to {sum(counts)}, expected {self.trials} "
                f"for demographic={self.demographic_id!r} variant={self.variant_id!r}"
            )

    @staticmethod
    def from_counts(demographic_id: str, variant_id: str, trials: int, counts: Mapping) -> "OutcomeTally":
        c: Dict[Outcome, int] = {}
        for label, n in counts.items():
            try:
                outcome = Outcome(label)
            except ValueError as exc:
                raise TallyInvariantError(f"Unknown outcome label: {label!r}") from exc
            c[outcome] = c.get(outcome, 0) + int(n)
        return OutcomeTally(
            demographic_id=demographic_id,
            variant_id=variant_id,
            trials=int(trials),
            ignore=c.get(Outcome.IGNORE, 0),
            follow_link=c.get(Outcome.FOLLOW_LINK, 0),
            follow_and_buy=c.get(Outcome.FOLLOW_AND_BUY, 0),
            follow_and_save=c.get(Outcome.FOLLOW_AND_SAVE, 0),
        )

    @property
    def engaged(self) -> int:
        return self.follow_link + self.follow_and_buy + self.follow_and_save

    @property
    def conversion_rate(self) -> float:
        return self.follow_and_buy / self.trials if self.trials > 0 else 0.0

    @property
    def engagement_rate(self) -> float:
        return self.engaged / self.trials if self.trials > 0 else 0.0

    def as_dict(self) -> dict:
        return {
            "demographic_id": self.demographic_id,
            "variant_id": self.variant_id,
            "trials": self.trials,
            Outcome.IGNORE.value: self.ignore,
            Outcome.FOLLOW_LINK.value: self.follow_link,
            Outcome.FOLLOW_AND_BUY.value: self.follow_and_buy,
            Outcome.FOLLOW_AND_SAVE.value: self.follow_and_save,
        }


@dataclass(frozen=True)
class Economics:
    demographic_id: str
    variant_id: str
    market_size: int
    penetration: float
    people_reached: int
    purchases: int
    revenue: float
    marketing_cost: float
    gross_profit: float
    net_profit: float
    cost_per_acquisition: float
    return_on_ad_spend: float
    conversion_boost: float = 1.0
    engagement_boost: float = 1.0


@dataclass(frozen=True)
class ChannelModifiers:
    conversion_boost: float = 1.0
    engagement_boost: float = 1.0


@dataclass(frozen=True)
class ConversionCounts:
    conversions: int
    trials: int

    @property
    def rate(self) -> float:
        return self.conversions / self.trials if self.trials > 0 else 0.0


@dataclass(frozen=True)
class CampaignRun:
    variant_id: str
    tallies: Tuple[OutcomeTally, ...]
    economics: Tuple[Economics, ...]
    strategy: Strategy = field(default_factory=Strategy)

    @property
    def conversions(self) -> ConversionCounts:
        return ConversionCounts(sum(t.follow_and_buy for t in self.tallies), self.total_trials)

    @property
    def total_trials(self) -> int:
        return sum(t.trials for t in self.tallies)

    @property
    def conversion_rate(self) -> float:
        n = self.total_trials
        return sum(t.follow_and_buy for t in self.tallies) / n if n > 0 else 0.0

    @property
    def engagement_rate(self) -> float:
        n = self.total_trials
        return sum(t.engaged for t in self.tallies) / n if n > 0 else 0.0

    @property
    def total_revenue(self) -> float:
        return sum(e.revenue for e in self.economics)

    @property
    def total_marketing_cost(self) -> float:
        return sum(e.marketing_cost for e in self.economics)

    @property
    def total_profit(self) -> float:
        return sum(e.net_profit for e in self.economics)

    @property
    def roi(self) -> float:
        cost = self.total_marketing_cost
        return (self.total_revenue - cost) / cost if cost > 0 else 0.0
