"""
Channel reach and channel-mix modifiers.

Reach per channel follows a saturating exponential in spend, so every extra
unit of budget buys less incremental audience than the one before it.
"""
from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional

from campaign_sim.channels import channels_for_demographic, get_channel
from campaign_sim.market_sizing import market_size
from campaign_sim.models import (
    BudgetAllocation,
    Channel,
    ChannelModifiers,
    CostModel,
    Demographic,
    Strategy,
)

logger = logging.getLogger(__name__)

OFF_TARGET_PENALTY = 0.5
OVERLAP_DISCOUNT = 0.85
MAX_AGGREGATE_REACH = 0.95
OPTIMAL_BUDGET_SHARE = 0.8


def affinity(channel: Channel, demographic: Demographic) -> float:
    return 1.0 if channel.is_effective_for(demographic) else OFF_TARGET_PENALTY


def channel_reach(channel: Channel, spend: float, demographic: Demographic) -> float:
    if spend <= 0:
        return 0.0
    spend_ratio = spend / (channel.minimum_spend or 100.0)
    base = channel.max_reach * (1 - math.exp(-spend_ratio * channel.scaling_efficiency))
    return min(channel.max_reach, base) * affinity(channel, demographic)


def _eligible(strategy: Strategy, demographic: Demographic):
    for allocation in strategy.allocations_for(demographic):
        channel = get_channel(allocation.channel_id)
        if channel is None:
            # retired or misspelled channels are skipped, not fatal
            logger.debug("Skipping unknown channel %r", allocation.channel_id)
            continue
        yield allocation, channel


def aggregate_reach(strategy: Strategy, demographic: Demographic) -> float:
    total = sum(channel_reach(c, a.spend, demographic) for a, c in _eligible(strategy, demographic))
    return min(MAX_AGGREGATE_REACH, total * OVERLAP_DISCOUNT)


def blend(strategy: Strategy, demographic: Demographic) -> ChannelModifiers:
    """Spend-weighted conversion/engagement multipliers of the channel mix."""
    conv = 0.0
    eng = 0.0
    weight = 0.0
    for allocation, channel in _eligible(strategy, demographic):
        conv += channel.conversion_boost * allocation.spend
        eng += channel.engagement_boost * allocation.spend
        weight += allocation.spend
    if weight <= 0:
        return ChannelModifiers()
    return ChannelModifiers(conversion_boost=conv / weight, engagement_boost=eng / weight)


def allocation_cost(allocation: BudgetAllocation) -> float:
    channel = get_channel(allocation.channel_id)
    if channel is None:
        return 0.0
    if channel.cost_model is CostModel.FLAT:
        return channel.base_cost
    return allocation.spend


def campaign_cost(strategy: Strategy) -> float:
    return sum(allocation_cost(a) for a in strategy.allocations)


def _efficiency(channel: Channel) -> float:
    return channel.conversion_boost * channel.scaling_efficiency / channel.base_cost


def best_channel(demographic: Demographic) -> Optional[Channel]:
    candidates = channels_for_demographic(demographic)
    if not candidates:
        return None
    return max(candidates, key=_efficiency)


def optimal_allocation(demographics: Iterable[Demographic], total_budget: float) -> List[BudgetAllocation]:
    """One allocation per demographic on its most cost-efficient suitable channel,
    sized by the demographic's share of the combined market."""
    demographics = list(demographics)
    sizes = {d.id: market_size(d) for d in demographics}
    total_size = sum(sizes.values())
    allocations = []
    for d in demographics:
        channel = best_channel(d)
        if channel is None:
            continue
        share = sizes[d.id] / total_size if total_size > 0 else 0.0
        spend = max(channel.minimum_spend, total_budget * share * OPTIMAL_BUDGET_SHARE)
        allocations.append(BudgetAllocation(channel_id=channel.id, spend=spend, target_demographics=(d.id,)))
    return allocations
