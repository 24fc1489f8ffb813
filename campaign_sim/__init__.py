"""Campaign simulation and analytics engine."""
from campaign_sim.market_sizing import estimate_size
from campaign_sim.models import (
    BudgetAllocation,
    CampaignRun,
    Channel,
    ConversionCounts,
    Demographic,
    Economics,
    Outcome,
    OutcomeTally,
    ProductVariant,
    Strategy,
)
from campaign_sim.reach import aggregate_reach, blend, campaign_cost, channel_reach
from campaign_sim.significance import SignificanceResult, SignificanceTier, compare
from campaign_sim.simulation import BatchConfig, derive_economics, run_batch, run_campaign

__all__ = [
    "BatchConfig",
    "BudgetAllocation",
    "CampaignRun",
    "Channel",
    "ConversionCounts",
    "Demographic",
    "Economics",
    "Outcome",
    "OutcomeTally",
    "ProductVariant",
    "SignificanceResult",
    "SignificanceTier",
    "Strategy",
    "aggregate_reach",
    "blend",
    "campaign_cost",
    "channel_reach",
    "compare",
    "derive_economics",
    "estimate_size",
    "run_batch",
    "run_campaign",
]
