"""
Simulation aggregation and campaign economics.

``run_batch`` sends trials to a response oracle in fixed-size sub-batches and
folds the per-chunk counts into one immutable ``OutcomeTally``. A sub-batch
that fails or times out is recorded entirely as "ignore", so the tally always
accounts for exactly the requested number of trials.

``derive_economics`` combines a tally with market sizing and channel reach to
estimate reach, purchases, revenue and profit for one demographic.
"""
from __future__ import annotations

import logging
import math
import queue
import threading
import time
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from campaign_sim.errors import OracleError, RunCancelled
from campaign_sim.market_sizing import attach_sizes, market_size
from campaign_sim.models import (
    CampaignRun,
    ChannelModifiers,
    ConversionCounts,
    Demographic,
    Economics,
    Outcome,
    OutcomeTally,
    ProductVariant,
    Strategy,
)
from campaign_sim.oracle import ResponseOracle
from campaign_sim.reach import aggregate_reach, blend
from campaign_sim.significance import SignificanceResult, compare

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10
DEFAULT_PAUSE_SECONDS = 0.5

# Empirically tuned scale-down applied to the channel model's aggregate reach
# before it is used as real-world penetration. Not derived from theory; the raw
# channel curves alone produce implausibly large audiences.
REACH_DAMPENING = 0.03

# Penetration floors. ORGANIC_PENETRATION applies when there is no strategy at
# all; otherwise the floor is set by the strategy's total budget.
ORGANIC_PENETRATION = 0.0002
MINIMAL_CAMPAIGN_PENETRATION = 0.0003
BUDGET_PENETRATION_TIERS = (
    (20000, 0.0045),
    (10000, 0.0025),
    (5000, 0.0015),
    (1000, 0.0008),
)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class BatchConfig:
    """Pacing for ``run_batch``.

    ``chunk_timeout`` bounds each sub-batch: all sub-batches of a wave start
    together and any still running ``chunk_timeout`` seconds later is
    recorded as "ignore" and abandoned.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_in_flight: int = 1
    pause_seconds: float = DEFAULT_PAUSE_SECONDS
    chunk_timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.max_in_flight <= 0:
            raise ValueError(f"max_in_flight must be positive, got {self.max_in_flight}")
        if self.pause_seconds < 0:
            raise ValueError(f"pause_seconds must be non-negative, got {self.pause_seconds}")
        if self.chunk_timeout is not None and self.chunk_timeout <= 0:
            raise ValueError(f"chunk_timeout must be positive, got {self.chunk_timeout}")


def chunk_sizes(trial_count: int, chunk_size: int) -> List[int]:
    full, rest = divmod(trial_count, chunk_size)
    return [chunk_size] * full + ([rest] if rest else [])


def _run_chunk(oracle: ResponseOracle, demographic: Demographic, variant: ProductVariant, size: int) -> Counter:
    responses = oracle.respond(demographic, variant, size)
    if len(responses) != size:
        raise OracleError(f"Oracle returned {len(responses)} responses for a sub-batch of {size}")
    try:
        return Counter(Outcome(r.choice).value for r in responses)
    except ValueError as exc:
        raise OracleError(f"Oracle returned an unknown outcome: {exc}") from exc


def _start_chunk(
    oracle: ResponseOracle,
    demographic: Demographic,
    variant: ProductVariant,
    index: int,
    size: int,
    results: queue.Queue,
) -> None:
    def _target() -> None:
        try:
            results.put((index, _run_chunk(oracle, demographic, variant, size), None))
        except Exception as exc:
            results.put((index, None, exc))

    # daemon: a hung oracle call must not keep the interpreter alive
    threading.Thread(target=_target, name=f"oracle-{demographic.id}-{index}", daemon=True).start()


def _fallback(size: int) -> Counter:
    return Counter({Outcome.IGNORE.value: size})


def fold_counts(demographic_id: str, variant_id: str, trials: int, chunks: Iterable[Mapping[str, int]]) -> OutcomeTally:
    total: Counter = Counter()
    for c in chunks:
        total.update(c)
    return OutcomeTally.from_counts(demographic_id, variant_id, trials, total)


def run_batch(
    demographic: Demographic,
    variant: ProductVariant,
    trial_count: int,
    oracle: ResponseOracle,
    config: BatchConfig = BatchConfig(),
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> OutcomeTally:
    """Run ``trial_count`` oracle trials for one (demographic, variant) pair.

    Up to ``config.max_in_flight`` sub-batches run concurrently; each wave is
    followed by ``config.pause_seconds`` of pacing. ``on_progress`` receives the
    cumulative number of completed trials and the total as each sub-batch
    finishes. Setting ``cancel_event`` aborts the run with ``RunCancelled``
    and discards everything tallied so far.
    """
    if trial_count <= 0:
        raise ValueError(f"trial_count must be positive, got {trial_count}")

    sizes = chunk_sizes(trial_count, config.chunk_size)
    chunks: List[Counter] = []
    completed = 0

    def _record(counts: Counter, size: int) -> None:
        nonlocal completed
        chunks.append(counts)
        completed += size
        if on_progress is not None:
            on_progress(completed, trial_count)

    for start in range(0, len(sizes), config.max_in_flight):
        if cancel_event is not None and cancel_event.is_set():
            raise RunCancelled(
                f"Run for demographic={demographic.id!r} variant={variant.id!r} "
                f"cancelled after {completed}/{trial_count} trials"
            )
        pending: Dict[int, int] = dict(enumerate(sizes[start:start + config.max_in_flight], start))
        results: queue.Queue = queue.Queue()
        for index, size in pending.items():
            _start_chunk(oracle, demographic, variant, index, size, results)

        deadline = None if config.chunk_timeout is None else time.monotonic() + config.chunk_timeout
        while pending:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                index, counts, exc = results.get(timeout=remaining)
            except queue.Empty:
                break
            size = pending.pop(index)
            if exc is not None:
                logger.warning(
                    "Sub-batch of %d trials failed for demographic=%s variant=%s; recording as ignore: %s",
                    size, demographic.id, variant.id, exc,
                )
                counts = _fallback(size)
            _record(counts, size)

        for size in pending.values():
            logger.warning(
                "Sub-batch of %d trials timed out after %.1fs for demographic=%s variant=%s; recording as ignore",
                size, config.chunk_timeout, demographic.id, variant.id,
            )
            _record(_fallback(size), size)

        if start + config.max_in_flight < len(sizes) and config.pause_seconds > 0:
            sleep(config.pause_seconds)

    return fold_counts(demographic.id, variant.id, trial_count, chunks)


def minimum_penetration(strategy: Optional[Strategy]) -> float:
    if strategy is None:
        return ORGANIC_PENETRATION
    for threshold, rate in BUDGET_PENETRATION_TIERS:
        if strategy.total_budget >= threshold:
            return rate
    return MINIMAL_CAMPAIGN_PENETRATION


def realized_penetration(strategy: Optional[Strategy], demographic: Demographic) -> float:
    floor = minimum_penetration(strategy)
    if strategy is None:
        return floor
    return max(floor, aggregate_reach(strategy, demographic) * REACH_DAMPENING)


def allocated_marketing_cost(
    strategy: Optional[Strategy],
    demographic: Demographic,
    demographics: Sequence[Demographic] = (),
) -> float:
    """Equal share of the strategy budget for each targeted demographic."""
    if strategy is None:
        return 0.0
    targeted = strategy.targeted_ids(demographics or (demographic,))
    if demographic.id not in targeted:
        return 0.0
    return max(0.0, strategy.total_budget / len(targeted))


def derive_economics(
    tally: OutcomeTally,
    demographic: Demographic,
    sales_price: float,
    unit_cost: float,
    strategy: Optional[Strategy] = None,
    demographics: Sequence[Demographic] = (),
) -> Economics:
    if tally.demographic_id != demographic.id:
        raise ValueError(f"Tally for {tally.demographic_id!r} does not belong to demographic {demographic.id!r}")

    size = market_size(demographic)
    modifiers = blend(strategy, demographic) if strategy is not None else ChannelModifiers()
    penetration = realized_penetration(strategy, demographic)

    reached = math.floor(size * penetration)
    purchases = math.floor(reached * (tally.conversion_rate * modifiers.conversion_boost))
    revenue = purchases * sales_price
    gross_profit = purchases * (sales_price - unit_cost)
    marketing_cost = allocated_marketing_cost(strategy, demographic, demographics)
    net_profit = gross_profit - marketing_cost

    logger.debug(
        "Demographic %s: market %d, penetration %.3f%%, reached %d, conversion %.2f%%, purchases %d, revenue %.2f",
        demographic.id, size, penetration * 100, reached,
        tally.conversion_rate * modifiers.conversion_boost * 100, purchases, revenue,
    )

    return Economics(
        demographic_id=demographic.id,
        variant_id=tally.variant_id,
        market_size=size,
        penetration=penetration,
        people_reached=reached,
        purchases=purchases,
        revenue=max(0.0, revenue),
        marketing_cost=max(0.0, marketing_cost),
        gross_profit=max(0.0, gross_profit),
        net_profit=max(0.0, net_profit),
        cost_per_acquisition=marketing_cost / purchases if purchases > 0 else 0.0,
        return_on_ad_spend=revenue / marketing_cost if marketing_cost > 0 else 0.0,
        conversion_boost=modifiers.conversion_boost,
        engagement_boost=modifiers.engagement_boost,
    )


def run_campaign(
    demographics: Sequence[Demographic],
    variant: ProductVariant,
    oracle: ResponseOracle,
    trials_per_demographic: int,
    strategy: Optional[Strategy] = None,
    config: BatchConfig = BatchConfig(),
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> CampaignRun:
    """Simulate one product variant against every demographic and price the outcome."""
    sized = attach_sizes(demographics)
    grand_total = trials_per_demographic * len(sized)
    tallies = []
    economics = []

    for i, demographic in enumerate(sized):
        offset = i * trials_per_demographic
        progress = None
        if on_progress is not None:
            def progress(done: int, _total: int, _offset: int = offset) -> None:
                on_progress(_offset + done, grand_total)

        tally = run_batch(demographic, variant, trials_per_demographic, oracle, config, progress, cancel_event)
        tallies.append(tally)
        economics.append(derive_economics(tally, demographic, variant.sales_price, variant.unit_cost, strategy, sized))

    logger.info(
        "Variant %s: %d trials, conversion %.2f%%, revenue %.2f",
        variant.id, grand_total, sum(t.follow_and_buy for t in tallies) / grand_total * 100 if grand_total else 0.0,
        sum(e.revenue for e in economics),
    )
    return CampaignRun(
        variant_id=variant.id,
        tallies=tuple(tallies),
        economics=tuple(economics),
        strategy=strategy if strategy is not None else Strategy(),
    )


def variant_totals(tallies: Iterable[OutcomeTally], variant_id: str) -> ConversionCounts:
    selected = [t for t in tallies if t.variant_id == variant_id]
    return ConversionCounts(
        conversions=sum(t.follow_and_buy for t in selected),
        trials=sum(t.trials for t in selected),
    )


def compare_runs(run_a: CampaignRun, run_b: CampaignRun) -> SignificanceResult:
    return compare(run_a.conversions, run_b.conversions)


def tallies_to_frame(tallies: Iterable[OutcomeTally]) -> pd.DataFrame:
    rows = [t.as_dict() for t in tallies]
    df = pd.DataFrame(rows, columns=[
        "demographic_id", "variant_id", "trials",
        Outcome.IGNORE.value, Outcome.FOLLOW_LINK.value, Outcome.FOLLOW_AND_BUY.value, Outcome.FOLLOW_AND_SAVE.value,
    ])
    if not df.empty:
        df["conversion_rate"] = df[Outcome.FOLLOW_AND_BUY.value] / df["trials"]
        df["engagement_rate"] = 1.0 - df[Outcome.IGNORE.value] / df["trials"]
    return df


def tallies_from_frame(df: pd.DataFrame) -> List[OutcomeTally]:
    labels = [o.value for o in Outcome]
    return [
        OutcomeTally.from_counts(
            str(r["demographic_id"]), str(r["variant_id"]), int(r["trials"]),
            {label: int(r[label]) for label in labels},
        )
        for _, r in df.iterrows()
    ]


def economics_to_frame(economics: Iterable[Economics]) -> pd.DataFrame:
    return pd.DataFrame([asdict(e) for e in economics])
