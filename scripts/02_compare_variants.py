from __future__ import annotations

import sys
from itertools import combinations
from pathlib import Path

import pandas as pd


def _project_root_from_this_file(this_file: Path) -> Path:
    return this_file.resolve().parents[1]


PROJECT_ROOT = _project_root_from_this_file(Path(__file__))
sys.path.insert(0, str(PROJECT_ROOT))

from campaign_sim.formatting import decision_label, fmt_money, fmt_p_value, fmt_pct  # noqa: E402
from campaign_sim.settings import Paths, configure_logging, load_settings  # noqa: E402
from campaign_sim.significance import compare  # noqa: E402
from campaign_sim.simulation import tallies_from_frame, variant_totals  # noqa: E402


def _read_required_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Missing required dataset: {path}")
    return pd.read_csv(path)


def _kpi_block(tallies: pd.DataFrame, econ: pd.DataFrame) -> pd.Series:
    n = int(tallies["trials"].sum())
    return pd.Series({
        "trials": n,
        "conversions": int(tallies["followAndBuy"].sum()),
        "CR": float(tallies["followAndBuy"].sum() / n) if n > 0 else 0.0,
        "ER": float(1 - tallies["ignore"].sum() / n) if n > 0 else 0.0,
        "revenue": float(econ["revenue"].sum()),
        "net_profit": float(econ["net_profit"].sum()),
        "marketing_cost": float(econ["marketing_cost"].sum()),
    })


def variant_kpis(tally_df: pd.DataFrame, econ_df: pd.DataFrame, variant_ids: list) -> pd.DataFrame:
    kpis = pd.DataFrame([
        _kpi_block(tally_df[tally_df["variant_id"].astype(str) == v], econ_df[econ_df["variant_id"].astype(str) == v])
        .rename(v)
        for v in variant_ids
    ])
    kpis.index.name = "variant_id"
    kpis["CR_label"] = kpis["CR"].map(fmt_pct)
    kpis["ER_label"] = kpis["ER"].map(fmt_pct)
    kpis["revenue_label"] = kpis["revenue"].map(fmt_money)
    kpis["net_profit_label"] = kpis["net_profit"].map(fmt_money)
    return kpis


def main() -> None:
    cfg = load_settings(PROJECT_ROOT)
    configure_logging(cfg)
    paths = Paths.from_config(PROJECT_ROOT, cfg)
    paths.ensure()

    tally_df = _read_required_csv(paths.raw_dir / "fact_tallies.csv")
    econ_df = _read_required_csv(paths.processed_dir / "mart_demographic_economics.csv")
    tallies = tallies_from_frame(tally_df)

    variant_ids = sorted(tally_df["variant_id"].astype(str).unique().tolist())
    kpis = variant_kpis(tally_df, econ_df, variant_ids)

    rows = []
    for a, b in combinations(variant_ids, 2):
        r = compare(variant_totals(tallies, a), variant_totals(tallies, b))
        rows.append({
            "variant_a": a,
            "variant_b": b,
            "CR_a": r.rate_a,
            "CR_b": r.rate_b,
            "CR_label": f"{fmt_pct(r.rate_a)} vs {fmt_pct(r.rate_b)}",
            "z_score": r.z_score,
            "p_value": r.p_value,
            "p_value_label": fmt_p_value(r.p_value),
            "ci_lower": r.ci_lower,
            "ci_upper": r.ci_upper,
            "tier": r.tier.value,
            "winning_side": r.winning_side,
            "relative_improvement_pct": r.relative_improvement,
            "insufficient_sample_flag": int(not r.has_minimum_sample),
            "decision": decision_label(r),
        })

    kpi_path = paths.marts_dir / "mart_kpis_variant.csv"
    sig_path = paths.marts_dir / "mart_variant_significance.csv"
    kpis.reset_index().to_csv(kpi_path, index=False)
    pd.DataFrame(rows).to_csv(sig_path, index=False)

    print("✅ Variant comparison marts written:")
    print(f"- {kpi_path}")
    print(f"- {sig_path}")


if __name__ == "__main__":
    main()
