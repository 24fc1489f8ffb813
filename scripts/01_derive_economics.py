from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd


def _project_root_from_this_file(this_file: Path) -> Path:
    return this_file.resolve().parents[1]


PROJECT_ROOT = _project_root_from_this_file(Path(__file__))
sys.path.insert(0, str(PROJECT_ROOT))

from campaign_sim.formatting import fmt_market_size  # noqa: E402
from campaign_sim.models import Demographic  # noqa: E402
from campaign_sim.reach import campaign_cost  # noqa: E402
from campaign_sim.settings import (  # noqa: E402
    Paths,
    configure_logging,
    demographics_from_config,
    load_settings,
    strategy_from_config,
    variants_from_config,
)
from campaign_sim.simulation import derive_economics, economics_to_frame, tallies_from_frame  # noqa: E402


def _read_required_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Missing required dataset: {path}")
    return pd.read_csv(path)


def _sized_demographics(cfg: dict, dim: pd.DataFrame) -> list:
    # reuse the sizes attached when the batch ran, never re-estimate
    sizes = dict(zip(dim["demographic_id"].astype(str), dim["estimated_size"].astype(int)))
    out = []
    for d in demographics_from_config(cfg):
        out.append(d.with_size(sizes[d.id]) if d.id in sizes else d)
    return out


def main() -> None:
    cfg = load_settings(PROJECT_ROOT)
    configure_logging(cfg)
    paths = Paths.from_config(PROJECT_ROOT, cfg)
    paths.ensure()

    tallies = tallies_from_frame(_read_required_csv(paths.raw_dir / "fact_tallies.csv"))
    demographics = _sized_demographics(cfg, _read_required_csv(paths.raw_dir / "dim_demographics.csv"))
    by_id: dict[str, Demographic] = {d.id: d for d in demographics}
    variants = {v.id: v for v in variants_from_config(cfg)}
    strategy = strategy_from_config(cfg)

    economics = []
    for t in tallies:
        if t.demographic_id not in by_id or t.variant_id not in variants:
            raise KeyError(f"Tally references unknown demographic/variant: {t.demographic_id}/{t.variant_id}")
        v = variants[t.variant_id]
        economics.append(derive_economics(t, by_id[t.demographic_id], v.sales_price, v.unit_cost, strategy, demographics))

    out = economics_to_frame(economics)
    out["market_size_label"] = out["market_size"].map(fmt_market_size)
    out["strategy_cost"] = campaign_cost(strategy)

    out_path = paths.processed_dir / "mart_demographic_economics.csv"
    out.to_csv(out_path, index=False)

    print("✅ Derived economics:")
    print(f"- {out_path}")


if __name__ == "__main__":
    main()
