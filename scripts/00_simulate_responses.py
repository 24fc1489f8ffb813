from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd


def _project_root_from_this_file(this_file: Path) -> Path:
    # scripts/00_simulate_responses.py -> project root is parent of "scripts"
    return this_file.resolve().parents[1]


PROJECT_ROOT = _project_root_from_this_file(Path(__file__))
sys.path.insert(0, str(PROJECT_ROOT))

from campaign_sim.market_sizing import attach_sizes  # noqa: E402
from campaign_sim.oracle import SyntheticOracle  # noqa: E402
from campaign_sim.settings import (  # noqa: E402
    Paths,
    SimulationConfig,
    configure_logging,
    demographics_from_config,
    load_settings,
    variants_from_config,
)
from campaign_sim.simulation import run_batch, tallies_to_frame  # noqa: E402


def main() -> None:
    cfg = load_settings(PROJECT_ROOT)
    configure_logging(cfg)
    paths = Paths.from_config(PROJECT_ROOT, cfg)
    paths.ensure()

    sim = SimulationConfig.from_config(cfg)
    demographics = attach_sizes(demographics_from_config(cfg))
    variants = variants_from_config(cfg)
    if not demographics or not variants:
        raise ValueError("settings.yaml must define at least one demographic and one variant")

    oracle_cfg = cfg.get("oracle", {})
    oracle = SyntheticOracle(
        probabilities=oracle_cfg.get("default"),
        variant_probabilities=oracle_cfg.get("variants"),
        seed=sim.seed,
    )

    tallies = [
        run_batch(d, v, sim.trials_per_demographic, oracle, sim.batch)
        for v in variants
        for d in demographics
    ]

    demo_df = pd.DataFrame([{
        "demographic_id": d.id,
        "age": d.age,
        "gender": d.gender,
        "interests": "|".join(d.interests),
        "category": d.category,
        "estimated_size": d.estimated_size,
    } for d in demographics])

    tallies_path = paths.raw_dir / "fact_tallies.csv"
    demo_path = paths.raw_dir / "dim_demographics.csv"
    tallies_to_frame(tallies).to_csv(tallies_path, index=False)
    demo_df.to_csv(demo_path, index=False)

    print("✅ Simulated responses:")
    print(f"- {tallies_path}")
    print(f"- {demo_path}")


if __name__ == "__main__":
    main()
