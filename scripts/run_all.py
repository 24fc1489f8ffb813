from __future__ import annotations

from pathlib import Path
import importlib
import sys


def _project_root_from_this_file(this_file: Path) -> Path:
    # scripts/run_all.py -> project root is parent of "scripts"
    return this_file.resolve().parents[1]


def main() -> None:
    project_root = _project_root_from_this_file(Path(__file__))

    # Ensure imports work regardless of where you run the command from
    sys.path.insert(0, str(project_root))

    sim_mod = importlib.import_module("scripts.00_simulate_responses")
    econ_mod = importlib.import_module("scripts.01_derive_economics")
    cmp_mod = importlib.import_module("scripts.02_compare_variants")

    sim_mod.main()
    econ_mod.main()
    cmp_mod.main()

    print("\n✅ Pipeline complete.")
    print("Marts:")
    print("  data/marts/mart_kpis_variant.csv")
    print("  data/marts/mart_variant_significance.csv")


if __name__ == "__main__":
    main()
