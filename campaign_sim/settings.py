from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import yaml

from campaign_sim.channels import default_strategy, preset_strategy
from campaign_sim.models import Demographic, ProductVariant, Strategy
from campaign_sim.simulation import DEFAULT_CHUNK_SIZE, DEFAULT_PAUSE_SECONDS, BatchConfig


def load_settings(project_root: Path) -> dict:
    cfg_path = project_root / "config" / "settings.yaml"
    if not cfg_path.exists():
        raise FileNotFoundError(f"Missing config file: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def configure_logging(cfg: dict) -> None:
    level = str(cfg.get("logging", {}).get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@dataclass(frozen=True)
class Paths:
    project_root: Path
    raw_dir: Path
    processed_dir: Path
    marts_dir: Path

    @staticmethod
    def from_config(project_root: Path, cfg: dict) -> "Paths":
        out = cfg.get("output", {})
        raw_dir = project_root / out.get("raw_dir", "data/raw")
        processed_dir = project_root / out.get("processed_dir", "data/processed")
        marts_dir = project_root / out.get("marts_dir", "data/marts")
        return Paths(project_root, raw_dir, processed_dir, marts_dir)

    def ensure(self) -> None:
        self.raw_dir.mkdir(parents=True, exist_ok=True)
        self.processed_dir.mkdir(parents=True, exist_ok=True)
        self.marts_dir.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class SimulationConfig:
    trials_per_demographic: int
    batch: BatchConfig
    seed: Optional[int] = None

    @staticmethod
    def from_config(cfg: dict) -> "SimulationConfig":
        sim = cfg.get("simulation", {})
        trials = int(sim.get("trials_per_demographic", 100))
        if trials <= 0:
            raise ValueError(f"simulation.trials_per_demographic must be positive, got {trials}")
        timeout = sim.get("chunk_timeout_seconds")
        batch = BatchConfig(
            chunk_size=int(sim.get("chunk_size", DEFAULT_CHUNK_SIZE)),
            max_in_flight=int(sim.get("max_in_flight", 1)),
            pause_seconds=float(sim.get("pause_seconds", DEFAULT_PAUSE_SECONDS)),
            chunk_timeout=float(timeout) if timeout is not None else None,
        )
        seed = cfg.get("project", {}).get("random_seed")
        return SimulationConfig(trials, batch, int(seed) if seed is not None else None)


def demographics_from_config(cfg: dict) -> List[Demographic]:
    return [Demographic.from_dict(d) for d in cfg.get("demographics", [])]


def variants_from_config(cfg: dict) -> List[ProductVariant]:
    return [ProductVariant.from_dict(v) for v in cfg.get("variants", [])]


def strategy_from_config(cfg: dict) -> Strategy:
    s = cfg.get("strategy") or {}
    if "preset" in s:
        return preset_strategy(str(s["preset"]), duration=int(s.get("duration", 30)))
    if s.get("allocations"):
        return Strategy.from_dict(s)
    return default_strategy()
