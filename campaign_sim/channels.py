from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

import yaml

from campaign_sim.models import Channel, Demographic, Strategy

DATA_DIR = Path(__file__).resolve().parent / "data"


@lru_cache(maxsize=None)
def _catalogue() -> dict:
    path = DATA_DIR / "channels.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Missing channel catalogue: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@lru_cache(maxsize=None)
def all_channels() -> Tuple[Channel, ...]:
    return tuple(Channel.from_dict(c) for c in _catalogue().get("channels", []))


@lru_cache(maxsize=None)
def _channel_index() -> Mapping[str, Channel]:
    return MappingProxyType({c.id: c for c in all_channels()})


def get_channel(channel_id: str) -> Optional[Channel]:
    return _channel_index().get(channel_id)


def channels_for_demographic(demographic: Demographic) -> List[Channel]:
    return [c for c in all_channels() if c.is_effective_for(demographic)]


@lru_cache(maxsize=None)
def preset_names() -> Tuple[str, ...]:
    return tuple(_catalogue().get("presets", {}).keys())


def preset_strategy(name: str, duration: int = 30) -> Strategy:
    presets = _catalogue().get("presets", {})
    if name not in presets:
        raise KeyError(f"Unknown strategy preset: {name!r} (choose from {', '.join(preset_names())})")
    p = presets[name]
    return Strategy.from_dict({"allocations": p["allocations"], "budget": p["budget"], "duration": duration})


def default_strategy() -> Strategy:
    """No paid channels: organic reach only."""
    return Strategy(allocations=(), total_budget=0.0, duration=30)
