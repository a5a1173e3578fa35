from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SamplingConfig:
    length_scale_km: float
    n: int
    resolution_deg: float
    seed: int | None
    progress_every: int
    chunk_size: int


def build_sampling_config(settings: dict[str, Any]) -> SamplingConfig:
    sampling = settings.get("sampling", {}) or {}
    seed = sampling.get("seed")
    return SamplingConfig(
        length_scale_km=float(sampling.get("length_scale_km", 100)),
        n=int(sampling.get("n", 20000)),
        resolution_deg=float(sampling.get("resolution_deg", 1)),
        seed=int(seed) if seed is not None else None,
        progress_every=int(sampling.get("progress_every", 500)),
        chunk_size=int(sampling.get("chunk_size", 1000)),
    )
