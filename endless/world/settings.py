from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

import numpy as np

from endless.config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_FLAT_CHUNK_SIZE,
    DEFAULT_HEIGHT_MULTIPLIER,
    DEFAULT_UNIFORM_SCALE,
)
from endless.world.noise import NoiseParams


@dataclass(frozen=True)
class HeightCurve:
    """Piecewise-linear remap of normalized heights.

    Pure function of its input: no evaluation cursor or cache, so one instance
    can be shared by every worker thread.
    """

    times: Tuple[float, ...] = (0.0, 1.0)
    values: Tuple[float, ...] = (0.0, 1.0)

    def __post_init__(self) -> None:
        if len(self.times) != len(self.values) or not self.times:
            raise ValueError("height curve needs matching, non-empty key lists")
        if any(b < a for a, b in zip(self.times, self.times[1:])):
            raise ValueError("height curve keys must be sorted by time")

    @classmethod
    def from_points(cls, points: Iterable[Tuple[float, float]]) -> "HeightCurve":
        pts = sorted((float(t), float(v)) for t, v in points)
        return cls(tuple(t for t, _ in pts), tuple(v for _, v in pts))

    def __call__(self, h):
        return np.interp(h, self.times, self.values)


# Flat lowlands, then a ramp into mountains
TERRAIN_CURVE = HeightCurve.from_points([(0.0, 0.0), (0.3, 0.02), (0.45, 0.1), (0.7, 0.45), (1.0, 1.0)])


@dataclass(frozen=True)
class TerrainSettings:
    noise: NoiseParams = field(default_factory=NoiseParams)
    height_multiplier: float = DEFAULT_HEIGHT_MULTIPLIER
    height_curve: HeightCurve = field(default_factory=HeightCurve)
    use_flat_shading: bool = False
    use_falloff: bool = False
    uniform_scale: float = DEFAULT_UNIFORM_SCALE
    chunk_size: Optional[int] = None  # interior samples per side; None = pick by shading mode

    def __post_init__(self) -> None:
        if float(self.uniform_scale) <= 0.0:
            raise ValueError(f"uniform_scale must be positive, got {self.uniform_scale}")
        if self.chunk_size is not None and int(self.chunk_size) < 2:
            raise ValueError(f"chunk_size must be >= 2, got {self.chunk_size}")

    @property
    def interior_size(self) -> int:
        if self.chunk_size is not None:
            return int(self.chunk_size)
        return DEFAULT_FLAT_CHUNK_SIZE if self.use_flat_shading else DEFAULT_CHUNK_SIZE

    @property
    def bordered_size(self) -> int:
        return self.interior_size + 2

    @property
    def chunk_world_size(self) -> float:
        # neighbouring chunks share their edge row of samples
        return float(self.interior_size - 1)

    @property
    def min_height(self) -> float:
        return float(self.uniform_scale * self.height_multiplier * self.height_curve(0.0))

    @property
    def max_height(self) -> float:
        return float(self.uniform_scale * self.height_multiplier * self.height_curve(1.0))
