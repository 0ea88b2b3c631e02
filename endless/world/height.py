from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from endless.world.falloff import generate_falloff_map
from endless.world.noise import generate_noise_map
from endless.world.settings import TerrainSettings


@dataclass(frozen=True)
class HeightField:
    """Bordered height samples for one chunk, indexed [y, x].

    The outermost ring exists only so meshes can compute edge normals; it is
    never rendered. The array is read-only and safe to share across threads.
    """

    values: np.ndarray
    center: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self) -> None:
        v = np.array(self.values, dtype=np.float64)
        if v.ndim != 2 or v.shape[0] != v.shape[1]:
            raise ValueError(f"height field must be square, got shape {v.shape}")
        v.setflags(write=False)
        object.__setattr__(self, "values", v)

    @property
    def size(self) -> int:
        return int(self.values.shape[0])

    @property
    def interior_size(self) -> int:
        return self.size - 2

    def interior(self) -> np.ndarray:
        return self.values[1:-1, 1:-1]


@dataclass
class HeightFieldBuilder:
    settings: TerrainSettings

    def build(self, center: Tuple[float, float]) -> HeightField:
        size = self.settings.bordered_size
        h = generate_noise_map(size, size, self.settings.noise, center)
        if self.settings.use_falloff:
            h = np.clip(h - generate_falloff_map(size), 0.0, 1.0)
        return HeightField(h, (float(center[0]), float(center[1])))
