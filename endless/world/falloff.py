from __future__ import annotations

from functools import lru_cache

import numpy as np

from endless.config import FALLOFF_A, FALLOFF_B


def falloff_curve(v: np.ndarray, a: float = FALLOFF_A, b: float = FALLOFF_B) -> np.ndarray:
    """Steep S-curve: ~0 in the middle, rising to 1 at v == 1."""
    va = np.power(v, a)
    return va / (va + np.power(b - b * v, a))


@lru_cache(maxsize=8)
def generate_falloff_map(size: int) -> np.ndarray:
    """Square falloff mask of shape (size, size) with values in [0,1].

    Depends only on `size`, so results are cached and returned read-only.
    """
    size = int(size)
    if size <= 0:
        raise ValueError(f"falloff size must be positive, got {size}")
    coords = np.linspace(-1.0, 1.0, size) if size > 1 else np.zeros(1)
    gx, gy = np.meshgrid(coords, coords, indexing="xy")
    # distance to the closest edge of the square
    v = np.maximum(np.abs(gx), np.abs(gy))
    out = falloff_curve(v)
    out.setflags(write=False)
    return out
