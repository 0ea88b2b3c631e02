from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from opensimplex import OpenSimplex

from endless.config import MIN_NOISE_SCALE, OCTAVE_OFFSET_RANGE

NORMALIZE_MODES = ("local", "global")
BASES = ("perlin", "simplex")


@dataclass(frozen=True)
class NoiseParams:
    seed: int = 0
    scale: float = 50.0
    octaves: int = 4
    persistence: float = 0.5
    lacunarity: float = 2.0
    offset: Tuple[float, float] = (0.0, 0.0)
    normalize_mode: str = "local"  # "local" | "global"
    basis: str = "perlin"  # "perlin" | "simplex"

    def __post_init__(self) -> None:
        if int(self.octaves) < 0:
            raise ValueError(f"octaves must be >= 0, got {self.octaves}")
        if self.normalize_mode not in NORMALIZE_MODES:
            raise ValueError(f"unknown normalize mode: {self.normalize_mode}")
        if self.basis not in BASES:
            raise ValueError(f"unknown noise basis: {self.basis}")

    @property
    def safe_scale(self) -> float:
        # Can't divide by zero; keep generation total for any scale.
        s = float(self.scale)
        return s if s > 0 else MIN_NOISE_SCALE

    @property
    def safe_lacunarity(self) -> float:
        return max(float(self.lacunarity), 1.0)

    def max_possible_amplitude(self) -> float:
        amp = 1.0
        total = 0.0
        for _ in range(int(self.octaves)):
            total += amp
            amp *= float(self.persistence)
        return total


def _fade(t: np.ndarray) -> np.ndarray:
    # smootherstep
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


_GRAD2 = np.array(
    [
        [1.0, 0.0],
        [-1.0, 0.0],
        [0.0, 1.0],
        [0.0, -1.0],
        [1.0, 1.0],
        [-1.0, 1.0],
        [1.0, -1.0],
        [-1.0, -1.0],
    ],
    dtype=np.float64,
)
_GRAD2 /= np.linalg.norm(_GRAD2, axis=1, keepdims=True)


class PerlinNoise2D:
    """Vectorized 2D gradient (Perlin) noise.

    Lattice gradients come from a seeded permutation table, so the same seed
    always yields the same field. `grid` returns values in [0,1].
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed)
        rng = np.random.default_rng(self.seed)
        p = rng.permutation(256).astype(np.int64)
        self._perm = np.concatenate([p, p])

    def _grad_dot(self, xi: np.ndarray, yi: np.ndarray, dx: np.ndarray, dy: np.ndarray) -> np.ndarray:
        h = self._perm[self._perm[xi & 255] + (yi & 255)]
        g = _GRAD2[h & 7]
        return g[..., 0] * dx + g[..., 1] * dy

    def noise(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Raw noise, roughly in [-1,1]."""
        x0 = np.floor(x)
        y0 = np.floor(y)
        fx = x - x0
        fy = y - y0
        xi = x0.astype(np.int64)
        yi = y0.astype(np.int64)

        n00 = self._grad_dot(xi, yi, fx, fy)
        n10 = self._grad_dot(xi + 1, yi, fx - 1.0, fy)
        n01 = self._grad_dot(xi, yi + 1, fx, fy - 1.0)
        n11 = self._grad_dot(xi + 1, yi + 1, fx - 1.0, fy - 1.0)

        u = _fade(fx)
        v = _fade(fy)
        nx0 = n00 + (n10 - n00) * u
        nx1 = n01 + (n11 - n01) * u
        # 2D gradient noise peaks at sqrt(0.5) with unit gradients
        return (nx0 + (nx1 - nx0) * v) * np.sqrt(2.0)

    def grid(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        gx, gy = np.meshgrid(xs, ys, indexing="xy")
        return np.clip((self.noise(gx, gy) + 1.0) * 0.5, 0.0, 1.0)


class SimplexNoise2D:
    """OpenSimplex basis with the same [0,1] grid contract as PerlinNoise2D."""

    def __init__(self, seed: int) -> None:
        self.seed = int(seed)
        self._simp = OpenSimplex(self.seed)

    def grid(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        # noise2array returns shape (len(ys), len(xs))
        n = self._simp.noise2array(np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64))
        return np.clip((n + 1.0) * 0.5, 0.0, 1.0)


def make_basis(params: NoiseParams):
    if params.basis == "simplex":
        return SimplexNoise2D(params.seed)
    return PerlinNoise2D(params.seed)


def octave_offsets(params: NoiseParams, center: Tuple[float, float] = (0.0, 0.0)) -> np.ndarray:
    """Per-octave sample offsets, shape (octaves, 2).

    The random part depends only on the seed. The y offset is subtracted so that
    grid rows run toward -z, matching the mesh layout.
    """
    rng = np.random.default_rng(int(params.seed))
    n = int(params.octaves)
    rnd = rng.integers(-OCTAVE_OFFSET_RANGE, OCTAVE_OFFSET_RANGE, size=(n, 2)).astype(np.float64)
    ox = float(params.offset[0]) + float(center[0])
    oy = float(params.offset[1]) + float(center[1])
    out = np.empty((n, 2), dtype=np.float64)
    out[:, 0] = rnd[:, 0] + ox
    out[:, 1] = rnd[:, 1] - oy
    return out


def generate_noise_map(
    width: int,
    height: int,
    params: NoiseParams,
    center: Tuple[float, float] = (0.0, 0.0),
) -> np.ndarray:
    """Fractal noise grid of shape (height, width), normalized to [0,1].

    Global mode only clamps the lower bound; values may slightly exceed 1.
    """
    width = int(width)
    height = int(height)
    scale = params.safe_scale
    basis = make_basis(params)
    offsets = octave_offsets(params, center)

    # Recentre on the grid midpoint so scale zooms around the middle
    xs = np.arange(width, dtype=np.float64) - width / 2.0
    ys = np.arange(height, dtype=np.float64) - height / 2.0

    total = np.zeros((height, width), dtype=np.float64)
    amp = 1.0
    freq = 1.0
    for i in range(int(params.octaves)):
        sx = (xs + offsets[i, 0]) / scale * freq
        sy = (ys + offsets[i, 1]) / scale * freq
        n = basis.grid(sx, sy) * 2.0 - 1.0
        total += n * amp
        amp *= float(params.persistence)
        freq *= params.safe_lacunarity

    if params.normalize_mode == "global":
        max_possible = params.max_possible_amplitude()
        if max_possible <= 0.0:
            return np.zeros_like(total)
        return np.maximum((total + 1.0) / (2.0 * max_possible), 0.0)

    lo = float(np.min(total)) if total.size else 0.0
    hi = float(np.max(total)) if total.size else 0.0
    if hi <= lo:
        return np.zeros_like(total)
    return (total - lo) / (hi - lo)
