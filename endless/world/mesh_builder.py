from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, NamedTuple

import numpy as np

from endless.world.height import HeightField

UP = np.array([0.0, 1.0, 0.0], dtype=np.float64)


@dataclass(frozen=True)
class MeshGeometry:
    """Renderable terrain mesh. Arrays are read-only.

    vertices (N,3), uvs (N,2), normals (N,3) float32; triangles (T,3) uint32.
    """

    vertices: np.ndarray
    uvs: np.ndarray
    triangles: np.ndarray
    normals: np.ndarray
    flat_shaded: bool = False
    lod: int = 0

    def __post_init__(self) -> None:
        for name in ("vertices", "uvs", "normals", "triangles"):
            a = getattr(self, name)
            a.setflags(write=False)

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def triangle_count(self) -> int:
        return int(self.triangles.shape[0])

    def interleaved(self) -> np.ndarray:
        """float32 rows of pos(3) + norm(3) + uv(2), ready for a vertex buffer."""
        return np.concatenate([self.vertices, self.normals, self.uvs], axis=1).astype(np.float32)


class VertexKind(IntEnum):
    INTERIOR = 0
    BORDER = 1


class VertexRef(NamedTuple):
    kind: VertexKind
    index: int

    def slot(self, interior_count: int) -> int:
        """Position in the combined interior-then-border vertex list."""
        if self.kind is VertexKind.INTERIOR:
            return self.index
        return interior_count + self.index


@dataclass(frozen=True)
class MeshLayout:
    """Vertex kinds and per-kind indices for an (n x n) grid of sampled points.

    The outermost ring is BORDER; everything else is INTERIOR. Both kinds are
    numbered row-major with their own running index.
    """

    kinds: np.ndarray
    indices: np.ndarray
    interior_count: int
    border_count: int

    @classmethod
    def for_samples(cls, n: int) -> "MeshLayout":
        border = np.zeros((n, n), dtype=bool)
        border[0, :] = border[-1, :] = True
        border[:, 0] = border[:, -1] = True
        kinds = np.where(border, int(VertexKind.BORDER), int(VertexKind.INTERIOR)).astype(np.int8)

        indices = np.empty((n, n), dtype=np.int64)
        interior = ~border
        indices[interior] = np.arange(int(interior.sum()))
        indices[border] = np.arange(int(border.sum()))
        return cls(kinds, indices, int(interior.sum()), int(border.sum()))

    def ref(self, x: int, y: int) -> VertexRef:
        return VertexRef(VertexKind(int(self.kinds[y, x])), int(self.indices[y, x]))

    def slots(self) -> np.ndarray:
        """Vectorized VertexRef.slot over the whole grid."""
        is_border = self.kinds == int(VertexKind.BORDER)
        return np.where(is_border, self.interior_count + self.indices, self.indices)


def lod_stride(lod: int) -> int:
    lod = int(lod)
    return 1 if lod == 0 else lod * 2


def check_lod(bordered_size: int, lod: int) -> int:
    """Return the sampling stride for `lod`, or raise if the grid can't be walked with it."""
    if int(lod) < 0:
        raise ValueError(f"lod must be >= 0, got {lod}")
    stride = lod_stride(lod)
    mesh_size = int(bordered_size) - 2 * stride
    if mesh_size < 2 or (int(bordered_size) - 1) % stride != 0:
        raise ValueError(f"lod {lod} (stride {stride}) does not fit a bordered size of {bordered_size}")
    return stride


def vertices_per_line(bordered_size: int, lod: int) -> int:
    stride = check_lod(bordered_size, lod)
    mesh_size = int(bordered_size) - 2 * stride
    return (mesh_size - 1) // stride + 1


def face_normals(pos: np.ndarray, tris: np.ndarray) -> np.ndarray:
    """Unit normals of cross(B-A, C-A); zero-area faces give zero vectors."""
    a = pos[tris[:, 0]]
    b = pos[tris[:, 1]]
    c = pos[tris[:, 2]]
    n = np.cross(b - a, c - a)
    length = np.linalg.norm(n, axis=1, keepdims=True)
    return np.divide(n, length, out=np.zeros_like(n), where=length > 1e-12)


def build_terrain_mesh(
    height_field: HeightField,
    height_multiplier: float,
    height_curve: Callable[[np.ndarray], np.ndarray],
    lod: int,
    use_flat_shading: bool = False,
) -> MeshGeometry:
    """Build an LOD mesh for a bordered height field.

    Border samples take part in triangulation so edge vertices get normals
    from faces just outside the chunk; they never appear in the output. Two
    neighbouring chunks built independently therefore shade continuously.
    """
    bordered = height_field.size
    stride = check_lod(bordered, lod)
    mesh_size = bordered - 2 * stride
    unsimplified = bordered - 2
    top_left_x = (unsimplified - 1) / -2.0
    top_left_z = (unsimplified - 1) / 2.0

    samples = np.arange(0, bordered, stride)
    n = int(samples.size)
    layout = MeshLayout.for_samples(n)

    # --- vertices (grid order, [y, x])
    sub = height_field.values[np.ix_(samples, samples)]
    heights = np.asarray(height_curve(sub), dtype=np.float64) * float(height_multiplier)
    pct = (samples - stride).astype(np.float64) / float(mesh_size)
    px, py = np.meshgrid(pct, pct, indexing="xy")
    pos = np.stack([top_left_x + px * unsimplified, heights, top_left_z - py * unsimplified], axis=-1)
    uv = np.stack([px, py], axis=-1)

    interior = layout.kinds == int(VertexKind.INTERIOR)
    n_int = layout.interior_count
    # combined slot order == interior vertices then border vertices, each row-major
    all_pos = np.concatenate([pos[interior], pos[~interior]], axis=0)
    main_uv = uv[interior]

    # --- triangles: two per cell, (a, d, c) and (d, a, b)
    slots = layout.slots()
    a = slots[:-1, :-1]
    b = slots[:-1, 1:]
    c = slots[1:, :-1]
    d = slots[1:, 1:]
    tris = np.stack(
        [np.stack([a, d, c], axis=-1), np.stack([d, a, b], axis=-1)],
        axis=2,
    ).reshape(-1, 3)
    is_border_tri = np.any(tris >= n_int, axis=1)

    # --- normals: every face (border ones included) feeds its corners
    fn = face_normals(all_pos, tris)
    acc = np.zeros_like(all_pos)
    for k in range(3):
        np.add.at(acc, tris[:, k], fn)
    vn = acc[:n_int]
    length = np.linalg.norm(vn, axis=1, keepdims=True)
    vn = np.where(length > 1e-12, vn / np.maximum(length, 1e-12), UP)

    main_tris = tris[~is_border_tri]
    main_pos = all_pos[:n_int]

    if use_flat_shading:
        corners = main_tris.reshape(-1)
        vertices = main_pos[corners]
        uvs = main_uv[corners]
        normals = np.repeat(fn[~is_border_tri], 3, axis=0)
        triangles = np.arange(corners.size, dtype=np.uint32).reshape(-1, 3)
    else:
        vertices = main_pos
        uvs = main_uv
        normals = vn
        triangles = main_tris.astype(np.uint32)

    return MeshGeometry(
        vertices=vertices.astype(np.float32),
        uvs=uvs.astype(np.float32),
        triangles=triangles,
        normals=normals.astype(np.float32),
        flat_shaded=bool(use_flat_shading),
        lod=int(lod),
    )
