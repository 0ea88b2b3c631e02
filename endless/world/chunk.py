from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from endless.world.height import HeightField
from endless.world.mesh_builder import MeshGeometry, check_lod


class ChunkCoord(NamedTuple):
    x: int
    y: int


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned square on the ground plane."""

    center: Tuple[float, float]
    size: float

    def sqr_distance(self, point: Tuple[float, float]) -> float:
        """Squared distance from `point` to the nearest edge; 0 inside."""
        half = self.size * 0.5
        dx = max(abs(float(point[0]) - self.center[0]) - half, 0.0)
        dy = max(abs(float(point[1]) - self.center[1]) - half, 0.0)
        return dx * dx + dy * dy

    def distance(self, point: Tuple[float, float]) -> float:
        return float(np.sqrt(self.sqr_distance(point)))


@dataclass(frozen=True)
class LODInfo:
    lod: int
    visible_dst_threshold: float
    use_for_collider: bool = False


def validate_lods(lods: Sequence[LODInfo], bordered_size: int) -> Tuple[LODInfo, ...]:
    """Check an LOD table (finest first). Raises ValueError for malformed tables."""
    lods = tuple(lods)
    if not lods:
        raise ValueError("LOD table is empty")
    for prev, cur in zip(lods, lods[1:]):
        if cur.lod < prev.lod:
            raise ValueError(f"LOD table must be ordered finest first: {prev.lod} then {cur.lod}")
        if cur.visible_dst_threshold < prev.visible_dst_threshold:
            raise ValueError(
                f"LOD thresholds must not decrease: {prev.visible_dst_threshold} then {cur.visible_dst_threshold}"
            )
    if not np.isfinite(lods[-1].visible_dst_threshold) or lods[-1].visible_dst_threshold <= 0:
        raise ValueError("the coarsest LOD threshold (max view distance) must be finite and positive")
    if sum(1 for info in lods if info.use_for_collider) > 1:
        raise ValueError("at most one LOD may be used for collision")
    for info in lods:
        check_lod(bordered_size, info.lod)
    return lods


class ChunkState(Enum):
    UNREQUESTED = "unrequested"
    HEIGHT_PENDING = "height_pending"
    HEIGHT_READY = "height_ready"


class MeshState(Enum):
    UNREQUESTED = "unrequested"
    PENDING = "pending"
    READY = "ready"


@dataclass
class LODMesh:
    lod: int
    mesh: Optional[MeshGeometry] = None
    has_requested_mesh: bool = False

    @property
    def has_mesh(self) -> bool:
        return self.mesh is not None

    @property
    def state(self) -> MeshState:
        if self.mesh is not None:
            return MeshState.READY
        if self.has_requested_mesh:
            return MeshState.PENDING
        return MeshState.UNREQUESTED


@dataclass
class TerrainChunk:
    coord: ChunkCoord
    bounds: Bounds
    lod_meshes: List[LODMesh]
    collider_index: int = -1  # slot in the LOD table used for collision, -1 = none
    height_field: Optional[HeightField] = None
    height_requested: bool = False
    lod_index: int = -1  # slot currently displayed, -1 = none yet
    visible: bool = False
    has_set_collider: bool = False

    @property
    def position(self) -> Tuple[float, float]:
        return self.bounds.center

    @property
    def state(self) -> ChunkState:
        if self.height_field is not None:
            return ChunkState.HEIGHT_READY
        if self.height_requested:
            return ChunkState.HEIGHT_PENDING
        return ChunkState.UNREQUESTED

    def mesh_state(self, lod_index: int) -> MeshState:
        return self.lod_meshes[lod_index].state

    @property
    def current_mesh(self) -> Optional[MeshGeometry]:
        if self.lod_index < 0:
            return None
        return self.lod_meshes[self.lod_index].mesh
