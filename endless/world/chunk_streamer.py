from __future__ import annotations

import logging
from functools import partial
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from endless.config import VIEWER_MOVE_THRESHOLD
from endless.world.chunk import (
    Bounds,
    ChunkCoord,
    ChunkState,
    LODInfo,
    LODMesh,
    TerrainChunk,
    validate_lods,
)
from endless.world.dispatcher import WorkDispatcher
from endless.world.height import HeightField, HeightFieldBuilder
from endless.world.mesh_builder import MeshGeometry, build_terrain_mesh
from endless.world.settings import TerrainSettings

log = logging.getLogger(__name__)


class ChunkRenderer(Protocol):
    """What the streamer needs from the host scene. Called on the control thread only."""

    def create_chunk(self, coord: ChunkCoord, position: Tuple[float, float], scale: float) -> None: ...

    def set_mesh(self, coord: ChunkCoord, mesh: MeshGeometry) -> None: ...

    def set_collision_mesh(self, coord: ChunkCoord, mesh: MeshGeometry) -> None: ...

    def set_visible(self, coord: ChunkCoord, visible: bool) -> None: ...


class NullRenderer:
    def create_chunk(self, coord: ChunkCoord, position: Tuple[float, float], scale: float) -> None:
        pass

    def set_mesh(self, coord: ChunkCoord, mesh: MeshGeometry) -> None:
        pass

    def set_collision_mesh(self, coord: ChunkCoord, mesh: MeshGeometry) -> None:
        pass

    def set_visible(self, coord: ChunkCoord, visible: bool) -> None:
        pass


class ChunkStreamer:
    """Keeps the chunks around the viewer generated, LOD'd and visible.

    All chunk state lives here and is only touched from the control thread:
    `update` (or `on_viewer_moved` + `dispatcher.drain`) must be called from
    the same thread every tick. Height fields and meshes are computed by the
    dispatcher's workers from immutable inputs.

    Chunks are never evicted; one that leaves the window is only hidden.
    """

    def __init__(
        self,
        settings: TerrainSettings,
        lods: Sequence[LODInfo],
        *,
        renderer: Optional[ChunkRenderer] = None,
        dispatcher: Optional[WorkDispatcher] = None,
        move_threshold: float = VIEWER_MOVE_THRESHOLD,
        always_recompute: bool = False,
    ) -> None:
        self.settings = settings
        self.lods = validate_lods(lods, settings.bordered_size)
        self.renderer: ChunkRenderer = renderer if renderer is not None else NullRenderer()
        self.dispatcher = dispatcher if dispatcher is not None else WorkDispatcher()
        self.height_builder = HeightFieldBuilder(settings)
        self.move_threshold = float(move_threshold)
        self.always_recompute = bool(always_recompute)

        self.chunk_world_size = settings.chunk_world_size
        self.max_view_dst = float(self.lods[-1].visible_dst_threshold)
        self.chunks_visible_in_view_dst = int(round(self.max_view_dst / self.chunk_world_size))
        self.collider_index = next((i for i, info in enumerate(self.lods) if info.use_for_collider), -1)

        self.chunks: Dict[ChunkCoord, TerrainChunk] = {}
        self._visible: Dict[ChunkCoord, TerrainChunk] = {}
        self.viewer_position: Tuple[float, float] = (0.0, 0.0)
        self._viewer_position_old: Optional[Tuple[float, float]] = None

        self.height_requests = 0
        self.mesh_requests = 0

    # --- viewer

    def update(self, position: Tuple[float, float]) -> int:
        """One control-loop tick: react to the viewer, then install finished work."""
        self.on_viewer_moved(position)
        return self.dispatcher.drain()

    def on_viewer_moved(self, position: Tuple[float, float]) -> bool:
        """Record a world-space ground position; recompute the window if it moved far enough."""
        scale = float(self.settings.uniform_scale)
        pos = (float(position[0]) / scale, float(position[1]) / scale)
        self.viewer_position = pos

        old = self._viewer_position_old
        if old is not None and not self.always_recompute:
            dx = pos[0] - old[0]
            dy = pos[1] - old[1]
            if dx * dx + dy * dy <= self.move_threshold * self.move_threshold:
                return False
        self._viewer_position_old = pos
        self.recompute_visible()
        return True

    def recompute_visible(self) -> None:
        previous = self._visible
        self._visible = {}

        cx = int(round(self.viewer_position[0] / self.chunk_world_size))
        cy = int(round(self.viewer_position[1] / self.chunk_world_size))
        r = self.chunks_visible_in_view_dst

        created = 0
        for y_off in range(-r, r + 1):
            for x_off in range(-r, r + 1):
                coord = ChunkCoord(cx + x_off, cy + y_off)
                chunk = self.chunks.get(coord)
                if chunk is not None:
                    self._update_chunk(chunk)
                else:
                    self._create_chunk(coord)
                    created += 1

        for coord, chunk in previous.items():
            if coord not in self._visible:
                self._set_visible(chunk, False)

        log.debug(
            "visible set recomputed around %s: %d visible, %d new, %d cached",
            (cx, cy), len(self._visible), created, len(self.chunks),
        )

    # --- queries

    @property
    def visible_chunks(self) -> List[TerrainChunk]:
        return list(self._visible.values())

    def chunk(self, coord: Tuple[int, int]) -> Optional[TerrainChunk]:
        return self.chunks.get(ChunkCoord(*coord))

    def state_of(self, coord: Tuple[int, int]) -> ChunkState:
        chunk = self.chunk(coord)
        return chunk.state if chunk is not None else ChunkState.UNREQUESTED

    def chunk_coord_at(self, x: float, z: float) -> ChunkCoord:
        scale = float(self.settings.uniform_scale)
        return ChunkCoord(
            int(round(x / scale / self.chunk_world_size)),
            int(round(z / scale / self.chunk_world_size)),
        )

    def select_lod_index(self, distance: float) -> int:
        lod_index = 0
        for i in range(len(self.lods) - 1):
            if distance > self.lods[i].visible_dst_threshold:
                lod_index = i + 1
            else:
                break
        return lod_index

    def height_at(self, x: float, z: float) -> Optional[float]:
        """World-space terrain height from installed height fields, or None if not generated yet."""
        chunk = self.chunks.get(self.chunk_coord_at(x, z))
        if chunk is None or chunk.height_field is None:
            return None
        s = self.settings
        scale = float(s.uniform_scale)
        half = (s.interior_size - 1) / 2.0
        # local mesh coords -> bordered sample coords (col 1 is the left edge, row 1 the +z edge)
        col = x / scale - chunk.position[0] + half + 1.0
        row = half - (z / scale - chunk.position[1]) + 1.0
        values = chunk.height_field.values
        last = values.shape[0] - 1
        col = min(max(col, 0.0), float(last))
        row = min(max(row, 0.0), float(last))
        c0 = min(int(np.floor(col)), last - 1)
        r0 = min(int(np.floor(row)), last - 1)
        fc = col - c0
        fr = row - r0
        corners = s.height_curve(values[r0:r0 + 2, c0:c0 + 2])
        top = corners[0, 0] + (corners[0, 1] - corners[0, 0]) * fc
        bottom = corners[1, 0] + (corners[1, 1] - corners[1, 0]) * fc
        h = top + (bottom - top) * fr
        return float(h * s.height_multiplier * scale)

    def shutdown(self) -> None:
        self.dispatcher.shutdown()

    # --- chunk lifecycle

    def _create_chunk(self, coord: ChunkCoord) -> TerrainChunk:
        size = self.chunk_world_size
        center = (coord.x * size, coord.y * size)
        chunk = TerrainChunk(
            coord=coord,
            bounds=Bounds(center, size),
            lod_meshes=[LODMesh(info.lod) for info in self.lods],
            collider_index=self.collider_index,
        )
        self.chunks[coord] = chunk
        scale = float(self.settings.uniform_scale)
        self.renderer.create_chunk(coord, (center[0] * scale, center[1] * scale), scale)
        log.debug("chunk %s created at %s", tuple(coord), center)
        self._request_height_field(chunk)
        return chunk

    def _request_height_field(self, chunk: TerrainChunk) -> None:
        if chunk.height_requested:
            return
        chunk.height_requested = True
        self.height_requests += 1
        self.dispatcher.submit(
            partial(self.height_builder.build, chunk.position),
            partial(self._on_height_field_received, chunk),
        )

    def _on_height_field_received(self, chunk: TerrainChunk, height_field: HeightField) -> None:
        chunk.height_field = height_field
        self._update_chunk(chunk)

    def _request_mesh(self, chunk: TerrainChunk, lod_index: int) -> None:
        lod_mesh = chunk.lod_meshes[lod_index]
        if lod_mesh.has_requested_mesh:
            return
        lod_mesh.has_requested_mesh = True
        self.mesh_requests += 1
        s = self.settings
        work = partial(
            build_terrain_mesh,
            chunk.height_field,
            s.height_multiplier,
            s.height_curve,
            lod_mesh.lod,
            s.use_flat_shading,
        )
        self.dispatcher.submit(work, partial(self._on_mesh_received, chunk, lod_index))

    def _on_mesh_received(self, chunk: TerrainChunk, lod_index: int, mesh: MeshGeometry) -> None:
        chunk.lod_meshes[lod_index].mesh = mesh
        self._update_chunk(chunk)

    def _update_chunk(self, chunk: TerrainChunk) -> None:
        if chunk.height_field is None:
            return

        distance = chunk.bounds.distance(self.viewer_position)
        visible = distance <= self.max_view_dst

        if visible:
            lod_index = self.select_lod_index(distance)
            if lod_index != chunk.lod_index:
                lod_mesh = chunk.lod_meshes[lod_index]
                if lod_mesh.has_mesh:
                    log.debug("chunk %s lod slot %d -> %d", tuple(chunk.coord), chunk.lod_index, lod_index)
                    chunk.lod_index = lod_index
                    self.renderer.set_mesh(chunk.coord, lod_mesh.mesh)
                elif not lod_mesh.has_requested_mesh:
                    self._request_mesh(chunk, lod_index)

            if lod_index == 0 and chunk.collider_index >= 0:
                collision = chunk.lod_meshes[chunk.collider_index]
                if collision.has_mesh:
                    if not chunk.has_set_collider:
                        chunk.has_set_collider = True
                        self.renderer.set_collision_mesh(chunk.coord, collision.mesh)
                elif not collision.has_requested_mesh:
                    self._request_mesh(chunk, chunk.collider_index)

            self._visible[chunk.coord] = chunk

        self._set_visible(chunk, visible)

    def _set_visible(self, chunk: TerrainChunk, visible: bool) -> None:
        if chunk.visible == visible:
            return
        chunk.visible = visible
        if not visible:
            self._visible.pop(chunk.coord, None)
        self.renderer.set_visible(chunk.coord, visible)
