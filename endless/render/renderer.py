from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import moderngl
import numpy as np

from endless.config import FAR, FOV_DEG, NEAR
from endless.render.shaders import shader_sources
from endless.util.math import model_matrix, perspective
from endless.world.chunk import ChunkCoord
from endless.world.mesh_builder import MeshGeometry

log = logging.getLogger(__name__)


@dataclass
class ChunkGPU:
    coord: ChunkCoord
    model: np.ndarray
    visible: bool = False
    vao: Optional[moderngl.VertexArray] = None
    vbo: Optional[moderngl.Buffer] = None
    ibo: Optional[moderngl.Buffer] = None
    collision: Optional[MeshGeometry] = None  # kept CPU-side for physics queries

    def release_buffers(self) -> None:
        for obj in (self.vao, self.vbo, self.ibo):
            if obj is not None:
                obj.release()
        self.vao = self.vbo = self.ibo = None


class Renderer:
    """ModernGL scene for streamed terrain chunks (implements ChunkRenderer)."""

    def __init__(self, ctx: moderngl.Context, width: int, height: int, *, min_height: float, max_height: float) -> None:
        self.ctx = ctx
        self.width = width
        self.height = height

        vert, frag = shader_sources(ctx.version_code)
        self.prog = self.ctx.program(vertex_shader=vert, fragment_shader=frag)
        self.prog["u_min_height"].value = float(min_height)
        self.prog["u_max_height"].value = float(max_height)
        self._proj = perspective(FOV_DEG, width / height, NEAR, FAR)
        self.prog["u_proj"].write(self._proj.tobytes())

        self.ctx.enable(moderngl.DEPTH_TEST)
        self.ctx.disable(moderngl.CULL_FACE)

        self.chunks: Dict[ChunkCoord, ChunkGPU] = {}
        self.uploads = 0

    # --- ChunkRenderer

    def create_chunk(self, coord: ChunkCoord, position: Tuple[float, float], scale: float) -> None:
        self.chunks[coord] = ChunkGPU(coord=coord, model=model_matrix((position[0], 0.0, position[1]), scale))

    def set_mesh(self, coord: ChunkCoord, mesh: MeshGeometry) -> None:
        ch = self.chunks[coord]
        ch.release_buffers()
        ch.vbo = self.ctx.buffer(mesh.interleaved().tobytes())
        ch.ibo = self.ctx.buffer(mesh.triangles.astype(np.uint32).tobytes())
        ch.vao = self.ctx.vertex_array(
            self.prog,
            [
                (ch.vbo, "3f 3f 2f", "in_pos", "in_norm", "in_uv"),
            ],
            ch.ibo,
        )
        self.uploads += 1
        log.debug("chunk %s uploaded lod %d (%d verts)", tuple(coord), mesh.lod, mesh.vertex_count)

    def set_collision_mesh(self, coord: ChunkCoord, mesh: MeshGeometry) -> None:
        self.chunks[coord].collision = mesh

    def set_visible(self, coord: ChunkCoord, visible: bool) -> None:
        self.chunks[coord].visible = bool(visible)

    # --- frame

    @property
    def visible_count(self) -> int:
        return sum(1 for ch in self.chunks.values() if ch.visible and ch.vao is not None)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.ctx.viewport = (0, 0, width, height)
        self._proj = perspective(FOV_DEG, width / height, NEAR, FAR)
        self.prog["u_proj"].write(self._proj.tobytes())

    def begin_frame(self) -> None:
        self.ctx.clear(0.70, 0.80, 0.92, 1.0)

    def set_common_uniforms(
        self,
        view: np.ndarray,
        cam_pos: np.ndarray,
        light_dir: np.ndarray,
        fog_start: float,
        fog_end: float,
    ) -> None:
        self.prog["u_view"].write(view.astype(np.float32).tobytes())
        self.prog["u_cam_pos"].value = (float(cam_pos[0]), float(cam_pos[1]), float(cam_pos[2]))
        self.prog["u_light_dir"].value = (float(light_dir[0]), float(light_dir[1]), float(light_dir[2]))
        self.prog["u_fog_start"].value = float(fog_start)
        self.prog["u_fog_end"].value = float(fog_end)

    def draw(self) -> None:
        for ch in self.chunks.values():
            if not ch.visible or ch.vao is None:
                continue
            self.prog["u_model"].write(ch.model.tobytes())
            ch.vao.render()

    def release(self) -> None:
        for ch in self.chunks.values():
            ch.release_buffers()
        self.chunks.clear()
        self.prog.release()
