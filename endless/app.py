from __future__ import annotations

import logging
import time
from typing import Sequence

import moderngl
import numpy as np
import pygame

from endless.config import (
    APP_VERSION,
    FPS_CAP,
    LIGHT_DIR,
    WARMUP_TIMEOUT_S,
    WINDOW_HEIGHT,
    WINDOW_WIDTH,
)
from endless.render.camera import FlightCamera
from endless.render.renderer import Renderer
from endless.util.math import normalize
from endless.world.chunk import LODInfo
from endless.world.chunk_streamer import ChunkStreamer
from endless.world.dispatcher import WorkDispatcher
from endless.world.settings import TerrainSettings

log = logging.getLogger(__name__)


def _init_pygame_gl() -> None:
    pygame.init()
    pygame.display.gl_set_attribute(pygame.GL_CONTEXT_MAJOR_VERSION, 3)
    pygame.display.gl_set_attribute(pygame.GL_CONTEXT_MINOR_VERSION, 3)
    pygame.display.gl_set_attribute(pygame.GL_CONTEXT_PROFILE_MASK, pygame.GL_CONTEXT_PROFILE_CORE)
    pygame.display.gl_set_attribute(pygame.GL_DEPTH_SIZE, 24)
    pygame.display.gl_set_attribute(pygame.GL_DOUBLEBUFFER, 1)


def _axis(keys, negative: int, positive: int) -> float:
    return float(keys[positive]) - float(keys[negative])


def warmup(streamer: ChunkStreamer, position: tuple[float, float], *, timeout_s: float) -> None:
    """Generate the chunks under the viewer before the first frame.

    Blocks for at most timeout_s; whatever isn't ready streams in afterwards.
    """
    deadline = time.perf_counter() + float(timeout_s)
    streamer.update(position)
    while time.perf_counter() < deadline:
        remaining = max(0.0, deadline - time.perf_counter())
        idle = streamer.dispatcher.wait_idle(timeout=min(0.05, remaining))
        streamer.dispatcher.drain()
        if idle and streamer.dispatcher.in_flight == 0:
            break


def run_app(
    *,
    settings: TerrainSettings,
    lods: Sequence[LODInfo],
    camera: FlightCamera,
    max_workers: int,
    fog_start: float,
    fog_end: float,
    wireframe: bool,
    debug: bool,
) -> None:
    _init_pygame_gl()

    flags = pygame.OPENGL | pygame.DOUBLEBUF | pygame.RESIZABLE
    pygame.display.set_mode((WINDOW_WIDTH, WINDOW_HEIGHT), flags)
    pygame.display.set_caption(f"endless v{APP_VERSION} (seed={settings.noise.seed})")

    try:
        ctx = moderngl.create_context()
    except Exception as e:
        pygame.quit()
        raise RuntimeError("Failed to create ModernGL context (need OpenGL 3.2+)") from e

    log.debug("moderngl ctx version_code=%s renderer=%s", ctx.version_code, ctx.info.get("GL_RENDERER"))
    ctx.viewport = (0, 0, WINDOW_WIDTH, WINDOW_HEIGHT)
    if wireframe:
        ctx.wireframe = True

    renderer = Renderer(
        ctx, WINDOW_WIDTH, WINDOW_HEIGHT,
        min_height=settings.min_height, max_height=settings.max_height,
    )
    streamer = ChunkStreamer(
        settings,
        lods,
        renderer=renderer,
        dispatcher=WorkDispatcher(max_workers=max_workers or None),
    )

    warmup(streamer, camera.ground_position(), timeout_s=WARMUP_TIMEOUT_S)
    ground = streamer.height_at(camera.x, camera.z)
    if ground is not None:
        camera.y = ground + camera.height_offset

    clock = pygame.time.Clock()
    light_dir = normalize(np.array(LIGHT_DIR, dtype=np.float32))
    running = True
    last_t = time.perf_counter()
    last_log = last_t
    fps_est = 0.0

    try:
        while running:
            now = time.perf_counter()
            dt = min(now - last_t, 0.05)
            last_t = now

            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                    running = False
                elif event.type == pygame.VIDEORESIZE:
                    w, h = max(64, event.w), max(64, event.h)
                    pygame.display.set_mode((w, h), flags)
                    renderer.resize(w, h)

            keys = pygame.key.get_pressed()
            camera.update(
                dt,
                streamer.height_at,
                forward=_axis(keys, pygame.K_DOWN, pygame.K_UP),
                turn=_axis(keys, pygame.K_LEFT, pygame.K_RIGHT),
                lift=_axis(keys, pygame.K_a, pygame.K_q),
            )

            # one tick: visibility pass if the viewer moved far enough, then install finished work
            streamer.update(camera.ground_position())

            renderer.begin_frame()
            renderer.set_common_uniforms(
                view=camera.view_matrix(),
                cam_pos=camera.eye(),
                light_dir=light_dir,
                fog_start=float(fog_start),
                fog_end=float(fog_end),
            )
            renderer.draw()
            pygame.display.flip()

            if dt > 0:
                inst_fps = 1.0 / dt
                fps_est = (0.9 * fps_est + 0.1 * inst_fps) if fps_est > 0 else inst_fps

            if debug and now - last_log >= 1.0:
                last_log = now
                log.debug(
                    "fps~%.0f pos=(%.0f, %.0f) chunks=%d visible=%d in_flight=%d uploads=%d",
                    fps_est, camera.x, camera.z, len(streamer.chunks), renderer.visible_count,
                    streamer.dispatcher.in_flight, renderer.uploads,
                )

            if FPS_CAP and FPS_CAP > 0:
                clock.tick(FPS_CAP)
            else:
                clock.tick()
    finally:
        streamer.shutdown()
        renderer.release()
        pygame.quit()
