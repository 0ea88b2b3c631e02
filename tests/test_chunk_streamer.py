from __future__ import annotations

import numpy as np
import pytest

from endless.world.chunk import (
    Bounds,
    ChunkCoord,
    ChunkState,
    LODInfo,
    MeshState,
    validate_lods,
)
from endless.world.chunk_streamer import ChunkStreamer
from endless.world.dispatcher import WorkDispatcher
from endless.world.noise import NoiseParams
from endless.world.settings import TerrainSettings


class ImmediateDispatcher:
    """Runs work inline at submit time; results still wait for drain."""

    def __init__(self):
        self._completed = []
        self.submitted = 0

    @property
    def in_flight(self):
        return 0

    def submit(self, work, on_complete):
        self.submitted += 1
        self._completed.append((on_complete, work()))

    def drain(self):
        ready, self._completed = self._completed, []
        for cb, result in ready:
            cb(result)
        return len(ready)

    def wait_idle(self, timeout=None):
        return True

    def shutdown(self, **kw):
        pass


class RecordingRenderer:
    def __init__(self):
        self.created = {}
        self.meshes = {}
        self.collision = {}
        self.visible = {}
        self.calls = []

    def create_chunk(self, coord, position, scale):
        self.created[coord] = (position, scale)

    def set_mesh(self, coord, mesh):
        self.meshes.setdefault(coord, []).append(mesh.lod)

    def set_collision_mesh(self, coord, mesh):
        self.collision.setdefault(coord, []).append(mesh.lod)

    def set_visible(self, coord, visible):
        self.visible[coord] = visible
        self.calls.append((coord, visible))


def settle(streamer):
    while True:
        streamer.dispatcher.wait_idle(timeout=30.0)
        if streamer.dispatcher.drain() == 0 and streamer.dispatcher.in_flight == 0:
            return


# chunk world size 22, bordered 25: strides 1, 2, 4 all fit
SMALL_LODS = [LODInfo(0, 30.0, True), LODInfo(1, 60.0), LODInfo(2, 90.0)]


def _small_settings(**kw) -> TerrainSettings:
    noise = NoiseParams(seed=2, scale=15.0, octaves=3, normalize_mode="global")
    kw.setdefault("uniform_scale", 1.0)
    return TerrainSettings(noise=noise, height_multiplier=10.0, chunk_size=23, **kw)


def _streamer(lods=SMALL_LODS, **kw):
    renderer = RecordingRenderer()
    settings = kw.pop("settings", None) or _small_settings()
    s = ChunkStreamer(settings, lods, renderer=renderer, dispatcher=ImmediateDispatcher(), **kw)
    return s, renderer


def test_bounds_distance():
    b = Bounds((0.0, 0.0), 10.0)
    assert b.sqr_distance((3.0, -4.0)) == 0.0
    assert b.sqr_distance((8.0, 0.0)) == pytest.approx(9.0)
    assert b.distance((8.0, 9.0)) == pytest.approx(5.0)


def test_validate_lods():
    assert validate_lods(SMALL_LODS, 25) == tuple(SMALL_LODS)
    with pytest.raises(ValueError):
        validate_lods([], 25)
    with pytest.raises(ValueError):
        validate_lods([LODInfo(0, 60.0), LODInfo(1, 30.0)], 25)
    with pytest.raises(ValueError):
        validate_lods([LODInfo(1, 30.0), LODInfo(0, 60.0)], 25)
    with pytest.raises(ValueError):
        validate_lods([LODInfo(0, 30.0, True), LODInfo(1, 60.0, True)], 25)
    with pytest.raises(ValueError):
        validate_lods([LODInfo(0, 30.0), LODInfo(1, float("inf"))], 25)
    with pytest.raises(ValueError):
        validate_lods([LODInfo(0, 30.0), LODInfo(5, 60.0)], 25)


def test_window_geometry():
    s, _ = _streamer()
    assert s.chunk_world_size == 22.0
    assert s.max_view_dst == 90.0
    assert s.chunks_visible_in_view_dst == 4
    assert s.collider_index == 0
    assert s.chunk_coord_at(10.0, -12.0) == ChunkCoord(0, -1)


def test_select_lod_index():
    s, _ = _streamer()
    assert s.select_lod_index(0.0) == 0
    assert s.select_lod_index(30.0) == 0
    assert s.select_lod_index(30.5) == 1
    assert s.select_lod_index(61.0) == 2
    assert s.select_lod_index(500.0) == 2


def test_first_move_creates_window_and_requests_once():
    s, renderer = _streamer()
    assert s.on_viewer_moved((0.0, 0.0))
    assert len(s.chunks) == 81
    assert s.height_requests == 81
    assert s.state_of((0, 0)) is ChunkState.HEIGHT_PENDING
    assert len(renderer.created) == 81

    # repeated passes before anything arrives must not request again
    s.recompute_visible()
    s.recompute_visible()
    assert s.height_requests == 81
    assert s.dispatcher.submitted == 81
    assert s.visible_chunks == []


def test_small_moves_are_ignored():
    s, _ = _streamer()
    assert s.on_viewer_moved((0.0, 0.0))
    assert not s.on_viewer_moved((10.0, 10.0))
    assert not s.on_viewer_moved((17.0, 17.0))
    assert s.on_viewer_moved((26.0, 0.0))
    # threshold is measured from the last recompute, not the last call
    assert not s.on_viewer_moved((40.0, 0.0))


def test_always_recompute():
    s, _ = _streamer(always_recompute=True)
    assert s.on_viewer_moved((0.0, 0.0))
    assert s.on_viewer_moved((1.0, 0.0))


def test_meshes_follow_height_fields():
    s, renderer = _streamer()
    s.update((0.0, 0.0))  # installs height fields, requests meshes
    origin = s.chunk((0, 0))
    assert origin.state is ChunkState.HEIGHT_READY
    assert origin.mesh_state(0) is MeshState.PENDING
    assert origin.lod_index == -1

    settle(s)
    assert origin.lod_index == 0
    assert origin.current_mesh is not None and origin.current_mesh.lod == 0
    assert origin.visible
    assert renderer.meshes[(0, 0)] == [0]
    assert renderer.collision[(0, 0)] == [0]
    assert renderer.visible[(0, 0)] is True

    # a chunk two rings out sits in the middle LOD band
    mid = s.chunk((2, 0))
    assert mid.lod_index == 1
    assert mid.mesh_state(0) is MeshState.UNREQUESTED
    assert (2, 0) not in renderer.collision

    # corner chunks fall outside max view distance and stay hidden
    corner = s.chunk((4, 4))
    assert corner.state is ChunkState.HEIGHT_READY
    assert not corner.visible
    assert corner.lod_index == -1
    assert all(m.state is MeshState.UNREQUESTED for m in corner.lod_meshes)
    assert set(c.coord for c in s.visible_chunks) == {c for c, ch in s.chunks.items() if ch.visible}


def test_each_mesh_slot_requested_at_most_once():
    s, _ = _streamer(always_recompute=True)
    s.update((0.0, 0.0))
    before = s.mesh_requests
    for _ in range(3):
        s.on_viewer_moved((0.0, 0.0))
    assert s.mesh_requests == before
    settle(s)
    requested = sum(m.has_requested_mesh for ch in s.chunks.values() for m in ch.lod_meshes)
    assert requested == s.mesh_requests


def test_cached_lod_swaps_without_new_request():
    s, renderer = _streamer()
    s.update((0.0, 0.0))
    settle(s)
    origin = s.chunk((0, 0))

    s.update((66.0, 0.0))  # 55 units from the origin chunk's edge
    settle(s)
    assert origin.lod_index == 1
    assert origin.lod_meshes[0].has_mesh

    s.on_viewer_moved((0.0, 0.0))
    assert origin.lod_index == 0
    assert renderer.meshes[(0, 0)] == [0, 1, 0]


def test_chunks_leaving_the_window_are_hidden_not_evicted():
    s, renderer = _streamer()
    s.update((0.0, 0.0))
    settle(s)
    count = len(s.chunks)

    s.update((500.0, 0.0))
    settle(s)
    origin = s.chunk((0, 0))
    assert origin is not None
    assert not origin.visible
    assert renderer.visible[(0, 0)] is False
    assert len(s.chunks) > count
    assert all(ch.visible for ch in s.visible_chunks)
    assert (0, 0) not in {tuple(c.coord) for c in s.visible_chunks}


def test_visibility_only_signalled_on_change():
    s, renderer = _streamer(always_recompute=True)
    s.update((0.0, 0.0))
    settle(s)
    n = len(renderer.calls)
    s.update((0.0, 0.0))
    s.update((0.0, 0.0))
    assert len(renderer.calls) == n


def test_separate_collider_lod_is_requested_near_viewer():
    lods = [LODInfo(0, 30.0), LODInfo(1, 60.0, True), LODInfo(2, 90.0)]
    s, renderer = _streamer(lods)
    s.update((0.0, 0.0))
    settle(s)
    origin = s.chunk((0, 0))
    assert origin.lod_index == 0
    assert origin.mesh_state(1) is MeshState.READY
    assert renderer.collision[(0, 0)] == [1]
    assert renderer.meshes[(0, 0)] == [0]


def test_uniform_scale_applies_to_positions_and_viewer():
    s, renderer = _streamer(settings=_small_settings(uniform_scale=2.0))
    s.on_viewer_moved((44.0, 0.0))
    assert s.viewer_position == (22.0, 0.0)
    assert renderer.created[(1, 0)] == ((44.0, 0.0), 2.0)
    assert s.chunk_coord_at(44.0, 0.0) == ChunkCoord(1, 0)


def test_height_at():
    s, _ = _streamer(settings=_small_settings(uniform_scale=2.0))
    s.on_viewer_moved((0.0, 0.0))
    assert s.height_at(0.0, 0.0) is None
    settle(s)
    origin = s.chunk((0, 0))
    mesh = origin.lod_meshes[0].mesh
    vpl = 23
    centre = mesh.vertices.reshape(vpl, vpl, 3)[11, 11]
    assert s.height_at(0.0, 0.0) == pytest.approx(float(centre[1]) * 2.0, rel=1e-5)
    corner = mesh.vertices.reshape(vpl, vpl, 3)[0, -1]  # local (+11, +11)
    assert s.height_at(22.0, 22.0) == pytest.approx(float(corner[1]) * 2.0, rel=1e-5)


def test_streaming_with_worker_threads():
    settings = TerrainSettings(
        noise=NoiseParams(seed=1, scale=50.0, octaves=4, normalize_mode="global"),
        uniform_scale=1.0,
    )
    lods = [LODInfo(0, 300.0, True), LODInfo(1, 400.0), LODInfo(2, 600.0)]
    renderer = RecordingRenderer()
    s = ChunkStreamer(settings, lods, renderer=renderer, dispatcher=WorkDispatcher(max_workers=4))
    try:
        assert s.chunk_world_size == 238.0
        assert s.chunks_visible_in_view_dst == 3

        s.update((0.0, 0.0))
        settle(s)
        origin = s.chunk((0, 0))
        assert origin.lod_index == 0
        assert renderer.collision[(0, 0)] == [0]
        assert s.state_of((4, 0)) is ChunkState.UNREQUESTED

        assert s.on_viewer_moved((714.0, 0.0))
        assert s.state_of((4, 0)) is ChunkState.HEIGHT_PENDING
        settle(s)
        assert s.state_of((4, 0)) is ChunkState.HEIGHT_READY
        assert s.dispatcher.failed == 0
    finally:
        s.shutdown()


def test_height_field_arriving_late_is_installed():
    s, _ = _streamer(always_recompute=True)
    s.on_viewer_moved((0.0, 0.0))
    for _ in range(3):
        s.on_viewer_moved((0.0, 0.0))
    assert s.state_of((0, 0)) is ChunkState.HEIGHT_PENDING
    assert s.height_requests == 81
    settle(s)
    assert s.state_of((0, 0)) is ChunkState.HEIGHT_READY
    assert np.isfinite(s.chunk((0, 0)).height_field.values).all()
