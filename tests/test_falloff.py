from __future__ import annotations

import numpy as np
import pytest

from endless.world.falloff import falloff_curve, generate_falloff_map


def test_shape_range_and_corners():
    m = generate_falloff_map(41)
    assert m.shape == (41, 41)
    assert float(m.min()) >= 0.0 and float(m.max()) <= 1.0
    assert m[20, 20] == pytest.approx(0.0)
    for y, x in [(0, 0), (0, 40), (40, 0), (40, 40), (0, 20), (20, 40)]:
        assert m[y, x] == pytest.approx(1.0)


def test_square_symmetric():
    m = generate_falloff_map(33)
    assert np.allclose(m, m.T)
    assert np.allclose(m, m[::-1, :])
    assert np.allclose(m, m[:, ::-1])


def test_monotonic_from_centre_to_edge():
    m = generate_falloff_map(51)
    row = m[25, 25:]
    assert np.all(np.diff(row) >= 0.0)


def test_curve_shape():
    v = np.array([0.0, 0.5, 1.0])
    out = falloff_curve(v)
    assert out[0] == 0.0
    assert out[2] == 1.0
    assert 0.0 < out[1] < 0.5


def test_cached_and_read_only():
    a = generate_falloff_map(17)
    assert generate_falloff_map(17) is a
    with pytest.raises(ValueError):
        a[0, 0] = 0.5


def test_rejects_empty_size():
    with pytest.raises(ValueError):
        generate_falloff_map(0)
