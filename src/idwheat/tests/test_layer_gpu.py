"""End-to-end rendering on a standalone OpenGL context.

Skipped when no OpenGL 3.3 driver is available (see the ``gl_ctx`` fixture).
"""
import numpy as np
import pytest

from idwheat.host import OffscreenSurface
from idwheat.layer import InterpolateHeatmapLayer
from idwheat.projection import ortho_matrix
from idwheat.reference import accumulate_grid, resolve


def planar(lon, lat):
    """Samples already live in the unit square: x=lon, y=lat."""
    return np.asarray(lon, dtype=float), np.asarray(lat, dtype=float)


UNIT = ortho_matrix(0.0, 1.0, 0.0, 1.0)
# (lat, lon, val) == (y, x, val) under `planar`
SAMPLES = [(0.2, 0.25, 0.0), (0.8, 0.75, 10.0), (0.4, 0.55, 5.0)]


@pytest.fixture
def offscreen(gl_ctx):
    surface = OffscreenSurface(gl_ctx, 64, 48)
    yield surface
    surface.release()


def _render(layer, surface, matrix=UNIT):
    surface.use()
    assert layer.render(matrix)
    return surface.read_rgba().copy()


def test_accumulation_matches_numpy(gl_ctx, offscreen, sink):
    layer = InterpolateHeatmapLayer(SAMPLES, p=2.0, resolution_factor=0.5, projector=planar, sink=sink)
    layer.attach(offscreen, gl_ctx)
    try:
        offscreen.use()
        assert layer.accumulate(UNIT)
        acc = layer.read_accumulation()
        expected = accumulate_grid(layer.samples.positions, layer.samples.normalized_values,
                                   2.0, layer.buffer_size)
        assert acc.shape == expected.shape
        np.testing.assert_allclose(resolve(acc), resolve(expected), atol=2e-3)
    finally:
        layer.detach()


def test_equal_values_draw_uniform_color(gl_ctx, offscreen, sink):
    data = [(0.1, 0.1, 7.0), (0.9, 0.3, 7.0), (0.5, 0.8, 7.0)]
    layer = InterpolateHeatmapLayer(data, opacity=1.0, projector=planar, sink=sink)
    layer.attach(offscreen, gl_ctx)
    try:
        rgba = _render(layer, offscreen)
    finally:
        layer.detach()
    # u == 1 everywhere -> three_band red
    assert (rgba[..., 0] == 255).all()
    assert (rgba[..., 1] <= 1).all()
    assert (rgba[..., 2] == 0).all()


def test_draw_is_idempotent(gl_ctx, offscreen, sink):
    layer = InterpolateHeatmapLayer(SAMPLES, projector=planar, sink=sink)
    layer.attach(offscreen, gl_ctx)
    try:
        first = _render(layer, offscreen)
        second = _render(layer, offscreen)
    finally:
        layer.detach()
    assert np.array_equal(first, second)


def test_aoi_clips_output(gl_ctx, offscreen, sink):
    aoi = [(0.25, 0.25), (0.25, 0.75), (0.75, 0.75), (0.75, 0.25)]
    layer = InterpolateHeatmapLayer(SAMPLES, aoi=aoi, opacity=1.0, resolution_factor=1.0,
                                    projector=planar, sink=sink)
    layer.attach(offscreen, gl_ctx)
    try:
        rgba = _render(layer, offscreen)
    finally:
        layer.detach()
    assert rgba[2, 2, 3] == 0
    assert rgba[-3, -3, 3] == 0
    assert rgba[24, 32, 3] == 255


def test_resize_keeps_rendering(gl_ctx, offscreen, sink):
    _ = gl_ctx.error  # reading the flag clears it
    offscreen.use()
    layer = InterpolateHeatmapLayer(SAMPLES, projector=planar, sink=sink)
    layer.attach(offscreen, gl_ctx)
    try:
        offscreen.resize(32, 16)
        assert layer.buffer_size == (10, 5)
        rgba = _render(layer, offscreen)
        assert rgba.shape == (16, 32, 4)
        assert gl_ctx.error == 'GL_NO_ERROR'
    finally:
        layer.detach()
