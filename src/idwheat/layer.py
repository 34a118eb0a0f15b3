"""
layer.py

Inverse-distance-weighted heatmap layer.

The layer turns a sparse set of ``(lat, lon, val)`` samples into a
continuous surface, clipped to an optional area of interest (AOI), and draws
it over whatever the host has already rendered. Each frame runs two passes:

1. `accumulate(matrix)` : for every sample, rasterize the accumulation
   geometry into a float32 ``(sum(u_i w_i), sum(w_i))`` buffer sized
   ``ceil(viewport * resolution_factor)``, with additive blending.
2. `draw(matrix)` : at full viewport resolution, resolve
   ``u = sum(u_i w_i) / max(sum(w_i), 1e-6)``, clamp to [0, 1], map through
   the color transfer function and alpha-blend at ``opacity``.

Lifecycle: ``NEW -> ATTACHED -> DETACHED`` (terminal). `attach` allocates
every GPU object and registers a resize listener; `detach` releases them.
Rendering calls outside the ATTACHED state, with an unallocated buffer, or
with no samples are skipped and reported to the diagnostic sink.

Blend state: moderngl cannot query the host's enable flags, so the layer
does not restore them. After either pass returns, ``BLEND`` is enabled with
``FUNC_ADD`` and ``SRC_ALPHA, ONE_MINUS_SRC_ALPHA``. Hosts that draw with
other blend settings set them again after the layer.

Usage:
    layer = InterpolateHeatmapLayer(data, opacity=0.7, p='auto', resolution_factor='auto')
    layer.attach(surface, ctx)
    layer.accumulate(matrix)
    layer.draw(matrix)
    layer.detach()
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence
from collections.abc import Mapping
import logging
import math

import moderngl
import numpy as np
from shapely.geometry import Polygon

from idwheat.adaptive import select_parameters
from idwheat.colormaps import ColorTransfer, get_colormap
from idwheat.config import GL_REQUIREMENTS, LAYER_DEFAULTS
from idwheat.diagnostics import DiagnosticSink, LoggingSink
from idwheat.errors import InvalidSampleError, LayerStateError
from idwheat.projection import IDENTITY, VIEWPORT_QUAD, coerce_matrix, web_mercator
from idwheat.resources import GpuResources, buffer_size
from idwheat.triangulate import polygon_is_simple, triangulate
from idwheat.values import SampleSet, read_samples

logger = logging.getLogger(__name__)

MATRIX_FALLBACKS = ('identity', 'skip')


class LayerState(Enum):
    NEW = 'new'
    ATTACHED = 'attached'
    DETACHED = 'detached'


@dataclass(frozen=True)
class InterpolationConfig:
    """Immutable rendering parameters of one layer instance."""

    p: float
    resolution_factor: float
    opacity: float
    color_transfer: ColorTransfer
    value_to_color4: Optional[str] = None
    debug: bool = False
    matrix_fallback: str = 'identity'

    def __post_init__(self):
        if not (math.isfinite(self.p) and self.p >= 1.0):
            raise ValueError(f'p must be >= 1, got {self.p!r}')
        if not (0.0 < self.resolution_factor <= 1.0):
            raise ValueError(f'resolution_factor must be in (0, 1], got {self.resolution_factor!r}')
        if not (0.0 <= self.opacity <= 1.0):
            raise ValueError(f'opacity must be in [0, 1], got {self.opacity!r}')
        if self.matrix_fallback not in MATRIX_FALLBACKS:
            raise ValueError(f'matrix_fallback must be one of {MATRIX_FALLBACKS}, got {self.matrix_fallback!r}')

    @property
    def aoi_exact_match(self) -> bool:
        """True when the accumulation geometry can be the AOI mesh itself.

        A downsampled buffer sampled only inside the AOI shows edge artifacts,
        so below full resolution the accumulation covers the whole viewport.
        """
        return self.resolution_factor == 1.0


def read_aoi(aoi) -> Optional[tuple]:
    """Coerce an AOI into ``(lat, lon)`` arrays, or None when absent.

    Accepts a shapely `Polygon` (exterior ring, x=lon y=lat), mappings with
    ``lat``/``lon`` keys, or ``(lat, lon)`` pairs. A closing vertex equal to
    the first one is dropped.
    """
    if aoi is None:
        return None
    if isinstance(aoi, Polygon):
        coords = np.asarray(aoi.exterior.coords, dtype=float)
        if coords.size == 0:
            return None
        lat, lon = coords[:, 1], coords[:, 0]
    else:
        lats, lons = [], []
        for i, vertex in enumerate(aoi):
            if isinstance(vertex, Mapping):
                if 'lat' not in vertex or 'lon' not in vertex:
                    raise InvalidSampleError(f'AOI vertex {i} needs lat and lon')
                la, lo = vertex['lat'], vertex['lon']
            elif isinstance(vertex, (list, tuple, np.ndarray)) and len(vertex) == 2:
                la, lo = vertex
            else:
                raise InvalidSampleError(f'AOI vertex {i} must be a mapping or a (lat, lon) pair')
            try:
                lats.append(float(la))
                lons.append(float(lo))
            except (TypeError, ValueError) as exc:
                raise InvalidSampleError(f'AOI vertex {i} must be numeric') from exc
        if not lats:
            return None
        lat, lon = np.asarray(lats), np.asarray(lons)
    if len(lat) > 1 and lat[0] == lat[-1] and lon[0] == lon[-1]:
        lat, lon = lat[:-1], lon[:-1]
    return lat, lon


def _resolve(value, default):
    return default if value is None else value


class InterpolateHeatmapLayer:
    """IDW heatmap rendered in two passes over a moderngl context."""

    def __init__(self, data: Sequence[Any], id: Optional[str] = None, *,
                 aoi=None,
                 min_value: Optional[float] = None,
                 max_value: Optional[float] = None,
                 opacity: Optional[float] = None,
                 p=None,
                 resolution_factor=None,
                 colormap=None,
                 value_to_color4: Optional[str] = None,
                 projector: Optional[Callable] = None,
                 adaptive_strategy: Optional[Callable] = None,
                 debug: Optional[bool] = None,
                 matrix_fallback: Optional[str] = None,
                 required_extensions: Optional[Sequence[str]] = None,
                 sink: Optional[DiagnosticSink] = None):
        self.id = id or LAYER_DEFAULTS['id']
        self.sink = sink if sink is not None else LoggingSink(logging.getLogger(f'{__name__}.{self.id}'))
        self._lat, self._lon, self._values = read_samples(data)
        self._aoi = read_aoi(aoi)
        self.min_value = min_value
        self.max_value = max_value
        self.projector = projector or web_mercator
        self.required_extensions = (tuple(required_extensions) if required_extensions is not None
                                    else GL_REQUIREMENTS['required_extensions'])

        p = _resolve(p, LAYER_DEFAULTS['p'])
        resolution_factor = _resolve(resolution_factor, LAYER_DEFAULTS['resolution_factor'])
        if p == 'auto' or resolution_factor == 'auto':
            if not len(self._values):
                raise ValueError("adaptive parameters need at least one sample")
            chosen = select_parameters(self._values, adaptive_strategy)
            p = chosen.p if p == 'auto' else p
            resolution_factor = chosen.resolution_factor if resolution_factor == 'auto' else resolution_factor
            self.sink.emit('adaptive_parameters', logging.INFO, p=p,
                           resolution_factor=resolution_factor, avg_ratio=round(chosen.avg_ratio, 4))

        self.config = InterpolationConfig(
            p=float(p),
            resolution_factor=float(resolution_factor),
            opacity=float(_resolve(opacity, LAYER_DEFAULTS['opacity'])),
            color_transfer=get_colormap(colormap),
            value_to_color4=value_to_color4,
            debug=bool(_resolve(debug, LAYER_DEFAULTS['debug'])),
            matrix_fallback=_resolve(matrix_fallback, LAYER_DEFAULTS['matrix_fallback']),
        )

        self.state = LayerState.NEW
        self.surface = None
        self.ctx = None
        self.resources: Optional[GpuResources] = None
        self.samples: Optional[SampleSet] = None
        self.draw_vertices = None
        self.draw_triangles = None
        self.accumulate_vertices = None
        self.accumulate_triangles = None
        self.screen_size = (0, 0)
        self.frame = 0
        self._draw_follows_host = False
        self._accumulate_follows_host = False
        self._empty_geometry = False
        self._warned = set()

        if self.config.debug:
            self.sink.emit('constructed', logging.DEBUG, id=self.id, samples=len(self._values),
                           aoi_vertices=0 if self._aoi is None else len(self._aoi[0]),
                           p=self.config.p, resolution_factor=self.config.resolution_factor,
                           opacity=self.config.opacity, colormap=self.config.color_transfer.name)

    # ------------------------------------------------------------------
    # properties
    # ------------------------------------------------------------------
    @property
    def attached(self) -> bool:
        return self.state is LayerState.ATTACHED

    @property
    def value_range(self):
        return None if self.samples is None else self.samples.value_range

    @property
    def buffer_size(self):
        return None if self.resources is None else self.resources.buffer_size

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def _build_geometry(self):
        if self._aoi is not None and len(self._aoi[0]) < 3:
            self.sink.emit('aoi_too_small', logging.WARNING, vertices=len(self._aoi[0]))
            self._aoi = None
        if self._aoi is None:
            self.draw_vertices = np.array(VIEWPORT_QUAD, dtype=np.float32)
            self._draw_follows_host = False
        else:
            lat, lon = self._aoi
            xs, ys = self.projector(lon, lat)
            self.draw_vertices = np.column_stack([np.asarray(xs, dtype=float),
                                                  np.asarray(ys, dtype=float)]).astype(np.float32)
            self._draw_follows_host = True
            if not polygon_is_simple(self.draw_vertices):
                self.sink.emit('aoi_invalid', logging.WARNING, vertices=len(self.draw_vertices))
        self.draw_triangles = triangulate(self.draw_vertices)
        self._empty_geometry = len(self.draw_triangles) == 0
        if self._empty_geometry:
            self.sink.emit('aoi_empty', logging.WARNING, vertices=len(self.draw_vertices))

        if self.config.aoi_exact_match:
            self.accumulate_vertices = self.draw_vertices
            self.accumulate_triangles = self.draw_triangles
            self._accumulate_follows_host = self._draw_follows_host
        else:
            self.accumulate_vertices = np.array(VIEWPORT_QUAD, dtype=np.float32)
            self.accumulate_triangles = triangulate(self.accumulate_vertices)
            self._accumulate_follows_host = False
        if self.config.debug:
            self.sink.emit('geometry', logging.DEBUG, draw_vertices=len(self.draw_vertices),
                           draw_triangles=len(self.draw_triangles),
                           accumulate_triangles=len(self.accumulate_triangles))

    def attach(self, surface, ctx) -> None:
        """Allocate GPU resources on ``ctx`` sized from ``surface``.

        Raises `CapabilityError` when ``ctx`` cannot render into float
        targets and `ResourceLookupError` when a shader input is missing.
        Either leaves the layer DETACHED.
        """
        if self.state is not LayerState.NEW:
            raise LayerStateError(f'layer {self.id!r} cannot attach from state {self.state.value}')
        self.samples = SampleSet.build(zip(self._lat, self._lon, self._values), self.projector,
                                       self.min_value, self.max_value)
        if self.samples.value_range.degenerate and len(self.samples):
            self.sink.emit('value_range_degenerate', logging.INFO,
                           min=self.samples.value_range.min, max=self.samples.value_range.max)
        self._build_geometry()
        self.screen_size = (int(surface.width), int(surface.height))
        size = buffer_size(surface.width, surface.height, self.config.resolution_factor)
        try:
            self.resources = GpuResources.allocate(
                ctx,
                draw_vertices=self.draw_vertices,
                draw_indices=self.draw_triangles,
                accumulate_vertices=self.accumulate_vertices,
                accumulate_indices=self.accumulate_triangles,
                size=size,
                value_to_color=self.config.color_transfer.glsl,
                value_to_color4=self.config.value_to_color4,
                required_extensions=self.required_extensions,
            )
        except Exception as exc:
            self.state = LayerState.DETACHED
            self.sink.emit('attach_failed', logging.ERROR, id=self.id, error=str(exc))
            raise
        self._clear_buffer()
        self.surface = surface
        self.ctx = ctx
        surface.add_resize_listener(self.on_resize)
        self.state = LayerState.ATTACHED
        self.sink.emit('attached', logging.DEBUG if not self.config.debug else logging.INFO,
                       id=self.id, samples=len(self.samples), buffer_size=size,
                       value_range=tuple(self.samples.value_range))
        if not len(self.samples):
            self._warn_once('no_samples')

    def on_resize(self, width: int, height: int) -> None:
        """Reallocate the accumulation buffer for a ``width x height`` viewport."""
        if self.state is not LayerState.ATTACHED:
            self.sink.emit('resize_ignored', logging.DEBUG, state=self.state.value)
            return
        self.screen_size = (int(width), int(height))
        size = buffer_size(width, height, self.config.resolution_factor)
        if self.resources.resize_buffer(size):
            self._clear_buffer()
            self.sink.emit('buffer_resized', logging.DEBUG, width=size[0], height=size[1])

    def detach(self) -> None:
        """Unregister the resize listener and release every GPU object."""
        if self.state is not LayerState.ATTACHED:
            self.sink.emit('detach_ignored', logging.DEBUG, state=self.state.value)
            return
        if self.surface is not None:
            self.surface.remove_resize_listener(self.on_resize)
        if self.resources is not None:
            self.resources.release()
        self.resources = None
        self.surface = None
        self.ctx = None
        self.state = LayerState.DETACHED
        self.sink.emit('detached', logging.DEBUG, id=self.id, frames=self.frame)

    # ------------------------------------------------------------------
    # per frame
    # ------------------------------------------------------------------
    def _warn_once(self, event, **fields):
        if event in self._warned:
            return
        self._warned.add(event)
        self.sink.emit(event, logging.WARNING, id=self.id, **fields)

    def _frame_ready(self, stage: str) -> bool:
        if self.state is not LayerState.ATTACHED:
            self.sink.emit('frame_skipped', logging.DEBUG, stage=stage, reason=self.state.value)
            return False
        if self.resources is None or not self.resources.ready:
            self.sink.emit('frame_skipped', logging.DEBUG, stage=stage, reason='buffer unallocated')
            return False
        if not len(self.samples):
            self._warn_once('no_samples')
            return False
        if self._empty_geometry:
            self._warn_once('aoi_empty')
            return False
        return True

    def _matrix(self, matrix, stage: str):
        m = coerce_matrix(matrix)
        if m is None:
            try:
                length = None if matrix is None else len(matrix)
            except TypeError:
                length = None
            fallback = self.config.matrix_fallback
            self.sink.emit('matrix_invalid', logging.WARNING, stage=stage, length=length, fallback=fallback)
            return IDENTITY if fallback == 'identity' else None
        if self.config.debug:
            self.sink.emit('matrix', logging.DEBUG, stage=stage, first4=[round(float(v), 6) for v in m[:4]])
        return m

    def _check_gl(self, stage: str) -> None:
        if not self.config.debug or self.ctx is None:
            return
        err = self.ctx.error
        if err != 'GL_NO_ERROR':
            self.sink.emit('gl_error', logging.ERROR, stage=stage, error=err, frame=self.frame)

    def _clear_buffer(self):
        if self.resources is not None and self.resources.framebuffer is not None:
            self.resources.framebuffer.clear(0.0, 0.0, 0.0, 0.0)

    def accumulate(self, matrix) -> bool:
        """Compute pass. Returns False when the frame was skipped."""
        if not self._frame_ready('accumulate'):
            return False
        m = self._matrix(matrix, 'accumulate')
        if m is None:
            return False
        ctx = self.ctx
        res = self.resources
        prog = res.accumulate_program
        host_fbo = ctx.fbo

        res.framebuffer.use()
        res.framebuffer.clear(0.0, 0.0, 0.0, 0.0)
        ctx.enable(moderngl.BLEND)
        ctx.blend_equation = moderngl.FUNC_ADD
        ctx.blend_func = moderngl.ONE, moderngl.ONE
        try:
            prog['u_matrix'].write(m.tobytes())
            prog['u_geometry_matrix'].write((m if self._accumulate_follows_host else IDENTITY).tobytes())
            prog['u_power'].value = self.config.p
            prog['u_framebuffer_size'].value = tuple(float(v) for v in res.buffer_size)
            for i, (x, y, u) in enumerate(self.samples):
                prog['u_sample_position'].value = (x, y)
                prog['u_sample_value'].value = u
                if i == 0 and self.config.debug:
                    self.sink.emit('first_sample', logging.DEBUG, position=(x, y), value=u)
                res.accumulate_vao.render(moderngl.TRIANGLES)
        finally:
            ctx.blend_func = moderngl.SRC_ALPHA, moderngl.ONE_MINUS_SRC_ALPHA
            if host_fbo is not None:
                host_fbo.use()
        self.frame += 1
        self._check_gl(f'accumulate frame {self.frame}')
        return True

    def draw(self, matrix) -> bool:
        """Draw pass over the host's framebuffer. Returns False when skipped."""
        if not self._frame_ready('draw'):
            return False
        m = self._matrix(matrix, 'draw')
        if m is None:
            return False
        ctx = self.ctx
        res = self.resources
        prog = res.draw_program
        width, height = self.screen_size

        ctx.viewport = (0, 0, width, height)
        ctx.enable(moderngl.BLEND)
        ctx.blend_equation = moderngl.FUNC_ADD
        ctx.blend_func = moderngl.SRC_ALPHA, moderngl.ONE_MINUS_SRC_ALPHA
        prog['u_geometry_matrix'].write((m if self._draw_follows_host else IDENTITY).tobytes())
        prog['u_screen_size'].value = (float(width), float(height))
        opacity = prog.get('u_opacity', None)
        if opacity is not None:
            opacity.value = self.config.opacity
        res.texture.use(location=0)
        prog['u_accumulation'].value = 0
        res.draw_vao.render(moderngl.TRIANGLES)
        self._check_gl(f'draw frame {self.frame}')
        return True

    def render(self, matrix) -> bool:
        """Both passes in order, as a host render hook would call them."""
        if not self.accumulate(matrix):
            return False
        return self.draw(matrix)

    def read_accumulation(self) -> Optional[np.ndarray]:
        """Accumulation buffer as ``(h, w, 2)`` float32; None when unallocated."""
        if self.state is not LayerState.ATTACHED or self.resources is None or not self.resources.ready:
            return None
        w, h = self.resources.buffer_size
        raw = self.resources.framebuffer.read(components=2, dtype='f4')
        return np.frombuffer(raw, dtype=np.float32).reshape(h, w, 2).copy()
