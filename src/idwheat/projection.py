"""
projection.py

Default coordinate projector and the matrices the demo host feeds the layer.

The layer itself treats projection as a pure function supplied by the host:
any callable ``projector(lon, lat) -> (x, y)`` works. `web_mercator` maps
degrees onto the unit Web-Mercator square used by slippy-map engines
(x grows east from -180, y grows south from the northern limit).

Public functions:
- `web_mercator(lon, lat)` -> (x, y) arrays in [0, 1]
- `ortho_matrix(left, right, bottom, top)` -> (16,) float32, column-major
- `coerce_matrix(m)` -> (16,) float32 or None when malformed
- `IDENTITY` : (16,) float32 identity
- `VIEWPORT_QUAD` : clip-space corners of the full viewport
"""

from functools import lru_cache
from typing import Optional, Tuple
import math

import numpy as np
from pyproj import Transformer

from idwheat.config import MERCATOR

IDENTITY = np.eye(4, dtype=np.float32).ravel(order='F')
IDENTITY.setflags(write=False)

# counter-clockwise, (-1, -1) first
VIEWPORT_QUAD = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]], dtype=np.float32)
VIEWPORT_QUAD.setflags(write=False)


@lru_cache(maxsize=1)
def _transformer() -> Transformer:
    return Transformer.from_crs(MERCATOR['source_crs'], MERCATOR['target_crs'], always_xy=True)


def web_mercator(lon, lat) -> Tuple[np.ndarray, np.ndarray]:
    """Project degrees to the unit Mercator square.

    Latitudes are clamped to ``MERCATOR['max_latitude']`` so the poles map to
    the square's edges instead of infinity.
    """
    lon_a, lat_a = np.broadcast_arrays(np.asarray(lon, dtype=float), np.asarray(lat, dtype=float))
    shape = lon_a.shape
    lat_c = np.clip(lat_a.ravel(), -MERCATOR['max_latitude'], MERCATOR['max_latitude'])
    mx, my = _transformer().transform(np.ascontiguousarray(lon_a.ravel()), lat_c)
    half = math.pi * MERCATOR['earth_radius']
    x = (np.asarray(mx, dtype=float) + half) / (2.0 * half)
    y = (half - np.asarray(my, dtype=float)) / (2.0 * half)
    return x.reshape(shape), y.reshape(shape)


def ortho_matrix(left: float, right: float, bottom: float, top: float) -> np.ndarray:
    """Orthographic projection of the box onto clip space [-1, 1].

    Returned column-major, ready to write into a ``mat4`` uniform.
    """
    rl = right - left
    tb = top - bottom
    if rl == 0 or tb == 0:
        raise ValueError('orthographic box has zero extent')
    m = np.array([
        [2.0 / rl, 0, 0, 0],
        [0, 2.0 / tb, 0, 0],
        [0, 0, -1, 0],
        [-(right + left) / rl, -(top + bottom) / tb, 0, 1],
    ], dtype=np.float32)
    # rows above are the columns of the matrix
    return m.ravel()


def coerce_matrix(m) -> Optional[np.ndarray]:
    """Return ``m`` as 16 float32 values, or None when it cannot be one.

    Accepts flat sequences of 16 numbers or 4x4 arrays. Anything with a
    different element count or non-finite entries is rejected.
    """
    if m is None:
        return None
    try:
        arr = np.asarray(m, dtype=np.float32)
    except (TypeError, ValueError):
        return None
    if arr.size != 16:
        return None
    if arr.ndim == 2:
        # row-major 4x4 in numpy -> column-major for GL
        arr = arr.T
    arr = np.ascontiguousarray(arr.ravel())
    if not np.isfinite(arr).all():
        return None
    return arr


def project_ndc(matrix, positions) -> np.ndarray:
    """Apply a column-major 4x4 ``matrix`` to (N, 2) positions, returning NDC xy."""
    m = np.asarray(matrix, dtype=float).reshape(4, 4).T
    pts = np.asarray(positions, dtype=float).reshape(-1, 2)
    hom = np.column_stack([pts, np.zeros(len(pts)), np.ones(len(pts))])
    clip = hom @ m.T
    w = clip[:, 3:4]
    w = np.where(w == 0.0, 1.0, w)
    return clip[:, :2] / w
