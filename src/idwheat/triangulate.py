"""
triangulate.py

Ear-clipping triangulation of simple polygons.

Public functions:
- `triangulate(vertices)` -> (M, 3) uint32 indices into ``vertices``
- `signed_area(vertices)` -> float, positive for counter-clockwise rings
- `mesh_area(vertices, triangles)` -> float, total unsigned triangle area
- `polygon_is_simple(vertices)` -> bool (shapely validity of the ring)

Notes:
- Collinear and repeated vertices are dropped without emitting triangles,
  so degenerate rings produce as many valid triangles as they contain.
- Vertices are shifted and scaled to their bounding box before clipping,
  so the collinearity tolerance is relative to the ring size. Rings in the
  unit Mercator square can be a few 1e-7 across.
- The clipping loop is bounded by ``n * n`` iterations. When a ring is
  self-intersecting and no proper ear exists, the first convex vertex is
  clipped anyway (best effort) and the loop carries on.
"""

from typing import List
import logging

import numpy as np
from shapely.geometry import Polygon

logger = logging.getLogger(__name__)

_EPS = 1e-12


def signed_area(vertices) -> float:
    """Shoelace area; positive when the ring winds counter-clockwise."""
    pts = np.asarray(vertices, dtype=float).reshape(-1, 2)
    if pts.shape[0] < 3:
        return 0.0
    x = pts[:, 0]
    y = pts[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def _cross(o, a, b) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def _point_in_triangle(p, a, b, c) -> bool:
    # inclusive of edges; a, b, c counter-clockwise
    return (_cross(a, b, p) >= -_EPS and _cross(b, c, p) >= -_EPS
            and _cross(c, a, p) >= -_EPS)


def _is_ear(pts, ring: List[int], k: int) -> bool:
    n = len(ring)
    i_prev, i_cur, i_next = ring[(k - 1) % n], ring[k], ring[(k + 1) % n]
    a, b, c = pts[i_prev], pts[i_cur], pts[i_next]
    if _cross(a, b, c) <= _EPS:
        return False
    for j in ring:
        if j in (i_prev, i_cur, i_next):
            continue
        p = pts[j]
        # shared coordinates (touching rings) do not block the ear
        if (p == a).all() or (p == b).all() or (p == c).all():
            continue
        if _point_in_triangle(p, a, b, c):
            return False
    return True


def _drop_repeats(pts, ring: List[int]) -> List[int]:
    out: List[int] = []
    for i in ring:
        if out and np.allclose(pts[out[-1]], pts[i], atol=_EPS, rtol=0.0):
            continue
        out.append(i)
    while len(out) > 1 and np.allclose(pts[out[0]], pts[out[-1]], atol=_EPS, rtol=0.0):
        out.pop()
    return out


def _unit_box(pts):
    # translate and scale into [0, 1]; indices and winding are unchanged
    if pts.shape[0] == 0 or not np.isfinite(pts).all():
        return pts
    lo = pts.min(axis=0)
    extent = float((pts.max(axis=0) - lo).max())
    if extent == 0.0:
        return pts - lo
    return (pts - lo) / extent


def triangulate(vertices) -> np.ndarray:
    """Triangulate a polygon ring by ear clipping.

    Parameters:
    - vertices: (N, 2) array-like boundary, either winding, not closed
      (a trailing copy of the first vertex is tolerated).

    Returns: (M, 3) uint32 array of indices into ``vertices``; each triangle
    is counter-clockwise. Empty ``(0, 3)`` for fewer than 3 usable vertices.
    """
    pts = np.asarray(vertices, dtype=float).reshape(-1, 2)
    pts = _unit_box(pts)
    ring = _drop_repeats(pts, list(range(pts.shape[0])))
    if len(ring) < 3:
        return np.zeros((0, 3), dtype=np.uint32)
    if signed_area(pts[ring]) < 0.0:
        ring.reverse()

    triangles: List[tuple] = []
    max_iterations = len(ring) * len(ring) + 3
    it = 0
    k = 0
    stalled = 0
    while len(ring) > 3 and it < max_iterations:
        it += 1
        n = len(ring)
        k %= n
        a, b, c = pts[ring[(k - 1) % n]], pts[ring[k]], pts[ring[(k + 1) % n]]
        if abs(_cross(a, b, c)) <= _EPS:
            # collinear or spike: contributes no area
            ring.pop(k)
            stalled = 0
            continue
        if _is_ear(pts, ring, k):
            triangles.append((ring[(k - 1) % n], ring[k], ring[(k + 1) % n]))
            ring.pop(k)
            stalled = 0
            continue
        k += 1
        stalled += 1
        if stalled >= n:
            # no proper ear left: self-intersecting ring, clip best effort
            forced = next((j for j in range(n)
                           if _cross(pts[ring[(j - 1) % n]], pts[ring[j]], pts[ring[(j + 1) % n]]) > _EPS),
                          None)
            if forced is None:
                logger.debug('triangulate: no convex vertex left in %d-vertex ring', n)
                break
            triangles.append((ring[(forced - 1) % n], ring[forced], ring[(forced + 1) % n]))
            ring.pop(forced)
            stalled = 0

    if len(ring) == 3:
        a, b, c = (pts[i] for i in ring)
        if _cross(a, b, c) > _EPS:
            triangles.append(tuple(ring))

    if not triangles:
        return np.zeros((0, 3), dtype=np.uint32)
    return np.asarray(triangles, dtype=np.uint32)


def mesh_area(vertices, triangles) -> float:
    """Total unsigned area of ``triangles`` over ``vertices``."""
    pts = np.asarray(vertices, dtype=float).reshape(-1, 2)
    tris = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    if tris.size == 0:
        return 0.0
    a, b, c = pts[tris[:, 0]], pts[tris[:, 1]], pts[tris[:, 2]]
    cross = (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (b[:, 1] - a[:, 1]) * (c[:, 0] - a[:, 0])
    return float(0.5 * np.abs(cross).sum())


def polygon_is_simple(vertices) -> bool:
    """True when the ring forms a valid (non self-intersecting) polygon."""
    pts = np.asarray(vertices, dtype=float).reshape(-1, 2)
    if pts.shape[0] < 3:
        return False
    return bool(Polygon(pts).is_valid)
