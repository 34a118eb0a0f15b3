"""
reference.py

numpy evaluation of the layer's accumulate and resolve equations.

Used to probe the interpolated value at a screen position (the viewer's
click readout) and to check GPU output in tests. Positions are in
normalized screen space: (0, 0) bottom-left, (1, 1) top-right, the same
space the accumulation shader measures distances in.

Public functions:
- `accumulate_grid(sample_uv, values, p, size)` -> (h, w, 2) sums
- `resolve(acc)` -> (h, w) clamped u
- `probe(sample_uv, values, p, points)` -> (M,) clamped u
- `sample_screen_uv(layer_samples, matrix)` -> (N, 2) normalized positions
"""

from typing import Tuple

import numpy as np

from idwheat.config import NUMERICS
from idwheat.projection import project_ndc

# samples per vectorized block in accumulate_grid
_CHUNK = 64


def sample_screen_uv(positions, matrix) -> np.ndarray:
    """Project planar sample positions through ``matrix`` into [0, 1] screen space."""
    ndc = project_ndc(matrix, positions)
    return (ndc + 1.0) / 2.0


def _weights(points, sample_uv, p, eps):
    # points (M, 2), sample_uv (N, 2) -> (M, N)
    d = np.linalg.norm(points[:, None, :] - sample_uv[None, :, :], axis=-1)
    return 1.0 / np.power(np.maximum(d, eps), p)


def probe(sample_uv, values, p: float, points,
          eps: float = NUMERICS['distance_epsilon'],
          weight_eps: float = NUMERICS['weight_epsilon']) -> np.ndarray:
    """Interpolated, clamped u at each of ``points``."""
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    suv = np.asarray(sample_uv, dtype=float).reshape(-1, 2)
    vals = np.asarray(values, dtype=float).ravel()
    if suv.shape[0] == 0:
        return np.zeros(pts.shape[0])
    w = _weights(pts, suv, p, eps)
    u = (w @ vals) / np.maximum(w.sum(axis=1), weight_eps)
    return np.clip(u, 0.0, 1.0)


def accumulate_grid(sample_uv, values, p: float, size: Tuple[int, int],
                    eps: float = NUMERICS['distance_epsilon']) -> np.ndarray:
    """``(sum(u_i w_i), sum(w_i))`` at every pixel centre of a ``size`` grid.

    Row 0 is the bottom row, matching a GL framebuffer read.
    """
    width, height = int(size[0]), int(size[1])
    xs = (np.arange(width) + 0.5) / width
    ys = (np.arange(height) + 0.5) / height
    gx, gy = np.meshgrid(xs, ys)
    pts = np.column_stack([gx.ravel(), gy.ravel()])
    suv = np.asarray(sample_uv, dtype=float).reshape(-1, 2)
    vals = np.asarray(values, dtype=float).ravel()
    acc = np.zeros((pts.shape[0], 2))
    for start in range(0, suv.shape[0], _CHUNK):
        w = _weights(pts, suv[start:start + _CHUNK], p, eps)
        acc[:, 0] += w @ vals[start:start + _CHUNK]
        acc[:, 1] += w.sum(axis=1)
    return acc.reshape(height, width, 2)


def resolve(acc, weight_eps: float = NUMERICS['weight_epsilon']) -> np.ndarray:
    """Divide weighted value by weight and clamp to [0, 1]."""
    a = np.asarray(acc, dtype=float)
    return np.clip(a[..., 0] / np.maximum(a[..., 1], weight_eps), 0.0, 1.0)
