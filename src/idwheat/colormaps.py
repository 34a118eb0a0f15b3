"""
colormaps.py

Color transfer functions: a GLSL ``vec3 value_to_color(float)`` source for
the draw pass paired with a numpy equivalent for probes and tests.

Built-ins:
- `THREE_BAND` : blue -> green -> red hue ramp (default)
- `BUSYNESS` : three-step ramp used for foot-traffic data
- `VIRIDIS` : polynomial viridis approximation

Custom functions are plain `ColorTransfer` instances. The numpy side is
optional for custom maps; without it `ColorTransfer.rgb` raises.
"""

from typing import Callable, NamedTuple, Optional

import numpy as np


class ColorTransfer(NamedTuple):
    name: str
    glsl: str
    numpy_fn: Optional[Callable[[np.ndarray], np.ndarray]] = None

    def rgb(self, u) -> np.ndarray:
        """Evaluate on clamped ``u``; returns ``u.shape + (3,)`` floats in [0, 1]."""
        if self.numpy_fn is None:
            raise NotImplementedError(f"color transfer {self.name!r} has no numpy counterpart")
        u = np.clip(np.asarray(u, dtype=float), 0.0, 1.0)
        return np.clip(self.numpy_fn(u), 0.0, 1.0)


def _three_band(u):
    r = np.maximum((u - 0.5) * 2.0, 0.0)
    g = 1.0 - 2.0 * np.abs(u - 0.5)
    b = np.maximum((0.5 - u) * 2.0, 0.0)
    return np.stack([r, g, b], axis=-1)


THREE_BAND = ColorTransfer('three_band', """
vec3 value_to_color(float value) {
    return vec3(max((value - 0.5) * 2.0, 0.0), 1.0 - 2.0 * abs(value - 0.5), max((0.5 - value) * 2.0, 0.0));
}
""", _three_band)


def _busyness(u):
    low = np.stack([np.zeros_like(u), np.zeros_like(u), 1.0 - u], axis=-1)
    mid = np.stack([u * 2.0 - 0.6, np.ones_like(u), np.zeros_like(u)], axis=-1)
    high = np.stack([np.ones_like(u), 1.0 - u, np.zeros_like(u)], axis=-1)
    return np.where((u < 0.3)[..., None], low, np.where((u < 0.7)[..., None], mid, high))


BUSYNESS = ColorTransfer('busyness', """
vec3 value_to_color(float value) {
    if (value < 0.3) {
        return vec3(0.0, 0.0, 1.0 - value);
    } else if (value < 0.7) {
        return vec3(value * 2.0 - 0.6, 1.0, 0.0);
    }
    return vec3(1.0, 1.0 - value, 0.0);
}
""", _busyness)


def _viridis(t):
    r = 0.267 + 0.095 * t - 0.024 * t ** 2 + 0.554 * t ** 3
    g = 0.005 + 0.380 * t + 0.800 * t ** 2 - 0.185 * t ** 3
    b = 0.329 + 0.685 * t - 0.014 * t ** 2
    return np.stack([r, g, b], axis=-1)


VIRIDIS = ColorTransfer('viridis', """
vec3 value_to_color(float t) {
    float r = 0.267 + 0.095 * t - 0.024 * t * t + 0.554 * t * t * t;
    float g = 0.005 + 0.380 * t + 0.800 * t * t - 0.185 * t * t * t;
    float b = 0.329 + 0.685 * t - 0.014 * t * t;
    return clamp(vec3(r, g, b), 0.0, 1.0);
}
""", _viridis)

DEFAULT_OPACITY_GLSL = """
vec4 value_to_color4(float value, float default_opacity) {
    return vec4(value_to_color(value), default_opacity);
}
"""

COLORMAPS = {cm.name: cm for cm in (THREE_BAND, BUSYNESS, VIRIDIS)}


def get_colormap(colormap) -> ColorTransfer:
    """Resolve a name, a `ColorTransfer`, or a raw GLSL source string."""
    if colormap is None:
        return THREE_BAND
    if isinstance(colormap, ColorTransfer):
        return colormap
    if isinstance(colormap, str):
        if colormap in COLORMAPS:
            return COLORMAPS[colormap]
        if 'value_to_color' in colormap:
            return ColorTransfer('custom', colormap, None)
        raise KeyError(f"unknown colormap {colormap!r}; known: {sorted(COLORMAPS)}")
    raise TypeError(f"colormap must be a name, GLSL source or ColorTransfer, got {type(colormap).__name__}")

