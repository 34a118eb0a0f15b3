# -*- coding: utf-8 -*-

"""
idwheat/config.py

This module centralizes the tunable constants of the interpolated heatmap
layer. Keeping them in one place keeps the layer, the adaptive selector and
the demo viewer consistent.

Contents:
---------
1. LAYER_DEFAULTS:
   - Values used when the caller does not supply an option to the layer.

2. NUMERICS:
   - Epsilons of the IDW kernel and the constant used when every sample
     carries the same value.

3. ADAPTIVE_THRESHOLDS:
   - Table mapping the avg/max ratio of the sample values to an IDW power
     and a compute resolution factor. Rows are checked top to bottom; the
     first row whose test matches wins.

4. GL_REQUIREMENTS:
   - Minimum context version and extensions needed for float accumulation.

5. MERCATOR:
   - Constants of the default Web-Mercator projector.

Usage:
------
    from idwheat.config import LAYER_DEFAULTS, NUMERICS

    opacity = LAYER_DEFAULTS['opacity']

"""

# ───────────────────────────────────────────────────────────────────────────────
# 1) LAYER DEFAULTS
# ───────────────────────────────────────────────────────────────────────────────
LAYER_DEFAULTS = {
    'id': 'interpolate-heatmap',
    'opacity': 0.5,              # alpha of the coloured surface
    'p': 3.0,                    # IDW power exponent
    'resolution_factor': 0.3,    # compute buffer size / viewport size
    'debug': False,              # verbose per-frame events + GL error checks
    'matrix_fallback': 'identity',  # 'identity' or 'skip' for malformed matrices
}

# ───────────────────────────────────────────────────────────────────────────────
# 2) NUMERICS
# ───────────────────────────────────────────────────────────────────────────────
NUMERICS = {
    'distance_epsilon': 1e-4,    # lower bound of the normalized screen distance
    'weight_epsilon': 1e-6,      # lower bound of the weight sum in the resolve
    'degenerate_value': 1.0,     # normalized value when max == min
}

# ───────────────────────────────────────────────────────────────────────────────
# 3) ADAPTIVE PARAMETER TABLE
#    (test, threshold, p, resolution_factor)
# ───────────────────────────────────────────────────────────────────────────────
ADAPTIVE_THRESHOLDS = (
    ('lt', 0.2, 2.0, 0.4),       # sparse / low intensity
    ('gt', 0.6, 4.0, 0.6),       # concentrated / high intensity
    ('else', None, 3.0, 0.5),    # everything in [0.2, 0.6]
)

# ───────────────────────────────────────────────────────────────────────────────
# 4) GL REQUIREMENTS
# ───────────────────────────────────────────────────────────────────────────────
GL_REQUIREMENTS = {
    'min_version_code': 330,
    'glsl_version': '#version 330',
    # Desktop GL 3.3 renders and blends RG32F natively. GLES hosts should list
    # 'GL_EXT_color_buffer_float' and 'GL_EXT_float_blend' here.
    'required_extensions': (),
}

# ───────────────────────────────────────────────────────────────────────────────
# 5) WEB MERCATOR
# ───────────────────────────────────────────────────────────────────────────────
MERCATOR = {
    'earth_radius': 6378137.0,   # EPSG:3857 sphere radius (m)
    'max_latitude': 85.051129,   # latitude where the Mercator square ends
    'source_crs': 'EPSG:4326',
    'target_crs': 'EPSG:3857',
}
