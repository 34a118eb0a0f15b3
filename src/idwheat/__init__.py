"""Inverse-distance-weighted heatmap layer for moderngl hosts."""

from idwheat.adaptive import AdaptiveParameters, ThresholdStrategy, select_parameters
from idwheat.colormaps import BUSYNESS, THREE_BAND, VIRIDIS, ColorTransfer, get_colormap
from idwheat.diagnostics import LoggingSink, RecordingSink
from idwheat.errors import (CapabilityError, HeatmapError, InvalidSampleError, LayerStateError,
                            ResourceLookupError, ShaderBuildError)
from idwheat.host import HostSurface, OffscreenSurface
from idwheat.layer import InterpolateHeatmapLayer, InterpolationConfig, LayerState
from idwheat.projection import ortho_matrix, web_mercator
from idwheat.smart import smart_heatmap
from idwheat.triangulate import triangulate
from idwheat.values import SampleSet, ValueRange, normalize_values, value_range

__version__ = '0.1.0'
