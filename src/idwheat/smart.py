"""Build a heatmap layer from a foot-traffic FeatureCollection.

Each point feature contributes ``(lat, lon, properties[value_property])``;
a missing or null value counts as 0. The value distribution picks the IDW
power and compute resolution, and the data min/max become the explicit
value range.
"""

from typing import Any, List, Mapping
import logging

from idwheat.adaptive import select_parameters
from idwheat.colormaps import BUSYNESS
from idwheat.errors import InvalidSampleError
from idwheat.layer import InterpolateHeatmapLayer
from idwheat.values import read_samples

logger = logging.getLogger(__name__)

SMART_DEFAULTS = {
    'id': 'foot-traffic-heatmap',
    'opacity': 0.7,
    'colormap': BUSYNESS,
    'value_property': 'avg_busyness',
}


def features_to_samples(features: Mapping[str, Any], value_property: str = 'avg_busyness') -> List[dict]:
    """``[{'lat', 'lon', 'val'}, ...]`` from GeoJSON point features."""
    rows = []
    for i, feature in enumerate(features.get('features', ())):
        geometry = feature.get('geometry') or {}
        if geometry.get('type', 'Point') != 'Point':
            raise InvalidSampleError(f"feature {i} is a {geometry.get('type')}, expected Point")
        coords = geometry.get('coordinates')
        if coords is None or len(coords) < 2:
            raise InvalidSampleError(f'feature {i} has no coordinates')
        props = feature.get('properties') or {}
        val = props.get(value_property) or 0
        rows.append({'lat': coords[1], 'lon': coords[0], 'val': val})
    return rows


def smart_heatmap(features: Mapping[str, Any], **overrides) -> InterpolateHeatmapLayer:
    """Layer with adaptive p / resolution factor for ``features``.

    Keyword ``overrides`` are passed to `InterpolateHeatmapLayer` and win
    over the computed values.
    """
    opts = {k: v for k, v in SMART_DEFAULTS.items() if k != 'value_property'}
    value_property = overrides.pop('value_property', SMART_DEFAULTS['value_property'])
    data = features_to_samples(features, value_property)
    if not data:
        raise ValueError('smart_heatmap needs at least one point feature')
    values = read_samples(data)[2]
    params = select_parameters(values, overrides.pop('adaptive_strategy', None))
    opts.update(min_value=float(values.min()), max_value=float(values.max()),
                p=params.p, resolution_factor=params.resolution_factor)
    opts.update(overrides)
    logger.info('heatmap parameters: p=%s resolution_factor=%s min=%s max=%s avg=%.4f avg_ratio=%.4f',
                opts['p'], opts['resolution_factor'], opts['min_value'], opts['max_value'],
                float(values.mean()), params.avg_ratio)
    return InterpolateHeatmapLayer(data, **opts)
