import logging

import pytest

from idwheat.colormaps import BUSYNESS, VIRIDIS
from idwheat.errors import InvalidSampleError
from idwheat.smart import features_to_samples, smart_heatmap


def _feature(lon, lat, **props):
    return {'type': 'Feature', 'geometry': {'type': 'Point', 'coordinates': [lon, lat]},
            'properties': props}


def _collection(values):
    return {'type': 'FeatureCollection',
            'features': [_feature(-74.0 + 0.01 * i, 40.7, avg_busyness=v) for i, v in enumerate(values)]}


def test_features_to_samples_reads_points():
    rows = features_to_samples({'features': [_feature(-74.0, 40.7, avg_busyness=12),
                                              _feature(-73.9, 40.8, avg_busyness=None),
                                              _feature(-73.8, 40.9)]})
    assert rows == [{'lat': 40.7, 'lon': -74.0, 'val': 12},
                    {'lat': 40.8, 'lon': -73.9, 'val': 0},
                    {'lat': 40.9, 'lon': -73.8, 'val': 0}]


def test_features_to_samples_other_property():
    rows = features_to_samples({'features': [_feature(1.0, 2.0, visits=3)]}, 'visits')
    assert rows[0]['val'] == 3


def test_non_point_feature_rejected():
    line = {'geometry': {'type': 'LineString', 'coordinates': [[0, 0], [1, 1]]}, 'properties': {}}
    with pytest.raises(InvalidSampleError):
        features_to_samples({'features': [line]})


def test_smart_heatmap_defaults(caplog):
    with caplog.at_level(logging.INFO, logger='idwheat.smart'):
        layer = smart_heatmap(_collection([1, 1, 1, 1, 100]))
    assert layer.id == 'foot-traffic-heatmap'
    assert layer.config.opacity == 0.7
    assert layer.config.color_transfer is BUSYNESS
    # avg 20.8 / max 100 -> middle band
    assert (layer.config.p, layer.config.resolution_factor) == (3.0, 0.5)
    assert (layer.min_value, layer.max_value) == (1.0, 100.0)
    assert 'heatmap parameters' in caplog.text


def test_smart_heatmap_concentrated_data():
    layer = smart_heatmap(_collection([0, 0, 0, 0, 0, 0, 0, 0, 0, 50]))
    assert (layer.config.p, layer.config.resolution_factor) == (2.0, 0.4)


def test_smart_heatmap_uniform_data():
    layer = smart_heatmap(_collection([5, 5, 5]))
    assert (layer.config.p, layer.config.resolution_factor) == (4.0, 0.6)


def test_overrides_win():
    layer = smart_heatmap(_collection([1, 2, 3]), opacity=0.3, p=6.0, colormap='viridis', id='custom')
    assert layer.config.opacity == 0.3
    assert layer.config.p == 6.0
    assert layer.config.color_transfer is VIRIDIS
    assert layer.id == 'custom'


def test_empty_collection_rejected():
    with pytest.raises(ValueError):
        smart_heatmap({'type': 'FeatureCollection', 'features': []})
