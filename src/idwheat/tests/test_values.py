import numpy as np
import pytest

from idwheat.errors import InvalidSampleError
from idwheat.values import SampleSet, ValueRange, normalize_values, read_samples, value_range


def _identity_projector(lon, lat):
    return np.asarray(lon, dtype=float), np.asarray(lat, dtype=float)


def test_value_range_from_data():
    vr = value_range([3.0, -1.0, 7.5])
    assert vr == ValueRange(-1.0, 7.5)
    assert vr.span == 8.5
    assert not vr.degenerate


def test_override_only_widens():
    vr = value_range([10.0, 20.0], override_min=15.0, override_max=18.0)
    assert vr == ValueRange(10.0, 20.0)
    vr = value_range([10.0, 20.0], override_min=0.0, override_max=100.0)
    assert vr == ValueRange(0.0, 100.0)


def test_non_finite_override_ignored():
    vr = value_range([1.0, 2.0], override_min=float('inf'), override_max=float('-inf'))
    assert vr == ValueRange(1.0, 2.0)


def test_empty_values_give_zero_range():
    assert value_range([]) == ValueRange(0.0, 0.0)
    assert value_range([], override_max=5.0) == ValueRange(5.0, 5.0)


def test_normalized_values_span_unit_interval():
    vals = np.array([4.0, 9.0, 1.0, 6.5, 1.0])
    vr = value_range(vals)
    norm = normalize_values(vals, vr)
    assert norm.min() >= 0.0 and norm.max() <= 1.0
    assert np.isclose(norm[np.argmax(vals)], 1.0)
    assert np.isclose(norm[np.argmin(vals)], 0.0)


def test_normalize_with_widened_range():
    norm = normalize_values([5.0], ValueRange(0.0, 10.0))
    assert np.isclose(norm[0], 0.5)


def test_degenerate_range_uses_constant():
    vals = [42.0, 42.0, 42.0]
    norm = normalize_values(vals, value_range(vals))
    assert np.all(norm == 1.0)
    assert not np.isnan(norm).any()


def test_single_sample_normalizes_to_constant():
    norm = normalize_values([100.0], value_range([100.0]))
    assert norm.tolist() == [1.0]


def test_read_samples_accepts_mappings_and_triples():
    lat, lon, val = read_samples([{'lat': 1, 'lon': 2, 'val': 3}, (4.0, 5.0, 6.0)])
    assert lat.tolist() == [1.0, 4.0]
    assert lon.tolist() == [2.0, 5.0]
    assert val.tolist() == [3.0, 6.0]


@pytest.mark.parametrize('row', [
    {'lat': 1, 'lon': 2},
    (1.0, 2.0),
    {'lat': 'north', 'lon': 2, 'val': 1},
    (1.0, 2.0, float('nan')),
    'not-a-row',
])
def test_read_samples_rejects_bad_rows(row):
    with pytest.raises(InvalidSampleError):
        read_samples([row])


def test_sample_set_is_read_only():
    ss = SampleSet.build([(0.0, 0.0, 1.0), (1.0, 1.0, 3.0)], _identity_projector)
    assert len(ss) == 2
    assert ss.positions.shape == (2, 2)
    with pytest.raises(ValueError):
        ss.normalized_values[0] = 0.3
    assert list(ss) == [(0.0, 0.0, 0.0), (1.0, 1.0, 1.0)]


def test_sample_set_uses_projector_lon_lat_order():
    ss = SampleSet.build([{'lat': 10.0, 'lon': 20.0, 'val': 1.0}], _identity_projector)
    assert ss.positions[0].tolist() == [20.0, 10.0]


def test_sample_set_empty():
    ss = SampleSet.build([], _identity_projector)
    assert len(ss) == 0
    assert ss.positions.shape == (0, 2)
