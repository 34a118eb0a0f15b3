"""
values.py

Sample storage and value normalization.

Samples are kept as a structure of arrays: one ``(N, 2)`` float32 array of
projected positions and two ``(N,)`` float32 arrays for raw and normalized
values. The arrays are made read-only once built.

Public API:
- `ValueRange` : immutable (min, max) pair.
- `value_range(values, override_min=None, override_max=None)` -> ValueRange
- `normalize_values(values, vrange)` -> ndarray in [0, 1]
- `read_samples(data)` -> (lat, lon, val) arrays
- `SampleSet.build(data, projector, min_value=None, max_value=None)`
"""

from typing import Any, Iterable, NamedTuple, Optional, Tuple
from collections.abc import Mapping
import logging
import math

import numpy as np

from idwheat.config import NUMERICS
from idwheat.errors import InvalidSampleError

logger = logging.getLogger(__name__)


class ValueRange(NamedTuple):
    min: float
    max: float

    @property
    def span(self) -> float:
        return self.max - self.min

    @property
    def degenerate(self) -> bool:
        return not (self.max > self.min)


def value_range(values, override_min: Optional[float] = None,
                override_max: Optional[float] = None) -> ValueRange:
    """Union of the data range and an optional caller override.

    The override can only widen the range: ``min(data_min, override_min)``
    and ``max(data_max, override_max)``. Non-finite overrides are ignored.
    With no data and no override the range is ``(0, 0)``.
    """
    vals = np.asarray(values, dtype=float).ravel()
    lo = float(vals.min()) if vals.size else math.inf
    hi = float(vals.max()) if vals.size else -math.inf
    if override_min is not None and math.isfinite(float(override_min)):
        lo = min(lo, float(override_min))
    if override_max is not None and math.isfinite(float(override_max)):
        hi = max(hi, float(override_max))
    if not math.isfinite(lo) and not math.isfinite(hi):
        return ValueRange(0.0, 0.0)
    if not math.isfinite(lo):
        lo = hi
    if not math.isfinite(hi):
        hi = lo
    return ValueRange(lo, hi)


def normalize_values(values, vrange: ValueRange,
                     degenerate_value: float = NUMERICS['degenerate_value']) -> np.ndarray:
    """Rescale ``values`` into [0, 1] using ``vrange``.

    When the range is degenerate (every value equal, or a single sample) all
    values map to ``degenerate_value`` instead of dividing by zero.
    """
    vals = np.asarray(values, dtype=float)
    if vrange.degenerate:
        return np.full(vals.shape, degenerate_value, dtype=np.float32)
    out = (vals - vrange.min) / vrange.span
    return out.astype(np.float32)


def _coerce_float(value, what):
    try:
        out = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidSampleError(f"{what} must be numeric, got {value!r}") from exc
    if not math.isfinite(out):
        raise InvalidSampleError(f"{what} must be finite, got {value!r}")
    return out


def read_samples(data: Iterable[Any]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Coerce sample rows into ``(lat, lon, val)`` float arrays.

    Rows may be mappings with ``lat``, ``lon`` and ``val`` keys, or
    ``(lat, lon, val)`` sequences.
    """
    lats, lons, vals = [], [], []
    for i, row in enumerate(data if data is not None else ()):
        if isinstance(row, Mapping):
            missing = {'lat', 'lon', 'val'} - set(row.keys())
            if missing:
                raise InvalidSampleError(f"sample {i} is missing keys {sorted(missing)}")
            lat, lon, val = row['lat'], row['lon'], row['val']
        elif isinstance(row, (list, tuple, np.ndarray)):
            if len(row) != 3:
                raise InvalidSampleError(f"sample {i} must be (lat, lon, val), got {len(row)} items")
            lat, lon, val = row
        else:
            raise InvalidSampleError(f"sample {i} must be a mapping or a (lat, lon, val) sequence")
        lats.append(_coerce_float(lat, f'sample {i} lat'))
        lons.append(_coerce_float(lon, f'sample {i} lon'))
        vals.append(_coerce_float(val, f'sample {i} val'))
    return (np.asarray(lats, dtype=float), np.asarray(lons, dtype=float),
            np.asarray(vals, dtype=float))


def _frozen(arr):
    arr = np.ascontiguousarray(arr)
    arr.setflags(write=False)
    return arr


class SampleSet:
    """Projected, normalized samples. Built once per layer at attach time."""

    def __init__(self, positions, raw_values, normalized_values, vrange: ValueRange):
        self.positions = _frozen(np.asarray(positions, dtype=np.float32).reshape(-1, 2))
        self.raw_values = _frozen(np.asarray(raw_values, dtype=np.float32).ravel())
        self.normalized_values = _frozen(np.asarray(normalized_values, dtype=np.float32).ravel())
        self.value_range = vrange
        if not (len(self.positions) == len(self.raw_values) == len(self.normalized_values)):
            raise InvalidSampleError('positions and values must have the same length')

    def __len__(self):
        return len(self.raw_values)

    def __iter__(self):
        for (x, y), v in zip(self.positions, self.normalized_values):
            yield float(x), float(y), float(v)

    @classmethod
    def build(cls, data, projector, min_value: Optional[float] = None,
              max_value: Optional[float] = None) -> 'SampleSet':
        lat, lon, val = read_samples(data)
        vrange = value_range(val, min_value, max_value)
        norm = normalize_values(val, vrange)
        if len(val):
            xs, ys = projector(lon, lat)
            positions = np.column_stack([np.asarray(xs, dtype=float), np.asarray(ys, dtype=float)])
        else:
            positions = np.zeros((0, 2), dtype=np.float32)
        if vrange.degenerate and len(val):
            logger.debug('degenerate value range %s, using constant %s', vrange, NUMERICS['degenerate_value'])
        return cls(positions, val, norm, vrange)
