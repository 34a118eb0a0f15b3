"""Adaptive choice of IDW power and compute resolution.

The choice depends on how concentrated the data is: ``avg / max`` of the
raw values. Low ratios (a few hot spots over a quiet field) get a gentle
falloff and a coarse compute buffer; high ratios get a sharp falloff and a
finer buffer so peaks stay local.
"""

from typing import NamedTuple, Sequence
import logging

import numpy as np

from idwheat.config import ADAPTIVE_THRESHOLDS

logger = logging.getLogger(__name__)


class AdaptiveParameters(NamedTuple):
    p: float
    resolution_factor: float
    avg_ratio: float


def average_ratio(values) -> float:
    """``mean(values) / max(values)``; 0.0 when the maximum is zero."""
    vals = np.asarray(values, dtype=float).ravel()
    if vals.size == 0:
        raise ValueError('average_ratio needs at least one value')
    max_value = float(vals.max())
    if max_value == 0.0:
        return 0.0
    return float(vals.mean()) / max_value


class ThresholdStrategy:
    """Pick parameters from an ordered threshold table.

    Each row is ``(test, threshold, p, resolution_factor)`` with ``test`` one
    of ``'lt'``, ``'le'``, ``'gt'``, ``'ge'`` or ``'else'``. The first
    matching row wins. With the default table a ratio of exactly 0.6 falls
    through to the ``'else'`` row (p=3, factor 0.5).
    """

    _TESTS = {
        'lt': lambda r, t: r < t,
        'le': lambda r, t: r <= t,
        'gt': lambda r, t: r > t,
        'ge': lambda r, t: r >= t,
        'else': lambda r, t: True,
    }

    def __init__(self, table: Sequence[tuple] = ADAPTIVE_THRESHOLDS):
        rows = list(table)
        if not rows:
            raise ValueError('threshold table is empty')
        for row in rows:
            if row[0] not in self._TESTS:
                raise ValueError(f"unknown threshold test {row[0]!r}")
        if rows[-1][0] != 'else':
            raise ValueError("threshold table must end with an 'else' row")
        self.table = tuple(rows)

    def for_ratio(self, ratio: float) -> AdaptiveParameters:
        for test, threshold, p, factor in self.table:
            if self._TESTS[test](ratio, threshold):
                return AdaptiveParameters(float(p), float(factor), float(ratio))
        raise AssertionError('unreachable: table ends with else')

    def __call__(self, values) -> AdaptiveParameters:
        return self.for_ratio(average_ratio(values))


DEFAULT_STRATEGY = ThresholdStrategy()


def select_parameters(values, strategy=None) -> AdaptiveParameters:
    """Return ``(p, resolution_factor, avg_ratio)`` for the raw ``values``.

    ``strategy`` is any callable taking the values and returning
    `AdaptiveParameters`; defaults to the threshold table in config.
    """
    chooser = strategy if strategy is not None else DEFAULT_STRATEGY
    params = chooser(values)
    logger.debug('adaptive parameters: p=%s factor=%s avg_ratio=%.4f',
                 params.p, params.resolution_factor, params.avg_ratio)
    return params
