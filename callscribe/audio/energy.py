"""
Energy and zero-crossing rate of a sample window.

Mean absolute value is used everywhere (live and batch) so thresholds stay
comparable between the two paths.
"""
from __future__ import annotations

from typing import Iterable

import numpy as np


def _as_array(samples: Iterable[float] | np.ndarray) -> np.ndarray:
    if isinstance(samples, np.ndarray):
        return samples.astype(np.float64, copy=False).ravel()
    return np.fromiter(samples, dtype=np.float64)


def compute_energy(samples: Iterable[float] | np.ndarray) -> float:
    """Mean absolute amplitude. Empty window -> 0.0."""
    x = _as_array(samples)
    if x.size == 0:
        return 0.0
    return float(np.mean(np.abs(x)))


def zero_crossing_rate(samples: Iterable[float] | np.ndarray) -> float:
    """Fraction of adjacent pairs whose sign (x >= 0) differs, over window length."""
    x = _as_array(samples)
    if x.size < 2:
        return 0.0
    signs = x >= 0
    crossings = int(np.count_nonzero(signs[1:] != signs[:-1]))
    return crossings / x.size
