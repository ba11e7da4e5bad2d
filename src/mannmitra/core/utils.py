"""
Numerical helpers shared by the scoring and adjustment engines.

Pure numpy, no state.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def clamp(x: float, low: float, high: float) -> float:
    """Clamp a scalar into [low, high]."""
    return float(np.clip(x, low, high))


def mean(values: Sequence[float], default: float = 0.0) -> float:
    """Arithmetic mean, or `default` for an empty sequence."""
    if len(values) == 0:
        return default
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def variation(values: Sequence[float]) -> float:
    """
    Population standard deviation of a sample.

    Fewer than two values carry no spread information and return 0.
    """
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=np.float64)))


def scale_floor(n: int, factor: float, minimum: int = 1) -> int:
    """floor(n * factor), never below `minimum`."""
    return max(minimum, int(math.floor(round(n * factor, 9))))


def scale_ceil(n: int, factor: float, minimum: int = 1) -> int:
    """ceil(n * factor), never below `minimum`."""
    # round() first so 5 * 1.2 stays 6 instead of ceil(6.000000000000001)
    return max(minimum, int(math.ceil(round(n * factor, 9))))
