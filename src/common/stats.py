# ABOUTME: Small numeric helpers shared by both engines.
# ABOUTME: Provides half-up rounding, null-safe means, and interpolated percentiles.

from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

import numpy as np


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a dashboard would (2.5 -> 3), not banker's rounding."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    return int(round_half_up(value))


def mean(values: Iterable[Optional[float]]) -> float:
    """Mean of the non-null values, 0.0 when there are none."""
    present = [float(v) for v in values if v is not None]
    if not present:
        return 0.0
    return float(np.mean(present))


def percentile(values: Sequence[float], p: float) -> float:
    """
    Linear-interpolation percentile on zero-indexed ranks.

    index = p/100 * (n-1); the result interpolates between the floor and ceil
    ranks. Returns 0.0 for an empty sequence.
    """
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), p, method="linear"))
