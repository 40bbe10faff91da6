from __future__ import annotations

import math
from statistics import mean, pstdev
from typing import Iterable, Optional, Sequence


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    # Half-way values round toward +inf (2.5 -> 3, -2.5 -> -2).
    return int(math.floor(x + 0.5))


def safe_mean(values: Iterable[float]) -> float:
    vals = list(values)
    if not vals:
        return 0.0
    return mean(vals)


def population_stddev(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    return pstdev(values)


def coefficient_of_variation(values: Sequence[float]) -> Optional[float]:
    avg = safe_mean(values)
    if avg <= 0:
        return None
    return population_stddev(values) / avg


def ratio(numerator: float, denominator: float) -> Optional[float]:
    """numerator / denominator, or None when the denominator is not positive."""
    if denominator is None or denominator <= 0:
        return None
    return numerator / denominator


def pct_change(current: float, baseline: float) -> Optional[float]:
    if baseline is None or baseline <= 0:
        return None
    return (current - baseline) / baseline


def percent(value: Optional[float]) -> int:
    if value is None:
        return 0
    return round_half_up(value * 100)
