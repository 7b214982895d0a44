"""Demand statistics over daily unit series.

NO DATA ACCESS - pure functions only. Data access happens in services layer.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import date, timedelta


def lookback_window(as_of: date, lookback_days: int) -> tuple[date, date]:
    """Return the inclusive (start, end) dates of a lookback window.

    The window ends on as_of and spans exactly lookback_days calendar days.

    Examples:
        >>> lookback_window(date(2024, 3, 10), 3)
        (datetime.date(2024, 3, 8), datetime.date(2024, 3, 10))
    """
    if lookback_days <= 0:
        raise ValueError("lookback_days must be > 0")
    return as_of - timedelta(days=lookback_days - 1), as_of


def zero_filled_series(units_by_day: Mapping[date, float], start: date, end: date) -> list[float]:
    """Build a daily series from start to end (inclusive), 0 for days without sales.

    Examples:
        >>> zero_filled_series({date(2024, 1, 2): 5}, date(2024, 1, 1), date(2024, 1, 3))
        [0.0, 5.0, 0.0]
    """
    series: list[float] = []
    current = start
    while current <= end:
        series.append(float(units_by_day.get(current, 0.0) or 0.0))
        current += timedelta(days=1)
    return series


def mean_daily_demand(series: Iterable[float]) -> float:
    """Average daily units over the series (every day counts, including zeros).

    Examples:
        >>> mean_daily_demand([10, 0, 0, 10])
        5.0
        >>> mean_daily_demand([])
        0.0
    """
    values = list(series)
    if not values:
        return 0.0
    return sum(values) / float(len(values))


def demand_variability(series: Iterable[float]) -> float | None:
    """Coefficient of variation: population stdev / mean.

    Returns None when the mean is zero (dormant SKU).

    Examples:
        >>> demand_variability([5, 5, 5])
        0.0
        >>> demand_variability([0, 0]) is None
        True
    """
    values = list(series)
    mean = mean_daily_demand(values)
    if mean == 0:
        return None
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance) / mean


def median(values: Iterable[float]) -> float | None:
    """Median of values, None for an empty input.

    Examples:
        >>> median([7, 3, 5])
        5
        >>> median([4, 10])
        7.0
    """
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return None
    mid = n // 2
    if n % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2
