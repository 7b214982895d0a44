"""Per-SKU inventory KPIs.

NO DATA ACCESS - pure functions only. Data access happens in services layer.
"""

from __future__ import annotations

import math
from datetime import date

from replenish.domain.buffers.zones import round_to


def days_of_supply(on_hand: float, avg_daily_demand: float) -> float | None:
    """Days until stockout at the current demand rate; None without demand.

    Examples:
        >>> days_of_supply(100, 4)
        25.0
        >>> days_of_supply(100, 0) is None
        True
    """
    if avg_daily_demand <= 0:
        return None
    return on_hand / avg_daily_demand


def inventory_turns(total_units: float, window_days: int, on_hand: float) -> float:
    """Annualized turns: (units per day × 365) / on_hand; 0 without stock.

    Examples:
        >>> inventory_turns(300, 30, 100)
        36.5
        >>> inventory_turns(300, 30, 0)
        0.0
    """
    if on_hand <= 0:
        return 0.0
    daily_units = total_units / window_days if window_days > 0 else 0.0
    return daily_units * 365 / on_hand


def median_days_to_sell(turns: float, dos: float | None) -> int | None:
    """Days to sell through, from turns when available else from days of supply.

    Examples:
        >>> median_days_to_sell(36.5, 10.0)
        10
        >>> median_days_to_sell(0, 12.4)
        12
        >>> median_days_to_sell(0, None) is None
        True
    """
    if turns > 0:
        return int(round_to(365 / turns, 0))
    if dos:
        return int(round_to(dos, 0))
    return None


def fefo_risk(min_expiry: date | None, dos: float | None, today: date) -> bool:
    """True when the earliest batch expires before stock is projected to sell through.

    Examples:
        >>> fefo_risk(date(2024, 1, 10), 20.0, date(2024, 1, 1))
        True
        >>> fefo_risk(date(2024, 3, 1), 20.0, date(2024, 1, 1))
        False
    """
    if min_expiry is None or not dos:
        return False
    return (min_expiry - today).days < math.ceil(dos)
