"""TOC buffer sizing, zone classification and order suggestion.

Business logic for calculating:
- Buffer target and red/yellow thresholds
- Zone of on-hand stock
- Buffer penetration and suggested order quantity
- Overstock signal and demand segment

NO DATA ACCESS - pure functions only. Data access happens in services layer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

from replenish.domain.buffers.policy import DEFAULT_POLICY, BufferPolicy

Zone = Literal["red", "yellow", "green"]
Segment = Literal["A", "B", "C"]

ZONE_REASONS: dict[str, str] = {
    "red": "red zone: replenish urgently",
    "yellow": "yellow zone: plan an order",
    "green": "green zone: stock is healthy",
}


@dataclass(frozen=True)
class BufferLevels:
    """Target buffer and its zone thresholds."""

    buffer_qty: float
    red_threshold: float
    yellow_threshold: float


@dataclass(frozen=True)
class Overstock:
    """Overstock signal.

    ratio is on-hand over the overstock threshold (>1 when flagged);
    demand_ratio is on-hand over plain horizon demand.
    """

    ratio: float
    demand_ratio: float
    message: str


def compute_buffer(
    avg_daily_demand: float,
    lead_time_days: float,
    policy: BufferPolicy = DEFAULT_POLICY,
) -> BufferLevels:
    """Size the buffer: demand over lead time with safety headroom.

    buffer = avg_daily_demand × lead_time_days × buffer_factor
    red = buffer × red_fraction, yellow = buffer × yellow_fraction

    Examples:
        >>> levels = compute_buffer(10.0, 7.0)
        >>> round(levels.buffer_qty, 6), round(levels.red_threshold, 6)
        (84.0, 28.0)
    """
    buffer_qty = max(0.0, avg_daily_demand) * max(0.0, lead_time_days) * policy.buffer_factor
    return BufferLevels(
        buffer_qty=buffer_qty,
        red_threshold=buffer_qty * policy.red_fraction,
        yellow_threshold=buffer_qty * policy.yellow_fraction,
    )


def resolve_zone(on_hand: float, red_threshold: float, yellow_threshold: float) -> Zone:
    """Classify on-hand stock: ≤red → red, ≤yellow → yellow, else green.

    Examples:
        >>> resolve_zone(20, 33.3, 66.7)
        'red'
        >>> resolve_zone(50, 33.3, 66.7)
        'yellow'
        >>> resolve_zone(70, 33.3, 66.7)
        'green'
    """
    if on_hand <= red_threshold:
        return "red"
    if on_hand <= yellow_threshold:
        return "yellow"
    return "green"


def zone_from_penetration(
    penetration: float | None,
    policy: BufferPolicy = DEFAULT_POLICY,
) -> Zone | None:
    """Classify a buffer penetration by the policy fractions; None without a target.

    Examples:
        >>> zone_from_penetration(0.2), zone_from_penetration(0.5), zone_from_penetration(0.9)
        ('red', 'yellow', 'green')
    """
    if penetration is None:
        return None
    if penetration <= policy.red_fraction:
        return "red"
    if penetration <= policy.yellow_fraction:
        return "yellow"
    return "green"


def stock_position(on_hand: float, inbound: float = 0.0, reservations: float = 0.0) -> float:
    """On-hand plus inbound minus reservations."""
    return on_hand + inbound - reservations


def buffer_penetration(position: float, buffer_qty: float) -> float | None:
    """Stock position as a share of the buffer target; None for an empty buffer."""
    if buffer_qty <= 0:
        return None
    return position / buffer_qty


def suggested_order_qty(buffer_qty: float, position: float) -> int:
    """Whole units needed to refill the buffer, never negative.

    Examples:
        >>> suggested_order_qty(100, 20)
        80
        >>> suggested_order_qty(7.0, 2.5)
        5
        >>> suggested_order_qty(10, 400)
        0
    """
    order_raw = buffer_qty - position
    return max(0, math.ceil(order_raw))


def detect_overstock(
    on_hand: float,
    avg_daily_demand: float | None,
    policy: BufferPolicy = DEFAULT_POLICY,
) -> Overstock | None:
    """Flag on-hand above overstock_ratio × horizon demand.

    Examples:
        >>> detect_overstock(400, 10).ratio
        1.21
        >>> detect_overstock(330, 10) is None
        True
    """
    if not avg_daily_demand or avg_daily_demand <= 0:
        return None
    horizon_demand = avg_daily_demand * policy.overstock_horizon_days
    threshold = horizon_demand * policy.overstock_ratio
    if on_hand <= threshold:
        return None
    demand_ratio = on_hand / horizon_demand
    return Overstock(
        ratio=round_to(on_hand / threshold, 2),
        demand_ratio=round_to(demand_ratio, 2),
        message=(
            f"Stock ≈{round(demand_ratio * 100)}% of "
            f"{policy.overstock_horizon_days}-day demand"
        ),
    )


def classify_segment(avg_daily_demand: float, policy: BufferPolicy = DEFAULT_POLICY) -> Segment:
    """Display segment by demand rate: A (fast), B, C (slow).

    Examples:
        >>> classify_segment(25), classify_segment(10), classify_segment(3)
        ('A', 'B', 'C')
    """
    if avg_daily_demand >= policy.segment_a_min:
        return "A"
    if avg_daily_demand >= policy.segment_b_min:
        return "B"
    return "C"


def zone_reason(zone: Zone) -> str:
    """Human-readable reason for a zone."""
    return ZONE_REASONS[zone]


def round_to(value: float, precision: int = 1) -> float:
    """Round half away from zero to the given decimals.

    Examples:
        >>> round_to(2.25, 1), round_to(-2.25, 1)
        (2.3, -2.3)
    """
    factor = 10**precision
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value) if value else 0.0
