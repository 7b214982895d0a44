"""Explainability for buffer recommendations."""

from __future__ import annotations

import hashlib


def generate_explanation(
    sku: str,
    warehouse_id: str,
    zone: str,
    avg_daily_demand: float,
    lead_time_days: float,
    buffer_qty: float,
    on_hand: float,
    inbound: float,
    suggested_qty: int,
) -> str:
    """Generate human-readable explanation for a recommendation.

    Examples:
        >>> generate_explanation("X", "W1", "red", 10, 7, 84, 20, 0, 64)
        'X @ W1: demand=10.00/day, LT=7.0d, buffer=84.0, on hand=20.0, inbound=0.0, zone=red → order 64'
    """
    return (
        f"{sku} @ {warehouse_id}: demand={avg_daily_demand:.2f}/day, "
        f"LT={lead_time_days:.1f}d, buffer={buffer_qty:.1f}, on hand={on_hand:.1f}, "
        f"inbound={inbound:.1f}, zone={zone} → order {suggested_qty}"
    )


def generate_hash(explanation: str) -> str:
    """Deterministic SHA256 of an explanation, to detect changed recommendations."""
    return hashlib.sha256(explanation.encode("utf-8")).hexdigest()
