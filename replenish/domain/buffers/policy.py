"""Buffer policy parameters.

The fractions and multipliers are business policy, not algorithm constants,
so they travel as one value object that can differ per org or SKU.
"""

from __future__ import annotations

from dataclasses import dataclass

from replenish.core.config import Settings, get_settings


@dataclass(frozen=True)
class BufferPolicy:
    """TOC buffer sizing and classification policy."""

    buffer_factor: float = 1.2
    red_fraction: float = 1 / 3
    yellow_fraction: float = 2 / 3
    default_lead_time_days: float = 7.0
    overstock_horizon_days: int = 30
    overstock_ratio: float = 1.1
    segment_a_min: float = 20.0
    segment_b_min: float = 10.0

    def __post_init__(self) -> None:
        if self.buffer_factor < 0:
            raise ValueError("buffer_factor must be >= 0")
        if not 0 <= self.red_fraction <= self.yellow_fraction <= 1:
            raise ValueError("expected 0 <= red_fraction <= yellow_fraction <= 1")
        if self.overstock_horizon_days <= 0:
            raise ValueError("overstock_horizon_days must be > 0")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> BufferPolicy:
        """Build policy from application settings."""
        s = settings or get_settings()
        return cls(
            buffer_factor=s.buffer_factor,
            red_fraction=s.buffer_red_fraction,
            yellow_fraction=s.buffer_yellow_fraction,
            default_lead_time_days=s.default_lead_time_days,
            overstock_horizon_days=s.overstock_horizon_days,
            overstock_ratio=s.overstock_ratio,
            segment_a_min=s.segment_a_min_demand,
            segment_b_min=s.segment_b_min_demand,
        )


DEFAULT_POLICY = BufferPolicy()
