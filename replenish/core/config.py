"""Service settings, read from the environment and an optional .env file.

Buffer policy constants live here so they can change per deployment
without code changes.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Replenishment service settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Database ===
    database_url: str = Field(
        "sqlite:///./replenish.db",
        description="Database URL (SQLite for dev/tests, Postgres in production)",
    )
    db_echo: bool = Field(False, description="Echo SQL statements to the log")

    # === Logging ===
    log_level: str = Field("INFO", description="Root log level")
    log_file_path: str | None = Field(
        None, description="JSON log file path (None disables file logging)"
    )

    # === HTTP ===
    api_key_header: str = Field("X-API-Key", description="Header carrying the org API key")
    app_environment: str = Field("production", description="Environment label for metrics")

    # === Sales aggregation ===
    rebuild_default_days: int = Field(90, description="Default rollup rebuild window (days)")
    warehouse_fallback: str = Field("GLOBAL", description="Warehouse id for unassigned sales")
    channel_fallback: str = Field("ALL", description="Channel for sales without a channel")

    # === Buffer policy ===
    buffer_lookback_days: int = Field(60, description="Demand lookback window (days)")
    buffer_factor: float = Field(1.2, description="Safety multiplier over lead-time coverage")
    buffer_red_fraction: float = Field(1 / 3, description="Red threshold as fraction of buffer")
    buffer_yellow_fraction: float = Field(
        2 / 3, description="Yellow threshold as fraction of buffer"
    )
    default_lead_time_days: float = Field(7.0, description="Lead time when no estimate exists")
    overstock_horizon_days: int = Field(30, description="Demand horizon for overstock check")
    overstock_ratio: float = Field(1.1, description="On-hand / horizon demand overstock ratio")
    segment_a_min_demand: float = Field(20.0, description="Avg daily demand for segment A")
    segment_b_min_demand: float = Field(10.0, description="Avg daily demand for segment B")

    # === Recommendations ===
    recommendations_page_size: int = Field(50, description="Default page size")
    recommendations_max_page_size: int = Field(200, description="Maximum page size")
    read_timeout_ms: int = Field(0, description="Default read statement timeout (0=none)")

    # === KPI ===
    kpi_default_window_days: int = Field(30, description="Default KPI window (days)")


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, validated once.

    Raises:
        RuntimeError: naming every invalid variable

    """
    try:
        return Settings()
    except ValidationError as e:
        bad = sorted({str(err["loc"][0]).upper() for err in e.errors() if err["loc"]})
        raise RuntimeError(f"Invalid replenish settings: {', '.join(bad)}") from e


__all__ = ["Settings", "get_settings"]
