"""Per-SKU KPI service: days of supply, turns, sell-through and FEFO risk."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from replenish.core.config import get_settings
from replenish.core.dates import parse_date
from replenish.core.errors import InputValidationError
from replenish.core.logging import get_logger
from replenish.db.models import SalesDaily
from replenish.db.utils import apply_read_timeout, require_org_id, store_errors
from replenish.domain.buffers.kpi import (
    days_of_supply,
    fefo_risk,
    inventory_turns,
    median_days_to_sell,
)
from replenish.services.stock_positions import stock_level

log = get_logger("replenish.kpi")


def get_sku_kpi(
    db: Session,
    org_id: str,
    sku: str,
    warehouse_id: str | None = None,
    date_from: str | date | None = None,
    date_to: str | date | None = None,
    *,
    today: date | None = None,
    timeout_ms: int | None = None,
) -> dict[str, Any]:
    """Inventory KPIs of one SKU over a date window.

    Average demand is total units over the window length (days without
    sales count as zero). On-hand and earliest expiry come from the latest
    snapshot date of the SKU.

    Args:
        db: Database session
        org_id: Organization ID for scoping
        sku: SKU code
        warehouse_id: Warehouse (default GLOBAL)
        date_from: First day (default today - 30 days)
        date_to: Last day (default today)
        today: Override for the current date (tests)
        timeout_ms: Statement timeout for the reads (PostgreSQL)

    Returns:
        {"sku", "from", "to", "warehouse_id", "metrics": {...}}

    """
    settings = get_settings()
    org_id = require_org_id(org_id)
    if not sku:
        raise InputValidationError("sku is required")
    today = today or date.today()
    warehouse = warehouse_id or settings.warehouse_fallback
    end = parse_date(date_to, "to") or today
    window = timedelta(days=settings.kpi_default_window_days)
    start = parse_date(date_from, "from") or today - window
    if start > end:
        raise InputValidationError(f"from ({start}) must not be after to ({end})")
    window_days = max(1, (end - start).days + 1)

    with store_errors(db, "kpi"):
        apply_read_timeout(db, timeout_ms if timeout_ms is not None else settings.read_timeout_ms)
        total_units = db.scalar(
            select(func.coalesce(func.sum(SalesDaily.units), 0)).where(
                SalesDaily.org_id == org_id,
                SalesDaily.sku == sku,
                SalesDaily.warehouse_id == warehouse,
                SalesDaily.date >= start,
                SalesDaily.date <= end,
            )
        )
        level = stock_level(db, org_id, warehouse, sku)

    total_units = float(total_units or 0)
    avg_daily_demand = total_units / window_days
    on_hand = level.qty_on_hand if level else 0.0
    min_expiry = level.min_expiry if level else None

    dos = days_of_supply(on_hand, avg_daily_demand)
    turns = inventory_turns(total_units, window_days, on_hand)
    metrics = {
        "dos": dos,
        "turns": turns,
        "median_days_to_sell": median_days_to_sell(turns, dos),
        "fefo_risk": fefo_risk(min_expiry, dos, today),
        "on_hand": on_hand,
        "avg_daily_demand": avg_daily_demand,
        "total_units": total_units,
        "window_days": window_days,
        "min_expiry": min_expiry.isoformat() if min_expiry else None,
        "stock_date": level.date.isoformat() if level else None,
    }

    log.debug(
        "sku_kpi_computed",
        extra={"org_id": org_id, "sku": sku, "warehouse_id": warehouse, "window": window_days},
    )
    return {
        "sku": sku,
        "from": start.isoformat(),
        "to": end.isoformat(),
        "warehouse_id": warehouse,
        "metrics": metrics,
    }
