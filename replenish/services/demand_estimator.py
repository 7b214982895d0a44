"""Demand and lead-time estimation from stored rollups and reference data."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from replenish.core.config import get_settings
from replenish.core.dates import as_date
from replenish.db.models import (
    Buffer,
    LeadTimeStat,
    PurchaseOrder,
    PurchaseOrderLine,
    SalesDaily,
    Supplier,
)
from replenish.db.utils import chunked, require_org_id
from replenish.domain.buffers.demand import (
    demand_variability,
    lookback_window,
    mean_daily_demand,
    median,
    zero_filled_series,
)

LEAD_TIME_SOURCES = ("buffer", "lead_time_stats", "supplier_default", "fallback")


@dataclass
class DemandEstimate:
    """Rolling demand of one SKU at one warehouse."""

    sku: str
    warehouse_id: str
    start_date: date
    end_date: date
    avg_daily_demand: float
    variability: float | None
    total_units: float
    has_history: bool
    series: list[float] = field(default_factory=list, repr=False)


def load_daily_units(
    db: Session,
    org_id: str,
    warehouse_id: str,
    start: date,
    end: date,
    sku: str | None = None,
) -> dict[str, dict[date, float]]:
    """Daily units per SKU (summed across channels) within [start, end].

    Only days with rollup rows are present; callers zero-fill.
    """
    day_units = func.sum(SalesDaily.units)
    stmt = (
        select(SalesDaily.sku, SalesDaily.date, day_units.label("units"))
        .where(
            SalesDaily.org_id == org_id,
            SalesDaily.warehouse_id == warehouse_id,
            SalesDaily.date >= start,
            SalesDaily.date <= end,
        )
        .group_by(SalesDaily.sku, SalesDaily.date)
    )
    if sku is not None:
        stmt = stmt.where(SalesDaily.sku == sku)

    by_sku: dict[str, dict[date, float]] = defaultdict(dict)
    for row in db.execute(stmt):
        by_sku[row.sku][as_date(row.date)] = float(row.units or 0)
    return dict(by_sku)


def summarize_demand(
    sku: str,
    warehouse_id: str,
    units_by_day: dict[date, float],
    start: date,
    end: date,
) -> DemandEstimate:
    """Zero-fill a SKU's daily units over the window and compute its statistics."""
    series = zero_filled_series(units_by_day, start, end)
    return DemandEstimate(
        sku=sku,
        warehouse_id=warehouse_id,
        start_date=start,
        end_date=end,
        avg_daily_demand=mean_daily_demand(series),
        variability=demand_variability(series),
        total_units=sum(series),
        has_history=bool(units_by_day),
        series=series,
    )


def estimate_demand(
    db: Session,
    org_id: str,
    sku: str,
    warehouse_id: str,
    lookback_days: int = 60,
    as_of: date | None = None,
) -> DemandEstimate:
    """Average daily demand and variability over the lookback window.

    Days inside the window without a rollup row count as zero sales. A SKU
    without any rollup row is dormant: avg 0, variability None.

    Args:
        db: Database session
        org_id: Organization ID for scoping
        sku: SKU code
        warehouse_id: Warehouse id (GLOBAL for unassigned sales)
        lookback_days: Window length in days
        as_of: Last day of the window (default today)

    Returns:
        DemandEstimate

    """
    org_id = require_org_id(org_id)
    start, end = lookback_window(as_of or date.today(), lookback_days)
    units = load_daily_units(db, org_id, warehouse_id, start, end, sku=sku)
    return summarize_demand(sku, warehouse_id, units.get(sku, {}), start, end)


def resolve_lead_times(
    db: Session,
    org_id: str,
    warehouse_id: str,
    skus: Iterable[str],
) -> dict[str, tuple[float, str]]:
    """Resolve lead time (days, source) for many SKUs of one warehouse.

    Order: stored buffer → median of lead_time_stats across suppliers →
    median default of suppliers linked to the SKU → configured fallback.
    """
    skus = list(dict.fromkeys(skus))
    fallback = float(get_settings().default_lead_time_days)
    resolved: dict[str, tuple[float, str]] = {}
    if not skus:
        return resolved

    for part in chunked(skus):
        stored = db.execute(
            select(Buffer.sku, Buffer.lead_time_days).where(
                Buffer.org_id == org_id,
                Buffer.warehouse_id == warehouse_id,
                Buffer.sku.in_(part),
                Buffer.lead_time_days > 0,
            )
        )
        for sku, days in stored:
            resolved[sku] = (float(days), "buffer")

    pending = [s for s in skus if s not in resolved]
    stat_values: dict[str, list[float]] = defaultdict(list)
    for part in chunked(pending):
        stats = db.execute(
            select(LeadTimeStat.sku, LeadTimeStat.lead_time_days_median).where(
                LeadTimeStat.org_id == org_id,
                LeadTimeStat.sku.in_(part),
                LeadTimeStat.lead_time_days_median > 0,
            )
        )
        for sku, days in stats:
            stat_values[sku].append(float(days))
    for sku, values in stat_values.items():
        resolved[sku] = (float(median(values)), "lead_time_stats")

    pending = [s for s in skus if s not in resolved]
    supplier_values: dict[str, dict[str, float]] = defaultdict(dict)
    for part in chunked(pending):
        via_stats = (
            select(LeadTimeStat.sku, Supplier.id, Supplier.lead_time_days_default)
            .join(
                Supplier,
                (Supplier.id == LeadTimeStat.supplier_id) & (Supplier.org_id == org_id),
            )
            .where(LeadTimeStat.org_id == org_id, LeadTimeStat.sku.in_(part))
        )
        via_orders = (
            select(PurchaseOrderLine.sku, Supplier.id, Supplier.lead_time_days_default)
            .join(
                PurchaseOrder,
                (PurchaseOrder.org_id == PurchaseOrderLine.org_id)
                & (PurchaseOrder.po_id == PurchaseOrderLine.po_id),
            )
            .join(
                Supplier,
                (Supplier.id == PurchaseOrder.supplier_id) & (Supplier.org_id == org_id),
            )
            .where(PurchaseOrderLine.org_id == org_id, PurchaseOrderLine.sku.in_(part))
        )
        for stmt in (via_stats, via_orders):
            for sku, supplier_id, days in db.execute(stmt):
                if days is not None and days > 0:
                    supplier_values[sku][supplier_id] = float(days)
    for sku, by_supplier in supplier_values.items():
        resolved[sku] = (float(median(by_supplier.values())), "supplier_default")

    for sku in skus:
        resolved.setdefault(sku, (fallback, "fallback"))
    return resolved


def resolve_lead_time(
    db: Session,
    org_id: str,
    sku: str,
    warehouse_id: str,
) -> tuple[float, str]:
    """Resolve the lead time of one SKU at one warehouse.

    Returns:
        (days, source) where source is buffer, lead_time_stats,
        supplier_default or fallback

    """
    org_id = require_org_id(org_id)
    return resolve_lead_times(db, org_id, warehouse_id, [sku])[sku]
