"""Buffer engine: recalculates TOC buffers from rolling demand.

One run covers one (org, warehouse). All upserts of a run are written in one
transaction, so readers see either the previous or the new buffer generation.
SKUs without sales in the lookback window keep their existing buffer.
"""

from __future__ import annotations

import time
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from replenish.core.errors import InputValidationError
from replenish.core.logging import get_logger
from replenish.core.metrics import buffer_recalc_duration_seconds, buffers_updated_total
from replenish.db.models import Buffer
from replenish.db.utils import advisory_xact_lock, require_org_id, store_errors, upsert_rows
from replenish.domain.buffers.demand import lookback_window
from replenish.domain.buffers.policy import BufferPolicy
from replenish.domain.buffers.zones import compute_buffer
from replenish.services.demand_estimator import (
    load_daily_units,
    resolve_lead_times,
    summarize_demand,
)

log = get_logger("replenish.buffer_engine")

BUFFER_KEY = ("org_id", "sku", "warehouse_id")


def recalc_buffers(
    db: Session,
    org_id: str,
    warehouse_id: str,
    lookback_days: int = 60,
    *,
    as_of: date | None = None,
    policy: BufferPolicy | None = None,
) -> dict[str, int]:
    """Recompute buffers of every SKU that sold at the warehouse in the window.

    SKUs without units in the window keep whatever buffer they already have.

    buffer_qty = avg_daily_demand × lead_time_days × buffer_factor, with red and
    yellow thresholds at fixed fractions of it.

    Args:
        db: Database session
        org_id: Organization ID for scoping
        warehouse_id: Warehouse to recalculate
        lookback_days: Demand window in days
        as_of: Last day of the window (default today)
        policy: Buffer policy (default from settings)

    Returns:
        {"updated": number of buffers upserted}

    Raises:
        InputValidationError: On missing org/warehouse or a non-positive window
        TransientStoreError: If the store is unavailable (safe to retry)

    """
    org_id = require_org_id(org_id)
    if not warehouse_id:
        raise InputValidationError("warehouse_id is required")
    if lookback_days <= 0:
        raise InputValidationError("lookback_days must be > 0")

    policy = policy or BufferPolicy.from_settings()
    start, end = lookback_window(as_of or date.today(), lookback_days)
    started = time.perf_counter()

    with store_errors(db, "buffer_engine"):
        locked = advisory_xact_lock(db, "buffers", org_id, warehouse_id)

        units_by_sku = load_daily_units(db, org_id, warehouse_id, start, end)
        if not units_by_sku:
            db.commit()
            log.info(
                "buffers_recalc_skipped",
                extra={"org_id": org_id, "warehouse_id": warehouse_id, "reason": "no_demand"},
            )
            return {"updated": 0}

        lead_times = resolve_lead_times(db, org_id, warehouse_id, units_by_sku)

        rows = []
        for sku in sorted(units_by_sku):
            estimate = summarize_demand(sku, warehouse_id, units_by_sku[sku], start, end)
            # Rollup rows netting to zero units are dormant too; keep their buffer
            if estimate.total_units <= 0:
                continue
            lead_time_days, _source = lead_times[sku]
            levels = compute_buffer(estimate.avg_daily_demand, lead_time_days, policy)
            rows.append(
                {
                    "org_id": org_id,
                    "sku": sku,
                    "warehouse_id": warehouse_id,
                    "lead_time_days": lead_time_days,
                    "avg_daily_demand": estimate.avg_daily_demand,
                    "buffer_qty": levels.buffer_qty,
                    "red_th": levels.red_threshold,
                    "yellow_th": levels.yellow_threshold,
                }
            )

        updated = upsert_rows(db, Buffer, rows, BUFFER_KEY)
        db.commit()

    elapsed = time.perf_counter() - started
    buffers_updated_total.inc(updated)
    buffer_recalc_duration_seconds.observe(elapsed)
    log.info(
        "buffers_recalc_completed",
        extra={
            "org_id": org_id,
            "warehouse_id": warehouse_id,
            "updated": updated,
            "lookback_days": lookback_days,
            "advisory_lock": locked,
            "duration_ms": round(elapsed * 1000, 1),
        },
    )
    return {"updated": updated}


def list_buffers(db: Session, org_id: str, warehouse_id: str) -> list[Buffer]:
    """All buffers of a warehouse ordered by SKU."""
    org_id = require_org_id(org_id)
    stmt = (
        select(Buffer)
        .where(Buffer.org_id == org_id, Buffer.warehouse_id == warehouse_id)
        .order_by(Buffer.sku)
    )
    return list(db.scalars(stmt))


def list_buffers_page(
    db: Session,
    org_id: str,
    warehouse_id: str,
    offset: int = 0,
    limit: int = 50,
    sku: str | None = None,
) -> tuple[list[Buffer], int]:
    """One page of a warehouse's buffers ordered by SKU, with the total count."""
    org_id = require_org_id(org_id)
    if offset < 0 or limit <= 0:
        raise InputValidationError("offset must be >= 0 and limit > 0")

    scope = [Buffer.org_id == org_id, Buffer.warehouse_id == warehouse_id]
    if sku:
        scope.append(Buffer.sku == sku)
    total = db.scalar(select(func.count()).select_from(Buffer).where(*scope)) or 0
    items = list(
        db.scalars(select(Buffer).where(*scope).order_by(Buffer.sku).offset(offset).limit(limit))
    )
    return items, int(total)
