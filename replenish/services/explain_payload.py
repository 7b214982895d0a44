"""Explain payload: one structured snapshot of everything behind a SKU's buffer.

Read-only projection for human or automated explanation. It combines the
buffer, demand statistics, lead time, stock, inbound, order constraints and
the recent daily unit series.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from replenish.core.config import get_settings
from replenish.core.dates import parse_date
from replenish.core.errors import InputValidationError
from replenish.db.models import Buffer
from replenish.db.utils import require_org_id, store_errors
from replenish.domain.buffers.policy import BufferPolicy
from replenish.domain.buffers.zones import (
    buffer_penetration,
    classify_segment,
    round_to,
    stock_position,
    zone_from_penetration,
)
from replenish.services.demand_estimator import estimate_demand, resolve_lead_time
from replenish.services.stock_positions import (
    inbound_by_sku,
    latest_order_constraints,
    stock_level,
)


def build_explain_payload(
    db: Session,
    org_id: str,
    warehouse_id: str,
    sku: str,
    on_date: str | date | None = None,
    *,
    policy: BufferPolicy | None = None,
) -> dict[str, Any] | None:
    """Build the explain payload of a SKU at a warehouse.

    Uses the stored buffer when present, otherwise sizes one from the
    lookback estimate. The zone here comes from buffer penetration (stock
    position over target), not from on-hand alone.

    Returns:
        Payload dict, or None when there is no snapshot, no demand and no buffer

    """
    settings = get_settings()
    org_id = require_org_id(org_id)
    if not warehouse_id or not sku:
        raise InputValidationError("warehouse_id and sku are required")
    day = parse_date(on_date, "date") or date.today()
    policy = policy or BufferPolicy.from_settings(settings)
    lookback_days = settings.buffer_lookback_days

    with store_errors(db, "explain_payload"):
        buffer = db.scalars(
            select(Buffer).where(
                Buffer.org_id == org_id,
                Buffer.warehouse_id == warehouse_id,
                Buffer.sku == sku,
            )
        ).first()
        estimate = estimate_demand(db, org_id, sku, warehouse_id, lookback_days, as_of=day)
        lead_time_days, lead_time_source = resolve_lead_time(db, org_id, sku, warehouse_id)
        level = stock_level(db, org_id, warehouse_id, sku, on_date=day)
        inbound = inbound_by_sku(db, org_id, [sku]).get(sku, 0.0)
        constraints = latest_order_constraints(db, org_id, sku)

    if buffer is not None:
        avg_daily_demand = float(buffer.avg_daily_demand or 0)
        buffer_qty = float(buffer.buffer_qty or 0)
        coverage = avg_daily_demand * lead_time_days
        buffer_factor = buffer_qty / coverage if coverage > 0 else policy.buffer_factor
    else:
        avg_daily_demand = estimate.avg_daily_demand
        buffer_factor = policy.buffer_factor
        buffer_qty = avg_daily_demand * lead_time_days * buffer_factor

    if level is None and avg_daily_demand == 0 and buffer_qty == 0:
        return None

    on_hand = level.qty_on_hand if level else 0.0
    reservations = 0.0
    position = stock_position(on_hand, inbound, reservations)
    penetration = buffer_penetration(position, buffer_qty)
    variability = estimate.variability

    return {
        "sku": sku,
        "warehouse_id": warehouse_id,
        "date": day.isoformat(),
        "stock_date": level.date.isoformat() if level else None,
        "zone": zone_from_penetration(penetration, policy),
        "avg_daily_demand": round_to(avg_daily_demand, 2),
        "demand_variability": round_to(variability, 2) if variability is not None else None,
        "lead_time_days": round_to(lead_time_days, 2),
        "lead_time_source": lead_time_source,
        "lt_variability": None,
        "buffer_factor": round_to(buffer_factor, 2),
        "buffer_qty": round_to(buffer_qty),
        "on_hand": round_to(on_hand),
        "inbound": round_to(inbound),
        "reservations": reservations,
        "order_raw": round_to(buffer_qty - position),
        "buffer_penetration": round_to(penetration, 2) if penetration is not None else None,
        "order_constraints": constraints,
        "context": {
            "segment": classify_segment(avg_daily_demand, policy),
            "has_buffer": buffer is not None,
            "dormant": not estimate.has_history,
        },
        "time_series": {
            "start_date": estimate.start_date.isoformat(),
            "days": lookback_days,
            "daily_units": estimate.series,
        },
    }
