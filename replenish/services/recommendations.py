"""Recommendation engine: buffers joined with stock into order suggestions.

Rows are projections computed on read; nothing here is persisted. Output is
deterministic for a given buffer, snapshot and purchase order state.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from replenish.core.config import get_settings
from replenish.core.dates import parse_date
from replenish.core.errors import InputValidationError
from replenish.core.logging import get_logger
from replenish.core.metrics import recommendations_served_total
from replenish.db.models import Buffer, CatalogItem
from replenish.db.utils import apply_read_timeout, chunked, require_org_id, store_errors
from replenish.domain.buffers.explain import generate_explanation, generate_hash
from replenish.domain.buffers.kpi import days_of_supply
from replenish.domain.buffers.policy import BufferPolicy
from replenish.domain.buffers.zones import (
    buffer_penetration,
    classify_segment,
    detect_overstock,
    resolve_zone,
    round_to,
    stock_position,
    suggested_order_qty,
    zone_reason,
)
from replenish.services.buffer_engine import list_buffers_page, recalc_buffers
from replenish.services.stock_positions import (
    inbound_by_sku,
    latest_snapshot_date,
    on_hand_by_sku,
)

log = get_logger("replenish.recommendations")


@dataclass
class RecommendationRow:
    """Order suggestion for one buffered SKU."""

    sku: str
    name: str
    category: str | None
    segment: str
    zone: str
    target: float
    on_hand: float
    inbound: float
    reservations: float
    stock_position: float
    suggested_qty: int
    reason: str
    overstock: dict[str, Any] | None
    avg_daily_demand: float
    lead_time_days: float
    days_of_supply: float | None
    buffer_penetration: float | None
    monthly_demand: float
    explanation: str
    rationale_hash: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RecommendationPage:
    """One page of recommendations and the snapshot date they were computed on."""

    data: list[RecommendationRow] = field(default_factory=list)
    total: int = 0
    effective_date: date | None = None
    page: int = 1
    page_size: int = 50

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [row.to_dict() for row in self.data],
            "total": self.total,
            "effective_date": self.effective_date.isoformat() if self.effective_date else None,
            "page": self.page,
            "page_size": self.page_size,
        }


def build_row(
    buffer: Buffer,
    on_hand: float,
    inbound: float,
    catalog: CatalogItem | None,
    policy: BufferPolicy,
    reservations: float = 0.0,
) -> RecommendationRow:
    """Project one buffer and its stock position into a recommendation row."""
    target = float(buffer.buffer_qty or 0)
    avg = float(buffer.avg_daily_demand or 0)
    lead_time = float(buffer.lead_time_days or 0)

    position = stock_position(on_hand, inbound, reservations)
    # Zone reads on-hand alone; penetration and order use the full position
    zone = resolve_zone(on_hand, float(buffer.red_th or 0), float(buffer.yellow_th or 0))
    suggested = suggested_order_qty(target, position)
    penetration = buffer_penetration(position, target)
    dos = days_of_supply(on_hand, avg)
    overstock = detect_overstock(on_hand, avg, policy)

    explanation = generate_explanation(
        buffer.sku, buffer.warehouse_id, zone, avg, lead_time, target, on_hand, inbound, suggested
    )
    return RecommendationRow(
        sku=buffer.sku,
        name=catalog.name if catalog else buffer.sku,
        category=catalog.category if catalog else None,
        segment=classify_segment(avg, policy),
        zone=zone,
        target=round_to(target),
        on_hand=round_to(on_hand),
        inbound=round_to(inbound),
        reservations=reservations,
        stock_position=round_to(position),
        suggested_qty=suggested,
        reason=zone_reason(zone),
        overstock=(
            {"ratio": overstock.ratio, "message": overstock.message} if overstock else None
        ),
        avg_daily_demand=round_to(avg),
        lead_time_days=round_to(lead_time),
        days_of_supply=round_to(dos, 1) if dos is not None else None,
        buffer_penetration=round_to(penetration, 2) if penetration is not None else None,
        monthly_demand=round_to(avg * policy.overstock_horizon_days),
        explanation=explanation,
        rationale_hash=generate_hash(explanation),
    )


def get_recommendations(
    db: Session,
    org_id: str,
    warehouse_id: str,
    on_date: str | date | None = None,
    page: int = 1,
    page_size: int | None = None,
    auto_recalc: bool = False,
    timeout_ms: int | None = None,
    *,
    sku: str | None = None,
    policy: BufferPolicy | None = None,
) -> RecommendationPage:
    """Order recommendations for one page of a warehouse's buffers.

    On-hand is summed over batches on on_date. When the page's SKUs have no
    snapshot that day, the latest earlier snapshot date is used and returned
    as effective_date. Inbound is the open (not received) purchase order
    quantity of each SKU.

    Args:
        db: Database session
        org_id: Organization ID for scoping
        warehouse_id: Warehouse to read
        on_date: Stock date (default today)
        page: 1-based page number over buffers ordered by SKU
        page_size: Rows per page (default and maximum from settings)
        auto_recalc: Recalculate the warehouse's buffers before reading
        timeout_ms: Statement timeout for the reads (PostgreSQL)
        sku: Restrict to this SKU's buffer

    Returns:
        RecommendationPage

    Raises:
        InputValidationError: On bad paging or date input
        TransientStoreError: If the store is unavailable or the read timed out

    """
    settings = get_settings()
    org_id = require_org_id(org_id)
    if not warehouse_id:
        raise InputValidationError("warehouse_id is required")
    day = parse_date(on_date, "date") or date.today()
    if page_size is None:
        page_size = settings.recommendations_page_size
    if page < 1:
        raise InputValidationError("page must be >= 1")
    if page_size < 1 or page_size > settings.recommendations_max_page_size:
        raise InputValidationError(
            f"page_size must be between 1 and {settings.recommendations_max_page_size}"
        )
    policy = policy or BufferPolicy.from_settings(settings)

    if auto_recalc:
        recalc_buffers(db, org_id, warehouse_id, settings.buffer_lookback_days, policy=policy)

    with store_errors(db, "recommendations"):
        apply_read_timeout(db, timeout_ms if timeout_ms is not None else settings.read_timeout_ms)

        buffers, total = list_buffers_page(
            db,
            org_id,
            warehouse_id,
            offset=(page - 1) * page_size,
            limit=page_size,
            sku=sku,
        )
        if not buffers:
            return RecommendationPage(data=[], total=total, page=page, page_size=page_size)

        skus = [b.sku for b in buffers]
        effective_date: date | None = day
        stock = on_hand_by_sku(db, org_id, warehouse_id, day, skus)
        if not stock:
            effective_date = latest_snapshot_date(
                db, org_id, warehouse_id, on_or_before=day, skus=skus
            )
            if effective_date is not None:
                stock = on_hand_by_sku(db, org_id, warehouse_id, effective_date, skus)

        inbound = inbound_by_sku(db, org_id, skus)
        catalog: dict[str, CatalogItem] = {}
        for part in chunked(skus):
            for item in db.scalars(
                select(CatalogItem).where(CatalogItem.org_id == org_id, CatalogItem.sku.in_(part))
            ):
                catalog[item.sku] = item

    rows = [
        build_row(b, stock.get(b.sku, 0.0), inbound.get(b.sku, 0.0), catalog.get(b.sku), policy)
        for b in buffers
    ]
    for row in rows:
        recommendations_served_total.labels(zone=row.zone).inc()

    log.info(
        "recommendations_served",
        extra={
            "org_id": org_id,
            "warehouse_id": warehouse_id,
            "date": day.isoformat(),
            "effective_date": effective_date.isoformat() if effective_date else None,
            "page": page,
            "rows": len(rows),
            "total": total,
        },
    )
    return RecommendationPage(
        data=rows, total=total, effective_date=effective_date, page=page, page_size=page_size
    )
