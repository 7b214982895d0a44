"""Stock position queries: on-hand from snapshots, inbound from open purchase orders."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from replenish.core.dates import as_date
from replenish.db.models import PurchaseOrder, PurchaseOrderLine, StockSnapshot
from replenish.db.utils import chunked


@dataclass(frozen=True)
class StockLevel:
    """On-hand of one SKU on one snapshot date, summed over batches."""

    date: date
    qty_on_hand: float
    min_expiry: date | None


def latest_snapshot_date(
    db: Session,
    org_id: str,
    warehouse_id: str,
    on_or_before: date | None = None,
    skus: Iterable[str] | None = None,
) -> date | None:
    """Most recent snapshot date of the warehouse, optionally limited to SKUs."""
    base = [StockSnapshot.org_id == org_id, StockSnapshot.warehouse_id == warehouse_id]
    if on_or_before is not None:
        base.append(StockSnapshot.date <= on_or_before)

    if skus is None:
        value = db.scalar(select(func.max(StockSnapshot.date)).where(*base))
        return as_date(value) if value is not None else None

    latest: date | None = None
    for part in chunked(list(skus)):
        value = db.scalar(
            select(func.max(StockSnapshot.date)).where(*base, StockSnapshot.sku.in_(part))
        )
        if value is not None:
            value = as_date(value)
            latest = value if latest is None or value > latest else latest
    return latest


def on_hand_by_sku(
    db: Session,
    org_id: str,
    warehouse_id: str,
    day: date,
    skus: Iterable[str],
) -> dict[str, float]:
    """Σ qty_on_hand across batches per SKU on one date; SKUs without rows are absent."""
    result: dict[str, float] = {}
    for part in chunked(list(skus)):
        stmt = (
            select(StockSnapshot.sku, func.sum(StockSnapshot.qty_on_hand))
            .where(
                StockSnapshot.org_id == org_id,
                StockSnapshot.warehouse_id == warehouse_id,
                StockSnapshot.date == day,
                StockSnapshot.sku.in_(part),
            )
            .group_by(StockSnapshot.sku)
        )
        for sku, qty in db.execute(stmt):
            result[sku] = float(qty or 0)
    return result


def stock_level(
    db: Session,
    org_id: str,
    warehouse_id: str,
    sku: str,
    on_date: date | None = None,
) -> StockLevel | None:
    """Stock of one SKU on on_date, else on its latest snapshot date.

    With on_date None the latest snapshot is used directly. Returns None when
    the SKU has no snapshot at the warehouse.
    """
    scope = (
        StockSnapshot.org_id == org_id,
        StockSnapshot.warehouse_id == warehouse_id,
        StockSnapshot.sku == sku,
    )
    day = None
    if on_date is not None:
        exists = db.scalar(
            select(StockSnapshot.date).where(*scope, StockSnapshot.date == on_date).limit(1)
        )
        day = on_date if exists is not None else None
    if day is None:
        latest = db.scalar(select(func.max(StockSnapshot.date)).where(*scope))
        if latest is None:
            return None
        day = as_date(latest)

    qty, min_expiry = db.execute(
        select(func.sum(StockSnapshot.qty_on_hand), func.min(StockSnapshot.expiry_date)).where(
            *scope, StockSnapshot.date == day
        )
    ).one()
    return StockLevel(
        date=day,
        qty_on_hand=float(qty or 0),
        min_expiry=as_date(min_expiry) if min_expiry is not None else None,
    )


def inbound_by_sku(db: Session, org_id: str, skus: Iterable[str]) -> dict[str, float]:
    """Σ qty of purchase order lines whose order is not yet received, per SKU."""
    result: dict[str, float] = {}
    for part in chunked(list(skus)):
        stmt = (
            select(PurchaseOrderLine.sku, func.sum(PurchaseOrderLine.qty))
            .join(
                PurchaseOrder,
                (PurchaseOrder.org_id == PurchaseOrderLine.org_id)
                & (PurchaseOrder.po_id == PurchaseOrderLine.po_id),
            )
            .where(
                PurchaseOrderLine.org_id == org_id,
                PurchaseOrderLine.sku.in_(part),
                PurchaseOrder.received_at.is_(None),
            )
            .group_by(PurchaseOrderLine.sku)
        )
        for sku, qty in db.execute(stmt):
            result[sku] = float(qty or 0)
    return result


def latest_order_constraints(db: Session, org_id: str, sku: str) -> dict[str, int | None]:
    """MOQ and pack size from the most recent purchase order line of the SKU."""
    line = db.scalars(
        select(PurchaseOrderLine)
        .where(PurchaseOrderLine.org_id == org_id, PurchaseOrderLine.sku == sku)
        .order_by(PurchaseOrderLine.created_at.desc(), PurchaseOrderLine.po_id.desc())
        .limit(1)
    ).first()
    return {
        "moq": line.moq if line else None,
        "pack_size": line.pack_size if line else None,
    }
