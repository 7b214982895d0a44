"""Warehouse directory: listing with latest stock date, and teardown."""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from replenish.core.dates import as_date
from replenish.core.logging import get_logger
from replenish.db.models import Buffer, SalesDaily, SalesEvent, StockSnapshot, Warehouse
from replenish.db.utils import require_org_id, store_errors

log = get_logger("replenish.warehouses")


def list_warehouses(db: Session, org_id: str, search: str | None = None) -> list[dict[str, Any]]:
    """Warehouses of an org ordered by name, each with its latest snapshot date.

    Args:
        db: Database session
        org_id: Organization ID for scoping
        search: Case-insensitive substring of the name

    """
    org_id = require_org_id(org_id)
    latest = (
        select(StockSnapshot.warehouse_id, func.max(StockSnapshot.date).label("latest"))
        .where(StockSnapshot.org_id == org_id)
        .group_by(StockSnapshot.warehouse_id)
        .subquery()
    )
    stmt = (
        select(Warehouse.id, Warehouse.name, Warehouse.timezone, latest.c.latest)
        .outerjoin(latest, latest.c.warehouse_id == Warehouse.id)
        .where(Warehouse.org_id == org_id)
        .order_by(Warehouse.name, Warehouse.id)
    )
    if search:
        stmt = stmt.where(func.lower(Warehouse.name).contains(search.strip().lower()))

    return [
        {
            "id": row.id,
            "name": row.name,
            "timezone": row.timezone,
            "latest_stock_date": as_date(row.latest).isoformat() if row.latest else None,
        }
        for row in db.execute(stmt)
    ]


def delete_warehouse(db: Session, org_id: str, warehouse_id: str) -> dict[str, int] | None:
    """Remove a warehouse and every row keyed by it, in one transaction.

    Returns:
        Deleted row count per table, or None if the org has no such warehouse

    """
    org_id = require_org_id(org_id)
    warehouse = db.scalars(
        select(Warehouse).where(Warehouse.org_id == org_id, Warehouse.id == warehouse_id)
    ).first()
    if warehouse is None:
        return None

    summary: dict[str, int] = {}
    with store_errors(db, "warehouses"):
        for table, model in (
            ("buffers", Buffer),
            ("stock_snapshots", StockSnapshot),
            ("sales_daily", SalesDaily),
            ("sales_events", SalesEvent),
        ):
            result = db.execute(
                delete(model).where(model.org_id == org_id, model.warehouse_id == warehouse_id)
            )
            summary[table] = result.rowcount or 0
        db.delete(warehouse)
        db.commit()
    summary["warehouses"] = 1

    log.info(
        "warehouse_deleted",
        extra={"org_id": org_id, "warehouse_id": warehouse_id, **summary},
    )
    return summary
