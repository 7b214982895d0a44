"""Data ingestion: validated, idempotent upserts of reference and fact data.

Every import:
1. Validates items with a pydantic schema
2. Normalizes dates (timestamps stored as naive UTC)
3. Upserts by natural key in one transaction

Re-sending the same payload leaves the same rows.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from replenish.core.dates import parse_datetime
from replenish.core.errors import InputValidationError
from replenish.core.logging import get_logger
from replenish.core.metrics import ingest_rows_total
from replenish.db.models import (
    DEFAULT_BATCH_ID,
    CatalogItem,
    LeadTimeStat,
    PurchaseOrder,
    PurchaseOrderLine,
    SalesEvent,
    StockSnapshot,
    Supplier,
    Warehouse,
)
from replenish.db.utils import chunked, require_org_id, store_errors, upsert_rows

log = get_logger("replenish.ingestion")


# =============================================================================
# Item schemas
# =============================================================================


class WarehouseIn(BaseModel):
    warehouse_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1)
    timezone: str | None = None


class SupplierIn(BaseModel):
    supplier_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1)
    lead_time_days_default: float | None = Field(None, ge=0)
    contact: str | None = None


class CatalogItemIn(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1)
    category: str | None = None
    uom: str | None = None
    shelf_life_days: int | None = Field(None, gt=0)


class SalesEventIn(BaseModel):
    """One order line. Timestamps with an offset are converted to UTC."""

    order_id: str = Field(..., min_length=1)
    line_id: str = Field(..., min_length=1)
    order_datetime: dt.datetime
    sku: str = Field(..., min_length=1)
    qty: float = 0.0
    unit_price: float | None = None
    discount_amount: float | None = None
    net_amount: float | None = None
    tax_amount: float | None = None
    currency: str | None = None
    warehouse_id: str | None = None
    channel: str | None = None
    status: str | None = None
    returned_qty: float | None = None
    canceled_qty: float | None = None
    promo_code: str | None = None

    @field_validator("order_datetime")
    @classmethod
    def _to_utc(cls, v: dt.datetime) -> dt.datetime:
        return parse_datetime(v, "order_datetime")


class StockSnapshotIn(BaseModel):
    date: dt.date
    sku: str = Field(..., min_length=1)
    warehouse_id: str = Field(..., min_length=1)
    qty_on_hand: float = 0.0
    batch_id: str | None = None
    expiry_date: dt.date | None = None


class PurchaseOrderIn(BaseModel):
    po_id: str = Field(..., min_length=1)
    supplier_id: str = Field(..., min_length=1)
    ordered_at: dt.datetime
    received_at: dt.datetime | None = None

    @field_validator("ordered_at", "received_at")
    @classmethod
    def _to_utc(cls, v: dt.datetime | None) -> dt.datetime | None:
        return parse_datetime(v) if v is not None else None


class PurchaseOrderLineIn(BaseModel):
    po_id: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    qty: float
    moq: int | None = Field(None, ge=0)
    pack_size: int | None = Field(None, gt=0)


class LeadTimeStatIn(BaseModel):
    supplier_id: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    lead_time_days_median: float = Field(..., ge=0)
    sample_size: int = Field(0, ge=0)


# =============================================================================
# Import functions
# =============================================================================


def _validate(schema: type[BaseModel], items: Iterable[Any], entity: str) -> list[Any]:
    parsed = []
    for index, item in enumerate(items):
        try:
            parsed.append(item if isinstance(item, schema) else schema.model_validate(item))
        except ValidationError as e:
            first = e.errors()[0]
            loc = ".".join(str(p) for p in first.get("loc", ()))
            raise InputValidationError(
                f"{entity}[{index}].{loc}: {first.get('msg', 'invalid value')}"
            ) from e
    return parsed


def _write(
    db: Session,
    entity: str,
    model: type,
    rows: Sequence[dict[str, Any]],
    key: Sequence[str],
    update_columns: Sequence[str] | None = None,
    org_id: str | None = None,
) -> dict[str, int]:
    with store_errors(db, f"ingest_{entity}"):
        upsert_rows(db, model, rows, key, update_columns)
        db.commit()

    ingest_rows_total.labels(entity=entity).inc(len(rows))
    log.info("ingest_completed", extra={"org_id": org_id, "entity": entity, "rows": len(rows)})
    return {"processed": len(rows)}


def _reject_foreign_ids(db: Session, model: type, org_id: str, ids: list[str], label: str) -> None:
    """Refuse ids already registered to another organization."""
    for part in chunked(ids):
        stmt = select(model.id).where(model.id.in_(part), model.org_id != org_id)
        taken = db.scalars(stmt).all()
        if taken:
            raise InputValidationError(
                f"{label} id(s) already registered to another organization: {sorted(taken)}"
            )


def import_warehouses(db: Session, org_id: str, items: Iterable[Any]) -> dict[str, int]:
    """Upsert warehouses by id."""
    org_id = require_org_id(org_id)
    parsed = _validate(WarehouseIn, items, "warehouses")
    if not parsed:
        return {"processed": 0}
    _reject_foreign_ids(db, Warehouse, org_id, [w.warehouse_id for w in parsed], "warehouse")
    rows = [
        {
            "id": w.warehouse_id,
            "org_id": org_id,
            "name": w.name,
            "timezone": w.timezone or "UTC",
        }
        for w in parsed
    ]
    return _write(db, "warehouses", Warehouse, rows, ["id"], ["name", "timezone"], org_id)


def import_suppliers(db: Session, org_id: str, items: Iterable[Any]) -> dict[str, int]:
    """Upsert suppliers by id."""
    org_id = require_org_id(org_id)
    parsed = _validate(SupplierIn, items, "suppliers")
    if not parsed:
        return {"processed": 0}
    _reject_foreign_ids(db, Supplier, org_id, [s.supplier_id for s in parsed], "supplier")
    rows = [
        {
            "id": s.supplier_id,
            "org_id": org_id,
            "name": s.name,
            "lead_time_days_default": s.lead_time_days_default,
            "contact": s.contact,
        }
        for s in parsed
    ]
    return _write(
        db,
        "suppliers",
        Supplier,
        rows,
        ["id"],
        ["name", "lead_time_days_default", "contact"],
        org_id,
    )


def import_catalog(db: Session, org_id: str, items: Iterable[Any]) -> dict[str, int]:
    """Upsert catalog items by (org, sku)."""
    org_id = require_org_id(org_id)
    parsed = _validate(CatalogItemIn, items, "catalog")
    rows = [
        {
            "org_id": org_id,
            "sku": c.sku,
            "name": c.name,
            "category": c.category,
            "uom": c.uom,
            "shelf_life_days": c.shelf_life_days,
        }
        for c in parsed
    ]
    return _write(db, "catalog", CatalogItem, rows, ["org_id", "sku"], org_id=org_id)


def import_sales(db: Session, org_id: str, items: Iterable[Any]) -> dict[str, int]:
    """Upsert sales events by (org, order_id, line_id)."""
    org_id = require_org_id(org_id)
    parsed = _validate(SalesEventIn, items, "sales")
    rows = [
        {
            "org_id": org_id,
            "order_id": s.order_id,
            "line_id": s.line_id,
            "order_datetime": s.order_datetime,
            "sku": s.sku,
            "qty": s.qty,
            "unit_price": s.unit_price,
            "discount_amount": s.discount_amount,
            "net_amount": s.net_amount,
            "tax_amount": s.tax_amount,
            "currency": s.currency or "UAH",
            "warehouse_id": s.warehouse_id,
            "channel": s.channel,
            "status": s.status,
            "returned_qty": s.returned_qty or 0.0,
            "canceled_qty": s.canceled_qty or 0.0,
            "promo_code": s.promo_code,
        }
        for s in parsed
    ]
    return _write(
        db, "sales", SalesEvent, rows, ["org_id", "order_id", "line_id"], org_id=org_id
    )


def import_stock(db: Session, org_id: str, items: Iterable[Any]) -> dict[str, int]:
    """Upsert stock snapshots by (org, date, sku, warehouse, batch)."""
    org_id = require_org_id(org_id)
    parsed = _validate(StockSnapshotIn, items, "stock")
    rows = [
        {
            "org_id": org_id,
            "date": s.date,
            "sku": s.sku,
            "warehouse_id": s.warehouse_id,
            "batch_id": s.batch_id or DEFAULT_BATCH_ID,
            "qty_on_hand": s.qty_on_hand,
            "expiry_date": s.expiry_date,
        }
        for s in parsed
    ]
    return _write(
        db,
        "stock",
        StockSnapshot,
        rows,
        ["org_id", "date", "sku", "warehouse_id", "batch_id"],
        org_id=org_id,
    )


def import_po_headers(db: Session, org_id: str, items: Iterable[Any]) -> dict[str, int]:
    """Upsert purchase order headers by (org, po_id)."""
    org_id = require_org_id(org_id)
    parsed = _validate(PurchaseOrderIn, items, "po_headers")
    rows = [
        {
            "org_id": org_id,
            "po_id": p.po_id,
            "supplier_id": p.supplier_id,
            "ordered_at": p.ordered_at,
            "received_at": p.received_at,
        }
        for p in parsed
    ]
    return _write(db, "po_headers", PurchaseOrder, rows, ["org_id", "po_id"], org_id=org_id)


def import_po_lines(db: Session, org_id: str, items: Iterable[Any]) -> dict[str, int]:
    """Upsert purchase order lines by (org, po_id, sku).

    The header must exist. created_at is set on first insert only.
    """
    org_id = require_org_id(org_id)
    parsed = _validate(PurchaseOrderLineIn, items, "po_lines")
    if not parsed:
        return {"processed": 0}

    po_ids = sorted({line.po_id for line in parsed})
    known: set[str] = set()
    for part in chunked(po_ids):
        known.update(
            db.scalars(
                select(PurchaseOrder.po_id).where(
                    PurchaseOrder.org_id == org_id, PurchaseOrder.po_id.in_(part)
                )
            )
        )
    missing = [po for po in po_ids if po not in known]
    if missing:
        raise InputValidationError(f"Unknown purchase order(s): {missing}")

    now = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    rows = [
        {
            "org_id": org_id,
            "po_id": line.po_id,
            "sku": line.sku,
            "qty": line.qty,
            "moq": line.moq,
            "pack_size": line.pack_size,
            "created_at": now,
        }
        for line in parsed
    ]
    return _write(
        db,
        "po_lines",
        PurchaseOrderLine,
        rows,
        ["org_id", "po_id", "sku"],
        ["qty", "moq", "pack_size"],
        org_id,
    )


def import_lead_times(db: Session, org_id: str, items: Iterable[Any]) -> dict[str, int]:
    """Upsert observed lead times by (org, supplier, sku)."""
    org_id = require_org_id(org_id)
    parsed = _validate(LeadTimeStatIn, items, "lead_times")
    rows = [
        {
            "org_id": org_id,
            "supplier_id": s.supplier_id,
            "sku": s.sku,
            "lead_time_days_median": s.lead_time_days_median,
            "sample_size": s.sample_size,
        }
        for s in parsed
    ]
    return _write(
        db,
        "lead_times",
        LeadTimeStat,
        rows,
        ["org_id", "supplier_id", "sku"],
        org_id=org_id,
    )


IMPORTERS: dict[str, Callable[[Session, str, Iterable[Any]], dict[str, int]]] = {
    "warehouses": import_warehouses,
    "suppliers": import_suppliers,
    "catalog": import_catalog,
    "sales": import_sales,
    "stock": import_stock,
    "po_headers": import_po_headers,
    "po_lines": import_po_lines,
    "lead_times": import_lead_times,
}


def import_entity(db: Session, org_id: str, entity: str, items: Iterable[Any]) -> dict[str, int]:
    """Dispatch an import by entity name.

    Raises:
        InputValidationError: For an unknown entity

    """
    importer = IMPORTERS.get(entity)
    if importer is None:
        raise InputValidationError(
            f"Unknown entity {entity!r}; expected one of {sorted(IMPORTERS)}"
        )
    return importer(db, org_id, items)
