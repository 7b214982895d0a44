"""SQLAlchemy ORM models for the replenishment service.

This module defines the database schema for:
- Reference data (Organizations, Warehouses, Suppliers, Catalog, Lead-time stats)
- Fact tables (Sales events, Stock snapshots, Purchase orders)
- Derived tables (Daily sales rollups, Buffers)

Every table carries org_id; natural keys are composite and start with org_id.
Calendar dates are stored as DATE, event times as naive UTC DATETIME.
"""

from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

DEFAULT_BATCH_ID = "_default"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Reference Tables
# =============================================================================


class Organization(Base):
    """Tenant. Every other row is partitioned by its id."""

    __tablename__ = "orgs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    api_key: Mapped[str] = mapped_column(String(128), unique=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class Warehouse(Base):
    """Physical or logical stock location of an organization."""

    __tablename__ = "warehouses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    timezone: Mapped[str | None] = mapped_column(String(64), default="UTC", nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class Supplier(Base):
    """Supplier with a default lead time used when no statistics exist."""

    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    lead_time_days_default: Mapped[float | None] = mapped_column(Float, nullable=True)
    contact: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class CatalogItem(Base):
    """Product master data (display name, category, shelf life)."""

    __tablename__ = "catalog"

    org_id: Mapped[str] = mapped_column(
        ForeignKey("orgs.id", ondelete="CASCADE"), primary_key=True
    )
    sku: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(300))
    category: Mapped[str | None] = mapped_column(String(200), nullable=True)
    uom: Mapped[str | None] = mapped_column(String(20), nullable=True)
    shelf_life_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


class LeadTimeStat(Base):
    """Observed supplier lead time for a SKU."""

    __tablename__ = "lead_time_stats"

    org_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    supplier_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sku: Mapped[str] = mapped_column(String(100), primary_key=True)
    lead_time_days_median: Mapped[float] = mapped_column(Float, default=0.0)
    sample_size: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


# =============================================================================
# Fact Tables
# =============================================================================


class SalesEvent(Base):
    """One order line. Corrections arrive as upserts on (org, order, line)."""

    __tablename__ = "sales_events"

    org_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    line_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    order_datetime: Mapped[dt.datetime] = mapped_column(DateTime, index=True)
    sku: Mapped[str] = mapped_column(String(100))
    qty: Mapped[float] = mapped_column(Float, default=0.0)
    unit_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    discount_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    net_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    tax_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(8), default="UAH", nullable=True)
    warehouse_id: Mapped[str | None] = mapped_column(String(64), nullable=True)  # None → GLOBAL
    channel: Mapped[str | None] = mapped_column(String(64), nullable=True)  # None → ALL
    status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    returned_qty: Mapped[float | None] = mapped_column(Float, default=0.0, nullable=True)
    canceled_qty: Mapped[float | None] = mapped_column(Float, default=0.0, nullable=True)
    promo_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("ix_sales_events_org_datetime", "org_id", "order_datetime"),)


class StockSnapshot(Base):
    """On-hand quantity of one batch on one day."""

    __tablename__ = "stock_snapshots"

    org_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    sku: Mapped[str] = mapped_column(String(100), primary_key=True)
    warehouse_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    batch_id: Mapped[str] = mapped_column(String(100), primary_key=True, default=DEFAULT_BATCH_ID)
    qty_on_hand: Mapped[float] = mapped_column(Float, default=0.0)
    expiry_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)  # FEFO
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("ix_stock_org_wh_date", "org_id", "warehouse_id", "date"),)


class PurchaseOrder(Base):
    """Supplier order header. received_at IS NULL means still inbound."""

    __tablename__ = "purchase_orders"

    org_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    po_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    supplier_id: Mapped[str] = mapped_column(String(64), index=True)
    ordered_at: Mapped[dt.datetime] = mapped_column(DateTime)
    received_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class PurchaseOrderLine(Base):
    """Ordered quantity of one SKU with order constraints."""

    __tablename__ = "purchase_order_lines"

    org_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    po_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    sku: Mapped[str] = mapped_column(String(100), primary_key=True)
    qty: Mapped[float] = mapped_column(Float)
    moq: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pack_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        ForeignKeyConstraint(
            ["org_id", "po_id"],
            ["purchase_orders.org_id", "purchase_orders.po_id"],
            ondelete="CASCADE",
        ),
        Index("ix_po_lines_org_sku", "org_id", "sku"),
    )


# =============================================================================
# Derived Tables
# =============================================================================


class SalesDaily(Base):
    """Daily sales rollup per (org, date, sku, warehouse, channel).

    Regenerated by the sales aggregator; never edited by hand.
    """

    __tablename__ = "sales_daily"

    org_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    sku: Mapped[str] = mapped_column(String(100), primary_key=True)
    warehouse_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    channel: Mapped[str] = mapped_column(String(64), primary_key=True, default="ALL")
    units: Mapped[float] = mapped_column(Float, default=0.0)
    revenue: Mapped[float] = mapped_column(Float, default=0.0)
    orders: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("ix_sales_daily_org_wh_date", "org_id", "warehouse_id", "date"),)


class Buffer(Base):
    """TOC buffer for one SKU at one warehouse.

    red_th and yellow_th are fixed fractions of buffer_qty (see BufferPolicy).
    """

    __tablename__ = "buffers"

    org_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sku: Mapped[str] = mapped_column(String(100), primary_key=True)
    warehouse_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    lead_time_days: Mapped[float] = mapped_column(Float, default=0.0)
    avg_daily_demand: Mapped[float] = mapped_column(Float, default=0.0)
    buffer_qty: Mapped[float] = mapped_column(Float, default=0.0)
    red_th: Mapped[float] = mapped_column(Float, default=0.0)
    yellow_th: Mapped[float] = mapped_column(Float, default=0.0)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )
