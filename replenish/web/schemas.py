"""Pydantic schemas for API requests and responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# Sales schemas
class RebuildResponse(BaseModel):
    from_date: str = Field(..., serialization_alias="from")
    to_date: str = Field(..., serialization_alias="to")


# Buffer schemas
class BufferOut(BaseModel):
    """Stored TOC buffer."""

    sku: str
    warehouse_id: str
    lead_time_days: float
    avg_daily_demand: float
    buffer_qty: float
    red_th: float
    yellow_th: float
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BufferPage(BaseModel):
    data: list[BufferOut]
    total: int
    offset: int
    limit: int


class RecalcRequest(BaseModel):
    warehouse_id: str = Field(..., min_length=1)
    lookback_days: int = Field(60, ge=1, le=365)


class RecalcResponse(BaseModel):
    updated: int


# Recommendation schemas
class OverstockOut(BaseModel):
    ratio: float
    message: str


class RecommendationOut(BaseModel):
    """Order suggestion for one buffered SKU."""

    sku: str
    name: str
    category: str | None = None
    segment: str
    zone: str
    target: float
    on_hand: float
    inbound: float
    reservations: float
    stock_position: float
    suggested_qty: int
    reason: str
    overstock: OverstockOut | None = None
    avg_daily_demand: float
    lead_time_days: float
    days_of_supply: float | None = None
    buffer_penetration: float | None = None
    monthly_demand: float
    explanation: str = Field(..., description="Human-readable rationale")
    rationale_hash: str


class RecommendationPageOut(BaseModel):
    data: list[RecommendationOut]
    total: int
    effective_date: str | None = None
    page: int
    page_size: int


# KPI schemas
class KpiMetrics(BaseModel):
    dos: float | None = None
    turns: float
    median_days_to_sell: int | None = None
    fefo_risk: bool
    on_hand: float
    avg_daily_demand: float
    total_units: float
    window_days: int
    min_expiry: str | None = None
    stock_date: str | None = None


class KpiOut(BaseModel):
    sku: str
    from_date: str = Field(..., serialization_alias="from")
    to_date: str = Field(..., serialization_alias="to")
    warehouse_id: str
    metrics: KpiMetrics


# Warehouse schemas
class WarehouseOut(BaseModel):
    id: str
    name: str
    timezone: str | None = None
    latest_stock_date: str | None = None


class WarehouseList(BaseModel):
    data: list[WarehouseOut]


class WarehouseDeleted(BaseModel):
    warehouse_id: str
    deleted: dict[str, int]


# Ingestion schemas
class IngestRequest(BaseModel):
    """Batch of entity items; validated per entity by the ingestion service."""

    items: list[dict[str, Any]] = Field(..., min_length=1)


class IngestResponse(BaseModel):
    entity: str
    processed: int


# Assistant schemas
class ToolCallRequest(BaseModel):
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolInfo(BaseModel):
    name: str
    description: str
    parameters: dict[str, Any]


class ErrorResponse(BaseModel):
    error: str
    detail: str
    request_id: str | None = None
