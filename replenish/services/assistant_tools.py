"""Read-only tools for a conversational agent.

Each tool has a pydantic argument model; its JSON schema doubles as the
function-calling parameter description. Tools never write.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from replenish.core.dates import as_date, parse_date
from replenish.core.errors import InputValidationError
from replenish.core.logging import get_logger
from replenish.db.models import (
    Buffer,
    PurchaseOrder,
    PurchaseOrderLine,
    SalesDaily,
    StockSnapshot,
    Warehouse,
)
from replenish.db.utils import chunked, require_org_id
from replenish.domain.buffers.rebalance import WarehousePosition, plan_rebalance
from replenish.domain.buffers.zones import (
    buffer_penetration,
    resolve_zone,
    round_to,
    suggested_order_qty,
)
from replenish.services.explain_payload import build_explain_payload
from replenish.services.recommendations import get_recommendations
from replenish.services.stock_positions import inbound_by_sku, stock_level

log = get_logger("replenish.assistant_tools")


@dataclass(frozen=True)
class ToolDefinition:
    """Tool name, description, argument model and handler."""

    name: str
    description: str
    args_model: type[BaseModel]
    handler: Callable[[Session, str, Any], dict[str, Any]]

    @property
    def parameters(self) -> dict[str, Any]:
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return schema

    def as_function(self) -> dict[str, Any]:
        """Function-calling definition for an external agent."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


TOOLS: dict[str, ToolDefinition] = {}


def tool(name: str, description: str, args_model: type[BaseModel]):
    """Register a handler in TOOLS."""

    def decorator(handler: Callable[[Session, str, Any], dict[str, Any]]):
        TOOLS[name] = ToolDefinition(name, description, args_model, handler)
        return handler

    return decorator


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _warehouse_names(db: Session, org_id: str, ids: list[str]) -> dict[str, str]:
    names: dict[str, str] = {}
    for part in chunked(ids):
        rows = db.execute(
            select(Warehouse.id, Warehouse.name).where(
                Warehouse.org_id == org_id, Warehouse.id.in_(part)
            )
        )
        names.update({wid: name for wid, name in rows})
    return names


def _stock_distribution(
    db: Session,
    org_id: str,
    sku: str,
    requested: date | None,
    warehouse_ids: list[str] | None = None,
) -> tuple[date, dict[str, float]] | None:
    """On-hand per warehouse on the requested date, else on the SKU's latest snapshot date."""
    scope = [StockSnapshot.org_id == org_id, StockSnapshot.sku == sku]
    if warehouse_ids:
        scope.append(StockSnapshot.warehouse_id.in_(warehouse_ids))

    def on(day: date) -> dict[str, float]:
        stmt = (
            select(StockSnapshot.warehouse_id, func.sum(StockSnapshot.qty_on_hand))
            .where(*scope, StockSnapshot.date == day)
            .group_by(StockSnapshot.warehouse_id)
        )
        return {wid: float(qty or 0) for wid, qty in db.execute(stmt)}

    if requested is not None:
        rows = on(requested)
        if rows:
            return requested, rows

    latest = db.scalar(select(func.max(StockSnapshot.date)).where(*scope))
    if latest is None:
        return None
    latest = as_date(latest)
    return latest, on(latest)


# =============================================================================
# Tools
# =============================================================================


class TopSkusArgs(BaseModel):
    warehouse_id: str | None = Field(None, description="Warehouse id; all if omitted")
    days: int = Field(60, description="Lookback in days (1..365)")
    limit: int = Field(10, description="Number of SKUs (1..50)")
    metric: Literal["units", "revenue"] = Field("units", description="Ranking metric")


@tool(
    "get_top_skus",
    "Top SKUs by units or revenue over the last N days, for the organization or one warehouse.",
    TopSkusArgs,
)
def get_top_skus(db: Session, org_id: str, args: TopSkusArgs) -> dict[str, Any]:
    days = _clamp(args.days, 1, 365)
    limit = _clamp(args.limit, 1, 50)
    today = date.today()
    since = today - timedelta(days=days)

    units = func.coalesce(func.sum(SalesDaily.units), 0)
    revenue = func.coalesce(func.sum(SalesDaily.revenue), 0)
    scope = [SalesDaily.org_id == org_id, SalesDaily.date >= since]
    if args.warehouse_id:
        scope.append(SalesDaily.warehouse_id == args.warehouse_id)
    stmt = (
        select(SalesDaily.sku, units.label("units"), revenue.label("revenue"))
        .where(*scope)
        .group_by(SalesDaily.sku)
        .order_by((units if args.metric == "units" else revenue).desc(), SalesDaily.sku)
        .limit(limit)
    )

    return {
        "warehouse_id": args.warehouse_id,
        "metric": args.metric,
        "lookback_days": days,
        "from": since.isoformat(),
        "to": today.isoformat(),
        "items": [
            {"sku": r.sku, "units": float(r.units), "revenue": float(r.revenue)}
            for r in db.execute(stmt)
        ],
    }


class BufferStatusArgs(BaseModel):
    sku: str = Field(..., min_length=1)
    warehouse_id: str = Field(..., min_length=1)


@tool(
    "get_buffer_status",
    "Stored TOC buffer of a SKU at a warehouse with its current zone and suggested order.",
    BufferStatusArgs,
)
def get_buffer_status(db: Session, org_id: str, args: BufferStatusArgs) -> dict[str, Any]:
    buffer = db.scalars(
        select(Buffer).where(
            Buffer.org_id == org_id,
            Buffer.warehouse_id == args.warehouse_id,
            Buffer.sku == args.sku,
        )
    ).first()
    if buffer is None:
        return {"message": "No buffer has been calculated for this SKU and warehouse."}

    level = stock_level(db, org_id, args.warehouse_id, args.sku)
    on_hand = level.qty_on_hand if level else 0.0
    inbound = inbound_by_sku(db, org_id, [args.sku]).get(args.sku, 0.0)
    position = on_hand + inbound
    penetration = buffer_penetration(position, buffer.buffer_qty)
    return {
        "sku": buffer.sku,
        "warehouse_id": buffer.warehouse_id,
        "stock_date": level.date.isoformat() if level else None,
        "zone": resolve_zone(on_hand, buffer.red_th, buffer.yellow_th),
        "buffer_qty": round_to(buffer.buffer_qty),
        "red_th": round_to(buffer.red_th),
        "yellow_th": round_to(buffer.yellow_th),
        "avg_daily_demand": round_to(buffer.avg_daily_demand, 2),
        "lead_time_days": round_to(buffer.lead_time_days),
        "on_hand": round_to(on_hand),
        "inbound": round_to(inbound),
        "buffer_penetration": round_to(penetration, 2) if penetration is not None else None,
        "suggested_qty": suggested_order_qty(buffer.buffer_qty, position),
        "updated_at": buffer.updated_at.isoformat() if buffer.updated_at else None,
    }


class PurchaseOrdersArgs(BaseModel):
    sku: str | None = Field(None, description="Only lines of this SKU")
    status: Literal["pending", "received", "all"] = Field("all", description="PO status")
    limit: int = Field(10, description="Number of orders (1..50)")


@tool(
    "get_purchase_orders",
    "Latest supplier purchase orders with their lines, filtered by status or SKU.",
    PurchaseOrdersArgs,
)
def get_purchase_orders(db: Session, org_id: str, args: PurchaseOrdersArgs) -> dict[str, Any]:
    limit = _clamp(args.limit, 1, 50)
    stmt = select(PurchaseOrder).where(PurchaseOrder.org_id == org_id)
    if args.status == "pending":
        stmt = stmt.where(PurchaseOrder.received_at.is_(None))
    elif args.status == "received":
        stmt = stmt.where(PurchaseOrder.received_at.is_not(None))
    orders = list(
        db.scalars(
            stmt.order_by(PurchaseOrder.ordered_at.desc(), PurchaseOrder.po_id).limit(limit)
        )
    )

    lines: dict[str, list[PurchaseOrderLine]] = {o.po_id: [] for o in orders}
    for part in chunked(list(lines)):
        line_stmt = select(PurchaseOrderLine).where(
            PurchaseOrderLine.org_id == org_id, PurchaseOrderLine.po_id.in_(part)
        )
        if args.sku:
            line_stmt = line_stmt.where(PurchaseOrderLine.sku == args.sku)
        for line in db.scalars(line_stmt.order_by(PurchaseOrderLine.sku)):
            lines[line.po_id].append(line)

    return {
        "status": args.status,
        "sku": args.sku,
        "orders": [
            {
                "po_id": o.po_id,
                "supplier_id": o.supplier_id,
                "ordered_at": o.ordered_at.isoformat(),
                "received_at": o.received_at.isoformat() if o.received_at else None,
                "lines": [
                    {"sku": ln.sku, "qty": ln.qty, "moq": ln.moq, "pack_size": ln.pack_size}
                    for ln in lines[o.po_id]
                ],
            }
            for o in orders
        ],
    }


class SkuRecommendationArgs(BaseModel):
    warehouse_id: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    date: str | None = Field(None, description="YYYY-MM-DD, default today")


@tool(
    "get_recommendations_for_sku",
    "TOC replenishment recommendation (target, on hand, suggested order) for one SKU.",
    SkuRecommendationArgs,
)
def get_recommendations_for_sku(
    db: Session, org_id: str, args: SkuRecommendationArgs
) -> dict[str, Any]:
    day = parse_date(args.date, "date") or date.today()
    page = get_recommendations(db, org_id, args.warehouse_id, day, page_size=1, sku=args.sku)
    if not page.data:
        return {"message": "No recommendation found for this SKU."}
    return {
        "date": day.isoformat(),
        "effective_date": page.effective_date.isoformat() if page.effective_date else None,
        "warehouse_id": args.warehouse_id,
        **page.data[0].to_dict(),
    }


class ExplainArgs(BaseModel):
    warehouse_id: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    date: str | None = Field(None, description="YYYY-MM-DD, default today")


@tool(
    "explain_sku",
    "Everything behind a SKU's buffer: demand, variability, lead time, stock, inbound, "
    "order constraints and the recent daily series.",
    ExplainArgs,
)
def explain_sku(db: Session, org_id: str, args: ExplainArgs) -> dict[str, Any]:
    payload = build_explain_payload(db, org_id, args.warehouse_id, args.sku, args.date)
    if payload is None:
        return {"message": "No stock, demand or buffer data for this SKU."}
    return payload


class StockByWarehouseArgs(BaseModel):
    sku: str = Field(..., min_length=1)
    date: str | None = Field(None, description="YYYY-MM-DD; latest snapshot if missing")
    limit: int = Field(50, description="Number of warehouses (1..200)")
    sort_by: Literal["qty_desc", "qty_asc", "name"] = "qty_desc"
    warehouse_ids: list[str] | None = None


@tool(
    "get_stock_by_warehouse",
    "How a SKU's on-hand stock is split between warehouses.",
    StockByWarehouseArgs,
)
def get_stock_by_warehouse(
    db: Session, org_id: str, args: StockByWarehouseArgs
) -> dict[str, Any]:
    limit = _clamp(args.limit, 1, 200)
    requested = parse_date(args.date, "date")
    distribution = _stock_distribution(db, org_id, args.sku, requested, args.warehouse_ids)
    if distribution is None:
        return {"message": "No stock snapshots for this SKU."}
    effective, stock = distribution
    names = _warehouse_names(db, org_id, list(stock))
    items = [
        {"warehouse_id": wid, "warehouse_name": names.get(wid, wid), "qty_on_hand": qty}
        for wid, qty in stock.items()
    ]
    if args.sort_by == "name":
        items.sort(key=lambda i: (i["warehouse_name"], i["warehouse_id"]))
    else:
        items.sort(
            key=lambda i: (i["qty_on_hand"], i["warehouse_id"]),
            reverse=args.sort_by == "qty_desc",
        )
    return {
        "sku": args.sku,
        "requested_date": args.date,
        "effective_date": effective.isoformat(),
        "total_qty": sum(stock.values()),
        "warehouse_count": len(stock),
        "warehouses": items[:limit],
    }


class RebalanceArgs(BaseModel):
    sku: str = Field(..., min_length=1)
    date: str | None = Field(None, description="YYYY-MM-DD; latest snapshot if missing")
    max_moves: int = Field(5, description="Maximum transfers to suggest (1..20)")


@tool(
    "suggest_rebalance",
    "Transfers of a SKU from warehouses above their buffer target to warehouses below it.",
    RebalanceArgs,
)
def suggest_rebalance(db: Session, org_id: str, args: RebalanceArgs) -> dict[str, Any]:
    max_moves = _clamp(args.max_moves, 1, 20)
    buffers = list(
        db.scalars(
            select(Buffer)
            .where(Buffer.org_id == org_id, Buffer.sku == args.sku)
            .order_by(Buffer.warehouse_id)
        )
    )
    if not buffers:
        return {"message": "No buffers have been calculated for this SKU yet."}

    warehouse_ids = [b.warehouse_id for b in buffers]
    requested = parse_date(args.date, "date")
    distribution = _stock_distribution(db, org_id, args.sku, requested, warehouse_ids)
    if distribution is None:
        return {"message": "No stock snapshots for this SKU."}
    effective, stock = distribution
    names = _warehouse_names(db, org_id, warehouse_ids)

    positions = [
        WarehousePosition(
            warehouse_id=b.warehouse_id,
            warehouse_name=names.get(b.warehouse_id, b.warehouse_id),
            target=float(b.buffer_qty or 0),
            on_hand=stock.get(b.warehouse_id, 0.0),
            red_threshold=float(b.red_th or 0),
            yellow_threshold=float(b.yellow_th or 0),
        )
        for b in buffers
    ]
    moves = plan_rebalance(positions, max_moves)

    return {
        "sku": args.sku,
        "requested_date": args.date,
        "effective_date": effective.isoformat(),
        "warehouses": [
            {
                "warehouse_id": p.warehouse_id,
                "warehouse_name": p.warehouse_name,
                "zone": p.zone,
                "target": round_to(p.target),
                "on_hand": round_to(p.on_hand),
                "penetration": p.penetration,
                "surplus": round_to(p.surplus),
                "deficit": round_to(p.deficit),
            }
            for p in positions
        ],
        "suggestions": [
            {
                "from": {
                    "warehouse_id": m.from_warehouse_id,
                    "warehouse_name": m.from_warehouse_name,
                },
                "to": {
                    "warehouse_id": m.to_warehouse_id,
                    "warehouse_name": m.to_warehouse_name,
                },
                "qty": m.qty,
                "note": m.note,
            }
            for m in moves
        ],
        "note": (
            "Move stock from surplus warehouses to deficit ones, or order from suppliers."
            if moves
            else "No surplus/deficit pairs that call for a transfer."
        ),
    }


# =============================================================================
# Execution
# =============================================================================


def function_definitions() -> list[dict[str, Any]]:
    """Function-calling definitions of all registered tools."""
    return [t.as_function() for t in TOOLS.values()]


def execute_tool(
    db: Session,
    org_id: str,
    name: str,
    args: dict[str, Any] | str | None = None,
) -> dict[str, Any]:
    """Validate arguments and run a tool.

    Args:
        db: Database session
        org_id: Organization ID for scoping
        name: Registered tool name
        args: Arguments as a dict or a JSON string

    Raises:
        InputValidationError: For an unknown tool or invalid arguments

    """
    org_id = require_org_id(org_id)
    definition = TOOLS.get(name)
    if definition is None:
        raise InputValidationError(f"Unknown tool: {name}")

    if isinstance(args, str):
        try:
            args = json.loads(args) if args.strip() else {}
        except json.JSONDecodeError as e:
            raise InputValidationError(f"Could not parse arguments for {name}: {e}") from e
    try:
        parsed = definition.args_model.model_validate(args or {})
    except ValidationError as e:
        raise InputValidationError(f"Invalid arguments for {name}: {e.errors()[0]['msg']}") from e

    log.info("assistant_tool_called", extra={"org_id": org_id, "tool": name})
    return definition.handler(db, org_id, parsed)
