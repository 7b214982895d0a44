"""Daily sales rollup builder.

Aggregates order lines into SalesDaily rows keyed by
(org, date, sku, warehouse, channel). Rebuilds are idempotent upserts: running
the same range twice leaves identical rows and rows outside the range are not
touched.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from replenish.core.config import get_settings
from replenish.core.dates import as_date, parse_date
from replenish.core.errors import InputValidationError
from replenish.core.logging import get_logger
from replenish.core.metrics import sales_rollup_rebuilds_total
from replenish.db.models import SalesDaily, SalesEvent
from replenish.db.utils import require_org_id, store_errors, upsert_rows

log = get_logger("replenish.sales_aggregator")

ROLLUP_KEY = ("org_id", "date", "sku", "warehouse_id", "channel")


def resolve_range(
    date_from: str | date | None,
    date_to: str | date | None,
    today: date | None = None,
) -> tuple[date, date]:
    """Resolve an optional date range, defaulting to the trailing rebuild window.

    Raises:
        InputValidationError: If a date is malformed or from is after to

    """
    settings = get_settings()
    today = today or date.today()
    end = parse_date(date_to, "to") or today
    start = parse_date(date_from, "from") or today - timedelta(days=settings.rebuild_default_days)
    if start > end:
        raise InputValidationError(f"from ({start}) must not be after to ({end})")
    return start, end


def rebuild_daily_sales(
    db: Session,
    org_id: str,
    date_from: str | date | None = None,
    date_to: str | date | None = None,
    *,
    today: date | None = None,
) -> dict[str, str]:
    """Recompute daily rollups for every key touched by sales in the range.

    Args:
        db: Database session
        org_id: Organization ID for scoping
        date_from: First day (inclusive), default today - 90 days
        date_to: Last day (inclusive), default today
        today: Override for the current date (tests)

    Returns:
        Applied range as ISO dates: {"from": ..., "to": ...}

    Raises:
        InputValidationError: On a malformed or inverted range
        TransientStoreError: If the store is unavailable (safe to retry)

    """
    org_id = require_org_id(org_id)
    start, end = resolve_range(date_from, date_to, today)
    settings = get_settings()
    started = time.perf_counter()

    range_start = datetime.combine(start, datetime.min.time())
    range_end = datetime.combine(end + timedelta(days=1), datetime.min.time())

    # The same expression objects go into SELECT and GROUP BY so that the
    # fallback parameters render identically in both clauses.
    day_col = func.date(SalesEvent.order_datetime)
    warehouse_col = func.coalesce(SalesEvent.warehouse_id, settings.warehouse_fallback)
    channel_col = func.coalesce(SalesEvent.channel, settings.channel_fallback)

    stmt = (
        select(
            day_col.label("day"),
            SalesEvent.sku,
            warehouse_col.label("warehouse_id"),
            channel_col.label("channel"),
            func.coalesce(func.sum(SalesEvent.qty), 0).label("units"),
            func.coalesce(func.sum(SalesEvent.net_amount), 0).label("revenue"),
            func.count(distinct(SalesEvent.order_id)).label("orders"),
        )
        .where(
            SalesEvent.org_id == org_id,
            SalesEvent.order_datetime >= range_start,
            SalesEvent.order_datetime < range_end,
        )
        .group_by(day_col, SalesEvent.sku, warehouse_col, channel_col)
        .order_by(day_col, SalesEvent.sku)
    )

    try:
        with store_errors(db, "sales_aggregator"):
            rows = [
                {
                    "org_id": org_id,
                    "date": as_date(r.day),
                    "sku": r.sku,
                    "warehouse_id": r.warehouse_id,
                    "channel": r.channel,
                    "units": float(r.units or 0),
                    "revenue": float(r.revenue or 0),
                    "orders": int(r.orders or 0),
                }
                for r in db.execute(stmt)
            ]
            written = upsert_rows(db, SalesDaily, rows, ROLLUP_KEY)
            db.commit()
    except Exception:
        sales_rollup_rebuilds_total.labels(status="failed").inc()
        log.error(
            "sales_rollup_rebuild_failed",
            extra={"org_id": org_id, "from": start.isoformat(), "to": end.isoformat()},
        )
        raise

    sales_rollup_rebuilds_total.labels(status="success").inc()
    log.info(
        "sales_rollup_rebuilt",
        extra={
            "org_id": org_id,
            "from": start.isoformat(),
            "to": end.isoformat(),
            "rows": written,
            "duration_ms": round((time.perf_counter() - started) * 1000, 1),
        },
    )
    return {"from": start.isoformat(), "to": end.isoformat()}
