"""Sales rollup endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from replenish.services.sales_aggregator import rebuild_daily_sales
from replenish.web.deps import DBSession, OrgScope
from replenish.web.schemas import RebuildResponse

router = APIRouter(prefix="/api/v1/sales", tags=["Sales"])


@router.post("/rebuild", response_model=RebuildResponse)
def rebuild(
    org_id: OrgScope,
    db: DBSession,
    date_from: str | None = Query(None, alias="from", description="YYYY-MM-DD"),
    date_to: str | None = Query(None, alias="to", description="YYYY-MM-DD"),
):
    """Rebuild daily sales rollups for a date range (default: last 90 days)."""
    applied = rebuild_daily_sales(db, org_id, date_from, date_to)
    return RebuildResponse(from_date=applied["from"], to_date=applied["to"])
