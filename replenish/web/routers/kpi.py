"""KPI endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from replenish.services.kpi import get_sku_kpi
from replenish.web.deps import DBSession, OrgScope
from replenish.web.schemas import KpiOut

router = APIRouter(prefix="/api/v1/kpi", tags=["KPI"])


@router.get("/sku/{sku}", response_model=KpiOut)
def sku_kpi(
    sku: str,
    org_id: OrgScope,
    db: DBSession,
    warehouse_id: str | None = Query(None, description="Default GLOBAL"),
    date_from: str | None = Query(None, alias="from"),
    date_to: str | None = Query(None, alias="to"),
    timeout_ms: int | None = Query(None, ge=0),
):
    """Days of supply, turns, days to sell and FEFO risk of one SKU."""
    result = get_sku_kpi(
        db, org_id, sku, warehouse_id, date_from, date_to, timeout_ms=timeout_ms
    )
    return KpiOut(
        sku=result["sku"],
        from_date=result["from"],
        to_date=result["to"],
        warehouse_id=result["warehouse_id"],
        metrics=result["metrics"],
    )
