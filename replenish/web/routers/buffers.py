"""Buffer endpoints: listing and recalculation."""

from __future__ import annotations

from fastapi import APIRouter, Query

from replenish.core.config import get_settings
from replenish.services.buffer_engine import list_buffers_page, recalc_buffers
from replenish.web.deps import DBSession, OrgScope
from replenish.web.schemas import BufferOut, BufferPage, RecalcRequest, RecalcResponse

router = APIRouter(prefix="/api/v1/buffers", tags=["Buffers"])


@router.get("", response_model=BufferPage)
def get_buffers(
    org_id: OrgScope,
    db: DBSession,
    warehouse_id: str = Query(..., min_length=1),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    recalc: bool = Query(False, description="Recalculate before listing"),
):
    """List a warehouse's buffers ordered by SKU."""
    if recalc:
        recalc_buffers(db, org_id, warehouse_id, get_settings().buffer_lookback_days)
    items, total = list_buffers_page(db, org_id, warehouse_id, offset, limit)
    return BufferPage(
        data=[BufferOut.model_validate(b) for b in items],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.post("/recalc", response_model=RecalcResponse)
def post_recalc(org_id: OrgScope, db: DBSession, body: RecalcRequest):
    """Recalculate a warehouse's buffers from the lookback window."""
    return recalc_buffers(db, org_id, body.warehouse_id, body.lookback_days)
