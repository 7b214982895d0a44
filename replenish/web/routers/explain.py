"""Explain payload endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query

from replenish.services.explain_payload import build_explain_payload
from replenish.web.deps import DBSession, OrgScope

router = APIRouter(prefix="/api/v1/explain", tags=["Explain"])


@router.get("")
def explain(
    org_id: OrgScope,
    db: DBSession,
    warehouse_id: str = Query(..., min_length=1),
    sku: str = Query(..., min_length=1),
    date: str | None = Query(None),
) -> dict[str, Any]:
    """Structured snapshot behind a SKU's buffer at a warehouse."""
    payload = build_explain_payload(db, org_id, warehouse_id, sku, date)
    if payload is None:
        raise HTTPException(status_code=404, detail="No data for this SKU and warehouse")
    return payload
