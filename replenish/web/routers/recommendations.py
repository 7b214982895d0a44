"""Recommendation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from replenish.services.recommendations import get_recommendations
from replenish.web.deps import DBSession, OrgScope
from replenish.web.schemas import RecommendationPageOut

router = APIRouter(prefix="/api/v1/recommendations", tags=["Recommendations"])


@router.get("", response_model=RecommendationPageOut)
def list_recommendations(
    org_id: OrgScope,
    db: DBSession,
    warehouse_id: str = Query(..., min_length=1),
    date: str | None = Query(None, description="Stock date YYYY-MM-DD (default today)"),
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    auto_recalc: bool = Query(False),
    timeout_ms: int | None = Query(None, ge=0),
):
    """Order recommendations for one page of buffers.

    effective_date is the snapshot date actually used for on-hand.
    """
    result = get_recommendations(
        db,
        org_id,
        warehouse_id,
        date,
        page=page,
        page_size=page_size,
        auto_recalc=auto_recalc,
        timeout_ms=timeout_ms,
    )
    return result.to_dict()
