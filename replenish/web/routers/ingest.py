"""Ingestion endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from replenish.services.ingestion import import_entity
from replenish.web.deps import DBSession, OrgScope
from replenish.web.schemas import IngestRequest, IngestResponse

router = APIRouter(prefix="/api/v1/ingest", tags=["Ingestion"])


@router.post("/{entity}", response_model=IngestResponse)
def ingest(entity: str, body: IngestRequest, org_id: OrgScope, db: DBSession):
    """Upsert a batch of items by natural key.

    entity: warehouses, suppliers, catalog, sales, stock, po_headers,
    po_lines or lead_times.
    """
    result = import_entity(db, org_id, entity, body.items)
    return IngestResponse(entity=entity, processed=result["processed"])
