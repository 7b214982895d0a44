"""Warehouse directory endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from replenish.services.warehouses import delete_warehouse, list_warehouses
from replenish.web.deps import DBSession, OrgScope
from replenish.web.schemas import WarehouseDeleted, WarehouseList

router = APIRouter(prefix="/api/v1/warehouses", tags=["Warehouses"])


@router.get("", response_model=WarehouseList)
def get_warehouses(
    org_id: OrgScope,
    db: DBSession,
    search: str | None = Query(None, description="Name substring"),
):
    """Warehouses with their latest stock snapshot date."""
    return WarehouseList(data=list_warehouses(db, org_id, search))


@router.delete("/{warehouse_id}", response_model=WarehouseDeleted)
def remove_warehouse(warehouse_id: str, org_id: OrgScope, db: DBSession):
    """Delete a warehouse with its buffers, snapshots, rollups and sales."""
    summary = delete_warehouse(db, org_id, warehouse_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Warehouse not found")
    return WarehouseDeleted(warehouse_id=warehouse_id, deleted=summary)
