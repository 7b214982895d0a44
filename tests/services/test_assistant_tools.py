"""Tests for the assistant tool registry and handlers."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from replenish.core.errors import InputValidationError
from replenish.db.models import Buffer, PurchaseOrder, PurchaseOrderLine, Warehouse
from replenish.services.assistant_tools import TOOLS, execute_tool, function_definitions
from replenish.services.buffer_engine import recalc_buffers
from tests.factories import ORG_ID, OTHER_ORG_ID, TODAY, every_day


def _buffer(db, sku, warehouse_id, buffer_qty):
    db.add(
        Buffer(
            org_id=ORG_ID,
            sku=sku,
            warehouse_id=warehouse_id,
            lead_time_days=7,
            avg_daily_demand=buffer_qty / 8.4,
            buffer_qty=buffer_qty,
            red_th=buffer_qty / 3,
            yellow_th=buffer_qty * 2 / 3,
        )
    )
    db.commit()


def test_function_definitions_expose_json_schema():
    definitions = {d["function"]["name"]: d for d in function_definitions()}

    assert set(definitions) == set(TOOLS)
    params = definitions["get_buffer_status"]["function"]["parameters"]
    assert params["type"] == "object"
    assert set(params["required"]) == {"sku", "warehouse_id"}
    assert "title" not in params


def test_unknown_tool_is_rejected(db, orgs):
    with pytest.raises(InputValidationError, match="Unknown tool"):
        execute_tool(db, ORG_ID, "drop_tables", {})


def test_invalid_arguments_are_rejected(db, orgs):
    with pytest.raises(InputValidationError):
        execute_tool(db, ORG_ID, "get_buffer_status", {"sku": "SKU-1"})
    with pytest.raises(InputValidationError):
        execute_tool(db, ORG_ID, "get_buffer_status", "{not json")


def test_top_skus_ranks_by_units_and_clamps_limit(db, orgs, add_daily_sales):
    today = date.today()
    add_daily_sales("SKU-A", [(today, 5)])
    add_daily_sales("SKU-B", [(today, 50)])
    add_daily_sales("SKU-C", [(today, 500)], org_id=OTHER_ORG_ID)

    result = execute_tool(db, ORG_ID, "get_top_skus", json.dumps({"limit": 500, "days": 0}))

    assert [i["sku"] for i in result["items"]] == ["SKU-B", "SKU-A"]
    assert result["lookback_days"] == 1
    assert result["items"][0]["revenue"] == 500.0


def test_buffer_status(db, orgs, add_stock):
    _buffer(db, "SKU-1", "W1", 84)
    add_stock("SKU-1", TODAY, 20)

    result = execute_tool(db, ORG_ID, "get_buffer_status", {"sku": "SKU-1", "warehouse_id": "W1"})

    assert result["zone"] == "red"
    assert result["suggested_qty"] == 64
    assert result["stock_date"] == TODAY.isoformat()


def test_buffer_status_without_buffer(db, orgs):
    result = execute_tool(db, ORG_ID, "get_buffer_status", {"sku": "SKU-1", "warehouse_id": "W1"})
    assert "message" in result


def test_purchase_orders_filter_by_status(db, orgs):
    for po_id, received in (("P1", None), ("P2", datetime(2024, 3, 5))):
        db.add(
            PurchaseOrder(
                org_id=ORG_ID,
                po_id=po_id,
                supplier_id="S1",
                ordered_at=datetime(2024, 3, 1),
                received_at=received,
            )
        )
        db.add(PurchaseOrderLine(org_id=ORG_ID, po_id=po_id, sku="SKU-1", qty=10))
    db.commit()

    pending = execute_tool(db, ORG_ID, "get_purchase_orders", {"status": "pending"})

    assert [o["po_id"] for o in pending["orders"]] == ["P1"]
    assert pending["orders"][0]["lines"] == [
        {"sku": "SKU-1", "qty": 10.0, "moq": None, "pack_size": None}
    ]


def test_recommendation_for_sku_reads_its_buffer(db, orgs, add_daily_sales, add_stock):
    today = date.today()
    add_daily_sales("SKU-1", every_day(today, 60, 10))
    add_daily_sales("SKU-2", every_day(today, 60, 3))
    add_stock("SKU-1", today - timedelta(days=1), 20)
    recalc_buffers(db, ORG_ID, "W1", 60, as_of=today)

    result = execute_tool(
        db, ORG_ID, "get_recommendations_for_sku", {"sku": "SKU-1", "warehouse_id": "W1"}
    )

    assert result["suggested_qty"] == 64
    assert result["effective_date"] == (today - timedelta(days=1)).isoformat()
    assert result["sku"] == "SKU-1"


def test_recommendation_for_sku_does_not_write_buffers(db, orgs, add_daily_sales):
    add_daily_sales("SKU-1", every_day(date.today(), 60, 10))

    result = execute_tool(
        db, ORG_ID, "get_recommendations_for_sku", {"sku": "SKU-1", "warehouse_id": "W1"}
    )

    assert "message" in result
    assert db.scalars(select(Buffer)).first() is None


def test_recommendation_for_unknown_sku(db, orgs):
    result = execute_tool(
        db, ORG_ID, "get_recommendations_for_sku", {"sku": "SKU-1", "warehouse_id": "W1"}
    )
    assert "message" in result


def test_explain_sku_without_data(db, orgs):
    result = execute_tool(db, ORG_ID, "explain_sku", {"sku": "SKU-1", "warehouse_id": "W1"})
    assert "message" in result


def test_stock_by_warehouse_uses_latest_snapshot(db, warehouse, add_stock):
    add_stock("SKU-1", TODAY - timedelta(days=1), 10, warehouse_id="W1")
    add_stock("SKU-1", TODAY - timedelta(days=1), 30, warehouse_id="W2")

    result = execute_tool(
        db, ORG_ID, "get_stock_by_warehouse", {"sku": "SKU-1", "date": TODAY.isoformat()}
    )

    assert result["effective_date"] == (TODAY - timedelta(days=1)).isoformat()
    assert result["total_qty"] == 40
    assert [w["warehouse_id"] for w in result["warehouses"]] == ["W2", "W1"]
    assert result["warehouses"][1]["warehouse_name"] == "Kyiv Central"


def test_suggest_rebalance(db, warehouse, add_stock):
    db.add(Warehouse(id="W2", org_id=ORG_ID, name="Lviv"))
    db.commit()
    _buffer(db, "SKU-1", "W1", 100)
    _buffer(db, "SKU-1", "W2", 100)
    add_stock("SKU-1", TODAY, 180, warehouse_id="W1")
    add_stock("SKU-1", TODAY, 30, warehouse_id="W2")

    result = execute_tool(db, ORG_ID, "suggest_rebalance", {"sku": "SKU-1", "max_moves": 0})

    assert len(result["suggestions"]) == 1
    move = result["suggestions"][0]
    assert move["from"]["warehouse_name"] == "Kyiv Central"
    assert move["to"]["warehouse_id"] == "W2"
    assert move["qty"] == 70.0
    zones = {w["warehouse_id"]: w["zone"] for w in result["warehouses"]}
    assert zones == {"W1": "green", "W2": "red"}


def test_suggest_rebalance_without_buffers(db, orgs):
    result = execute_tool(db, ORG_ID, "suggest_rebalance", {"sku": "SKU-1"})
    assert "message" in result
