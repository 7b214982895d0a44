"""Tests for the explain payload builder."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from replenish.db.models import PurchaseOrder, PurchaseOrderLine
from replenish.services.buffer_engine import recalc_buffers
from replenish.services.explain_payload import build_explain_payload
from tests.factories import ORG_ID, TODAY, every_day


def test_no_data_returns_none(db, orgs):
    assert build_explain_payload(db, ORG_ID, "W1", "SKU-1", TODAY) is None


def test_payload_without_stored_buffer(db, orgs, add_daily_sales, add_stock):
    add_daily_sales("SKU-1", [(TODAY - timedelta(days=10), 50)])
    add_stock("SKU-1", TODAY, 2)

    payload = build_explain_payload(db, ORG_ID, "W1", "SKU-1", TODAY)

    assert payload["avg_daily_demand"] == pytest.approx(0.83)
    assert payload["lead_time_days"] == 7.0
    assert payload["lead_time_source"] == "fallback"
    assert payload["buffer_factor"] == 1.2
    assert payload["buffer_qty"] == 7.0
    assert payload["on_hand"] == 2.0
    assert payload["order_raw"] == 5.0
    assert payload["zone"] == "red"
    assert payload["context"] == {"segment": "C", "has_buffer": False, "dormant": False}
    assert payload["time_series"]["days"] == 60
    assert len(payload["time_series"]["daily_units"]) == 60
    assert sum(payload["time_series"]["daily_units"]) == 50
    assert payload["lt_variability"] is None


def test_payload_uses_stored_buffer(db, orgs, add_daily_sales, add_stock):
    add_daily_sales("SKU-1", every_day(TODAY, 60, 10))
    add_stock("SKU-1", TODAY, 70)
    recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY)

    payload = build_explain_payload(db, ORG_ID, "W1", "SKU-1", TODAY)

    assert payload["context"]["has_buffer"] is True
    assert payload["lead_time_source"] == "buffer"
    assert payload["buffer_qty"] == 84.0
    assert payload["buffer_factor"] == 1.2
    assert payload["demand_variability"] == 0.0
    assert payload["buffer_penetration"] == 0.83
    assert payload["zone"] == "green"


def test_zone_is_none_without_target(db, orgs, add_stock):
    add_stock("SKU-1", TODAY, 10)

    payload = build_explain_payload(db, ORG_ID, "W1", "SKU-1", TODAY)

    assert payload["zone"] is None
    assert payload["buffer_penetration"] is None
    assert payload["context"]["dormant"] is True


def test_order_constraints_from_latest_line(db, orgs, add_stock):
    add_stock("SKU-1", TODAY, 10)
    orders = [("P1", datetime(2024, 1, 1), 10), ("P2", datetime(2024, 2, 1), 24)]
    for po_id, created, moq in orders:
        db.add(PurchaseOrder(org_id=ORG_ID, po_id=po_id, supplier_id="S1", ordered_at=created))
        db.add(
            PurchaseOrderLine(
                org_id=ORG_ID,
                po_id=po_id,
                sku="SKU-1",
                qty=50,
                moq=moq,
                pack_size=6,
                created_at=created,
            )
        )
    db.commit()

    payload = build_explain_payload(db, ORG_ID, "W1", "SKU-1", TODAY)

    assert payload["order_constraints"] == {"moq": 24, "pack_size": 6}
    assert payload["inbound"] == 100.0
