"""Tests for demand and lead-time estimation."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from replenish.db.models import (
    Buffer,
    LeadTimeStat,
    PurchaseOrder,
    PurchaseOrderLine,
    Supplier,
)
from replenish.services.demand_estimator import estimate_demand, resolve_lead_time
from tests.factories import ORG_ID, OTHER_ORG_ID, TODAY


def test_dormant_sku_has_zero_demand(db, orgs):
    estimate = estimate_demand(db, ORG_ID, "SKU-1", "W1", 30, as_of=TODAY)

    assert estimate.avg_daily_demand == 0.0
    assert estimate.variability is None
    assert estimate.has_history is False
    assert len(estimate.series) == 30


def test_channels_are_summed_per_day(db, orgs, add_daily_sales):
    add_daily_sales("SKU-1", [(TODAY, 3)], channel="web")
    add_daily_sales("SKU-1", [(TODAY, 2)], channel="shop")

    estimate = estimate_demand(db, ORG_ID, "SKU-1", "W1", 10, as_of=TODAY)

    assert estimate.series[-1] == 5.0
    assert estimate.total_units == 5.0
    assert estimate.avg_daily_demand == pytest.approx(0.5)


def test_other_org_sales_are_not_counted(db, orgs, add_daily_sales):
    add_daily_sales("SKU-1", [(TODAY, 100)], org_id=OTHER_ORG_ID)

    assert estimate_demand(db, ORG_ID, "SKU-1", "W1", 10, as_of=TODAY).total_units == 0


def test_lead_time_falls_back_to_default(db, orgs):
    assert resolve_lead_time(db, ORG_ID, "SKU-1", "W1") == (7.0, "fallback")


def test_lead_time_from_supplier_default_via_purchase_orders(db, orgs):
    db.add(Supplier(id="S1", org_id=ORG_ID, name="Supplier", lead_time_days_default=5))
    db.add(
        PurchaseOrder(
            org_id=ORG_ID, po_id="P1", supplier_id="S1", ordered_at=datetime(2024, 3, 1)
        )
    )
    db.add(PurchaseOrderLine(org_id=ORG_ID, po_id="P1", sku="SKU-1", qty=10))
    db.commit()

    assert resolve_lead_time(db, ORG_ID, "SKU-1", "W1") == (5.0, "supplier_default")


def test_lead_time_stats_take_median_across_suppliers(db, orgs):
    db.add_all(
        [
            LeadTimeStat(org_id=ORG_ID, supplier_id="S1", sku="SKU-1", lead_time_days_median=10),
            LeadTimeStat(org_id=ORG_ID, supplier_id="S2", sku="SKU-1", lead_time_days_median=14),
            LeadTimeStat(
                org_id=OTHER_ORG_ID, supplier_id="S9", sku="SKU-1", lead_time_days_median=90
            ),
        ]
    )
    db.commit()

    assert resolve_lead_time(db, ORG_ID, "SKU-1", "W1") == (12.0, "lead_time_stats")


def test_stored_buffer_lead_time_wins(db, orgs):
    db.add(LeadTimeStat(org_id=ORG_ID, supplier_id="S1", sku="SKU-1", lead_time_days_median=10))
    db.add(Buffer(org_id=ORG_ID, sku="SKU-1", warehouse_id="W1", lead_time_days=9.0))
    db.commit()

    assert resolve_lead_time(db, ORG_ID, "SKU-1", "W1") == (9.0, "buffer")
    # Buffers are per warehouse
    assert resolve_lead_time(db, ORG_ID, "SKU-1", "W2") == (10.0, "lead_time_stats")


def test_window_ends_on_as_of(db, orgs, add_daily_sales):
    add_daily_sales("SKU-1", [(TODAY + timedelta(days=1), 100), (TODAY - timedelta(days=9), 10)])

    estimate = estimate_demand(db, ORG_ID, "SKU-1", "W1", 10, as_of=TODAY)

    assert estimate.series[0] == 10.0
    assert estimate.total_units == 10.0
