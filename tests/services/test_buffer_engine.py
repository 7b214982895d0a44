"""Tests for buffer recalculation."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from replenish.core.errors import InputValidationError
from replenish.db.models import Buffer
from replenish.services.buffer_engine import list_buffers, list_buffers_page, recalc_buffers
from tests.factories import ORG_ID, OTHER_ORG_ID, TODAY, every_day


def _buffer(db, sku, warehouse_id="W1", org_id=ORG_ID):
    return db.scalars(
        select(Buffer).where(
            Buffer.org_id == org_id, Buffer.sku == sku, Buffer.warehouse_id == warehouse_id
        )
    ).first()


def test_single_sale_is_averaged_over_whole_window(db, orgs, add_daily_sales):
    """50 units in a 60-day window with the 7-day fallback lead time → buffer 7.0."""
    add_daily_sales("SKU-1", [(TODAY - timedelta(days=10), 50)])

    result = recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY)

    buffer = _buffer(db, "SKU-1")
    assert result == {"updated": 1}
    assert buffer.avg_daily_demand == pytest.approx(50 / 60)
    assert buffer.lead_time_days == 7.0
    assert buffer.buffer_qty == pytest.approx(7.0)
    assert buffer.red_th == pytest.approx(7.0 / 3)
    assert buffer.yellow_th == pytest.approx(14.0 / 3)


def test_recalc_is_idempotent(db, orgs, add_daily_sales):
    add_daily_sales("SKU-1", every_day(TODAY, 60, 10))

    recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY)
    first = _buffer(db, "SKU-1").buffer_qty
    recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY)
    db.expire_all()

    assert _buffer(db, "SKU-1").buffer_qty == pytest.approx(first)
    assert first == pytest.approx(84.0)
    assert len(list_buffers(db, ORG_ID, "W1")) == 1


def test_dormant_sku_keeps_existing_buffer(db, orgs, add_daily_sales):
    db.add(
        Buffer(
            org_id=ORG_ID,
            sku="SKU-OLD",
            warehouse_id="W1",
            lead_time_days=5,
            avg_daily_demand=3,
            buffer_qty=18,
            red_th=6,
            yellow_th=12,
        )
    )
    db.commit()
    add_daily_sales("SKU-1", [(TODAY, 6)])

    assert recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY) == {"updated": 1}
    assert _buffer(db, "SKU-OLD").buffer_qty == 18


def test_zero_unit_rollups_keep_existing_buffer(db, orgs, add_daily_sales):
    db.add(
        Buffer(
            org_id=ORG_ID,
            sku="SKU-OLD",
            warehouse_id="W1",
            lead_time_days=5,
            avg_daily_demand=3,
            buffer_qty=18,
            red_th=6,
            yellow_th=12,
        )
    )
    db.commit()
    add_daily_sales("SKU-OLD", [(TODAY - timedelta(days=3), 0)])
    add_daily_sales("SKU-NEW", [(TODAY - timedelta(days=3), 0)])

    assert recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY) == {"updated": 0}
    db.expire_all()
    assert _buffer(db, "SKU-OLD").buffer_qty == 18
    assert _buffer(db, "SKU-NEW") is None


def test_no_demand_updates_nothing(db, orgs, add_daily_sales):
    add_daily_sales("SKU-1", [(TODAY - timedelta(days=60), 100)])  # one day outside the window

    assert recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY) == {"updated": 0}
    assert _buffer(db, "SKU-1") is None


def test_other_org_and_warehouse_are_isolated(db, orgs, add_daily_sales):
    add_daily_sales("SKU-1", [(TODAY, 30)], org_id=OTHER_ORG_ID)
    add_daily_sales("SKU-1", [(TODAY, 30)], warehouse_id="W2")

    assert recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY) == {"updated": 0}
    assert _buffer(db, "SKU-1", org_id=OTHER_ORG_ID) is None


def test_stored_lead_time_is_reused(db, orgs, add_daily_sales):
    db.add(Buffer(org_id=ORG_ID, sku="SKU-1", warehouse_id="W1", lead_time_days=10))
    db.commit()
    add_daily_sales("SKU-1", every_day(TODAY, 60, 2))

    recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY)
    db.expire_all()

    assert _buffer(db, "SKU-1").buffer_qty == pytest.approx(2 * 10 * 1.2)


@pytest.mark.parametrize("lookback", [0, -5])
def test_non_positive_lookback_is_rejected(db, orgs, lookback):
    with pytest.raises(InputValidationError):
        recalc_buffers(db, ORG_ID, "W1", lookback)


def test_missing_warehouse_is_rejected(db, orgs):
    with pytest.raises(InputValidationError):
        recalc_buffers(db, ORG_ID, "", 60)


def test_list_buffers_page_orders_by_sku(db, orgs, add_daily_sales):
    for sku in ("SKU-C", "SKU-A", "SKU-B"):
        add_daily_sales(sku, [(TODAY, 5)])
    recalc_buffers(db, ORG_ID, "W1", 60, as_of=TODAY)

    items, total = list_buffers_page(db, ORG_ID, "W1", offset=1, limit=1)

    assert total == 3
    assert [b.sku for b in items] == ["SKU-B"]
