"""Tests for the daily sales rollup builder."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from replenish.core.errors import InputValidationError
from replenish.db.models import SalesDaily
from replenish.services.ingestion import import_sales
from replenish.services.sales_aggregator import rebuild_daily_sales, resolve_range
from tests.factories import ORG_ID, OTHER_ORG_ID, TODAY


def _event(order_id, when, sku="SKU-1", qty=1.0, net=10.0, **extra):
    return {
        "order_id": order_id,
        "line_id": "1",
        "order_datetime": when,
        "sku": sku,
        "qty": qty,
        "net_amount": net,
        **extra,
    }


def _rollup(db, org_id=ORG_ID):
    return {
        (r.date, r.sku, r.warehouse_id, r.channel): (r.units, r.revenue, r.orders)
        for r in db.scalars(select(SalesDaily).where(SalesDaily.org_id == org_id))
    }


@pytest.fixture
def sales(db, orgs):
    import_sales(
        db,
        ORG_ID,
        [
            _event("o1", "2024-03-10T09:00:00Z", qty=3, net=30, warehouse_id="W1", channel="web"),
            _event("o2", "2024-03-10T18:00:00Z", qty=2, net=20, warehouse_id="W1", channel="web"),
            # 01:00 at +02:00 is 23:00 UTC on the previous day
            _event("o3", "2024-03-11T01:00:00+02:00", sku="SKU-2", qty=4, net=40),
        ],
    )
    import_sales(db, OTHER_ORG_ID, [_event("x1", "2024-03-10T10:00:00Z", qty=99, net=990)])


def test_rebuild_groups_by_day_sku_warehouse_channel(db, sales):
    applied = rebuild_daily_sales(db, ORG_ID, "2024-03-01", "2024-03-31")

    assert applied == {"from": "2024-03-01", "to": "2024-03-31"}
    assert _rollup(db) == {
        (date(2024, 3, 10), "SKU-1", "W1", "web"): (5.0, 50.0, 2),
        (date(2024, 3, 10), "SKU-2", "GLOBAL", "ALL"): (4.0, 40.0, 1),
    }


def test_rebuild_is_idempotent(db, sales):
    rebuild_daily_sales(db, ORG_ID, "2024-03-01", "2024-03-31")
    first = _rollup(db)
    rebuild_daily_sales(db, ORG_ID, "2024-03-01", "2024-03-31")

    assert _rollup(db) == first


def test_corrected_event_replaces_rollup_value(db, sales):
    rebuild_daily_sales(db, ORG_ID, "2024-03-01", "2024-03-31")
    import_sales(
        db,
        ORG_ID,
        [_event("o1", "2024-03-10T09:00:00Z", qty=4, net=40, warehouse_id="W1", channel="web")],
    )
    rebuild_daily_sales(db, ORG_ID, "2024-03-01", "2024-03-31")

    assert _rollup(db)[(date(2024, 3, 10), "SKU-1", "W1", "web")] == (6.0, 60.0, 2)


def test_rows_outside_range_are_untouched(db, sales):
    db.add(
        SalesDaily(
            org_id=ORG_ID,
            date=date(2024, 2, 1),
            sku="SKU-OLD",
            warehouse_id="W1",
            channel="ALL",
            units=7,
            revenue=70,
            orders=1,
        )
    )
    db.commit()

    rebuild_daily_sales(db, ORG_ID, "2024-03-10", "2024-03-10")

    assert _rollup(db)[(date(2024, 2, 1), "SKU-OLD", "W1", "ALL")] == (7.0, 70.0, 1)


def test_range_end_is_inclusive_of_whole_day(db, orgs):
    import_sales(db, ORG_ID, [_event("late", "2024-03-10T23:59:59Z", warehouse_id="W1")])

    rebuild_daily_sales(db, ORG_ID, "2024-03-10", "2024-03-10")

    assert (date(2024, 3, 10), "SKU-1", "W1", "ALL") in _rollup(db)


def test_other_org_is_isolated(db, sales):
    rebuild_daily_sales(db, ORG_ID, "2024-03-01", "2024-03-31")

    assert _rollup(db, OTHER_ORG_ID) == {}


def test_inverted_range_is_rejected(db, orgs):
    with pytest.raises(InputValidationError):
        rebuild_daily_sales(db, ORG_ID, "2024-03-31", "2024-03-01")


def test_malformed_date_is_rejected(db, orgs):
    with pytest.raises(InputValidationError):
        rebuild_daily_sales(db, ORG_ID, "31/03/2024", None)


def test_missing_org_is_rejected(db):
    with pytest.raises(InputValidationError):
        rebuild_daily_sales(db, "", "2024-03-01", "2024-03-31")


def test_default_range_is_trailing_90_days():
    start, end = resolve_range(None, None, today=TODAY)

    assert end == TODAY
    assert (end - start).days == 90
