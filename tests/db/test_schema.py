"""Tests for the schema and database helpers."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import OperationalError

from replenish.core.errors import InputValidationError, TransientStoreError
from replenish.db.models import SalesDaily
from replenish.db.utils import (
    advisory_xact_lock,
    apply_read_timeout,
    chunked,
    require_org_id,
    store_errors,
    upsert_rows,
)
from tests.factories import ORG_ID, TODAY


def test_all_tables_exist(engine):
    assert set(inspect(engine).get_table_names()) == {
        "orgs",
        "warehouses",
        "suppliers",
        "catalog",
        "lead_time_stats",
        "sales_events",
        "stock_snapshots",
        "purchase_orders",
        "purchase_order_lines",
        "sales_daily",
        "buffers",
    }


def test_every_table_is_scoped_by_org(engine):
    inspector = inspect(engine)
    for table in inspector.get_table_names():
        columns = {c["name"] for c in inspector.get_columns(table)}
        assert "org_id" in columns or table == "orgs", table


def _row(units):
    return {
        "org_id": ORG_ID,
        "date": TODAY,
        "sku": "SKU-1",
        "warehouse_id": "W1",
        "channel": "ALL",
        "units": units,
        "revenue": 0.0,
        "orders": 1,
    }


def test_upsert_dedupes_and_updates(db):
    key = ("org_id", "date", "sku", "warehouse_id", "channel")

    assert upsert_rows(db, SalesDaily, [_row(1), _row(2)], key) == 1
    upsert_rows(db, SalesDaily, [_row(5)], key)
    db.commit()

    assert db.scalars(select(SalesDaily.units)).all() == [5.0]


def test_chunked():
    assert list(chunked(range(5), 2)) == [[0, 1], [2, 3], [4]]
    assert list(chunked([], 2)) == []


@pytest.mark.parametrize("org_id", [None, "", "   "])
def test_require_org_id(org_id):
    with pytest.raises(InputValidationError):
        require_org_id(org_id)


def test_postgres_only_helpers_are_noops_on_sqlite(db):
    assert advisory_xact_lock(db, "buffers", ORG_ID, "W1") is False
    apply_read_timeout(db, 500)


def test_operational_errors_become_transient(db):
    with pytest.raises(TransientStoreError), store_errors(db, "test"):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))
