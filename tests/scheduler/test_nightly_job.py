"""Tests for the nightly rebuild-and-recalculate job."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from replenish.db.models import Buffer, SalesEvent, Warehouse
from replenish.scheduler import jobs
from replenish.scheduler.jobs import monitor_job, rebuild_and_recalc
from tests.factories import ORG_ID, OTHER_ORG_ID, TODAY, at


def test_rebuilds_and_recalculates_every_org(db, warehouse, session_factory):
    for i in range(10):
        day = TODAY - timedelta(days=i)
        db.add(
            SalesEvent(
                org_id=ORG_ID,
                order_id=f"o{i}",
                line_id="1",
                order_datetime=at(day),
                sku="SKU-1",
                qty=6,
                warehouse_id="W1",
            )
        )
    db.add(
        SalesEvent(
            org_id=OTHER_ORG_ID,
            order_id="x",
            line_id="1",
            order_datetime=at(TODAY),
            sku="SKU-9",
            qty=3,
        )
    )
    db.commit()

    results = rebuild_and_recalc(90, 60, today=TODAY, session_factory=session_factory)

    assert results == {ORG_ID: {"W1": 1}, OTHER_ORG_ID: {"GLOBAL": 1}}
    buffers = {(b.org_id, b.warehouse_id, b.sku) for b in db.scalars(select(Buffer))}
    assert buffers == {(ORG_ID, "W1", "SKU-1"), (OTHER_ORG_ID, "GLOBAL", "SKU-9")}


def test_registered_warehouse_without_sales_updates_nothing(warehouse, session_factory):
    results = rebuild_and_recalc(today=TODAY, session_factory=session_factory)
    assert results[ORG_ID] == {"W1": 0}


def test_monitor_job_reraises():
    with pytest.raises(RuntimeError), monitor_job("failing_job"):
        raise RuntimeError("boom")


def test_failing_warehouse_is_skipped(
    db, warehouse, add_daily_sales, session_factory, monkeypatch
):
    db.add(Warehouse(id="W2", org_id=ORG_ID, name="Lviv West"))
    db.commit()
    add_daily_sales("SKU-1", [(TODAY, 6)], warehouse_id="W2")
    real_recalc = jobs.recalc_buffers

    def flaky_recalc(db, org_id, warehouse_id, *args, **kwargs):
        if warehouse_id == "W1":
            raise IntegrityError("INSERT INTO buffers", {}, Exception("duplicate key"))
        return real_recalc(db, org_id, warehouse_id, *args, **kwargs)

    monkeypatch.setattr(jobs, "recalc_buffers", flaky_recalc)

    results = rebuild_and_recalc(90, 60, today=TODAY, session_factory=session_factory)

    assert results[ORG_ID] == {"W1": -1, "W2": 1}


def test_failing_org_does_not_stop_the_others(orgs, session_factory, monkeypatch):
    processed = []

    def rebuild(db, org_id, *args, **kwargs):
        if org_id == ORG_ID:
            raise RuntimeError("rollup table locked")
        processed.append(org_id)
        return {"rows": 0}

    monkeypatch.setattr(jobs, "rebuild_daily_sales", rebuild)

    results = rebuild_and_recalc(today=TODAY, session_factory=session_factory)

    assert results[ORG_ID] == {}
    assert processed == [OTHER_ORG_ID]
    assert OTHER_ORG_ID in results
