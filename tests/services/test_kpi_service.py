"""Tests for per-SKU KPIs."""

from __future__ import annotations

from datetime import timedelta

import pytest

from replenish.core.errors import InputValidationError
from replenish.services.kpi import get_sku_kpi
from tests.factories import ORG_ID, TODAY, every_day


def test_kpis_over_explicit_window(db, orgs, add_daily_sales, add_stock):
    add_daily_sales("SKU-1", every_day(TODAY, 30, 10), warehouse_id="GLOBAL")
    add_stock(
        "SKU-1",
        TODAY - timedelta(days=1),
        100,
        warehouse_id="GLOBAL",
        expiry=TODAY + timedelta(days=5),
    )

    result = get_sku_kpi(
        db, ORG_ID, "SKU-1", date_from=TODAY - timedelta(days=29), date_to=TODAY, today=TODAY
    )
    metrics = result["metrics"]

    assert result["warehouse_id"] == "GLOBAL"
    assert result["from"] == "2024-03-02"
    assert result["to"] == "2024-03-31"
    assert metrics["window_days"] == 30
    assert metrics["total_units"] == 300
    assert metrics["avg_daily_demand"] == pytest.approx(10.0)
    assert metrics["dos"] == pytest.approx(10.0)
    assert metrics["turns"] == pytest.approx(36.5)
    assert metrics["median_days_to_sell"] == 10
    assert metrics["fefo_risk"] is True
    assert metrics["stock_date"] == "2024-03-30"
    assert metrics["min_expiry"] == "2024-04-05"


def test_no_data_gives_empty_metrics(db, orgs):
    metrics = get_sku_kpi(db, ORG_ID, "SKU-1", "W1", today=TODAY)["metrics"]

    assert metrics["dos"] is None
    assert metrics["turns"] == 0.0
    assert metrics["median_days_to_sell"] is None
    assert metrics["fefo_risk"] is False
    assert metrics["stock_date"] is None


def test_default_window_is_last_30_days(db, orgs):
    result = get_sku_kpi(db, ORG_ID, "SKU-1", "W1", today=TODAY)

    assert result["to"] == TODAY.isoformat()
    assert result["from"] == (TODAY - timedelta(days=30)).isoformat()


def test_inverted_window_is_rejected(db, orgs):
    with pytest.raises(InputValidationError):
        get_sku_kpi(db, ORG_ID, "SKU-1", "W1", "2024-03-31", "2024-03-01", today=TODAY)


def test_sku_is_required(db, orgs):
    with pytest.raises(InputValidationError):
        get_sku_kpi(db, ORG_ID, "", "W1", today=TODAY)
