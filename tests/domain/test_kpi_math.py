"""Tests for inventory KPI math."""

from __future__ import annotations

from datetime import date

from replenish.domain.buffers.kpi import (
    days_of_supply,
    fefo_risk,
    inventory_turns,
    median_days_to_sell,
)


def test_days_of_supply():
    assert days_of_supply(100, 4) == 25.0
    assert days_of_supply(100, 0) is None


def test_turns_are_annualized():
    assert inventory_turns(300, 30, 100) == 36.5
    assert inventory_turns(300, 30, 0) == 0.0
    assert inventory_turns(0, 30, 50) == 0.0


def test_median_days_to_sell_prefers_turns():
    assert median_days_to_sell(36.5, 99.0) == 10
    assert median_days_to_sell(0.0, 12.5) == 13
    assert median_days_to_sell(0.0, None) is None


def test_fefo_risk_when_expiry_precedes_sell_through():
    today = date(2024, 1, 1)
    assert fefo_risk(date(2024, 1, 10), 20.0, today) is True
    assert fefo_risk(date(2024, 1, 21), 20.0, today) is False
    assert fefo_risk(None, 20.0, today) is False
    assert fefo_risk(date(2024, 1, 2), None, today) is False
