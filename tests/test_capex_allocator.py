"""Tests for CAPEX allocation, inventory investment and financing split."""

import pytest

from projection_engine.capex_allocator import CapexAllocator, CapexLineItem
from projection_engine.config import (
    DEFAULT_CAPEX_PLAN,
    CapexConfig,
    FinancialParams,
    InventoryParams,
)


def test_inventory_rounds_up_to_whole_containers():
    inventory = CapexAllocator(InventoryParams()).inventory_investment()

    assert inventory.required_units == pytest.approx(3000)
    assert inventory.containers == 3
    assert inventory.investment == pytest.approx(25500.0)


def test_no_inventory_when_stock_months_is_zero(no_inventory):
    inventory = CapexAllocator(no_inventory).inventory_investment()

    assert inventory.containers == 0
    assert inventory.investment == 0.0


def test_progressive_allocation_without_inventory(no_inventory):
    schedule = CapexAllocator(no_inventory).allocate(CapexConfig(base_capex=800000))

    assert schedule.years == [2025, 2026, 2027, 2028]
    assert schedule.capex_for(2025) == pytest.approx(360000.0, abs=1e-9)
    assert schedule.capex_for(2026) == pytest.approx(240000.0, abs=1e-9)
    assert schedule.capex_for(2027) == pytest.approx(160000.0, abs=1e-9)
    assert schedule.capex_for(2028) == pytest.approx(40000.0, abs=1e-9)
    assert schedule.total_capex == pytest.approx(800000.0)


def test_inventory_lands_in_first_year():
    schedule = CapexAllocator().allocate()

    first = schedule.records[0]
    assert first.line_items[CapexLineItem.INVENTORY] == pytest.approx(25500.0)
    assert first.total == pytest.approx(360000.0 + 25500.0)
    for record in schedule.records[1:]:
        assert record.line_items[CapexLineItem.INVENTORY] == 0.0


def test_line_items_sum_to_year_total():
    schedule = CapexAllocator().allocate()

    for record in schedule.records:
        assert sum(record.line_items.values()) == pytest.approx(record.total)


def test_financing_split_covers_capex():
    financial = FinancialParams(debt_ratio=0.35, equity_ratio=0.65)
    schedule = CapexAllocator(financial_params=financial).allocate()

    for record in schedule.financing:
        assert record.debt + record.equity == pytest.approx(record.capex)
        assert record.debt == pytest.approx(record.capex * 0.35)
    assert schedule.total_debt + schedule.total_equity == pytest.approx(schedule.total_capex)


def test_capex_outside_schedule_is_zero():
    schedule = CapexAllocator().allocate()

    assert schedule.capex_for(2030) == 0.0
    assert schedule.financing_for(2030) is None


def test_itemized_plan_totals():
    schedule = CapexAllocator().from_line_items(DEFAULT_CAPEX_PLAN)

    assert schedule.capex_for(2025) == pytest.approx(382500.0)
    assert schedule.capex_for(2026) == pytest.approx(255000.0)
    assert schedule.capex_for(2027) == pytest.approx(170000.0)
    assert schedule.capex_for(2028) == pytest.approx(42500.0)
    assert schedule.total_capex == pytest.approx(850000.0)


def test_itemized_plan_with_inventory():
    schedule = CapexAllocator().from_line_items(DEFAULT_CAPEX_PLAN, include_inventory=True)

    assert schedule.capex_for(2025) == pytest.approx(382500.0 + 25500.0)
    assert schedule.total_capex == pytest.approx(875500.0)


def test_schedule_dataframe():
    df = CapexAllocator().allocate().to_dataframe()

    assert list(df.index) == [2025, 2026, 2027, 2028]
    assert "total" in df.columns
    assert (df["debt"] + df["equity"]).sum() == pytest.approx(df["total"].sum())
