"""Tests for the French amortization debt schedule."""

import pytest

from projection_engine.capex_allocator import CapexAllocator
from projection_engine.config import CapexConfig, FinancialParams, InventoryParams
from projection_engine.debt_schedule import DebtScheduleBuilder


@pytest.fixture
def capex():
    return CapexAllocator(InventoryParams(initial_stock_months=0), FinancialParams()).allocate()


def test_monthly_installment():
    installment = DebtScheduleBuilder.monthly_installment(100000, 0.06 / 12, 60)

    assert installment == pytest.approx(1933.28, rel=1e-4)


def test_monthly_installment_without_interest():
    assert DebtScheduleBuilder.monthly_installment(1200, 0.0, 12) == pytest.approx(100.0)
    assert DebtScheduleBuilder.monthly_installment(0, 0.005, 12) == 0.0


def test_tranches_fully_repaid(capex):
    schedule = DebtScheduleBuilder().build(capex)

    assert sum(r.principal for r in schedule.rows) == pytest.approx(capex.total_debt, abs=1e-4)
    assert schedule.rows[-1].ending_balance == pytest.approx(0.0, abs=1e-4)


def test_schedule_spans_last_tranche_term(capex):
    schedule = DebtScheduleBuilder().build(capex)

    years = [r.year for r in schedule.rows]
    assert years[0] == 2025
    assert years[-1] == 2028 + 5 - 1


def test_fractional_term_paid_in_whole_months(capex):
    schedule = DebtScheduleBuilder(FinancialParams(debt_term_years=2.5)).build(capex)

    assert schedule.rows[-1].year == 2028 + 3 - 1
    assert sum(r.principal for r in schedule.rows) == pytest.approx(capex.total_debt, abs=1e-4)
    assert schedule.rows[-1].ending_balance == pytest.approx(0.0, abs=1e-4)


def test_proceeds_recorded_in_draw_year(capex):
    schedule = DebtScheduleBuilder().build(capex)

    for financing in capex.financing:
        assert schedule.for_year(financing.year).proceeds == pytest.approx(financing.debt)


def test_balance_rolls_forward(capex):
    schedule = DebtScheduleBuilder().build(capex)

    for previous, row in zip(schedule.rows, schedule.rows[1:]):
        assert row.beginning_balance == pytest.approx(previous.ending_balance)
    for row in schedule.rows:
        expected = row.beginning_balance + row.proceeds - row.principal
        assert row.ending_balance == pytest.approx(max(0.0, expected), abs=1e-6)


def test_interest_is_positive_while_outstanding(capex):
    schedule = DebtScheduleBuilder().build(capex)

    assert schedule.for_year(2025).interest > 0
    assert schedule.metrics.total_interest_paid == pytest.approx(
        sum(r.interest for r in schedule.rows)
    )


def test_no_debt_gives_empty_schedule():
    capex = CapexAllocator(financial_params=FinancialParams(debt_ratio=0.0, equity_ratio=1.0)).allocate()
    schedule = DebtScheduleBuilder(FinancialParams(debt_ratio=0.0, equity_ratio=1.0)).build(capex)

    assert schedule.rows == []
    row = schedule.for_year(2026)
    assert row.interest == 0.0
    assert row.payment == 0.0


def test_zero_capex_gives_empty_schedule():
    capex = CapexAllocator(InventoryParams(initial_stock_months=0)).allocate(CapexConfig(base_capex=0.0))

    assert DebtScheduleBuilder().build(capex).rows == []
