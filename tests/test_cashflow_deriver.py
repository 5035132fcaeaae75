"""Tests for the economic and financial cash flow derivation."""

import pytest

from projection_engine.capex_allocator import CapexAllocator
from projection_engine.cashflow_deriver import CashFlowDeriver
from projection_engine.config import CapexConfig, FinancialParams, HORIZON_CONFIG
from projection_engine.cost_model import CostSchedule, YearlyCostRecord
from projection_engine.debt_schedule import DebtScheduleBuilder


@pytest.fixture
def single_year_capex(no_inventory):
    config = CapexConfig(base_capex=100000.0, base_distribution={2025: 1.0}, inventory_distribution={})
    return CapexAllocator(no_inventory).allocate(config)


class TestEconomicCashFlow:

    def test_operating_year_build_up(self, single_year_capex, short_horizon):
        series = CashFlowDeriver(FinancialParams(), short_horizon).economic(
            {2025: 0.0, 2026: 1000000.0}, single_year_capex
        )
        record = series.for_year(2026)

        assert record.cogs == pytest.approx(540000.0)
        assert record.gross_profit == pytest.approx(460000.0)
        assert record.ebitda == pytest.approx(360000.0)
        assert record.depreciation == pytest.approx(20000.0)
        assert record.ebit == pytest.approx(340000.0)
        assert record.taxes == pytest.approx(91800.0)
        assert record.nopat == pytest.approx(248200.0)
        assert record.fcf == pytest.approx(268200.0)

    def test_pre_operating_year_is_capex_outflow(self, single_year_capex, short_horizon):
        series = CashFlowDeriver(FinancialParams(), short_horizon).economic(
            {2025: 0.0, 2026: 1000000.0}, single_year_capex
        )
        record = series.for_year(2025)

        assert record.depreciation == 0.0
        assert record.taxes == 0.0
        assert record.fcf == pytest.approx(-100000.0)
        assert series.pre_operating_capex == pytest.approx(100000.0)
        assert series.operating_years == [2026]
        assert series.operating_fcf == [pytest.approx(268200.0)]

    def test_fcf_identity_for_every_year(self, base_model):
        for record in base_model.economic_cash_flow.records:
            assert record.fcf == pytest.approx(record.nopat + record.depreciation - record.capex)

    def test_no_tax_on_losses(self, single_year_capex, short_horizon):
        series = CashFlowDeriver(FinancialParams(), short_horizon).economic(
            {2026: 10000.0}, single_year_capex
        )
        record = series.for_year(2026)

        assert record.ebit < 0
        assert record.taxes == 0.0
        assert record.nopat == pytest.approx(record.ebit)

    def test_depreciation_stops_after_useful_life(self):
        deriver = CashFlowDeriver(FinancialParams(depreciation_years=2), HORIZON_CONFIG)

        assert deriver.depreciation_for(2025, 100000.0) == 0.0
        assert deriver.depreciation_for(2026, 100000.0) == pytest.approx(50000.0)
        assert deriver.depreciation_for(2027, 100000.0) == pytest.approx(50000.0)
        assert deriver.depreciation_for(2028, 100000.0) == 0.0

    def test_default_life_spans_every_operating_year(self, base_model):
        charges = [r.depreciation for r in base_model.economic_cash_flow.operating_records]
        expected = base_model.capex.total_capex / 5

        assert charges == [pytest.approx(expected)] * 5

    def test_detailed_costs_replace_ratios(self, single_year_capex, short_horizon):
        costs = CostSchedule(records=[
            YearlyCostRecord(
                year=2026,
                revenue=1000000.0,
                cogs=500000.0,
                operating_expenses={"marketing": 100000.0},
                fixed_costs={"personnel": 50000.0},
            )
        ])
        series = CashFlowDeriver(FinancialParams(), short_horizon).economic(
            {2025: 0.0, 2026: 1000000.0}, single_year_capex, costs
        )
        record = series.for_year(2026)

        assert record.cogs == pytest.approx(500000.0)
        assert record.operating_expenses == pytest.approx(150000.0)
        assert record.ebitda == pytest.approx(350000.0)


class TestFinancialCashFlow:

    def test_fcfe_identity(self, base_model):
        tax_rate = base_model.scenario.financial.tax_rate
        for record in base_model.financial_cash_flow.records:
            assert record.tax_shield == pytest.approx(record.interest * tax_rate)
            assert record.fcfe == pytest.approx(
                record.fcf + record.debt_proceeds - record.interest
                + record.tax_shield - record.principal
            )

    def test_equity_contribution_matches_financing(self, base_model):
        flows = base_model.financial_cash_flow
        capex = base_model.capex

        assert flows.pre_operating_equity == pytest.approx(capex.financing_for(2025).equity)

    def test_all_equity_fcfe_equals_fcf(self, short_horizon):
        params = FinancialParams(debt_ratio=0.0, equity_ratio=1.0)
        capex = CapexAllocator(financial_params=params).allocate(
            CapexConfig(base_capex=100000.0, base_distribution={2025: 1.0}, inventory_distribution={})
        )
        deriver = CashFlowDeriver(params, short_horizon)
        economic = deriver.economic({2026: 1000000.0}, capex)
        financial = deriver.financial(economic, capex, DebtScheduleBuilder(params).build(capex))

        for record in financial.records:
            assert record.fcfe == pytest.approx(record.fcf)
