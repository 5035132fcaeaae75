"""Tests for the working capital schedule."""

from dataclasses import replace

import pytest

from projection_engine.config import (
    TWO_MARKET_DISTRIBUTION,
    FinancialParams,
    MarketDefinition,
    ScenarioParameters,
    markets_from_mapping,
)
from projection_engine.cost_model import CostSchedule, YearlyCostRecord
from projection_engine.projection_model import ProjectionPipeline
from projection_engine.revenue_projector import RevenueProjection, YearlyRevenueRecord
from projection_engine.valuation_engine import calculate_npv
from projection_engine.working_capital import WorkingCapitalProjector


def _record(year, market, net_revenue):
    return YearlyRevenueRecord(
        year=year,
        market=market,
        months=12,
        traffic=0.0,
        conversion_rate=0.0,
        avg_ticket=0.0,
        orders=0.0,
        gross_revenue=net_revenue,
        net_revenue=net_revenue,
    )


@pytest.fixture
def solo_markets():
    return {"solo": MarketDefinition("solo", "Solo", weight=1.0, payment_days=10, inventory_days=30)}


@pytest.fixture
def revenue():
    return RevenueProjection(
        records=[_record(2026, "solo", 365000.0), _record(2027, "solo", 730000.0)],
        years=[2026, 2027],
        markets=["solo"],
        weights={"solo": 1.0},
    )


class TestBalances:

    def test_day_count_formulas(self, solo_markets, revenue):
        schedule = WorkingCapitalProjector(FinancialParams(), solo_markets).project(revenue)
        record = schedule.for_year(2026)

        # COGS 197,100; OpEx 36,500
        assert record.receivables == pytest.approx(10000.0)
        assert record.inventory == pytest.approx(16200.0)
        assert record.payables == pytest.approx(24300.0 + 3000.0)
        assert record.net_working_capital == pytest.approx(-1100.0)

    def test_delta_against_prior_year(self, solo_markets, revenue):
        schedule = WorkingCapitalProjector(FinancialParams(), solo_markets).project(revenue)

        assert schedule.delta_by_year() == pytest.approx({2026: -1100.0, 2027: -1100.0})

    def test_zero_days_hold_no_capital(self, revenue):
        markets = {"solo": MarketDefinition("solo", "Solo", weight=1.0, inventory_days=0)}
        params = FinancialParams(payable_days=0, service_days=0)
        schedule = WorkingCapitalProjector(params, markets).project(revenue)

        for record in schedule.records:
            assert record.net_working_capital == 0.0
            assert record.delta == 0.0

    def test_detailed_operating_expenses_split_by_revenue_share(self):
        markets = {
            "north": MarketDefinition("north", "North", weight=0.5, inventory_days=0),
            "south": MarketDefinition("south", "South", weight=0.5, inventory_days=0),
        }
        revenue = RevenueProjection(
            records=[_record(2026, "north", 182500.0), _record(2026, "south", 182500.0)],
            years=[2026],
            markets=["north", "south"],
            weights={"north": 0.5, "south": 0.5},
        )
        costs = CostSchedule(records=[YearlyCostRecord(
            year=2026,
            revenue=365000.0,
            cogs=0.0,
            operating_expenses={"marketing": 50000.0},
            fixed_costs={"personnel": 23000.0},
        )])
        params = FinancialParams(payable_days=0)
        schedule = WorkingCapitalProjector(params, markets).project(revenue, costs)

        for balances in schedule.for_year(2026).markets:
            assert balances.payables == pytest.approx(3000.0)

    def test_unknown_market_raises(self, revenue):
        with pytest.raises(KeyError):
            WorkingCapitalProjector(FinancialParams(), TWO_MARKET_DISTRIBUTION).project(revenue)

    def test_dataframe(self, solo_markets, revenue):
        df = WorkingCapitalProjector(FinancialParams(), solo_markets).project(revenue).to_dataframe()

        assert list(df.index) == [2026, 2027]
        assert df.loc[2027, "delta"] == pytest.approx(-1100.0)


class TestMarketDays:

    def test_default_tables_carry_inventory_days(self):
        assert TWO_MARKET_DISTRIBUTION["chile"].inventory_days == 30
        assert TWO_MARKET_DISTRIBUTION["mexico"].inventory_days == 45
        assert TWO_MARKET_DISTRIBUTION["chile"].payment_days == 0

    def test_mapping_reads_day_counts(self):
        markets = markets_from_mapping({"peru": {"weight": 1.0, "paymentDays": 15, "inventoryDays": 60}})

        assert markets["peru"].payment_days == 15
        assert markets["peru"].inventory_days == 60


class TestPipeline:

    def test_schedule_covers_horizon(self, base_model):
        schedule = base_model.working_capital

        assert schedule.years == [2025, 2026, 2027, 2028, 2029, 2030]
        assert sum(schedule.delta_by_year().values()) == pytest.approx(
            schedule.for_year(2030).net_working_capital
        )

    def test_adjusted_series_and_npv(self, base_model):
        deltas = base_model.working_capital.delta_by_year()
        cash_flow = base_model.economic_cash_flow
        adjusted = base_model.fcf_after_working_capital

        for year, fcf in cash_flow.fcf_by_year().items():
            assert adjusted[year] == pytest.approx(fcf - deltas[year])

        expected = calculate_npv(
            [adjusted[year] for year in cash_flow.operating_years],
            0.08,
            cash_flow.pre_operating_capex + deltas[2025],
        )
        assert base_model.npv_after_working_capital == pytest.approx(expected)
        assert base_model.to_dict()["summary"]["npv_after_working_capital"] == pytest.approx(expected)

    def test_no_days_leaves_npv_unchanged(self):
        markets = {
            key: replace(market, payment_days=0, inventory_days=0)
            for key, market in TWO_MARKET_DISTRIBUTION.items()
        }
        scenario = ScenarioParameters(
            financial=FinancialParams(payable_days=0, service_days=0),
            markets=markets,
        )
        model = ProjectionPipeline().run(scenario)

        assert model.npv_after_working_capital == pytest.approx(model.economic_valuation.npv)
