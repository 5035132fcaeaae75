"""Tests for the projection pipeline and model."""

import json

import pytest

from projection_engine.config import (
    DEFAULT_CAPEX_PLAN,
    FOUR_MARKET_DISTRIBUTION,
    PipelineStage,
    ScenarioParameters,
)
from projection_engine.projection_model import (
    ProjectionError,
    ProjectionPipeline,
    run_projection,
)
from projection_engine.valuation_engine import ViabilityAssessor, calculate_npv


PRE_OPERATING_CAPEX = 800000.0 * 0.45 + 25500.0


class TestPipeline:

    def test_horizon_split(self, base_model):
        cash_flow = base_model.economic_cash_flow

        assert cash_flow.years == [2025, 2026, 2027, 2028, 2029, 2030]
        assert cash_flow.operating_years == [2026, 2027, 2028, 2029, 2030]
        assert cash_flow.pre_operating_capex == pytest.approx(PRE_OPERATING_CAPEX)

    def test_economic_valuation_uses_wacc(self, base_model):
        valuation = base_model.economic_valuation

        assert valuation.discount_rate == pytest.approx(0.08)
        assert valuation.initial_investment == pytest.approx(PRE_OPERATING_CAPEX)
        assert valuation.npv == pytest.approx(
            calculate_npv(base_model.economic_cash_flow.operating_fcf, 0.08, PRE_OPERATING_CAPEX)
        )

    def test_financial_valuation_uses_equity(self, base_model):
        valuation = base_model.financial_valuation

        assert valuation.discount_rate == pytest.approx(0.12)
        assert valuation.initial_investment == pytest.approx(PRE_OPERATING_CAPEX * 0.5)
        assert valuation.cash_flows == pytest.approx(base_model.financial_cash_flow.operating_fcfe)

    def test_revenue_summary(self, base_model):
        assert base_model.final_year_revenue == pytest.approx(
            base_model.revenue.total_net_revenue(2030)
        )
        assert base_model.final_year_orders > 0
        assert base_model.revenue_cagr > 0

    def test_runs_are_deterministic(self, base_model):
        again = run_projection()

        assert again.economic_valuation.npv == base_model.economic_valuation.npv
        assert again.financial_valuation.irr == base_model.financial_valuation.irr

    def test_itemized_capex_plan(self):
        model = ProjectionPipeline().run(ScenarioParameters(capex_plan=DEFAULT_CAPEX_PLAN))

        assert model.capex.total_capex == pytest.approx(850000.0)
        assert model.economic_cash_flow.pre_operating_capex == pytest.approx(382500.0)

    def test_detailed_costs(self, base_model):
        model = ProjectionPipeline(use_detailed_costs=True).run()
        record = model.economic_cash_flow.for_year(2026)

        assert record.operating_expenses == pytest.approx(
            model.costs.for_year(2026).operating_expenses_total
            + model.costs.for_year(2026).fixed_costs_total
        )
        assert model.economic_valuation.npv != base_model.economic_valuation.npv

    def test_four_market_active_subset(self):
        scenario = ScenarioParameters(
            markets=dict(FOUR_MARKET_DISTRIBUTION),
            active_markets=("chile", "brazil"),
        )
        model = ProjectionPipeline().run(scenario)

        assert model.revenue.markets == ["chile", "brazil"]
        assert sum(model.revenue.weights.values()) == pytest.approx(1.0)


class TestErrors:

    def test_failure_is_tagged_with_stage(self):
        with pytest.raises(ProjectionError) as excinfo:
            ProjectionPipeline().run(ScenarioParameters(active_markets=("peru",)))

        assert excinfo.value.stage == PipelineStage.REVENUE
        assert "peru" in excinfo.value.message
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_viability_failure_is_tagged_as_valuation(self, monkeypatch):
        def failing_assess(self, *args):
            raise ZeroDivisionError("cost of capital is zero")

        monkeypatch.setattr(ViabilityAssessor, "assess", failing_assess)

        with pytest.raises(ProjectionError) as excinfo:
            ProjectionPipeline().run()

        assert excinfo.value.stage == PipelineStage.VALUATION
        assert isinstance(excinfo.value.__cause__, ZeroDivisionError)


class TestReport:

    def test_save_report(self, base_model, tmp_path):
        path = ProjectionPipeline().save_report(base_model, tmp_path)

        assert path.name == "base_projection.json"
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["scenario"]["name"] == "Base"
        assert data["economic_valuation"]["npv"] == pytest.approx(base_model.economic_valuation.npv)
        assert data["viability"]["recommendation"] == base_model.viability.recommendation.value
