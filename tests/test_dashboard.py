"""Tests for the dashboard snapshot aggregation and its fallback."""

import math
from dataclasses import fields, replace

import pytest

from projection_engine.config import (
    CapexConfig,
    FinancialParams,
    InventoryParams,
    PipelineStage,
)
from projection_engine.dashboard import (
    DEFAULT_SNAPSHOT,
    DashboardAggregator,
    DashboardCollaborators,
    DashboardConfig,
    SnapshotSource,
    calculate_break_even_year,
    calculate_cash_flow_stability,
    calculate_roi,
    sanitize_snapshot,
)
from projection_engine.projection_model import ProjectionPipeline
from projection_engine.valuation_engine import PaybackMethod, PaybackPeriod


class UnusedPipeline(ProjectionPipeline):
    """Fails the test if a recalculation is attempted."""

    def run(self, scenario=None):
        raise AssertionError("pipeline should not run when model state is available")


def _failing_params():
    raise RuntimeError("parameters unavailable")


def _assert_finite(snapshot):
    for f in fields(snapshot):
        value = getattr(snapshot, f.name)
        if isinstance(value, float):
            assert math.isfinite(value), f.name
    assert all(math.isfinite(v) for v in snapshot.yearly_fcf.values())


class TestDerivedMetrics:

    def test_roi(self):
        assert calculate_roi([100.0, 200.0], 600.0) == 50.0

    def test_roi_without_capex(self):
        assert calculate_roi([1.0, 2.0, 3.0], 0.0) == 0.0

    def test_break_even_from_cumulative_fcf(self):
        year = calculate_break_even_year(
            1000.0, [2026, 2027, 2028], [400.0, 700.0, 100.0], PaybackPeriod.undetermined()
        )
        assert year == 2027

    def test_break_even_fallback_uses_default_payback(self):
        year = calculate_break_even_year(
            1000.0, [2026, 2027, 2028], [-1.0, -1.0, -1.0], PaybackPeriod.undetermined()
        )
        assert year == 2025 + math.ceil(DashboardConfig.DEFAULT_PAYBACK_MONTHS / 12)

    def test_break_even_fallback_clamped_to_horizon(self):
        late = PaybackPeriod.determined(70, PaybackMethod.EXTRAPOLATED)
        early = PaybackPeriod.determined(0, PaybackMethod.YEAR_END)

        assert calculate_break_even_year(1000.0, [2026], [-1.0], late) == 2030
        assert calculate_break_even_year(1000.0, [2026], [-1.0], early) == 2026

    def test_cash_flow_stability(self):
        assert calculate_cash_flow_stability([100.0, 100.0, 100.0]) == pytest.approx(100.0)
        assert calculate_cash_flow_stability([]) == 0.0
        assert calculate_cash_flow_stability([-10.0, 10.0]) == 0.0

    def test_sanitize_replaces_non_finite_values(self):
        snapshot = replace(
            DEFAULT_SNAPSHOT,
            source=SnapshotSource.RECOMPUTED,
            npv=float("nan"),
            irr=float("inf"),
            yearly_fcf={2026: float("nan"), 2027: 5.0},
        )
        clean = sanitize_snapshot(snapshot)

        assert clean.npv == DEFAULT_SNAPSHOT.npv
        assert clean.irr == DEFAULT_SNAPSHOT.irr
        assert clean.yearly_fcf == {2027: 5.0}
        assert clean.source == SnapshotSource.RECOMPUTED


class TestAggregator:

    def test_initial_snapshot_is_default(self):
        aggregator = DashboardAggregator()

        assert aggregator.snapshot is DEFAULT_SNAPSHOT
        assert aggregator.last_model is None

    def test_recompute_from_collaborators(self, base_model):
        aggregator = DashboardAggregator()
        result = aggregator.recompute()

        assert result.is_ok
        snapshot = aggregator.snapshot
        assert snapshot.source == SnapshotSource.RECOMPUTED
        assert snapshot.npv == pytest.approx(base_model.economic_valuation.npv)
        assert snapshot.financial_npv == pytest.approx(base_model.financial_valuation.npv)
        assert snapshot.npv_after_working_capital == pytest.approx(base_model.npv_after_working_capital)
        assert snapshot.total_capex == pytest.approx(base_model.capex.total_capex)
        assert snapshot.total_debt + snapshot.total_equity == pytest.approx(snapshot.total_capex)
        assert snapshot.market_diversification == pytest.approx(45.5)
        assert aggregator.last_model is not None
        _assert_finite(snapshot)

    def test_model_state_is_preferred(self, base_model):
        aggregator = DashboardAggregator(
            DashboardCollaborators(model_state=lambda: base_model),
            UnusedPipeline(),
        )
        result = aggregator.recompute()

        assert result.is_ok
        assert aggregator.snapshot.source == SnapshotSource.MODEL_STATE
        assert aggregator.snapshot.irr == pytest.approx(base_model.economic_valuation.irr)
        assert aggregator.last_model is base_model

    def test_empty_model_state_falls_back_to_recompute(self):
        aggregator = DashboardAggregator(DashboardCollaborators(model_state=lambda: None))
        aggregator.recompute()

        assert aggregator.snapshot.source == SnapshotSource.RECOMPUTED

    def test_payback_display_value(self, base_model):
        snapshot = DashboardAggregator().recompute().snapshot
        payback = base_model.economic_valuation.payback

        assert snapshot.payback_determined == payback.is_determined
        assert snapshot.payback_months == payback.months_or(DashboardConfig.DEFAULT_PAYBACK_MONTHS)

    def test_mapping_parameters(self):
        collaborators = DashboardCollaborators(
            financial_params=lambda: {"debtRatio": 0.35},
            markets=lambda: {"chile": {"weight": 0.6}, "peru": {"weight": 0.4, "premium": 0.9}},
        )
        aggregator = DashboardAggregator(collaborators)
        aggregator.recompute()
        snapshot = aggregator.snapshot

        assert snapshot.total_debt == pytest.approx(snapshot.total_capex * 0.35)
        assert snapshot.market_diversification == pytest.approx(48.0)

    def test_fractional_debt_term(self):
        aggregator = DashboardAggregator(DashboardCollaborators(
            financial_params=lambda: {"debtTermYears": 2.5},
        ))
        result = aggregator.recompute()

        assert result.is_ok
        assert aggregator.snapshot.source == SnapshotSource.RECOMPUTED
        _assert_finite(aggregator.snapshot)

    def test_zero_capex(self):
        collaborators = DashboardCollaborators(
            inventory_params=lambda: InventoryParams(initial_stock_months=0),
            capex=CapexConfig(base_capex=0.0),
        )
        aggregator = DashboardAggregator(collaborators)
        result = aggregator.recompute()

        assert result.is_ok
        assert aggregator.snapshot.total_capex == 0.0
        assert aggregator.snapshot.roi == 0.0
        assert aggregator.snapshot.break_even_year == 2026
        _assert_finite(aggregator.snapshot)


class TestFallback:

    def test_failure_publishes_defaults_and_advises_once(self):
        messages = []
        aggregator = DashboardAggregator(DashboardCollaborators(
            financial_params=_failing_params,
            on_advisory=messages.append,
        ))
        result = aggregator.recompute()

        assert not result.is_ok
        assert result.error.stage == PipelineStage.CONFIGURATION
        assert result.error.exception_type == "RuntimeError"
        assert aggregator.snapshot is DEFAULT_SNAPSHOT
        assert aggregator.last_model is None
        assert messages == [DashboardConfig.ADVISORY_MESSAGE]

    def test_stage_failure_is_reported(self):
        aggregator = DashboardAggregator(DashboardCollaborators(active_markets=lambda: ["peru"]))
        result = aggregator.recompute()

        assert result.error.stage == PipelineStage.REVENUE
        assert result.error.exception_type == "ValueError"
        assert aggregator.snapshot is DEFAULT_SNAPSHOT

    def test_failure_replaces_previous_snapshot(self):
        state = {"fail": False}

        def financial_params():
            if state["fail"]:
                raise RuntimeError("parameters unavailable")
            return FinancialParams()

        messages = []
        aggregator = DashboardAggregator(DashboardCollaborators(
            financial_params=financial_params,
            on_advisory=messages.append,
        ))
        aggregator.recompute()
        assert aggregator.snapshot.source == SnapshotSource.RECOMPUTED

        state["fail"] = True
        aggregator.recompute()

        assert aggregator.snapshot is DEFAULT_SNAPSHOT
        assert aggregator.last_model is None
        assert len(messages) == 1

    def test_compute_does_not_publish(self):
        aggregator = DashboardAggregator(DashboardCollaborators(financial_params=_failing_params))
        result = aggregator.compute()

        assert not result.is_ok
        assert aggregator.snapshot is DEFAULT_SNAPSHOT

    def test_invalid_parameter_type(self):
        aggregator = DashboardAggregator(DashboardCollaborators(business_params=lambda: 42))
        result = aggregator.recompute()

        assert result.error.stage == PipelineStage.CONFIGURATION
        assert result.error.exception_type == "TypeError"

    def test_default_snapshot_is_complete(self):
        _assert_finite(DEFAULT_SNAPSHOT)
        assert DEFAULT_SNAPSHOT.source == SnapshotSource.DEFAULTS
        assert DEFAULT_SNAPSHOT.to_dict()["source"] == "defaults"
