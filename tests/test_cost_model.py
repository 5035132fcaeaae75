"""Tests for the detailed cost model."""

import pytest

from projection_engine.cost_model import CostConfig, CostProjector
from projection_engine.revenue_projector import RevenueProjection, YearlyRevenueRecord


@pytest.fixture
def revenue():
    def record(year, months, net):
        return YearlyRevenueRecord(
            year=year, market="chile", months=months, traffic=0.0, conversion_rate=0.0,
            avg_ticket=0.0, orders=0.0, gross_revenue=net, net_revenue=net,
        )

    return RevenueProjection(
        records=[record(2025, 6, 500000.0), record(2026, 12, 1000000.0)],
        years=[2025, 2026],
        markets=["chile"],
        weights={"chile": 1.0},
    )


def test_variable_costs_scale_with_revenue(revenue):
    costs = CostProjector().project(revenue).for_year(2026)

    assert costs.cogs == pytest.approx(540000.0)
    assert costs.operating_expenses["marketing"] == pytest.approx(100000.0)
    assert costs.operating_expenses["logistics"] == pytest.approx(80000.0)
    assert costs.operating_expenses["technology"] == pytest.approx(50000.0)
    assert costs.operating_expenses["administrative"] == pytest.approx(80000.0)


def test_fixed_costs_prorated_in_partial_year(revenue):
    costs = CostProjector().project(revenue).for_year(2025)

    assert costs.operating_expenses["sales_salary"] == pytest.approx(25000.0)
    assert costs.fixed_costs["personnel"] == pytest.approx(40000.0)
    assert costs.fixed_costs_total == pytest.approx(sum(CostConfig.FIXED_COSTS.values()) / 2)


def test_fixed_costs_escalate_with_inflation(revenue):
    costs = CostProjector().project(revenue).for_year(2026)

    assert costs.fixed_costs["personnel"] == pytest.approx(80000.0 * 1.02)
    assert costs.operating_expenses["sales_salary"] == pytest.approx(50000.0 * 1.02)


def test_total_costs(revenue):
    costs = CostProjector().project(revenue).for_year(2026)

    assert costs.total_costs == pytest.approx(
        costs.cogs + costs.operating_expenses_total + costs.fixed_costs_total
    )


def test_missing_year_raises(revenue):
    schedule = CostProjector().project(revenue)

    assert schedule.has_year(2025)
    assert not schedule.has_year(2030)
    with pytest.raises(KeyError):
        schedule.for_year(2030)


def test_empty_projection():
    assert CostProjector().project(RevenueProjection()).records == []
