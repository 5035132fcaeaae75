"""
Projection Model Module - Recalculation Pipeline
Projection & Valuation Engine

Runs one complete recalculation pass and returns an immutable
ProjectionModel holding every stage's output.

Pipeline:
    Configuration -> CAPEX & Revenue -> Costs -> Working Capital -> Debt
    -> Cash Flow -> Valuation (economic at WACC, financial at Ke) -> Viability

Valuation conventions:
    Economic:  initial investment = pre-operating CAPEX,
               flows = operating-year FCF, discounted at WACC
    Financial: initial investment = pre-operating equity contribution,
               flows = operating-year FCFE, discounted at Ke

Any exception raised by a stage is re-raised as ProjectionError naming the
stage; nothing is swallowed here.

Version: 1.1.0
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .config import (
    LOGGER,
    OUTPUT_DIR,
    PipelineStage,
    ScenarioParameters,
)
from .capex_allocator import CapexAllocator, CapexSchedule
from .revenue_projector import RevenueProjector, RevenueProjection
from .cost_model import CostProjector, CostSchedule
from .debt_schedule import DebtScheduleBuilder, DebtSchedule
from .cashflow_deriver import CashFlowDeriver, EconomicCashFlow, FinancialCashFlow
from .working_capital import WorkingCapitalProjector, WorkingCapitalSchedule
from .valuation_engine import (
    IRRMethod,
    ValuationConfig,
    ValuationEngine,
    ValuationResult,
    ViabilityAssessment,
    ViabilityAssessor,
    calculate_npv,
)


__version__ = "1.1.0"

T = TypeVar("T")


# =============================================================================
# ERRORS
# =============================================================================

class ProjectionError(Exception):
    """A pipeline stage failed."""

    def __init__(self, stage: PipelineStage, message: str):
        super().__init__(f"{stage.value}: {message}")
        self.stage = stage
        self.message = message


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class ProjectionModel:
    """Complete, immutable result of one recalculation pass."""

    scenario: ScenarioParameters
    capex: CapexSchedule
    revenue: RevenueProjection
    costs: CostSchedule
    working_capital: WorkingCapitalSchedule
    debt: DebtSchedule
    economic_cash_flow: EconomicCashFlow
    financial_cash_flow: FinancialCashFlow
    economic_valuation: ValuationResult
    financial_valuation: ValuationResult
    viability: ViabilityAssessment
    warnings: List[str] = field(default_factory=list)

    @property
    def start_year(self) -> int:
        return self.scenario.horizon.start_year

    @property
    def end_year(self) -> int:
        return self.scenario.horizon.end_year

    @property
    def final_year_revenue(self) -> float:
        return self.revenue.total_net_revenue(self.end_year)

    @property
    def final_year_orders(self) -> float:
        return self.revenue.total_orders(self.end_year)

    @property
    def revenue_cagr(self) -> float:
        return self.revenue.cagr(self.start_year, self.end_year)

    @property
    def fcf_after_working_capital(self) -> Dict[int, float]:
        """Economic FCF less each year's working capital build."""
        deltas = self.working_capital.delta_by_year()
        return {
            year: fcf - deltas.get(year, 0.0)
            for year, fcf in self.economic_cash_flow.fcf_by_year().items()
        }

    @property
    def npv_after_working_capital(self) -> float:
        """Economic NPV with working capital builds funded from the same flows."""
        operating_start = self.economic_cash_flow.operating_start_year
        adjusted = self.fcf_after_working_capital
        deltas = self.working_capital.delta_by_year()
        initial = self.economic_cash_flow.pre_operating_capex + sum(
            delta for year, delta in deltas.items() if year < operating_start
        )
        flows = [adjusted[year] for year in self.economic_cash_flow.operating_years]
        return calculate_npv(flows, self.economic_valuation.discount_rate, initial)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario.to_dict(),
            "capex": self.capex.to_dict(),
            "revenue": self.revenue.to_dict(),
            "costs": self.costs.to_dict(),
            "working_capital": self.working_capital.to_dict(),
            "debt": self.debt.to_dict(),
            "economic_cash_flow": self.economic_cash_flow.to_dict(),
            "financial_cash_flow": self.financial_cash_flow.to_dict(),
            "economic_valuation": self.economic_valuation.to_dict(),
            "financial_valuation": self.financial_valuation.to_dict(),
            "viability": self.viability.to_dict(),
            "summary": {
                "final_year_revenue": self.final_year_revenue,
                "final_year_orders": self.final_year_orders,
                "revenue_cagr": self.revenue_cagr,
                "npv_after_working_capital": self.npv_after_working_capital,
            },
            "warnings": list(self.warnings),
        }


# =============================================================================
# PIPELINE
# =============================================================================

class ProjectionPipeline:
    """
    Main orchestrator for a recalculation pass.

    Stateless between runs: every call to ``run()`` rebuilds all stages
    from the scenario parameters.
    """

    def __init__(self, use_detailed_costs: bool = False):
        self.use_detailed_costs = use_detailed_costs
        self.logger = LOGGER

    def run(self, scenario: Optional[ScenarioParameters] = None) -> ProjectionModel:
        """
        Execute every stage for a scenario.

        Args:
            scenario: ScenarioParameters (defaults to the base scenario)

        Returns:
            ProjectionModel

        Raises:
            ProjectionError: when any stage fails
        """
        if scenario is None:
            scenario = ScenarioParameters()

        financial = scenario.financial
        horizon = scenario.horizon
        self.logger.info(f"Projection: Starting recalculation for scenario '{scenario.name}'")

        self.logger.info("  Allocating CAPEX")
        allocator = CapexAllocator(scenario.inventory, financial)
        if scenario.capex_plan:
            capex = self._stage(PipelineStage.CAPEX, allocator.from_line_items, scenario.capex_plan)
        else:
            capex = self._stage(PipelineStage.CAPEX, allocator.allocate, scenario.capex)

        self.logger.info("  Projecting revenue")
        revenue = self._stage(
            PipelineStage.REVENUE,
            lambda: RevenueProjector(
                scenario.business, scenario.markets, horizon, scenario.active_markets
            ).project(),
        )

        self.logger.info("  Projecting costs")
        costs = self._stage(
            PipelineStage.COSTS,
            CostProjector(financial, scenario.business).project,
            revenue,
        )

        self.logger.info("  Projecting working capital")
        working_capital = self._stage(
            PipelineStage.WORKING_CAPITAL,
            WorkingCapitalProjector(financial, scenario.markets).project,
            revenue,
            costs if self.use_detailed_costs else None,
        )

        self.logger.info("  Building debt schedule")
        debt = self._stage(PipelineStage.DEBT, DebtScheduleBuilder(financial).build, capex)

        self.logger.info("  Deriving cash flows")
        deriver = CashFlowDeriver(financial, horizon)
        economic = self._stage(
            PipelineStage.CASH_FLOW,
            deriver.economic,
            revenue.net_revenue_by_year(),
            capex,
            costs if self.use_detailed_costs else None,
        )
        equity = self._stage(PipelineStage.CASH_FLOW, deriver.financial, economic, capex, debt)

        self.logger.info("  Valuing economic and financial series")
        engine = ValuationEngine(financial.terminal_growth)
        economic_valuation = self._stage(
            PipelineStage.VALUATION,
            engine.value,
            economic.operating_fcf,
            economic.pre_operating_capex,
            financial.wacc,
        )
        financial_valuation = self._stage(
            PipelineStage.VALUATION,
            engine.value,
            equity.operating_fcfe,
            equity.pre_operating_equity,
            financial.equity_cost,
            ValuationConfig.FINANCIAL_TERMINAL_CAP_MULTIPLE,
        )
        viability = self._stage(
            PipelineStage.VALUATION,
            ViabilityAssessor().assess,
            economic_valuation,
            financial_valuation,
            financial.wacc,
            financial.equity_cost,
        )

        model = ProjectionModel(
            scenario=scenario,
            capex=capex,
            revenue=revenue,
            costs=costs,
            working_capital=working_capital,
            debt=debt,
            economic_cash_flow=economic,
            financial_cash_flow=equity,
            economic_valuation=economic_valuation,
            financial_valuation=financial_valuation,
            viability=viability,
            warnings=self._collect_warnings(economic_valuation, financial_valuation),
        )

        self.logger.info(
            f"Projection complete: NPV ${economic_valuation.npv:,.0f}, "
            f"IRR {economic_valuation.irr:.1%}, "
            f"recommendation {viability.recommendation.value}"
        )
        return model

    def _stage(self, stage: PipelineStage, func: Callable[..., T], *args: Any) -> T:
        """Run one stage, tagging any failure with the stage."""
        try:
            return func(*args)
        except ProjectionError:
            raise
        except Exception as e:
            raise ProjectionError(stage, str(e)) from e

    def _collect_warnings(
        self,
        economic: ValuationResult,
        financial: ValuationResult,
    ) -> List[str]:
        warnings = []
        for label, result in (("Economic", economic), ("Financial", financial)):
            if result.irr_result.method == IRRMethod.ANALYTIC_FALLBACK:
                warnings.append(f"{label} IRR uses the analytic approximation")
            if not result.payback.is_determined:
                warnings.append(f"{label} payback is undetermined")
            if not result.terminal_value.is_valid:
                warnings.append(
                    f"{label} terminal value invalid: {result.terminal_value.validation_message}"
                )
        return warnings

    def save_report(
        self,
        model: ProjectionModel,
        output_dir: Optional[Path] = None,
    ) -> Path:
        """
        Save the projection model to a JSON file.

        Args:
            model: ProjectionModel from ``run()``
            output_dir: Optional output directory (defaults to OUTPUT_DIR)

        Returns:
            Path to saved JSON file
        """
        if output_dir is None:
            output_dir = OUTPUT_DIR
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        slug = re.sub(r"[^a-z0-9]+", "_", model.scenario.name.lower()).strip("_") or "scenario"
        filepath = output_dir / f"{slug}_projection.json"

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(model.to_dict(), f, indent=2, default=str)

        self.logger.info(f"Saved projection report to {filepath}")
        return filepath


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def run_projection(scenario: Optional[ScenarioParameters] = None) -> ProjectionModel:
    """
    Convenience function for a single recalculation pass.

    Args:
        scenario: ScenarioParameters (defaults to the base scenario)

    Returns:
        ProjectionModel
    """
    return ProjectionPipeline().run(scenario)


__all__ = [
    "__version__",
    "ProjectionError",
    "ProjectionModel",
    "ProjectionPipeline",
    "run_projection",
]
