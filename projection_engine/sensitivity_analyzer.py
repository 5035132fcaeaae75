"""
Sensitivity Analyzer Module - Scenario, Matrix & Factor Sensitivity
Projection & Valuation Engine

Stress-tests the projection by rerunning the pipeline under alternative
assumptions.

Key Components:
    - Scenario Analysis: Pessimistic, Base, Optimistic and Stress Test
      multipliers on conversion, traffic growth, ticket, marketing and COGS
    - Sensitivity Matrix: traffic growth multiplier vs WACC, economic NPV
    - Factor Sensitivity: one-at-a-time variations ranked by NPV impact
    - Risk Level: NPV spread between optimistic and pessimistic cases
      relative to the base NPV

Inputs: ScenarioParameters, ProjectionPipeline
Outputs: SensitivityAnalysis

Version: 1.0.3
"""

from __future__ import annotations

import pandas as pd
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Any
from enum import Enum

from .config import LOGGER, ScenarioParameters
from .projection_model import ProjectionModel, ProjectionPipeline
from .valuation_engine import calculate_npv


__version__ = "1.0.3"


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

class SensitivityConfig:
    """Ranges for the sensitivity matrix and factor variations."""

    TRAFFIC_GROWTH_MULTIPLIERS: List[float] = [0.50, 0.75, 1.0, 1.25, 1.50]
    WACC_SENSITIVITY_RANGE: List[float] = [-0.02, -0.01, 0.0, 0.01, 0.02]

    # One-at-a-time variations (fractional change)
    FACTOR_VARIATIONS: Dict[str, List[float]] = {
        "traffic": [-0.50, -0.25, 0.0, 0.25, 0.50],
        "conversion": [-0.40, -0.20, 0.0, 0.20, 0.40],
        "ticket": [-0.15, -0.10, 0.0, 0.10, 0.15],
        "costs": [-0.15, -0.10, 0.0, 0.10, 0.20],
    }

    # Risk level: |optimistic - pessimistic| / |base| in percent
    LOW_RISK_VOLATILITY: float = 30.0
    MEDIUM_RISK_VOLATILITY: float = 75.0
    HIGH_RISK_VOLATILITY: float = 150.0
    MIN_BASE_NPV: float = 1000.0


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ScenarioType(Enum):
    """Predefined what-if scenarios."""
    PESSIMISTIC = "Pessimistic"
    BASE = "Base"
    OPTIMISTIC = "Optimistic"
    STRESS = "Stress Test"


class RiskLevel(Enum):
    """Sensitivity of NPV to the scenario range."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class ScenarioFactors:
    """Multipliers applied to the base assumptions."""

    initial_conversion: float = 1.0
    traffic_growth: float = 1.0
    avg_ticket: float = 1.0
    marketing_pct: float = 1.0  # Also scales the operating expense ratio
    cogs_pct: float = 1.0

    def apply(self, scenario: ScenarioParameters, name: str) -> ScenarioParameters:
        business = scenario.business
        financial = scenario.financial
        return scenario.with_overrides(
            name=name,
            business=replace(
                business,
                initial_conversion=business.initial_conversion * self.initial_conversion,
                traffic_growth=business.traffic_growth * self.traffic_growth,
                avg_ticket=business.avg_ticket * self.avg_ticket,
                marketing_pct=business.marketing_pct * self.marketing_pct,
            ),
            financial=replace(
                financial,
                cogs_pct=financial.cogs_pct * self.cogs_pct,
                operating_expenses_pct=financial.operating_expenses_pct * self.marketing_pct,
            ),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "initial_conversion": self.initial_conversion,
            "traffic_growth": self.traffic_growth,
            "avg_ticket": self.avg_ticket,
            "marketing_pct": self.marketing_pct,
            "cogs_pct": self.cogs_pct,
        }


SCENARIO_FACTORS: Dict[ScenarioType, ScenarioFactors] = {
    ScenarioType.PESSIMISTIC: ScenarioFactors(0.7, 0.6, 0.85, 1.3, 1.2),
    ScenarioType.BASE: ScenarioFactors(),
    ScenarioType.OPTIMISTIC: ScenarioFactors(1.4, 1.5, 1.15, 0.8, 0.9),
    ScenarioType.STRESS: ScenarioFactors(0.5, 0.4, 0.75, 1.5, 1.3),
}


@dataclass(frozen=True)
class ScenarioValuation:
    """Valuation of one scenario."""

    scenario: ScenarioType
    factors: ScenarioFactors
    npv: float
    irr: float
    payback_months: Optional[int]
    financial_npv: float
    financial_irr: float
    final_year_revenue: float
    npv_change_vs_base: float = 0.0

    @property
    def is_viable(self) -> bool:
        return self.npv > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario.value,
            "factors": self.factors.to_dict(),
            "npv": self.npv,
            "irr": self.irr,
            "payback_months": self.payback_months,
            "financial_npv": self.financial_npv,
            "financial_irr": self.financial_irr,
            "final_year_revenue": self.final_year_revenue,
            "npv_change_vs_base": self.npv_change_vs_base,
        }


@dataclass
class SensitivityMatrix:
    """Economic NPV for traffic growth vs WACC."""

    # Axis values
    traffic_growth_rates: List[float] = field(default_factory=list)
    discount_rates: List[float] = field(default_factory=list)

    # values[i][j] = NPV at traffic_growth_rates[i] and discount_rates[j]
    values: List[List[float]] = field(default_factory=list)

    # Base case indices
    base_growth_idx: int = 0
    base_wacc_idx: int = 0

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.values,
            index=pd.Index(self.traffic_growth_rates, name="traffic_growth"),
            columns=pd.Index(self.discount_rates, name="wacc"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "traffic_growth_rates": self.traffic_growth_rates,
            "discount_rates": self.discount_rates,
            "values": self.values,
            "base_growth_idx": self.base_growth_idx,
            "base_wacc_idx": self.base_wacc_idx,
        }


@dataclass
class FactorSensitivity:
    """NPV response to one driver varied on its own."""

    factor: str
    variations: List[float] = field(default_factory=list)
    npvs: List[float] = field(default_factory=list)
    irrs: List[float] = field(default_factory=list)
    max_npv_impact: float = 0.0
    max_irr_impact: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factor": self.factor,
            "variations": self.variations,
            "npvs": self.npvs,
            "irrs": self.irrs,
            "max_npv_impact": self.max_npv_impact,
            "max_irr_impact": self.max_irr_impact,
        }


@dataclass
class SensitivityAnalysis:
    """Complete scenario and sensitivity analysis."""

    scenarios: Dict[ScenarioType, ScenarioValuation] = field(default_factory=dict)
    sensitivity_matrix: SensitivityMatrix = field(default_factory=SensitivityMatrix)
    factor_sensitivities: List[FactorSensitivity] = field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.VERY_HIGH

    @property
    def viable_scenarios(self) -> int:
        return sum(1 for s in self.scenarios.values() if s.is_viable)

    @property
    def most_sensitive_factor(self) -> Optional[str]:
        if not self.factor_sensitivities:
            return None
        return max(self.factor_sensitivities, key=lambda f: f.max_npv_impact).factor

    def scenarios_dataframe(self) -> pd.DataFrame:
        rows = [s.to_dict() for s in self.scenarios.values()]
        for row in rows:
            row.pop("factors")
        df = pd.DataFrame(rows)
        if not df.empty:
            df = df.set_index("scenario")
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenarios": {k.value: v.to_dict() for k, v in self.scenarios.items()},
            "sensitivity_matrix": self.sensitivity_matrix.to_dict(),
            "factor_sensitivities": [f.to_dict() for f in self.factor_sensitivities],
            "risk_level": self.risk_level.value,
            "viable_scenarios": self.viable_scenarios,
            "most_sensitive_factor": self.most_sensitive_factor,
        }


# =============================================================================
# SENSITIVITY ANALYZER
# =============================================================================

class SensitivityAnalyzer:
    """
    Performs scenario and sensitivity analysis by rerunning the pipeline.

    Sensitivity Matrix: traffic growth vs WACC impact on economic NPV
    Scenario Analysis: Pessimistic, Base, Optimistic, Stress Test
    """

    def __init__(self, pipeline: Optional[ProjectionPipeline] = None):
        self.pipeline = pipeline or ProjectionPipeline()
        self.logger = LOGGER

    def analyze(
        self,
        scenario: Optional[ScenarioParameters] = None,
        include_factors: bool = True,
    ) -> SensitivityAnalysis:
        """
        Perform scenario, matrix and factor analysis around a base scenario.

        Args:
            scenario: Base ScenarioParameters
            include_factors: Also run one-at-a-time factor variations

        Returns:
            SensitivityAnalysis
        """
        if scenario is None:
            scenario = ScenarioParameters()

        self.logger.info(f"Sensitivity: Analyzing scenarios around '{scenario.name}'")
        analysis = SensitivityAnalysis()

        base_model = self.pipeline.run(scenario)
        base_npv = base_model.economic_valuation.npv

        for scenario_type, factors in SCENARIO_FACTORS.items():
            if scenario_type == ScenarioType.BASE:
                model = base_model
            else:
                model = self.pipeline.run(factors.apply(scenario, scenario_type.value))
            analysis.scenarios[scenario_type] = self._scenario_valuation(
                scenario_type, factors, model, base_npv
            )

        self.logger.info("  Building sensitivity matrix")
        analysis.sensitivity_matrix = self._build_sensitivity_matrix(scenario)

        if include_factors:
            self.logger.info("  Running factor sensitivities")
            analysis.factor_sensitivities = [
                self._factor_sensitivity(scenario, factor, variations, base_model)
                for factor, variations in SensitivityConfig.FACTOR_VARIATIONS.items()
            ]

        analysis.risk_level = self.classify_risk(analysis.scenarios)
        self.logger.info(
            f"Sensitivity complete: {analysis.viable_scenarios}/{len(analysis.scenarios)} "
            f"scenarios viable, risk {analysis.risk_level.value}"
        )
        return analysis

    @staticmethod
    def classify_risk(scenarios: Dict[ScenarioType, ScenarioValuation]) -> RiskLevel:
        """Risk from the optimistic/pessimistic NPV range relative to base."""
        base = scenarios.get(ScenarioType.BASE)
        pessimistic = scenarios.get(ScenarioType.PESSIMISTIC)
        optimistic = scenarios.get(ScenarioType.OPTIMISTIC)
        if base is None or abs(base.npv) < SensitivityConfig.MIN_BASE_NPV:
            return RiskLevel.VERY_HIGH

        low = pessimistic.npv if pessimistic else 0.0
        high = optimistic.npv if optimistic else 0.0
        volatility = abs(high - low) / abs(base.npv) * 100

        if volatility < SensitivityConfig.LOW_RISK_VOLATILITY:
            return RiskLevel.LOW
        elif volatility < SensitivityConfig.MEDIUM_RISK_VOLATILITY:
            return RiskLevel.MEDIUM
        elif volatility < SensitivityConfig.HIGH_RISK_VOLATILITY:
            return RiskLevel.HIGH
        return RiskLevel.VERY_HIGH

    def _scenario_valuation(
        self,
        scenario_type: ScenarioType,
        factors: ScenarioFactors,
        model: ProjectionModel,
        base_npv: float,
    ) -> ScenarioValuation:
        economic = model.economic_valuation
        financial = model.financial_valuation
        return ScenarioValuation(
            scenario=scenario_type,
            factors=factors,
            npv=economic.npv,
            irr=economic.irr,
            payback_months=economic.payback.months if economic.payback.is_determined else None,
            financial_npv=financial.npv,
            financial_irr=financial.irr,
            final_year_revenue=model.final_year_revenue,
            npv_change_vs_base=economic.npv - base_npv,
        )

    def _build_sensitivity_matrix(self, scenario: ScenarioParameters) -> SensitivityMatrix:
        """Rerun per traffic growth; revalue each FCF series across WACC values."""
        matrix = SensitivityMatrix()
        base_growth = scenario.business.traffic_growth
        base_wacc = scenario.financial.wacc

        multipliers = SensitivityConfig.TRAFFIC_GROWTH_MULTIPLIERS
        wacc_deltas = SensitivityConfig.WACC_SENSITIVITY_RANGE

        matrix.traffic_growth_rates = [base_growth * m for m in multipliers]
        matrix.discount_rates = [base_wacc + d for d in wacc_deltas]
        matrix.base_growth_idx = multipliers.index(1.0)
        matrix.base_wacc_idx = wacc_deltas.index(0.0)

        for growth in matrix.traffic_growth_rates:
            variant = scenario.with_overrides(
                business=replace(scenario.business, traffic_growth=growth)
            )
            cash_flow = self.pipeline.run(variant).economic_cash_flow
            matrix.values.append([
                calculate_npv(cash_flow.operating_fcf, wacc, cash_flow.pre_operating_capex)
                for wacc in matrix.discount_rates
            ])

        return matrix

    def _factor_sensitivity(
        self,
        scenario: ScenarioParameters,
        factor: str,
        variations: List[float],
        base_model: ProjectionModel,
    ) -> FactorSensitivity:
        result = FactorSensitivity(factor=factor, variations=list(variations))
        base_npv = base_model.economic_valuation.npv
        base_irr = base_model.economic_valuation.irr

        for variation in variations:
            if variation == 0:
                model = base_model
            else:
                model = self.pipeline.run(self._vary(scenario, factor, variation))
            result.npvs.append(model.economic_valuation.npv)
            result.irrs.append(model.economic_valuation.irr)

        result.max_npv_impact = max(abs(n - base_npv) for n in result.npvs)
        result.max_irr_impact = max(abs(i - base_irr) for i in result.irrs)
        return result

    def _vary(self, scenario: ScenarioParameters, factor: str, variation: float) -> ScenarioParameters:
        business = scenario.business
        financial = scenario.financial
        scale = 1 + variation
        if factor == "traffic":
            business = replace(business, initial_traffic=business.initial_traffic * scale)
        elif factor == "conversion":
            business = replace(business, initial_conversion=business.initial_conversion * scale)
        elif factor == "ticket":
            business = replace(business, avg_ticket=business.avg_ticket * scale)
        elif factor == "costs":
            financial = replace(
                financial,
                cogs_pct=financial.cogs_pct * scale,
                operating_expenses_pct=financial.operating_expenses_pct * scale,
            )
        else:
            raise ValueError(f"Unknown sensitivity factor: {factor}")
        return scenario.with_overrides(business=business, financial=financial)


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def analyze_sensitivity(scenario: Optional[ScenarioParameters] = None) -> SensitivityAnalysis:
    """
    Convenience function for scenario and sensitivity analysis.

    Args:
        scenario: Base ScenarioParameters

    Returns:
        SensitivityAnalysis
    """
    return SensitivityAnalyzer().analyze(scenario)


__all__ = [
    "__version__",
    "SensitivityConfig",
    "ScenarioType",
    "RiskLevel",
    "ScenarioFactors",
    "SCENARIO_FACTORS",
    "ScenarioValuation",
    "SensitivityMatrix",
    "FactorSensitivity",
    "SensitivityAnalysis",
    "SensitivityAnalyzer",
    "analyze_sensitivity",
]
