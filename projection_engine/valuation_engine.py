"""
Valuation Engine Module - NPV, IRR, Payback & Viability
Projection & Valuation Engine

Reduces a cash flow series to its investment metrics.

Methodology:
    NPV     = -Initial Investment + Sum CF_i / (1 + r)^i,  i = 1..n
    IRR     = Newton-Raphson root of Sum CF_t / (1 + r)^t,  t = 0..n
              initial guess 10%, |f(r)| < 1e-4, at most 100 iterations,
              abort when f'(r) == 0 or r leaves (-0.99, 10);
              fallback (Positive Inflows / |CF_0|)^(1/n) - 1, floored at 0
    Payback = months until -Pre-operating CAPEX + cumulative FCF >= 0,
              interpolated within the crossing year, extrapolated at the
              last year's run-rate, otherwise undetermined
    Terminal Value = CF_n x (1 + g) / (r - g)   (reported separately)

Key Components:
    - calculate_npv / solve_irr / calculate_irr / calculate_payback_period
    - IRRResult: rate plus the method that produced it
    - PaybackPeriod: tagged Determined(months) / Undetermined result
    - TerminalValueCalculation: Gordon growth residual value
    - ValuationEngine: bundles the metrics into a ValuationResult
    - ViabilityAssessor: economic (vs WACC) and financial (vs Ke) verdicts

Version: 1.2.1
"""

from __future__ import annotations

import math
import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Any
from enum import Enum

from .config import LOGGER


__version__ = "1.2.1"


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

class ValuationConfig:
    """Numerical settings and viability thresholds."""

    # Newton-Raphson IRR
    IRR_INITIAL_GUESS: float = 0.10
    IRR_TOLERANCE: float = 1e-4
    IRR_MAX_ITERATIONS: int = 100
    IRR_LOWER_BOUND: float = -0.99
    IRR_UPPER_BOUND: float = 10.0

    # Payback
    MONTHS_PER_YEAR: int = 12

    # Residual value
    TERMINAL_GROWTH: float = 0.02
    FINANCIAL_TERMINAL_CAP_MULTIPLE: float = 10.0  # TV <= 10x final FCFE

    # Viability spreads (IRR minus hurdle rate)
    ECONOMIC_HIGHLY_VIABLE_SPREAD: float = 0.05   # 5pp over WACC
    ECONOMIC_VIABLE_SPREAD: float = 0.02          # 2pp over WACC
    FINANCIAL_HIGHLY_VIABLE_SPREAD: float = 0.08  # 8pp over Ke
    FINANCIAL_VIABLE_SPREAD: float = 0.03         # 3pp over Ke


# =============================================================================
# ENUMERATIONS
# =============================================================================

class IRRMethod(Enum):
    """Algorithm that produced an IRR."""
    NEWTON_RAPHSON = "newton_raphson"
    ANALYTIC_FALLBACK = "analytic_fallback"


class PaybackStatus(Enum):
    """Whether the investment is recovered."""
    DETERMINED = "determined"
    UNDETERMINED = "undetermined"


class PaybackMethod(Enum):
    """How a determined payback was located."""
    INTERPOLATED = "interpolated"  # Within the crossing year
    YEAR_END = "year_end"          # Exactly at a year boundary
    EXTRAPOLATED = "extrapolated"  # Beyond the horizon at last run-rate


class ViabilityLevel(Enum):
    """Verdict of IRR against a hurdle rate."""
    HIGHLY_VIABLE = "highly_viable"
    VIABLE = "viable"
    MARGINAL = "marginal"
    REVIEW = "review"          # IRR above hurdle but NPV not positive
    NOT_VIABLE = "not_viable"


class ProjectRecommendation(Enum):
    """Overall conclusion combining both viability verdicts."""
    RECOMMENDED = "recommended"
    RECOMMENDED_WITH_RESERVATIONS = "recommended_with_reservations"  # Economic only
    REVIEW_OPERATIONS = "review_operations"                          # Financial only
    MARGINAL = "marginal"
    NOT_RECOMMENDED = "not_recommended"


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class IRRResult:
    """IRR with solver diagnostics."""

    rate: float
    method: IRRMethod
    iterations: int = 0
    converged: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rate": self.rate,
            "method": self.method.value,
            "iterations": self.iterations,
            "converged": self.converged,
        }


@dataclass(frozen=True)
class PaybackPeriod:
    """
    Tagged payback result.

    ``months`` is only meaningful when ``status`` is DETERMINED; use
    ``months_or()`` to obtain a display value with an explicit default.
    """

    status: PaybackStatus
    months: Optional[int] = None
    method: Optional[PaybackMethod] = None

    @classmethod
    def determined(cls, months: int, method: PaybackMethod) -> "PaybackPeriod":
        return cls(status=PaybackStatus.DETERMINED, months=int(months), method=method)

    @classmethod
    def undetermined(cls) -> "PaybackPeriod":
        return cls(status=PaybackStatus.UNDETERMINED)

    @property
    def is_determined(self) -> bool:
        return self.status == PaybackStatus.DETERMINED

    def months_or(self, default: int) -> int:
        return self.months if self.is_determined and self.months is not None else default

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "months": self.months,
            "method": self.method.value if self.method else None,
        }


@dataclass
class TerminalValueCalculation:
    """Residual value using the Gordon Growth Model."""

    final_year_flow: float = 0.0
    terminal_growth_rate: float = ValuationConfig.TERMINAL_GROWTH
    discount_rate: float = 0.0
    periods: int = 0
    cap_multiple: Optional[float] = None

    # Calculated values
    terminal_value: float = 0.0
    discount_factor: float = 0.0
    present_value: float = 0.0
    capped: bool = False

    # Validation
    is_valid: bool = True
    validation_message: str = ""

    def calculate(self) -> float:
        """Calculate and discount the terminal value; returns the present value."""
        if self.discount_rate <= self.terminal_growth_rate:
            self.is_valid = False
            self.validation_message = "Discount rate must exceed terminal growth rate"
            return 0.0

        self.terminal_value = (
            self.final_year_flow * (1 + self.terminal_growth_rate)
            / (self.discount_rate - self.terminal_growth_rate)
        )

        if self.cap_multiple is not None and self.final_year_flow > 0:
            ceiling = self.final_year_flow * self.cap_multiple
            if self.terminal_value > ceiling:
                self.terminal_value = ceiling
                self.capped = True

        self.discount_factor = 1 / ((1 + self.discount_rate) ** self.periods)
        self.present_value = self.terminal_value * self.discount_factor
        self.is_valid = True
        return self.present_value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "final_year_flow": self.final_year_flow,
            "terminal_growth_rate": self.terminal_growth_rate,
            "discount_rate": self.discount_rate,
            "periods": self.periods,
            "terminal_value_undiscounted": self.terminal_value,
            "discount_factor": self.discount_factor,
            "present_value": self.present_value,
            "capped": self.capped,
            "is_valid": self.is_valid,
            "validation_message": self.validation_message,
            "formula": "CF * (1+g) / (r - g)",
        }


@dataclass(frozen=True)
class ValuationResult:
    """NPV, IRR and payback of one cash flow series."""

    npv: float
    irr: float
    payback: PaybackPeriod
    irr_result: IRRResult
    discount_rate: float
    initial_investment: float
    cash_flows: List[float] = field(default_factory=list)
    terminal_value: TerminalValueCalculation = field(default_factory=TerminalValueCalculation)

    @property
    def npv_with_terminal(self) -> float:
        return self.npv + self.terminal_value.present_value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "npv": self.npv,
            "irr": self.irr,
            "irr_detail": self.irr_result.to_dict(),
            "payback": self.payback.to_dict(),
            "discount_rate": self.discount_rate,
            "initial_investment": self.initial_investment,
            "cash_flows": list(self.cash_flows),
            "terminal_value": self.terminal_value.to_dict(),
            "npv_with_terminal": self.npv_with_terminal,
        }


@dataclass(frozen=True)
class ViabilityVerdict:
    """IRR compared with a hurdle rate."""

    level: ViabilityLevel
    irr: float
    hurdle_rate: float
    npv: float

    @property
    def spread(self) -> float:
        return self.irr - self.hurdle_rate

    @property
    def is_viable(self) -> bool:
        return self.level in (ViabilityLevel.HIGHLY_VIABLE, ViabilityLevel.VIABLE)

    @property
    def is_marginal(self) -> bool:
        return self.level in (ViabilityLevel.MARGINAL, ViabilityLevel.REVIEW)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "irr": self.irr,
            "hurdle_rate": self.hurdle_rate,
            "spread": self.spread,
            "npv": self.npv,
        }


@dataclass(frozen=True)
class ViabilityAssessment:
    """Economic and financial verdicts with the overall recommendation."""

    economic: ViabilityVerdict
    financial: ViabilityVerdict
    recommendation: ProjectRecommendation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "economic": self.economic.to_dict(),
            "financial": self.financial.to_dict(),
            "recommendation": self.recommendation.value,
        }


# =============================================================================
# CORE FUNCTIONS
# =============================================================================

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_npv(
    cash_flows: Sequence[float],
    rate: float,
    initial_investment: float = 0.0,
) -> float:
    """
    Net present value with flows discounted from period 1.

    Args:
        cash_flows: Flows for periods 1..n
        rate: Discount rate per period (must be > -1)
        initial_investment: Outlay at period 0, entered as a positive amount

    Returns:
        NPV as a float
    """
    flows = np.asarray(cash_flows, dtype=float)
    if flows.size == 0:
        return -float(initial_investment)
    periods = np.arange(1, flows.size + 1)
    discount_factors = 1 / (1 + rate) ** periods
    return float(np.sum(flows * discount_factors) - initial_investment)


def solve_irr(series: Sequence[float]) -> IRRResult:
    """
    IRR of a series whose first element is the period-0 flow.

    Newton-Raphson from 10%; analytic fallback when it does not converge.
    """
    flows = np.asarray(series, dtype=float)
    if flows.size < 2:
        return IRRResult(rate=0.0, method=IRRMethod.ANALYTIC_FALLBACK)

    periods = np.arange(flows.size)
    rate = ValuationConfig.IRR_INITIAL_GUESS

    for iteration in range(1, ValuationConfig.IRR_MAX_ITERATIONS + 1):
        base = 1 + rate
        value = float(np.sum(flows / base ** periods))
        if abs(value) < ValuationConfig.IRR_TOLERANCE:
            return IRRResult(
                rate=rate,
                method=IRRMethod.NEWTON_RAPHSON,
                iterations=iteration,
                converged=True,
            )

        derivative = float(np.sum(-periods[1:] * flows[1:] / base ** (periods[1:] + 1)))
        if derivative == 0:
            break

        new_rate = rate - value / derivative
        if not (ValuationConfig.IRR_LOWER_BOUND < new_rate < ValuationConfig.IRR_UPPER_BOUND):
            break
        rate = new_rate

    fallback = _analytic_irr(flows)
    LOGGER.warning(f"IRR did not converge, using analytic approximation {fallback:.2%}")
    return IRRResult(rate=fallback, method=IRRMethod.ANALYTIC_FALLBACK)


def _analytic_irr(flows: np.ndarray) -> float:
    """(Positive inflows / |initial|)^(1/years) - 1, or 0 when not recovered."""
    initial = abs(float(flows[0]))
    years = flows.size - 1
    inflows = float(np.sum(np.clip(flows[1:], 0, None)))
    if initial == 0 or years <= 0 or inflows <= initial:
        return 0.0
    return (inflows / initial) ** (1 / years) - 1


def calculate_irr(series: Sequence[float]) -> float:
    """IRR as a fractional rate."""
    return solve_irr(series).rate


def calculate_payback_period(
    operating_fcf: Sequence[float],
    initial_investment: float,
) -> PaybackPeriod:
    """
    Months until the pre-operating investment is recovered.

    Args:
        operating_fcf: FCF of each operating year, in order
        initial_investment: Total pre-operating CAPEX (positive amount)

    Returns:
        PaybackPeriod, undetermined when the investment is never recovered
        and the last year's FCF is not positive
    """
    months_per_year = ValuationConfig.MONTHS_PER_YEAR
    cumulative = -float(initial_investment)

    for index, fcf in enumerate(operating_fcf):
        previous = cumulative
        cumulative += fcf
        if cumulative >= 0:
            months_at_year_end = (index + 1) * months_per_year
            if previous < 0 and fcf > 0:
                months_into_year = abs(previous) / fcf * months_per_year
                return PaybackPeriod.determined(
                    _round_half_up(months_at_year_end - months_into_year),
                    PaybackMethod.INTERPOLATED,
                )
            return PaybackPeriod.determined(months_at_year_end, PaybackMethod.YEAR_END)

    if operating_fcf and operating_fcf[-1] > 0:
        extra_months = abs(cumulative) / operating_fcf[-1] * months_per_year
        return PaybackPeriod.determined(
            _round_half_up(len(operating_fcf) * months_per_year + extra_months),
            PaybackMethod.EXTRAPOLATED,
        )

    return PaybackPeriod.undetermined()


# =============================================================================
# VALUATION ENGINE
# =============================================================================

class ValuationEngine:
    """
    Values an operating cash flow series against its initial investment.

    The terminal value is computed alongside but never folded into ``npv``.
    """

    def __init__(self, terminal_growth: float = ValuationConfig.TERMINAL_GROWTH):
        self.terminal_growth = terminal_growth
        self.logger = LOGGER

    def value(
        self,
        operating_flows: Sequence[float],
        initial_investment: float,
        rate: float,
        terminal_cap_multiple: Optional[float] = None,
    ) -> ValuationResult:
        """
        Compute NPV, IRR, payback and terminal value.

        Args:
            operating_flows: Flows of the operating years (periods 1..n)
            initial_investment: Pre-operating outlay (positive amount)
            rate: Discount rate (WACC or Ke)
            terminal_cap_multiple: Optional ceiling for the terminal value

        Returns:
            ValuationResult
        """
        flows = [float(f) for f in operating_flows]
        npv = calculate_npv(flows, rate, initial_investment)
        irr_result = solve_irr([-float(initial_investment)] + flows)
        payback = calculate_payback_period(flows, initial_investment)

        if not payback.is_determined:
            self.logger.warning("Payback undetermined: investment not recovered")

        terminal = TerminalValueCalculation(
            final_year_flow=flows[-1] if flows else 0.0,
            terminal_growth_rate=self.terminal_growth,
            discount_rate=rate,
            periods=len(flows),
            cap_multiple=terminal_cap_multiple,
        )
        terminal.calculate()

        return ValuationResult(
            npv=npv,
            irr=irr_result.rate,
            payback=payback,
            irr_result=irr_result,
            discount_rate=rate,
            initial_investment=float(initial_investment),
            cash_flows=flows,
            terminal_value=terminal,
        )


# =============================================================================
# VIABILITY ASSESSOR
# =============================================================================

class ViabilityAssessor:
    """Classifies economic (vs WACC) and financial (vs Ke) returns."""

    def assess(
        self,
        economic: ValuationResult,
        financial: ValuationResult,
        wacc: float,
        equity_cost: float,
    ) -> ViabilityAssessment:
        economic_verdict = self._classify(
            economic, wacc,
            ValuationConfig.ECONOMIC_HIGHLY_VIABLE_SPREAD,
            ValuationConfig.ECONOMIC_VIABLE_SPREAD,
        )
        financial_verdict = self._classify(
            financial, equity_cost,
            ValuationConfig.FINANCIAL_HIGHLY_VIABLE_SPREAD,
            ValuationConfig.FINANCIAL_VIABLE_SPREAD,
        )
        return ViabilityAssessment(
            economic=economic_verdict,
            financial=financial_verdict,
            recommendation=self._recommend(economic_verdict, financial_verdict),
        )

    def _classify(
        self,
        result: ValuationResult,
        hurdle: float,
        highly_viable_spread: float,
        viable_spread: float,
    ) -> ViabilityVerdict:
        spread = result.irr - hurdle
        if result.irr > hurdle and result.npv > 0:
            if spread >= highly_viable_spread:
                level = ViabilityLevel.HIGHLY_VIABLE
            elif spread >= viable_spread:
                level = ViabilityLevel.VIABLE
            else:
                level = ViabilityLevel.MARGINAL
        elif result.irr > hurdle:
            level = ViabilityLevel.REVIEW
        else:
            level = ViabilityLevel.NOT_VIABLE
        return ViabilityVerdict(level=level, irr=result.irr, hurdle_rate=hurdle, npv=result.npv)

    def _recommend(
        self,
        economic: ViabilityVerdict,
        financial: ViabilityVerdict,
    ) -> ProjectRecommendation:
        if economic.is_viable and financial.is_viable:
            return ProjectRecommendation.RECOMMENDED
        if economic.is_viable:
            return ProjectRecommendation.RECOMMENDED_WITH_RESERVATIONS
        if financial.is_viable:
            return ProjectRecommendation.REVIEW_OPERATIONS
        if economic.is_marginal or financial.is_marginal:
            return ProjectRecommendation.MARGINAL
        return ProjectRecommendation.NOT_RECOMMENDED


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "__version__",
    "ValuationConfig",
    "IRRMethod",
    "PaybackStatus",
    "PaybackMethod",
    "ViabilityLevel",
    "ProjectRecommendation",
    "IRRResult",
    "PaybackPeriod",
    "TerminalValueCalculation",
    "ValuationResult",
    "ViabilityVerdict",
    "ViabilityAssessment",
    "calculate_npv",
    "solve_irr",
    "calculate_irr",
    "calculate_payback_period",
    "ValuationEngine",
    "ViabilityAssessor",
]
