"""
Dashboard Module - Snapshot Aggregation with Deterministic Fallback
Projection & Valuation Engine

Pulls CAPEX, revenue, cash flow and valuation results into one consistent
DashboardSnapshot for the presentation layer.

Resolution order on every recompute:
    1. Previously computed model state, when the collaborator supplies one
    2. A fresh pipeline run from the collaborators' parameters
    3. The static DEFAULT_SNAPSHOT when either of the above fails

Failures are returned as ComputeResult.failure(ComputeError); the aggregator
logs them, publishes the defaults, and emits a single advisory notice.
Partial snapshots are never published.

Derived metrics:
    ROI             = Sum operating FCF / Total CAPEX x 100     (0 if CAPEX <= 0)
    Break-even year = first operating year with cumulative FCF >= 0,
                      else start + ceil(payback months / 12), clamped
    Equity ROI      = Sum operating FCFE / Total equity x 100
    Diversification = (1 - Sum w^2) x 100
    Stability       = max(0, (1 - CV of operating FCFE) x 100)
    DSCR            = average EBITDA / average debt service

Version: 1.1.2
"""

from __future__ import annotations

import math
import numpy as np
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union
from enum import Enum

from .config import (
    LOGGER,
    CAPEX_CONFIG,
    DEFAULT_INVENTORY_PARAMS,
    HORIZON_CONFIG,
    TWO_MARKET_DISTRIBUTION,
    BusinessParams,
    CapexConfig,
    FinancialParams,
    HorizonConfig,
    InventoryParams,
    MarketDefinition,
    PipelineStage,
    ScenarioParameters,
    get_business_params,
    get_financial_params,
    markets_from_mapping,
)
from .projection_model import ProjectionError, ProjectionModel, ProjectionPipeline
from .valuation_engine import PaybackPeriod


__version__ = "1.1.2"


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

class DashboardConfig:
    """Display defaults."""

    # Shown when payback is undetermined
    DEFAULT_PAYBACK_MONTHS: int = 18

    ADVISORY_MESSAGE: str = (
        "The financial model could not be recalculated; "
        "reference values are displayed instead."
    )


# =============================================================================
# ENUMERATIONS
# =============================================================================

class SnapshotSource(Enum):
    """Where a snapshot's values came from."""
    MODEL_STATE = "model_state"  # Previously computed model
    RECOMPUTED = "recomputed"    # Fresh pipeline run
    DEFAULTS = "defaults"        # Static reference values


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class DashboardSnapshot:
    """Uniform metrics object; numeric fields are always finite."""

    source: SnapshotSource

    # Valuation
    npv: float
    irr: float
    payback_months: int
    payback_determined: bool
    roi: float
    break_even_year: int
    financial_npv: float
    financial_irr: float

    # Investment & financing
    total_capex: float
    total_debt: float
    total_equity: float

    # Revenue
    final_year_revenue: float
    final_year_orders: float
    revenue_cagr: float

    # Cash flow
    accumulated_fcf: float
    yearly_fcf: Dict[int, float] = field(default_factory=dict)
    npv_with_terminal: float = 0.0
    npv_after_working_capital: float = 0.0

    # Performance indicators
    equity_roi: float = 0.0
    market_diversification: float = 0.0
    cash_flow_stability: float = 0.0
    debt_service_coverage: float = 0.0
    conversion_improvement: float = 0.0

    recommendation: str = "unavailable"

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["source"] = self.source.value
        data["yearly_fcf"] = dict(self.yearly_fcf)
        return data


DEFAULT_SNAPSHOT = DashboardSnapshot(
    source=SnapshotSource.DEFAULTS,
    npv=1800000.0,
    irr=0.35,
    payback_months=22,
    payback_determined=True,
    roi=95.0,
    break_even_year=2027,
    financial_npv=1200000.0,
    financial_irr=0.28,
    total_capex=565000.0,
    total_debt=197750.0,     # 35% debt
    total_equity=367250.0,   # 65% equity
    final_year_revenue=3200000.0,
    final_year_orders=75000.0,
    revenue_cagr=1.20,
    accumulated_fcf=4200000.0,
    yearly_fcf={
        2025: -511476.0,
        2026: 156849.0,
        2027: 724652.0,
        2028: 1438591.0,
        2029: 2198456.0,
        2030: 2992847.0,
    },
    npv_with_terminal=1800000.0,
    npv_after_working_capital=1750000.0,
    market_diversification=45.5,
)


@dataclass(frozen=True)
class ComputeError:
    """Why a recompute failed."""

    stage: PipelineStage
    message: str
    exception_type: str = "Exception"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "message": self.message,
            "exception_type": self.exception_type,
        }


@dataclass(frozen=True)
class ComputeResult:
    """Either a snapshot (success) or a ComputeError (failure)."""

    snapshot: Optional[DashboardSnapshot] = None
    error: Optional[ComputeError] = None
    model: Optional[ProjectionModel] = None

    @classmethod
    def success(cls, snapshot: DashboardSnapshot, model: Optional[ProjectionModel] = None) -> "ComputeResult":
        return cls(snapshot=snapshot, model=model)

    @classmethod
    def failure(cls, error: ComputeError) -> "ComputeResult":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None and self.snapshot is not None


# =============================================================================
# COLLABORATORS
# =============================================================================

ParamSource = Union[FinancialParams, BusinessParams, InventoryParams, Mapping[str, Any]]


def _default_inventory_params() -> InventoryParams:
    return DEFAULT_INVENTORY_PARAMS


def _default_markets() -> Dict[str, MarketDefinition]:
    return dict(TWO_MARKET_DISTRIBUTION)


@dataclass(frozen=True)
class DashboardCollaborators:
    """
    Capabilities supplied to the aggregator at construction time.

    Parameter providers may return either the parameter dataclass or a
    mapping in the collaborator vocabulary (``{"debtRatio": 0.5, ...}``).
    Optional hooks are ``None`` when the collaborator does not offer them.
    """

    financial_params: Callable[[], ParamSource] = get_financial_params
    business_params: Callable[[], ParamSource] = get_business_params
    inventory_params: Callable[[], ParamSource] = _default_inventory_params
    markets: Callable[[], Mapping[str, Any]] = _default_markets

    # Optional capabilities
    active_markets: Optional[Callable[[], Sequence[str]]] = None
    model_state: Optional[Callable[[], Optional[ProjectionModel]]] = None
    on_advisory: Optional[Callable[[str], None]] = None

    horizon: HorizonConfig = HORIZON_CONFIG
    capex: CapexConfig = CAPEX_CONFIG


# =============================================================================
# DERIVED METRICS
# =============================================================================

def calculate_roi(operating_fcf: Sequence[float], total_capex: float) -> float:
    """Cumulative operating FCF over total CAPEX, in percent; 0 without CAPEX."""
    if total_capex <= 0:
        return 0.0
    return float(sum(operating_fcf)) / total_capex * 100


def calculate_break_even_year(
    pre_operating_capex: float,
    operating_years: Sequence[int],
    operating_fcf: Sequence[float],
    payback: PaybackPeriod,
    horizon: HorizonConfig = HORIZON_CONFIG,
) -> int:
    """First operating year whose cumulative FCF is non-negative."""
    cumulative = -pre_operating_capex
    for year, fcf in zip(operating_years, operating_fcf):
        cumulative += fcf
        if cumulative >= 0:
            return year

    months = payback.months_or(DashboardConfig.DEFAULT_PAYBACK_MONTHS)
    year = horizon.start_year + math.ceil(months / 12)
    return min(max(year, horizon.operating_start_year), horizon.end_year)


def calculate_cash_flow_stability(flows: Sequence[float]) -> float:
    """(1 - coefficient of variation) x 100, floored at 0."""
    values = np.asarray(flows, dtype=float)
    if values.size == 0:
        return 0.0
    mean = float(np.mean(values))
    if mean == 0:
        return 0.0
    cv = float(np.std(values)) / abs(mean)
    return max(0.0, (1 - cv) * 100)


def calculate_debt_service_coverage(model: ProjectionModel) -> float:
    """Average operating EBITDA over average debt service."""
    ebitda = []
    service = []
    for record in model.economic_cash_flow.operating_records:
        ebitda.append(record.ebitda)
        service.append(model.debt.for_year(record.year).payment)
    if not service:
        return 0.0
    avg_service = float(np.mean(service))
    if avg_service <= 0:
        return 0.0
    return float(np.mean(ebitda)) / avg_service


def _conversion_improvement(model: ProjectionModel) -> float:
    horizon = model.scenario.horizon
    first = model.revenue.records_for(horizon.operating_start_year)
    last = model.revenue.records_for(horizon.end_year)
    if not first or not last or first[0].conversion_rate <= 0:
        return 0.0
    return (last[0].conversion_rate - first[0].conversion_rate) / first[0].conversion_rate * 100


def sanitize_snapshot(snapshot: DashboardSnapshot) -> DashboardSnapshot:
    """Replace non-finite numbers with the default snapshot's values."""
    changes: Dict[str, Any] = {}
    for f in fields(snapshot):
        value = getattr(snapshot, f.name)
        if isinstance(value, float) and not math.isfinite(value):
            changes[f.name] = getattr(DEFAULT_SNAPSHOT, f.name)
    yearly = {y: v for y, v in snapshot.yearly_fcf.items() if math.isfinite(v)}
    if len(yearly) != len(snapshot.yearly_fcf):
        changes["yearly_fcf"] = yearly
    if changes:
        LOGGER.warning(f"Replaced non-finite dashboard values: {', '.join(sorted(changes))}")
        return replace(snapshot, **changes)
    return snapshot


def build_snapshot(model: ProjectionModel, source: SnapshotSource) -> DashboardSnapshot:
    """
    Reduce a ProjectionModel to the dashboard metrics.

    Args:
        model: Complete ProjectionModel
        source: Whether the model was cached or freshly computed

    Returns:
        DashboardSnapshot with every numeric field finite
    """
    economic = model.economic_valuation
    financial = model.financial_valuation
    cash_flow = model.economic_cash_flow
    equity_flow = model.financial_cash_flow
    capex = model.capex

    operating_fcf = cash_flow.operating_fcf
    total_equity = capex.total_equity
    equity_roi = sum(equity_flow.operating_fcfe) / total_equity * 100 if total_equity > 0 else 0.0

    snapshot = DashboardSnapshot(
        source=source,
        npv=economic.npv,
        irr=economic.irr,
        payback_months=economic.payback.months_or(DashboardConfig.DEFAULT_PAYBACK_MONTHS),
        payback_determined=economic.payback.is_determined,
        roi=calculate_roi(operating_fcf, capex.total_capex),
        break_even_year=calculate_break_even_year(
            cash_flow.pre_operating_capex,
            cash_flow.operating_years,
            operating_fcf,
            economic.payback,
            model.scenario.horizon,
        ),
        financial_npv=financial.npv,
        financial_irr=financial.irr,
        total_capex=capex.total_capex,
        total_debt=capex.total_debt,
        total_equity=total_equity,
        final_year_revenue=model.final_year_revenue,
        final_year_orders=model.final_year_orders,
        revenue_cagr=model.revenue_cagr,
        accumulated_fcf=float(sum(operating_fcf)),
        yearly_fcf=cash_flow.fcf_by_year(),
        npv_with_terminal=economic.npv_with_terminal,
        npv_after_working_capital=model.npv_after_working_capital,
        equity_roi=equity_roi,
        market_diversification=model.revenue.diversification_index,
        cash_flow_stability=calculate_cash_flow_stability(equity_flow.operating_fcfe),
        debt_service_coverage=calculate_debt_service_coverage(model),
        conversion_improvement=_conversion_improvement(model),
        recommendation=model.viability.recommendation.value,
    )
    return sanitize_snapshot(snapshot)


# =============================================================================
# AGGREGATOR
# =============================================================================

class DashboardAggregator:
    """
    Holds the last published snapshot and refreshes it on demand.

    The snapshot starts as DEFAULT_SNAPSHOT and is replaced wholesale by each
    ``recompute()``.
    """

    def __init__(
        self,
        collaborators: Optional[DashboardCollaborators] = None,
        pipeline: Optional[ProjectionPipeline] = None,
    ):
        self.collaborators = collaborators or DashboardCollaborators()
        self.pipeline = pipeline or ProjectionPipeline()
        self.logger = LOGGER
        self._snapshot: DashboardSnapshot = DEFAULT_SNAPSHOT
        self._model: Optional[ProjectionModel] = None

    @property
    def snapshot(self) -> DashboardSnapshot:
        """Last published snapshot."""
        return self._snapshot

    @property
    def last_model(self) -> Optional[ProjectionModel]:
        """Model behind the last snapshot; None when defaults are shown."""
        return self._model

    def build_scenario(self) -> ScenarioParameters:
        """Collect the collaborators' parameters into one scenario."""
        c = self.collaborators
        try:
            markets = c.markets()
            if not all(isinstance(m, MarketDefinition) for m in markets.values()):
                markets = markets_from_mapping(markets)
            active = tuple(c.active_markets()) if c.active_markets else None
            return ScenarioParameters(
                financial=self._coerce(c.financial_params(), FinancialParams),
                business=self._coerce(c.business_params(), BusinessParams),
                inventory=self._coerce(c.inventory_params(), InventoryParams),
                markets=dict(markets),
                active_markets=active,
                horizon=c.horizon,
                capex=c.capex,
                name="Dashboard",
            )
        except Exception as e:
            raise ProjectionError(PipelineStage.CONFIGURATION, str(e)) from e

    def compute(self) -> ComputeResult:
        """Compute a snapshot without publishing it."""
        try:
            model = self._model_from_state()
            source = SnapshotSource.MODEL_STATE
            if model is None:
                model = self.pipeline.run(self.build_scenario())
                source = SnapshotSource.RECOMPUTED
        except ProjectionError as e:
            cause = e.__cause__ if e.__cause__ is not None else e
            return ComputeResult.failure(
                ComputeError(e.stage, e.message, type(cause).__name__)
            )
        except Exception as e:
            return ComputeResult.failure(
                ComputeError(PipelineStage.CONFIGURATION, str(e), type(e).__name__)
            )

        try:
            snapshot = build_snapshot(model, source)
        except Exception as e:
            return ComputeResult.failure(
                ComputeError(PipelineStage.AGGREGATION, str(e), type(e).__name__)
            )
        return ComputeResult.success(snapshot, model)

    def recompute(self) -> ComputeResult:
        """
        Refresh and publish the snapshot.

        Returns:
            ComputeResult; on failure the published snapshot is DEFAULT_SNAPSHOT
        """
        result = self.compute()
        if result.is_ok:
            self._snapshot = result.snapshot
            self._model = result.model
            self.logger.info(
                f"Dashboard: snapshot published from {result.snapshot.source.value} "
                f"(NPV ${result.snapshot.npv:,.0f}, IRR {result.snapshot.irr:.1%})"
            )
            return result

        error = result.error
        self.logger.error(
            f"Dashboard: recompute failed at {error.stage.value} "
            f"({error.exception_type}: {error.message}); using reference values"
        )
        self._snapshot = DEFAULT_SNAPSHOT
        self._model = None
        if self.collaborators.on_advisory is not None:
            self.collaborators.on_advisory(DashboardConfig.ADVISORY_MESSAGE)
        return result

    def _model_from_state(self) -> Optional[ProjectionModel]:
        hook = self.collaborators.model_state
        if hook is None:
            return None
        return hook()

    @staticmethod
    def _coerce(value: ParamSource, cls: type) -> Any:
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        raise TypeError(f"Expected {cls.__name__} or mapping, got {type(value).__name__}")


__all__ = [
    "__version__",
    "DashboardConfig",
    "SnapshotSource",
    "DashboardSnapshot",
    "DEFAULT_SNAPSHOT",
    "ComputeError",
    "ComputeResult",
    "DashboardCollaborators",
    "calculate_roi",
    "calculate_break_even_year",
    "calculate_cash_flow_stability",
    "calculate_debt_service_coverage",
    "sanitize_snapshot",
    "build_snapshot",
    "DashboardAggregator",
]
