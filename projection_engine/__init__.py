"""
Projection & Valuation Engine - Business Plan Projections for a Dashboard
=========================================================================

Configuration
- Financial, business and inventory parameter sets (frozen dataclasses)
- Collaborator field maps (camelCase -> snake_case)
- Two- and four-market distribution tables
- Projection horizon and progressive CAPEX distribution

CAPEX & Revenue
- Container-rounded opening inventory investment
- Progressive CAPEX allocation or itemized investment plan
- Per-year debt/equity financing split
- Traffic, conversion (capped), ticket and revenue per (year, market)
- Active-market weight renormalization, partial launch year, CAGR

Costs, Debt & Cash Flow
- Detailed cost model (variable, salary and fixed structure)
- Receivables, inventory and payables per market with yearly change
- French amortization of yearly debt tranches
- Economic (unlevered) FCF and financial (equity) FCFE series

Valuation
- NPV with period-1 discounting
- Newton-Raphson IRR with analytic fallback
- Interpolated payback as a tagged Determined/Undetermined result
- Gordon growth terminal value, economic and financial viability

Dashboard
- Immutable ProjectionModel per recalculation pass
- Aggregated snapshot with ROI, break-even year and indicators
- ComputeResult success/failure with a deterministic default snapshot
- Scenario, sensitivity-matrix and factor analysis

Version: 1.2.0
"""

from .config import (
    LOGGER,
    OUTPUT_DIR,
    PROJECT_ROOT,
    PipelineStage,
    MarketScope,
    FinancialParams,
    BusinessParams,
    InventoryParams,
    MarketDefinition,
    HorizonConfig,
    CapexConfig,
    ScenarioParameters,
    TWO_MARKET_DISTRIBUTION,
    FOUR_MARKET_DISTRIBUTION,
    DEFAULT_CAPEX_PLAN,
    HORIZON_CONFIG,
    CAPEX_CONFIG,
    get_financial_params,
    get_business_params,
    get_market_distribution,
)

from .capex_allocator import (
    InventoryInvestment,
    YearlyCapexRecord,
    FinancingRecord,
    CapexSchedule,
    CapexAllocator,
)

from .revenue_projector import (
    YearlyRevenueRecord,
    RevenueProjection,
    RevenueProjector,
)

from .cost_model import (
    YearlyCostRecord,
    CostSchedule,
    CostProjector,
)

from .working_capital import (
    MarketWorkingCapital,
    YearlyWorkingCapitalRecord,
    WorkingCapitalSchedule,
    WorkingCapitalProjector,
)

from .debt_schedule import (
    DebtScheduleRow,
    DebtSchedule,
    DebtScheduleBuilder,
)

from .cashflow_deriver import (
    YearlyCashFlowRecord,
    EconomicCashFlow,
    FinancialCashFlowRecord,
    FinancialCashFlow,
    CashFlowDeriver,
)

from .valuation_engine import (
    IRRMethod,
    IRRResult,
    PaybackStatus,
    PaybackMethod,
    PaybackPeriod,
    TerminalValueCalculation,
    ValuationResult,
    ViabilityLevel,
    ProjectRecommendation,
    ViabilityAssessment,
    ValuationEngine,
    ViabilityAssessor,
    calculate_npv,
    calculate_irr,
    solve_irr,
    calculate_payback_period,
)

from .projection_model import (
    ProjectionError,
    ProjectionModel,
    ProjectionPipeline,
    run_projection,
)

from .sensitivity_analyzer import (
    ScenarioType,
    RiskLevel,
    ScenarioFactors,
    SensitivityAnalysis,
    SensitivityAnalyzer,
    analyze_sensitivity,
)

from .dashboard import (
    SnapshotSource,
    DashboardSnapshot,
    DEFAULT_SNAPSHOT,
    ComputeError,
    ComputeResult,
    DashboardCollaborators,
    DashboardAggregator,
    calculate_roi,
    calculate_break_even_year,
)

__version__ = "1.2.0"

__all__ = [
    "__version__",

    # Configuration
    "LOGGER",
    "OUTPUT_DIR",
    "PROJECT_ROOT",
    "PipelineStage",
    "MarketScope",
    "FinancialParams",
    "BusinessParams",
    "InventoryParams",
    "MarketDefinition",
    "HorizonConfig",
    "CapexConfig",
    "ScenarioParameters",
    "TWO_MARKET_DISTRIBUTION",
    "FOUR_MARKET_DISTRIBUTION",
    "DEFAULT_CAPEX_PLAN",
    "HORIZON_CONFIG",
    "CAPEX_CONFIG",
    "get_financial_params",
    "get_business_params",
    "get_market_distribution",

    # CAPEX
    "InventoryInvestment",
    "YearlyCapexRecord",
    "FinancingRecord",
    "CapexSchedule",
    "CapexAllocator",

    # Revenue
    "YearlyRevenueRecord",
    "RevenueProjection",
    "RevenueProjector",

    # Costs, working capital & debt
    "YearlyCostRecord",
    "CostSchedule",
    "CostProjector",
    "MarketWorkingCapital",
    "YearlyWorkingCapitalRecord",
    "WorkingCapitalSchedule",
    "WorkingCapitalProjector",
    "DebtScheduleRow",
    "DebtSchedule",
    "DebtScheduleBuilder",

    # Cash flow
    "YearlyCashFlowRecord",
    "EconomicCashFlow",
    "FinancialCashFlowRecord",
    "FinancialCashFlow",
    "CashFlowDeriver",

    # Valuation
    "IRRMethod",
    "IRRResult",
    "PaybackStatus",
    "PaybackMethod",
    "PaybackPeriod",
    "TerminalValueCalculation",
    "ValuationResult",
    "ViabilityLevel",
    "ProjectRecommendation",
    "ViabilityAssessment",
    "ValuationEngine",
    "ViabilityAssessor",
    "calculate_npv",
    "calculate_irr",
    "solve_irr",
    "calculate_payback_period",

    # Pipeline
    "ProjectionError",
    "ProjectionModel",
    "ProjectionPipeline",
    "run_projection",

    # Sensitivity
    "ScenarioType",
    "RiskLevel",
    "ScenarioFactors",
    "SensitivityAnalysis",
    "SensitivityAnalyzer",
    "analyze_sensitivity",

    # Dashboard
    "SnapshotSource",
    "DashboardSnapshot",
    "DEFAULT_SNAPSHOT",
    "ComputeError",
    "ComputeResult",
    "DashboardCollaborators",
    "DashboardAggregator",
    "calculate_roi",
    "calculate_break_even_year",
]
