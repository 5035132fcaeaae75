"""
Configuration Module - Business Plan Assumptions & Engine Settings
Projection & Valuation Engine

Centralizes the parameter sets consumed by every projection stage: financial
assumptions (financing mix, discount rates, cost ratios, tax), business
drivers (traffic, conversion, ticket, operating costs), inventory parameters,
market distribution tables, the projection horizon and the CAPEX base
distribution.

Parameter sets are frozen dataclasses. Collaborators that speak the
dashboard's camelCase vocabulary are translated through explicit field maps
(see ``FinancialParams.from_mapping``); unknown keys are ignored and missing
keys keep their defaults.

Version: 1.2.0
"""

from __future__ import annotations

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple
from enum import Enum


__version__ = "1.2.0"


# =============================================================================
# DIRECTORY CONFIGURATION
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.absolute()
OUTPUT_DIR = PROJECT_ROOT / "outputs"


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Configure and return a logger instance with professional formatting."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


LOG_LEVEL = getattr(
    logging,
    os.getenv("PROJECTION_ENGINE_LOG_LEVEL", "INFO").upper(),
    logging.INFO,
)

LOGGER = setup_logger("ProjectionEngine", LOG_LEVEL)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class PipelineStage(Enum):
    """Stages of the recalculation pipeline, leaf-first."""
    CONFIGURATION = "configuration"
    CAPEX = "capex"
    REVENUE = "revenue"
    COSTS = "costs"
    WORKING_CAPITAL = "working_capital"
    DEBT = "debt"
    CASH_FLOW = "cash_flow"
    VALUATION = "valuation"
    AGGREGATION = "aggregation"


class MarketScope(Enum):
    """Built-in market distribution scopes."""
    TWO_MARKET = "two_market"    # Chile + Mexico
    FOUR_MARKET = "four_market"  # Chile + Mexico + Brazil + Canada


# =============================================================================
# PARAMETER FIELD MAPPINGS
# =============================================================================

# Financial parameters: collaborator field names -> parameter attributes
FINANCIAL_PARAM_FIELD_MAP: Dict[str, str] = {
    # Financing mix
    "debtRatio": "debt_ratio",
    "equityRatio": "equity_ratio",
    "interestRate": "interest_rate",
    "debtTermYears": "debt_term_years",

    # Discount rates
    "wacc": "wacc",
    "equityCost": "equity_cost",
    "terminalGrowth": "terminal_growth",

    # Cost structure
    "cogsPct": "cogs_pct",
    "operatingExpensesPct": "operating_expenses_pct",
    "taxRate": "tax_rate",
    "depreciationYears": "depreciation_years",

    # Working capital days
    "payableDays": "payable_days",
    "serviceDays": "service_days",
}

# Business parameters: collaborator field names -> parameter attributes
BUSINESS_PARAM_FIELD_MAP: Dict[str, str] = {
    # Traffic
    "initialTraffic": "initial_traffic",
    "trafficGrowth": "traffic_growth",
    "trafficGrowthOffset": "traffic_growth_offset",
    "firstYearMonths": "first_year_months",

    # Conversion
    "initialConversion": "initial_conversion",
    "conversionGrowthRate": "conversion_growth_rate",
    "conversionCap": "conversion_cap",

    # Ticket
    "avgTicket": "avg_ticket",
    "ticketGrowth": "ticket_growth",
    "ticketGrowthDelayYears": "ticket_growth_delay_years",
    "processingFeeRate": "processing_fee_rate",

    # Operating costs
    "salesSalary": "sales_salary",
    "marketingPct": "marketing_pct",
    "inflation": "inflation",
}

# Inventory parameters: collaborator field names -> parameter attributes
INVENTORY_PARAM_FIELD_MAP: Dict[str, str] = {
    "bottlesPerContainer": "units_per_container",
    "containerCost": "container_cost",
    "initialStockMonths": "initial_stock_months",
}


def _map_fields(
    values: Mapping[str, Any],
    field_map: Dict[str, str],
    allowed: List[str],
) -> Dict[str, Any]:
    """Translate collaborator keys into dataclass keyword arguments."""
    kwargs: Dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        target = field_map.get(key, key)
        if target in allowed:
            kwargs[target] = value
    return kwargs


# =============================================================================
# PARAMETER SETS
# =============================================================================

@dataclass(frozen=True)
class FinancialParams:
    """Financing, discounting and cost-structure assumptions."""

    # Financing mix (debt_ratio + equity_ratio == 1 is the caller's contract)
    debt_ratio: float = 0.5
    equity_ratio: float = 0.5
    interest_rate: float = 0.06   # 6% annual
    debt_term_years: float = 5

    # Discount rates
    wacc: float = 0.08            # Economic (unlevered) discount rate
    equity_cost: float = 0.12     # Ke for the equity series
    terminal_growth: float = 0.02  # Gordon growth for residual value

    # Cost structure
    cogs_pct: float = 0.54
    operating_expenses_pct: float = 0.10
    tax_rate: float = 0.27
    depreciation_years: int = 5

    # Working capital days (payables on COGS and on operating expenses)
    payable_days: int = 45
    service_days: int = 30

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "FinancialParams":
        """Build from a collaborator mapping using ``FINANCIAL_PARAM_FIELD_MAP``."""
        allowed = [f.name for f in fields(cls)]
        kwargs = _map_fields(values, FINANCIAL_PARAM_FIELD_MAP, allowed)
        if "debt_ratio" in kwargs and "equity_ratio" not in kwargs:
            kwargs["equity_ratio"] = 1 - kwargs["debt_ratio"]
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class BusinessParams:
    """
    Commercial drivers of the revenue and cost projections.

    Traffic is expressed per month. ``first_year_months`` below 12 models a
    partial launch year: the first year uses un-grown base traffic for that
    many months and only ``launch_markets`` sell. ``traffic_growth_offset``
    shifts the traffic growth exponent for every other year.
    """

    # Traffic
    initial_traffic: float = 9100.0
    traffic_growth: float = 0.60
    traffic_growth_offset: int = 0
    first_year_months: int = 6
    launch_markets: Tuple[str, ...] = ("chile",)

    # Conversion
    initial_conversion: float = 0.02
    conversion_growth_rate: float = 0.20
    conversion_cap: float = 0.08

    # Ticket
    avg_ticket: float = 50.0
    ticket_growth: float = 0.08          # Linear, not compounding
    ticket_growth_delay_years: int = 1
    processing_fee_rate: float = 0.0

    # Operating costs
    sales_salary: float = 50000.0
    marketing_pct: float = 0.10
    inflation: float = 0.02

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "BusinessParams":
        """Build from a collaborator mapping using ``BUSINESS_PARAM_FIELD_MAP``."""
        allowed = [f.name for f in fields(cls)]
        kwargs = _map_fields(values, BUSINESS_PARAM_FIELD_MAP, allowed)
        if "launch_markets" in kwargs:
            kwargs["launch_markets"] = tuple(kwargs["launch_markets"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["launch_markets"] = list(self.launch_markets)
        return data


@dataclass(frozen=True)
class InventoryParams:
    """Opening inventory assumptions (stock measured in thousands of units)."""

    units_per_container: int = 1200
    container_cost: float = 8500.0
    initial_stock_months: float = 3.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "InventoryParams":
        """Build from a collaborator mapping using ``INVENTORY_PARAM_FIELD_MAP``."""
        allowed = [f.name for f in fields(cls)]
        return cls(**_map_fields(values, INVENTORY_PARAM_FIELD_MAP, allowed))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =============================================================================
# MARKET DISTRIBUTION
# =============================================================================

@dataclass(frozen=True)
class MarketDefinition:
    """A market's share of traffic, local price premium and working-capital days."""
    key: str
    label: str
    weight: float
    premium: float = 1.0
    currency: str = "USD"
    payment_days: int = 0     # Customer collection
    inventory_days: int = 30  # Stock held against COGS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "weight": self.weight,
            "premium": self.premium,
            "currency": self.currency,
            "payment_days": self.payment_days,
            "inventory_days": self.inventory_days,
        }


TWO_MARKET_DISTRIBUTION: Dict[str, MarketDefinition] = {
    "chile": MarketDefinition("chile", "Chile", weight=0.65, premium=1.0, currency="CLP",
                              inventory_days=30),
    "mexico": MarketDefinition("mexico", "Mexico", weight=0.35, premium=1.1, currency="MXN",
                               inventory_days=45),
}

FOUR_MARKET_DISTRIBUTION: Dict[str, MarketDefinition] = {
    "chile": MarketDefinition("chile", "Chile", weight=0.40, premium=1.0, currency="CLP",
                              inventory_days=30),
    "mexico": MarketDefinition("mexico", "Mexico", weight=0.25, premium=1.1, currency="MXN",
                               inventory_days=45),
    "brazil": MarketDefinition("brazil", "Brazil", weight=0.20, premium=0.95, currency="BRL",
                               inventory_days=45),
    "canada": MarketDefinition("canada", "Canada", weight=0.15, premium=1.3, currency="CAD",
                               inventory_days=30),
}

MARKET_DISTRIBUTIONS: Dict[MarketScope, Dict[str, MarketDefinition]] = {
    MarketScope.TWO_MARKET: TWO_MARKET_DISTRIBUTION,
    MarketScope.FOUR_MARKET: FOUR_MARKET_DISTRIBUTION,
}


def markets_from_mapping(table: Mapping[str, Mapping[str, Any]]) -> Dict[str, MarketDefinition]:
    """Build a market table from ``{key: {weight, premium, label, currency, paymentDays, inventoryDays}}``."""
    markets: Dict[str, MarketDefinition] = {}
    for key, entry in table.items():
        markets[key] = MarketDefinition(
            key=key,
            label=str(entry.get("label", key.title())),
            weight=float(entry["weight"]),
            premium=float(entry.get("premium", 1.0)),
            currency=str(entry.get("currency", "USD")),
            payment_days=int(entry.get("paymentDays", entry.get("payment_days", 0))),
            inventory_days=int(entry.get("inventoryDays", entry.get("inventory_days", 30))),
        )
    return markets


# =============================================================================
# HORIZON & CAPEX CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class HorizonConfig:
    """Projection horizon; years before ``operating_start_year`` are pre-operating."""

    start_year: int = 2025
    end_year: int = 2030
    operating_start_year: int = 2026

    @property
    def years(self) -> List[int]:
        return list(range(self.start_year, self.end_year + 1))

    @property
    def pre_operating_years(self) -> List[int]:
        return [y for y in self.years if y < self.operating_start_year]

    @property
    def operating_years(self) -> List[int]:
        return [y for y in self.years if y >= self.operating_start_year]


@dataclass(frozen=True)
class CapexConfig:
    """Base CAPEX and its progressive distribution across the horizon."""

    base_capex: float = 800000.0
    base_distribution: Dict[int, float] = field(default_factory=lambda: {
        2025: 0.45,
        2026: 0.30,
        2027: 0.20,
        2028: 0.05,
    })
    # Opening inventory is bought before launch
    inventory_distribution: Dict[int, float] = field(default_factory=lambda: {
        2025: 1.0,
    })

    @property
    def years(self) -> List[int]:
        return sorted(self.base_distribution)


# Itemized progressive investment plan (total 850,000)
DEFAULT_CAPEX_PLAN: Dict[int, Dict[str, float]] = {
    2025: {
        "Technology platform": 120000.0,
        "Legal & incorporation": 45000.0,
        "Initial personnel": 85000.0,
        "Launch marketing": 70000.0,
        "Operations setup": 42500.0,
        "Contingency": 20000.0,
    },
    2026: {
        "Technology scaling": 80000.0,
        "Mexico expansion": 65000.0,
        "Personnel": 55000.0,
        "Marketing": 40000.0,
        "Contingency": 15000.0,
    },
    2027: {
        "Technology upgrades": 60000.0,
        "Logistics infrastructure": 50000.0,
        "Marketing": 40000.0,
        "Contingency": 20000.0,
    },
    2028: {
        "Technology maintenance": 25000.0,
        "Operational optimization": 12500.0,
        "Contingency": 5000.0,
    },
}


# =============================================================================
# GLOBAL CONFIGURATION INSTANCES
# =============================================================================

HORIZON_CONFIG = HorizonConfig()
CAPEX_CONFIG = CapexConfig()
DEFAULT_FINANCIAL_PARAMS = FinancialParams()
DEFAULT_BUSINESS_PARAMS = BusinessParams()
DEFAULT_INVENTORY_PARAMS = InventoryParams()


# =============================================================================
# SCENARIO PARAMETER BUNDLE
# =============================================================================

@dataclass(frozen=True)
class ScenarioParameters:
    """Everything one recalculation pass needs, immutable for its duration."""

    financial: FinancialParams = DEFAULT_FINANCIAL_PARAMS
    business: BusinessParams = DEFAULT_BUSINESS_PARAMS
    inventory: InventoryParams = DEFAULT_INVENTORY_PARAMS
    markets: Dict[str, MarketDefinition] = field(
        default_factory=lambda: dict(TWO_MARKET_DISTRIBUTION)
    )
    active_markets: Optional[Tuple[str, ...]] = None
    horizon: HorizonConfig = HORIZON_CONFIG
    capex: CapexConfig = CAPEX_CONFIG
    capex_plan: Optional[Dict[int, Dict[str, float]]] = None
    name: str = "Base"

    def with_overrides(self, **changes: Any) -> "ScenarioParameters":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "financial": self.financial.to_dict(),
            "business": self.business.to_dict(),
            "inventory": self.inventory.to_dict(),
            "markets": {k: m.to_dict() for k, m in self.markets.items()},
            "active_markets": list(self.active_markets) if self.active_markets else None,
            "horizon": {
                "start_year": self.horizon.start_year,
                "end_year": self.horizon.end_year,
                "operating_start_year": self.horizon.operating_start_year,
            },
            "capex_plan": "itemized" if self.capex_plan else "progressive",
        }


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_financial_params(overrides: Optional[Mapping[str, Any]] = None) -> FinancialParams:
    """Default financial parameters, optionally overridden by collaborator values."""
    if not overrides:
        return DEFAULT_FINANCIAL_PARAMS
    return FinancialParams.from_mapping(overrides)


def get_business_params(overrides: Optional[Mapping[str, Any]] = None) -> BusinessParams:
    """Default business parameters, optionally overridden by collaborator values."""
    if not overrides:
        return DEFAULT_BUSINESS_PARAMS
    return BusinessParams.from_mapping(overrides)


def get_market_distribution(scope: MarketScope = MarketScope.TWO_MARKET) -> Dict[str, MarketDefinition]:
    """Copy of a built-in market table."""
    return dict(MARKET_DISTRIBUTIONS[scope])


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "__version__",

    # Paths & logging
    "PROJECT_ROOT",
    "OUTPUT_DIR",
    "LOGGER",
    "setup_logger",

    # Enumerations
    "PipelineStage",
    "MarketScope",

    # Field maps
    "FINANCIAL_PARAM_FIELD_MAP",
    "BUSINESS_PARAM_FIELD_MAP",
    "INVENTORY_PARAM_FIELD_MAP",

    # Parameter sets
    "FinancialParams",
    "BusinessParams",
    "InventoryParams",
    "MarketDefinition",
    "HorizonConfig",
    "CapexConfig",
    "ScenarioParameters",

    # Tables and instances
    "TWO_MARKET_DISTRIBUTION",
    "FOUR_MARKET_DISTRIBUTION",
    "MARKET_DISTRIBUTIONS",
    "DEFAULT_CAPEX_PLAN",
    "HORIZON_CONFIG",
    "CAPEX_CONFIG",
    "DEFAULT_FINANCIAL_PARAMS",
    "DEFAULT_BUSINESS_PARAMS",
    "DEFAULT_INVENTORY_PARAMS",

    # Helpers
    "get_financial_params",
    "get_business_params",
    "get_market_distribution",
    "markets_from_mapping",
]
