"""
Working Capital Module - Receivables, Inventory and Payables by Market
Projection & Valuation Engine

Estimates the operating working capital tied up each year and its change,
market by market, from revenue, COGS and the day counts.

Methodology (flows are the year's own figures, so a partial launch year
carries proportionally smaller balances):
    Receivables = Payment Days / 365 x Net Revenue
    Inventory   = Inventory Days / 365 x COGS
    Payables    = Payable Days / 365 x COGS + Service Days / 365 x OpEx
    Net WC      = Receivables + Inventory - Payables
    Delta WC    = Net WC(year) - Net WC(year - 1)   (first year against zero)

The schedule is reported next to the economic series; FCF itself stays
NOPAT + D&A - CAPEX.

Inputs: RevenueProjection, FinancialParams, market table, optional CostSchedule
Outputs: WorkingCapitalSchedule

Version: 1.0.0
"""

from __future__ import annotations

import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Any

from .config import (
    LOGGER,
    DEFAULT_FINANCIAL_PARAMS,
    TWO_MARKET_DISTRIBUTION,
    FinancialParams,
    MarketDefinition,
)
from .cost_model import CostSchedule
from .revenue_projector import RevenueProjection


__version__ = "1.0.0"


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

class WorkingCapitalConfig:
    """Day-count convention for balance estimates."""

    DAYS_PER_YEAR: int = 365


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class MarketWorkingCapital:
    """Year-end balances of one market."""

    year: int
    market: str
    receivables: float
    inventory: float
    payables: float

    @property
    def net(self) -> float:
        return self.receivables + self.inventory - self.payables

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "market": self.market,
            "receivables": self.receivables,
            "inventory": self.inventory,
            "payables": self.payables,
            "net": self.net,
        }


@dataclass(frozen=True)
class YearlyWorkingCapitalRecord:
    """Consolidated balances of one year and the change against the prior year."""

    year: int
    markets: List[MarketWorkingCapital] = field(default_factory=list)
    delta: float = 0.0

    @property
    def receivables(self) -> float:
        return float(sum(m.receivables for m in self.markets))

    @property
    def inventory(self) -> float:
        return float(sum(m.inventory for m in self.markets))

    @property
    def payables(self) -> float:
        return float(sum(m.payables for m in self.markets))

    @property
    def net_working_capital(self) -> float:
        return self.receivables + self.inventory - self.payables

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "receivables": self.receivables,
            "inventory": self.inventory,
            "payables": self.payables,
            "net_working_capital": self.net_working_capital,
            "delta": self.delta,
            "markets": [m.to_dict() for m in self.markets],
        }


@dataclass(frozen=True)
class WorkingCapitalSchedule:
    """Working capital records ordered by year."""

    records: List[YearlyWorkingCapitalRecord] = field(default_factory=list)

    @property
    def years(self) -> List[int]:
        return [r.year for r in self.records]

    def for_year(self, year: int) -> Optional[YearlyWorkingCapitalRecord]:
        for record in self.records:
            if record.year == year:
                return record
        return None

    def delta_by_year(self) -> Dict[int, float]:
        return {r.year: r.delta for r in self.records}

    def to_dataframe(self) -> pd.DataFrame:
        rows = [
            {
                "year": r.year,
                "receivables": r.receivables,
                "inventory": r.inventory,
                "payables": r.payables,
                "net_working_capital": r.net_working_capital,
                "delta": r.delta,
            }
            for r in self.records
        ]
        df = pd.DataFrame(rows)
        if not df.empty:
            df = df.set_index("year")
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [r.to_dict() for r in self.records],
            "delta_by_year": self.delta_by_year(),
        }


# =============================================================================
# WORKING CAPITAL PROJECTOR
# =============================================================================

class WorkingCapitalProjector:
    """Projects year-end working capital balances per market."""

    def __init__(
        self,
        financial_params: FinancialParams = DEFAULT_FINANCIAL_PARAMS,
        markets: Mapping[str, MarketDefinition] = TWO_MARKET_DISTRIBUTION,
    ):
        self.params = financial_params
        self.markets = markets
        self.logger = LOGGER

    def _operating_expenses(
        self,
        year: int,
        net_revenue: float,
        year_revenue: float,
        costs: Optional[CostSchedule],
    ) -> float:
        """Market share of the year's operating expenses."""
        if costs is not None and costs.has_year(year):
            record = costs.for_year(year)
            share = net_revenue / year_revenue if year_revenue > 0 else 0.0
            return (record.operating_expenses_total + record.fixed_costs_total) * share
        return net_revenue * self.params.operating_expenses_pct

    def market_balances(
        self,
        year: int,
        market: str,
        net_revenue: float,
        operating_expenses: float,
    ) -> MarketWorkingCapital:
        days = WorkingCapitalConfig.DAYS_PER_YEAR
        definition = self.markets[market]
        cogs = net_revenue * self.params.cogs_pct
        return MarketWorkingCapital(
            year=year,
            market=market,
            receivables=definition.payment_days / days * net_revenue,
            inventory=definition.inventory_days / days * cogs,
            payables=(
                self.params.payable_days / days * cogs
                + self.params.service_days / days * operating_expenses
            ),
        )

    def project(
        self,
        revenue: RevenueProjection,
        costs: Optional[CostSchedule] = None,
    ) -> WorkingCapitalSchedule:
        """
        Project balances for every year of the revenue projection.

        Args:
            revenue: RevenueProjection from the revenue stage
            costs: Optional detailed costs; the OpEx ratio is used when absent

        Returns:
            WorkingCapitalSchedule ordered by year

        Raises:
            KeyError: when a revenue market is missing from the market table
        """
        records = []
        previous_net = 0.0
        for year in revenue.years:
            year_revenue = revenue.total_net_revenue(year)
            balances = [
                self.market_balances(
                    year,
                    r.market,
                    r.net_revenue,
                    self._operating_expenses(year, r.net_revenue, year_revenue, costs),
                )
                for r in revenue.records_for(year)
            ]
            net = float(sum(b.net for b in balances))
            records.append(YearlyWorkingCapitalRecord(
                year=year,
                markets=balances,
                delta=net - previous_net,
            ))
            previous_net = net

        schedule = WorkingCapitalSchedule(records=records)
        if records:
            self.logger.info(
                f"  Working capital projected: {records[-1].year} net "
                f"${records[-1].net_working_capital:,.0f}"
            )
        return schedule


__all__ = [
    "__version__",
    "WorkingCapitalConfig",
    "MarketWorkingCapital",
    "YearlyWorkingCapitalRecord",
    "WorkingCapitalSchedule",
    "WorkingCapitalProjector",
]
