"""
Cost Model Module - Detailed Operating & Structural Cost Projection
Projection & Valuation Engine

Breaks each year's costs into cost of goods sold, variable operating expenses
(marketing, logistics, technology, administration), the sales salary and the
fixed structure (personnel, infrastructure, compliance, insurance).

Methodology:
    COGS              = Net Revenue x COGS %
    Variable OpEx     = Net Revenue x (Marketing % + 8% + 5% + 8%)
    Time-based costs  = Annual Amount x (1 + Inflation)^(year - start) x Months / 12

    Net revenue of a partial launch year already covers only its operating
    months, so only the time-based lines are prorated.

Inputs: RevenueProjection, FinancialParams, BusinessParams
Outputs: CostSchedule (optional detailed source for cash flow derivation)

Version: 1.0.2
"""

from __future__ import annotations

import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Any

from .config import (
    LOGGER,
    DEFAULT_BUSINESS_PARAMS,
    DEFAULT_FINANCIAL_PARAMS,
    BusinessParams,
    FinancialParams,
)
from .revenue_projector import RevenueProjection


__version__ = "1.0.2"


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

class CostConfig:
    """Cost ratios and fixed-cost base amounts."""

    # Variable operating expenses (share of net revenue)
    LOGISTICS_PCT: float = 0.08
    TECHNOLOGY_PCT: float = 0.05
    ADMINISTRATIVE_PCT: float = 0.08

    # Fixed structure (annual, first-year prices)
    FIXED_COSTS: Dict[str, float] = {
        "personnel": 80000.0,
        "infrastructure": 45000.0,
        "compliance": 25000.0,
        "insurance": 18000.0,
    }


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class YearlyCostRecord:
    """All cost lines of one year."""

    year: int
    revenue: float
    cogs: float
    operating_expenses: Dict[str, float] = field(default_factory=dict)
    fixed_costs: Dict[str, float] = field(default_factory=dict)

    @property
    def operating_expenses_total(self) -> float:
        return float(sum(self.operating_expenses.values()))

    @property
    def fixed_costs_total(self) -> float:
        return float(sum(self.fixed_costs.values()))

    @property
    def total_costs(self) -> float:
        return self.cogs + self.operating_expenses_total + self.fixed_costs_total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "revenue": self.revenue,
            "cogs": self.cogs,
            "operating_expenses": dict(self.operating_expenses),
            "operating_expenses_total": self.operating_expenses_total,
            "fixed_costs": dict(self.fixed_costs),
            "fixed_costs_total": self.fixed_costs_total,
            "total_costs": self.total_costs,
        }


@dataclass(frozen=True)
class CostSchedule:
    """Cost records keyed by year."""

    records: List[YearlyCostRecord] = field(default_factory=list)

    def for_year(self, year: int) -> YearlyCostRecord:
        for record in self.records:
            if record.year == year:
                return record
        raise KeyError(f"No cost record for {year}")

    def has_year(self, year: int) -> bool:
        return any(r.year == year for r in self.records)

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for r in self.records:
            row: Dict[str, Any] = {"year": r.year, "revenue": r.revenue, "cogs": r.cogs}
            row.update(r.operating_expenses)
            row.update(r.fixed_costs)
            row["total_costs"] = r.total_costs
            rows.append(row)
        df = pd.DataFrame(rows)
        if not df.empty:
            df = df.set_index("year")
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {"records": [r.to_dict() for r in self.records]}


# =============================================================================
# COST PROJECTOR
# =============================================================================

class CostProjector:
    """Projects detailed costs from the revenue projection."""

    def __init__(
        self,
        financial_params: FinancialParams = DEFAULT_FINANCIAL_PARAMS,
        business_params: BusinessParams = DEFAULT_BUSINESS_PARAMS,
    ):
        self.financial_params = financial_params
        self.business_params = business_params
        self.logger = LOGGER

    def project(self, revenue: RevenueProjection) -> CostSchedule:
        """
        Project costs for every year of the revenue projection.

        Args:
            revenue: RevenueProjection from the revenue stage

        Returns:
            CostSchedule ordered by year
        """
        if not revenue.years:
            return CostSchedule()

        start_year = revenue.years[0]
        records = []
        for year in revenue.years:
            net_revenue = revenue.total_net_revenue(year)
            year_records = revenue.records_for(year)
            months = year_records[0].months if year_records else 12
            factor = months / 12
            escalation = (1 + self.business_params.inflation) ** (year - start_year)

            operating = {
                "sales_salary": self.business_params.sales_salary * escalation * factor,
                "marketing": net_revenue * self.business_params.marketing_pct,
                "logistics": net_revenue * CostConfig.LOGISTICS_PCT,
                "technology": net_revenue * CostConfig.TECHNOLOGY_PCT,
                "administrative": net_revenue * CostConfig.ADMINISTRATIVE_PCT,
            }
            fixed = {
                name: amount * escalation * factor
                for name, amount in CostConfig.FIXED_COSTS.items()
            }
            records.append(YearlyCostRecord(
                year=year,
                revenue=net_revenue,
                cogs=net_revenue * self.financial_params.cogs_pct,
                operating_expenses=operating,
                fixed_costs=fixed,
            ))

        self.logger.info(f"  Costs projected for {len(records)} years")
        return CostSchedule(records=records)


__all__ = [
    "__version__",
    "CostConfig",
    "YearlyCostRecord",
    "CostSchedule",
    "CostProjector",
]
