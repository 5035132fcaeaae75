"""
Cash Flow Derivation Module - Economic (Unlevered) and Financial (Equity) Series
Projection & Valuation Engine

Turns yearly net revenue and the CAPEX schedule into free cash flow, then
layers the debt program on top to obtain free cash flow to equity.

Methodology:
    COGS         = Revenue x COGS %           (or detailed cost model)
    Gross Profit = Revenue - COGS
    EBITDA       = Gross Profit - Revenue x OpEx %   (or detailed cost model)
    Depreciation = Depreciable Base / Useful Life   (operating years only)
    EBIT         = EBITDA - Depreciation
    Taxes        = max(0, EBIT x Tax Rate)           (no loss carry-forward)
    NOPAT        = EBIT - Taxes
    FCF          = NOPAT + Depreciation - CAPEX

    FCFE         = FCF + Debt Proceeds - Interest + Interest x Tax Rate - Principal

    The equity contribution (CAPEX x equity ratio) is reported next to FCFE;
    it is already implied by FCF - Debt Proceeds and is not deducted twice.

Inputs: net revenue by year, CapexSchedule, FinancialParams, optional
        CostSchedule and DebtSchedule
Outputs: EconomicCashFlow and FinancialCashFlow

Version: 1.1.0
"""

from __future__ import annotations

import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Any

from .config import (
    LOGGER,
    DEFAULT_FINANCIAL_PARAMS,
    HORIZON_CONFIG,
    FinancialParams,
    HorizonConfig,
)
from .capex_allocator import CapexSchedule
from .cost_model import CostSchedule
from .debt_schedule import DebtSchedule


__version__ = "1.1.0"


# =============================================================================
# DATA CONTAINERS - ECONOMIC SERIES
# =============================================================================

@dataclass(frozen=True)
class YearlyCashFlowRecord:
    """Unlevered free cash flow build-up for one year."""

    year: int
    revenue: float
    cogs: float
    gross_profit: float
    operating_expenses: float
    ebitda: float
    depreciation: float
    ebit: float
    taxes: float
    nopat: float
    capex: float
    fcf: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "revenue": self.revenue,
            "cogs": self.cogs,
            "gross_profit": self.gross_profit,
            "operating_expenses": self.operating_expenses,
            "ebitda": self.ebitda,
            "depreciation": self.depreciation,
            "ebit": self.ebit,
            "taxes": self.taxes,
            "nopat": self.nopat,
            "capex": self.capex,
            "fcf": self.fcf,
        }


@dataclass(frozen=True)
class EconomicCashFlow:
    """Economic FCF series split into pre-operating and operating years."""

    records: List[YearlyCashFlowRecord] = field(default_factory=list)
    operating_start_year: int = HORIZON_CONFIG.operating_start_year

    @property
    def years(self) -> List[int]:
        return [r.year for r in self.records]

    @property
    def operating_records(self) -> List[YearlyCashFlowRecord]:
        return [r for r in self.records if r.year >= self.operating_start_year]

    @property
    def operating_years(self) -> List[int]:
        return [r.year for r in self.operating_records]

    @property
    def operating_fcf(self) -> List[float]:
        return [r.fcf for r in self.operating_records]

    @property
    def pre_operating_capex(self) -> float:
        """Total CAPEX spent before the first operating year."""
        return float(sum(r.capex for r in self.records if r.year < self.operating_start_year))

    def for_year(self, year: int) -> Optional[YearlyCashFlowRecord]:
        for record in self.records:
            if record.year == year:
                return record
        return None

    def fcf_by_year(self) -> Dict[int, float]:
        return {r.year: r.fcf for r in self.records}

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame([r.to_dict() for r in self.records])
        if not df.empty:
            df = df.set_index("year")
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operating_start_year": self.operating_start_year,
            "records": [r.to_dict() for r in self.records],
            "pre_operating_capex": self.pre_operating_capex,
        }


# =============================================================================
# DATA CONTAINERS - FINANCIAL SERIES
# =============================================================================

@dataclass(frozen=True)
class FinancialCashFlowRecord:
    """Free cash flow to equity for one year."""

    year: int
    fcf: float
    debt_proceeds: float
    interest: float
    tax_shield: float
    principal: float
    equity_contribution: float
    fcfe: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "fcf": self.fcf,
            "debt_proceeds": self.debt_proceeds,
            "interest": self.interest,
            "tax_shield": self.tax_shield,
            "principal": self.principal,
            "equity_contribution": self.equity_contribution,
            "fcfe": self.fcfe,
        }


@dataclass(frozen=True)
class FinancialCashFlow:
    """Equity (levered) series split into pre-operating and operating years."""

    records: List[FinancialCashFlowRecord] = field(default_factory=list)
    operating_start_year: int = HORIZON_CONFIG.operating_start_year

    @property
    def operating_records(self) -> List[FinancialCashFlowRecord]:
        return [r for r in self.records if r.year >= self.operating_start_year]

    @property
    def operating_fcfe(self) -> List[float]:
        return [r.fcfe for r in self.operating_records]

    @property
    def pre_operating_equity(self) -> float:
        """Equity contributed before the first operating year."""
        return float(sum(
            r.equity_contribution for r in self.records if r.year < self.operating_start_year
        ))

    def fcfe_by_year(self) -> Dict[int, float]:
        return {r.year: r.fcfe for r in self.records}

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame([r.to_dict() for r in self.records])
        if not df.empty:
            df = df.set_index("year")
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operating_start_year": self.operating_start_year,
            "records": [r.to_dict() for r in self.records],
            "pre_operating_equity": self.pre_operating_equity,
        }


# =============================================================================
# CASH FLOW DERIVER
# =============================================================================

class CashFlowDeriver:
    """Derives the economic and financial cash flow series."""

    def __init__(
        self,
        financial_params: FinancialParams = DEFAULT_FINANCIAL_PARAMS,
        horizon: HorizonConfig = HORIZON_CONFIG,
    ):
        self.params = financial_params
        self.horizon = horizon
        self.logger = LOGGER

    def depreciation_for(self, year: int, depreciable_base: float) -> float:
        """Straight-line charge; zero before operations and after the useful life."""
        life = self.params.depreciation_years
        if life <= 0 or depreciable_base <= 0:
            return 0.0
        operating_index = year - self.horizon.operating_start_year
        if operating_index < 0 or operating_index >= life:
            return 0.0
        return depreciable_base / life

    def economic(
        self,
        revenue_by_year: Mapping[int, float],
        capex: CapexSchedule,
        costs: Optional[CostSchedule] = None,
        depreciable_base: Optional[float] = None,
    ) -> EconomicCashFlow:
        """
        Derive the unlevered FCF series.

        Args:
            revenue_by_year: Aggregate net revenue per year
            capex: CapexSchedule supplying each year's outflow
            costs: Optional detailed costs; ratios are used when absent
            depreciable_base: Defaults to total CAPEX

        Returns:
            EconomicCashFlow over the horizon years
        """
        base = capex.total_capex if depreciable_base is None else depreciable_base
        tax_rate = self.params.tax_rate
        records = []

        for year in self.horizon.years:
            revenue = float(revenue_by_year.get(year, 0.0))
            if costs is not None and costs.has_year(year):
                cost_record = costs.for_year(year)
                cogs = cost_record.cogs
                operating_expenses = cost_record.operating_expenses_total + cost_record.fixed_costs_total
            else:
                cogs = revenue * self.params.cogs_pct
                operating_expenses = revenue * self.params.operating_expenses_pct

            gross_profit = revenue - cogs
            ebitda = gross_profit - operating_expenses
            depreciation = self.depreciation_for(year, base)
            ebit = ebitda - depreciation
            taxes = max(0.0, ebit * tax_rate)
            nopat = ebit - taxes
            year_capex = capex.capex_for(year)

            records.append(YearlyCashFlowRecord(
                year=year,
                revenue=revenue,
                cogs=cogs,
                gross_profit=gross_profit,
                operating_expenses=operating_expenses,
                ebitda=ebitda,
                depreciation=depreciation,
                ebit=ebit,
                taxes=taxes,
                nopat=nopat,
                capex=year_capex,
                fcf=nopat + depreciation - year_capex,
            ))

        series = EconomicCashFlow(
            records=records,
            operating_start_year=self.horizon.operating_start_year,
        )
        self.logger.info(
            f"  Economic FCF derived: pre-operating CAPEX ${series.pre_operating_capex:,.0f}, "
            f"operating FCF total ${sum(series.operating_fcf):,.0f}"
        )
        return series

    def financial(
        self,
        economic: EconomicCashFlow,
        capex: CapexSchedule,
        debt: DebtSchedule,
    ) -> FinancialCashFlow:
        """
        Derive free cash flow to equity from the economic series.

        Args:
            economic: EconomicCashFlow from ``economic()``
            capex: CapexSchedule with the financing split
            debt: DebtSchedule with yearly interest and principal

        Returns:
            FinancialCashFlow over the same years
        """
        tax_rate = self.params.tax_rate
        records = []

        for record in economic.records:
            row = debt.for_year(record.year)
            financing = capex.financing_for(record.year)
            tax_shield = row.interest * tax_rate
            records.append(FinancialCashFlowRecord(
                year=record.year,
                fcf=record.fcf,
                debt_proceeds=row.proceeds,
                interest=row.interest,
                tax_shield=tax_shield,
                principal=row.principal,
                equity_contribution=financing.equity if financing else 0.0,
                fcfe=record.fcf + row.proceeds - row.interest + tax_shield - row.principal,
            ))

        series = FinancialCashFlow(
            records=records,
            operating_start_year=economic.operating_start_year,
        )
        self.logger.info(
            f"  Financial FCFE derived: pre-operating equity ${series.pre_operating_equity:,.0f}"
        )
        return series


__all__ = [
    "__version__",
    "YearlyCashFlowRecord",
    "EconomicCashFlow",
    "FinancialCashFlowRecord",
    "FinancialCashFlow",
    "CashFlowDeriver",
]
