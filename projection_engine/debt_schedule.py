"""
Debt Schedule Module - French Amortization of CAPEX Debt Tranches
Projection & Valuation Engine

Each year's debt-financed CAPEX is drawn as a tranche at the start of that
year and repaid with constant monthly installments (French system).

Methodology:
    Monthly Rate = Annual Rate / 12
    Payments     = Term Years x 12
    Installment  = P x r(1+r)^n / ((1+r)^n - 1)     (P / n when r = 0)
    Interest(m)  = Balance(m-1) x r
    Principal(m) = min(Installment - Interest(m), Balance(m-1))

Annual rows aggregate every active tranche.

Inputs: CapexSchedule (financing records), FinancialParams
Outputs: DebtSchedule with annual rows and summary metrics

Version: 1.0.1
"""

from __future__ import annotations

import math

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Any

from .config import (
    LOGGER,
    DEFAULT_FINANCIAL_PARAMS,
    FinancialParams,
)
from .capex_allocator import CapexSchedule


__version__ = "1.0.1"


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class DebtScheduleRow:
    """Aggregated debt service for one calendar year."""

    year: int
    beginning_balance: float = 0.0
    proceeds: float = 0.0
    interest: float = 0.0
    principal: float = 0.0
    ending_balance: float = 0.0

    @property
    def payment(self) -> float:
        return self.interest + self.principal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "beginning_balance": self.beginning_balance,
            "proceeds": self.proceeds,
            "interest": self.interest,
            "principal": self.principal,
            "payment": self.payment,
            "ending_balance": self.ending_balance,
        }


@dataclass(frozen=True)
class DebtMetrics:
    """Summary of the whole debt program."""

    total_debt: float = 0.0
    total_interest_paid: float = 0.0
    total_payments: float = 0.0
    average_balance: float = 0.0
    effective_rate: float = 0.0  # Interest paid / debt, in percent

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_debt": self.total_debt,
            "total_interest_paid": self.total_interest_paid,
            "total_payments": self.total_payments,
            "average_balance": self.average_balance,
            "effective_rate": self.effective_rate,
        }


@dataclass(frozen=True)
class DebtSchedule:
    """Annual debt rows from the first draw until the last tranche is repaid."""

    rows: List[DebtScheduleRow] = field(default_factory=list)
    metrics: DebtMetrics = field(default_factory=DebtMetrics)
    interest_rate: float = 0.0
    term_years: float = 0

    def for_year(self, year: int) -> DebtScheduleRow:
        """Row of a year; an all-zero row outside the schedule."""
        for row in self.rows:
            if row.year == year:
                return row
        return DebtScheduleRow(year=year)

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame([r.to_dict() for r in self.rows])
        if not df.empty:
            df = df.set_index("year")
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interest_rate": self.interest_rate,
            "term_years": self.term_years,
            "rows": [r.to_dict() for r in self.rows],
            "metrics": self.metrics.to_dict(),
        }


# =============================================================================
# DEBT SCHEDULE BUILDER
# =============================================================================

class DebtScheduleBuilder:
    """Builds the amortization schedule of the CAPEX debt tranches."""

    def __init__(self, financial_params: FinancialParams = DEFAULT_FINANCIAL_PARAMS):
        self.params = financial_params
        self.logger = LOGGER

    @staticmethod
    def monthly_installment(principal: float, monthly_rate: float, payments: int) -> float:
        """Constant installment of a French amortization."""
        if principal <= 0 or payments <= 0:
            return 0.0
        if monthly_rate == 0:
            return principal / payments
        growth = (1 + monthly_rate) ** payments
        return principal * monthly_rate * growth / (growth - 1)

    def build(self, capex: CapexSchedule) -> DebtSchedule:
        """
        Amortize every year's debt financing.

        Args:
            capex: CapexSchedule with financing records

        Returns:
            DebtSchedule with annual rows and metrics
        """
        tranches = [(f.year, f.debt) for f in capex.financing if f.debt > 0]
        if not tranches:
            return DebtSchedule(interest_rate=self.params.interest_rate,
                                term_years=self.params.debt_term_years)

        monthly_rate = self.params.interest_rate / 12
        # Fractional terms (e.g. 2.5 years) are paid in whole months
        payments = int(round(self.params.debt_term_years * 12))
        first_year = min(year for year, _ in tranches)
        last_year = max(year for year, _ in tranches) + max(math.ceil(payments / 12), 1) - 1

        interest: Dict[int, float] = {}
        principal: Dict[int, float] = {}
        for draw_year, amount in tranches:
            installment = self.monthly_installment(amount, monthly_rate, payments)
            balance = amount
            for month in range(payments):
                if balance <= 0:
                    break
                year = draw_year + month // 12
                month_interest = balance * monthly_rate
                month_principal = min(installment - month_interest, balance)
                balance = max(0.0, balance - month_principal)
                interest[year] = interest.get(year, 0.0) + month_interest
                principal[year] = principal.get(year, 0.0) + month_principal

        proceeds = {year: amount for year, amount in tranches}
        rows = []
        balance = 0.0
        for year in range(first_year, last_year + 1):
            beginning = balance
            drawn = proceeds.get(year, 0.0)
            repaid = principal.get(year, 0.0)
            balance = max(0.0, beginning + drawn - repaid)
            rows.append(DebtScheduleRow(
                year=year,
                beginning_balance=beginning,
                proceeds=drawn,
                interest=interest.get(year, 0.0),
                principal=repaid,
                ending_balance=balance,
            ))

        schedule = DebtSchedule(
            rows=rows,
            metrics=self._calculate_metrics(rows, sum(proceeds.values())),
            interest_rate=self.params.interest_rate,
            term_years=self.params.debt_term_years,
        )
        self.logger.info(
            f"  Debt schedule: {len(tranches)} tranches, "
            f"interest paid ${schedule.metrics.total_interest_paid:,.0f}"
        )
        return schedule

    def _calculate_metrics(self, rows: List[DebtScheduleRow], total_debt: float) -> DebtMetrics:
        if not rows:
            return DebtMetrics()
        total_interest = sum(r.interest for r in rows)
        outstanding = np.array([r.beginning_balance + r.proceeds for r in rows], dtype=float)
        return DebtMetrics(
            total_debt=total_debt,
            total_interest_paid=total_interest,
            total_payments=sum(r.payment for r in rows),
            average_balance=float(np.mean(outstanding)),
            effective_rate=(total_interest / total_debt * 100) if total_debt > 0 else 0.0,
        )


__all__ = [
    "__version__",
    "DebtScheduleRow",
    "DebtMetrics",
    "DebtSchedule",
    "DebtScheduleBuilder",
]
