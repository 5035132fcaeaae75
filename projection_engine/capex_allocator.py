"""
CAPEX Allocator Module - Progressive Investment Schedule & Financing Split
Projection & Valuation Engine

Spreads the business plan's capital expenditure across the pre-operating and
early operating years, adds the opening inventory purchase, and splits every
year's outlay into debt and equity according to the financing mix.

Methodology:
    Inventory Units      = Target Stock (thousands of units) x 1000
    Containers           = ceil(Inventory Units / Units per Container)
    Inventory Investment = Containers x Container Cost
    CAPEX(year)          = Base CAPEX x Base Share(year)
                           + Inventory Investment x Inventory Share(year)
    Debt(year)           = CAPEX(year) x Debt Ratio
    Equity(year)         = CAPEX(year) x Equity Ratio

Key Components:
    - InventoryInvestment: container-rounded opening stock purchase
    - YearlyCapexRecord: named line items with a derived total
    - FinancingRecord: per-year debt/equity split
    - CapexSchedule: ordered records with totals and a DataFrame view
    - CapexAllocator: progressive allocation or itemized plan

Inputs: InventoryParams, CapexConfig, FinancialParams
Outputs: CapexSchedule

Version: 1.1.0
"""

from __future__ import annotations

import math
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Any

from .config import (
    LOGGER,
    CAPEX_CONFIG,
    DEFAULT_FINANCIAL_PARAMS,
    DEFAULT_INVENTORY_PARAMS,
    CapexConfig,
    FinancialParams,
    InventoryParams,
)


__version__ = "1.1.0"


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

class CapexLineItem:
    """Line item labels used by the progressive allocation."""

    BASE: str = "Base CAPEX"
    INVENTORY: str = "Inventory"


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class InventoryInvestment:
    """Opening inventory purchase rounded up to whole containers."""

    required_units: float = 0.0
    containers: int = 0
    container_cost: float = 0.0
    investment: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "required_units": self.required_units,
            "containers": self.containers,
            "container_cost": self.container_cost,
            "investment": self.investment,
        }


@dataclass(frozen=True)
class YearlyCapexRecord:
    """Capital expenditure for one year; ``total`` always equals the item sum."""

    year: int
    line_items: Dict[str, float] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return float(sum(self.line_items.values()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "line_items": dict(self.line_items),
            "total": self.total,
        }


@dataclass(frozen=True)
class FinancingRecord:
    """Debt/equity split of one year's CAPEX."""

    year: int
    capex: float
    debt: float
    equity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "capex": self.capex,
            "debt": self.debt,
            "equity": self.equity,
        }


@dataclass(frozen=True)
class CapexSchedule:
    """Ordered CAPEX records with their financing split."""

    records: List[YearlyCapexRecord] = field(default_factory=list)
    financing: List[FinancingRecord] = field(default_factory=list)
    inventory: InventoryInvestment = field(default_factory=InventoryInvestment)
    debt_ratio: float = 0.0
    equity_ratio: float = 0.0

    @property
    def years(self) -> List[int]:
        return [r.year for r in self.records]

    @property
    def total_capex(self) -> float:
        return float(sum(r.total for r in self.records))

    @property
    def total_debt(self) -> float:
        return float(sum(f.debt for f in self.financing))

    @property
    def total_equity(self) -> float:
        return float(sum(f.equity for f in self.financing))

    def capex_for(self, year: int) -> float:
        """CAPEX outflow of a year, 0 outside the schedule."""
        for record in self.records:
            if record.year == year:
                return record.total
        return 0.0

    def financing_for(self, year: int) -> Optional[FinancingRecord]:
        for record in self.financing:
            if record.year == year:
                return record
        return None

    def capex_for_years(self, years: List[int]) -> float:
        return float(sum(self.capex_for(y) for y in years))

    def to_dataframe(self) -> pd.DataFrame:
        """One row per year: line items, total, debt, equity."""
        rows = []
        for record in self.records:
            row: Dict[str, Any] = {"year": record.year}
            row.update(record.line_items)
            row["total"] = record.total
            financing = self.financing_for(record.year)
            row["debt"] = financing.debt if financing else 0.0
            row["equity"] = financing.equity if financing else 0.0
            rows.append(row)
        df = pd.DataFrame(rows)
        if not df.empty:
            df = df.set_index("year").fillna(0.0)
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [r.to_dict() for r in self.records],
            "financing": [f.to_dict() for f in self.financing],
            "inventory": self.inventory.to_dict(),
            "debt_ratio": self.debt_ratio,
            "equity_ratio": self.equity_ratio,
            "total_capex": self.total_capex,
            "total_debt": self.total_debt,
            "total_equity": self.total_equity,
        }


# =============================================================================
# CAPEX ALLOCATOR
# =============================================================================

class CapexAllocator:
    """
    Builds the CAPEX schedule and its financing split.

    Pure: the same inputs always produce the same schedule.
    """

    def __init__(
        self,
        inventory_params: InventoryParams = DEFAULT_INVENTORY_PARAMS,
        financial_params: FinancialParams = DEFAULT_FINANCIAL_PARAMS,
    ):
        self.inventory_params = inventory_params
        self.financial_params = financial_params
        self.logger = LOGGER

    def inventory_investment(self) -> InventoryInvestment:
        """Opening stock purchase rounded up to whole containers."""
        params = self.inventory_params
        required_units = params.initial_stock_months * 1000
        if required_units <= 0 or params.units_per_container <= 0:
            return InventoryInvestment(container_cost=params.container_cost)

        containers = math.ceil(required_units / params.units_per_container)
        return InventoryInvestment(
            required_units=required_units,
            containers=containers,
            container_cost=params.container_cost,
            investment=containers * params.container_cost,
        )

    def allocate(self, capex_config: CapexConfig = CAPEX_CONFIG) -> CapexSchedule:
        """
        Allocate base CAPEX and inventory across the configured years.

        Args:
            capex_config: Base CAPEX total with base/inventory distributions

        Returns:
            CapexSchedule ordered by year
        """
        inventory = self.inventory_investment()
        years = sorted(
            set(capex_config.base_distribution) | set(capex_config.inventory_distribution)
        )

        records = []
        for year in years:
            base_share = capex_config.base_distribution.get(year, 0.0)
            inventory_share = capex_config.inventory_distribution.get(year, 0.0)
            records.append(YearlyCapexRecord(
                year=year,
                line_items={
                    CapexLineItem.BASE: capex_config.base_capex * base_share,
                    CapexLineItem.INVENTORY: inventory.investment * inventory_share,
                },
            ))

        schedule = self._finance(records, inventory)
        self.logger.info(
            f"  CAPEX allocated: {len(records)} years, total ${schedule.total_capex:,.0f} "
            f"(inventory ${inventory.investment:,.0f})"
        )
        return schedule

    def from_line_items(
        self,
        plan: Mapping[int, Mapping[str, float]],
        include_inventory: bool = False,
    ) -> CapexSchedule:
        """
        Build a schedule from an itemized investment plan.

        Args:
            plan: {year: {item label: amount}}
            include_inventory: Add the opening inventory to the first year

        Returns:
            CapexSchedule ordered by year
        """
        inventory = self.inventory_investment() if include_inventory else InventoryInvestment()
        records = []
        for i, year in enumerate(sorted(plan)):
            items = {label: float(amount) for label, amount in plan[year].items()}
            if include_inventory and i == 0:
                items[CapexLineItem.INVENTORY] = items.get(CapexLineItem.INVENTORY, 0.0) + inventory.investment
            records.append(YearlyCapexRecord(year=year, line_items=items))

        schedule = self._finance(records, inventory)
        self.logger.info(
            f"  CAPEX plan loaded: {len(records)} years, total ${schedule.total_capex:,.0f}"
        )
        return schedule

    def _finance(
        self,
        records: List[YearlyCapexRecord],
        inventory: InventoryInvestment,
    ) -> CapexSchedule:
        """Attach the debt/equity split to each record."""
        debt_ratio = self.financial_params.debt_ratio
        equity_ratio = self.financial_params.equity_ratio
        financing = [
            FinancingRecord(
                year=r.year,
                capex=r.total,
                debt=r.total * debt_ratio,
                equity=r.total * equity_ratio,
            )
            for r in records
        ]
        return CapexSchedule(
            records=records,
            financing=financing,
            inventory=inventory,
            debt_ratio=debt_ratio,
            equity_ratio=equity_ratio,
        )


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "__version__",
    "CapexLineItem",
    "InventoryInvestment",
    "YearlyCapexRecord",
    "FinancingRecord",
    "CapexSchedule",
    "CapexAllocator",
]
