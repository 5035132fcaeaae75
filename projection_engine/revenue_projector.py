"""
Revenue Projector Module - Multi-Year, Multi-Market Sales Projection
Projection & Valuation Engine

Projects traffic, conversion, average ticket, orders and revenue for every
(year, market) pair of the horizon.

Methodology (t = year offset from the horizon start):
    Traffic(t)     = Base Traffic x (1 + Traffic Growth)^(t + offset)
    Conversion(t)  = min(Initial Conversion x (1 + Conversion Growth)^t, Cap)
    Ticket(t)      = Base Ticket x (1 + Ticket Growth x max(0, t - delay))
    Market Traffic = Traffic(t) x Market Weight x Months
    Orders         = Market Traffic x Conversion(t)
    Gross Revenue  = Orders x Ticket(t) x Market Premium
    Net Revenue    = Gross Revenue x (1 - Processing Fee Rate)

    A partial launch year (first_year_months < 12) uses un-grown base
    traffic and sells only in the launch markets.

Key Components:
    - YearlyRevenueRecord: one (year, market) row
    - RevenueProjection: records, yearly totals, CAGR, diversification
    - RevenueProjector: drivers and active-market weight normalization

Inputs: BusinessParams, market table, HorizonConfig, optional active subset
Outputs: RevenueProjection

Version: 1.1.0
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Any

from .config import (
    LOGGER,
    DEFAULT_BUSINESS_PARAMS,
    HORIZON_CONFIG,
    TWO_MARKET_DISTRIBUTION,
    BusinessParams,
    HorizonConfig,
    MarketDefinition,
)


__version__ = "1.1.0"


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class YearlyRevenueRecord:
    """Revenue for one (year, market) pair."""

    year: int
    market: str
    months: int
    traffic: float           # Visits over the operating months
    conversion_rate: float
    avg_ticket: float        # Local price (ticket x premium)
    orders: float
    gross_revenue: float
    net_revenue: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "market": self.market,
            "months": self.months,
            "traffic": self.traffic,
            "conversion_rate": self.conversion_rate,
            "avg_ticket": self.avg_ticket,
            "orders": self.orders,
            "gross_revenue": self.gross_revenue,
            "net_revenue": self.net_revenue,
        }


@dataclass(frozen=True)
class RevenueProjection:
    """All revenue records of the horizon plus aggregate views."""

    records: List[YearlyRevenueRecord] = field(default_factory=list)
    years: List[int] = field(default_factory=list)
    markets: List[str] = field(default_factory=list)
    weights: Dict[str, float] = field(default_factory=dict)

    def records_for(self, year: int) -> List[YearlyRevenueRecord]:
        return [r for r in self.records if r.year == year]

    def record(self, year: int, market: str) -> Optional[YearlyRevenueRecord]:
        for r in self.records:
            if r.year == year and r.market == market:
                return r
        return None

    def total_net_revenue(self, year: int) -> float:
        return float(sum(r.net_revenue for r in self.records_for(year)))

    def total_gross_revenue(self, year: int) -> float:
        return float(sum(r.gross_revenue for r in self.records_for(year)))

    def total_orders(self, year: int) -> float:
        return float(sum(r.orders for r in self.records_for(year)))

    def net_revenue_by_year(self) -> Dict[int, float]:
        return {year: self.total_net_revenue(year) for year in self.years}

    def cagr(self, start_year: int, end_year: int) -> float:
        """
        Compound annual growth of total net revenue.

        Returns 0 when the start revenue is not positive, the end revenue is
        negative, or the span is empty.
        """
        years_elapsed = end_year - start_year
        start = self.total_net_revenue(start_year)
        end = self.total_net_revenue(end_year)
        if years_elapsed <= 0 or start <= 0 or end < 0:
            return 0.0
        return (end / start) ** (1 / years_elapsed) - 1

    @property
    def diversification_index(self) -> float:
        """(1 - sum of squared weights) x 100 over the active markets."""
        if not self.weights:
            return 0.0
        shares = np.array(list(self.weights.values()), dtype=float)
        return float((1 - np.sum(shares ** 2)) * 100)

    def to_dataframe(self) -> pd.DataFrame:
        """Long format: one row per (year, market)."""
        return pd.DataFrame([r.to_dict() for r in self.records])

    def totals_dataframe(self) -> pd.DataFrame:
        """Net revenue pivoted by year x market with a total column."""
        df = self.to_dataframe()
        if df.empty:
            return df
        pivot = df.pivot_table(
            index="year", columns="market", values="net_revenue", aggfunc="sum"
        ).fillna(0.0)
        pivot["total"] = pivot.sum(axis=1)
        return pivot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "years": list(self.years),
            "markets": list(self.markets),
            "weights": dict(self.weights),
            "records": [r.to_dict() for r in self.records],
            "net_revenue_by_year": self.net_revenue_by_year(),
            "diversification_index": self.diversification_index,
        }


# =============================================================================
# REVENUE PROJECTOR
# =============================================================================

class RevenueProjector:
    """
    Projects revenue for an arbitrary active subset of a market table.

    Weights are renormalized over the active subset, so the inactive
    markets' data is never read.
    """

    def __init__(
        self,
        business_params: BusinessParams = DEFAULT_BUSINESS_PARAMS,
        markets: Optional[Mapping[str, MarketDefinition]] = None,
        horizon: HorizonConfig = HORIZON_CONFIG,
        active_markets: Optional[Iterable[str]] = None,
    ):
        self.params = business_params
        self.markets = dict(markets) if markets is not None else dict(TWO_MARKET_DISTRIBUTION)
        self.horizon = horizon
        self.active_markets = list(active_markets) if active_markets else list(self.markets)
        self.logger = LOGGER

        missing = [m for m in self.active_markets if m not in self.markets]
        if missing:
            raise ValueError(f"Active markets not in market table: {', '.join(missing)}")

    # -------------------------------------------------------------------------
    # Drivers
    # -------------------------------------------------------------------------

    @property
    def partial_first_year(self) -> bool:
        return 0 < self.params.first_year_months < 12

    def months(self, t: int) -> int:
        if t == 0 and self.partial_first_year:
            return self.params.first_year_months
        return 12

    def traffic(self, t: int) -> float:
        """Monthly traffic in year offset ``t``."""
        if t == 0 and self.partial_first_year:
            return self.params.initial_traffic
        exponent = t + self.params.traffic_growth_offset
        return self.params.initial_traffic * (1 + self.params.traffic_growth) ** exponent

    def conversion(self, t: int) -> float:
        rate = self.params.initial_conversion * (1 + self.params.conversion_growth_rate) ** t
        return min(rate, self.params.conversion_cap)

    def ticket(self, t: int) -> float:
        steps = max(0, t - self.params.ticket_growth_delay_years)
        return self.params.avg_ticket * (1 + self.params.ticket_growth * steps)

    def normalized_weights(self, keys: Iterable[str]) -> Dict[str, float]:
        """Weights of ``keys`` rescaled to sum to 1."""
        keys = list(keys)
        total = sum(self.markets[k].weight for k in keys)
        if total <= 0:
            return {k: 0.0 for k in keys}
        return {k: self.markets[k].weight / total for k in keys}

    def selling_weights(self, t: int) -> Dict[str, float]:
        """Weights of the markets selling in year offset ``t`` (others get 0)."""
        weights = self.normalized_weights(self.active_markets)
        if t == 0 and self.partial_first_year:
            launch = [m for m in self.active_markets if m in self.params.launch_markets]
            if launch:
                launch_weights = self.normalized_weights(launch)
                weights = {m: launch_weights.get(m, 0.0) for m in self.active_markets}
        return weights

    # -------------------------------------------------------------------------
    # Projection
    # -------------------------------------------------------------------------

    def project(self) -> RevenueProjection:
        """
        Project every (year, active market) pair of the horizon.

        Returns:
            RevenueProjection with records ordered by year then market
        """
        fee_rate = self.params.processing_fee_rate
        records: List[YearlyRevenueRecord] = []

        for t, year in enumerate(self.horizon.years):
            months = self.months(t)
            traffic = self.traffic(t)
            conversion = self.conversion(t)
            ticket = self.ticket(t)

            for market, weight in self.selling_weights(t).items():
                market_traffic = traffic * weight * months
                orders = market_traffic * conversion
                local_price = ticket * self.markets[market].premium
                gross = orders * local_price
                records.append(YearlyRevenueRecord(
                    year=year,
                    market=market,
                    months=months,
                    traffic=market_traffic,
                    conversion_rate=conversion,
                    avg_ticket=local_price,
                    orders=orders,
                    gross_revenue=gross,
                    net_revenue=gross * (1 - fee_rate),
                ))

        projection = RevenueProjection(
            records=records,
            years=self.horizon.years,
            markets=list(self.active_markets),
            weights=self.normalized_weights(self.active_markets),
        )
        self.logger.info(
            f"  Revenue projected for {len(self.active_markets)} markets, "
            f"{self.horizon.end_year} net revenue ${projection.total_net_revenue(self.horizon.end_year):,.0f}"
        )
        return projection


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "__version__",
    "YearlyRevenueRecord",
    "RevenueProjection",
    "RevenueProjector",
]
