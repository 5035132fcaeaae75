#!/usr/bin/env python3
"""
Projection & Valuation Engine - Demo
====================================

Runs one recalculation pass of the business plan and prints every stage:

CAPEX & Financing
- Progressive CAPEX schedule (or the itemized investment plan)
- Opening inventory investment
- Debt/equity split per year

Revenue
- Net revenue per (year, market) and yearly totals
- Orders, CAGR and market diversification

Cash Flow
- Economic FCF build-up (revenue -> EBITDA -> NOPAT -> FCF)
- Financial FCFE with debt service

Valuation
- NPV, IRR and payback for the economic (WACC) and financial (Ke) series
- Terminal value, viability verdicts and overall recommendation

Scenarios
- Pessimistic, Base, Optimistic, Stress Test
- Traffic growth vs WACC sensitivity matrix

Dashboard
- Aggregated snapshot as the presentation layer receives it

Usage:
    python run_demo.py                     # Two-market base scenario
    python run_demo.py --scope four        # Chile, Mexico, Brazil, Canada
    python run_demo.py --markets chile     # Active subset, weights renormalized
    python run_demo.py --debt-ratio 0.35   # Different financing mix
    python run_demo.py --itemized-capex    # Itemized investment plan
    python run_demo.py --no-scenarios      # Skip scenario analysis
    python run_demo.py --json              # Save JSON report to outputs/

Version: 1.2.0
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

import pandas as pd

from projection_engine import __version__
from projection_engine.config import (
    DEFAULT_CAPEX_PLAN,
    MarketScope,
    ScenarioParameters,
    get_business_params,
    get_financial_params,
    get_market_distribution,
)
from projection_engine.projection_model import ProjectionError, ProjectionModel, ProjectionPipeline
from projection_engine.sensitivity_analyzer import SensitivityAnalysis, SensitivityAnalyzer
from projection_engine.dashboard import (
    DashboardAggregator,
    DashboardCollaborators,
    DashboardSnapshot,
)


# =============================================================================
# FORMATTING UTILITIES
# =============================================================================

def format_currency(value, scale=1e3, suffix="K"):
    """Format value as currency with scale."""
    if value is None:
        return "N/A"
    return f"${value/scale:,.1f}{suffix}"


def format_percent(value, decimals=1):
    """Format value as percentage."""
    if value is None:
        return "N/A"
    return f"{value*100:.{decimals}f}%"


def print_line(char="=", length=80):
    """Print separator line."""
    print(char * length)


def print_header(title):
    """Print section header."""
    print()
    print_line("=")
    print(f"  {title}")
    print_line("=")


def print_subheader(title):
    """Print subsection header."""
    print()
    print(f"  {title}")
    print_line("-", 50)


def print_table(df):
    """Print a DataFrame indented, values in thousands."""
    if df.empty:
        print("  (no data)")
        return
    with pd.option_context("display.width", 120, "display.max_columns", 20):
        text = (df / 1e3).round(1).to_string()
    for line in text.splitlines():
        print(f"  {line}")


# =============================================================================
# OUTPUT FUNCTIONS
# =============================================================================

def print_banner():
    """Print demo banner."""
    print()
    print_line()
    print("  PROJECTION & VALUATION ENGINE")
    print("  CAPEX, Revenue, Cash Flow, NPV, IRR & Payback")
    print_line()
    print(f"  Version: {__version__}")
    print_line()


def print_capex(model: ProjectionModel):
    """Print CAPEX schedule and financing."""
    capex = model.capex
    print_header("CAPEX & FINANCING (thousands)")
    inventory = capex.inventory
    if inventory.investment > 0:
        print(f"  Opening inventory: {inventory.containers} containers x "
              f"${inventory.container_cost:,.0f} = {format_currency(inventory.investment)}")
    print_table(capex.to_dataframe())
    print()
    print(f"  Total CAPEX:      {format_currency(capex.total_capex)}")
    print(f"  Debt ({capex.debt_ratio:.0%}):       {format_currency(capex.total_debt)}")
    print(f"  Equity ({capex.equity_ratio:.0%}):     {format_currency(capex.total_equity)}")


def print_revenue(model: ProjectionModel):
    """Print revenue projection."""
    revenue = model.revenue
    print_header("REVENUE PROJECTION (net revenue, thousands)")
    print_table(revenue.totals_dataframe())
    print()
    print(f"  {model.end_year} revenue:     {format_currency(model.final_year_revenue)}")
    print(f"  {model.end_year} orders:      {model.final_year_orders:,.0f}")
    print(f"  CAGR {model.start_year}-{model.end_year}:   {format_percent(model.revenue_cagr)}")
    print(f"  Diversification:  {revenue.diversification_index:.1f}")


def print_cash_flow(model: ProjectionModel):
    """Print economic and financial cash flows."""
    print_header("CASH FLOW (thousands)")
    print_subheader("Economic (unlevered)")
    columns = ["revenue", "ebitda", "depreciation", "taxes", "nopat", "capex", "fcf"]
    print_table(model.economic_cash_flow.to_dataframe()[columns])
    print_subheader("Financial (equity)")
    columns = ["fcf", "debt_proceeds", "interest", "tax_shield", "principal", "fcfe"]
    print_table(model.financial_cash_flow.to_dataframe()[columns])
    print_subheader("Working capital")
    print_table(model.working_capital.to_dataframe())
    print(f"  NPV after working capital: {format_currency(model.npv_after_working_capital)}")


def print_valuation(model: ProjectionModel):
    """Print valuation metrics and viability."""
    print_header("VALUATION")
    for label, result in (("Economic (WACC)", model.economic_valuation),
                          ("Financial (Ke)", model.financial_valuation)):
        print_subheader(label)
        print(f"  Discount rate:    {format_percent(result.discount_rate)}")
        print(f"  Initial outlay:   {format_currency(result.initial_investment)}")
        print(f"  NPV:              {format_currency(result.npv)}")
        print(f"  IRR:              {format_percent(result.irr)} ({result.irr_result.method.value})")
        if result.payback.is_determined:
            print(f"  Payback:          {result.payback.months} months ({result.payback.method.value})")
        else:
            print("  Payback:          undetermined")
        if result.terminal_value.is_valid:
            print(f"  PV terminal:      {format_currency(result.terminal_value.present_value)}")

    viability = model.viability
    print_subheader("Viability")
    print(f"  Economic:         {viability.economic.level.value} "
          f"(spread {viability.economic.spread*100:+.1f}pp)")
    print(f"  Financial:        {viability.financial.level.value} "
          f"(spread {viability.financial.spread*100:+.1f}pp)")
    print(f"  Recommendation:   {viability.recommendation.value.upper()}")

    if model.warnings:
        print_subheader("Warnings")
        for warning in model.warnings:
            print(f"  - {warning}")


def print_scenarios(analysis: SensitivityAnalysis):
    """Print scenario and sensitivity analysis."""
    print_header("SCENARIO ANALYSIS")
    print(f"  {'Scenario':<14} {'NPV':>12} {'IRR':>8} {'Payback':>9} {'vs Base':>12}")
    print_line("-", 60)
    for valuation in analysis.scenarios.values():
        payback = f"{valuation.payback_months}m" if valuation.payback_months is not None else "n/a"
        print(f"  {valuation.scenario.value:<14} {format_currency(valuation.npv):>12} "
              f"{format_percent(valuation.irr):>8} {payback:>9} "
              f"{format_currency(valuation.npv_change_vs_base):>12}")
    print()
    print(f"  Viable scenarios: {analysis.viable_scenarios}/{len(analysis.scenarios)}")
    print(f"  Risk level:       {analysis.risk_level.value}")
    if analysis.most_sensitive_factor:
        print(f"  Key driver:       {analysis.most_sensitive_factor}")

    print_subheader("NPV: traffic growth (rows) vs WACC (columns), thousands")
    print_table(analysis.sensitivity_matrix.to_dataframe())


def print_snapshot(snapshot: DashboardSnapshot):
    """Print the dashboard snapshot."""
    print_header(f"DASHBOARD SNAPSHOT ({snapshot.source.value})")
    print(f"  NPV:              {format_currency(snapshot.npv)}")
    print(f"  IRR:              {format_percent(snapshot.irr)}")
    flag = "" if snapshot.payback_determined else " (undetermined)"
    print(f"  Payback:          {snapshot.payback_months} months{flag}")
    print(f"  ROI:              {snapshot.roi:.1f}%")
    print(f"  Break-even:       {snapshot.break_even_year}")
    print(f"  Financial NPV:    {format_currency(snapshot.financial_npv)}")
    print(f"  Financial IRR:    {format_percent(snapshot.financial_irr)}")
    print(f"  Equity ROI:       {snapshot.equity_roi:.1f}%")
    print(f"  CF stability:     {snapshot.cash_flow_stability:.1f}%")
    print(f"  DSCR:             {snapshot.debt_service_coverage:.1f}x")


# =============================================================================
# MAIN
# =============================================================================

def build_scenario(args) -> ScenarioParameters:
    """Build the scenario from command-line options."""
    scope = MarketScope.FOUR_MARKET if args.scope == "four" else MarketScope.TWO_MARKET
    financial_overrides = {}
    if args.debt_ratio is not None:
        financial_overrides["debtRatio"] = args.debt_ratio
    if args.interest_rate is not None:
        financial_overrides["interestRate"] = args.interest_rate

    return ScenarioParameters(
        financial=get_financial_params(financial_overrides),
        business=get_business_params(),
        markets=get_market_distribution(scope),
        active_markets=tuple(args.markets) if args.markets else None,
        capex_plan=DEFAULT_CAPEX_PLAN if args.itemized_capex else None,
        name="Demo",
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Projection & Valuation Engine - Demo"
    )
    parser.add_argument(
        "--scope",
        choices=["two", "four"],
        default="two",
        help="Market distribution scope (default: two)"
    )
    parser.add_argument(
        "--markets",
        nargs="+",
        help="Active market subset (e.g. chile mexico)"
    )
    parser.add_argument(
        "--debt-ratio",
        type=float,
        help="Share of CAPEX financed with debt (0-1)"
    )
    parser.add_argument(
        "--interest-rate",
        type=float,
        help="Annual interest rate on debt (e.g. 0.06)"
    )
    parser.add_argument(
        "--itemized-capex",
        action="store_true",
        help="Use the itemized investment plan instead of the progressive allocation"
    )
    parser.add_argument(
        "--detailed-costs",
        action="store_true",
        help="Derive cash flow from the detailed cost model instead of cost ratios"
    )
    parser.add_argument(
        "--no-scenarios",
        action="store_true",
        help="Skip scenario and sensitivity analysis"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Save the projection model to outputs/ as JSON"
    )
    args = parser.parse_args()

    print_banner()

    scenario = build_scenario(args)
    pipeline = ProjectionPipeline(use_detailed_costs=args.detailed_costs)

    try:
        model = pipeline.run(scenario)
    except ProjectionError as e:
        print()
        print_header("PROJECTION FAILED")
        print(f"  Stage: {e.stage.value}")
        print(f"  Error: {e.message}")
        return 1

    print_capex(model)
    print_revenue(model)
    print_cash_flow(model)
    print_valuation(model)

    if not args.no_scenarios:
        analysis = SensitivityAnalyzer(pipeline).analyze(scenario)
        print_scenarios(analysis)

    aggregator = DashboardAggregator(
        DashboardCollaborators(model_state=lambda: model),
        pipeline,
    )
    aggregator.recompute()
    print_snapshot(aggregator.snapshot)

    if args.json:
        report_path = pipeline.save_report(model)
        print(f"\n  Projection report saved to: {report_path}")

    print()
    print_line()
    print(f"  Recommendation: {model.viability.recommendation.value.upper()}")
    print_line()
    print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
