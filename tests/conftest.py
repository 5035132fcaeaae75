"""Shared fixtures for the projection engine tests."""

import pytest

from projection_engine.config import (
    BusinessParams,
    HorizonConfig,
    InventoryParams,
    MarketDefinition,
    ScenarioParameters,
)
from projection_engine.projection_model import ProjectionPipeline


@pytest.fixture
def no_inventory():
    """Inventory parameters that produce no opening stock purchase."""
    return InventoryParams(initial_stock_months=0)


@pytest.fixture
def single_market():
    return {"solo": MarketDefinition("solo", "Solo", weight=1.0)}


@pytest.fixture
def full_year_business():
    """Twelve-month first year, growth applied from year 1, flat ticket."""
    return BusinessParams(
        initial_traffic=10000,
        traffic_growth=0.5,
        traffic_growth_offset=1,
        first_year_months=12,
        launch_markets=(),
        initial_conversion=0.02,
        conversion_growth_rate=0.2,
        conversion_cap=0.08,
        avg_ticket=50,
        ticket_growth=0.0,
        ticket_growth_delay_years=0,
    )


@pytest.fixture
def short_horizon():
    return HorizonConfig(start_year=2025, end_year=2026, operating_start_year=2026)


@pytest.fixture(scope="session")
def base_model():
    """Pipeline result for the default scenario, shared across tests."""
    return ProjectionPipeline().run(ScenarioParameters())
