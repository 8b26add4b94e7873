"""Pytest configuration and fixtures."""

import pytest

from dexroute.config import Settings
from dexroute.models.pools import ConcentratedPool
from tests.helpers import BUNDLER, DAI, USDC, WETH, FakeClock, make_concentrated_pool


@pytest.fixture
def fake_clock() -> FakeClock:
    """A manually advanced clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings with a bundler configured and no external indexers."""
    return Settings(bundler_address=BUNDLER, rpc_urls=("http://localhost:8545",))


@pytest.fixture
def weth_usdc_pool() -> ConcentratedPool:
    """Deep WETH/USDC full-range pool at tick 0."""
    return make_concentrated_pool(WETH, USDC, liquidity=10**24)


@pytest.fixture
def usdc_dai_pool() -> ConcentratedPool:
    return make_concentrated_pool(USDC, DAI, liquidity=10**24, fee=500, tick_spacing=10)
