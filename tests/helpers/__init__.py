"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Token addresses and Token objects
- factories: Pool and token factory functions
- fakes: Clock, sleep and HTTP transport doubles
"""

from tests.helpers.constants import (
    AAVE,
    AAVE_TOKEN,
    BUNDLER,
    DAI,
    DAI_TOKEN,
    NATIVE,
    NATIVE_TOKEN,
    SENDER,
    TOKEN_A,
    TOKEN_B,
    TOKEN_C,
    TOKEN_DECIMALS,
    USDC,
    USDC_TOKEN,
    USDT,
    WETH,
    WETH_TOKEN,
)
from tests.helpers.factories import (
    make_concentrated_pool,
    make_stable_pool,
    make_token,
    make_weighted_pool,
    subgraph_pool_record,
)
from tests.helpers.fakes import FakeClock, mock_client, no_sleep

__all__ = [
    # Constants
    "NATIVE",
    "WETH",
    "USDC",
    "DAI",
    "USDT",
    "AAVE",
    "TOKEN_A",
    "TOKEN_B",
    "TOKEN_C",
    "SENDER",
    "BUNDLER",
    "TOKEN_DECIMALS",
    "NATIVE_TOKEN",
    "WETH_TOKEN",
    "USDC_TOKEN",
    "DAI_TOKEN",
    "AAVE_TOKEN",
    # Factories
    "make_token",
    "make_concentrated_pool",
    "make_weighted_pool",
    "make_stable_pool",
    "subgraph_pool_record",
    # Fakes
    "FakeClock",
    "mock_client",
    "no_sleep",
]
