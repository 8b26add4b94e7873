"""Protocol constants for mainnet routing and execution.

Centralizes well-known addresses, gas defaults and execution limits.
"""

from eth_utils import is_hex_address

CHAIN_ID = 1
CHAIN_NAME = "homestead"


def _validate_address(name: str, address: str) -> str:
    """Validate and return a lowercase address.

    Raises:
        ValueError: If the address is invalid
    """
    if not is_hex_address(address):
        raise ValueError(f"Invalid {name} address: {address} (must be 0x + 40 hex chars)")
    return address.lower()


# Native currency sentinel and its ERC-20 wrapper
NATIVE_ADDRESS = _validate_address("NATIVE", "0x0000000000000000000000000000000000000000")
WRAPPED_NATIVE_ADDRESS = _validate_address("WETH", "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2")

# Some aggregators use this placeholder for the native currency
NATIVE_PLACEHOLDER = _validate_address(
    "NATIVE_PLACEHOLDER", "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"
)

# Pools with a hooks contract other than this are skipped
NEUTRAL_HOOKS = NATIVE_ADDRESS

# Default on-chain encoders consumed by the bundler contract (overridable in Settings)
CONCENTRATED_ENCODER_ADDRESS = _validate_address(
    "CONCENTRATED_ENCODER", "0xc4c550dac072f5a9cf68aaafb98a7a573805061c"
)
WEIGHTED_ENCODER_ADDRESS = _validate_address(
    "WEIGHTED_ENCODER", "0x5d0927b13e2e0ecdeb20ad2c0e76e62acd36b080"
)

# Balancer vault (getPoolTokens)
WEIGHTED_VAULT_ADDRESS = _validate_address(
    "WEIGHTED_VAULT", "0xba12222222228d8ba445958a75a0704d566bf2c8"
)

# Well-known tokens used as routing intermediates
USDC = _validate_address("USDC", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")
USDT = _validate_address("USDT", "0xdac17f958d2ee523a2206206994597c13d831ec7")
DAI = _validate_address("DAI", "0x6b175474e89094c44da98b954eedeac495271d0f")
WBTC = _validate_address("WBTC", "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599")

DEFAULT_INTERMEDIATE_TOKENS = (WRAPPED_NATIVE_ADDRESS, USDC, USDT, DAI, WBTC)

# Gas defaults per protocol when a quote does not carry an estimate
CONCENTRATED_BASE_GAS = 120_000
CONCENTRATED_GAS_PER_HOP = 60_000
WEIGHTED_SWAP_GAS = 300_000
BUNDLER_SWAP_GAS = 500_000
ODOS_SWAP_GAS = 300_000
ONEINCH_SWAP_GAS = 300_000

# Sentinel input amount meaning "use the full balance held at execution time"
USE_ALL_BALANCE = 2**256 - 1

# Native balance floors for submission (wei)
MIN_NATIVE_BALANCE = 5 * 10**14
LOW_NATIVE_BALANCE_WARNING = 10**16

__all__ = [
    "CHAIN_ID",
    "CHAIN_NAME",
    "NATIVE_ADDRESS",
    "WRAPPED_NATIVE_ADDRESS",
    "NATIVE_PLACEHOLDER",
    "NEUTRAL_HOOKS",
    "CONCENTRATED_ENCODER_ADDRESS",
    "WEIGHTED_ENCODER_ADDRESS",
    "WEIGHTED_VAULT_ADDRESS",
    "USDC",
    "USDT",
    "DAI",
    "WBTC",
    "DEFAULT_INTERMEDIATE_TOKENS",
    "CONCENTRATED_BASE_GAS",
    "CONCENTRATED_GAS_PER_HOP",
    "WEIGHTED_SWAP_GAS",
    "BUNDLER_SWAP_GAS",
    "ODOS_SWAP_GAS",
    "ONEINCH_SWAP_GAS",
    "USE_ALL_BALANCE",
    "MIN_NATIVE_BALANCE",
    "LOW_NATIVE_BALANCE_WARNING",
]
