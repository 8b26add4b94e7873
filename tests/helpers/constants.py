"""Shared token constants for tests.

All addresses are lowercase for consistency with normalize_address().

Usage:
    from tests.helpers import WETH, USDC
    # or
    from tests.helpers.constants import WETH, USDC
"""

from dexroute.models.tokens import Token

# =============================================================================
# Mainnet tokens
# =============================================================================

NATIVE = "0x0000000000000000000000000000000000000000"  # Native currency sentinel
WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"  # Wrapped Ether (18 decimals)
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"  # USD Coin (6 decimals)
DAI = "0x6b175474e89094c44da98b954eedeac495271d0f"  # Dai Stablecoin (18 decimals)
USDT = "0xdac17f958d2ee523a2206206994597c13d831ec7"  # Tether USD (6 decimals)
AAVE = "0x7fc66500c84a76ad7e9c93437bfc5ac33e2ddae9"  # Aave Token (18 decimals)

# Arbitrary addresses for synthetic tokens
TOKEN_A = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
TOKEN_B = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
TOKEN_C = "0xcccccccccccccccccccccccccccccccccccccccc"

SENDER = "0x1111111111111111111111111111111111111111"
BUNDLER = "0x2222222222222222222222222222222222222222"

TOKEN_DECIMALS = {
    NATIVE: 18,
    WETH: 18,
    USDC: 6,
    DAI: 18,
    USDT: 6,
    AAVE: 18,
    TOKEN_A: 18,
    TOKEN_B: 18,
    TOKEN_C: 18,
}

NATIVE_TOKEN = Token(NATIVE, "ETH", 18)
WETH_TOKEN = Token(WETH, "WETH", 18)
USDC_TOKEN = Token(USDC, "USDC", 6)
DAI_TOKEN = Token(DAI, "DAI", 18)
AAVE_TOKEN = Token(AAVE, "AAVE", 18)


__all__ = [
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
]
