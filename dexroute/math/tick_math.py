"""Conversions between tick indices and Q64.96 sqrt prices.

sqrt_price_at_tick(t) computes sqrt(1.0001^t) * 2^96. The per-bit table
holds floor(sqrt(1.0001)^(-2^i) * 2^128) for i in 0..19; the product for the
set bits of |t| gives the price of -|t| in Q128.128, which is inverted for
positive ticks and narrowed to Q64.96.
"""

from __future__ import annotations

from dexroute.errors import InvalidSqrtRatio, InvalidTick
from dexroute.math.full_math import Q128
from dexroute.safe_int import UINT256_MAX

MIN_TICK = -887272
MAX_TICK = 887272

# sqrt_price_at_tick(MIN_TICK) and sqrt_price_at_tick(MAX_TICK)
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# =============================================================================
# Per-bit multipliers
# =============================================================================

_BIT_MULTIPLIERS: tuple[int, ...] = (
    0xFFFCB933BD6FAD37AA2D162D1A594001,
    0xFFF97272373D413259A46990580E213A,
    0xFFF2E50F5F656932EF12357CF3C7FDCC,
    0xFFE5CACA7E10E4E61C3624EAA0941CD0,
    0xFFCB9843D60F6159C9DB58835C926644,
    0xFF973B41FA98C081472E6896DFB254C0,
    0xFF2EA16466C96A3843EC78B326B52861,
    0xFE5DEE046A99A2A811C461F1969C3053,
    0xFCBE86C7900A88AEDCFFC83B479AA3A4,
    0xF987A7253AC413176F2B074CF7815E54,
    0xF3392B0822B70005940C7A398E4B70F3,
    0xE7159475A2C29B7443B29C7FA6E889D9,
    0xD097F3BDFD2022B8845AD8F792AA5825,
    0xA9F746462D870FDF8A65DC1F90E061E5,
    0x70D869A156D2A1B890BB3DF62BAF32F7,
    0x31BE135F97D08FD981231505542FCFA6,
    0x9AA508B5B7A84E1C677DE54F3E99BC9,
    0x5D6AF8DEDB81196699C329225EE604,
    0x2216E584F5FA1EA926041BEDFE98,
    0x48A170391F7DC42444E8FA2,
)


def sqrt_price_at_tick(tick: int) -> int:
    """Compute the Q64.96 sqrt price for a tick.

    Args:
        tick: Tick index in [MIN_TICK, MAX_TICK]

    Returns:
        sqrt(1.0001^tick) * 2^96, rounded up at the 32-bit boundary exactly
        as the on-chain TickMath library does.

    Raises:
        InvalidTick: If tick is out of range
    """
    if not isinstance(tick, int) or not MIN_TICK <= tick <= MAX_TICK:
        raise InvalidTick(f"Tick {tick} outside [{MIN_TICK}, {MAX_TICK}]")

    abs_tick = abs(tick)
    ratio = Q128
    for i, multiplier in enumerate(_BIT_MULTIPLIERS):
        if abs_tick & (1 << i):
            ratio = (ratio * multiplier) >> 128

    if tick > 0:
        ratio = UINT256_MAX // ratio

    # Q128.128 -> Q64.96, rounding up so the result is never below the true price
    return (ratio >> 32) + (1 if ratio & 0xFFFFFFFF else 0)


def tick_at_sqrt_price(sqrt_price_x96: int) -> int:
    """Find the largest tick whose sqrt price is <= sqrt_price_x96.

    Binary search over [MIN_TICK, MAX_TICK] using sqrt_price_at_tick as the
    oracle, so the result is consistent with it by construction:
    tick_at_sqrt_price(sqrt_price_at_tick(t)) == t for every valid t.

    Raises:
        InvalidSqrtRatio: If sqrt_price_x96 is out of range
    """
    if not MIN_SQRT_RATIO <= sqrt_price_x96 <= MAX_SQRT_RATIO:
        raise InvalidSqrtRatio(
            f"Sqrt price {sqrt_price_x96} outside [{MIN_SQRT_RATIO}, {MAX_SQRT_RATIO}]"
        )

    lo, hi = MIN_TICK, MAX_TICK
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if sqrt_price_at_tick(mid) <= sqrt_price_x96:
            lo = mid
        else:
            hi = mid - 1
    return lo


def floor_to_spacing(tick: int, tick_spacing: int) -> int:
    """Largest multiple of tick_spacing that is <= tick."""
    if tick_spacing <= 0:
        raise InvalidTick(f"Tick spacing must be positive, got {tick_spacing}")
    return (tick // tick_spacing) * tick_spacing


def min_usable_tick(tick_spacing: int) -> int:
    return -((-MIN_TICK) // tick_spacing) * tick_spacing


def max_usable_tick(tick_spacing: int) -> int:
    return (MAX_TICK // tick_spacing) * tick_spacing


__all__ = [
    "MIN_TICK",
    "MAX_TICK",
    "MIN_SQRT_RATIO",
    "MAX_SQRT_RATIO",
    "sqrt_price_at_tick",
    "tick_at_sqrt_price",
    "floor_to_spacing",
    "min_usable_tick",
    "max_usable_tick",
]
