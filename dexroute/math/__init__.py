"""Numeric primitives for AMM simulation.

- Bfp: 18-decimal fixed point for weighted and stable pools
- tick_math: tick <-> Q64.96 sqrt price conversions
- sqrt_price_math / swap_math: concentrated-liquidity step math
"""

from dexroute.math.fixed_point import Bfp
from dexroute.math.full_math import Q96, Q128, mul_div, mul_div_rounding_up
from dexroute.math.swap_math import SwapStep, compute_swap_step
from dexroute.math.tick_math import (
    MAX_SQRT_RATIO,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MIN_TICK,
    sqrt_price_at_tick,
    tick_at_sqrt_price,
)

__all__ = [
    "Bfp",
    "Q96",
    "Q128",
    "mul_div",
    "mul_div_rounding_up",
    "SwapStep",
    "compute_swap_step",
    "MIN_TICK",
    "MAX_TICK",
    "MIN_SQRT_RATIO",
    "MAX_SQRT_RATIO",
    "sqrt_price_at_tick",
    "tick_at_sqrt_price",
]
