"""512-bit-safe multiply/divide helpers matching Uniswap's FullMath.

Python integers do not overflow, so the only work here is picking the
rounding direction and enforcing that results fit the uint256 word the
on-chain code would have produced.
"""

from __future__ import annotations

from dexroute.safe_int import UINT256_MAX, DivisionByZero, WidthOverflow

Q96 = 1 << 96
Q128 = 1 << 128
Q256 = 1 << 256
RESOLUTION = 96


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator), reverting like Solidity on overflow.

    Raises:
        DivisionByZero: If denominator is zero
        WidthOverflow: If the result does not fit in uint256
    """
    if denominator == 0:
        raise DivisionByZero(f"mul_div by zero: {a} * {b} / 0")
    result = (a * b) // denominator
    if result > UINT256_MAX:
        raise WidthOverflow(f"mul_div result exceeds uint256: {result}")
    return result


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """ceil(a * b / denominator) for non-negative operands."""
    if denominator == 0:
        raise DivisionByZero(f"mul_div_rounding_up by zero: {a} * {b} / 0")
    result = -(-(a * b) // denominator)
    if result > UINT256_MAX:
        raise WidthOverflow(f"mul_div_rounding_up result exceeds uint256: {result}")
    return result


def div_rounding_up(x: int, y: int) -> int:
    """ceil(x / y) for non-negative operands (UnsafeMath.divRoundingUp)."""
    if y == 0:
        raise DivisionByZero(f"div_rounding_up by zero: {x} / 0")
    return -(-x // y)


__all__ = [
    "Q96",
    "Q128",
    "Q256",
    "RESOLUTION",
    "mul_div",
    "mul_div_rounding_up",
    "div_rounding_up",
]
