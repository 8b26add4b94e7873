"""Weighted constant-product pool math.

    y = B_out * (1 - (B_in / (B_in + x * (1 - f))) ^ (W_in / W_out))

Balances and amounts are scaled to 18 decimals as in the on-chain pool. The
power is evaluated in a 60-digit decimal context so that 1 - power keeps its
significant digits for inputs many orders of magnitude below B_in. Every
step rounds against the trader.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal, localcontext

from dexroute.errors import InsufficientLiquidity, InvalidAmount
from dexroute.math.fixed_point import MAX_IN_RATIO, Bfp
from dexroute.models.pools import WeightedPool

from .scaling import scale_down_down, scale_up, subtract_swap_fee_amount

POWER_PRECISION = 60

_ONE = Decimal(1)
_TWO = Decimal(2)
_FOUR = Decimal(4)


def _power_up(base: Decimal, exponent: Decimal) -> Decimal:
    """base ** exponent rounded up; exponents 1, 2 and 4 are multiplied out."""
    if exponent == _ONE:
        return base
    if exponent == _TWO:
        return base * base
    if exponent == _FOUR:
        square = base * base
        return square * square
    return base**exponent


def calc_out_given_in(
    balance_in: Bfp,
    weight_in: Bfp,
    balance_out: Bfp,
    weight_out: Bfp,
    amount_in: Bfp,
) -> Bfp:
    """Output for a given input, fee already deducted from amount_in.

    Args:
        balance_in: Scaled balance of the input token
        weight_in: Normalized weight of the input token
        balance_out: Scaled balance of the output token
        weight_out: Normalized weight of the output token
        amount_in: Scaled input amount after fee

    Returns:
        Scaled output amount, rounded down

    Raises:
        InsufficientLiquidity: On zero balances or weights, when the input
            exceeds 30% of balance_in, or when the output would drain the pool
    """
    if weight_in.value <= 0 or weight_out.value <= 0:
        raise InsufficientLiquidity("Token weights must be positive")
    if balance_in.value <= 0 or balance_out.value <= 0:
        raise InsufficientLiquidity("Pool balances must be positive")
    if amount_in.value > balance_in.mul_down(MAX_IN_RATIO).value:
        raise InsufficientLiquidity(
            f"Input {amount_in.value} exceeds 30% of balance {balance_in.value}"
        )

    with localcontext() as ctx:
        ctx.prec = POWER_PRECISION
        ctx.rounding = ROUND_CEILING
        base = Decimal(balance_in.value) / Decimal(balance_in.value + amount_in.value)
        ctx.rounding = ROUND_FLOOR
        exponent = Decimal(weight_in.value) / Decimal(weight_out.value)
        ctx.rounding = ROUND_CEILING
        power = min(_power_up(base, exponent), _ONE)
        ctx.rounding = ROUND_FLOOR
        amount_out = Decimal(balance_out.value) * (_ONE - power)

    result = int(amount_out.to_integral_value(rounding=ROUND_FLOOR))
    if result >= balance_out.value:
        raise InsufficientLiquidity("Output would drain the pool")
    return Bfp(result)


def swap_exact_input(pool: WeightedPool, token_in: str, token_out: str, amount_in: int) -> int:
    """Simulate selling amount_in of token_in into the pool.

    Raises:
        InvalidAmount: If amount_in is not positive
        InsufficientLiquidity: If the pool cannot fill the trade
    """
    if amount_in <= 0:
        raise InvalidAmount(f"Input amount must be positive, got {amount_in}")

    reserve_in = pool.reserve(token_in)
    reserve_out = pool.reserve(token_out)
    if reserve_in.token == reserve_out.token:
        raise InsufficientLiquidity("Cannot swap a token with itself")

    factor_in = reserve_in.token.scaling_factor
    factor_out = reserve_out.token.scaling_factor
    amount_in_scaled = scale_up(amount_in, factor_in)
    amount_after_fee = subtract_swap_fee_amount(amount_in_scaled.value, pool.fee)

    amount_out = calc_out_given_in(
        balance_in=scale_up(reserve_in.balance, factor_in),
        weight_in=Bfp.from_decimal(reserve_in.weight),
        balance_out=scale_up(reserve_out.balance, factor_out),
        weight_out=Bfp.from_decimal(reserve_out.weight),
        amount_in=Bfp(amount_after_fee),
    )
    return scale_down_down(amount_out, factor_out)


__all__ = ["calc_out_given_in", "swap_exact_input", "POWER_PRECISION"]
