"""Stable (amplified invariant) pool math.

Newton iteration on the StableSwap invariant

    A * n^n * sum(x) + D = A * n^n * D + D^(n+1) / (n^n * prod(x))

using the A * n parameterization with AMP_PRECISION = 1000.
"""

from __future__ import annotations

from decimal import Decimal

from dexroute.errors import InsufficientLiquidity, InvalidAmount
from dexroute.math.fixed_point import AMP_PRECISION, Bfp
from dexroute.models.pools import StablePool
from dexroute.safe_int import S, SafeIntError

from .scaling import scale_down_down, scale_up, subtract_swap_fee_amount

MAX_ITERATIONS = 255


def calculate_invariant(amp: int, balances: list[Bfp]) -> Bfp:
    """Invariant D for the given balances.

    Args:
        amp: Amplification scaled by AMP_PRECISION
        balances: Scaled balances (18 decimals)

    Raises:
        InsufficientLiquidity: On a zero balance or when D does not converge
    """
    n = len(balances)
    if n == 0:
        return Bfp(0)
    if any(b.value <= 0 for b in balances):
        raise InsufficientLiquidity("Stable pool balances must be positive")

    total = S(sum(b.value for b in balances))
    d = total
    amp_times_n = S(amp) * n

    for _ in range(MAX_ITERATIONS):
        d_p = d
        for balance in balances:
            d_p = (d_p * d) // (S(n) * balance.value)

        numerator = ((amp_times_n * total) // AMP_PRECISION + d_p * n) * d
        denominator = ((amp_times_n - AMP_PRECISION) * d) // AMP_PRECISION + d_p * (n + 1)
        d_prev, d = d, numerator // denominator

        if abs(d.value - d_prev.value) <= 1:
            return Bfp(d.value)

    raise InsufficientLiquidity(f"Stable invariant did not converge in {MAX_ITERATIONS} steps")


def balance_given_invariant(amp: int, balances: list[Bfp], invariant: Bfp, index: int) -> Bfp:
    """Solve for balances[index] keeping the invariant, other balances fixed.

    Raises:
        InsufficientLiquidity: When the iteration diverges or does not converge
    """
    n = len(balances)
    d = S(invariant.value)
    amp_times_total = S(amp) * n

    total = S(balances[0].value)
    p_d = S(balances[0].value) * n
    for j in range(1, n):
        p_d = (p_d * balances[j].value * n) // d
        total = total + balances[j].value
    others = total - balances[index].value

    d_squared = d * d
    c = d_squared.ceiling_div(amp_times_total * p_d) * AMP_PRECISION * balances[index].value
    b = others + (d // amp_times_total) * AMP_PRECISION

    y = (d_squared + c).ceiling_div(d + b)
    for _ in range(MAX_ITERATIONS):
        y_prev = y
        denominator = y * 2 + b
        if denominator <= d:
            raise InsufficientLiquidity("Stable balance iteration diverged")
        y = (y * y + c).ceiling_div(denominator - d)
        if abs(y.value - y_prev.value) <= 1:
            return Bfp(y.value)

    raise InsufficientLiquidity(f"Stable balance did not converge in {MAX_ITERATIONS} steps")


def calc_out_given_in(
    amp: int, balances: list[Bfp], index_in: int, index_out: int, amount_in: Bfp
) -> Bfp:
    """Decrease of the out-balance after adding amount_in (fee already taken).

    Returns old_out - new_out - 1; the extra unit keeps the model below the
    on-chain result.
    """
    if index_in == index_out:
        raise InsufficientLiquidity("Cannot swap a token with itself")

    try:
        invariant = calculate_invariant(amp, balances)
        updated = list(balances)
        updated[index_in] = Bfp(balances[index_in].value + amount_in.value)
        new_out = balance_given_invariant(amp, updated, invariant, index_out)
    except SafeIntError as e:
        raise InsufficientLiquidity(f"Stable math failed: {e}") from e

    old_out = balances[index_out].value
    if new_out.value >= old_out:
        return Bfp(0)
    return Bfp(old_out - new_out.value - 1)


def scaled_amplification(amplification: Decimal) -> int:
    return int(Decimal(amplification) * AMP_PRECISION)


def swap_exact_input(pool: StablePool, token_in: str, token_out: str, amount_in: int) -> int:
    """Simulate selling amount_in of token_in into the pool.

    Raises:
        InvalidAmount: If amount_in is not positive
        InsufficientLiquidity: If the pool cannot fill the trade
    """
    if amount_in <= 0:
        raise InvalidAmount(f"Input amount must be positive, got {amount_in}")

    index_in = pool.index_of(token_in)
    index_out = pool.index_of(token_out)
    factors = [r.token.scaling_factor for r in pool.reserves]
    balances = [scale_up(r.balance, f) for r, f in zip(pool.reserves, factors)]

    amount_scaled = scale_up(amount_in, factors[index_in])
    amount_after_fee = subtract_swap_fee_amount(amount_scaled.value, pool.fee)

    amount_out = calc_out_given_in(
        scaled_amplification(pool.amplification),
        balances,
        index_in,
        index_out,
        Bfp(amount_after_fee),
    )
    return scale_down_down(amount_out, factors[index_out])


__all__ = [
    "MAX_ITERATIONS",
    "calculate_invariant",
    "balance_given_invariant",
    "calc_out_given_in",
    "scaled_amplification",
    "swap_exact_input",
]
