"""Single swap step within one liquidity range (exact input only)."""

from __future__ import annotations

from dataclasses import dataclass

from dexroute.math.full_math import mul_div, mul_div_rounding_up
from dexroute.math.sqrt_price_math import (
    get_amount0_delta,
    get_amount1_delta,
    get_next_sqrt_price_from_input,
)

# Fees are expressed in hundredths of a basis point
FEE_DENOMINATOR = 1_000_000


@dataclass(frozen=True)
class SwapStep:
    """Outcome of swapping within a single tick range."""

    sqrt_price_next_x96: int
    amount_in: int
    amount_out: int
    fee_amount: int


def compute_swap_step(
    sqrt_price_current_x96: int,
    sqrt_price_target_x96: int,
    liquidity: int,
    amount_remaining: int,
    fee_pips: int,
) -> SwapStep:
    """Swap as much of amount_remaining as the range allows.

    The direction is implied by the target: moving down means token0 in.
    The fee is taken from the input; when the target is reached the fee is
    charged on the consumed amount, otherwise the whole remainder beyond the
    consumed input is the fee.

    Args:
        sqrt_price_current_x96: Current Q64.96 sqrt price
        sqrt_price_target_x96: Price not to be exceeded (next tick or limit)
        liquidity: Active liquidity in the range
        amount_remaining: Input still to be swapped (including fee)
        fee_pips: Pool fee in hundredths of a bip (3000 = 0.3%)

    Returns:
        SwapStep with the new price and amounts moved
    """
    zero_for_one = sqrt_price_current_x96 >= sqrt_price_target_x96

    amount_remaining_less_fee = mul_div(
        amount_remaining, FEE_DENOMINATOR - fee_pips, FEE_DENOMINATOR
    )
    if zero_for_one:
        amount_in = get_amount0_delta(
            sqrt_price_target_x96, sqrt_price_current_x96, liquidity, round_up=True
        )
    else:
        amount_in = get_amount1_delta(
            sqrt_price_current_x96, sqrt_price_target_x96, liquidity, round_up=True
        )

    if amount_remaining_less_fee >= amount_in:
        sqrt_price_next = sqrt_price_target_x96
    else:
        sqrt_price_next = get_next_sqrt_price_from_input(
            sqrt_price_current_x96, liquidity, amount_remaining_less_fee, zero_for_one
        )

    reached_target = sqrt_price_next == sqrt_price_target_x96

    if zero_for_one:
        if not reached_target:
            amount_in = get_amount0_delta(
                sqrt_price_next, sqrt_price_current_x96, liquidity, round_up=True
            )
        amount_out = get_amount1_delta(
            sqrt_price_next, sqrt_price_current_x96, liquidity, round_up=False
        )
    else:
        if not reached_target:
            amount_in = get_amount1_delta(
                sqrt_price_current_x96, sqrt_price_next, liquidity, round_up=True
            )
        amount_out = get_amount0_delta(
            sqrt_price_current_x96, sqrt_price_next, liquidity, round_up=False
        )

    if not reached_target:
        fee_amount = amount_remaining - amount_in
    else:
        fee_amount = mul_div_rounding_up(amount_in, fee_pips, FEE_DENOMINATOR - fee_pips)

    return SwapStep(
        sqrt_price_next_x96=sqrt_price_next,
        amount_in=amount_in,
        amount_out=amount_out,
        fee_amount=fee_amount,
    )


__all__ = ["FEE_DENOMINATOR", "SwapStep", "compute_swap_step"]
