"""Decimal scaling and fee helpers for weighted and stable pools.

Pool math runs on 18-decimal fixed point; token amounts are scaled up on the
way in and rounded down on the way out so the model never over-promises.
"""

from decimal import Decimal

from dexroute.errors import InsufficientLiquidity
from dexroute.math.fixed_point import Bfp


def scale_up(amount: int, scaling_factor: int) -> Bfp:
    """Lift a raw token amount to 18 decimals."""
    if scaling_factor <= 0:
        raise ValueError(f"Scaling factor must be positive, got {scaling_factor}")
    return Bfp(amount * scaling_factor)


def scale_down_down(bfp: Bfp, scaling_factor: int) -> int:
    """Bring an 18-decimal result back to token decimals, rounding down."""
    if scaling_factor <= 0:
        raise ValueError(f"Scaling factor must be positive, got {scaling_factor}")
    return bfp.value // scaling_factor


def subtract_swap_fee_amount(amount: int, swap_fee: Decimal) -> int:
    """Deduct the swap fee from an (already scaled) input amount.

    Args:
        amount: Scaled input amount before fee
        swap_fee: Fee as a fraction in [0, 1)

    Returns:
        amount - ceil(amount * fee)

    Raises:
        InsufficientLiquidity: If the fee is outside [0, 1)
    """
    if swap_fee < 0 or swap_fee >= 1:
        raise InsufficientLiquidity(f"Swap fee must be in range [0, 1), got {swap_fee}")
    amount_bfp = Bfp(amount)
    fee_amount = amount_bfp.mul_up(Bfp.from_decimal(swap_fee))
    return amount_bfp.sub(fee_amount).value


__all__ = ["scale_up", "scale_down_down", "subtract_swap_fee_amount"]
