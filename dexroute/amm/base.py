"""Uniform swap entry point over the closed set of pool variants."""

from __future__ import annotations

from dataclasses import dataclass

from dexroute.constants import CONCENTRATED_BASE_GAS, CONCENTRATED_GAS_PER_HOP, WEIGHTED_SWAP_GAS
from dexroute.errors import InvalidAmount
from dexroute.models.pools import Pool, PoolKind

from . import concentrated, stable, weighted


@dataclass
class SwapResult:
    """Result of simulating a swap through one pool."""

    amount_in: int
    amount_out: int
    pool_id: str
    token_in: str
    token_out: str
    gas_estimate: int = WEIGHTED_SWAP_GAS


def pool_output(pool: Pool, token_in: str, amount_in: int) -> SwapResult:
    """Simulate an exact-input swap through any supported pool.

    Args:
        pool: Pool snapshot (concentrated, weighted or stable)
        token_in: Input token address; native and wrapped-native resolve to
            the same pool token
        amount_in: Exact input amount in the token's smallest unit

    Returns:
        SwapResult with the pool-side token addresses

    Raises:
        InvalidAmount: If amount_in is not positive
        InsufficientLiquidity: If the pool cannot fill the trade
    """
    if amount_in <= 0:
        raise InvalidAmount(f"Input amount must be positive, got {amount_in}")

    resolved_in = pool.resolve(token_in)

    if pool.kind is PoolKind.CONCENTRATED:
        resolved_out = pool.other(resolved_in.address)
        result = concentrated.swap_exact_input(pool, resolved_in.address, amount_in)
        return SwapResult(
            amount_in=amount_in,
            amount_out=result.amount_out,
            pool_id=pool.id,
            token_in=resolved_in.address,
            token_out=resolved_out.address,
            gas_estimate=CONCENTRATED_BASE_GAS + CONCENTRATED_GAS_PER_HOP * result.ticks_crossed,
        )

    # Multi-token pools: without an explicit output take the first other token
    resolved_out = next(t for t in pool.tokens if t != resolved_in)
    return pool_output_to(pool, resolved_in.address, resolved_out.address, amount_in)


def pool_output_to(pool: Pool, token_in: str, token_out: str, amount_in: int) -> SwapResult:
    """Like pool_output, with an explicit output token for multi-token pools."""
    if amount_in <= 0:
        raise InvalidAmount(f"Input amount must be positive, got {amount_in}")

    if pool.kind is PoolKind.CONCENTRATED:
        return pool_output(pool, token_in, amount_in)

    resolved_in = pool.resolve(token_in)
    resolved_out = pool.resolve(token_out)
    if pool.kind is PoolKind.WEIGHTED:
        amount_out = weighted.swap_exact_input(
            pool, resolved_in.address, resolved_out.address, amount_in
        )
    elif pool.kind is PoolKind.STABLE:
        amount_out = stable.swap_exact_input(
            pool, resolved_in.address, resolved_out.address, amount_in
        )
    else:
        raise ValueError(f"Unsupported pool kind: {pool.kind}")

    return SwapResult(
        amount_in=amount_in,
        amount_out=amount_out,
        pool_id=pool.id,
        token_in=resolved_in.address,
        token_out=resolved_out.address,
        gas_estimate=WEIGHTED_SWAP_GAS,
    )


__all__ = ["SwapResult", "pool_output", "pool_output_to"]
