"""Concentrated-liquidity swap simulation (exact input).

Replays the pool's swap loop against a tick snapshot: each iteration swaps
up to the next initialized tick (or the edge of the current 256-tick bitmap
word, as the on-chain search does), then crosses it by applying its
liquidityNet. Step boundaries follow the on-chain loop so that rounding, and
therefore output, matches the pool to the unit.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass

from dexroute.errors import InsufficientLiquidity, InvalidAmount
from dexroute.math.swap_math import compute_swap_step
from dexroute.math.tick_math import (
    MAX_SQRT_RATIO,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MIN_TICK,
    sqrt_price_at_tick,
    tick_at_sqrt_price,
)
from dexroute.models.pools import ConcentratedPool


@dataclass(frozen=True)
class ConcentratedSwapResult:
    amount_in: int
    amount_out: int
    sqrt_price_after_x96: int
    tick_after: int
    liquidity_after: int
    ticks_crossed: int


class _TickIndex:
    """Sorted view of a pool's initialized ticks."""

    def __init__(self, pool: ConcentratedPool) -> None:
        self.spacing = pool.tick_spacing
        self.indices = [t.index for t in pool.ticks]
        self.net = {t.index: t.liquidity_net for t in pool.ticks}

    def _compress(self, tick: int) -> int:
        return tick // self.spacing

    def next_within_word(self, tick: int, lte: bool) -> tuple[int, bool]:
        """Next initialized tick within one bitmap word.

        Returns (tick, initialized). When nothing is initialized in the
        word, the word boundary is returned with initialized=False.
        """
        compressed = self._compress(tick)
        if lte:
            word_start = (compressed >> 8) << 8
            pos = bisect_right(self.indices, compressed * self.spacing) - 1
            if pos >= 0 and self.indices[pos] >= word_start * self.spacing:
                return self.indices[pos], True
            return word_start * self.spacing, False

        compressed += 1
        word_end = ((compressed >> 8) << 8) + 255
        pos = bisect_left(self.indices, compressed * self.spacing)
        if pos < len(self.indices) and self.indices[pos] <= word_end * self.spacing:
            return self.indices[pos], True
        return word_end * self.spacing, False

    def next_initialized(self, tick: int, lte: bool) -> int | None:
        """Next initialized tick in the direction of trade, ignoring words."""
        if lte:
            pos = bisect_right(self.indices, tick) - 1
            return self.indices[pos] if pos >= 0 else None
        pos = bisect_right(self.indices, tick)
        return self.indices[pos] if pos < len(self.indices) else None


def swap_exact_input(
    pool: ConcentratedPool,
    token_in: str,
    amount_in: int,
) -> ConcentratedSwapResult:
    """Simulate selling amount_in of token_in into a concentrated pool.

    Args:
        pool: Pool snapshot with sanitized ticks
        token_in: Input token address (currency0 or currency1)
        amount_in: Exact input amount, fee included

    Returns:
        ConcentratedSwapResult with the output and post-swap state

    Raises:
        InvalidAmount: If amount_in is not positive
        InsufficientLiquidity: If the walk runs out of initialized ticks (or
            hits the price limit) before amount_in is consumed
    """
    if amount_in <= 0:
        raise InvalidAmount(f"Input amount must be positive, got {amount_in}")

    zero_for_one = pool.zero_for_one(token_in)
    price_limit = MIN_SQRT_RATIO + 1 if zero_for_one else MAX_SQRT_RATIO - 1
    ticks = _TickIndex(pool)

    remaining = amount_in
    amount_out = 0
    sqrt_price = pool.sqrt_price_x96
    tick = pool.tick
    liquidity = pool.liquidity
    crossed = 0

    while remaining > 0 and sqrt_price != price_limit:
        ahead = ticks.next_initialized(tick, lte=zero_for_one)
        if ahead is None:
            raise InsufficientLiquidity(
                f"Pool {pool.id}: ran out of ticks with {remaining} input left"
            )
        if liquidity == 0:
            # Empty range: nothing to trade until the next initialized tick
            tick_next, initialized = ahead, True
        else:
            tick_next, initialized = ticks.next_within_word(tick, lte=zero_for_one)
        tick_next = max(MIN_TICK, min(MAX_TICK, tick_next))

        sqrt_price_start = sqrt_price
        sqrt_price_next = sqrt_price_at_tick(tick_next)
        if zero_for_one:
            target = max(sqrt_price_next, price_limit)
        else:
            target = min(sqrt_price_next, price_limit)

        step = compute_swap_step(sqrt_price, target, liquidity, remaining, pool.fee)
        sqrt_price = step.sqrt_price_next_x96
        remaining -= step.amount_in + step.fee_amount
        amount_out += step.amount_out

        if sqrt_price == sqrt_price_next:
            if initialized:
                net = ticks.net[tick_next]
                liquidity += -net if zero_for_one else net
                if liquidity < 0:
                    raise InsufficientLiquidity(f"Pool {pool.id}: negative liquidity after cross")
                crossed += 1
            tick = tick_next - 1 if zero_for_one else tick_next
        elif sqrt_price != sqrt_price_start:
            tick = tick_at_sqrt_price(sqrt_price)

    if remaining > 0:
        raise InsufficientLiquidity(f"Pool {pool.id}: price limit reached with {remaining} left")

    return ConcentratedSwapResult(
        amount_in=amount_in,
        amount_out=amount_out,
        sqrt_price_after_x96=sqrt_price,
        tick_after=tick,
        liquidity_after=liquidity,
        ticks_crossed=crossed,
    )


__all__ = ["ConcentratedSwapResult", "swap_exact_input"]
