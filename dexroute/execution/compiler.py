"""Compile an execution plan into the bundler's call arguments."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.models.pools import PoolKind
from dexroute.models.tokens import is_native

from .encoding import (
    encode_bundler_execute,
    encode_concentrated_single_swap,
    encode_concentrated_use_all_balance,
    encode_weighted_single_swap,
    encode_weighted_use_all_balance,
)
from .plan import (
    PlanStep,
    PoolExecutionStructure,
    TradeContext,
    build_execution_plan,
    min_amount_out,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class CompiledCall:
    """Arguments of encodeAndExecuteaaaaaYops, plus the plan they came from.

    encoder_targets, encoder_calldata and wrap_operations are parallel
    arrays with one entry per plan step.
    """

    from_token: str
    from_amount: int
    to_token: str
    encoder_targets: tuple[str, ...]
    encoder_calldata: tuple[bytes, ...]
    wrap_operations: tuple[int, ...]
    plan: PoolExecutionStructure

    def as_args(self) -> tuple[str, int, str, list[str], list[bytes], list[int]]:
        return (
            self.from_token,
            self.from_amount,
            self.to_token,
            list(self.encoder_targets),
            list(self.encoder_calldata),
            list(self.wrap_operations),
        )


def encoder_for(step: PlanStep, settings: Settings = DEFAULT_SETTINGS) -> str:
    if step.kind is PoolKind.CONCENTRATED:
        return settings.concentrated_encoder
    return settings.weighted_encoder


def encode_step(step: PlanStep, slippage_bps: int) -> bytes:
    """Encoder calldata for one step.

    Use-all steps call the use-all-balance variant, which carries the wrap
    operation itself; others swap exactly amount_in.
    """
    min_out = min_amount_out(step.expected_output, slippage_bps)
    token_in = step.encoded_token_in

    if step.kind is PoolKind.CONCENTRATED:
        key = step.pool.pool_key
        zero_for_one = step.pool.zero_for_one(step.token_in.address)
        if step.use_all_balance:
            return encode_concentrated_use_all_balance(
                key, zero_for_one, min_out, int(step.wrap_op), token_in
            )
        return encode_concentrated_single_swap(key, zero_for_one, step.amount_in, min_out, token_in)

    token_out = step.encoded_token_out
    if step.use_all_balance:
        return encode_weighted_use_all_balance(
            step.pool.address, token_in, token_out, min_out, int(step.wrap_op)
        )
    return encode_weighted_single_swap(
        step.pool.address, token_in, token_out, step.amount_in, min_out
    )


def compile_execution_plan(
    route: Any, trade: TradeContext, settings: Settings = DEFAULT_SETTINGS
) -> CompiledCall:
    """Build the plan for a route and encode every step.

    Args:
        route: Anything normalize_route accepts
        trade: User-side tokens, input amount and slippage
        settings: Encoder contract addresses

    Raises:
        UnknownRouteType / InsufficientRouteData / MissingPoolIdentifier:
            From plan normalization
    """
    plan = build_execution_plan(route, trade)
    targets = tuple(encoder_for(step, settings) for step in plan.steps)
    calldata = tuple(encode_step(step, trade.slippage_bps) for step in plan.steps)
    wrap_ops = tuple(int(step.wrap_op) for step in plan.steps)

    compiled = CompiledCall(
        from_token=trade.from_token.address,
        from_amount=plan.from_amount,
        to_token=trade.to_token.address,
        encoder_targets=targets,
        encoder_calldata=calldata,
        wrap_operations=wrap_ops,
        plan=plan,
    )
    logger.info(
        "execution_plan_compiled",
        steps=len(plan.steps),
        from_amount=compiled.from_amount,
        use_all=[s.use_all_balance for s in plan.steps],
        wrap_ops=list(wrap_ops),
    )
    return compiled


def encode_bundler_call(compiled: CompiledCall) -> bytes:
    """Transaction data for the bundler contract."""
    return encode_bundler_execute(*compiled.as_args())


def transaction_value(compiled: CompiledCall) -> int:
    """Native value attached to the bundler call: from_amount iff selling native."""
    return compiled.from_amount if is_native(compiled.from_token) else 0


__all__ = [
    "CompiledCall",
    "compile_execution_plan",
    "encode_bundler_call",
    "encode_step",
    "encoder_for",
    "transaction_value",
]
