"""Execution plans: routes flattened into levelled pool steps.

A plan is a PoolExecutionStructure: every step names the pool it trades on,
its input and output tokens and the hop layer (level) it belongs to. Level-0
steps read the trade's input token; level-k steps read what level k-1
produced.

Building a plan runs three passes over the normalized structure:

1. wrap-operation assignment (native vs wrapped-native reconciliation)
2. stable sort by input amount within each (level, input token) group
3. use-all-balance marking: exactly the last step of each group
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any

import structlog

from dexroute.constants import NEUTRAL_HOOKS, USE_ALL_BALANCE
from dexroute.errors import InsufficientRouteData, MissingPoolIdentifier, UnknownRouteType
from dexroute.models.pools import (
    ConcentratedPool,
    Pool,
    PoolKey,
    PoolKind,
    StablePool,
    WeightedPool,
)
from dexroute.models.quote import Quote
from dexroute.models.route import Route, SplitRoute
from dexroute.models.tokens import (
    Token,
    is_native,
    is_wrapped_native,
    routing_address,
)
from dexroute.models.types import normalize_address, validate_uint256

logger = structlog.get_logger()

BPS = 10_000


class WrapOp(IntEnum):
    """Native-currency conversion performed around a step by the bundler."""

    NONE = 0
    WRAP_BEFORE = 1
    WRAP_AFTER = 2
    UNWRAP_BEFORE = 3
    UNWRAP_AFTER = 4


_PROTOCOL_KINDS = {
    "uniswap": PoolKind.CONCENTRATED,
    "concentrated": PoolKind.CONCENTRATED,
    "balancer": PoolKind.WEIGHTED,
    "weighted": PoolKind.WEIGHTED,
    "stable": PoolKind.STABLE,
}


@dataclass(frozen=True)
class PoolRef:
    """What the compiler needs to know about a pool.

    Attributes:
        kind: Pool variant, selects the encoder
        id: Pool id (32-byte key or address)
        address: Address passed to the weighted encoder
        tokens: Pool-side token addresses (currency0, currency1 for
            concentrated pools)
        fee / tick_spacing / hooks: PoolKey fields (concentrated only)
    """

    kind: PoolKind
    id: str
    address: str
    tokens: tuple[str, ...] = ()
    fee: int = 0
    tick_spacing: int = 0
    hooks: str = NEUTRAL_HOOKS

    @classmethod
    def from_pool(cls, pool: Pool) -> PoolRef:
        if isinstance(pool, ConcentratedPool):
            return cls(
                kind=pool.kind,
                id=pool.id,
                address=pool.address,
                tokens=(pool.token0.address, pool.token1.address),
                fee=pool.fee,
                tick_spacing=pool.tick_spacing,
                hooks=pool.hooks,
            )
        return cls(
            kind=pool.kind,
            id=pool.id,
            address=pool.address,
            tokens=tuple(t.address for t in pool.tokens),
        )

    @property
    def pool_key(self) -> PoolKey:
        """PoolKey of a concentrated pool.

        Raises:
            MissingPoolIdentifier: If the pool is not concentrated or its key
                is incomplete
        """
        if self.kind is not PoolKind.CONCENTRATED or len(self.tokens) != 2 or not self.tick_spacing:
            raise MissingPoolIdentifier(f"Pool {self.id} has no complete pool key")
        return PoolKey(self.tokens[0], self.tokens[1], self.fee, self.tick_spacing, self.hooks)

    def pool_side(self, address: str) -> str:
        """Address the pool actually holds for a token.

        Weighted and stable pools never hold the native currency, so native
        maps to its wrapper when the token list is unknown.
        """
        addr = normalize_address(address)
        if addr in self.tokens:
            return addr
        key = routing_address(addr)
        for token in self.tokens:
            if routing_address(token) == key:
                return token
        if self.kind is not PoolKind.CONCENTRATED:
            return key
        return addr

    def zero_for_one(self, token_in: str) -> bool:
        return self.pool_side(token_in) == self.pool_key.currency0


@dataclass(frozen=True)
class PlanStep:
    """One encoder call of an execution plan.

    token_in / token_out are the tokens the pool trades. expected_output is
    None for intermediate hops, whose minimum output is then 0.
    """

    level: int
    pool: PoolRef
    token_in: Token
    token_out: Token
    amount_in: int
    expected_output: int | None = None
    wrap_op: WrapOp = WrapOp.NONE
    use_all_balance: bool = False

    @property
    def kind(self) -> PoolKind:
        return self.pool.kind

    @property
    def input_key(self) -> str:
        return routing_address(self.token_in.address)

    @property
    def encoded_amount(self) -> int:
        return USE_ALL_BALANCE if self.use_all_balance else self.amount_in

    @property
    def encoded_token_in(self) -> str:
        """Input token the encoder passes to the pool.

        This is the side the pool holds, so after a wrap before the step
        (op 1) it is the wrapped native token and after an unwrap (op 3) the
        native currency.
        """
        return self.pool.pool_side(self.token_in.address)

    @property
    def encoded_token_out(self) -> str:
        return self.pool.pool_side(self.token_out.address)


@dataclass(frozen=True)
class PoolExecutionStructure:
    """Levelled steps of a route; step order is execution order."""

    steps: tuple[PlanStep, ...]

    def __post_init__(self) -> None:
        if not self.steps:
            raise InsufficientRouteData("Execution structure has no steps")

    @property
    def level_count(self) -> int:
        return max(s.level for s in self.steps) + 1

    def level(self, index: int) -> tuple[PlanStep, ...]:
        return tuple(s for s in self.steps if s.level == index)

    @property
    def levels(self) -> list[tuple[PlanStep, ...]]:
        return [self.level(i) for i in range(self.level_count)]

    @property
    def from_amount(self) -> int:
        return sum(s.amount_in for s in self.level(0))


@dataclass(frozen=True)
class TradeContext:
    """The user-facing side of a trade.

    from_token / to_token are what the user sends and receives, which may
    be the native currency even when every pool trades the wrapper.
    """

    from_token: Token
    to_token: Token
    amount_in: int | None = None
    slippage_bps: int = 50


def min_amount_out(expected_output: int | None, slippage_bps: int) -> int:
    """Slippage-protected minimum output of a step.

    Args:
        expected_output: Quoted output of the step, None for intermediate hops
        slippage_bps: Tolerated slippage in basis points

    Returns:
        expected_output * (10000 - slippage_bps) // 10000, or 0 when there is
        no expected output
    """
    if not expected_output:
        return 0
    return expected_output * (BPS - slippage_bps) // BPS


# Normalization


def _steps_from_route(route: Route) -> list[PlanStep]:
    last = len(route.legs) - 1
    return [
        PlanStep(
            level=i,
            pool=PoolRef.from_pool(leg.pool),
            token_in=leg.token_in,
            token_out=leg.token_out,
            amount_in=leg.amount_in,
            expected_output=leg.expected_output if i == last else None,
        )
        for i, leg in enumerate(route.legs)
    ]


def _token_from(raw: Any) -> Token | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, Token):
        return raw
    if isinstance(raw, str):
        return Token(raw)
    if isinstance(raw, Mapping) and raw.get("address"):
        return Token(raw["address"], raw.get("symbol") or "", int(raw.get("decimals", 18)))
    return None


def _amount_from(raw: Mapping[str, Any], *keys: str) -> int | None:
    for key in keys:
        if raw.get(key) is not None:
            return validate_uint256(raw[key])
    return None


def _pool_ref_from(raw: Mapping[str, Any]) -> PoolRef:
    pool = raw.get("pool")
    if isinstance(pool, (ConcentratedPool, WeightedPool, StablePool)):
        return PoolRef.from_pool(pool)
    if isinstance(pool, PoolRef):
        return pool
    if isinstance(pool, Mapping):
        raw = {**pool, **{k: v for k, v in raw.items() if k != "pool"}}

    pool_id = raw.get("poolId") or raw.get("id")
    address = raw.get("poolAddress") or raw.get("address")
    if not pool_id and not address:
        raise MissingPoolIdentifier(f"Step has no pool id or address: {dict(raw)}")

    protocol = str(raw.get("protocol") or raw.get("kind") or "").lower()
    kind = _PROTOCOL_KINDS.get(protocol)
    if kind is None:
        raise UnknownRouteType(f"Unknown step protocol: {protocol!r}")

    key = raw.get("poolKey") or {}
    tokens = tuple(
        normalize_address(t)
        for t in (
            [key.get("currency0"), key.get("currency1")]
            if key
            else raw.get("tokens") or []
        )
        if t
    )
    return PoolRef(
        kind=kind,
        id=str(pool_id or address).lower(),
        address=normalize_address(address or pool_id),
        tokens=tokens,
        fee=int(key.get("fee", raw.get("fee", 0))),
        tick_spacing=int(key.get("tickSpacing", raw.get("tickSpacing", 0))),
        hooks=normalize_address(key.get("hooks", raw.get("hooks")) or NEUTRAL_HOOKS),
    )


def _step_from_mapping(
    raw: Mapping[str, Any],
    level: int,
    previous_output: Token | None,
    trade: TradeContext | None,
    is_last: bool,
) -> PlanStep:
    token_in = _token_from(raw.get("inputToken") or raw.get("tokenIn")) or previous_output
    if token_in is None and level == 0 and trade is not None:
        token_in = trade.from_token
    token_out = _token_from(raw.get("outputToken") or raw.get("tokenOut"))
    if token_out is None and is_last and trade is not None:
        token_out = trade.to_token
    if token_in is None or token_out is None:
        raise InsufficientRouteData(f"Cannot resolve tokens of step at level {level}")

    amount_in = _amount_from(raw, "inputAmount", "amountIn", "input", "amount")
    if amount_in is None:
        if level == 0 and trade is not None and trade.amount_in is not None:
            amount_in = trade.amount_in
        else:
            amount_in = 0
    return PlanStep(
        level=int(raw.get("level", level)),
        pool=_pool_ref_from(raw),
        token_in=token_in,
        token_out=token_out,
        amount_in=amount_in,
        expected_output=_amount_from(raw, "expectedOutput", "output"),
    )


def _steps_from_legs(
    legs: Sequence[Mapping[str, Any]], trade: TradeContext | None
) -> list[PlanStep]:
    steps: list[PlanStep] = []
    previous: Token | None = None
    for i, leg in enumerate(legs):
        step = _step_from_mapping(leg, i, previous, trade, i == len(legs) - 1)
        steps.append(step)
        previous = step.token_out
    return steps


def _steps_from_structure(
    structure: Mapping[str, Any], trade: TradeContext | None
) -> list[PlanStep]:
    levels = structure.get("levels")
    if not levels:
        raise InsufficientRouteData("poolExecutionStructure has no levels")
    ordered = sorted(levels, key=lambda lv: int(lv.get("level", 0)))
    steps: list[PlanStep] = []
    previous_outputs: list[Token] = []
    for position, level in enumerate(ordered):
        index = int(level.get("level", position))
        pools = level.get("pools") or []
        distinct = {routing_address(t.address): t for t in previous_outputs}
        previous = next(iter(distinct.values())) if len(distinct) == 1 else None
        outputs = []
        for raw in pools:
            step = _step_from_mapping(raw, index, previous, trade, position == len(ordered) - 1)
            steps.append(step)
            outputs.append(step.token_out)
        previous_outputs = outputs
    return steps


def _normalize_mapping(route: Mapping[str, Any], trade: TradeContext | None) -> list[PlanStep]:
    if "poolExecutionStructure" in route and route["poolExecutionStructure"]:
        structure = route["poolExecutionStructure"]
        if isinstance(structure, PoolExecutionStructure):
            return list(structure.steps)
        return _steps_from_structure(structure, trade)

    route_type = route.get("type")
    if route_type is None:
        raise UnknownRouteType("Route has neither an execution structure nor a type tag")
    route_type = str(route_type).lower()

    if route_type == "single":
        legs = route.get("legs") or (route.get("path") or {}).get("legs")
        if not legs:
            raise InsufficientRouteData("Single route has no legs")
        return _steps_from_legs(legs, trade)

    if route_type == "split":
        routes = route.get("routes") or route.get("splits")
        if not routes:
            raise InsufficientRouteData("Split route has no routes")
        steps = []
        for sub in routes:
            legs = sub.get("legs") if isinstance(sub, Mapping) else None
            if not legs:
                raise InsufficientRouteData("Split member has no legs")
            steps.extend(_steps_from_legs(legs, trade))
        return steps

    if route_type == "cross-dex":
        if route.get("legs"):
            return _steps_from_legs(route["legs"], trade)
        raise InsufficientRouteData(
            "Cross-venue route has neither poolExecutionStructure nor legs"
        )

    raise UnknownRouteType(f"Unknown route type: {route_type!r}")


def normalize_route(route: Any, trade: TradeContext | None = None) -> PoolExecutionStructure:
    """Flatten a route into a PoolExecutionStructure.

    Accepts a Route, a SplitRoute, a Quote carrying either, an existing
    PoolExecutionStructure (returned unchanged) or a mapping tagged with
    `type` ("single", "split", "cross-dex") or carrying a
    `poolExecutionStructure`.

    Raises:
        UnknownRouteType: If the route type cannot be recognised
        InsufficientRouteData: If a route lacks the legs to rebuild it
        MissingPoolIdentifier: If a step cannot be tied to a pool
    """
    if isinstance(route, PoolExecutionStructure):
        return route
    if isinstance(route, Quote):
        if route.trade_data is None:
            raise InsufficientRouteData(f"{route.protocol.value} quote carries no route")
        return normalize_route(route.trade_data, trade)
    if isinstance(route, Route):
        return PoolExecutionStructure(tuple(_steps_from_route(route)))
    if isinstance(route, SplitRoute):
        steps = []
        for sub in route.routes:
            steps.extend(_steps_from_route(sub))
        return PoolExecutionStructure(tuple(steps))
    if isinstance(route, Mapping):
        return PoolExecutionStructure(tuple(_normalize_mapping(route, trade)))
    raise UnknownRouteType(f"Cannot normalize route of type {type(route).__name__}")


# Plan passes


_INPUT_OPS = (WrapOp.WRAP_BEFORE, WrapOp.UNWRAP_BEFORE)


def _input_wrap_op(sent: str, expected: str) -> WrapOp:
    if is_native(sent) and is_wrapped_native(expected):
        return WrapOp.WRAP_BEFORE
    if is_wrapped_native(sent) and is_native(expected):
        return WrapOp.UNWRAP_BEFORE
    return WrapOp.NONE


def _output_wrap_op(produced: str, wanted: str) -> WrapOp:
    if is_native(produced) and is_wrapped_native(wanted):
        return WrapOp.WRAP_AFTER
    if is_wrapped_native(produced) and is_native(wanted):
        return WrapOp.UNWRAP_AFTER
    return WrapOp.NONE


def assign_wrap_ops(
    structure: PoolExecutionStructure, trade: TradeContext
) -> PoolExecutionStructure:
    """Reconcile native and wrapped-native between user, pools and steps.

    Level-0 steps compare the token the user sends with the token the pool
    expects (1 wrap before, 3 unwrap before). A step whose output differs
    from what its consumers expect, or from the token the user receives when
    no later step consumes it, gets 2 (wrap after) or 4 (unwrap after). A step carries
    one operation; an input-side operation takes precedence.
    """
    ops: list[WrapOp] = []
    for step in structure.steps:
        op = WrapOp.NONE
        if step.level == 0:
            expected = step.pool.pool_side(step.token_in.address)
            op = _input_wrap_op(trade.from_token.address, expected)
        if op is WrapOp.NONE:
            produced = step.pool.pool_side(step.token_out.address)
            key = routing_address(step.token_out.address)
            consumers = [c for c in structure.level(step.level + 1) if c.input_key == key]
            if not consumers:
                op = _output_wrap_op(produced, trade.to_token.address)
            for consumer in consumers:
                expected = consumer.pool.pool_side(consumer.token_in.address)
                op = _output_wrap_op(produced, expected)
                if op is not WrapOp.NONE:
                    break
        ops.append(op)

    # A producer that already wraps its input cannot also convert its output;
    # the consumer converts its input instead.
    for i, step in enumerate(structure.steps):
        if step.level == 0 or ops[i] is not WrapOp.NONE:
            continue
        expected = step.pool.pool_side(step.token_in.address)
        for j, producer in enumerate(structure.steps):
            if producer.level != step.level - 1 or ops[j] not in _INPUT_OPS:
                continue
            if routing_address(producer.token_out.address) != step.input_key:
                continue
            produced = producer.pool.pool_side(producer.token_out.address)
            ops[i] = _input_wrap_op(produced, expected)
            if ops[i] is not WrapOp.NONE:
                break

    steps = tuple(replace(step, wrap_op=op) for step, op in zip(structure.steps, ops))
    return PoolExecutionStructure(steps)


def mark_use_all_balance(structure: PoolExecutionStructure) -> PoolExecutionStructure:
    """Sort each (level, input token) group by input amount; mark its last step.

    Groups keep the position of their first step; the sort is stable, so
    equal amounts keep their original order.
    """
    groups: dict[tuple[int, str], list[PlanStep]] = {}
    for step in sorted(structure.steps, key=lambda s: s.level):
        groups.setdefault((step.level, step.input_key), []).append(step)

    steps: list[PlanStep] = []
    for members in groups.values():
        ordered = sorted(members, key=lambda s: s.amount_in)
        for i, step in enumerate(ordered):
            steps.append(replace(step, use_all_balance=i == len(ordered) - 1))
    return PoolExecutionStructure(tuple(steps))


def build_execution_plan(route: Any, trade: TradeContext) -> PoolExecutionStructure:
    """Normalize a route and run the wrap, sort and use-all passes.

    Idempotent: building from an already built plan returns an equal plan.
    """
    structure = normalize_route(route, trade)
    structure = assign_wrap_ops(structure, trade)
    plan = mark_use_all_balance(structure)
    logger.debug(
        "execution_plan_built",
        steps=len(plan.steps),
        levels=plan.level_count,
        wrap_ops=[int(s.wrap_op) for s in plan.steps],
    )
    return plan


__all__ = [
    "BPS",
    "WrapOp",
    "PoolRef",
    "PlanStep",
    "PoolExecutionStructure",
    "TradeContext",
    "min_amount_out",
    "normalize_route",
    "assign_wrap_ops",
    "mark_use_all_balance",
    "build_execution_plan",
]
