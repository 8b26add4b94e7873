"""Pool snapshots for the three supported AMM variants.

Pools form a closed set: ConcentratedPool, WeightedPool and StablePool, each
tagged with a PoolKind. AMM dispatch switches on the tag (see amm.base).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Union

from dexroute.constants import NEUTRAL_HOOKS
from dexroute.math.tick_math import MAX_TICK, MIN_TICK
from dexroute.models.tokens import Token, routing_address
from dexroute.models.types import address_bytes, normalize_address

# Hundredths of a basis point per unit (3000 pips = 0.3%)
PIPS_PER_UNIT = 1_000_000


class PoolKind(str, Enum):
    CONCENTRATED = "concentrated"
    WEIGHTED = "weighted"
    STABLE = "stable"


def _check_ordered(tokens: tuple[Token, ...], pool_id: str) -> None:
    """Token addresses must be strictly increasing byte-wise."""
    for a, b in zip(tokens, tokens[1:]):
        if address_bytes(a.address) >= address_bytes(b.address):
            raise ValueError(
                f"Pool {pool_id}: tokens not strictly ordered ({a.address}, {b.address})"
            )


def sort_tokens(a: Token, b: Token) -> tuple[Token, Token]:
    """Order a token pair the way pools store it."""
    return (a, b) if address_bytes(a.address) < address_bytes(b.address) else (b, a)


@dataclass(frozen=True)
class TickRecord:
    """An initialized tick boundary."""

    index: int
    liquidity_net: int
    liquidity_gross: int


@dataclass(frozen=True)
class PoolKey:
    """Identifies a concentrated pool to the singleton pool manager."""

    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str

    def as_abi_tuple(self) -> tuple[str, str, int, int, str]:
        return (self.currency0, self.currency1, self.fee, self.tick_spacing, self.hooks)


@dataclass(frozen=True)
class ConcentratedPool:
    """Concentrated-liquidity pool snapshot.

    Attributes:
        id: Pool id (32-byte key as hex)
        token0: Lower-address token (currency0)
        token1: Higher-address token (currency1)
        fee: Swap fee in pips (e.g. 3000 for 0.3%)
        tick_spacing: Spacing between usable ticks
        sqrt_price_x96: Current Q64.96 sqrt price
        tick: Largest tick whose sqrt price is <= sqrt_price_x96
        liquidity: Active liquidity at the current price
        ticks: Initialized ticks, strictly increasing, spacing-aligned
        hooks: Hooks contract (zero address for none)
        tvl_usd: Indexer-reported total value locked, used for filtering
    """

    kind: ClassVar[PoolKind] = PoolKind.CONCENTRATED

    id: str
    token0: Token
    token1: Token
    fee: int
    tick_spacing: int
    sqrt_price_x96: int
    tick: int
    liquidity: int
    ticks: tuple[TickRecord, ...] = ()
    hooks: str = NEUTRAL_HOOKS
    tvl_usd: Decimal = Decimal(0)

    def __post_init__(self) -> None:
        _check_ordered((self.token0, self.token1), self.id)
        if self.tick_spacing <= 0:
            raise ValueError(f"Pool {self.id}: tick spacing must be positive")
        if not 0 <= self.fee < PIPS_PER_UNIT:
            raise ValueError(f"Pool {self.id}: fee {self.fee} out of range")
        object.__setattr__(self, "hooks", normalize_address(self.hooks))

    @property
    def address(self) -> str:
        return self.id

    @property
    def tokens(self) -> tuple[Token, ...]:
        return (self.token0, self.token1)

    @property
    def swap_fee(self) -> Decimal:
        return Decimal(self.fee) / PIPS_PER_UNIT

    @property
    def pool_key(self) -> PoolKey:
        return PoolKey(
            currency0=self.token0.address,
            currency1=self.token1.address,
            fee=self.fee,
            tick_spacing=self.tick_spacing,
            hooks=self.hooks,
        )

    @property
    def has_neutral_hooks(self) -> bool:
        return self.hooks == NEUTRAL_HOOKS

    def zero_for_one(self, token_in: str) -> bool:
        """True when token_in is currency0 (the price moves down)."""
        return self.resolve(token_in) == self.token0

    def resolve(self, address: str) -> Token:
        return _resolve(self.tokens, address, self.id)

    def other(self, address: str) -> Token:
        token = self.resolve(address)
        return self.token1 if token == self.token0 else self.token0


@dataclass(frozen=True)
class WeightedToken:
    """Per-token state of a weighted pool (weight is a fraction of 1)."""

    token: Token
    balance: int
    weight: Decimal


@dataclass(frozen=True)
class WeightedPool:
    """Weighted constant-product pool snapshot.

    Attributes:
        id: 32-byte pool id used by the vault
        address: Pool contract address
        tokens: Per-token state, sorted by address
        fee: Swap fee as a fraction (0.003 for 0.3%)
        liquidity: Indexer-reported total liquidity (USD), used for filtering
    """

    kind: ClassVar[PoolKind] = PoolKind.WEIGHTED

    id: str
    address: str
    reserves: tuple[WeightedToken, ...]
    fee: Decimal
    liquidity: int = 0

    def __post_init__(self) -> None:
        if len(self.reserves) < 2:
            raise ValueError(f"Pool {self.id}: weighted pools need at least two tokens")
        _check_ordered(self.tokens, self.id)
        object.__setattr__(self, "address", normalize_address(self.address))

    @property
    def tokens(self) -> tuple[Token, ...]:
        return tuple(r.token for r in self.reserves)

    @property
    def token0(self) -> Token:
        return self.reserves[0].token

    @property
    def token1(self) -> Token:
        return self.reserves[1].token

    @property
    def swap_fee(self) -> Decimal:
        return self.fee

    def reserve(self, address: str) -> WeightedToken:
        token = _resolve(self.tokens, address, self.id)
        return next(r for r in self.reserves if r.token == token)

    def resolve(self, address: str) -> Token:
        return _resolve(self.tokens, address, self.id)

    def with_balances(self, balances: dict[str, int]) -> WeightedPool:
        """Copy with balances replaced (keys are lowercase token addresses)."""
        reserves = tuple(
            WeightedToken(r.token, balances.get(r.token.address, r.balance), r.weight)
            for r in self.reserves
        )
        return WeightedPool(self.id, self.address, reserves, self.fee, self.liquidity)


@dataclass(frozen=True)
class StableToken:
    token: Token
    balance: int


@dataclass(frozen=True)
class StablePool:
    """Stable (amplified invariant) pool snapshot.

    Attributes:
        amplification: Raw amplification parameter A (unscaled; the stable
            math multiplies by AMP_PRECISION internally)
    """

    kind: ClassVar[PoolKind] = PoolKind.STABLE

    id: str
    address: str
    reserves: tuple[StableToken, ...]
    amplification: Decimal
    fee: Decimal
    liquidity: int = 0

    def __post_init__(self) -> None:
        if len(self.reserves) < 2:
            raise ValueError(f"Pool {self.id}: stable pools need at least two tokens")
        _check_ordered(self.tokens, self.id)
        object.__setattr__(self, "address", normalize_address(self.address))

    @property
    def tokens(self) -> tuple[Token, ...]:
        return tuple(r.token for r in self.reserves)

    @property
    def token0(self) -> Token:
        return self.reserves[0].token

    @property
    def token1(self) -> Token:
        return self.reserves[1].token

    @property
    def swap_fee(self) -> Decimal:
        return self.fee

    def index_of(self, address: str) -> int:
        token = _resolve(self.tokens, address, self.id)
        return self.tokens.index(token)

    def resolve(self, address: str) -> Token:
        return _resolve(self.tokens, address, self.id)

    def with_balances(self, balances: dict[str, int]) -> StablePool:
        reserves = tuple(
            StableToken(r.token, balances.get(r.token.address, r.balance)) for r in self.reserves
        )
        return StablePool(
            self.id, self.address, reserves, self.amplification, self.fee, self.liquidity
        )


Pool = Union[ConcentratedPool, WeightedPool, StablePool]


def _resolve(tokens: tuple[Token, ...], address: str, pool_id: str) -> Token:
    """Find the pool token for an address.

    An exact match wins; otherwise native and wrapped-native are treated as
    the same routing vertex.
    """
    addr = normalize_address(address)
    for token in tokens:
        if token.address == addr:
            return token
    key = routing_address(addr)
    for token in tokens:
        if routing_address(token.address) == key:
            return token
    raise ValueError(f"Token {address} not in pool {pool_id}")


def pool_liquidity(pool: Pool) -> int:
    """Liquidity scalar used by filters."""
    return pool.liquidity


def pool_tick_bounds_ok(pool: ConcentratedPool) -> bool:
    return all(
        MIN_TICK <= t.index <= MAX_TICK and t.index % pool.tick_spacing == 0 for t in pool.ticks
    )


__all__ = [
    "PoolKind",
    "PIPS_PER_UNIT",
    "TickRecord",
    "PoolKey",
    "ConcentratedPool",
    "WeightedToken",
    "WeightedPool",
    "StableToken",
    "StablePool",
    "Pool",
    "sort_tokens",
    "pool_liquidity",
    "pool_tick_bounds_ok",
]
