"""Concentrated-liquidity pool source backed by an indexer.

Pools are discovered with three indexer queries issued in parallel:

1. pools whose both tokens lie in {from, to, hubs}
2. pools pairing an endpoint with a hub token
3. pools touching either endpoint (two-hop candidates)

The union (by pool id) is filtered on liquidity, TVL and hooks, and each
kept pool's tick list is sanitized before it reaches the AMM model.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from decimal import Decimal

import structlog
from pydantic import BaseModel, Field, ValidationError

from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.constants import NATIVE_ADDRESS, NEUTRAL_HOOKS, WRAPPED_NATIVE_ADDRESS
from dexroute.errors import DexRouteError, InvalidAmount, RateLimited
from dexroute.math.tick_math import MAX_TICK, MIN_TICK, tick_at_sqrt_price
from dexroute.models.pools import ConcentratedPool, TickRecord
from dexroute.models.quote import Protocol, Quote
from dexroute.models.tokens import Token, is_native, is_wrapped_native
from dexroute.models.types import Address, Uint256, normalize_address
from dexroute.routing.search import RouteSearch

from .subgraph import SubgraphClient

logger = structlog.get_logger()

MAX_TICKS_PER_POOL = 1000
POOLS_PER_QUERY = 100

_POOL_FIELDS = """
    id
    feeTier
    hooks
    liquidity
    sqrtPrice
    tick
    tickSpacing
    totalValueLockedUSD
    token0 { id decimals symbol }
    token1 { id decimals symbol }
    ticks(where: { liquidityGross_not: "0" }, first: %d) {
      tickIdx
      liquidityNet
      liquidityGross
    }
""" % MAX_TICKS_PER_POOL

DIRECT_POOLS_QUERY = """
query DirectPools($tokens: [String!]!, $first: Int!) {
  pools(
    where: { token0_in: $tokens, token1_in: $tokens }
    first: $first
    orderBy: totalValueLockedUSD
    orderDirection: desc
  ) {%s}
}
""" % _POOL_FIELDS

HUB_POOLS_QUERY = """
query HubPools($ends: [String!]!, $hubs: [String!]!, $first: Int!) {
  pools(
    where: { or: [
      { token0_in: $ends, token1_in: $hubs },
      { token0_in: $hubs, token1_in: $ends }
    ] }
    first: $first
    orderBy: totalValueLockedUSD
    orderDirection: desc
  ) {%s}
}
""" % _POOL_FIELDS

TWO_HOP_POOLS_QUERY = """
query TwoHopPools($ends: [String!]!, $first: Int!) {
  pools(
    where: { or: [{ token0_in: $ends }, { token1_in: $ends }] }
    first: $first
    orderBy: totalValueLockedUSD
    orderDirection: desc
  ) {%s}
}
""" % _POOL_FIELDS


class SubgraphToken(BaseModel):
    id: Address
    decimals: int
    symbol: str | None = None


class SubgraphTick(BaseModel):
    tick_idx: int = Field(alias="tickIdx")
    liquidity_net: int = Field(alias="liquidityNet")
    liquidity_gross: Uint256 = Field(alias="liquidityGross")

    model_config = {"populate_by_name": True}


class SubgraphPool(BaseModel):
    """Pool record as returned by the indexer."""

    id: str
    fee_tier: int = Field(alias="feeTier")
    hooks: Address | None = None
    liquidity: Uint256
    sqrt_price: Uint256 = Field(alias="sqrtPrice")
    tick: int | None = None
    tick_spacing: int = Field(alias="tickSpacing")
    total_value_locked_usd: Decimal = Field(default=Decimal(0), alias="totalValueLockedUSD")
    token0: SubgraphToken
    token1: SubgraphToken
    ticks: list[SubgraphTick] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


def sanitize_ticks(ticks: Iterable[TickRecord], tick_spacing: int) -> tuple[TickRecord, ...]:
    """Drop misaligned, out-of-range and duplicate ticks; sort ascending.

    The first record seen for an index wins. Idempotent.
    """
    seen: dict[int, TickRecord] = {}
    for tick in ticks:
        if tick.index % tick_spacing != 0:
            continue
        if tick.index < MIN_TICK or tick.index > MAX_TICK:
            continue
        seen.setdefault(tick.index, tick)
    return tuple(seen[index] for index in sorted(seen))


def parse_pool(raw: SubgraphPool) -> ConcentratedPool:
    """Build a pool snapshot from an indexer record.

    The stored tick is recomputed from sqrtPrice so it is always the largest
    tick whose sqrt price is at or below the current price.

    Raises:
        ValueError: On inconsistent token data
        InvalidSqrtRatio: If sqrtPrice is out of range
    """
    spacing = raw.tick_spacing
    ticks = sanitize_ticks(
        (TickRecord(t.tick_idx, t.liquidity_net, t.liquidity_gross) for t in raw.ticks),
        spacing,
    )
    return ConcentratedPool(
        id=raw.id.lower(),
        token0=Token(raw.token0.id, raw.token0.symbol or "", raw.token0.decimals),
        token1=Token(raw.token1.id, raw.token1.symbol or "", raw.token1.decimals),
        fee=raw.fee_tier,
        tick_spacing=spacing,
        sqrt_price_x96=raw.sqrt_price,
        tick=tick_at_sqrt_price(raw.sqrt_price),
        liquidity=raw.liquidity,
        ticks=ticks,
        hooks=normalize_address(raw.hooks or NEUTRAL_HOOKS),
        tvl_usd=raw.total_value_locked_usd,
    )


def query_addresses(address: str) -> list[str]:
    """Indexer addresses for a token; native and wrapped-native match both."""
    if is_native(address) or is_wrapped_native(address):
        return [NATIVE_ADDRESS, WRAPPED_NATIVE_ADDRESS]
    return [normalize_address(address)]


class ConcentratedSource:
    """Concentrated-liquidity pools and quotes from an indexer.

    Args:
        client: Indexer client
        settings: Filters and search parameters
        search: Route search used by quote() (built from settings if omitted)
    """

    protocol = Protocol.CONCENTRATED

    def __init__(
        self,
        client: SubgraphClient,
        settings: Settings = DEFAULT_SETTINGS,
        search: RouteSearch | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.search = search or RouteSearch.from_settings(settings)

    def _keep(self, pool: SubgraphPool) -> bool:
        if pool.liquidity < self.settings.min_pool_liquidity:
            logger.debug("pool_skipped", pool=pool.id, reason="liquidity")
            return False
        if pool.total_value_locked_usd < self.settings.min_pool_tvl_usd:
            logger.debug("pool_skipped", pool=pool.id, reason="tvl")
            return False
        if normalize_address(pool.hooks or NEUTRAL_HOOKS) != NEUTRAL_HOOKS:
            logger.debug("pool_skipped", pool=pool.id, reason="hooks")
            return False
        return True

    async def fetch_pools(self, from_token: Token, to_token: Token) -> list[ConcentratedPool]:
        """Query, merge, filter and parse pools for a trade.

        Raises:
            TransportError / RateLimited: If every query failed
        """
        ends = sorted(set(query_addresses(from_token.address) + query_addresses(to_token.address)))
        hubs = sorted(
            {a for hub in self.settings.intermediate_tokens for a in query_addresses(hub)}
            - set(ends)
        )
        first = POOLS_PER_QUERY
        responses = await asyncio.gather(
            self.client.query(DIRECT_POOLS_QUERY, {"tokens": ends + hubs, "first": first}),
            self.client.query(HUB_POOLS_QUERY, {"ends": ends, "hubs": hubs, "first": first}),
            self.client.query(TWO_HOP_POOLS_QUERY, {"ends": ends, "first": first}),
            return_exceptions=True,
        )

        failures = [r for r in responses if isinstance(r, BaseException)]
        if len(failures) == len(responses):
            raise failures[0]
        for failure in failures:
            logger.warning("pool_query_failed", source=self.protocol.value, error=str(failure))

        merged: dict[str, SubgraphPool] = {}
        for response in responses:
            if isinstance(response, BaseException):
                continue
            for record in response.get("pools") or []:
                try:
                    raw = SubgraphPool.model_validate(record)
                except ValidationError as e:
                    logger.debug("pool_unparseable", pool=record.get("id"), error=str(e))
                    continue
                merged.setdefault(raw.id.lower(), raw)

        pools = []
        for raw in merged.values():
            if not self._keep(raw):
                continue
            try:
                pools.append(parse_pool(raw))
            except (ValueError, DexRouteError) as e:
                logger.debug("pool_unparseable", pool=raw.id, error=str(e))

        logger.debug(
            "pools_fetched", source=self.protocol.value, merged=len(merged), kept=len(pools)
        )
        return pools

    async def quote(
        self,
        from_token: Token,
        to_token: Token,
        amount_in: int,
        *,
        raise_on_rate_limit: bool = False,
    ) -> Quote | None:
        """Best route through this source's pools only.

        Raises:
            InvalidAmount: If amount_in is not positive (before any I/O)
            RateLimited: Only when raise_on_rate_limit is set
        """
        if amount_in <= 0:
            raise InvalidAmount(f"Input amount must be positive, got {amount_in}")
        try:
            pools = await self.fetch_pools(from_token, to_token)
            route = self.search.best_route(pools, from_token.address, to_token.address, amount_in)
        except RateLimited:
            if raise_on_rate_limit:
                raise
            logger.warning("quote_rate_limited", source=self.protocol.value)
            return None
        except DexRouteError as e:
            logger.warning("quote_failed", source=self.protocol.value, error=str(e))
            return None

        return Quote(
            protocol=self.protocol,
            output_amount=route.amount_out,
            gas_estimate=route.gas_estimate,
            from_token=from_token.address,
            to_token=to_token.address,
            amount_in=amount_in,
            trade_data=route,
        )


__all__ = [
    "MAX_TICKS_PER_POOL",
    "DIRECT_POOLS_QUERY",
    "HUB_POOLS_QUERY",
    "TWO_HOP_POOLS_QUERY",
    "SubgraphPool",
    "SubgraphTick",
    "SubgraphToken",
    "ConcentratedSource",
    "parse_pool",
    "query_addresses",
    "sanitize_ticks",
]
