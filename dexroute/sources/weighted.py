"""Weighted and stable pool source.

Pool metadata (type, weights, fee, amplification) comes from the indexer and
is cached for the life of the process. Balances move every block, so they
are re-read from the vault with getPoolTokens on every fetch.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal, InvalidOperation

import structlog
from eth_utils import to_checksum_address
from pydantic import BaseModel, Field, ValidationError

from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.constants import WEIGHTED_VAULT_ADDRESS
from dexroute.errors import DexRouteError, InvalidAmount, RateLimited, TransportError
from dexroute.models.pools import StablePool, StableToken, WeightedPool, WeightedToken
from dexroute.models.quote import Protocol, Quote
from dexroute.models.tokens import Token, routing_address
from dexroute.models.types import Address, address_bytes
from dexroute.rpc import RpcPool
from dexroute.routing.search import RouteSearch

from .subgraph import SubgraphClient

logger = structlog.get_logger()

STABLE_POOL_TYPES = frozenset({"Stable", "ComposableStable"})
POOLS_PER_QUERY = 100

VAULT_ABI = [
    {
        "inputs": [{"internalType": "bytes32", "name": "poolId", "type": "bytes32"}],
        "name": "getPoolTokens",
        "outputs": [
            {"internalType": "address[]", "name": "tokens", "type": "address[]"},
            {"internalType": "uint256[]", "name": "balances", "type": "uint256[]"},
            {"internalType": "uint256", "name": "lastChangeBlock", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    }
]

POOLS_BY_TOKEN_QUERY = """
query PoolsByToken($token: String!, $minLiquidity: BigDecimal!, $first: Int!) {
  pools(
    where: {
      tokensList_contains: [$token]
      swapEnabled: true
      totalLiquidity_gt: $minLiquidity
    }
    first: $first
    orderBy: totalLiquidity
    orderDirection: desc
  ) {
    id
    address
    poolType
    swapFee
    totalLiquidity
    amp
    tokens {
      address
      balance
      decimals
      symbol
      weight
    }
  }
}
"""


class IndexedPoolToken(BaseModel):
    address: Address
    balance: Decimal
    decimals: int
    symbol: str | None = None
    weight: Decimal | None = None


class IndexedPool(BaseModel):
    """Weighted/stable pool record as returned by the indexer."""

    id: str
    address: Address
    pool_type: str = Field(alias="poolType")
    swap_fee: Decimal = Field(alias="swapFee")
    total_liquidity: Decimal = Field(default=Decimal(0), alias="totalLiquidity")
    amp: Decimal | None = None
    tokens: list[IndexedPoolToken]

    model_config = {"populate_by_name": True}

    @property
    def is_stable(self) -> bool:
        return self.pool_type in STABLE_POOL_TYPES


def _raw_balance(token: IndexedPoolToken) -> int:
    """Indexer balances are decimal strings in whole-token units."""
    return int(token.balance * (Decimal(10) ** token.decimals))


def parse_pool(raw: IndexedPool) -> WeightedPool | StablePool | None:
    """Build a pool snapshot from an indexer record.

    The pool's own share token (composable pools list it among their tokens)
    is dropped. Returns None for pool types that cannot be priced.
    """
    pool_tokens = sorted(
        (t for t in raw.tokens if t.address != raw.address),
        key=lambda t: address_bytes(t.address),
    )
    if len(pool_tokens) < 2:
        logger.debug("weighted_pool_skipped", pool=raw.id, reason="too_few_tokens")
        return None
    liquidity = int(raw.total_liquidity)

    if raw.is_stable:
        if raw.amp is None or raw.amp <= 0:
            logger.debug("weighted_pool_skipped", pool=raw.id, reason="missing_amp")
            return None
        return StablePool(
            id=raw.id.lower(),
            address=raw.address,
            reserves=tuple(
                StableToken(Token(t.address, t.symbol or "", t.decimals), _raw_balance(t))
                for t in pool_tokens
            ),
            amplification=raw.amp,
            fee=raw.swap_fee,
            liquidity=liquidity,
        )

    if any(t.weight is None or t.weight <= 0 for t in pool_tokens):
        logger.debug("weighted_pool_skipped", pool=raw.id, reason="missing_weight")
        return None
    return WeightedPool(
        id=raw.id.lower(),
        address=raw.address,
        reserves=tuple(
            WeightedToken(Token(t.address, t.symbol or "", t.decimals), _raw_balance(t), t.weight)
            for t in pool_tokens
        ),
        fee=raw.swap_fee,
        liquidity=liquidity,
    )


def pool_id_bytes(pool_id: str) -> bytes:
    raw = pool_id[2:] if pool_id.startswith("0x") else pool_id
    return bytes.fromhex(raw)


class WeightedSource:
    """Weighted and stable pools with vault-fresh balances.

    Args:
        client: Indexer client
        rpc: Chain access for getPoolTokens; without it indexer balances are used
        settings: Filters and search parameters
        search: Route search used by quote() (built from settings if omitted)
        vault_address: Vault holding the pool balances
    """

    protocol = Protocol.WEIGHTED

    def __init__(
        self,
        client: SubgraphClient,
        rpc: RpcPool | None = None,
        settings: Settings = DEFAULT_SETTINGS,
        search: RouteSearch | None = None,
        vault_address: str = WEIGHTED_VAULT_ADDRESS,
    ) -> None:
        self.client = client
        self.rpc = rpc
        self.settings = settings
        self.search = search or RouteSearch.from_settings(settings)
        self.vault_address = vault_address
        self._cache: dict[str, WeightedPool | StablePool] = {}

    @property
    def cached_pool_ids(self) -> set[str]:
        return set(self._cache)

    async def _pool_ids_for(self, tokens: list[str]) -> list[str]:
        variables = [
            {
                "token": token,
                "minLiquidity": str(self.settings.min_pool_tvl_usd),
                "first": POOLS_PER_QUERY,
            }
            for token in tokens
        ]
        responses = await asyncio.gather(
            *(self.client.query(POOLS_BY_TOKEN_QUERY, v) for v in variables),
            return_exceptions=True,
        )
        failures = [r for r in responses if isinstance(r, BaseException)]
        if failures and len(failures) == len(responses):
            raise failures[0]
        for failure in failures:
            logger.warning("pool_query_failed", source=self.protocol.value, error=str(failure))

        ids: list[str] = []
        for response in responses:
            if isinstance(response, BaseException):
                continue
            for record in response.get("pools") or []:
                pool_id = str(record.get("id", "")).lower()
                if not pool_id or pool_id in ids:
                    continue
                if pool_id not in self._cache:
                    pool = self._parse_record(record)
                    if pool is None:
                        continue
                    self._cache[pool_id] = pool
                ids.append(pool_id)
        return ids

    def _parse_record(self, record: dict) -> WeightedPool | StablePool | None:
        try:
            raw = IndexedPool.model_validate(record)
            if raw.total_liquidity < self.settings.min_pool_tvl_usd:
                logger.debug("weighted_pool_skipped", pool=raw.id, reason="tvl")
                return None
            return parse_pool(raw)
        except (ValidationError, ValueError, InvalidOperation) as e:
            logger.debug("pool_unparseable", pool=record.get("id"), error=str(e))
            return None

    async def pool_balances(self, pool_id: str) -> dict[str, int]:
        """Current vault balances of a pool, keyed by lowercase token address."""
        if self.rpc is None:
            raise TransportError("No RPC endpoint configured for balance reads")
        vault = to_checksum_address(self.vault_address)
        pool_key = pool_id_bytes(pool_id)

        async def read(w3):
            contract = w3.eth.contract(address=vault, abi=VAULT_ABI)
            return await contract.functions.getPoolTokens(pool_key).call()

        tokens, balances, _ = await self.rpc.run(read, method="getPoolTokens")
        return {str(t).lower(): int(b) for t, b in zip(tokens, balances)}

    async def _refresh(self, pool_id: str) -> WeightedPool | StablePool:
        pool = self._cache[pool_id]
        if self.rpc is None:
            return pool
        try:
            balances = await self.pool_balances(pool_id)
        except DexRouteError as e:
            logger.warning("pool_balance_refresh_failed", pool=pool_id, error=str(e))
            return pool
        refreshed = pool.with_balances(balances)
        self._cache[pool_id] = refreshed
        return refreshed

    async def fetch_pools(
        self, from_token: Token, to_token: Token
    ) -> list[WeightedPool | StablePool]:
        """Pools holding either endpoint, with balances read from the vault."""
        endpoints = sorted({routing_address(from_token.address), routing_address(to_token.address)})
        ids = await self._pool_ids_for(endpoints)
        pools = await asyncio.gather(*(self._refresh(pool_id) for pool_id in ids))
        logger.debug("pools_fetched", source=self.protocol.value, kept=len(pools))
        return list(pools)

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
    "STABLE_POOL_TYPES",
    "VAULT_ABI",
    "POOLS_BY_TOKEN_QUERY",
    "IndexedPool",
    "IndexedPoolToken",
    "WeightedSource",
    "parse_pool",
    "pool_id_bytes",
]
