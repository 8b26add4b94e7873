"""Pool-search-backed source executed through the user's bundler contract.

Pulls pools from every liquidity source, searches them together and returns
the chosen Route or SplitRoute as trade data, ready for plan compilation.
Paths may mix pool kinds (cross-venue routes).
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.constants import BUNDLER_SWAP_GAS
from dexroute.errors import DexRouteError, InvalidAmount, NoRoute, RateLimited
from dexroute.models.pools import Pool
from dexroute.models.quote import Protocol, Quote
from dexroute.models.tokens import Token
from dexroute.routing.search import RouteSearch

from .base import LiquiditySource

logger = structlog.get_logger()


class BundlerSource:
    """Best route across all pool sources.

    Args:
        sources: Pool providers searched together
        settings: Search parameters
        search: Route search (built from settings if omitted)
    """

    protocol = Protocol.BUNDLER

    def __init__(
        self,
        sources: Sequence[LiquiditySource],
        settings: Settings = DEFAULT_SETTINGS,
        search: RouteSearch | None = None,
    ) -> None:
        self.sources = list(sources)
        self.settings = settings
        self.search = search or RouteSearch.from_settings(settings)

    async def fetch_pools(self, from_token: Token, to_token: Token) -> list[Pool]:
        """Union of every source's pools; one failing source does not sink the rest.

        Raises:
            RateLimited: If every source was rate limited
        """
        results = await asyncio.gather(
            *(source.fetch_pools(from_token, to_token) for source in self.sources),
            return_exceptions=True,
        )
        pools: dict[str, Pool] = {}
        failures: list[BaseException] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failures.append(result)
                logger.warning(
                    "pool_source_failed",
                    source=type(source).__name__,
                    error=str(result),
                )
                continue
            for pool in result:
                pools.setdefault(pool.id, pool)

        if failures and len(failures) == len(results):
            if all(isinstance(f, RateLimited) for f in failures):
                raise failures[0]
        return list(pools.values())

    async def quote(
        self,
        from_token: Token,
        to_token: Token,
        amount_in: int,
        *,
        raise_on_rate_limit: bool = False,
    ) -> Quote | None:
        """Search all pools and quote the best route.

        Raises:
            InvalidAmount: If amount_in is not positive (before any I/O)
            RateLimited: Only when raise_on_rate_limit is set
        """
        if amount_in <= 0:
            raise InvalidAmount(f"Input amount must be positive, got {amount_in}")
        try:
            pools = await self.fetch_pools(from_token, to_token)
            if not pools:
                raise NoRoute(f"No pools for {from_token.address} -> {to_token.address}")
            route = self.search.best_route(pools, from_token.address, to_token.address, amount_in)
        except RateLimited:
            if raise_on_rate_limit:
                raise
            logger.warning("quote_rate_limited", source=self.protocol.value)
            return None
        except DexRouteError as e:
            logger.warning("quote_failed", source=self.protocol.value, error=str(e))
            return None

        logger.debug(
            "bundler_route_found",
            output=route.amount_out,
            pools=sorted(route.pool_ids),
            split=len(getattr(route, "routes", ())) > 1,
        )
        return Quote(
            protocol=self.protocol,
            output_amount=route.amount_out,
            gas_estimate=BUNDLER_SWAP_GAS,
            from_token=from_token.address,
            to_token=to_token.address,
            amount_in=amount_in,
            trade_data=route,
        )


__all__ = ["BundlerSource"]
