"""Shared runtime state passed to every public operation.

The gas price, the RPC pool and the nonce map live here instead of in
module globals; an application creates one CoreContext at startup.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field

import httpx
import structlog

from dexroute.aggregator import QuoteAggregator
from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.routing.search import RouteSearch
from dexroute.rpc import RpcPool
from dexroute.sources import (
    BundlerSource,
    ConcentratedSource,
    OdosSource,
    OneInchSource,
    SubgraphClient,
    WeightedSource,
)
from dexroute.sources.base import LiquiditySource, QuoteSource
from dexroute.submit.nonce import NonceManager
from dexroute.submit.submitter import Signer, Submitter, TradeHistorySink

logger = structlog.get_logger()

HTTP_TIMEOUT_SECONDS = 30.0


@dataclass
class CoreContext:
    """Process-wide handles.

    Attributes:
        settings: Pipeline configuration
        rpc: Rotating JSON-RPC handle
        nonces: Per-sender nonce state
        http: Shared HTTP client for indexers and aggregator APIs
        gas_price_gwei: Latest gas price, set by the caller's gas oracle
        cleanup_task: Background eviction of idle nonce records
    """

    settings: Settings
    rpc: RpcPool
    nonces: NonceManager
    http: httpx.AsyncClient
    gas_price_gwei: float = 0.0
    cleanup_task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    _aggregator: QuoteAggregator | None = field(default=None, init=False, repr=False)

    @classmethod
    def create(
        cls, settings: Settings = DEFAULT_SETTINGS, http: httpx.AsyncClient | None = None
    ) -> CoreContext:
        """Build a context and start nonce eviction; needs a running event loop."""
        rpc = RpcPool(settings.rpc_urls)
        context = cls(
            settings=settings,
            rpc=rpc,
            nonces=NonceManager(rpc),
            http=http or httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS),
        )
        context.start_cleanup()
        return context

    def start_cleanup(self) -> None:
        """Evict idle nonce records every 5 minutes until aclose()."""
        if self.cleanup_task is None or self.cleanup_task.done():
            self.cleanup_task = asyncio.get_running_loop().create_task(
                self.nonces.run_cleanup_loop(), name="nonce-cleanup"
            )

    def set_gas_price(self, gwei: float) -> None:
        if gwei < 0:
            raise ValueError(f"Gas price must not be negative, got {gwei}")
        self.gas_price_gwei = gwei

    @property
    def gas_price_wei(self) -> int:
        return int(self.gas_price_gwei * 10**9)

    def pool_sources(self) -> list[LiquiditySource]:
        """Pool sources for every configured indexer."""
        search = RouteSearch.from_settings(self.settings)
        sources: list[LiquiditySource] = []
        if self.settings.concentrated_subgraph_url:
            client = SubgraphClient(self.settings.concentrated_subgraph_url, self.http)
            sources.append(ConcentratedSource(client, self.settings, search))
        if self.settings.weighted_subgraph_url:
            client = SubgraphClient(self.settings.weighted_subgraph_url, self.http)
            sources.append(WeightedSource(client, self.rpc, self.settings, search))
        if not sources:
            logger.warning("no_pool_sources_configured")
        return sources

    def quote_sources(self) -> list[QuoteSource]:
        pools = self.pool_sources()
        sources: list[QuoteSource] = list(pools)
        if pools:
            sources.append(BundlerSource(pools, self.settings))
        sources.append(OdosSource(self.http, self.settings))
        sources.append(OneInchSource(self.http, self.settings))
        return sources

    @property
    def aggregator(self) -> QuoteAggregator:
        if self._aggregator is None:
            self._aggregator = QuoteAggregator(self.quote_sources(), self.settings)
        return self._aggregator

    def submitter(
        self, signer: Signer, sender: str, history: TradeHistorySink | None = None
    ) -> Submitter:
        return Submitter(
            self.rpc,
            self.nonces,
            signer,
            sender,
            gas_price=lambda: self.gas_price_gwei,
            history=history,
            settings=self.settings,
        )

    async def aclose(self) -> None:
        if self.cleanup_task is not None:
            self.cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.cleanup_task
            self.cleanup_task = None
        await self.http.aclose()
        await self.rpc.close()


__all__ = ["CoreContext"]
