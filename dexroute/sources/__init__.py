"""Liquidity and quote sources.

Module structure:
- base.py: LiquiditySource / QuoteSource protocols
- subgraph.py: GraphQL client for the pool indexers
- retry.py / rate_limit.py: backoff and request spacing
- concentrated.py / weighted.py: pool sources (also quote on their own pools)
- bundler.py: route search across every pool source
- odos.py / oneinch.py: remote aggregator APIs
"""

from dexroute.sources.base import LiquiditySource, QuoteSource
from dexroute.sources.bundler import BundlerSource
from dexroute.sources.concentrated import ConcentratedSource, sanitize_ticks
from dexroute.sources.odos import OdosSource
from dexroute.sources.oneinch import OneInchSource
from dexroute.sources.rate_limit import MinIntervalLimiter
from dexroute.sources.retry import is_retryable, retry_with_backoff
from dexroute.sources.subgraph import SubgraphClient
from dexroute.sources.weighted import WeightedSource

__all__ = [
    "BundlerSource",
    "ConcentratedSource",
    "LiquiditySource",
    "MinIntervalLimiter",
    "OdosSource",
    "OneInchSource",
    "QuoteSource",
    "SubgraphClient",
    "WeightedSource",
    "is_retryable",
    "retry_with_backoff",
    "sanitize_ticks",
]
