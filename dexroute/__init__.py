"""dexroute - multi-source DEX quote, routing and execution-plan core."""

from dexroute.aggregator import QuoteAggregator, select_best_quote
from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.context import CoreContext
from dexroute.execution import TradeContext, compile_execution_plan, encode_bundler_call
from dexroute.routing import RouteSearch

__version__ = "0.1.0"
__all__ = [
    "CoreContext",
    "DEFAULT_SETTINGS",
    "QuoteAggregator",
    "RouteSearch",
    "Settings",
    "TradeContext",
    "compile_execution_plan",
    "encode_bundler_call",
    "select_best_quote",
    "__version__",
]
