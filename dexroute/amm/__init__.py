"""AMM models: pure output functions per pool variant."""

from dexroute.amm.base import SwapResult, pool_output, pool_output_to
from dexroute.amm.concentrated import ConcentratedSwapResult

__all__ = [
    "SwapResult",
    "pool_output",
    "pool_output_to",
    "ConcentratedSwapResult",
]
