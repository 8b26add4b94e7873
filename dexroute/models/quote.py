"""Quote returned by every liquidity source."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Protocol(str, Enum):
    """Tags for the quote sources the aggregator can fan out to."""

    CONCENTRATED = "uniswap"
    WEIGHTED = "balancer"
    BUNDLER = "walletbundler"
    ODOS = "odos"
    ONEINCH = "1inch"


@dataclass
class Quote:
    """A source's answer for swapping amount_in of from_token into to_token.

    Attributes:
        protocol: Source that produced the quote
        output_amount: Expected output in to_token's smallest unit
        gas_estimate: Gas units the swap is expected to consume
        trade_data: Source-specific evidence consumed by the plan compiler
            (a Route / SplitRoute for pool-backed sources, vendor path data
            for aggregators)
        raw_response: Untouched vendor payload, kept for diagnostics
        gas_cost_in_token: Gas cost in to_token units, filled in by ranking
    """

    protocol: Protocol
    output_amount: int
    gas_estimate: int
    from_token: str = ""
    to_token: str = ""
    amount_in: int = 0
    trade_data: Any = None
    raw_response: Any = field(default=None, repr=False)
    gas_cost_in_token: int = 0

    @property
    def net_output(self) -> int:
        """Output after gas, floored at zero."""
        return max(0, self.output_amount - self.gas_cost_in_token)

    @property
    def unprofitability(self) -> int:
        """How far gas exceeds output (negative when profitable)."""
        return self.gas_cost_in_token - self.output_amount


__all__ = ["Protocol", "Quote"]
