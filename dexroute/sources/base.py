"""Interfaces shared by the liquidity and quote sources."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from dexroute.models.pools import Pool
    from dexroute.models.quote import Protocol as QuoteProtocol
    from dexroute.models.quote import Quote
    from dexroute.models.tokens import Token


@runtime_checkable
class LiquiditySource(Protocol):
    """A source of pool snapshots the route search can walk."""

    async def fetch_pools(self, from_token: Token, to_token: Token) -> list[Pool]:
        """Fetch pools relevant to a from_token -> to_token trade.

        Args:
            from_token: Token being sold
            to_token: Token being bought

        Returns:
            Filtered pool snapshots (may be empty)
        """
        ...


@runtime_checkable
class QuoteSource(Protocol):
    """A source that can price a trade end to end.

    Implementations return None on failure rather than raising; the
    aggregator treats None as "no quote from this source".
    """

    protocol: QuoteProtocol

    async def quote(
        self,
        from_token: Token,
        to_token: Token,
        amount_in: int,
        *,
        raise_on_rate_limit: bool = False,
    ) -> Quote | None:
        """Quote selling amount_in of from_token for to_token.

        Args:
            from_token: Token being sold
            to_token: Token being bought
            amount_in: Input amount in from_token's smallest unit
            raise_on_rate_limit: Raise RateLimited instead of returning None

        Returns:
            Quote, or None if the source could not price the trade
        """
        ...


__all__ = ["LiquiditySource", "QuoteSource"]
