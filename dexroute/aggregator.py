"""Quote fan-out and gas-aware ranking.

The aggregator asks every allowed source for a quote concurrently, each under
its own timeout, and ranks what comes back by output net of gas cost
expressed in the output token.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence

import structlog

from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.constants import (
    BUNDLER_SWAP_GAS,
    CONCENTRATED_BASE_GAS,
    ODOS_SWAP_GAS,
    ONEINCH_SWAP_GAS,
    WEIGHTED_SWAP_GAS,
)
from dexroute.errors import InvalidAmount, NoRoute, RateLimited, Timeout
from dexroute.models.quote import Protocol, Quote
from dexroute.models.tokens import Token
from dexroute.sources.base import QuoteSource

logger = structlog.get_logger()

ALL_PROTOCOLS = (
    Protocol.CONCENTRATED,
    Protocol.WEIGHTED,
    Protocol.BUNDLER,
    Protocol.ODOS,
    Protocol.ONEINCH,
)

DEFAULT_GAS = {
    Protocol.CONCENTRATED: CONCENTRATED_BASE_GAS,
    Protocol.WEIGHTED: WEIGHTED_SWAP_GAS,
    Protocol.BUNDLER: BUNDLER_SWAP_GAS,
    Protocol.ODOS: ODOS_SWAP_GAS,
    Protocol.ONEINCH: ONEINCH_SWAP_GAS,
}

_MODE_TOKENS = (
    ("contract", Protocol.BUNDLER),
    ("odos", Protocol.ODOS),
    ("1inch", Protocol.ONEINCH),
)

PRICE_SCALE = 10**6
WEI_PER_NATIVE = 10**18


def allowed_protocols(wallet_mode: str | None) -> list[Protocol]:
    """Sources a wallet mode may use, in dispatch order.

    Each token of the mode selects one source: "contract" the bundler,
    "odos" Odos and "1inch" 1inch, so "contract,odos" allows both. A mode
    that names none of them (including None) allows every source.

    Args:
        wallet_mode: Free-form mode string, e.g. "contract" or "odos,1inch"

    Returns:
        Allowed protocols, bundler first, then Odos, then 1inch
    """
    mode = (wallet_mode or "").strip().lower()
    protocols = [protocol for token, protocol in _MODE_TOKENS if token in mode]
    return protocols or list(ALL_PROTOCOLS)


def gas_cost_in_token(
    gas: int,
    gas_price_wei: int,
    native_price_usd: float | None,
    token_price_usd: float | None,
    decimals: int,
) -> int:
    """Gas cost of a swap expressed in output-token base units.

    gas * gas_price * native_price / (10^18 * token_price) * 10^decimals,
    with both prices fixed to 6 decimals and a single final floor division.

    Args:
        gas: Gas units the swap is expected to burn
        gas_price_wei: Current gas price in wei
        native_price_usd: USD price of the native currency
        token_price_usd: USD price of the output token
        decimals: Decimals of the output token

    Returns:
        Cost in output-token base units; 0 when a price is missing or not
        positive, or when gas or gas price is zero

    Example:
        100_000 gas at 20 gwei with ETH at $2000 and USDC at $1 costs
        4_000_000 (4 USDC).
    """
    if not native_price_usd or not token_price_usd or gas <= 0 or gas_price_wei <= 0:
        return 0
    native_scaled = int(native_price_usd * PRICE_SCALE)
    token_scaled = int(token_price_usd * PRICE_SCALE)
    if native_scaled <= 0 or token_scaled <= 0:
        return 0
    numerator = gas * gas_price_wei * native_scaled * 10**decimals
    return numerator // (WEI_PER_NATIVE * token_scaled)


def _is_better(candidate: Quote, best: Quote) -> bool:
    if candidate.net_output != best.net_output:
        return candidate.net_output > best.net_output
    return candidate.unprofitability < best.unprofitability


def select_best_quote(
    quotes: Iterable[Quote | None],
    *,
    gas_price_wei: int = 0,
    native_price_usd: float | None = None,
    token_price_usd: float | None = None,
    decimals: int = 18,
) -> Quote | None:
    """Pick the quote with the highest output net of gas.

    Fills in gas_cost_in_token on every quote, using the source default
    gas when a quote carries no estimate. Ties go to the smaller
    unprofitability (gas - output), then to the earlier quote.

    Args:
        quotes: Quotes in dispatch order; None entries are skipped
        gas_price_wei: Current gas price in wei
        native_price_usd: USD price of the native currency
        token_price_usd: USD price of the output token
        decimals: Decimals of the output token

    Returns:
        The winning quote, or None if no quote was given
    """
    best: Quote | None = None
    for quote in quotes:
        if quote is None:
            continue
        gas = quote.gas_estimate or DEFAULT_GAS.get(quote.protocol, 0)
        quote.gas_cost_in_token = gas_cost_in_token(
            gas, gas_price_wei, native_price_usd, token_price_usd, decimals
        )
        logger.debug(
            "quote_ranked",
            protocol=quote.protocol.value,
            output=quote.output_amount,
            gas_cost=quote.gas_cost_in_token,
            net=quote.net_output,
        )
        if best is None or _is_better(quote, best):
            best = quote
    return best


class QuoteAggregator:
    """Concurrent quoting across the configured sources.

    Args:
        sources: Quote sources; one per protocol tag
        settings: Timeouts and default wallet mode

    Usage:
        aggregator = QuoteAggregator([odos, bundler])
        best = await aggregator.get_best_quote(usdc, weth, 1_000 * 10**6)
    """

    def __init__(self, sources: Sequence[QuoteSource], settings: Settings = DEFAULT_SETTINGS):
        self.sources = {source.protocol: source for source in sources}
        self.settings = settings

    def _timeout_for(self, protocol: Protocol) -> float:
        if protocol is Protocol.BUNDLER:
            return self.settings.bundler_timeout
        return self.settings.quote_timeout

    def dispatch_order(
        self, wallet_mode: str | None = None, protocols: Sequence[Protocol] | None = None
    ) -> list[Protocol]:
        """Protocols that will be queried, in result order.

        An explicit protocols list wins over the wallet mode; protocols
        without a configured source are dropped.
        """
        if protocols is not None:
            wanted = list(protocols)
        else:
            wanted = allowed_protocols(
                wallet_mode if wallet_mode is not None else self.settings.wallet_mode
            )
        return [p for p in wanted if p in self.sources]

    async def _quote_one(
        self,
        protocol: Protocol,
        from_token: Token,
        to_token: Token,
        amount_in: int,
        explicit: bool,
    ) -> Quote | None:
        source = self.sources[protocol]
        timeout = self._timeout_for(protocol)
        try:
            return await asyncio.wait_for(
                source.quote(from_token, to_token, amount_in, raise_on_rate_limit=explicit),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            if protocol is Protocol.BUNDLER:
                raise Timeout(f"{protocol.value} quote timed out after {timeout}s") from None
            logger.warning("quote_timed_out", protocol=protocol.value, timeout=timeout)
            return None

    async def get_all_quotes(
        self,
        from_token: Token,
        to_token: Token,
        amount_in: int,
        *,
        wallet_mode: str | None = None,
        protocols: Sequence[Protocol] | None = None,
    ) -> list[Quote | None]:
        """Quote every allowed source concurrently.

        Results are positional: result[i] belongs to dispatch_order()[i] and
        is None when that source failed or timed out.

        Args:
            wallet_mode: Overrides Settings.wallet_mode
            protocols: Explicit source list; rate limiting of these surfaces
                as RateLimited instead of None

        Raises:
            InvalidAmount: If amount_in is not positive (before any I/O)
            Timeout: If the bundler source timed out
            RateLimited: If an explicitly requested source was rate limited
        """
        if amount_in <= 0:
            raise InvalidAmount(f"Input amount must be positive, got {amount_in}")

        order = self.dispatch_order(wallet_mode, protocols)
        explicit = protocols is not None
        logger.info(
            "quote_dispatch",
            protocols=[p.value for p in order],
            from_token=from_token.address,
            to_token=to_token.address,
            amount_in=amount_in,
        )
        results = await asyncio.gather(
            *(self._quote_one(p, from_token, to_token, amount_in, explicit) for p in order),
            return_exceptions=True,
        )

        quotes: list[Quote | None] = []
        for protocol, result in zip(order, results):
            if isinstance(result, (Timeout, RateLimited, InvalidAmount)):
                raise result
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("quote_source_failed", protocol=protocol.value, error=str(result))
                quotes.append(None)
                continue
            quotes.append(result)

        logger.info(
            "quote_results",
            received=sum(1 for q in quotes if q is not None),
            queried=len(order),
        )
        return quotes

    async def get_best_quote(
        self,
        from_token: Token,
        to_token: Token,
        amount_in: int,
        *,
        gas_price_wei: int = 0,
        native_price_usd: float | None = None,
        token_price_usd: float | None = None,
        wallet_mode: str | None = None,
        protocols: Sequence[Protocol] | None = None,
    ) -> Quote | None:
        """Best quote net of gas, or None if every source failed.

        Accepts the arguments of get_all_quotes plus the gas inputs of
        select_best_quote; the output token's decimals are used for the
        gas conversion.
        """
        quotes = await self.get_all_quotes(
            from_token, to_token, amount_in, wallet_mode=wallet_mode, protocols=protocols
        )
        best = select_best_quote(
            quotes,
            gas_price_wei=gas_price_wei,
            native_price_usd=native_price_usd,
            token_price_usd=token_price_usd,
            decimals=to_token.decimals,
        )
        if best is not None:
            logger.info("best_quote", protocol=best.protocol.value, output=best.output_amount)
        return best

    async def quote_or_raise(
        self, from_token: Token, to_token: Token, amount_in: int, **kwargs
    ) -> Quote:
        """Like get_best_quote, but raises NoRoute instead of returning None."""
        best = await self.get_best_quote(from_token, to_token, amount_in, **kwargs)
        if best is None:
            raise NoRoute(f"No source could quote {from_token.address} -> {to_token.address}")
        return best


__all__ = [
    "ALL_PROTOCOLS",
    "DEFAULT_GAS",
    "QuoteAggregator",
    "allowed_protocols",
    "gas_cost_in_token",
    "select_best_quote",
]
