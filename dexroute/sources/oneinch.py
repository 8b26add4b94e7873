"""1inch aggregation API quotes.

GET {base}/swap/v6.0/{chainId}/quote. Requests are spaced at least 1100 ms
apart. The reported output is reduced by the 0.15% protocol fee before it
is returned.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.constants import NATIVE_ADDRESS, NATIVE_PLACEHOLDER, ONEINCH_SWAP_GAS
from dexroute.errors import InvalidAmount, RateLimited, TransportError
from dexroute.models.quote import Protocol, Quote
from dexroute.models.tokens import Token, is_native
from dexroute.models.types import Uint256, checksum

from .rate_limit import MinIntervalLimiter, shared_limiter
from .retry import is_rate_limited, retry_with_backoff

logger = structlog.get_logger()

MIN_REQUEST_INTERVAL = 1.1
PROTOCOL_FEE_BPS = 15
BPS = 10_000


class OneInchQuoteResponse(BaseModel):
    """The fields of a quote response this client reads.

    Older API versions report toTokenAmount, newer ones dstAmount.
    """

    to_token_amount: Uint256 | None = Field(default=None, alias="toTokenAmount")
    dst_amount: Uint256 | None = Field(default=None, alias="dstAmount")
    gas: int | None = None

    model_config = {"populate_by_name": True}

    @property
    def output(self) -> int:
        if self.to_token_amount is not None:
            return self.to_token_amount
        return self.dst_amount or 0


def oneinch_token_address(address: str) -> str:
    """1inch denotes the native currency with the 0xEeee... placeholder."""
    return checksum(NATIVE_PLACEHOLDER if is_native(address) else address)


def apply_protocol_fee(amount: int, fee_bps: int = PROTOCOL_FEE_BPS) -> int:
    return amount * (BPS - fee_bps) // BPS


class OneInchSource:
    """Quotes from the 1inch aggregation API.

    Args:
        client: Shared httpx client
        settings: Base URL, API key, user address and slippage
        limiter: Request spacing (shared by every instance by default)
        sleep: Backoff sleep (injected in tests)
    """

    protocol = Protocol.ONEINCH

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings = DEFAULT_SETTINGS,
        limiter: MinIntervalLimiter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.settings = settings
        self.limiter = limiter or shared_limiter(self.protocol.value, MIN_REQUEST_INTERVAL)
        self._sleep = sleep

    @property
    def url(self) -> str:
        base = self.settings.oneinch_base_url.rstrip("/")
        return f"{base}/swap/v6.0/{self.settings.chain_id}/quote"

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.oneinch_api_key:
            headers["Authorization"] = f"Bearer {self.settings.oneinch_api_key}"
        return headers

    def request_params(self, from_token: Token, to_token: Token, amount_in: int) -> dict[str, Any]:
        return {
            "src": oneinch_token_address(from_token.address),
            "dst": oneinch_token_address(to_token.address),
            "amount": str(amount_in),
            "from": checksum(self.settings.user_address or NATIVE_ADDRESS),
            "slippage": self.settings.slippage_percent,
            "includeGas": "true",
        }

    async def _get(self, params: dict[str, Any]) -> dict[str, Any]:
        await self.limiter.acquire()
        response = await self.client.get(self.url, params=params, headers=self.headers)
        response.raise_for_status()
        return response.json()

    async def quote(
        self,
        from_token: Token,
        to_token: Token,
        amount_in: int,
        *,
        raise_on_rate_limit: bool = False,
    ) -> Quote | None:
        """Quote through 1inch, net of the protocol fee.

        Raises:
            InvalidAmount: If amount_in is not positive (before any I/O)
            RateLimited: Only when raise_on_rate_limit is set
        """
        if amount_in <= 0:
            raise InvalidAmount(f"Input amount must be positive, got {amount_in}")
        params = self.request_params(from_token, to_token, amount_in)
        try:
            payload = await retry_with_backoff(
                lambda: self._get(params), sleep=self._sleep, source="1inch"
            )
            parsed = OneInchQuoteResponse.model_validate(payload)
        except (httpx.HTTPError, TransportError) as e:
            if is_rate_limited(e):
                logger.warning("oneinch_rate_limited", error=str(e))
                if raise_on_rate_limit:
                    raise RateLimited(f"1inch rate limited: {e}") from e
                return None
            logger.warning("oneinch_quote_failed", error=str(e))
            return None
        except ValueError as e:
            logger.warning("oneinch_quote_invalid", error=str(e))
            return None

        output = apply_protocol_fee(parsed.output)
        if output <= 0:
            logger.warning("oneinch_quote_empty")
            return None

        return Quote(
            protocol=self.protocol,
            output_amount=output,
            gas_estimate=parsed.gas or ONEINCH_SWAP_GAS,
            from_token=from_token.address,
            to_token=to_token.address,
            amount_in=amount_in,
            trade_data={"reportedOutput": parsed.output},
            raw_response=payload,
        )


__all__ = [
    "MIN_REQUEST_INTERVAL",
    "PROTOCOL_FEE_BPS",
    "OneInchQuoteResponse",
    "OneInchSource",
    "apply_protocol_fee",
    "oneinch_token_address",
]
