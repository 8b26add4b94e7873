"""Odos smart-order-router quotes.

POST {base}/sor/quote/v2 with a single input and a single output token.
Requests are spaced at least 550 ms apart across all callers.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.constants import NATIVE_ADDRESS, ODOS_SWAP_GAS
from dexroute.errors import InvalidAmount, RateLimited, TransportError
from dexroute.models.quote import Protocol, Quote
from dexroute.models.tokens import Token, is_native
from dexroute.models.types import Uint256, checksum

from .rate_limit import MinIntervalLimiter, shared_limiter
from .retry import is_rate_limited, retry_with_backoff

logger = structlog.get_logger()

MIN_REQUEST_INTERVAL = 0.55
QUOTE_PATH = "/sor/quote/v2"


class OdosQuoteResponse(BaseModel):
    """The fields of a quote response this client reads."""

    out_amounts: list[Uint256] = Field(alias="outAmounts", min_length=1)
    path_id: str | None = Field(default=None, alias="pathId")
    gas_estimate: float | None = Field(default=None, alias="gasEstimate")
    price_impact: float | None = Field(default=None, alias="priceImpact")

    model_config = {"populate_by_name": True}


def odos_token_address(address: str) -> str:
    """Odos denotes the native currency with the zero address."""
    return checksum(NATIVE_ADDRESS if is_native(address) else address)


class OdosSource:
    """Quotes from the Odos router API.

    Args:
        client: Shared httpx client
        settings: Base URL, user address and slippage
        limiter: Request spacing (shared by every instance by default)
        sleep: Backoff sleep (injected in tests)
    """

    protocol = Protocol.ODOS

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
        return self.settings.odos_base_url.rstrip("/") + QUOTE_PATH

    def request_body(self, from_token: Token, to_token: Token, amount_in: int) -> dict[str, Any]:
        return {
            "chainId": self.settings.chain_id,
            "inputTokens": [
                {"tokenAddress": odos_token_address(from_token.address), "amount": str(amount_in)}
            ],
            "outputTokens": [
                {"tokenAddress": odos_token_address(to_token.address), "proportion": 1}
            ],
            "slippageLimitPercent": self.settings.slippage_percent,
            "userAddr": checksum(self.settings.user_address or NATIVE_ADDRESS),
            "referralCode": 0,
            "disableRFQs": self.settings.disable_rfqs,
            "compact": True,
        }

    async def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        await self.limiter.acquire()
        response = await self.client.post(self.url, json=body)
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
        """Quote through Odos.

        Raises:
            InvalidAmount: If amount_in is not positive (before any I/O)
            RateLimited: Only when raise_on_rate_limit is set
        """
        if amount_in <= 0:
            raise InvalidAmount(f"Input amount must be positive, got {amount_in}")
        body = self.request_body(from_token, to_token, amount_in)
        try:
            payload = await retry_with_backoff(
                lambda: self._post(body), sleep=self._sleep, source="odos"
            )
            parsed = OdosQuoteResponse.model_validate(payload)
        except (httpx.HTTPError, TransportError) as e:
            if is_rate_limited(e):
                logger.warning("odos_rate_limited", error=str(e))
                if raise_on_rate_limit:
                    raise RateLimited(f"Odos rate limited: {e}") from e
                return None
            logger.warning("odos_quote_failed", error=str(e))
            return None
        except ValueError as e:
            logger.warning("odos_quote_invalid", error=str(e))
            return None

        output = parsed.out_amounts[0]
        if output <= 0:
            logger.warning("odos_quote_empty", path_id=parsed.path_id)
            return None

        gas = int(parsed.gas_estimate) if parsed.gas_estimate else ODOS_SWAP_GAS
        return Quote(
            protocol=self.protocol,
            output_amount=output,
            gas_estimate=gas,
            from_token=from_token.address,
            to_token=to_token.address,
            amount_in=amount_in,
            trade_data={"pathId": parsed.path_id},
            raw_response=payload,
        )


__all__ = [
    "MIN_REQUEST_INTERVAL",
    "QUOTE_PATH",
    "OdosQuoteResponse",
    "OdosSource",
    "odos_token_address",
]
