"""Tests for the Odos and 1inch API quote sources."""

import asyncio

import httpx
import pytest

from dexroute.config import Settings
from dexroute.constants import ODOS_SWAP_GAS
from dexroute.errors import InvalidAmount, RateLimited
from dexroute.models.quote import Protocol
from dexroute.sources import odos, oneinch
from dexroute.sources.odos import OdosSource, odos_token_address
from dexroute.sources.oneinch import OneInchSource, apply_protocol_fee, oneinch_token_address
from dexroute.sources.rate_limit import MinIntervalLimiter, shared_limiter
from tests.helpers import (
    NATIVE_TOKEN,
    USDC,
    USDC_TOKEN,
    WETH_TOKEN,
    FakeClock,
    mock_client,
    no_sleep,
)

USER = "0x1111111111111111111111111111111111111111"


def _odos(http, settings=None):
    """Odos source with its own non-blocking limiter."""
    limiter = MinIntervalLimiter(odos.MIN_REQUEST_INTERVAL, sleep=no_sleep)
    return OdosSource(http, settings or Settings(), limiter=limiter, sleep=no_sleep)


def _oneinch(http, settings=None):
    limiter = MinIntervalLimiter(oneinch.MIN_REQUEST_INTERVAL, sleep=no_sleep)
    return OneInchSource(http, settings or Settings(), limiter=limiter, sleep=no_sleep)


def _json_handler(payload, status=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=payload)

    return handler


class TestOdosSource:
    """Tests for OdosSource."""

    def test_request_body(self):
        source = OdosSource(httpx.AsyncClient(), Settings(user_address=USER, slippage_bps=50))
        body = source.request_body(NATIVE_TOKEN, USDC_TOKEN, 10**18)
        assert body["chainId"] == 1
        assert body["inputTokens"] == [
            {"tokenAddress": "0x0000000000000000000000000000000000000000", "amount": str(10**18)}
        ]
        assert body["outputTokens"][0]["tokenAddress"] == odos_token_address(USDC)
        assert body["slippageLimitPercent"] == 0.5
        assert body["userAddr"] == "0x1111111111111111111111111111111111111111"

    @pytest.mark.asyncio
    async def test_successful_quote(self):
        seen = []
        payload = {"outAmounts": ["2500000000"], "pathId": "abc", "gasEstimate": 180000.0}
        async with mock_client(_json_handler(payload, seen=seen)) as http:
            source = _odos(http)
            quote = await source.quote(WETH_TOKEN, USDC_TOKEN, 10**18)

        assert quote.protocol is Protocol.ODOS
        assert quote.output_amount == 2_500_000_000
        assert quote.gas_estimate == 180_000
        assert quote.trade_data == {"pathId": "abc"}
        assert seen[0].url.path == "/sor/quote/v2"

    @pytest.mark.asyncio
    async def test_missing_gas_uses_default(self):
        async with mock_client(_json_handler({"outAmounts": ["5"]})) as http:
            quote = await _odos(http).quote(WETH_TOKEN, USDC_TOKEN, 10)
        assert quote.gas_estimate == ODOS_SWAP_GAS

    @pytest.mark.asyncio
    async def test_rate_limited_returns_none_or_raises(self):
        seen = []
        async with mock_client(_json_handler({}, status=429, seen=seen)) as http:
            source = _odos(http)
            assert await source.quote(WETH_TOKEN, USDC_TOKEN, 10**18) is None
            with pytest.raises(RateLimited):
                await source.quote(WETH_TOKEN, USDC_TOKEN, 10**18, raise_on_rate_limit=True)
        # Two calls, each with two retries
        assert len(seen) == 6

    @pytest.mark.asyncio
    async def test_invalid_payload_returns_none(self):
        async with mock_client(_json_handler({"outAmounts": []})) as http:
            assert await _odos(http).quote(WETH_TOKEN, USDC_TOKEN, 1) is None

    @pytest.mark.asyncio
    async def test_zero_output_returns_none(self):
        async with mock_client(_json_handler({"outAmounts": ["0"]})) as http:
            assert await _odos(http).quote(WETH_TOKEN, USDC_TOKEN, 1) is None

    @pytest.mark.asyncio
    async def test_zero_amount_raises_before_io(self):
        seen = []
        async with mock_client(_json_handler({}, seen=seen)) as http:
            with pytest.raises(InvalidAmount):
                await _odos(http).quote(WETH_TOKEN, USDC_TOKEN, 0)
        assert seen == []


class TestOneInchSource:
    """Tests for OneInchSource."""

    def test_protocol_fee(self):
        assert apply_protocol_fee(1_000_000) == 998_500

    def test_native_placeholder(self):
        assert oneinch_token_address(NATIVE_TOKEN.address).lower() == "0x" + "e" * 40

    @pytest.mark.asyncio
    async def test_quote_net_of_fee(self):
        seen = []
        payload = {"dstAmount": "1000000", "gas": 150000}
        async with mock_client(_json_handler(payload, seen=seen)) as http:
            source = _oneinch(http, Settings(oneinch_api_key="secret"))
            quote = await source.quote(NATIVE_TOKEN, USDC_TOKEN, 10**18)

        assert quote.protocol is Protocol.ONEINCH
        assert quote.output_amount == 998_500
        assert quote.gas_estimate == 150_000
        assert quote.trade_data == {"reportedOutput": 1_000_000}
        request = seen[0]
        assert request.url.path == "/swap/v6.0/1/quote"
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.url.params["src"].lower() == "0x" + "e" * 40

    @pytest.mark.asyncio
    async def test_legacy_amount_field(self):
        async with mock_client(_json_handler({"toTokenAmount": "20000"})) as http:
            quote = await _oneinch(http).quote(WETH_TOKEN, USDC_TOKEN, 1)
        assert quote.output_amount == 19_970

    @pytest.mark.asyncio
    async def test_server_error_returns_none(self):
        async with mock_client(_json_handler({"error": "x"}, status=500)) as http:
            source = _oneinch(http)
            assert await source.quote(WETH_TOKEN, USDC_TOKEN, 1) is None

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        source = OneInchSource(httpx.AsyncClient(), Settings())
        assert "Authorization" not in source.headers


class TestSharedLimiter:
    """Request spacing is per vendor, not per source instance."""

    def test_instances_share_vendor_limiter(self):
        first = OdosSource(httpx.AsyncClient())
        second = OdosSource(httpx.AsyncClient(), Settings(slippage_bps=10))
        assert first.limiter is second.limiter
        assert first.limiter is shared_limiter("odos", odos.MIN_REQUEST_INTERVAL)
        assert first.limiter.interval == 0.55

    def test_vendors_are_limited_separately(self):
        odos_source = OdosSource(httpx.AsyncClient())
        oneinch_source = OneInchSource(httpx.AsyncClient())
        assert odos_source.limiter is not oneinch_source.limiter
        assert oneinch_source.limiter.interval == 1.1

    def test_explicit_limiter_wins(self):
        limiter = MinIntervalLimiter(2.0)
        assert OneInchSource(httpx.AsyncClient(), limiter=limiter).limiter is limiter

    def test_limiter_survives_event_loop_restart(self):
        clock = FakeClock()

        async def sleep(seconds):
            clock.advance(seconds)
            await asyncio.sleep(0)

        limiter = MinIntervalLimiter(1.0, clock=clock, sleep=sleep)

        async def burst():
            return await asyncio.gather(*(limiter.acquire() for _ in range(3)))

        assert asyncio.run(burst()) == [0.0, 1.0, 1.0]
        assert asyncio.run(burst()) == [1.0, 1.0, 1.0]
