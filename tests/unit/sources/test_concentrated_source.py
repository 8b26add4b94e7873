"""Tests for the concentrated-liquidity pool source."""

import json

import httpx
import pytest

from dexroute.config import Settings
from dexroute.constants import NATIVE_ADDRESS, WRAPPED_NATIVE_ADDRESS
from dexroute.errors import InvalidAmount
from dexroute.math.tick_math import sqrt_price_at_tick
from dexroute.models.pools import TickRecord
from dexroute.models.quote import Protocol
from dexroute.models.route import Route
from dexroute.sources.concentrated import (
    ConcentratedSource,
    SubgraphPool,
    parse_pool,
    query_addresses,
    sanitize_ticks,
)
from dexroute.sources.subgraph import SubgraphClient
from tests.helpers import (
    AAVE_TOKEN,
    NATIVE,
    USDC,
    USDC_TOKEN,
    WETH,
    WETH_TOKEN,
    make_concentrated_pool,
    mock_client,
    subgraph_pool_record,
)

URL = "https://indexer.example/concentrated"


def _source(http, **overrides) -> ConcentratedSource:
    settings = Settings(**overrides)
    return ConcentratedSource(SubgraphClient(URL, http, base_delay=0), settings)


def _serve(records):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        return httpx.Response(200, json={"data": {"pools": records}})

    return handler, calls


class TestSanitizeTicks:
    """Tests for sanitize_ticks."""

    def test_drops_misaligned_out_of_range_and_duplicates(self):
        ticks = [
            TickRecord(120, -5, 5),
            TickRecord(-60, 5, 5),
            TickRecord(61, 1, 1),
            TickRecord(887280, 1, 1),
            TickRecord(-60, 9, 9),
        ]
        cleaned = sanitize_ticks(ticks, 60)
        assert [t.index for t in cleaned] == [-60, 120]
        assert cleaned[0].liquidity_net == 5

    def test_idempotent(self):
        ticks = [TickRecord(180, -1, 1), TickRecord(7, 1, 1), TickRecord(-180, 1, 1)]
        once = sanitize_ticks(ticks, 60)
        assert sanitize_ticks(once, 60) == once


class TestParsePool:
    def test_roundtrip_from_record(self):
        pool = make_concentrated_pool(USDC, WETH, tick=-1200)
        parsed = parse_pool(SubgraphPool.model_validate(subgraph_pool_record(pool)))
        assert parsed.id == pool.id
        assert parsed.token0.address == USDC
        assert parsed.token0.decimals == 6
        assert parsed.ticks == pool.ticks
        assert parsed.tick == -1200

    def test_tick_recomputed_from_sqrt_price(self):
        record = subgraph_pool_record(make_concentrated_pool(USDC, WETH))
        record["sqrtPrice"] = str(sqrt_price_at_tick(300) + 1)
        record["tick"] = "0"
        assert parse_pool(SubgraphPool.model_validate(record)).tick == 300

    def test_query_addresses(self):
        assert query_addresses(NATIVE) == [NATIVE_ADDRESS, WRAPPED_NATIVE_ADDRESS]
        assert query_addresses(WETH) == [NATIVE_ADDRESS, WRAPPED_NATIVE_ADDRESS]
        assert query_addresses(USDC.upper().replace("0X", "0x")) == [USDC]


class TestFetchPools:
    """Tests for ConcentratedSource.fetch_pools."""

    @pytest.mark.asyncio
    async def test_issues_three_queries_and_dedupes(self):
        pool = make_concentrated_pool(USDC, WETH)
        handler, calls = _serve([subgraph_pool_record(pool)])
        async with mock_client(handler) as http:
            pools = await _source(http).fetch_pools(USDC_TOKEN, WETH_TOKEN)
        assert len(calls) == 3
        assert [p.id for p in pools] == [pool.id]

    @pytest.mark.asyncio
    async def test_filters_tvl_liquidity_and_hooks(self):
        keep = make_concentrated_pool(USDC, WETH)
        low_tvl = subgraph_pool_record(make_concentrated_pool(USDC, WETH), tvl="10")
        hooked = subgraph_pool_record(make_concentrated_pool(USDC, WETH))
        hooked["hooks"] = "0x" + "12" * 20
        empty = subgraph_pool_record(make_concentrated_pool(USDC, WETH, liquidity=0))
        handler, _ = _serve([subgraph_pool_record(keep), low_tvl, hooked, empty])
        async with mock_client(handler) as http:
            pools = await _source(http).fetch_pools(USDC_TOKEN, WETH_TOKEN)
        assert [p.id for p in pools] == [keep.id]

    @pytest.mark.asyncio
    async def test_unparseable_records_skipped(self):
        pool = make_concentrated_pool(USDC, WETH)
        handler, _ = _serve([{"id": "broken"}, subgraph_pool_record(pool)])
        async with mock_client(handler) as http:
            pools = await _source(http).fetch_pools(USDC_TOKEN, WETH_TOKEN)
        assert [p.id for p in pools] == [pool.id]

    @pytest.mark.asyncio
    async def test_hub_tokens_in_queries(self):
        handler, calls = _serve([])
        async with mock_client(handler) as http:
            await _source(http).fetch_pools(USDC_TOKEN, AAVE_TOKEN)
        direct = next(c["variables"]["tokens"] for c in calls if "tokens" in c["variables"])
        assert USDC in direct
        assert WETH in direct


class TestQuote:
    @pytest.mark.asyncio
    async def test_quote_carries_route(self):
        pool = make_concentrated_pool(USDC, WETH)
        handler, _ = _serve([subgraph_pool_record(pool)])
        async with mock_client(handler) as http:
            quote = await _source(http).quote(USDC_TOKEN, WETH_TOKEN, 10**6)
        assert quote is not None
        assert quote.protocol is Protocol.CONCENTRATED
        assert isinstance(quote.trade_data, Route)
        assert quote.output_amount == quote.trade_data.amount_out

    @pytest.mark.asyncio
    async def test_no_route_returns_none(self):
        handler, _ = _serve([])
        async with mock_client(handler) as http:
            assert await _source(http).quote(USDC_TOKEN, WETH_TOKEN, 10**6) is None

    @pytest.mark.asyncio
    async def test_zero_amount_raises_before_io(self):
        handler, calls = _serve([])
        async with mock_client(handler) as http:
            with pytest.raises(InvalidAmount):
                await _source(http).quote(USDC_TOKEN, WETH_TOKEN, 0)
        assert calls == []

    @pytest.mark.asyncio
    async def test_indexer_down_returns_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        async with mock_client(handler) as http:
            assert await _source(http).quote(USDC_TOKEN, WETH_TOKEN, 10**6) is None
