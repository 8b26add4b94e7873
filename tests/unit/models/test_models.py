"""Tests for tokens, pools, routes and quotes."""

from decimal import Decimal

import pytest

from dexroute.amm import pool_output
from dexroute.models.pools import PoolKind, pool_tick_bounds_ok, sort_tokens
from dexroute.models.quote import Protocol, Quote
from dexroute.models.route import Leg, Route, SplitRoute
from dexroute.models.tokens import Token, is_native, routing_address, same_token
from dexroute.models.types import address_bytes, checksum, normalize_address, validate_uint256
from tests.helpers import (
    AAVE,
    DAI,
    NATIVE,
    USDC,
    WETH,
    make_concentrated_pool,
    make_token,
    make_weighted_pool,
)


def _leg(pool, token_in, amount_in):
    result = pool_output(pool, token_in, amount_in)
    return Leg(
        pool=pool,
        token_in=pool.resolve(result.token_in),
        token_out=pool.resolve(result.token_out),
        amount_in=amount_in,
        expected_output=result.amount_out,
        gas_estimate=result.gas_estimate,
    )


class TestAddresses:
    def test_normalize(self):
        assert normalize_address("0xC02AAA39B223FE8D0A0E5C4F27EAD9083C756CC2") == WETH
        assert normalize_address(WETH[2:]) == WETH

    def test_normalize_validates(self):
        with pytest.raises(ValueError):
            normalize_address("0x1234", validate=True)

    def test_checksum(self):
        assert checksum(WETH) == "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"

    def test_address_bytes(self):
        assert len(address_bytes(USDC)) == 20

    @pytest.mark.parametrize("value, expected", [("42", 42), ("0x10", 16), (7, 7)])
    def test_uint256(self, value, expected):
        assert validate_uint256(value) == expected

    @pytest.mark.parametrize("value", [-1, 2**256, True, "abc", 1.5])
    def test_uint256_rejects(self, value):
        with pytest.raises(ValueError):
            validate_uint256(value)


class TestToken:
    def test_lowercases_address(self):
        token = Token("0xA0B86991C6218B36C1D19D4A2E9EB0CE3606EB48", "USDC", 6)
        assert token.address == USDC
        assert token == make_token(USDC, symbol="USDC")

    def test_scaling_factor(self):
        assert make_token(USDC).scaling_factor == 10**12
        assert make_token(WETH).scaling_factor == 1

    def test_rejects_bad_decimals(self):
        with pytest.raises(ValueError):
            Token(USDC, "USDC", 25)

    def test_native_helpers(self):
        assert is_native(NATIVE)
        assert is_native("0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE")
        assert not is_native(WETH)
        assert routing_address(NATIVE) == WETH
        assert routing_address(USDC) == USDC
        assert same_token(WETH.upper().replace("0X", "0x"), WETH)


class TestPools:
    def test_sort_tokens(self):
        usdc, weth = make_token(USDC), make_token(WETH)
        assert sort_tokens(weth, usdc) == (usdc, weth)

    def test_concentrated_requires_order(self):
        pool = make_concentrated_pool(WETH, USDC)
        with pytest.raises(ValueError):
            type(pool)(
                id=pool.id,
                token0=pool.token1,
                token1=pool.token0,
                fee=pool.fee,
                tick_spacing=pool.tick_spacing,
                sqrt_price_x96=pool.sqrt_price_x96,
                tick=pool.tick,
                liquidity=pool.liquidity,
            )

    def test_concentrated_pool_key(self):
        pool = make_concentrated_pool(WETH, USDC, fee=500, tick_spacing=10)
        key = pool.pool_key
        assert (key.currency0, key.currency1) == (USDC, WETH)
        assert key.as_abi_tuple() == (USDC, WETH, 500, 10, NATIVE)
        assert pool.has_neutral_hooks
        assert pool.zero_for_one(USDC)
        assert not pool.zero_for_one(NATIVE)

    def test_swap_fee(self):
        assert make_concentrated_pool(WETH, USDC, fee=3000).swap_fee == Decimal("0.003")

    def test_tick_bounds(self):
        assert pool_tick_bounds_ok(make_concentrated_pool(WETH, USDC))

    def test_weighted_with_balances(self):
        pool = make_weighted_pool({WETH: 10**18, DAI: 10**18})
        updated = pool.with_balances({WETH: 5})
        assert updated.reserve(WETH).balance == 5
        assert updated.reserve(DAI).balance == 10**18
        assert updated.kind is PoolKind.WEIGHTED

    def test_resolve_unknown_token_raises(self):
        pool = make_weighted_pool({WETH: 10**18, DAI: 10**18})
        with pytest.raises(ValueError):
            pool.resolve(AAVE)


class TestRoutes:
    def test_two_hop_route(self):
        first = make_concentrated_pool(USDC, WETH)
        second = make_concentrated_pool(WETH, AAVE)
        leg0 = _leg(first, USDC, 10**8)
        leg1 = _leg(second, WETH, leg0.expected_output)
        route = Route((leg0, leg1))
        assert route.hops == 2
        assert route.token_in.address == USDC
        assert route.token_out.address == AAVE
        assert route.amount_out == leg1.expected_output
        assert route.pool_ids == {first.id, second.id}

    def test_broken_route_raises(self):
        leg0 = _leg(make_concentrated_pool(USDC, WETH), USDC, 10**8)
        leg1 = _leg(make_concentrated_pool(DAI, AAVE), DAI, 10**18)
        with pytest.raises(ValueError):
            Route((leg0, leg1))

    def test_empty_route_raises(self):
        with pytest.raises(ValueError):
            Route(())

    def test_split_route(self):
        a = Route((_leg(make_concentrated_pool(USDC, WETH), USDC, 2 * 10**8),))
        b = Route((_leg(make_concentrated_pool(USDC, WETH, fee=500), USDC, 8 * 10**8),))
        split = SplitRoute((a, b), (0.2, 0.8))
        assert split.amount_in == 10**9
        assert split.amount_out == a.amount_out + b.amount_out
        assert split.gas_estimate == a.gas_estimate + b.gas_estimate

    def test_split_route_needs_two(self):
        a = Route((_leg(make_concentrated_pool(USDC, WETH), USDC, 10**8),))
        with pytest.raises(ValueError):
            SplitRoute((a,), (1.0,))


class TestQuote:
    def test_net_output_floors_at_zero(self):
        quote = Quote(Protocol.ODOS, output_amount=100, gas_estimate=1, gas_cost_in_token=150)
        assert quote.net_output == 0
        assert quote.unprofitability == 50

    def test_protocol_values(self):
        assert Protocol("1inch") is Protocol.ONEINCH
        assert Protocol.BUNDLER.value == "walletbundler"
