"""Tests for RouteSearch."""

import pytest

from dexroute.config import Settings
from dexroute.errors import InvalidAmount, NoRoute
from dexroute.models.route import Route, SplitRoute
from dexroute.routing.search import RouteSearch, build_route, simulate_path
from dexroute.routing.pathfinding import PathFinder, PoolGraph
from tests.helpers import AAVE, DAI, NATIVE, USDC, WETH, make_concentrated_pool


class TestSimulatePath:
    def test_chains_outputs(self):
        first = make_concentrated_pool(USDC, WETH)
        second = make_concentrated_pool(WETH, AAVE)
        (path,) = PathFinder(PoolGraph.from_pools([first, second])).find_pool_paths(USDC, AAVE)
        results = simulate_path(path, 10**8)
        assert results[1].amount_in == results[0].amount_out

    def test_build_route_carries_amounts(self):
        pool = make_concentrated_pool(USDC, WETH)
        (path,) = PathFinder(PoolGraph.from_pools([pool])).find_pool_paths(USDC, WETH)
        route = build_route(path, 10**8)
        assert route.amount_in == 10**8
        assert route.legs[0].token_in.address == USDC
        assert route.legs[0].expected_output > 0


class TestRouteSearch:
    """Tests for best_route."""

    def test_single_pool(self):
        pool = make_concentrated_pool(USDC, WETH)
        route = RouteSearch().best_route([pool], USDC, WETH, 10**8)
        assert isinstance(route, Route)
        assert route.pool_ids == {pool.id}

    def test_two_hop_through_hub(self):
        pools = [make_concentrated_pool(USDC, WETH), make_concentrated_pool(WETH, AAVE)]
        route = RouteSearch().best_route(pools, USDC, AAVE, 10**8)
        assert isinstance(route, Route)
        assert route.hops == 2
        assert route.token_out.address == AAVE

    def test_native_input_routes_through_wrapped(self):
        pool = make_concentrated_pool(WETH, USDC)
        route = RouteSearch().best_route([pool], NATIVE, USDC, 10**18)
        assert route.legs[0].token_in.address == WETH

    def test_prefers_better_pool(self):
        shallow = make_concentrated_pool(USDC, WETH, liquidity=10**15)
        deep = make_concentrated_pool(USDC, WETH, liquidity=10**24, fee=500, tick_spacing=10)
        route = RouteSearch().best_route([shallow, deep], USDC, WETH, 10**17)
        assert isinstance(route, Route)
        assert route.pool_ids == {deep.id}

    def test_splits_across_comparable_pools(self):
        a = make_concentrated_pool(USDC, WETH, liquidity=10**18)
        b = make_concentrated_pool(USDC, WETH, liquidity=10**18)
        best_single = RouteSearch().best_route([a], USDC, WETH, 10**18)
        route = RouteSearch().best_route([a, b], USDC, WETH, 10**18)
        assert isinstance(route, SplitRoute)
        assert route.amount_in == 10**18
        assert route.amount_out > best_single.amount_out
        assert route.fractions[0] == pytest.approx(0.5, abs=1e-3)

    def test_no_split_below_threshold(self):
        deep = make_concentrated_pool(USDC, WETH, liquidity=10**18)
        shallow = make_concentrated_pool(USDC, WETH, liquidity=10**16)
        route = RouteSearch().best_route([deep, shallow], USDC, WETH, 10**18)
        assert isinstance(route, Route)

    def test_disjoint_drops_shared_pool(self):
        hub = make_concentrated_pool(USDC, WETH)
        out_a = make_concentrated_pool(WETH, AAVE)
        out_b = make_concentrated_pool(WETH, AAVE, fee=500, tick_spacing=10)
        search = RouteSearch()
        priced = search.candidates([hub, out_a, out_b], USDC, AAVE, 10**8)
        assert len(priced) == 2
        assert len(search.disjoint(priced)) == 1

    def test_min_liquidity_filters(self):
        pool = make_concentrated_pool(USDC, WETH, liquidity=10**10)
        with pytest.raises(NoRoute):
            RouteSearch(min_liquidity=10**12).best_route([pool], USDC, WETH, 10**6)

    def test_no_route(self):
        with pytest.raises(NoRoute):
            RouteSearch().best_route([make_concentrated_pool(USDC, WETH)], USDC, DAI, 10**6)

    def test_zero_amount(self):
        with pytest.raises(InvalidAmount):
            RouteSearch().best_route([make_concentrated_pool(USDC, WETH)], USDC, WETH, 0)

    def test_from_settings(self):
        search = RouteSearch.from_settings(Settings(max_hops=2, split_threshold=0.7))
        assert search.max_hops == 2
        assert search.split_threshold == 0.7
