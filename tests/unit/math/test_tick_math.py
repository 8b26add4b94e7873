"""Tests for tick <-> sqrt price conversions."""

import math

import pytest

from dexroute.errors import InvalidSqrtRatio, InvalidTick
from dexroute.math.full_math import Q96
from dexroute.math.tick_math import (
    MAX_SQRT_RATIO,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MIN_TICK,
    floor_to_spacing,
    max_usable_tick,
    min_usable_tick,
    sqrt_price_at_tick,
    tick_at_sqrt_price,
)


class TestSqrtPriceAtTick:
    """Tests for sqrt_price_at_tick."""

    def test_tick_zero_is_one(self):
        assert sqrt_price_at_tick(0) == Q96

    def test_bounds_match_constants(self):
        assert sqrt_price_at_tick(MIN_TICK) == MIN_SQRT_RATIO
        assert sqrt_price_at_tick(MAX_TICK) == MAX_SQRT_RATIO

    @pytest.mark.parametrize("tick", [-887272 - 1, 887272 + 1])
    def test_out_of_range_raises(self, tick):
        with pytest.raises(InvalidTick):
            sqrt_price_at_tick(tick)

    def test_monotonic(self):
        ticks = [-500_000, -60, -1, 0, 1, 60, 500_000]
        prices = [sqrt_price_at_tick(t) for t in ticks]
        assert prices == sorted(prices)
        assert len(set(prices)) == len(prices)

    @pytest.mark.parametrize("tick", [-20_000, -1, 1, 100, 46_054])
    def test_close_to_float_formula(self, tick):
        expected = math.sqrt(1.0001**tick) * Q96
        assert sqrt_price_at_tick(tick) == pytest.approx(expected, rel=1e-12)


class TestTickAtSqrtPrice:
    """Tests for tick_at_sqrt_price."""

    @pytest.mark.parametrize("tick", [MIN_TICK, -887220, -12345, -1, 0, 1, 200_000, MAX_TICK])
    def test_roundtrip(self, tick):
        assert tick_at_sqrt_price(sqrt_price_at_tick(tick)) == tick

    def test_between_ticks_floors(self):
        price = sqrt_price_at_tick(10) + 1
        assert tick_at_sqrt_price(price) == 10
        assert tick_at_sqrt_price(sqrt_price_at_tick(11) - 1) == 10

    def test_out_of_range_raises(self):
        with pytest.raises(InvalidSqrtRatio):
            tick_at_sqrt_price(MIN_SQRT_RATIO - 1)
        with pytest.raises(InvalidSqrtRatio):
            tick_at_sqrt_price(MAX_SQRT_RATIO + 1)


class TestTickSpacing:
    def test_floor_to_spacing(self):
        assert floor_to_spacing(61, 60) == 60
        assert floor_to_spacing(-1, 60) == -60
        assert floor_to_spacing(-60, 60) == -60

    def test_floor_to_spacing_rejects_non_positive(self):
        with pytest.raises(InvalidTick):
            floor_to_spacing(10, 0)

    def test_usable_ticks(self):
        assert min_usable_tick(60) == -887220
        assert max_usable_tick(60) == 887220
        assert max_usable_tick(1) == MAX_TICK
