"""Tests for the split optimizer."""

import pytest

from dexroute.errors import InsufficientLiquidity, InvalidAmount
from dexroute.routing.splitter import allocate, golden_section_maximize, optimize_split


def constant_product(reserve: int):
    """Output of a fee-less x*y=k pool with equal reserves."""

    def evaluate(amount: int) -> int:
        return reserve * amount // (reserve + amount)

    return evaluate


def broken(amount: int) -> int:
    raise InsufficientLiquidity("empty")


class TestAllocate:
    def test_sums_to_input(self):
        amounts = allocate(10**18 + 7, (0.2, 0.3, 0.5))
        assert sum(amounts) == 10**18 + 7
        assert amounts[0] == (10**18 + 7) * 200_000 // 10**6

    def test_one_hot(self):
        assert allocate(100, (0.0, 1.0)) == [0, 100]


class TestGoldenSection:
    def test_finds_peak(self):
        x, value = golden_section_maximize(lambda x: -int((x - 0.3) ** 2 * 10**12))
        assert x == pytest.approx(0.3, abs=1e-4)
        assert value <= 0

    def test_respects_bounds(self):
        x, _ = golden_section_maximize(lambda x: int(x * 10**6), 0.0, 0.5)
        assert 0.49 < x <= 0.5


class TestOptimizeSplit:
    """Tests for optimize_split."""

    def test_equal_pools_split_evenly(self):
        result = optimize_split([constant_product(10**6)] * 2, 10**6)
        assert result.fractions[0] == pytest.approx(0.5, abs=1e-3)
        assert result.is_split
        assert result.improvement > 0

    def test_split_proportional_to_depth(self):
        """With equal prices the optimum allocates in proportion to reserves."""
        result = optimize_split([constant_product(10**6), constant_product(4 * 10**6)], 10**6)
        assert result.fractions[0] == pytest.approx(0.2, abs=1e-3)
        assert result.fractions[1] == pytest.approx(0.8, abs=1e-3)
        assert sum(result.amounts) == 10**6

    def test_three_way(self):
        evaluators = [constant_product(r * 10**6) for r in (1, 2, 7)]
        result = optimize_split(evaluators, 10**6)
        assert result.fractions == pytest.approx((0.1, 0.2, 0.7), abs=1e-2)
        assert sum(result.amounts) == 10**6

    def test_four_routes_use_equal_split(self):
        result = optimize_split([constant_product(10**6)] * 4, 10**6)
        assert result.fractions == (0.25, 0.25, 0.25, 0.25)

    def test_never_worse_than_single(self):
        result = optimize_split([constant_product(10**6), lambda amount: 0], 10**6)
        assert not result.is_split
        assert result.amounts == (10**6, 0)
        assert result.total_output == result.best_single_output

    def test_failing_route_counts_as_zero(self):
        result = optimize_split([broken, constant_product(10**6)], 10**6)
        assert result.amounts == (0, 10**6)

    def test_single_route(self):
        result = optimize_split([constant_product(10**6)], 500)
        assert result.fractions == (1.0,)
        assert result.amounts == (500,)

    def test_invalid_input(self):
        with pytest.raises(InvalidAmount):
            optimize_split([constant_product(10**6)], 0)
        with pytest.raises(ValueError):
            optimize_split([], 10)
