"""Split optimizer: allocate one input across parallel routes.

Each route is given as an evaluator, amount_in -> amount_out, built from the
same AMM functions the search uses. Fractions live in [0, 1]; amounts are
derived with integer arithmetic at 10^6 resolution and the last route takes
the remainder, so allocations always sum to the input exactly.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from dexroute.errors import InsufficientLiquidity, InvalidAmount

logger = structlog.get_logger()

Evaluator = Callable[[int], int]

GOLDEN_RATIO = (math.sqrt(5) - 1) / 2
DEFAULT_TOLERANCE = 1e-5
FRACTION_SCALE = 10**6


@dataclass(frozen=True)
class SplitResult:
    """Best allocation found.

    Attributes:
        fractions: Share of the input per route (sums to 1)
        amounts: Integer input per route (sums to amount_in)
        outputs: Output per route at those amounts
        total_output: Sum of outputs
        best_single_output: Output of the best route taking everything
    """

    fractions: tuple[float, ...]
    amounts: tuple[int, ...]
    outputs: tuple[int, ...]
    total_output: int
    best_single_output: int

    @property
    def improvement(self) -> int:
        return self.total_output - self.best_single_output

    @property
    def is_split(self) -> bool:
        return sum(1 for a in self.amounts if a > 0) > 1


def allocate(amount_in: int, fractions: Sequence[float]) -> list[int]:
    """Integer amounts for the given fractions; the last gets the remainder."""
    amounts = [amount_in * int(f * FRACTION_SCALE) // FRACTION_SCALE for f in fractions[:-1]]
    amounts.append(amount_in - sum(amounts))
    return amounts


def _safe_output(evaluator: Evaluator, amount: int) -> int:
    if amount <= 0:
        return 0
    try:
        return evaluator(amount)
    except InsufficientLiquidity:
        return 0


def evaluate(
    evaluators: Sequence[Evaluator], amount_in: int, fractions: Sequence[float]
) -> tuple[list[int], list[int]]:
    """Amounts and outputs per route; a route that cannot fill yields 0."""
    amounts = allocate(amount_in, fractions)
    outputs = [_safe_output(fn, amount) for fn, amount in zip(evaluators, amounts)]
    return amounts, outputs


def golden_section_maximize(
    f: Callable[[float], int],
    lo: float = 0.0,
    hi: float = 1.0,
    tol: float = DEFAULT_TOLERANCE,
) -> tuple[float, int]:
    """Maximize a unimodal f on [lo, hi].

    Stops once the bracket is narrower than tol. The best point evaluated
    along the way is returned, not just the final bracket midpoint.

    Returns:
        (x, f(x)) for the best x seen
    """
    a, b = lo, hi
    x1 = a + (1 - GOLDEN_RATIO) * (b - a)
    x2 = a + GOLDEN_RATIO * (b - a)
    f1, f2 = f(x1), f(x2)
    best_x, best_f = (x1, f1) if f1 >= f2 else (x2, f2)

    while abs(b - a) > tol:
        if f1 > f2:
            b, x2, f2 = x2, x1, f1
            x1 = a + (1 - GOLDEN_RATIO) * (b - a)
            f1 = f(x1)
            if f1 > best_f:
                best_x, best_f = x1, f1
        else:
            a, x1, f1 = x1, x2, f2
            x2 = a + GOLDEN_RATIO * (b - a)
            f2 = f(x2)
            if f2 > best_f:
                best_x, best_f = x2, f2

    return best_x, best_f


def _two_way(evaluators: Sequence[Evaluator], amount_in: int, tol: float) -> tuple[float, ...]:
    def total(x: float) -> int:
        return sum(evaluate(evaluators, amount_in, (x, 1 - x))[1])

    x, _ = golden_section_maximize(total, 0.0, 1.0, tol)
    return (x, 1 - x)


def _three_way(evaluators: Sequence[Evaluator], amount_in: int, tol: float) -> tuple[float, ...]:
    best: dict[float, tuple[float, int]] = {}

    def inner(x1: float) -> int:
        # Best second fraction for a fixed first fraction
        if x1 in best:
            return best[x1][1]
        remaining = max(0.0, 1.0 - x1)

        def total(x2: float) -> int:
            return sum(evaluate(evaluators, amount_in, (x1, x2, 1 - x1 - x2))[1])

        x2, value = golden_section_maximize(total, 0.0, remaining, tol)
        best[x1] = (x2, value)
        return value

    x1, _ = golden_section_maximize(inner, 0.0, 1.0, tol)
    x2 = best[x1][0]
    return (x1, x2, max(0.0, 1.0 - x1 - x2))


def optimize_split(
    evaluators: Sequence[Evaluator],
    amount_in: int,
    tol: float = DEFAULT_TOLERANCE,
) -> SplitResult:
    """Find split fractions maximizing total output.

    n = 2 uses golden-section search, n = 3 nests it, n >= 4 uses an equal
    split. The result never does worse than the best single route: if no
    split beats it, the one-hot allocation of that route is returned.

    Args:
        evaluators: One amount -> output function per route
        amount_in: Total input to allocate
        tol: Bracket width at which the search stops

    Raises:
        InvalidAmount: If amount_in is not positive
        ValueError: If no evaluators are given
    """
    if amount_in <= 0:
        raise InvalidAmount(f"Input amount must be positive, got {amount_in}")
    n = len(evaluators)
    if n == 0:
        raise ValueError("optimize_split needs at least one route")

    singles = []
    for i in range(n):
        one_hot = tuple(1.0 if j == i else 0.0 for j in range(n))
        amounts, outputs = evaluate(evaluators, amount_in, one_hot)
        singles.append((one_hot, amounts, outputs))
    best_single = max(singles, key=lambda s: sum(s[2]))
    best_single_output = sum(best_single[2])

    if n == 1:
        fractions: tuple[float, ...] = (1.0,)
    elif n == 2:
        fractions = _two_way(evaluators, amount_in, tol)
    elif n == 3:
        fractions = _three_way(evaluators, amount_in, tol)
    else:
        # TODO: replace with a full n-dimensional search
        fractions = tuple(1.0 / n for _ in range(n))

    amounts, outputs = evaluate(evaluators, amount_in, fractions)
    if sum(outputs) <= best_single_output:
        fractions, amounts, outputs = best_single

    result = SplitResult(
        fractions=tuple(fractions),
        amounts=tuple(amounts),
        outputs=tuple(outputs),
        total_output=sum(outputs),
        best_single_output=best_single_output,
    )
    logger.debug(
        "split_optimized",
        routes=n,
        fractions=[round(f, 6) for f in result.fractions],
        improvement=result.improvement,
    )
    return result


__all__ = [
    "Evaluator",
    "GOLDEN_RATIO",
    "DEFAULT_TOLERANCE",
    "FRACTION_SCALE",
    "SplitResult",
    "allocate",
    "evaluate",
    "golden_section_maximize",
    "optimize_split",
]
