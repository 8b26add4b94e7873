"""Route search over pool snapshots.

Enumerates pool paths up to max_hops, prices each with the AMM models,
keeps the best pool-disjoint candidates and, when the runner-up is
comparable to the best, asks the splitter whether spreading the input
across them beats the single best path.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from dexroute.amm.base import SwapResult, pool_output_to
from dexroute.errors import InsufficientLiquidity, InvalidAmount, NoRoute
from dexroute.models.pools import Pool, pool_liquidity
from dexroute.models.route import Leg, Route, SplitRoute
from dexroute.routing.pathfinding import PathFinder, PoolGraph, PoolPath
from dexroute.routing.splitter import DEFAULT_TOLERANCE, optimize_split

logger = structlog.get_logger()

MAX_SPLIT_ROUTES = 4


def simulate_path(path: PoolPath, amount_in: int) -> list[SwapResult]:
    """Run amount_in through every hop of a pool path.

    Raises:
        InvalidAmount: If amount_in is not positive
        InsufficientLiquidity: If any hop cannot fill or yields nothing
    """
    results = []
    amount = amount_in
    for hop in path:
        result = pool_output_to(hop.pool, hop.token_in, hop.token_out, amount)
        if result.amount_out <= 0:
            raise InsufficientLiquidity(f"Pool {hop.pool.id} returns nothing for {amount}")
        results.append(result)
        amount = result.amount_out
    return results


def build_route(path: PoolPath, amount_in: int) -> Route:
    """Price a path and turn it into a Route with per-leg amounts."""
    legs = []
    for hop, result in zip(path, simulate_path(path, amount_in)):
        legs.append(
            Leg(
                pool=hop.pool,
                token_in=hop.pool.resolve(hop.token_in),
                token_out=hop.pool.resolve(hop.token_out),
                amount_in=result.amount_in,
                expected_output=result.amount_out,
                gas_estimate=result.gas_estimate,
            )
        )
    return Route(tuple(legs))


class RouteSearch:
    """Best path or split across a set of pools.

    Args:
        max_hops: Longest path considered (1 to 3)
        max_paths: Cap on enumerated pool paths
        max_candidates: Pool-disjoint candidates kept for splitting
        min_liquidity: Pools with a lower liquidity scalar are ignored
        split_threshold: Attempt a split when runner-up >= threshold * best
        split_tolerance: Splitter bracket tolerance
    """

    def __init__(
        self,
        *,
        max_hops: int = 3,
        max_paths: int = 200,
        max_candidates: int = MAX_SPLIT_ROUTES,
        min_liquidity: int = 0,
        split_threshold: float = 0.5,
        split_tolerance: float = DEFAULT_TOLERANCE,
    ) -> None:
        self.max_hops = max_hops
        self.max_paths = max_paths
        self.max_candidates = max_candidates
        self.min_liquidity = min_liquidity
        self.split_threshold = split_threshold
        self.split_tolerance = split_tolerance

    @classmethod
    def from_settings(cls, settings) -> RouteSearch:
        return cls(
            max_hops=settings.max_hops,
            max_paths=settings.max_paths,
            max_candidates=settings.max_candidates,
            min_liquidity=settings.search_min_liquidity,
            split_threshold=settings.split_threshold,
        )

    def _usable(self, pools: Iterable[Pool]) -> list[Pool]:
        return [p for p in pools if pool_liquidity(p) >= self.min_liquidity]

    def paths(self, pools: Iterable[Pool], token_in: str, token_out: str) -> list[PoolPath]:
        finder = PathFinder(PoolGraph.from_pools(self._usable(pools)))
        return finder.find_pool_paths(token_in, token_out, self.max_hops, self.max_paths)

    def candidates(
        self, pools: Iterable[Pool], token_in: str, token_out: str, amount_in: int
    ) -> list[tuple[PoolPath, Route]]:
        """Every path that can fill amount_in, best output first."""
        if amount_in <= 0:
            raise InvalidAmount(f"Input amount must be positive, got {amount_in}")

        priced = []
        for path in self.paths(pools, token_in, token_out):
            try:
                route = build_route(path, amount_in)
            except InsufficientLiquidity as e:
                logger.debug("path_rejected", pools=[h.pool.id for h in path], reason=str(e))
                continue
            priced.append((path, route))

        # Stable sort: on equal output, shorter (earlier enumerated) paths win
        priced.sort(key=lambda item: item[1].amount_out, reverse=True)
        return priced

    def disjoint(self, priced: Sequence[tuple[PoolPath, Route]]) -> list[tuple[PoolPath, Route]]:
        """Greedy pick of candidates sharing no pool, best first."""
        kept: list[tuple[PoolPath, Route]] = []
        used: set[str] = set()
        for path, route in priced:
            if route.pool_ids & used:
                continue
            kept.append((path, route))
            used |= route.pool_ids
            if len(kept) >= self.max_candidates:
                break
        return kept

    def best_route(
        self, pools: Iterable[Pool], token_in: str, token_out: str, amount_in: int
    ) -> Route | SplitRoute:
        """Best single path, or a split if it strictly beats that path.

        Raises:
            InvalidAmount: If amount_in is not positive
            NoRoute: If no path can fill amount_in
        """
        priced = self.candidates(pools, token_in, token_out, amount_in)
        if not priced:
            raise NoRoute(f"No route from {token_in} to {token_out} for {amount_in}")

        kept = self.disjoint(priced)
        _, best = kept[0]
        comparable = [
            (path, route)
            for path, route in kept
            if route.amount_out >= self.split_threshold * best.amount_out
        ][:MAX_SPLIT_ROUTES]

        logger.debug(
            "route_candidates",
            paths=len(priced),
            disjoint=len(kept),
            comparable=len(comparable),
            best_output=best.amount_out,
        )
        if len(comparable) < 2:
            return best

        split = self._try_split(comparable, amount_in)
        if split is not None and split.amount_out > best.amount_out:
            return split
        return best

    def _try_split(
        self, comparable: Sequence[tuple[PoolPath, Route]], amount_in: int
    ) -> SplitRoute | None:
        paths = [path for path, _ in comparable]
        evaluators = [
            lambda amount, p=path: simulate_path(p, amount)[-1].amount_out for path in paths
        ]
        result = optimize_split(evaluators, amount_in, self.split_tolerance)
        if not result.is_split or result.improvement <= 0:
            return None

        routes = []
        fractions = []
        for path, amount, fraction in zip(paths, result.amounts, result.fractions):
            if amount <= 0:
                continue
            try:
                routes.append(build_route(path, amount))
            except InsufficientLiquidity:
                return None
            fractions.append(fraction)
        if len(routes) < 2:
            return None

        total = sum(fractions)
        return SplitRoute(tuple(routes), tuple(f / total for f in fractions))


__all__ = ["MAX_SPLIT_ROUTES", "RouteSearch", "build_route", "simulate_path"]
