"""Pool graph and path enumeration for multi-hop routing.

Vertices are tokens (native and wrapped-native share one vertex), edges are
pools. Several pools may connect the same pair, so a token path expands
into one pool path per combination of parallel pools.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from itertools import product

from dexroute.models.pools import Pool
from dexroute.models.tokens import routing_address


@dataclass(frozen=True)
class Hop:
    """One pool traversal: sell token_in into pool for token_out."""

    pool: Pool
    token_in: str
    token_out: str


PoolPath = tuple[Hop, ...]


class PoolGraph:
    """Multigraph of tokens connected by pools.

    Keys are routing addresses; each edge keeps every pool that trades the
    pair, in insertion order.
    """

    def __init__(self) -> None:
        self._adjacency: dict[str, dict[str, list[Pool]]] = {}

    @classmethod
    def from_pools(cls, pools: Iterable[Pool]) -> PoolGraph:
        graph = cls()
        for pool in pools:
            graph.add_pool(pool)
        return graph

    def add_pool(self, pool: Pool) -> None:
        """Add edges between every pair of the pool's tokens."""
        addresses = [t.address for t in pool.tokens]
        for i, token_a in enumerate(addresses):
            for token_b in addresses[i + 1 :]:
                self._add_edge(token_a, token_b, pool)

    def _add_edge(self, token_a: str, token_b: str, pool: Pool) -> None:
        key_a, key_b = routing_address(token_a), routing_address(token_b)
        if key_a == key_b:
            return
        for src, dst in ((key_a, key_b), (key_b, key_a)):
            bucket = self._adjacency.setdefault(src, {}).setdefault(dst, [])
            if all(p.id != pool.id for p in bucket):
                bucket.append(pool)

    def neighbors(self, token: str) -> set[str]:
        return set(self._adjacency.get(routing_address(token), {}))

    def pools_between(self, token_a: str, token_b: str) -> list[Pool]:
        edges = self._adjacency.get(routing_address(token_a), {})
        return list(edges.get(routing_address(token_b), []))

    def has_token(self, token: str) -> bool:
        return routing_address(token) in self._adjacency

    @property
    def token_count(self) -> int:
        return len(self._adjacency)

    @property
    def pool_count(self) -> int:
        ids = {
            p.id for edges in self._adjacency.values() for pools in edges.values() for p in pools
        }
        return len(ids)


class PathFinder:
    """Enumerates simple token paths and their pool expansions.

    Usage:
        finder = PathFinder(PoolGraph.from_pools(pools))
        paths = finder.find_pool_paths(token_in, token_out, max_hops=2)
    """

    def __init__(self, graph: PoolGraph) -> None:
        self.graph = graph

    def find_token_paths(
        self,
        token_in: str,
        token_out: str,
        max_hops: int = 3,
        max_paths: int = 50,
    ) -> list[list[str]]:
        """Find simple token paths from token_in to token_out.

        Breadth-first, so direct paths come before 2-hop and 2-hop before
        3-hop paths. No token repeats within a path.

        Args:
            token_in: Starting token address
            token_out: Target token address
            max_hops: Maximum number of swaps (1 to 3)
            max_paths: Maximum number of paths returned

        Returns:
            Paths as lists of routing addresses; empty if none
        """
        start = routing_address(token_in)
        goal = routing_address(token_out)
        if start == goal or not self.graph.has_token(start) or not self.graph.has_token(goal):
            return []

        found: list[list[str]] = []
        queue: deque[list[str]] = deque([[start]])
        while queue and len(found) < max_paths:
            path = queue.popleft()
            if len(path) > max_hops:
                continue
            for neighbor in sorted(self.graph.neighbors(path[-1])):
                if neighbor == goal:
                    found.append(path + [goal])
                    if len(found) >= max_paths:
                        break
                elif neighbor not in path and len(path) < max_hops:
                    queue.append(path + [neighbor])

        found.sort(key=len)
        return found

    def find_pool_paths(
        self,
        token_in: str,
        token_out: str,
        max_hops: int = 3,
        max_paths: int = 200,
    ) -> list[PoolPath]:
        """Expand token paths into concrete pool sequences.

        Hop tokens are pool-side addresses, so a native token_in becomes
        wrapped-native on a pool that holds the wrapper. A pool never
        appears twice in one path.

        Returns:
            Pool paths, shortest first, capped at max_paths
        """
        results: list[PoolPath] = []
        for token_path in self.find_token_paths(token_in, token_out, max_hops, max_paths):
            edges = [self.graph.pools_between(a, b) for a, b in zip(token_path, token_path[1:])]
            for combo in product(*edges):
                if len({p.id for p in combo}) != len(combo):
                    continue
                hops = tuple(
                    Hop(
                        pool,
                        pool.resolve(token_path[i]).address,
                        pool.resolve(token_path[i + 1]).address,
                    )
                    for i, pool in enumerate(combo)
                )
                results.append(hops)
                if len(results) >= max_paths:
                    return results
        return results


__all__ = ["Hop", "PoolPath", "PoolGraph", "PathFinder"]
