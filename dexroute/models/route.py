"""Routes: chains of pool hops, and splits across parallel chains."""

from __future__ import annotations

from dataclasses import dataclass

from dexroute.models.pools import Pool, PoolKind
from dexroute.models.tokens import Token, routing_address


@dataclass(frozen=True)
class Leg:
    """One pool hop of a route.

    token_in / token_out are the pool-side tokens; the user-side token of
    the first hop may differ (native vs wrapped) and is reconciled by the
    plan compiler with a wrap operation.
    """

    pool: Pool
    token_in: Token
    token_out: Token
    amount_in: int
    expected_output: int
    gas_estimate: int = 0

    @property
    def kind(self) -> PoolKind:
        return self.pool.kind

    @property
    def pool_id(self) -> str:
        return self.pool.id


@dataclass(frozen=True)
class Route:
    """An ordered list of legs, each consuming the previous leg's output."""

    legs: tuple[Leg, ...]

    def __post_init__(self) -> None:
        if not self.legs:
            raise ValueError("Route needs at least one leg")
        for prev, nxt in zip(self.legs, self.legs[1:]):
            if routing_address(prev.token_out.address) != routing_address(nxt.token_in.address):
                raise ValueError(
                    f"Route broken: {prev.token_out.address} -> {nxt.token_in.address}"
                )

    @property
    def token_in(self) -> Token:
        return self.legs[0].token_in

    @property
    def token_out(self) -> Token:
        return self.legs[-1].token_out

    @property
    def amount_in(self) -> int:
        return self.legs[0].amount_in

    @property
    def amount_out(self) -> int:
        return self.legs[-1].expected_output

    @property
    def pool_ids(self) -> frozenset[str]:
        return frozenset(leg.pool_id for leg in self.legs)

    @property
    def pools(self) -> tuple[Pool, ...]:
        return tuple(leg.pool for leg in self.legs)

    @property
    def hops(self) -> int:
        return len(self.legs)

    @property
    def gas_estimate(self) -> int:
        return sum(leg.gas_estimate for leg in self.legs)


@dataclass(frozen=True)
class SplitRoute:
    """Parallel routes sharing input and output tokens.

    fractions[i] is the share of the total input allocated to routes[i].
    """

    routes: tuple[Route, ...]
    fractions: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.routes) != len(self.fractions):
            raise ValueError("Split routes and fractions must align")
        if len(self.routes) < 2:
            raise ValueError("Split route needs at least two routes")

    @property
    def amount_in(self) -> int:
        return sum(r.amount_in for r in self.routes)

    @property
    def amount_out(self) -> int:
        return sum(r.amount_out for r in self.routes)

    @property
    def token_in(self) -> Token:
        return self.routes[0].token_in

    @property
    def token_out(self) -> Token:
        return self.routes[0].token_out

    @property
    def pool_ids(self) -> frozenset[str]:
        return frozenset().union(*(r.pool_ids for r in self.routes))

    @property
    def gas_estimate(self) -> int:
        return sum(r.gas_estimate for r in self.routes)


__all__ = ["Leg", "Route", "SplitRoute"]
