"""Domain models: tokens, pools, quotes and routes."""

from dexroute.models.pools import (
    ConcentratedPool,
    Pool,
    PoolKey,
    PoolKind,
    StablePool,
    StableToken,
    TickRecord,
    WeightedPool,
    WeightedToken,
)
from dexroute.models.quote import Protocol, Quote
from dexroute.models.route import Leg, Route, SplitRoute
from dexroute.models.tokens import NATIVE_TOKEN, WRAPPED_NATIVE_TOKEN, Token
from dexroute.models.types import Address, Bytes, Uint256, normalize_address

__all__ = [
    # Types
    "Address",
    "Bytes",
    "Uint256",
    "normalize_address",
    # Tokens
    "Token",
    "NATIVE_TOKEN",
    "WRAPPED_NATIVE_TOKEN",
    # Pools
    "PoolKind",
    "Pool",
    "PoolKey",
    "TickRecord",
    "ConcentratedPool",
    "WeightedPool",
    "WeightedToken",
    "StablePool",
    "StableToken",
    # Quotes and routes
    "Protocol",
    "Quote",
    "Leg",
    "Route",
    "SplitRoute",
]
