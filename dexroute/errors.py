"""Error taxonomy for the quote, route, compile and submit pipeline.

Every error carries a ``kind`` tag and a human-readable message so that
callers (and the structured SubmitResult) can report the category without
isinstance chains.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar


class ErrorKind(str, Enum):
    """Stable tags for each error category."""

    INSUFFICIENT_LIQUIDITY = "InsufficientLiquidity"
    NO_ROUTE = "NoRoute"
    INVALID_TICK = "InvalidTick"
    INVALID_SQRT_RATIO = "InvalidSqrtRatio"
    INVALID_AMOUNT = "InvalidAmount"
    INSUFFICIENT_NATIVE_BALANCE = "InsufficientNativeBalance"
    INSUFFICIENT_ALLOWANCE = "InsufficientAllowance"
    RATE_LIMITED = "RateLimited"
    TIMEOUT = "Timeout"
    NONCE_CONFLICT = "NonceConflict"
    MISSING_POOL_IDENTIFIER = "MissingPoolIdentifier"
    UNKNOWN_ROUTE_TYPE = "UnknownRouteType"
    INSUFFICIENT_ROUTE_DATA = "InsufficientRouteData"
    TRANSPORT_ERROR = "TransportError"


class DexRouteError(Exception):
    """Base error for dexroute operations."""

    kind: ClassVar[ErrorKind] = ErrorKind.TRANSPORT_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind.value)
        self.message = message or self.kind.value

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class InsufficientLiquidity(DexRouteError):
    """AMM model cannot produce output at the requested input."""

    kind = ErrorKind.INSUFFICIENT_LIQUIDITY


class NoRoute(DexRouteError):
    """Route search returned no candidate."""

    kind = ErrorKind.NO_ROUTE


class InvalidTick(DexRouteError):
    """Tick index outside [MIN_TICK, MAX_TICK]."""

    kind = ErrorKind.INVALID_TICK


class InvalidSqrtRatio(DexRouteError):
    """Sqrt price outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO]."""

    kind = ErrorKind.INVALID_SQRT_RATIO


class InvalidAmount(DexRouteError):
    """Input amount must be a positive integer."""

    kind = ErrorKind.INVALID_AMOUNT


class InsufficientNativeBalance(DexRouteError):
    """Sender cannot cover gas; the submitter refuses to proceed."""

    kind = ErrorKind.INSUFFICIENT_NATIVE_BALANCE


class InsufficientAllowance(DexRouteError):
    """Bundler may not pull the input token from the sender."""

    kind = ErrorKind.INSUFFICIENT_ALLOWANCE


class RateLimited(DexRouteError):
    """Aggregator kept answering 429 after all retries."""

    kind = ErrorKind.RATE_LIMITED


class Timeout(DexRouteError):
    """A source did not answer before its deadline."""

    kind = ErrorKind.TIMEOUT


class NonceConflict(DexRouteError):
    """Mempool rejected the transaction because its nonce was reused."""

    kind = ErrorKind.NONCE_CONFLICT


class MissingPoolIdentifier(DexRouteError):
    """A route leg has no pool address or id."""

    kind = ErrorKind.MISSING_POOL_IDENTIFIER


class UnknownRouteType(DexRouteError):
    """Route lacks both a normalized structure and a recognizable type tag."""

    kind = ErrorKind.UNKNOWN_ROUTE_TYPE


class InsufficientRouteData(DexRouteError):
    """Cross-DEX route lacks both an execution structure and a leg list."""

    kind = ErrorKind.INSUFFICIENT_ROUTE_DATA


class TransportError(DexRouteError):
    """Wraps an underlying RPC or HTTP I/O failure.

    Attributes:
        code: JSON-RPC error code or HTTP status, when the transport reported one
    """

    kind = ErrorKind.TRANSPORT_ERROR

    def __init__(self, message: str = "", code: int | None = None) -> None:
        super().__init__(message)
        self.code = code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.code is not None:
            data["code"] = self.code
        return data


__all__ = [
    "ErrorKind",
    "DexRouteError",
    "InsufficientLiquidity",
    "NoRoute",
    "InvalidTick",
    "InvalidSqrtRatio",
    "InvalidAmount",
    "InsufficientNativeBalance",
    "InsufficientAllowance",
    "RateLimited",
    "Timeout",
    "NonceConflict",
    "MissingPoolIdentifier",
    "UnknownRouteType",
    "InsufficientRouteData",
    "TransportError",
]
