"""Process-wide JSON-RPC handle rotated over a list of endpoints.

Reads are idempotent, so a rate-limited endpoint is put in cooldown and the
same call is replayed against the next one. Any other failure is wrapped in
TransportError (keeping the JSON-RPC code, which the nonce manager uses to
classify send errors).
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import structlog
from eth_utils import to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3

from dexroute.errors import RateLimited, TransportError

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_COOLDOWN_SECONDS = 60.0

_RATE_LIMIT_HTTP_STATUS = 429
_RATE_LIMIT_RPC_CODES = {429, -32005, -33200, -33300, -33400}
_RATE_LIMIT_MARKERS = (
    "too many requests",
    "rate limit",
    "request rate exceeded",
    "limit exceeded",
    "compute units per second",
)


def _rpc_error(exc: BaseException) -> dict[str, Any] | None:
    """JSON-RPC error object carried by a web3 exception, if any."""
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict) and isinstance(response.get("error"), dict):
        return response["error"]
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0]
    return None


def error_code(exc: BaseException) -> int | None:
    """JSON-RPC code or HTTP status of a transport failure."""
    error = _rpc_error(exc)
    if error is not None and isinstance(error.get("code"), int):
        return error["code"]
    for attr in ("status", "status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None) if response is not None else None
    return status if isinstance(status, int) else None


def error_message(exc: BaseException) -> str:
    error = _rpc_error(exc)
    if error is not None and error.get("message"):
        return str(error["message"])
    return str(exc)


def is_rate_limited_rpc(exc: BaseException) -> bool:
    code = error_code(exc)
    if code == _RATE_LIMIT_HTTP_STATUS or code in _RATE_LIMIT_RPC_CODES:
        return True
    text = error_message(exc).lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


def _default_web3(url: str) -> AsyncWeb3:
    return AsyncWeb3(AsyncHTTPProvider(url))


class RpcPool:
    """Rotating set of AsyncWeb3 handles with rate-limit failover.

    Args:
        urls: Endpoint URLs, tried in order
        web3_factory: Builds a handle for a URL (injected in tests)
        cooldown: Seconds a rate-limited endpoint is skipped
        clock: Monotonic clock
    """

    def __init__(
        self,
        urls: Sequence[str],
        *,
        web3_factory: Callable[[str], AsyncWeb3] = _default_web3,
        cooldown: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not urls:
            raise ValueError("RpcPool needs at least one endpoint")
        self.urls = list(urls)
        self.handles = [web3_factory(url) for url in self.urls]
        self.cooldown = cooldown
        self._clock = clock
        self._cooldown_until: dict[int, float] = {}
        self._index = 0

    @property
    def current(self) -> AsyncWeb3:
        return self.handles[self._index]

    def _available(self) -> list[int]:
        now = self._clock()
        order = [(self._index + i) % len(self.handles) for i in range(len(self.handles))]
        ready = [i for i in order if self._cooldown_until.get(i, 0.0) <= now]
        # All endpoints cooling down: try them anyway rather than fail outright
        return ready or order

    async def run(self, fn: Callable[[AsyncWeb3], Awaitable[T]], *, method: str = "") -> T:
        """Run fn against the first healthy endpoint, failing over on rate limits.

        Raises:
            RateLimited: If every endpoint is rate limited
            TransportError: On any other RPC failure
        """
        last_exc: BaseException | None = None
        for index in self._available():
            try:
                result = await fn(self.handles[index])
            except Exception as exc:
                if not is_rate_limited_rpc(exc):
                    raise TransportError(error_message(exc), code=error_code(exc)) from exc
                self._cooldown_until[index] = self._clock() + self.cooldown
                logger.warning(
                    "rpc_rate_limited",
                    endpoint=self.urls[index],
                    method=method,
                    error=str(exc),
                )
                last_exc = exc
                continue
            self._index = index
            return result
        raise RateLimited(f"All RPC endpoints rate limited ({method})") from last_exc

    async def get_transaction_count(self, address: str, block_identifier: str = "pending") -> int:
        checksummed = to_checksum_address(address)
        return int(
            await self.run(
                lambda w3: w3.eth.get_transaction_count(checksummed, block_identifier),
                method="eth_getTransactionCount",
            )
        )

    async def get_balance(self, address: str) -> int:
        checksummed = to_checksum_address(address)
        return int(
            await self.run(
                lambda w3: w3.eth.get_balance(checksummed, "latest"), method="eth_getBalance"
            )
        )

    async def call(self, to: str, data: bytes) -> bytes:
        tx = {"to": to_checksum_address(to), "data": data}
        return bytes(await self.run(lambda w3: w3.eth.call(tx), method="eth_call"))

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        return int(await self.run(lambda w3: w3.eth.estimate_gas(tx), method="eth_estimateGas"))

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        # Writes are not replayed on another endpoint: a rate-limited send
        # surfaces to the caller
        try:
            tx_hash = await self.current.eth.send_raw_transaction(raw_transaction)
        except Exception as exc:
            raise TransportError(error_message(exc), code=error_code(exc)) from exc
        if isinstance(tx_hash, (bytes, bytearray)):
            return "0x" + bytes(tx_hash).hex()
        return str(tx_hash)

    async def close(self) -> None:
        for handle in self.handles:
            disconnect = getattr(handle.provider, "disconnect", None)
            if disconnect is not None:
                await disconnect()


__all__ = [
    "DEFAULT_COOLDOWN_SECONDS",
    "RpcPool",
    "error_code",
    "error_message",
    "is_rate_limited_rpc",
]
