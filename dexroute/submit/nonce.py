"""Per-sender nonce tracking.

The manager keeps a local nonce per address so back-to-back submissions do
not wait for the pending pool to catch up, and re-reads the chain when a
record goes idle or a send fails with a nonce error.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import structlog

from dexroute.errors import DexRouteError, NonceConflict
from dexroute.models.types import normalize_address

logger = structlog.get_logger()

REFRESH_AFTER_SECONDS = 60.0
MIN_TX_INTERVAL_SECONDS = 3.0
STALE_AFTER_SECONDS = 600.0
CLEANUP_INTERVAL_SECONDS = 300.0

NONCE_EXPIRED = "NONCE_EXPIRED"
NONCE_ERROR_CODE = -32000
_NONCE_MARKERS = ("nonce", "replacement transaction")
_PENDING_BLOCK_MARKER = "pending block"


class NonceSource(Protocol):
    """The RPC reads the manager needs (RpcPool satisfies it)."""

    async def get_transaction_count(
        self, address: str, block_identifier: str = "pending"
    ) -> int: ...


@dataclass
class NonceRecord:
    """Local view of one sender.

    Attributes:
        local_nonce: Next nonce to use
        last_used: When the record was last refreshed or incremented
        last_tx: When the last transaction was sent (None if never)
    """

    local_nonce: int
    last_used: float
    last_tx: float | None = None


def _error_text(error: BaseException | str) -> str:
    return str(error).lower()


def is_nonce_error(error: BaseException | str) -> bool:
    """True for errors that mean the local nonce is out of sync."""
    if isinstance(error, NonceConflict):
        return True
    text = _error_text(error)
    if any(marker in text for marker in _NONCE_MARKERS) or NONCE_EXPIRED.lower() in text:
        return True
    code = getattr(error, "code", None)
    return code == NONCE_ERROR_CODE or code == NONCE_EXPIRED


def is_pending_block_error(error: BaseException | str) -> bool:
    return _PENDING_BLOCK_MARKER in _error_text(error)


class NonceManager:
    """Local nonce bookkeeping with chain refresh.

    Args:
        rpc: Source of pending / latest transaction counts
        clock: Wall clock in seconds
        sleep: Awaitable sleep (injected in tests)

    Usage:
        nonce = await manager.get_nonce(sender)
        ... send with nonce ...
        await manager.increment_nonce(sender)
    """

    def __init__(
        self,
        rpc: NonceSource,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.rpc = rpc
        self._clock = clock
        self._sleep = sleep
        self._records: dict[str, NonceRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, address: str) -> asyncio.Lock:
        """Lock serializing get-send-increment for one sender."""
        return self._locks.setdefault(normalize_address(address), asyncio.Lock())

    def record(self, address: str) -> NonceRecord | None:
        return self._records.get(normalize_address(address))

    async def refresh(self, address: str) -> int:
        """Re-read the chain; the local nonce never moves backwards.

        Raises:
            TransportError: If the RPC reads fail
        """
        addr = normalize_address(address)
        pending, latest = await asyncio.gather(
            self.rpc.get_transaction_count(addr, "pending"),
            self.rpc.get_transaction_count(addr, "latest"),
        )
        previous = self._records.get(addr)
        local = max(int(pending), int(latest), previous.local_nonce if previous else 0)
        now = self._clock()
        if previous is None:
            self._records[addr] = NonceRecord(local_nonce=local, last_used=now)
        else:
            previous.local_nonce = local
            previous.last_used = now
        logger.debug("nonce_refreshed", address=addr, pending=pending, latest=latest, nonce=local)
        return local

    async def get_nonce(self, address: str) -> int:
        """Next nonce for a sender.

        Refreshes from the chain when there is no record or it has been idle
        for more than 60 s, and waits until at least 3 s have passed since the
        sender's last transaction.
        """
        addr = normalize_address(address)
        record = self._records.get(addr)
        if record is None or self._clock() - record.last_used > REFRESH_AFTER_SECONDS:
            await self.refresh(addr)
            record = self._records[addr]

        if record.last_tx is not None:
            elapsed = self._clock() - record.last_tx
            if elapsed < MIN_TX_INTERVAL_SECONDS:
                delay = MIN_TX_INTERVAL_SECONDS - elapsed
                logger.debug("nonce_delay", address=addr, delay=round(delay, 3))
                await self._sleep(delay)
        return record.local_nonce

    async def increment_nonce(self, address: str) -> int:
        addr = normalize_address(address)
        record = self._records.get(addr)
        if record is None:
            await self.refresh(addr)
            record = self._records[addr]
        now = self._clock()
        record.local_nonce += 1
        record.last_used = now
        record.last_tx = now
        return record.local_nonce

    def sync_nonce(self, address: str, used_nonce: int) -> None:
        """Record that used_nonce was sent outside get_nonce (explicit nonce)."""
        addr = normalize_address(address)
        now = self._clock()
        record = self._records.get(addr)
        if record is None:
            self._records[addr] = NonceRecord(local_nonce=used_nonce, last_used=now)
        else:
            record.local_nonce = max(record.local_nonce, used_nonce)
            record.last_used = now

    async def handle_transaction_error(self, address: str, error: BaseException | str) -> bool:
        """React to a failed send.

        Returns:
            True if the error was a nonce conflict and the nonce was refreshed
        """
        addr = normalize_address(address)
        if is_pending_block_error(error):
            record = self._records.get(addr)
            if record is not None:
                record.last_tx = self._clock()
            logger.warning("pending_block_error", address=addr, error=str(error))

        if not is_nonce_error(error):
            return False
        logger.warning("nonce_conflict", address=addr, error=str(error))
        try:
            await self.refresh(addr)
        except DexRouteError as e:
            logger.error("nonce_refresh_failed", address=addr, error=str(e))
            return False
        return True

    def cleanup_stale(self) -> list[str]:
        """Evict records idle for more than 10 minutes; returns evicted addresses."""
        now = self._clock()
        stale = [
            addr
            for addr, record in self._records.items()
            if now - record.last_used > STALE_AFTER_SECONDS
        ]
        for addr in stale:
            del self._records[addr]
            lock = self._locks.get(addr)
            if lock is not None and not lock.locked():
                del self._locks[addr]
        if stale:
            logger.debug("nonce_records_evicted", count=len(stale))
        return stale

    async def run_cleanup_loop(self, interval: float = CLEANUP_INTERVAL_SECONDS) -> None:
        """Evict stale records every interval seconds until cancelled."""
        while True:
            await self._sleep(interval)
            self.cleanup_stale()


__all__ = [
    "CLEANUP_INTERVAL_SECONDS",
    "MIN_TX_INTERVAL_SECONDS",
    "REFRESH_AFTER_SECONDS",
    "STALE_AFTER_SECONDS",
    "NonceManager",
    "NonceRecord",
    "NonceSource",
    "is_nonce_error",
    "is_pending_block_error",
]
