"""Tests for NonceManager."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from dexroute.errors import NonceConflict, TransportError
from dexroute.submit.nonce import (
    CLEANUP_INTERVAL_SECONDS,
    MIN_TX_INTERVAL_SECONDS,
    NonceManager,
    is_nonce_error,
    is_pending_block_error,
)
from tests.helpers import FakeClock

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x3333333333333333333333333333333333333333"


def make_rpc(chain: dict[str, int]) -> MagicMock:
    """RPC whose transaction counts are read from a mutable dict."""
    rpc = MagicMock()
    rpc.get_transaction_count = AsyncMock(side_effect=lambda address, block: chain[block])
    return rpc


@pytest.fixture
def chain():
    return {"pending": 5, "latest": 4}


@pytest.fixture
def manager(chain, fake_clock: FakeClock) -> NonceManager:
    return NonceManager(make_rpc(chain), clock=fake_clock, sleep=fake_clock.sleep)


class TestNonceErrors:
    """Tests for nonce error classification."""

    @pytest.mark.parametrize(
        "message",
        [
            "nonce too low",
            "Nonce too high",
            "replacement transaction underpriced",
            "NONCE_EXPIRED",
        ],
    )
    def test_nonce_messages(self, message):
        assert is_nonce_error(ValueError(message))

    def test_error_code(self):
        error = ValueError("rejected")
        error.code = -32000
        assert is_nonce_error(error)

    def test_typed_conflict(self):
        assert is_nonce_error(NonceConflict("stale"))

    def test_unrelated(self):
        assert not is_nonce_error(ValueError("execution reverted"))

    def test_pending_block(self):
        assert is_pending_block_error("header not found for pending block")
        assert not is_pending_block_error("nonce too low")


class TestNonceManager:
    """Tests for local nonce bookkeeping."""

    @pytest.mark.asyncio
    async def test_first_use_reads_chain(self, manager):
        assert await manager.get_nonce(ALICE) == 5
        assert manager.rpc.get_transaction_count.await_count == 2

    @pytest.mark.asyncio
    async def test_increment_is_local(self, manager):
        await manager.get_nonce(ALICE)
        assert await manager.increment_nonce(ALICE) == 6
        assert manager.record(ALICE).local_nonce == 6
        # No new chain reads for a fresh record
        assert manager.rpc.get_transaction_count.await_count == 2

    @pytest.mark.asyncio
    async def test_back_to_back_sends_are_spaced(self, manager, fake_clock):
        await manager.get_nonce(ALICE)
        await manager.increment_nonce(ALICE)
        fake_clock.advance(1.0)
        assert await manager.get_nonce(ALICE) == 6
        assert fake_clock.sleeps == [pytest.approx(MIN_TX_INTERVAL_SECONDS - 1.0)]

    @pytest.mark.asyncio
    async def test_idle_record_is_refreshed(self, manager, chain, fake_clock):
        await manager.get_nonce(ALICE)
        chain["pending"] = 9
        fake_clock.advance(61)
        assert await manager.get_nonce(ALICE) == 9

    @pytest.mark.asyncio
    async def test_refresh_never_moves_backwards(self, manager, chain):
        await manager.get_nonce(ALICE)
        await manager.increment_nonce(ALICE)
        await manager.increment_nonce(ALICE)
        chain.update(pending=3, latest=3)
        assert await manager.refresh(ALICE) == 7

    @pytest.mark.asyncio
    async def test_addresses_are_case_insensitive(self, manager):
        mixed = "0xAbCdEf0000000000000000000000000000000001"
        await manager.get_nonce(mixed)
        assert manager.record(mixed.lower()) is not None

    def test_sync_keeps_the_larger_nonce(self, manager):
        manager.sync_nonce(ALICE, 10)
        manager.sync_nonce(ALICE, 4)
        assert manager.record(ALICE).local_nonce == 10


class TestHandleTransactionError:
    """Tests for NonceManager.handle_transaction_error."""

    @pytest.mark.asyncio
    async def test_conflict_refreshes_to_chain_maximum(self, manager, chain):
        assert await manager.get_nonce(ALICE) == 5
        chain.update(pending=8, latest=7)

        assert await manager.handle_transaction_error(ALICE, ValueError("nonce too low"))
        assert manager.record(ALICE).local_nonce == 8
        assert await manager.get_nonce(ALICE) == 8

    @pytest.mark.asyncio
    async def test_conflict_keeps_higher_local(self, manager, chain):
        manager.sync_nonce(ALICE, 12)
        assert await manager.handle_transaction_error(ALICE, "nonce too low")
        assert manager.record(ALICE).local_nonce == 12

    @pytest.mark.asyncio
    async def test_other_errors_ignored(self, manager):
        await manager.get_nonce(ALICE)
        assert not await manager.handle_transaction_error(ALICE, ValueError("out of gas"))
        assert manager.rpc.get_transaction_count.await_count == 2

    @pytest.mark.asyncio
    async def test_pending_block_error_marks_last_tx(self, manager, fake_clock):
        await manager.get_nonce(ALICE)
        handled = await manager.handle_transaction_error(
            ALICE, "header not found for pending block"
        )
        assert not handled
        assert manager.record(ALICE).last_tx == fake_clock.now

    @pytest.mark.asyncio
    async def test_refresh_failure_reported(self, fake_clock):
        rpc = MagicMock()
        rpc.get_transaction_count = AsyncMock(side_effect=TransportError("rpc down"))
        manager = NonceManager(rpc, clock=fake_clock, sleep=fake_clock.sleep)
        assert not await manager.handle_transaction_error(ALICE, "nonce too low")


class TestCleanup:
    """Tests for stale record eviction."""

    @pytest.mark.asyncio
    async def test_evicts_only_idle_records(self, manager, fake_clock):
        await manager.get_nonce(ALICE)
        fake_clock.advance(500)
        await manager.get_nonce(BOB)
        fake_clock.advance(200)

        assert manager.cleanup_stale() == [ALICE]
        assert manager.record(ALICE) is None
        assert manager.record(BOB) is not None

    @pytest.mark.asyncio
    async def test_exactly_ten_minutes_is_kept(self, manager, fake_clock):
        await manager.get_nonce(ALICE)
        fake_clock.advance(600)
        assert manager.cleanup_stale() == []

    @pytest.mark.asyncio
    async def test_cleanup_loop_evicts_idle_records(self, chain, fake_clock):
        intervals = []

        async def sleep(seconds):
            intervals.append(seconds)
            fake_clock.advance(seconds)
            if len(intervals) == 4:
                raise asyncio.CancelledError

        manager = NonceManager(make_rpc(chain), clock=fake_clock, sleep=sleep)
        await manager.get_nonce(ALICE)

        with pytest.raises(asyncio.CancelledError):
            await manager.run_cleanup_loop()

        # Passes at 300 s and 600 s keep the record; the pass at 900 s evicts it
        assert intervals == [CLEANUP_INTERVAL_SECONDS] * 4
        assert manager.record(ALICE) is None
