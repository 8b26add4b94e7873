"""Tests for Submitter and fee computation."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import decode, encode
from eth_account import Account

from dexroute.config import Settings
from dexroute.errors import ErrorKind, TransportError
from dexroute.execution.compiler import compile_execution_plan
from dexroute.execution.encoding import ALLOWANCE_SELECTOR
from dexroute.execution.plan import TradeContext
from dexroute.routing.pathfinding import Hop
from dexroute.routing.search import build_route
from dexroute.submit.nonce import NonceManager
from dexroute.submit.submitter import (
    EXPLICIT_NONCE_DELAY,
    GasOverrides,
    SubmissionState,
    SubmitResult,
    Submitter,
    TransactionRequest,
    compute_gas_overrides,
    local_signer,
)
from tests.helpers import (
    BUNDLER,
    NATIVE_TOKEN,
    SENDER,
    USDC,
    USDC_TOKEN,
    WETH,
    WETH_TOKEN,
    FakeClock,
    make_weighted_pool,
)

GWEI = 10**9
OVERRIDES = GasOverrides(max_fee_per_gas=40 * GWEI, max_priority_fee_per_gas=GWEI)
REQUEST = TransactionRequest(to=BUNDLER, data=b"\x12\x34", value=0, summary={"pair": "WETH/USDC"})


class FakeChain:
    """RPC double: balances, gas estimates, counts and raw sends."""

    def __init__(
        self, balance=10**18, pending=5, latest=5, send_results=("0xabc",), allowance=2**256 - 1
    ):
        self.counts = {"pending": pending, "latest": latest}
        self.get_balance = AsyncMock(return_value=balance)
        self.estimate_gas = AsyncMock(return_value=100_000)
        self.call = AsyncMock(return_value=encode(["uint256"], [allowance]))
        self.get_transaction_count = AsyncMock(
            side_effect=lambda address, block: self.counts[block]
        )
        self.send_raw_transaction = AsyncMock(side_effect=list(send_results))


def make_submitter(chain, clock: FakeClock, settings=None, history=None):
    nonces = NonceManager(chain, clock=clock, sleep=clock.sleep)
    signer = MagicMock(return_value=b"signed")
    return Submitter(
        chain,
        nonces,
        signer,
        SENDER,
        gas_price=lambda: 20.0,
        history=history,
        settings=settings or Settings(),
        sleep=clock.sleep,
    )


class TestComputeGasOverrides:
    """Tests for compute_gas_overrides."""

    def test_fee_caps(self):
        gas = compute_gas_overrides(20.0, priority_base=0.05)
        assert gas.max_fee_per_gas == 37 * GWEI
        assert gas.max_priority_fee_per_gas == 550_000_000

    def test_priority_rounded_to_three_decimals(self):
        gas = compute_gas_overrides(1.0, priority_base=0.0123)
        assert gas.max_priority_fee_per_gas == 37_000_000
        assert gas.max_fee_per_gas == 2 * GWEI

    def test_fee_cap_never_below_priority(self):
        gas = compute_gas_overrides(0.2, priority_base=0.01)
        assert gas.max_fee_per_gas == gas.max_priority_fee_per_gas == 15_000_000

    def test_random_priority_base_in_range(self):
        gas = compute_gas_overrides(0.0)
        assert 10_000_000 <= gas.max_priority_fee_per_gas <= 60_000_000

    def test_tx_fields(self):
        assert OVERRIDES.as_tx_fields() == {
            "maxFeePerGas": 40 * GWEI,
            "maxPriorityFeePerGas": GWEI,
        }


class TestSubmit:
    """Tests for Submitter.submit."""

    @pytest.mark.asyncio
    async def test_broadcast(self, fake_clock):
        chain = FakeChain()
        submitter = make_submitter(chain, fake_clock)
        result = await submitter.submit(REQUEST, OVERRIDES)

        assert result.success
        assert result.state is SubmissionState.BROADCAST
        assert result.tx_hash == "0xabc"
        assert result.nonce == 5
        assert submitter.nonces.record(SENDER).local_nonce == 6

        tx = submitter.signer.call_args.args[0]
        assert tx["nonce"] == 5
        assert tx["gas"] == 120_000
        assert tx["chainId"] == 1
        assert tx["type"] == 2
        assert tx["maxFeePerGas"] == 40 * GWEI
        chain.send_raw_transaction.assert_awaited_once_with(b"signed")

    @pytest.mark.asyncio
    async def test_explicit_gas_limit_skips_estimate(self, fake_clock):
        chain = FakeChain()
        request = TransactionRequest(to=BUNDLER, data=b"", gas_limit=250_000)
        result = await make_submitter(chain, fake_clock).submit(request, OVERRIDES)
        assert result.success
        chain.estimate_gas.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gas_caps_derived_from_gas_price(self, fake_clock):
        submitter = make_submitter(FakeChain(), fake_clock)
        await submitter.submit(REQUEST)
        tx = submitter.signer.call_args.args[0]
        assert tx["maxFeePerGas"] == 37 * GWEI
        assert tx["maxFeePerGas"] >= tx["maxPriorityFeePerGas"]

    @pytest.mark.asyncio
    async def test_low_balance_warns(self, fake_clock):
        result = await make_submitter(FakeChain(balance=10**15), fake_clock).submit(
            REQUEST, OVERRIDES
        )
        assert result.success
        assert any("Low native balance" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_insufficient_balance_fails_before_nonce(self, fake_clock):
        chain = FakeChain(balance=10**14)
        result = await make_submitter(chain, fake_clock).submit(REQUEST, OVERRIDES)

        assert not result.success
        assert result.state is SubmissionState.FAILED
        assert result.error_kind == ErrorKind.INSUFFICIENT_NATIVE_BALANCE.value
        chain.get_transaction_count.assert_not_awaited()
        chain.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nonce_conflict_resubmits_once(self, fake_clock):
        chain = FakeChain()

        async def send(raw):
            if chain.send_raw_transaction.await_count == 1:
                chain.counts.update(pending=8, latest=8)
                raise ValueError("nonce too low")
            return "0xdef"

        chain.send_raw_transaction = AsyncMock(side_effect=send)
        submitter = make_submitter(chain, fake_clock)
        result = await submitter.submit(REQUEST, OVERRIDES)

        assert result.success
        assert result.nonce == 8
        assert result.tx_hash == "0xdef"
        assert any("resubmitted" in w for w in result.warnings)
        assert submitter.nonces.record(SENDER).local_nonce == 9

    @pytest.mark.asyncio
    async def test_repeated_nonce_conflict_fails_with_refreshed_nonce(self, fake_clock):
        chain = FakeChain(send_results=[ValueError("nonce too low")] * 2)
        submitter = make_submitter(chain, fake_clock)
        chain.counts.update(pending=6, latest=7)

        result = await submitter.submit(REQUEST, OVERRIDES)

        assert not result.success
        assert "nonce too low" in result.error
        assert chain.send_raw_transaction.await_count == 2
        assert await submitter.nonces.get_nonce(SENDER) == 7

    @pytest.mark.asyncio
    async def test_transport_error_not_retried(self, fake_clock):
        chain = FakeChain(send_results=[TransportError("connection reset")])
        result = await make_submitter(chain, fake_clock).submit(REQUEST, OVERRIDES)

        assert not result.success
        assert result.error_kind == ErrorKind.TRANSPORT_ERROR.value
        assert chain.send_raw_transaction.await_count == 1

    @pytest.mark.asyncio
    async def test_explicit_nonce(self, fake_clock):
        chain = FakeChain()
        submitter = make_submitter(chain, fake_clock)
        result = await submitter.submit(REQUEST, OVERRIDES, nonce=42)

        assert result.nonce == 42
        assert EXPLICIT_NONCE_DELAY in fake_clock.sleeps
        assert submitter.nonces.record(SENDER).local_nonce == 43
        chain.get_transaction_count.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history_recorded(self, fake_clock):
        history = MagicMock()
        result = await make_submitter(FakeChain(), fake_clock, history=history).submit(
            REQUEST, OVERRIDES
        )
        history.save_trade.assert_called_once_with({"pair": "WETH/USDC"}, "0xabc")
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_history_failure_is_a_warning(self, fake_clock):
        history = MagicMock()
        history.save_trade.side_effect = OSError("disk full")
        result = await make_submitter(FakeChain(), fake_clock, history=history).submit(
            REQUEST, OVERRIDES
        )
        assert result.success
        assert any("disk full" in w for w in result.warnings)

    def test_result_dict(self):
        payload = SubmitResult(success=True, tx_hash="0x1", nonce=3).to_dict()
        assert payload["txHash"] == "0x1"
        assert payload["state"] == "idle"


class TestSubmitCompiled:
    """Tests for submitting compiled plans."""

    def _compiled(self):
        pool = make_weighted_pool({WETH: 10**21, USDC: 2 * 10**12})
        route = build_route((Hop(pool, WETH, USDC),), 10**18)
        return compile_execution_plan(route, TradeContext(NATIVE_TOKEN, USDC_TOKEN))

    def _compiled_from_usdc(self, amount=10**9):
        pool = make_weighted_pool({WETH: 10**21, USDC: 2 * 10**12})
        route = build_route((Hop(pool, USDC, WETH),), amount)
        return compile_execution_plan(route, TradeContext(USDC_TOKEN, WETH_TOKEN))

    @pytest.mark.asyncio
    async def test_sends_value_to_bundler(self, fake_clock, settings):
        submitter = make_submitter(FakeChain(), fake_clock, settings=settings)
        result = await submitter.submit_compiled(self._compiled(), OVERRIDES)

        assert result.success
        tx = submitter.signer.call_args.args[0]
        assert tx["to"].lower() == BUNDLER
        assert tx["value"] == 10**18

    @pytest.mark.asyncio
    async def test_requires_bundler_address(self, fake_clock):
        chain = FakeChain()
        result = await make_submitter(chain, fake_clock).submit_compiled(self._compiled())
        assert not result.success
        chain.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_native_input_skips_allowance(self, fake_clock, settings):
        chain = FakeChain(allowance=0)
        result = await make_submitter(chain, fake_clock, settings=settings).submit_compiled(
            self._compiled(), OVERRIDES
        )
        assert result.success
        chain.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_erc20_input_reads_allowance(self, fake_clock, settings):
        chain = FakeChain(allowance=10**9)
        result = await make_submitter(chain, fake_clock, settings=settings).submit_compiled(
            self._compiled_from_usdc(10**9), OVERRIDES
        )
        assert result.success

        token, data = chain.call.await_args.args
        assert token == USDC
        assert data[:4] == ALLOWANCE_SELECTOR
        owner, spender = decode(["address", "address"], data[4:])
        assert (owner.lower(), spender.lower()) == (SENDER, BUNDLER)

    @pytest.mark.asyncio
    async def test_low_allowance_fails_before_broadcast(self, fake_clock, settings):
        chain = FakeChain(allowance=10**9 - 1)
        result = await make_submitter(chain, fake_clock, settings=settings).submit_compiled(
            self._compiled_from_usdc(10**9), OVERRIDES
        )
        assert not result.success
        assert result.state is SubmissionState.FAILED
        assert result.error_kind == ErrorKind.INSUFFICIENT_ALLOWANCE.value
        assert any(BUNDLER in w for w in result.warnings)
        chain.send_raw_transaction.assert_not_awaited()
        chain.get_transaction_count.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_allowance_read_failure(self, fake_clock, settings):
        chain = FakeChain()
        chain.call.side_effect = TransportError("execution reverted")
        result = await make_submitter(chain, fake_clock, settings=settings).submit_compiled(
            self._compiled_from_usdc(), OVERRIDES
        )
        assert not result.success
        assert result.error_kind == ErrorKind.TRANSPORT_ERROR.value
        chain.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_allowance_reply(self, fake_clock, settings):
        chain = FakeChain()
        chain.call.return_value = b"\x01"
        result = await make_submitter(chain, fake_clock, settings=settings).submit_compiled(
            self._compiled_from_usdc(), OVERRIDES
        )
        assert not result.success
        assert result.error_kind == ErrorKind.TRANSPORT_ERROR.value


class TestLocalSigner:
    """Tests for local_signer."""

    def test_signs_typed_transaction(self):
        key = "0x" + "11" * 32
        sign = local_signer(key)
        raw = sign(
            {
                "from": Account.from_key(key).address,
                "to": "0x2222222222222222222222222222222222222222",
                "value": 0,
                "data": b"",
                "nonce": 0,
                "gas": 21_000,
                "chainId": 1,
                "type": 2,
                "maxFeePerGas": 2 * GWEI,
                "maxPriorityFeePerGas": GWEI,
            }
        )
        assert isinstance(raw, bytes)
        assert raw[0] == 2
