"""Transaction submission for compiled bundler calls.

submit() checks the sender can pay for gas, takes a nonce, signs and
broadcasts. submit_compiled() also checks that the bundler may pull an
ERC-20 input token. Failures come back as a SubmitResult rather than an
exception; a nonce conflict is retried once after the nonce manager re-reads
the chain.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

import structlog
from eth_abi.exceptions import DecodingError
from eth_account import Account
from eth_utils import to_checksum_address, to_wei

from dexroute.config import DEFAULT_SETTINGS, Settings
from dexroute.constants import LOW_NATIVE_BALANCE_WARNING, MIN_NATIVE_BALANCE
from dexroute.errors import (
    DexRouteError,
    InsufficientAllowance,
    InsufficientNativeBalance,
    TransportError,
)
from dexroute.execution.compiler import CompiledCall, encode_bundler_call, transaction_value
from dexroute.execution.encoding import decode_uint256, encode_allowance_call
from dexroute.models.tokens import is_native
from dexroute.models.types import normalize_address

from .nonce import NonceManager

logger = structlog.get_logger()

MAX_FEE_MULTIPLIER = Decimal("1.85")
PRIORITY_BASE_RANGE = (0.01, 0.06)
PRIORITY_GAS_PRICE_DIVISOR = 40
EXPLICIT_NONCE_DELAY = 0.9

Signer = Callable[[dict[str, Any]], bytes]


class SubmissionState(str, Enum):
    IDLE = "idle"
    NONCE_ACQUIRED = "nonce_acquired"
    BROADCAST = "broadcast"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class TradeHistorySink(Protocol):
    """Insert-only trade history store."""

    def save_trade(self, summary: Mapping[str, Any], tx_hash: str) -> None: ...


class SubmitRpc(Protocol):
    async def get_balance(self, address: str) -> int: ...

    async def call(self, to: str, data: bytes) -> bytes: ...

    async def estimate_gas(self, tx: dict[str, Any]) -> int: ...

    async def send_raw_transaction(self, raw_transaction: bytes) -> str: ...


@dataclass(frozen=True)
class GasOverrides:
    """EIP-1559 fee caps, in wei."""

    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    def as_tx_fields(self) -> dict[str, int]:
        return {
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
        }


@dataclass(frozen=True)
class TransactionRequest:
    """An unsigned call to submit.

    Attributes:
        to: Contract called (the user's bundler)
        data: Calldata
        value: Native value attached, in wei
        gas_limit: Gas limit; estimated when None
        summary: Trade description handed to the history sink
    """

    to: str
    data: bytes
    value: int = 0
    gas_limit: int | None = None
    summary: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_compiled(
        cls,
        compiled: CompiledCall,
        bundler_address: str,
        *,
        gas_limit: int | None = None,
        summary: Mapping[str, Any] | None = None,
    ) -> TransactionRequest:
        return cls(
            to=bundler_address,
            data=encode_bundler_call(compiled),
            value=transaction_value(compiled),
            gas_limit=gas_limit,
            summary=dict(summary or {}),
        )


@dataclass
class SubmitResult:
    success: bool
    state: SubmissionState = SubmissionState.IDLE
    tx_hash: str | None = None
    nonce: int | None = None
    error: str | None = None
    error_kind: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "state": self.state.value,
            "txHash": self.tx_hash,
            "nonce": self.nonce,
            "error": self.error,
            "errorKind": self.error_kind,
            "warnings": list(self.warnings),
        }


def compute_gas_overrides(
    gas_price_gwei: float, priority_base: float | None = None
) -> GasOverrides:
    """Fee caps derived from the current gas price.

    maxFee = round(gasPrice * 1.85) gwei; maxPriority = base + gasPrice / 40
    gwei, rounded to 3 decimals, with base drawn from [0.01, 0.06] when not
    given. The fee cap never drops below the priority fee.
    """
    if priority_base is None:
        priority_base = random.uniform(*PRIORITY_BASE_RANGE)
    gas_price = Decimal(str(gas_price_gwei))
    max_fee_gwei = (gas_price * MAX_FEE_MULTIPLIER).quantize(Decimal(1))
    priority_gwei = (
        Decimal(str(priority_base)) + gas_price / PRIORITY_GAS_PRICE_DIVISOR
    ).quantize(Decimal("0.001"))
    max_priority = int(to_wei(priority_gwei, "gwei"))
    max_fee = max(int(to_wei(max_fee_gwei, "gwei")), max_priority)
    return GasOverrides(max_fee_per_gas=max_fee, max_priority_fee_per_gas=max_priority)


def local_signer(private_key: str) -> Signer:
    """Signer backed by an in-memory key."""
    account = Account.from_key(private_key)

    def sign(tx: dict[str, Any]) -> bytes:
        return bytes(account.sign_transaction(tx).raw_transaction)

    return sign


class Submitter:
    """Signs and broadcasts transactions for one sender.

    Args:
        rpc: Balance, gas estimation and raw sends (RpcPool)
        nonces: Shared nonce manager
        signer: Turns a transaction dict into raw signed bytes
        sender: Address the signer signs for
        gas_price: Current gas price in gwei
        history: Optional trade history sink
        settings: Chain id
        sleep: Awaitable sleep (injected in tests)
    """

    def __init__(
        self,
        rpc: SubmitRpc,
        nonces: NonceManager,
        signer: Signer,
        sender: str,
        *,
        gas_price: Callable[[], float],
        history: TradeHistorySink | None = None,
        settings: Settings = DEFAULT_SETTINGS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.rpc = rpc
        self.nonces = nonces
        self.signer = signer
        self.sender = normalize_address(sender, validate=True)
        self.gas_price = gas_price
        self.history = history
        self.settings = settings
        self._sleep = sleep

    async def check_balance(self, warnings: list[str]) -> int:
        """Sender's native balance.

        Raises:
            InsufficientNativeBalance: Below the gas floor
        """
        balance = await self.rpc.get_balance(self.sender)
        if balance < MIN_NATIVE_BALANCE:
            raise InsufficientNativeBalance(
                f"Native balance {balance} wei is below the {MIN_NATIVE_BALANCE} wei floor"
            )
        if balance < LOW_NATIVE_BALANCE_WARNING:
            logger.warning("low_native_balance", sender=self.sender, balance=balance)
            warnings.append(f"Low native balance: {balance} wei")
        return balance

    async def check_allowance(self, token: str, spender: str, amount: int) -> int:
        """Allowance the sender granted spender on token.

        Raises:
            InsufficientAllowance: Below amount
            TransportError: If the call fails or returns malformed data
        """
        raw = await self.rpc.call(token, encode_allowance_call(self.sender, spender))
        try:
            allowance = decode_uint256(raw)
        except DecodingError as e:
            raise TransportError(f"Malformed allowance reply from {token}: {e}") from e
        if allowance < amount:
            raise InsufficientAllowance(
                f"Allowance {allowance} of {token} for {spender} is below {amount}"
            )
        return allowance

    def build_transaction(
        self, request: TransactionRequest, nonce: int, gas: GasOverrides, gas_limit: int
    ) -> dict[str, Any]:
        return {
            "from": to_checksum_address(self.sender),
            "to": to_checksum_address(request.to),
            "data": request.data,
            "value": request.value,
            "nonce": nonce,
            "gas": gas_limit,
            "chainId": self.settings.chain_id,
            "type": 2,
            **gas.as_tx_fields(),
        }

    async def _gas_limit(self, request: TransactionRequest) -> int:
        if request.gas_limit is not None:
            return request.gas_limit
        estimate = await self.rpc.estimate_gas(
            {
                "from": to_checksum_address(self.sender),
                "to": to_checksum_address(request.to),
                "data": request.data,
                "value": request.value,
            }
        )
        # 20% headroom over the estimate
        return estimate * 6 // 5

    async def submit(
        self,
        request: TransactionRequest,
        overrides: GasOverrides | None = None,
        *,
        nonce: int | None = None,
    ) -> SubmitResult:
        """Broadcast a transaction.

        Args:
            request: Call to send
            overrides: Fee caps; derived from the current gas price when None
            nonce: Explicit nonce for chained multi-step flows

        Returns:
            SubmitResult in BROADCAST state with the tx hash, or FAILED with
            the error and any warnings
        """
        result = SubmitResult(success=False)
        try:
            await self.check_balance(result.warnings)
            gas_limit = await self._gas_limit(request)
        except DexRouteError as e:
            return self._failed(result, e)

        gas = overrides or compute_gas_overrides(self.gas_price())
        explicit = nonce is not None

        async with self.nonces.lock(self.sender):
            for attempt in range(2):
                try:
                    if explicit and attempt == 0:
                        await self._sleep(EXPLICIT_NONCE_DELAY)
                        tx_nonce = nonce
                        self.nonces.sync_nonce(self.sender, tx_nonce)
                    else:
                        tx_nonce = await self.nonces.get_nonce(self.sender)
                except DexRouteError as e:
                    return self._failed(result, e)
                result.state = SubmissionState.NONCE_ACQUIRED
                result.nonce = tx_nonce

                tx = self.build_transaction(request, tx_nonce, gas, gas_limit)
                try:
                    tx_hash = await self.rpc.send_raw_transaction(self.signer(tx))
                except (DexRouteError, ValueError, TypeError) as e:
                    conflict = await self.nonces.handle_transaction_error(self.sender, e)
                    if conflict and attempt == 0:
                        logger.warning(
                            "nonce_conflict_resubmit", sender=self.sender, nonce=tx_nonce
                        )
                        result.warnings.append(f"Nonce {tx_nonce} rejected; resubmitted")
                        continue
                    return self._failed(result, e)

                await self.nonces.increment_nonce(self.sender)
                break

        result.success = True
        result.state = SubmissionState.BROADCAST
        result.tx_hash = tx_hash
        logger.info("transaction_broadcast", sender=self.sender, nonce=tx_nonce, tx_hash=tx_hash)
        self._record(request, tx_hash, result)
        return result

    async def submit_compiled(
        self,
        compiled: CompiledCall,
        overrides: GasOverrides | None = None,
        *,
        nonce: int | None = None,
        summary: Mapping[str, Any] | None = None,
    ) -> SubmitResult:
        """Submit a compiled plan to the configured bundler contract.

        An ERC-20 input is only sent when the bundler's allowance covers
        from_amount; a native input needs no approval.
        """
        bundler = self.settings.bundler_address
        if not bundler:
            return self._failed(
                SubmitResult(success=False), ValueError("No bundler address configured")
            )
        if not is_native(compiled.from_token):
            try:
                await self.check_allowance(compiled.from_token, bundler, compiled.from_amount)
            except InsufficientAllowance as e:
                logger.warning(
                    "bundler_allowance_low",
                    sender=self.sender,
                    token=compiled.from_token,
                    required=compiled.from_amount,
                )
                result = SubmitResult(success=False, warnings=[f"Approve {bundler} first"])
                return self._failed(result, e)
            except DexRouteError as e:
                return self._failed(SubmitResult(success=False), e)
        request = TransactionRequest.from_compiled(compiled, bundler, summary=summary)
        return await self.submit(request, overrides, nonce=nonce)

    def _record(self, request: TransactionRequest, tx_hash: str, result: SubmitResult) -> None:
        if self.history is None:
            return
        try:
            self.history.save_trade(request.summary, tx_hash)
        except (OSError, ValueError) as e:
            logger.warning("trade_history_failed", tx_hash=tx_hash, error=str(e))
            result.warnings.append(f"Trade history not saved: {e}")

    def _failed(self, result: SubmitResult, error: Exception) -> SubmitResult:
        result.success = False
        result.state = SubmissionState.FAILED
        result.error = str(error)
        result.error_kind = error.kind.value if isinstance(error, DexRouteError) else None
        logger.error(
            "submit_failed", sender=self.sender, error=result.error, kind=result.error_kind
        )
        return result


__all__ = [
    "EXPLICIT_NONCE_DELAY",
    "GasOverrides",
    "Signer",
    "SubmissionState",
    "SubmitResult",
    "Submitter",
    "TradeHistorySink",
    "TransactionRequest",
    "compute_gas_overrides",
    "local_signer",
]
