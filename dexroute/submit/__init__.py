"""Nonce management and transaction submission."""

from dexroute.submit.nonce import NonceManager, NonceRecord, is_nonce_error
from dexroute.submit.submitter import (
    GasOverrides,
    SubmissionState,
    SubmitResult,
    Submitter,
    TradeHistorySink,
    TransactionRequest,
    compute_gas_overrides,
    local_signer,
)

__all__ = [
    "GasOverrides",
    "NonceManager",
    "NonceRecord",
    "SubmissionState",
    "SubmitResult",
    "Submitter",
    "TradeHistorySink",
    "TransactionRequest",
    "compute_gas_overrides",
    "is_nonce_error",
    "local_signer",
]
