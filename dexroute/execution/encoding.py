"""Calldata for the on-chain encoders and the bundler entry point.

Each encoder exposes an exact-amount and a use-all-balance variant. The
bundler calls the encoder with this calldata and receives back the concrete
swap call to execute, so only the encoder-facing payloads are built here.
"""

from __future__ import annotations

from collections.abc import Sequence

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from dexroute.models.pools import PoolKey
from dexroute.models.types import address_bytes

WEIGHTED_SINGLE_SWAP_SIGNATURE = "encodeSingleSwap(address,address,address,uint256,uint256)"
WEIGHTED_USE_ALL_SIGNATURE = "encodeUseAllBalanceSwap(address,address,address,uint256,uint8)"
CONCENTRATED_SINGLE_SWAP_SIGNATURE = (
    "encodeSingleSwap(((address,address,uint24,int24,address),bool,uint256,uint256,address))"
)
CONCENTRATED_USE_ALL_SIGNATURE = (
    "encodeUseAllBalanceSwap(((address,address,uint24,int24,address),bool,uint256,uint8,address))"
)
BUNDLER_EXECUTE_SIGNATURE = (
    "encodeAndExecuteaaaaaYops(address,uint256,address,address[],bytes[],uint8[])"
)
ALLOWANCE_SIGNATURE = "allowance(address,address)"

WEIGHTED_SINGLE_SWAP_SELECTOR = function_signature_to_4byte_selector(WEIGHTED_SINGLE_SWAP_SIGNATURE)
WEIGHTED_USE_ALL_SELECTOR = function_signature_to_4byte_selector(WEIGHTED_USE_ALL_SIGNATURE)
CONCENTRATED_SINGLE_SWAP_SELECTOR = function_signature_to_4byte_selector(
    CONCENTRATED_SINGLE_SWAP_SIGNATURE
)
CONCENTRATED_USE_ALL_SELECTOR = function_signature_to_4byte_selector(
    CONCENTRATED_USE_ALL_SIGNATURE
)
BUNDLER_EXECUTE_SELECTOR = function_signature_to_4byte_selector(BUNDLER_EXECUTE_SIGNATURE)
ALLOWANCE_SELECTOR = function_signature_to_4byte_selector(ALLOWANCE_SIGNATURE)

_POOL_KEY_TYPE = "(address,address,uint24,int24,address)"


def _pool_key_tuple(key: PoolKey) -> tuple[bytes, bytes, int, int, bytes]:
    return (
        address_bytes(key.currency0),
        address_bytes(key.currency1),
        key.fee,
        key.tick_spacing,
        address_bytes(key.hooks),
    )


def encode_weighted_single_swap(
    pool: str, token_in: str, token_out: str, amount_in: int, min_amount_out: int
) -> bytes:
    """encodeSingleSwap(pool, tokenIn, tokenOut, amountIn, minAmountOut)."""
    params = encode(
        ["address", "address", "address", "uint256", "uint256"],
        [
            address_bytes(pool),
            address_bytes(token_in),
            address_bytes(token_out),
            amount_in,
            min_amount_out,
        ],
    )
    return WEIGHTED_SINGLE_SWAP_SELECTOR + params


def encode_weighted_use_all_balance(
    pool: str, token_in: str, token_out: str, min_amount_out: int, wrap_op: int
) -> bytes:
    """encodeUseAllBalanceSwap(pool, tokenIn, tokenOut, minAmountOut, wrapOp)."""
    params = encode(
        ["address", "address", "address", "uint256", "uint8"],
        [
            address_bytes(pool),
            address_bytes(token_in),
            address_bytes(token_out),
            min_amount_out,
            wrap_op,
        ],
    )
    return WEIGHTED_USE_ALL_SELECTOR + params


def encode_concentrated_single_swap(
    key: PoolKey, zero_for_one: bool, amount_in: int, min_amount_out: int, token_in: str
) -> bytes:
    """encodeSingleSwap((poolKey, zeroForOne, amountIn, minAmountOut, tokenIn))."""
    params = encode(
        [f"({_POOL_KEY_TYPE},bool,uint256,uint256,address)"],
        [(_pool_key_tuple(key), zero_for_one, amount_in, min_amount_out, address_bytes(token_in))],
    )
    return CONCENTRATED_SINGLE_SWAP_SELECTOR + params


def encode_concentrated_use_all_balance(
    key: PoolKey, zero_for_one: bool, min_amount_out: int, wrap_op: int, token_in: str
) -> bytes:
    """encodeUseAllBalanceSwap((poolKey, zeroForOne, minAmountOut, wrapOp, tokenIn))."""
    params = encode(
        [f"({_POOL_KEY_TYPE},bool,uint256,uint8,address)"],
        [(_pool_key_tuple(key), zero_for_one, min_amount_out, wrap_op, address_bytes(token_in))],
    )
    return CONCENTRATED_USE_ALL_SELECTOR + params


def encode_bundler_execute(
    from_token: str,
    from_amount: int,
    to_token: str,
    encoder_targets: Sequence[str],
    encoder_calldata: Sequence[bytes],
    wrap_operations: Sequence[int],
) -> bytes:
    """encodeAndExecuteaaaaaYops(fromToken, fromAmount, toToken, targets, data, wrapOps).

    Raises:
        ValueError: If the three arrays differ in length
    """
    if not len(encoder_targets) == len(encoder_calldata) == len(wrap_operations):
        raise ValueError(
            "Encoder targets, calldata and wrap operations must align: "
            f"{len(encoder_targets)}/{len(encoder_calldata)}/{len(wrap_operations)}"
        )
    params = encode(
        ["address", "uint256", "address", "address[]", "bytes[]", "uint8[]"],
        [
            address_bytes(from_token),
            from_amount,
            address_bytes(to_token),
            [address_bytes(t) for t in encoder_targets],
            list(encoder_calldata),
            list(wrap_operations),
        ],
    )
    return BUNDLER_EXECUTE_SELECTOR + params


def encode_allowance_call(owner: str, spender: str) -> bytes:
    """ERC-20 allowance(owner, spender) calldata."""
    return ALLOWANCE_SELECTOR + encode(
        ["address", "address"], [address_bytes(owner), address_bytes(spender)]
    )


def decode_uint256(result: bytes) -> int:
    """Decode a single uint256 return value."""
    (value,) = decode(["uint256"], result)
    return value


__all__ = [
    "WEIGHTED_SINGLE_SWAP_SIGNATURE",
    "WEIGHTED_USE_ALL_SIGNATURE",
    "CONCENTRATED_SINGLE_SWAP_SIGNATURE",
    "CONCENTRATED_USE_ALL_SIGNATURE",
    "BUNDLER_EXECUTE_SIGNATURE",
    "ALLOWANCE_SIGNATURE",
    "WEIGHTED_SINGLE_SWAP_SELECTOR",
    "WEIGHTED_USE_ALL_SELECTOR",
    "CONCENTRATED_SINGLE_SWAP_SELECTOR",
    "CONCENTRATED_USE_ALL_SELECTOR",
    "BUNDLER_EXECUTE_SELECTOR",
    "ALLOWANCE_SELECTOR",
    "encode_weighted_single_swap",
    "encode_weighted_use_all_balance",
    "encode_concentrated_single_swap",
    "encode_concentrated_use_all_balance",
    "encode_bundler_execute",
    "encode_allowance_call",
    "decode_uint256",
]
