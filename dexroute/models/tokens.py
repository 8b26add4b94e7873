"""Token model and native/wrapped-native helpers."""

from __future__ import annotations

from dataclasses import dataclass

from dexroute.constants import NATIVE_ADDRESS, NATIVE_PLACEHOLDER, WRAPPED_NATIVE_ADDRESS
from dexroute.models.types import normalize_address

MAX_DECIMALS = 24


@dataclass(frozen=True)
class Token:
    """An ERC-20 token (or the native currency, at the zero address).

    Addresses are stored lowercase, so equality is case-insensitive.
    """

    address: str
    symbol: str = ""
    decimals: int = 18

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", normalize_address(self.address, validate=True))
        if not 0 <= self.decimals <= MAX_DECIMALS:
            raise ValueError(f"Token decimals must be in [0, {MAX_DECIMALS}], got {self.decimals}")

    @property
    def is_native(self) -> bool:
        return is_native(self.address)

    @property
    def is_wrapped_native(self) -> bool:
        return is_wrapped_native(self.address)

    @property
    def scaling_factor(self) -> int:
        """Multiplier that lifts a raw amount to 18 decimals."""
        return 10 ** (18 - self.decimals) if self.decimals <= 18 else 1


NATIVE_TOKEN = Token(NATIVE_ADDRESS, "ETH", 18)
WRAPPED_NATIVE_TOKEN = Token(WRAPPED_NATIVE_ADDRESS, "WETH", 18)


def is_native(address: str) -> bool:
    """True for the zero address and the 0xEeee... placeholder."""
    addr = normalize_address(address)
    return addr == NATIVE_ADDRESS or addr == NATIVE_PLACEHOLDER


def is_wrapped_native(address: str) -> bool:
    return normalize_address(address) == WRAPPED_NATIVE_ADDRESS


def routing_address(address: str) -> str:
    """Address used for pool lookup; native currency trades through its wrapper."""
    return WRAPPED_NATIVE_ADDRESS if is_native(address) else normalize_address(address)


def same_token(a: str, b: str) -> bool:
    return normalize_address(a) == normalize_address(b)


__all__ = [
    "Token",
    "NATIVE_TOKEN",
    "WRAPPED_NATIVE_TOKEN",
    "MAX_DECIMALS",
    "is_native",
    "is_wrapped_native",
    "routing_address",
    "same_token",
]
