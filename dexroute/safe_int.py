"""Checked integer wrapper for on-chain amounts and fixed-point words.

Python integers are unbounded, but every amount that leaves this package is
eventually ABI-encoded into a fixed-width word. SafeInt keeps arithmetic
natural while making the dangerous cases loud:

- division or modulo by zero raises DivisionByZero
- subtraction below zero raises Underflow
- narrowing to a fixed-width view (uint128, uint160, uint256, int24)
  raises WidthOverflow

Usage pattern:
    from dexroute.safe_int import S

    def mul_div(a: int, b: int, d: int) -> int:
        return (S(a) * S(b) // S(d)).to_uint256()
"""

from __future__ import annotations

UINT8_MAX = 2**8 - 1
UINT24_MAX = 2**24 - 1
UINT96_MAX = 2**96 - 1
UINT128_MAX = 2**128 - 1
UINT160_MAX = 2**160 - 1
UINT256_MAX = 2**256 - 1
INT24_MIN = -(2**23)
INT24_MAX = 2**23 - 1


class SafeIntError(ArithmeticError):
    """Base class for SafeInt arithmetic errors."""

    pass


class DivisionByZero(SafeIntError):
    """Division or modulo by zero."""

    pass


class Underflow(SafeIntError):
    """Subtraction would produce a negative result."""

    pass


class WidthOverflow(SafeIntError):
    """Value does not fit the requested fixed-width view."""

    pass


# Kept as an alias: callers that only care about the 256-bit bound catch this.
Uint256Overflow = WidthOverflow


def _check_unsigned(value: int, bits: int) -> int:
    if value < 0 or value >> bits:
        raise WidthOverflow(f"Value {value} does not fit in uint{bits}")
    return value


def _check_signed(value: int, bits: int) -> int:
    bound = 1 << (bits - 1)
    if not -bound <= value < bound:
        raise WidthOverflow(f"Value {value} does not fit in int{bits}")
    return value


class SafeInt:
    """Integer with checked arithmetic and explicit width conversions.

    Addition and multiplication are unchecked (Python ints never wrap);
    the width check happens once, when the value is narrowed with one of
    the ``to_*`` methods.

    Attributes:
        value: The underlying integer value (read-only)
    """

    __slots__ = ("_value",)
    _value: int

    def __init__(self, value: int | SafeInt) -> None:
        if isinstance(value, SafeInt):
            self._value = value._value
        elif isinstance(value, int) and not isinstance(value, bool):
            self._value = value
        else:
            raise TypeError(f"SafeInt requires int, got {type(value).__name__}")

    @property
    def value(self) -> int:
        """The underlying integer value."""
        return self._value

    def __repr__(self) -> str:
        return f"SafeInt({self._value})"

    def __str__(self) -> str:
        return str(self._value)

    def __hash__(self) -> int:
        return hash(self._value)

    # --- Arithmetic operations ---

    def __add__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self._value + _extract_value(other))

    def __radd__(self, other: int) -> SafeInt:
        return SafeInt(other + self._value)

    def __sub__(self, other: SafeInt | int) -> SafeInt:
        """Subtract other from self.

        Raises:
            Underflow: If result would be negative
        """
        other_val = _extract_value(other)
        result = self._value - other_val
        if result < 0:
            raise Underflow(f"Underflow: {self._value} - {other_val} = {result}")
        return SafeInt(result)

    def __rsub__(self, other: int) -> SafeInt:
        result = other - self._value
        if result < 0:
            raise Underflow(f"Underflow: {other} - {self._value} = {result}")
        return SafeInt(result)

    def __mul__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self._value * _extract_value(other))

    def __rmul__(self, other: int) -> SafeInt:
        return SafeInt(other * self._value)

    def __floordiv__(self, other: SafeInt | int) -> SafeInt:
        """Integer division.

        Raises:
            DivisionByZero: If other is zero
        """
        other_val = _extract_value(other)
        if other_val == 0:
            raise DivisionByZero(f"Division by zero: {self._value} // 0")
        return SafeInt(self._value // other_val)

    def __mod__(self, other: SafeInt | int) -> SafeInt:
        other_val = _extract_value(other)
        if other_val == 0:
            raise DivisionByZero(f"Modulo by zero: {self._value} % 0")
        return SafeInt(self._value % other_val)

    def __lshift__(self, bits: int) -> SafeInt:
        return SafeInt(self._value << bits)

    def __rshift__(self, bits: int) -> SafeInt:
        return SafeInt(self._value >> bits)

    # --- Comparison operations ---

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SafeInt):
            return self._value == other._value
        if isinstance(other, int):
            return self._value == other
        return NotImplemented

    def __lt__(self, other: SafeInt | int) -> bool:
        return self._value < _extract_value(other)

    def __le__(self, other: SafeInt | int) -> bool:
        return self._value <= _extract_value(other)

    def __gt__(self, other: SafeInt | int) -> bool:
        return self._value > _extract_value(other)

    def __ge__(self, other: SafeInt | int) -> bool:
        return self._value >= _extract_value(other)

    def __int__(self) -> int:
        return self._value

    def __bool__(self) -> bool:
        return self._value != 0

    def __index__(self) -> int:
        return self._value

    # --- Named operations ---

    def ceiling_div(self, other: SafeInt | int) -> SafeInt:
        """Ceiling division for non-negative operands.

        Raises:
            DivisionByZero: If other is zero
        """
        other_val = _extract_value(other)
        if other_val == 0:
            raise DivisionByZero(f"Ceiling division by zero: {self._value}")
        return SafeInt(-(-self._value // other_val))

    def round_half_up_shift(self, bits: int) -> SafeInt:
        """Shift right by ``bits``, rounding half up at the bit boundary."""
        if bits <= 0:
            return SafeInt(self._value)
        return SafeInt((self._value + (1 << (bits - 1))) >> bits)

    # --- Width views ---

    def to_uint128(self) -> int:
        return _check_unsigned(self._value, 128)

    def to_uint160(self) -> int:
        """Q64.96 sqrt prices live in uint160."""
        return _check_unsigned(self._value, 160)

    def to_uint256(self) -> int:
        """Convert to int, validating uint256 bounds.

        Raises:
            WidthOverflow: If value is negative or exceeds 2^256-1
        """
        return _check_unsigned(self._value, 256)

    def to_int24(self) -> int:
        return _check_signed(self._value, 24)

    def is_uint256(self) -> bool:
        return 0 <= self._value <= UINT256_MAX


def _extract_value(x: SafeInt | int) -> int:
    if isinstance(x, SafeInt):
        return x._value
    return x


# Convenience alias for concise code
S = SafeInt

__all__ = [
    "SafeInt",
    "S",
    "SafeIntError",
    "DivisionByZero",
    "Underflow",
    "WidthOverflow",
    "Uint256Overflow",
    "UINT8_MAX",
    "UINT24_MAX",
    "UINT96_MAX",
    "UINT128_MAX",
    "UINT160_MAX",
    "UINT256_MAX",
    "INT24_MIN",
    "INT24_MAX",
]
