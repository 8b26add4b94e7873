"""18-decimal fixed-point arithmetic for weighted and stable pool math.

Values are integers scaled by 10^18, with explicit up/down rounding on every
multiplication and division so callers can always round against the trader.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar

ONE_18 = 10**18

AMP_PRECISION = 1000


class Bfp:
    """18-decimal fixed-point number.

    Example: 1.5 is stored as 1_500_000_000_000_000_000.
    """

    ONE: ClassVar[int] = ONE_18

    __slots__ = ("value",)
    __hash__ = None  # type: ignore[assignment]

    def __init__(self, value: int) -> None:
        self.value = value

    @classmethod
    def from_decimal(cls, d: Decimal | str) -> Bfp:
        """Scale a non-negative decimal by 10^18, rounding half up."""
        d = Decimal(d)
        if d < 0:
            raise ValueError(f"Bfp requires non-negative input, got {d}")
        return cls(int((d * cls.ONE).quantize(Decimal("1"), rounding=ROUND_HALF_UP)))

    def to_decimal(self) -> Decimal:
        return Decimal(self.value) / Decimal(self.ONE)

    def mul_down(self, other: Bfp) -> Bfp:
        return Bfp((self.value * other.value) // self.ONE)

    def mul_up(self, other: Bfp) -> Bfp:
        product = self.value * other.value
        return Bfp(0) if product == 0 else Bfp((product - 1) // self.ONE + 1)

    def div_down(self, other: Bfp) -> Bfp:
        if other.value == 0:
            raise ZeroDivisionError("Bfp division by zero")
        return Bfp((self.value * self.ONE) // other.value)

    def div_up(self, other: Bfp) -> Bfp:
        if other.value == 0:
            raise ZeroDivisionError("Bfp division by zero")
        numerator = self.value * self.ONE
        return Bfp(0) if numerator == 0 else Bfp((numerator - 1) // other.value + 1)

    def sub(self, other: Bfp) -> Bfp:
        """Subtract, clamping at zero."""
        return Bfp(max(0, self.value - other.value))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bfp):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: Bfp) -> bool:
        return self.value < other.value

    def __le__(self, other: Bfp) -> bool:
        return self.value <= other.value

    def __repr__(self) -> str:
        return f"Bfp({self.value})"


MAX_IN_RATIO = Bfp(3 * 10**17)  # 30% of balance_in

__all__ = [
    "Bfp",
    "ONE_18",
    "AMP_PRECISION",
    "MAX_IN_RATIO",
]
