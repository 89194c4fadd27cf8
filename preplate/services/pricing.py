"""
Order Pricing Engine

Pure functions turning priced order lines into subtotal, platform fee and
total. All arithmetic is Decimal; amounts are rounded half-up to cents.

    subtotal     = sum(unit_price * quantity)
    platform_fee = round(subtotal * 0.20, 2)
    total        = subtotal + platform_fee

The unit price on a line is the price actually charged; ``discount`` is
carried for display only.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

PLATFORM_FEE_RATE = Decimal("0.20")
CENT = Decimal("0.01")

MoneyLike = Union[Decimal, int, float, str]


def to_money(value: MoneyLike) -> Decimal:
    """
    Quantize a monetary amount to cents, rounding half-up.

    Floats go through ``str`` first so 18.99 stays 18.99 rather than the
    binary approximation.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedLine:
    """One order line as seen by the pricing engine."""
    unit_price: Decimal
    quantity: int
    discount: int = 0

    def __post_init__(self):
        if self.quantity < 1:
            raise ValueError("quantity must be at least 1")
        if Decimal(self.unit_price) < 0:
            raise ValueError("unit_price must not be negative")

    @property
    def line_total(self) -> Decimal:
        return to_money(Decimal(self.unit_price) * self.quantity)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    platform_fee: Decimal
    total: Decimal

    def to_dict(self) -> dict[str, Decimal]:
        return {
            "subtotal": self.subtotal,
            "platform_fee": self.platform_fee,
            "total": self.total,
        }


def calculate_subtotal(lines: Iterable[PricedLine]) -> Decimal:
    return to_money(sum((line.line_total for line in lines), Decimal("0")))


def calculate_platform_fee(subtotal: Decimal) -> Decimal:
    return to_money(Decimal(subtotal) * PLATFORM_FEE_RATE)


def calculate_order_totals(lines: Iterable[PricedLine]) -> OrderTotals:
    """Calculate order subtotal, platform fee, and total."""
    subtotal = calculate_subtotal(lines)
    platform_fee = calculate_platform_fee(subtotal)
    return OrderTotals(
        subtotal=subtotal,
        platform_fee=platform_fee,
        total=subtotal + platform_fee,
    )
