"""Unit tests for the order pricing engine."""

from decimal import Decimal

import pytest

from preplate.services.pricing import (
    PricedLine,
    calculate_order_totals,
    calculate_platform_fee,
    calculate_subtotal,
    to_money,
)


@pytest.mark.unit
class TestToMoney:
    """Test suite for to_money rounding."""

    def test_rounds_half_up(self) -> None:
        assert to_money(Decimal("0.005")) == Decimal("0.01")
        assert to_money(Decimal("2.345")) == Decimal("2.35")

    def test_float_keeps_its_decimal_text(self) -> None:
        assert to_money(18.99) == Decimal("18.99")

    def test_integer_gets_cents(self) -> None:
        assert str(to_money(5)) == "5.00"


@pytest.mark.unit
class TestPricedLine:
    """Test suite for PricedLine."""

    def test_line_total(self) -> None:
        assert PricedLine(unit_price=Decimal("10.00"), quantity=2).line_total == Decimal("20.00")

    def test_zero_quantity_rejected(self) -> None:
        with pytest.raises(ValueError):
            PricedLine(unit_price=Decimal("10.00"), quantity=0)

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValueError):
            PricedLine(unit_price=Decimal("-1.00"), quantity=1)


@pytest.mark.unit
class TestOrderTotals:
    """Test suite for calculate_order_totals."""

    def test_two_lines_with_twenty_percent_fee(self) -> None:
        totals = calculate_order_totals(
            [
                PricedLine(unit_price=Decimal("10.00"), quantity=2),
                PricedLine(unit_price=Decimal("5.00"), quantity=1),
            ]
        )
        assert totals.subtotal == Decimal("25.00")
        assert totals.platform_fee == Decimal("5.00")
        assert totals.total == Decimal("30.00")

    def test_fee_rounds_half_up_to_cents(self) -> None:
        # 0.20 * 0.03 = 0.006 -> 0.01
        totals = calculate_order_totals([PricedLine(unit_price=Decimal("0.03"), quantity=1)])
        assert totals.platform_fee == Decimal("0.01")
        assert totals.total == Decimal("0.04")

    def test_fee_exact_half_cent(self) -> None:
        # 0.125 rounds to 0.13, whose fee 0.026 rounds to 0.03
        assert calculate_platform_fee(to_money(Decimal("0.125"))) == Decimal("0.03")

    def test_total_is_subtotal_plus_fee(self) -> None:
        lines = [
            PricedLine(unit_price=Decimal("18.99"), quantity=3),
            PricedLine(unit_price=Decimal("4.49"), quantity=2),
        ]
        totals = calculate_order_totals(lines)
        assert totals.subtotal == Decimal("65.95")
        assert totals.platform_fee == Decimal("13.19")
        assert totals.total == totals.subtotal + totals.platform_fee

    def test_total_never_decreases_when_quantity_grows(self) -> None:
        previous = Decimal("0")
        for quantity in range(1, 20):
            total = calculate_order_totals([PricedLine(unit_price=Decimal("3.33"), quantity=quantity)]).total
            assert total >= previous
            previous = total

    def test_empty_order_is_zero(self) -> None:
        assert calculate_subtotal([]) == Decimal("0.00")

    def test_to_dict(self) -> None:
        totals = calculate_order_totals([PricedLine(unit_price=Decimal("1.00"), quantity=1)])
        assert totals.to_dict() == {
            "subtotal": Decimal("1.00"),
            "platform_fee": Decimal("0.20"),
            "total": Decimal("1.20"),
        }
