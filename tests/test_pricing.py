from decimal import Decimal

import pytest

from orderflow import pricing as P
from orderflow._types import money, round2


def line(pid: str, qty: int, price: str) -> P.LineItem:
    return P.LineItem(pid, pid.upper(), qty, Decimal(price))


class TestCompute:
    def test_plain_cart(self):
        breakdown = P.compute([line("p", 2, "100")], Decimal("0"), Decimal("18"), Decimal("0"))

        assert breakdown.subtotal == Decimal("200.00")
        assert breakdown.discount == Decimal("0.00")
        assert breakdown.tax == Decimal("36.00")
        assert breakdown.shipping == Decimal("0.00")
        assert breakdown.total == Decimal("236.00")
        assert breakdown.reconciles()

    def test_tax_is_on_discounted_subtotal(self):
        breakdown = P.compute([line("p", 2, "100")], Decimal("20"), Decimal("18"), Decimal("0"))

        assert breakdown.tax == Decimal("32.40")
        assert breakdown.total == Decimal("212.40")

    def test_shipping_is_added_untaxed(self):
        breakdown = P.compute([line("p", 1, "100")], Decimal("0"), Decimal("18"), Decimal("49"))

        assert breakdown.tax == Decimal("18.00")
        assert breakdown.total == Decimal("167.00")

    def test_subtotal_rounds_once_half_up(self):
        breakdown = P.compute([line("p", 3, "33.335")], Decimal("0"), Decimal("0"), Decimal("0"))

        # 100.005 rounds up, per-line totals are not rounded first
        assert breakdown.subtotal == Decimal("100.01")

    def test_tax_rounds_half_up(self):
        breakdown = P.compute([line("p", 1, "0.25")], Decimal("0"), Decimal("10"), Decimal("0"))

        # 0.025 → 0.03
        assert breakdown.tax == Decimal("0.03")
        assert breakdown.total == Decimal("0.28")

    def test_discount_clamped_to_subtotal(self):
        breakdown = P.compute([line("p", 2, "100")], Decimal("500"), Decimal("18"), Decimal("10"))

        assert breakdown.discount == Decimal("200.00")
        assert breakdown.tax == Decimal("0.00")
        assert breakdown.total == Decimal("10.00")
        assert breakdown.reconciles()

    def test_negative_discount_clamped_to_zero(self):
        breakdown = P.compute([line("p", 1, "100")], Decimal("-5"), Decimal("0"), Decimal("0"))

        assert breakdown.discount == Decimal("0.00")

    def test_multiple_lines(self):
        breakdown = P.compute(
            [line("a", 2, "19.99"), line("b", 1, "5.50")],
            Decimal("0"),
            Decimal("5"),
            Decimal("0"),
        )

        assert breakdown.subtotal == Decimal("45.48")
        assert breakdown.tax == Decimal("2.27")
        assert breakdown.total == Decimal("47.75")

    def test_rejects_negative_tax(self):
        with pytest.raises(ValueError):
            P.compute([line("p", 1, "1")], Decimal("0"), Decimal("-1"), Decimal("0"))


class TestReconciles:
    def test_detects_tampered_total(self):
        good = P.compute([line("p", 2, "100")], Decimal("0"), Decimal("18"), Decimal("0"))
        tampered = P.PriceBreakdown(
            subtotal=good.subtotal,
            discount=good.discount,
            tax_percentage=good.tax_percentage,
            tax=good.tax,
            shipping=good.shipping,
            total=good.total + Decimal("1"),
        )

        assert not tampered.reconciles()

    def test_detects_discount_above_subtotal(self):
        bad = P.PriceBreakdown(
            subtotal=Decimal("10.00"),
            discount=Decimal("20.00"),
            tax_percentage=Decimal("0"),
            tax=Decimal("0.00"),
            shipping=Decimal("0.00"),
            total=Decimal("-10.00"),
        )

        assert not bad.reconciles()


class TestLineItem:
    def test_rejects_zero_quantity(self):
        with pytest.raises(ValueError):
            line("p", 0, "1")

    def test_rejects_negative_price(self):
        with pytest.raises(ValueError):
            line("p", 1, "-1")


class TestMoney:
    def test_float_rejected(self):
        with pytest.raises(TypeError):
            money(1.5)

    def test_round2(self):
        assert round2(Decimal("2.345")) == Decimal("2.35")
        assert round2(Decimal("2.344")) == Decimal("2.34")
