"""
Cart tests.

Pure in-memory behavior: clamping, overwrite-on-add, discount rounding
and total floor at zero.
"""

from decimal import Decimal

import pytest

from tienda.services.cart import Cart, CartError, discount_amount, round_half_up, sale_total


class TestMoneyHelpers:

    def test_round_half_up(self):
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.4999")) == 2
        assert round_half_up(Decimal("-0.0")) == 0

    def test_discount_amount_rounds_half_up(self):
        # 999 * 12.5% = 124.875
        assert discount_amount(999, Decimal("12.5")) == 125
        # 1001 * 0.05% = 0.5005
        assert discount_amount(1001, Decimal("0.05")) == 1

    def test_discount_amount_zero_or_missing(self):
        assert discount_amount(5000, 0) == 0
        assert discount_amount(5000, None) == 0

    def test_total_never_negative(self):
        assert sale_total(1000, 1500) == 0
        assert sale_total(1000, 250) == 750


class TestCartLines:

    def test_quantity_clamped_to_available(self):
        cart = Cart()
        line = cart.add(1, 50, 1000, available=4, name="Shirt (S, Red)")
        assert line.quantity == 4

    def test_quantity_clamped_to_at_least_one(self):
        cart = Cart()
        line = cart.add(1, 0, 1000, available=4)
        assert line.quantity == 1

    def test_adding_same_variant_overwrites(self):
        cart = Cart()
        cart.add(1, 2, 1000, available=10)
        cart.add(1, 3, 1000, available=10)

        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 3

    def test_out_of_stock_rejected(self):
        cart = Cart()
        with pytest.raises(CartError):
            cart.add(1, 1, 1000, available=0)

    def test_unpriced_rejected(self):
        cart = Cart()
        with pytest.raises(CartError):
            cart.add(1, 1, None, available=3)

    def test_remove_and_clear(self):
        cart = Cart()
        cart.add(1, 1, 1000, available=3)
        cart.add(2, 1, 500, available=3)

        cart.remove(1)
        assert [line.variant_id for line in cart.lines] == [2]

        cart.remove(99)  # unknown variant is a no-op
        cart.clear()
        assert cart.is_empty


class TestCartTotals:

    def test_subtotal_discount_total(self):
        cart = Cart(discount_percentage=Decimal("10"))
        cart.add(1, 2, 1500, available=10)
        cart.add(2, 1, 999, available=1)

        assert cart.subtotal_cents == 3999
        assert cart.discount_cents == 400  # 399.9 rounds up
        assert cart.total_cents == 3599

    def test_discount_above_hundred_floors_total(self):
        cart = Cart(discount_percentage=Decimal("150"))
        cart.add(1, 1, 1000, available=1)

        assert cart.discount_cents == 1500
        assert cart.total_cents == 0

    def test_set_discount(self):
        cart = Cart()
        cart.add(1, 1, 1000, available=1)
        cart.set_discount("25")
        assert cart.total_cents == 750

    def test_to_checkout_lines(self):
        cart = Cart()
        cart.add(7, 2, 1200, available=5)
        assert cart.to_checkout_lines() == [
            {"variant_id": 7, "quantity": 2, "unit_price_cents": 1200}
        ]

    def test_to_dict(self):
        cart = Cart(discount_percentage="5")
        cart.add(7, 2, 1000, available=5, name="Mug")
        data = cart.to_dict()

        assert data["subtotal_cents"] == 2000
        assert data["discount_percentage"] == "5"
        assert data["discount_cents"] == 100
        assert data["total_cents"] == 1900
        assert data["lines"][0]["line_total_cents"] == 2000
        assert data["lines"][0]["name"] == "Mug"


class TestCartFromStock:

    def test_builds_from_dict_rows(self):
        entries = [
            {"variant_id": 1, "quantity": 3, "price_cents": 1000, "name": "Shirt (S, Red)"},
            {"variant_id": 2, "quantity": 8, "price_cents": 500, "name": "Mug"},
        ]
        cart = Cart.from_stock(entries, {1: 5})

        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 3
        assert cart.lines[0].name == "Shirt (S, Red)"

    def test_out_of_stock_row_rejected(self):
        entries = [{"variant_id": 1, "quantity": 0, "price_cents": 1000}]
        with pytest.raises(CartError):
            Cart.from_stock(entries, {1: 1})
