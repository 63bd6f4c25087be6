# Overview: In-memory point-of-sale cart; line clamping and totals.

"""
Cart Aggregator

The cart lives only in memory (a terminal's working state). Nothing here
touches the database; stock is re-checked at commit time by
checkout_service.commit_sale.

MONEY: integer cents. The discount is a percentage (any non-negative
Decimal, values above 100 allowed):
    discount_cents = round_half_up(subtotal_cents * pct / 100)
    total_cents    = max(subtotal_cents - discount_cents, 0)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP


class CartError(Exception):
    """Raised when a line cannot be added to the cart."""
    pass


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def discount_amount(subtotal_cents: int, discount_percentage) -> int:
    pct = Decimal(str(discount_percentage or 0))
    return round_half_up(Decimal(subtotal_cents) * pct / Decimal(100))


def sale_total(subtotal_cents: int, discount_cents: int) -> int:
    return max(subtotal_cents - discount_cents, 0)


@dataclass
class CartLine:
    variant_id: int
    name: str
    unit_price_cents: int
    quantity: int
    available: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "available": self.available,
            "line_total_cents": self.line_total_cents,
        }


def _field(entry, key: str):
    if isinstance(entry, dict):
        return entry.get(key)
    return getattr(entry, key, None)


class Cart:
    """
    Lines keyed by variant, in insertion order.

    Quantities are clamped to [1, available]. Adding a variant that is
    already in the cart overwrites its quantity instead of summing.
    """

    def __init__(self, discount_percentage=0):
        self._lines: dict[int, CartLine] = {}
        self.discount_percentage = Decimal(str(discount_percentage or 0))

    def add(self, variant_id: int, requested_qty: int, unit_price_cents: int | None, available: int, name: str = "") -> CartLine:
        if available is None or available <= 0:
            raise CartError(f"Variant {variant_id} is out of stock")
        if unit_price_cents is None:
            raise CartError(f"Variant {variant_id} has no price")

        quantity = max(1, min(int(requested_qty), available))
        line = CartLine(
            variant_id=variant_id,
            name=name,
            unit_price_cents=unit_price_cents,
            quantity=quantity,
            available=available,
        )
        self._lines[variant_id] = line
        return line

    def remove(self, variant_id: int) -> None:
        self._lines.pop(variant_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def set_discount(self, discount_percentage) -> None:
        self.discount_percentage = Decimal(str(discount_percentage or 0))

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def subtotal_cents(self) -> int:
        return sum(line.line_total_cents for line in self._lines.values())

    @property
    def discount_cents(self) -> int:
        return discount_amount(self.subtotal_cents, self.discount_percentage)

    @property
    def total_cents(self) -> int:
        return sale_total(self.subtotal_cents, self.discount_cents)

    def to_checkout_lines(self) -> list[dict]:
        """Lines in the shape commit_sale accepts."""
        return [
            {
                "variant_id": line.variant_id,
                "quantity": line.quantity,
                "unit_price_cents": line.unit_price_cents,
            }
            for line in self._lines.values()
        ]

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self._lines.values()],
            "subtotal_cents": self.subtotal_cents,
            "discount_percentage": str(self.discount_percentage),
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
        }

    @classmethod
    def from_stock(cls, entries, quantities: dict[int, int], discount_percentage=0) -> "Cart":
        """
        Build a cart from stock snapshots.

        entries: rows with variant_id, quantity, price_cents and optionally
        name (dicts as returned by stock_service.list_location_inventory or
        StockEntry objects). quantities: {variant_id: requested quantity}.
        Entries without a requested quantity are skipped.
        """
        cart = cls(discount_percentage)
        for entry in entries:
            variant_id = _field(entry, "variant_id")
            if variant_id not in quantities:
                continue
            cart.add(
                variant_id,
                quantities[variant_id],
                _field(entry, "price_cents"),
                _field(entry, "quantity"),
                name=_field(entry, "name") or "",
            )
        return cart
