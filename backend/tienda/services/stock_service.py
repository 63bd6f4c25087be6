# Overview: Service-layer operations for stock; per-location quantities and
# prices of variants.

"""
Stock Ledger Accessor

WHY: StockEntry holds the quantity and unit price of one variant at one
location. Receipts and sales from several terminals touch the same rows,
so quantities are never computed in Python and written back.

ATOMICITY:
- increments:  UPDATE ... SET quantity = quantity + :n
- decrements:  UPDATE ... SET quantity = quantity - :n WHERE quantity >= :n
  (zero matched rows means insufficient stock; nothing is written)
- new entries: insert-if-absent on UniqueConstraint(variant_id, store_id);
  a concurrent duplicate falls back to the increment path

PRICES: Integer cents. A restock keeps an existing price and only fills
it when unset. set_price is the explicit way to change it.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update

from ..extensions import db
from ..models import StockEntry, Variant, Product
from ..validation import validate_positive_quantity, validate_price_cents
from tienda.time_utils import utcnow
from .concurrency import insert_if_absent, run_with_retry
from .tenant_service import TenantContext, get_scoped_or_404, require_store_access
from .variant_service import resolve_or_create_variant, describe_variants

logger = logging.getLogger(__name__)


class StockError(Exception):
    """Raised for stock operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def lookup_entry(variant_id: int, store_id: int) -> StockEntry | None:
    return db.session.query(StockEntry).filter_by(variant_id=variant_id, store_id=store_id).first()


def available_quantity(variant_id: int, store_id: int) -> int:
    quantity = db.session.execute(
        select(StockEntry.quantity).where(
            StockEntry.variant_id == variant_id,
            StockEntry.store_id == store_id,
        )
    ).scalar()
    return quantity or 0


def get_stock(ctx: TenantContext, variant_id: int, store_id: int) -> StockEntry | None:
    """Stock entry for (variant, location), or None (zero stock, price unset)."""
    require_store_access(store_id, ctx)
    return db.session.query(StockEntry).filter_by(
        org_id=ctx.org_id,
        variant_id=variant_id,
        store_id=store_id,
    ).first()


def _increment(variant_id: int, store_id: int, quantity: int, fill_price_cents: int | None = None) -> bool:
    values = {"quantity": StockEntry.quantity + quantity, "updated_at": utcnow()}
    if fill_price_cents is not None:
        values["price_cents"] = db.func.coalesce(StockEntry.price_cents, fill_price_cents)

    result = db.session.execute(
        update(StockEntry)
        .where(StockEntry.variant_id == variant_id, StockEntry.store_id == store_id)
        .values(**values)
    )
    return result.rowcount == 1


def increment_stock(
    org_id: int,
    variant_id: int,
    store_id: int,
    quantity: int,
    price_cents: int | None = None,
) -> StockEntry:
    """
    Add quantity to (variant, location) in the caller's transaction.

    Recreates the entry (with price_cents) when it no longer exists.
    Does not commit.
    """
    if _increment(variant_id, store_id, quantity, price_cents):
        return lookup_entry(variant_id, store_id)

    def _build() -> StockEntry:
        return StockEntry(
            org_id=org_id,
            variant_id=variant_id,
            store_id=store_id,
            quantity=quantity,
            price_cents=price_cents,
        )

    entry, created = insert_if_absent(lambda: lookup_entry(variant_id, store_id), _build)
    if not created:
        _increment(variant_id, store_id, quantity, price_cents)
    return entry


def decrement_stock(variant_id: int, store_id: int, quantity: int) -> None:
    """
    Conditionally remove quantity from (variant, location).

    Raises StockError with the available quantity when the entry is missing
    or holds less than quantity. Does not commit.
    """
    result = db.session.execute(
        update(StockEntry)
        .where(
            StockEntry.variant_id == variant_id,
            StockEntry.store_id == store_id,
            StockEntry.quantity >= quantity,
        )
        .values(quantity=StockEntry.quantity - quantity, updated_at=utcnow())
    )
    if result.rowcount != 1:
        raise StockError(
            "Insufficient stock",
            details={
                "variant_id": variant_id,
                "requested_quantity": quantity,
                "available": available_quantity(variant_id, store_id),
            },
        )


def restock(
    ctx: TenantContext,
    product_id: int,
    option_ids,
    store_id: int,
    quantity,
    price_cents=None,
) -> tuple[StockEntry, bool]:
    """
    Receive stock of (product, option set) at a location.

    Resolves (or creates) the variant, then increments the existing entry
    or inserts a new one. The variant and the stock change are committed
    together.

    Returns (entry, created) where created tells whether a new entry was
    inserted.
    """
    quantity = validate_positive_quantity(quantity)
    if price_cents is not None:
        price_cents = validate_price_cents(price_cents)
    require_store_access(store_id, ctx)

    def _op():
        variant, _ = resolve_or_create_variant(ctx, product_id, option_ids, commit=False)

        created = False
        if not _increment(variant.id, store_id, quantity, price_cents):
            def _build() -> StockEntry:
                return StockEntry(
                    org_id=ctx.org_id,
                    variant_id=variant.id,
                    store_id=store_id,
                    quantity=quantity,
                    price_cents=price_cents,
                )

            _, created = insert_if_absent(lambda: lookup_entry(variant.id, store_id), _build)
            if not created:
                _increment(variant.id, store_id, quantity, price_cents)

        db.session.commit()
        entry = lookup_entry(variant.id, store_id)

        logger.info(
            "Restocked variant %s at store %s: +%d (quantity=%d, created=%s)",
            variant.id, store_id, quantity, entry.quantity, created,
        )
        return entry, created

    return run_with_retry(_op)


def set_price(ctx: TenantContext, stock_entry_id: int, price_cents) -> StockEntry:
    """Change the unit price of a stock entry."""
    price_cents = validate_price_cents(price_cents)
    entry = get_scoped_or_404(StockEntry, stock_entry_id, ctx, label="Stock entry")
    old_price = entry.price_cents

    entry.price_cents = price_cents
    db.session.commit()

    logger.info("Price of stock entry %s changed %s -> %s", entry.id, old_price, price_cents)
    return entry


def _entry_rows(ctx: TenantContext, entries: list[StockEntry]) -> list[dict]:
    described = describe_variants(ctx, [e.variant_id for e in entries])
    rows = []
    for entry in entries:
        info = described.get(entry.variant_id, {})
        rows.append({
            **entry.to_dict(),
            "store_name": entry.store.name if entry.store else None,
            "product_id": info.get("product_id"),
            "product_name": info.get("product_name"),
            "attributes": info.get("attributes", {}),
            "name": info.get("name"),
        })
    return rows


def list_location_inventory(ctx: TenantContext, store_id: int) -> list[dict]:
    """Every stock entry at a location, with product name and variant attributes."""
    require_store_access(store_id, ctx)
    entries = (
        db.session.query(StockEntry)
        .join(Variant, Variant.id == StockEntry.variant_id)
        .join(Product, Product.id == Variant.product_id)
        .filter(StockEntry.org_id == ctx.org_id, StockEntry.store_id == store_id)
        .order_by(Product.name.asc(), StockEntry.id.asc())
        .all()
    )
    return _entry_rows(ctx, entries)


def list_product_stock(ctx: TenantContext, product_id: int) -> list[dict]:
    """Stock entries of every variant of a product, across accessible locations."""
    product = get_scoped_or_404(Product, product_id, ctx, label="Product")
    query = (
        db.session.query(StockEntry)
        .join(Variant, Variant.id == StockEntry.variant_id)
        .filter(Variant.product_id == product.id, StockEntry.org_id == ctx.org_id)
    )
    if ctx.is_employee:
        query = query.filter(StockEntry.store_id == ctx.store_id)
    return _entry_rows(ctx, query.order_by(StockEntry.store_id, StockEntry.id).all())


def delete_stock_entry(ctx: TenantContext, stock_entry_id: int) -> None:
    entry = get_scoped_or_404(StockEntry, stock_entry_id, ctx, label="Stock entry")
    db.session.delete(entry)
    db.session.commit()
    logger.info("Stock entry %s deleted (org=%s)", stock_entry_id, ctx.org_id)
