# Overview: Service-layer operations for variants; canonical option sets,
# idempotent resolution and attribute lookups.

"""
Variant Resolver

WHY: A variant is a product plus one chosen option per (some of its)
characteristics. Two stock receipts for "Shirt, Size S" must land on the
same variant, no matter in which order the options were picked or how
many requests race to create it.

IDENTITY: option ids are deduplicated and sorted into option_key
("3,7"; "" for attribute-less products). UniqueConstraint(product_id,
option_key) guarantees at most one variant per option set. Creation is
insert-if-absent inside a SAVEPOINT (concurrency.insert_if_absent); the
variant and its VariantOption link rows are flushed together, so a
variant never exists without its links.

RULES:
- every option must belong to one of the product's characteristics
- at most one option per characteristic
- a subset of the product's characteristics is allowed
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..extensions import db
from ..models import (
    Product,
    Characteristic,
    CharacteristicOption,
    Variant,
    VariantOption,
    StockEntry,
    SaleLine,
)
from .concurrency import insert_if_absent
from .tenant_service import TenantContext, get_scoped_or_404, scoped_query

logger = logging.getLogger(__name__)


class VariantError(Exception):
    """Raised for variant resolution errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def normalize_option_ids(option_ids: Iterable | None) -> list[int]:
    """Deduplicated, ascending option ids."""
    ids: set[int] = set()
    for raw in option_ids or []:
        if isinstance(raw, bool):
            raise VariantError("Option ids must be integers")
        try:
            ids.add(int(raw))
        except (TypeError, ValueError):
            raise VariantError("Option ids must be integers")
    return sorted(ids)


def canonical_option_key(option_ids: Iterable | None) -> str:
    """
    Canonical form of an option set.

    >>> canonical_option_key([7, 3, 7])
    '3,7'
    >>> canonical_option_key([])
    ''
    """
    return ",".join(str(i) for i in normalize_option_ids(option_ids))


def _validate_options(product: Product, option_ids: list[int]) -> None:
    owner: dict[int, Characteristic] = {}
    for characteristic in product.characteristics:
        for option in characteristic.options:
            owner[option.id] = characteristic

    unknown = [i for i in option_ids if i not in owner]
    if unknown:
        raise VariantError(
            "Options do not belong to this product",
            details={"product_id": product.id, "option_ids": unknown},
        )

    used: dict[int, int] = {}
    for option_id in option_ids:
        characteristic = owner[option_id]
        if characteristic.id in used:
            raise VariantError(
                f"Only one option per characteristic ({characteristic.name})",
                details={
                    "characteristic_id": characteristic.id,
                    "option_ids": [used[characteristic.id], option_id],
                },
            )
        used[characteristic.id] = option_id


def _lookup(product_id: int, option_key: str) -> Variant | None:
    return db.session.query(Variant).filter_by(
        product_id=product_id,
        option_key=option_key,
    ).first()


def find_variant(ctx: TenantContext, product_id: int, option_ids: Iterable | None) -> Variant | None:
    """Existing variant with exactly this option set (order independent), or None."""
    product = get_scoped_or_404(Product, product_id, ctx, label="Product")
    return _lookup(product.id, canonical_option_key(option_ids))


def resolve_or_create_variant(
    ctx: TenantContext,
    product_id: int,
    option_ids: Iterable | None,
    *,
    commit: bool = True,
) -> tuple[Variant, bool]:
    """
    Return the variant for (product, option set), creating it if absent.

    Returns (variant, created). Repeated calls with the same option set
    (in any order) return the same variant id.

    With commit=False the new variant is only flushed, so callers (restock)
    can commit it together with the stock entry.
    """
    product = get_scoped_or_404(Product, product_id, ctx, label="Product")
    ids = normalize_option_ids(option_ids)
    _validate_options(product, ids)
    option_key = ",".join(str(i) for i in ids)

    def _build() -> Variant:
        variant = Variant(org_id=product.org_id, product_id=product.id, option_key=option_key)
        for option_id in ids:
            variant.option_links.append(VariantOption(option_id=option_id))
        return variant

    variant, created = insert_if_absent(lambda: _lookup(product.id, option_key), _build)

    if commit:
        db.session.commit()

    if created:
        logger.info("Variant %s created for product %s (options=%r)", variant.id, product.id, option_key)
    return variant, created


def get_variant_attributes(ctx: TenantContext, variant_ids: Iterable[int]) -> dict[int, dict[str, str]]:
    """
    {variant_id: {characteristic name: option value}} for the given variants.

    Variants outside ctx's organization are silently absent from the result.
    Attribute-less variants map to {}.
    """
    ids = {int(v) for v in variant_ids}
    if not ids:
        return {}

    attributes: dict[int, dict[str, str]] = {
        row.id: {} for row in scoped_query(Variant, ctx).filter(Variant.id.in_(ids)).with_entities(Variant.id)
    }
    if not attributes:
        return {}

    rows = (
        db.session.query(VariantOption.variant_id, Characteristic.name, CharacteristicOption.value)
        .join(CharacteristicOption, CharacteristicOption.id == VariantOption.option_id)
        .join(Characteristic, Characteristic.id == CharacteristicOption.characteristic_id)
        .filter(VariantOption.variant_id.in_(attributes.keys()))
        .order_by(VariantOption.variant_id, Characteristic.id)
        .all()
    )
    for variant_id, name, value in rows:
        attributes[variant_id][name] = value
    return attributes


def format_variant_name(product_name: str, attributes: dict[str, str] | None) -> str:
    """
    Display name: "Shirt (S, Red)"; just "Shirt" when there are no attributes.
    """
    if not attributes:
        return product_name
    return f"{product_name} ({', '.join(attributes.values())})"


def describe_variants(ctx: TenantContext, variant_ids: Iterable[int]) -> dict[int, dict]:
    """
    {variant_id: {"product_id", "product_name", "attributes", "name"}} for display.
    """
    ids = {int(v) for v in variant_ids}
    attributes = get_variant_attributes(ctx, ids)
    if not attributes:
        return {}

    rows = (
        db.session.query(Variant.id, Product.id, Product.name)
        .join(Product, Product.id == Variant.product_id)
        .filter(Variant.id.in_(attributes.keys()))
        .all()
    )
    return {
        variant_id: {
            "product_id": product_id,
            "product_name": product_name,
            "attributes": attributes[variant_id],
            "name": format_variant_name(product_name, attributes[variant_id]),
        }
        for variant_id, product_id, product_name in rows
    }


def list_variants(ctx: TenantContext, product_id: int) -> list[dict]:
    product = get_scoped_or_404(Product, product_id, ctx, label="Product")
    variants = db.session.query(Variant).filter_by(product_id=product.id).order_by(Variant.id).all()
    attributes = get_variant_attributes(ctx, [v.id for v in variants])
    return [
        {
            **v.to_dict(),
            "attributes": attributes.get(v.id, {}),
            "name": format_variant_name(product.name, attributes.get(v.id)),
        }
        for v in variants
    ]


def delete_variant(ctx: TenantContext, variant_id: int) -> None:
    """
    Delete a variant and its stock entries.

    Refused if any committed sale references it.
    """
    variant = get_scoped_or_404(Variant, variant_id, ctx, label="Variant")

    sold = db.session.query(SaleLine.id).filter_by(variant_id=variant.id).first()
    if sold:
        raise VariantError("Variant has sales and cannot be deleted", details={"variant_id": variant_id})

    db.session.query(StockEntry).filter_by(variant_id=variant.id).delete(synchronize_session=False)
    db.session.expire(variant, ["stock_entries"])
    db.session.delete(variant)
    db.session.commit()
